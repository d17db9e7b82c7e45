import uuid

from django.db import models
from django.utils import timezone


class Lead(models.Model):
    class Status(models.TextChoices):
        NEW = "New", "New"
        CNR = "CNR", "CNR"
        BUSY = "Busy", "Busy"
        FOLLOW_UP = "Follow-up", "Follow-up"
        DEAL_CLOSE = "Deal Close", "Deal Close"
        WORK_ALLOTED = "Work Alloted", "Work Alloted"
        HOTLEAD = "Hotlead", "Hotlead"
        MANDATE_SENT = "Mandate Sent", "Mandate Sent"
        DOCUMENTATION = "Documentation", "Documentation"

    class UnitType(models.TextChoices):
        NEW = "New", "New"
        EXISTING = "Existing", "Existing"
        OTHER = "Other", "Other"

    kva = models.CharField(max_length=50, blank=True)
    connection_date = models.CharField(max_length=30, blank=True)
    consumer_number = models.CharField(max_length=100, blank=True)
    company = models.CharField(max_length=200, blank=True)
    client_name = models.CharField(max_length=200, blank=True)
    discom = models.CharField(max_length=100, blank=True)
    gidc = models.CharField(max_length=100, blank=True)
    gst_number = models.CharField(max_length=50, blank=True)
    mobile_number = models.CharField(max_length=40, blank=True)
    company_location = models.CharField(max_length=300, blank=True)
    unit_type = models.CharField(max_length=20, choices=UnitType.choices, default=UnitType.NEW)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.NEW)
    follow_up_date = models.DateField(null=True, blank=True)
    last_activity_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    is_done = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)
    is_updated = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return self.company or self.client_name or f"Lead {self.pk}"


class LeadActivity(models.Model):
    lead = models.ForeignKey(Lead, on_delete=models.CASCADE, related_name="activities")
    description = models.TextField()
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-timestamp", "-id"]


class Mandate(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        ACTIVE = "active", "Active"
        CLOSED = "closed", "Closed"

    mandate_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    lead = models.ForeignKey(
        Lead, on_delete=models.SET_NULL, null=True, blank=True, related_name="mandates"
    )
    mandate_name = models.CharField(max_length=300)
    client_name = models.CharField(max_length=200)
    company = models.CharField(max_length=200)
    kva = models.CharField(max_length=50, blank=True)
    address = models.TextField(blank=True)
    schemes = models.JSONField(default=list, blank=True)
    type_of_case = models.CharField(max_length=200, blank=True)
    category = models.CharField(max_length=200, blank=True)
    project_cost = models.CharField(max_length=200, blank=True)
    industries_type = models.CharField(max_length=200, blank=True)
    term_loan_amount = models.CharField(max_length=200, blank=True)
    power_connection = models.CharField(max_length=200, blank=True)
    policy = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.DRAFT)
    created_at = models.DateTimeField(default=timezone.now)
    is_deleted = models.BooleanField(default=False)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.mandate_name
