import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Lead",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kva", models.CharField(blank=True, max_length=50)),
                ("connection_date", models.CharField(blank=True, max_length=30)),
                ("consumer_number", models.CharField(blank=True, max_length=100)),
                ("company", models.CharField(blank=True, max_length=200)),
                ("client_name", models.CharField(blank=True, max_length=200)),
                ("discom", models.CharField(blank=True, max_length=100)),
                ("gidc", models.CharField(blank=True, max_length=100)),
                ("gst_number", models.CharField(blank=True, max_length=50)),
                ("mobile_number", models.CharField(blank=True, max_length=40)),
                ("company_location", models.CharField(blank=True, max_length=300)),
                (
                    "unit_type",
                    models.CharField(
                        choices=[("New", "New"), ("Existing", "Existing"), ("Other", "Other")],
                        default="New",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("New", "New"),
                            ("CNR", "CNR"),
                            ("Busy", "Busy"),
                            ("Follow-up", "Follow-up"),
                            ("Deal Close", "Deal Close"),
                            ("Work Alloted", "Work Alloted"),
                            ("Hotlead", "Hotlead"),
                            ("Mandate Sent", "Mandate Sent"),
                            ("Documentation", "Documentation"),
                        ],
                        default="New",
                        max_length=20,
                    ),
                ),
                ("follow_up_date", models.DateField(blank=True, null=True)),
                ("last_activity_date", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("is_done", models.BooleanField(default=False)),
                ("is_deleted", models.BooleanField(default=False)),
                ("is_updated", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="LeadActivity",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.TextField()),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "lead",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="activities",
                        to="mandates.lead",
                    ),
                ),
            ],
            options={
                "ordering": ["-timestamp", "-id"],
            },
        ),
        migrations.CreateModel(
            name="Mandate",
            fields=[
                (
                    "mandate_id",
                    models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False),
                ),
                ("mandate_name", models.CharField(max_length=300)),
                ("client_name", models.CharField(max_length=200)),
                ("company", models.CharField(max_length=200)),
                ("kva", models.CharField(blank=True, max_length=50)),
                ("address", models.TextField(blank=True)),
                ("schemes", models.JSONField(blank=True, default=list)),
                ("type_of_case", models.CharField(blank=True, max_length=200)),
                ("category", models.CharField(blank=True, max_length=200)),
                ("project_cost", models.CharField(blank=True, max_length=200)),
                ("industries_type", models.CharField(blank=True, max_length=200)),
                ("term_loan_amount", models.CharField(blank=True, max_length=200)),
                ("power_connection", models.CharField(blank=True, max_length=200)),
                ("policy", models.CharField(blank=True, max_length=200)),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Draft"), ("active", "Active"), ("closed", "Closed")],
                        default="draft",
                        max_length=10,
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("is_deleted", models.BooleanField(default=False)),
                (
                    "lead",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="mandates",
                        to="mandates.lead",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
