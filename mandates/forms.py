import re
import uuid

from django import forms
from django.conf import settings
from django.core.exceptions import ValidationError

from .fees import FEE_TYPE_FIXED, FEE_TYPE_PERCENTAGE
from .models import Lead, Mandate
from .schemes import DEFAULT_SCHEME_CATALOG

EXECUTABLE_EXTENSIONS = {
    ".exe",
    ".bat",
    ".cmd",
    ".sh",
    ".ps1",
    ".vbs",
    ".js",
    ".jar",
    ".msi",
    ".com",
    ".scr",
    ".apk",
    ".app",
    ".bin",
    ".dll",
}

LEAD_FILE_EXTENSIONS = {".csv", ".xlsx"}
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg"}

FEE_TYPE_CHOICES = [
    (FEE_TYPE_PERCENTAGE, "Percentage of subsidy"),
    (FEE_TYPE_FIXED, "Fixed fee"),
]


def _extension(filename: str) -> str:
    return ("." + filename.rsplit(".", 1)[-1].lower()) if "." in filename else ""


def scheme_slug(scheme: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", scheme.lower()).strip("_")


class MandateForm(forms.Form):
    request_token = forms.UUIDField(widget=forms.HiddenInput, initial=uuid.uuid4)
    lead_id = forms.IntegerField(widget=forms.HiddenInput, required=False)

    client_name = forms.CharField(
        label="Client Name",
        max_length=200,
        widget=forms.TextInput(attrs={"placeholder": "Enter client name", "class": "form-input"}),
    )
    company = forms.CharField(
        label="Company",
        max_length=200,
        widget=forms.TextInput(attrs={"placeholder": "M/s ...", "class": "form-input"}),
    )
    address = forms.CharField(
        label="Address",
        required=False,
        widget=forms.Textarea(attrs={"rows": 3, "placeholder": "Enter full address", "class": "form-input"}),
    )
    kva = forms.CharField(label="KVA", max_length=50, required=False)
    schemes = forms.MultipleChoiceField(
        label="Schemes",
        required=False,
        choices=DEFAULT_SCHEME_CATALOG.choices(),
        widget=forms.CheckboxSelectMultiple,
    )

    type_of_case = forms.CharField(label="Type of Case", max_length=200, required=False)
    category = forms.CharField(label="Taluka Category", max_length=200, required=False)
    project_cost = forms.CharField(label="Project Cost", max_length=200, required=False)
    industries_type = forms.CharField(label="Industry", max_length=200, required=False)
    term_loan_amount = forms.CharField(label="Term Loan Amount", max_length=200, required=False)
    power_connection = forms.CharField(label="Power Connection", max_length=200, required=False)
    policy = forms.CharField(
        label="Policy",
        max_length=200,
        required=False,
        widget=forms.TextInput(attrs={"placeholder": "Atmanirbhar Gujarat Scheme 2022"}),
    )

    # Editable preview content
    subject_line = forms.CharField(
        label="Subject",
        required=False,
        widget=forms.Textarea(attrs={"rows": 2}),
    )
    work_scope = forms.CharField(
        label="Work Scope (one item per line)",
        required=False,
        widget=forms.Textarea(attrs={"rows": 7}),
    )
    eligibility_criteria = forms.CharField(
        label="Eligibility Criteria (one item per line)",
        required=False,
        widget=forms.Textarea(attrs={"rows": 7}),
    )
    terms_and_conditions = forms.CharField(
        label="Terms & Conditions (one item per line)",
        required=False,
        widget=forms.Textarea(attrs={"rows": 8}),
    )

    # Consultant letterhead
    consultant_name = forms.CharField(label="Consultant Name", max_length=200)
    consultant_address = forms.CharField(
        label="Consultant Address",
        widget=forms.Textarea(attrs={"rows": 2, "class": "form-input"}),
    )
    consultant_email = forms.EmailField(label="Consultant Email", required=False)
    consultant_phone = forms.CharField(label="Consultant Phone", max_length=40, required=False)
    consultant_logo = forms.ImageField(label="Consultant Logo", required=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        consultant = getattr(settings, "MANDATE_CONSULTANT", {}) or {}
        for key in ("name", "address", "email", "phone"):
            self.fields[f"consultant_{key}"].initial = consultant.get(key, "")

        self.scheme_fee_fields = []
        for scheme, _ in self.fields["schemes"].choices:
            slug = scheme_slug(scheme)
            self.fields[f"fee_type_{slug}"] = forms.ChoiceField(
                label=f"{scheme} fee type",
                choices=FEE_TYPE_CHOICES,
                required=False,
                initial=FEE_TYPE_PERCENTAGE,
            )
            self.fields[f"fee_{slug}"] = forms.DecimalField(
                label=f"{scheme} fixed fee (Rs.)",
                max_digits=12,
                decimal_places=2,
                min_value=0,
                required=False,
            )
            self.fields[f"percentage_{slug}"] = forms.DecimalField(
                label=f"{scheme} fee (%)",
                max_digits=5,
                decimal_places=2,
                min_value=0,
                max_value=100,
                required=False,
            )
            self.scheme_fee_fields.append((scheme, slug))

    def clean_consultant_logo(self):
        file = self.cleaned_data.get("consultant_logo")
        if not file:
            return file
        filename = file.name or ""
        ext = _extension(filename)
        if ext in EXECUTABLE_EXTENSIONS:
            raise ValidationError("Executable files are not allowed.")
        if ext not in IMAGE_EXTENSIONS:
            raise ValidationError("Logo must be a PNG or JPG image.")
        return file

    def clean(self):
        cleaned = super().clean()
        selected = set(cleaned.get("schemes") or ())
        scheme_fees = {}
        for scheme, slug in self.scheme_fee_fields:
            if scheme not in selected:
                continue
            scheme_fees[scheme] = {
                "fee_type": cleaned.get(f"fee_type_{slug}") or FEE_TYPE_PERCENTAGE,
                "fee": cleaned.get(f"fee_{slug}"),
                "percentage": cleaned.get(f"percentage_{slug}"),
            }
        cleaned["scheme_fees"] = scheme_fees
        return cleaned

    def scheme_fee_rows(self):
        return [
            (scheme, self[f"fee_type_{slug}"], self[f"fee_{slug}"], self[f"percentage_{slug}"])
            for scheme, slug in self.scheme_fee_fields
        ]


class LeadForm(forms.Form):
    company = forms.CharField(label="Company Name", max_length=200, required=False)
    client_name = forms.CharField(label="Client Name", max_length=200, required=False)
    kva = forms.CharField(label="KVA", max_length=50, required=False)
    connection_date = forms.CharField(
        label="Connection Date",
        max_length=30,
        required=False,
        widget=forms.TextInput(attrs={"placeholder": "DD-MM-YYYY"}),
    )
    consumer_number = forms.CharField(label="Consumer Number", max_length=100, required=False)
    discom = forms.CharField(label="Discom", max_length=100, required=False)
    gidc = forms.CharField(label="GIDC", max_length=100, required=False)
    gst_number = forms.CharField(label="GST Number", max_length=50, required=False)
    mobile_number = forms.CharField(label="Mobile Number", max_length=40, required=False)
    company_location = forms.CharField(label="Company Location", max_length=300, required=False)
    unit_type = forms.ChoiceField(label="Unit Type", choices=Lead.UnitType.choices, initial=Lead.UnitType.NEW)
    status = forms.ChoiceField(label="Lead Status", choices=Lead.Status.choices, initial=Lead.Status.NEW)
    follow_up_date = forms.DateField(
        label="Next Follow-up Date", widget=forms.DateInput(attrs={"type": "date"}), required=False
    )
    notes = forms.CharField(label="Last Discussion", widget=forms.Textarea(attrs={"rows": 3}), required=False)

    def clean_mobile_number(self):
        value = (self.cleaned_data.get("mobile_number") or "").strip()
        if value and not re.fullmatch(r"[0-9+\-\s]{6,20}", value):
            raise ValidationError("Enter a valid mobile number.")
        return value

    def clean(self):
        cleaned = super().clean()
        if not (cleaned.get("company") or cleaned.get("client_name")):
            raise ValidationError("Enter a company name or a client name.")
        return cleaned


class LeadImportForm(forms.Form):
    lead_file = forms.FileField(label="Lead Sheet (CSV or Excel)")

    def clean_lead_file(self):
        file = self.cleaned_data.get("lead_file")
        if not file:
            return file
        filename = file.name or ""
        ext = _extension(filename)
        if ext in EXECUTABLE_EXTENSIONS:
            raise ValidationError("Executable files are not allowed.")
        if ext not in LEAD_FILE_EXTENSIONS:
            raise ValidationError("Please upload a CSV or Excel file (.csv or .xlsx).")
        return file


class LeadActivityForm(forms.Form):
    description = forms.CharField(label="Activity", widget=forms.Textarea(attrs={"rows": 2}))


class LeadFilterForm(forms.Form):
    status = forms.ChoiceField(
        label="Status", choices=[("", "All statuses")] + list(Lead.Status.choices), required=False
    )
    discom = forms.CharField(label="Discom", max_length=100, required=False)
    follow_up_start = forms.DateField(
        label="Follow-up from", widget=forms.DateInput(attrs={"type": "date"}), required=False
    )
    follow_up_end = forms.DateField(
        label="Follow-up to", widget=forms.DateInput(attrs={"type": "date"}), required=False
    )
    search = forms.CharField(label="Search", max_length=200, required=False)


class MandateFilterForm(forms.Form):
    status = forms.ChoiceField(
        label="Status", choices=[("", "All statuses")] + list(Mandate.Status.choices), required=False
    )
    search = forms.CharField(label="Search", max_length=200, required=False)
