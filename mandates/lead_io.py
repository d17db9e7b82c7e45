from __future__ import annotations

import re
from datetime import date, datetime
from io import BytesIO
from typing import Any, Iterable

import pandas as pd

from .models import Lead


class LeadImportError(ValueError):
    """Raised when an uploaded lead sheet cannot be read."""


IDENTITY_COLUMNS = ("company", "client_name")

COLUMN_ALIASES = {
    "consumer_number": {"con.no", "con.no.", "connection number", "consumer number", "consumernumber"},
    "kva": {"kva"},
    "connection_date": {"connection date", "connectiondate"},
    "company": {"company", "company name", "organization"},
    "client_name": {"client name", "clientname", "client"},
    "company_location": {"company location", "companylocation", "location", "address"},
    "mobile_number": {
        "mo.no",
        "mo .no",
        "mobile number",
        "mobilenumber",
        "mobile",
        "phone",
        "phone number",
        "contact phone",
        "telephone",
        "main mobile number",
    },
    "discom": {"discom"},
    "gidc": {"gidc"},
    "gst_number": {"gst number", "gst no", "gst", "gstin"},
    "unit_type": {"unit type", "unittype"},
    "status": {"status", "lead status", "lead-status", "leadstatus"},
    "notes": {"notes", "last discussion", "remarks", "discussion"},
    "follow_up_date": {"follow up date", "followupdate", "next follow-up date", "next follow up date"},
}

EXPORT_COLUMNS = (
    ("con.no", "consumer_number"),
    ("KVA", "kva"),
    ("Connection Date", "connection_date"),
    ("Company Name", "company"),
    ("Client Name", "client_name"),
    ("Discom", "discom"),
    ("GIDC", "gidc"),
    ("GST Number", "gst_number"),
    ("Main Mobile Number", "mobile_number"),
    ("Lead Status", "status"),
    ("Last Discussion", "notes"),
    ("Address", "company_location"),
    ("Next Follow-up Date", "follow_up_date"),
)

CSV_EXTENSIONS = {".csv"}
EXCEL_EXTENSIONS = {".xlsx"}


def _normalize_name(name: str) -> str:
    cleaned = name.strip().lower().replace("/", " ").replace("#", " ")
    cleaned = re.sub(r"[\(\)]", " ", cleaned)
    cleaned = re.sub(r"[^a-z0-9]+", "_", cleaned)
    return cleaned.strip("_")


def _build_alias_map() -> dict[str, str]:
    alias_map: dict[str, str] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        alias_map[_normalize_name(canonical)] = canonical
        for alias in aliases:
            alias_map[_normalize_name(alias)] = canonical
    return alias_map


ALIAS_MAP = _build_alias_map()


def normalize_columns(frame: pd.DataFrame) -> pd.DataFrame:
    frame = frame.copy()
    normalized = []
    for col in frame.columns:
        key = _normalize_name(str(col))
        # "DISCOM Name", "Discom (Zone)" and similar all land on discom.
        if "discom" in key:
            normalized.append("discom")
            continue
        normalized.append(ALIAS_MAP.get(key, key))
    frame.columns = normalized
    return frame.loc[:, ~frame.columns.duplicated()]


def cell_text(value: object) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.strftime("%d-%m-%Y")
    text = str(value).strip()
    if text.endswith("00:00:00"):
        text = text.split(" ")[0]
    if text.lower() == "nan":
        return ""
    return text


def parse_date(value: object) -> date | None:
    text = cell_text(value)
    if not text:
        return None
    parsed = pd.to_datetime(text, errors="coerce", dayfirst=not re.match(r"^\d{4}-", text))
    if pd.isna(parsed):
        return None
    return parsed.date()


def _choice(value: object, choices: Iterable[str], default: str) -> str:
    text = cell_text(value).lower()
    for choice in choices:
        if choice.lower() == text:
            return choice
    return default


def _extension(filename: str) -> str:
    return ("." + filename.rsplit(".", 1)[-1].lower()) if "." in filename else ""


def read_lead_frame(file_bytes: bytes, filename: str) -> pd.DataFrame:
    ext = _extension(filename or "")
    buffer = BytesIO(file_bytes)
    try:
        if ext in CSV_EXTENSIONS:
            frame = pd.read_csv(buffer, dtype=str)
        elif ext in EXCEL_EXTENSIONS:
            frame = pd.read_excel(buffer, engine="openpyxl", dtype=str)
        else:
            raise LeadImportError("Please upload a CSV or Excel (.xlsx) file.")
    except LeadImportError:
        raise
    except Exception as exc:
        raise LeadImportError(f"Could not read {filename}: {exc}") from exc
    return normalize_columns(frame)


def parse_lead_file(file_bytes: bytes, filename: str) -> list[dict[str, Any]]:
    """Turn an uploaded sheet into keyword arguments for :func:`stores.add_lead`.

    Rows without a company or client name are skipped.
    """

    frame = read_lead_frame(file_bytes, filename)
    if not any(column in frame.columns for column in IDENTITY_COLUMNS):
        raise LeadImportError("Missing required column: Company Name or Client Name.")

    status_values = [value for value, _ in Lead.Status.choices]
    unit_values = [value for value, _ in Lead.UnitType.choices]
    leads: list[dict[str, Any]] = []
    for _, row in frame.iterrows():
        lead = {
            name: cell_text(row.get(name))
            for name in (
                "kva",
                "connection_date",
                "consumer_number",
                "company",
                "client_name",
                "discom",
                "gidc",
                "gst_number",
                "mobile_number",
                "company_location",
                "notes",
            )
        }
        if not (lead["company"] or lead["client_name"]):
            continue
        lead["status"] = _choice(row.get("status"), status_values, Lead.Status.NEW)
        lead["unit_type"] = _choice(row.get("unit_type"), unit_values, Lead.UnitType.NEW)
        lead["follow_up_date"] = parse_date(row.get("follow_up_date"))
        leads.append(lead)
    return leads


def _export_value(lead: Lead, attribute: str) -> str:
    value = getattr(lead, attribute)
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return value or ""


def export_leads(leads: Iterable[Lead]) -> bytes:
    rows = [[_export_value(lead, attribute) for _, attribute in EXPORT_COLUMNS] for lead in leads]
    frame = pd.DataFrame(rows, columns=[header for header, _ in EXPORT_COLUMNS])
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, index=False, sheet_name="Leads")
    return buffer.getvalue()


def export_filename(today: date | None = None) -> str:
    return f"leads-export-{(today or date.today()).isoformat()}.xlsx"
