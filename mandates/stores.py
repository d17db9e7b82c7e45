"""Lead and mandate persistence on top of the Django ORM."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable

from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from .document import OPTIONAL_TEXT_FIELDS, MandateDocumentInput
from .models import Lead, LeadActivity, Mandate

logger = logging.getLogger(__name__)

LEAD_FIELDS = (
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
    "unit_type",
    "status",
    "follow_up_date",
    "notes",
)
LEAD_SEARCH_FIELDS = (
    "kva",
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
MANDATE_SEARCH_FIELDS = (
    "mandate_name",
    "client_name",
    "company",
    "kva",
    "address",
    *OPTIONAL_TEXT_FIELDS,
    "schemes",
)


def _search_filter(fields: Iterable[str], term: str) -> Q:
    query = Q()
    for name in fields:
        query |= Q(**{f"{name}__icontains": term})
    return query


# Mandates ---------------------------------------------------------------------


class MandateConflictError(ValueError):
    """Raised when a mandate id is reused for a document with different content."""


def mandate_name_for(document: MandateDocumentInput) -> str:
    base = document.company or document.client_name
    if document.schemes:
        return f"{base} - {', '.join(document.schemes)}"
    return base


def document_fields(document: MandateDocumentInput) -> dict[str, Any]:
    fields = {
        "client_name": document.client_name,
        "company": document.company,
        "kva": document.kva,
        "address": document.address,
        "schemes": list(document.schemes),
        "policy": document.policy,
    }
    for name in OPTIONAL_TEXT_FIELDS:
        fields[name] = getattr(document, name)
    return fields


def _check_same_content(mandate: Mandate, document: MandateDocumentInput) -> None:
    changed = sorted(
        name for name, value in document_fields(document).items() if getattr(mandate, name) != value
    )
    if changed:
        logger.warning("Mandate %s was reused with different %s", mandate.mandate_id, ", ".join(changed))
        raise MandateConflictError(
            "This form was already used to generate a different mandate. "
            "Reload the form to start a new one."
        )


def ensure_unchanged(document: MandateDocumentInput, mandate_id: Any) -> None:
    existing = Mandate.objects.filter(mandate_id=mandate_id).first()
    if existing is not None:
        _check_same_content(existing, document)


def add_mandate(
    document: MandateDocumentInput,
    *,
    mandate_id: Any,
    lead_id: int | None = None,
    mandate_name: str | None = None,
) -> tuple[Mandate, bool]:
    """Record a mandate once per ``mandate_id``.

    A repeated call with the same id and the same content returns the existing
    row untouched; different content raises :class:`MandateConflictError`.
    """

    defaults = {
        **document_fields(document),
        "lead_id": lead_id,
        "mandate_name": mandate_name or mandate_name_for(document),
    }
    with transaction.atomic():
        mandate, created = Mandate.objects.get_or_create(mandate_id=mandate_id, defaults=defaults)
        if not created:
            _check_same_content(mandate, document)
    if created:
        logger.info("Created mandate %s for %s", mandate.mandate_id, mandate.company)
    else:
        logger.info("Mandate %s already recorded, reusing it", mandate.mandate_id)
    return mandate, created


def update_mandate(mandate_id: Any, **changes: Any) -> Mandate:
    mandate = Mandate.objects.get(mandate_id=mandate_id, is_deleted=False)
    for name, value in changes.items():
        setattr(mandate, name, value)
    mandate.save()
    return mandate


def delete_mandate(mandate_id: Any) -> bool:
    updated = Mandate.objects.filter(mandate_id=mandate_id, is_deleted=False).update(is_deleted=True)
    if updated:
        logger.info("Deleted mandate %s", mandate_id)
    return bool(updated)


def filter_mandates(
    status: str | Iterable[str] | None = None,
    search_term: str | None = None,
    lead_id: int | None = None,
) -> QuerySet[Mandate]:
    mandates = Mandate.objects.filter(is_deleted=False)
    if status:
        statuses = [status] if isinstance(status, str) else list(status)
        mandates = mandates.filter(status__in=statuses)
    if lead_id is not None:
        mandates = mandates.filter(lead_id=lead_id)
    term = (search_term or "").strip()
    if term:
        mandates = mandates.filter(_search_filter(MANDATE_SEARCH_FIELDS, term))
    return mandates


# Leads ------------------------------------------------------------------------


def add_lead(**fields: Any) -> Lead:
    values = {name: value for name, value in fields.items() if name in LEAD_FIELDS and value is not None}
    lead = Lead.objects.create(**values)
    logger.info("Created lead %s (%s)", lead.pk, lead)
    return lead


def bulk_add_leads(rows: Iterable[dict[str, Any]]) -> int:
    count = 0
    with transaction.atomic():
        for row in rows:
            add_lead(**row)
            count += 1
    return count


def get_lead(lead_id: int) -> Lead:
    return Lead.objects.get(pk=lead_id, is_deleted=False)


def update_lead(lead_id: int, **changes: Any) -> Lead:
    lead = get_lead(lead_id)
    for name, value in changes.items():
        if name in LEAD_FIELDS:
            setattr(lead, name, value)
    lead.is_updated = True
    lead.save()
    return lead


def delete_lead(lead_id: int) -> bool:
    updated = Lead.objects.filter(pk=lead_id, is_deleted=False).update(is_deleted=True)
    if updated:
        logger.info("Deleted lead %s", lead_id)
    return bool(updated)


def mark_as_done(lead_id: int) -> Lead:
    lead = get_lead(lead_id)
    lead.is_done = True
    lead.save(update_fields=["is_done"])
    return lead


def add_activity(lead_id: int, description: str) -> LeadActivity:
    lead = get_lead(lead_id)
    now = timezone.now()
    activity = LeadActivity.objects.create(lead=lead, description=description.strip(), timestamp=now)
    lead.last_activity_date = now
    lead.save(update_fields=["last_activity_date"])
    return activity


def filter_leads(
    status: str | Iterable[str] | None = None,
    follow_up_start: date | None = None,
    follow_up_end: date | None = None,
    search_term: str | None = None,
    discom: str | None = None,
) -> QuerySet[Lead]:
    leads = Lead.objects.filter(is_deleted=False)
    if status:
        statuses = [status] if isinstance(status, str) else list(status)
        leads = leads.filter(status__in=statuses)
    if follow_up_start:
        leads = leads.filter(follow_up_date__gte=follow_up_start)
    if follow_up_end:
        leads = leads.filter(follow_up_date__lte=follow_up_end)
    if discom:
        leads = leads.filter(discom__iexact=discom.strip())
    term = (search_term or "").strip()
    if term:
        leads = leads.filter(_search_filter(LEAD_SEARCH_FIELDS, term))
    return leads
