from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from django.conf import settings

from ..composer import CompositionError, DocumentEnvironmentError, compose
from ..document import ConsultantInfo, EditableContent, MandateDocumentInput
from ..fees import FeeSchedule, get_fee_policy
from ..models import Mandate
from ..schemes import SchemeCatalog, resolve_catalog
from ..stores import add_mandate, ensure_unchanged

logger = logging.getLogger(__name__)

DocumentSink = Callable[[bytes, str, str], str]


@dataclass
class MandateResult:
    content: bytes
    content_type: str
    filename: str
    token: str
    page_count: int
    mandate: Mandate
    created: bool


def default_consultant() -> ConsultantInfo:
    info = getattr(settings, "MANDATE_CONSULTANT", {}) or {}
    return ConsultantInfo(
        name=info.get("name", ""),
        address=info.get("address", ""),
        email=info.get("email", ""),
        phone=info.get("phone", ""),
    )


def current_fee_policy() -> Callable[[MandateDocumentInput], FeeSchedule]:
    return get_fee_policy(getattr(settings, "MANDATE_FEE_POLICY", None))


def resolve_fee_schedule(document: MandateDocumentInput) -> FeeSchedule:
    """Fee rows and total for ``document`` under the configured policy, as the PDF renders them."""
    return current_fee_policy()(document)


def build_document_input(cleaned: Mapping[str, Any]) -> MandateDocumentInput:
    schemes = list(cleaned.get("schemes") or ())
    fees: dict[str, Any] = {}
    percentages: dict[str, Any] = {}
    fee_types: dict[str, str] = {}
    for scheme, values in (cleaned.get("scheme_fees") or {}).items():
        if values.get("fee") is not None:
            fees[scheme] = values["fee"]
        if values.get("percentage") is not None:
            percentages[scheme] = values["percentage"]
        if values.get("fee_type"):
            fee_types[scheme] = values["fee_type"]
    data = dict(cleaned)
    data.update(schemes=schemes, fees=fees, percentages=percentages, fee_types=fee_types)
    return MandateDocumentInput.from_mapping(data)


def build_editable_content(cleaned: Mapping[str, Any]) -> EditableContent:
    return EditableContent(
        subject_line=(cleaned.get("subject_line") or "").strip() or None,
        work_scope=EditableContent.lines_from_text(cleaned.get("work_scope")),
        eligibility_criteria=EditableContent.lines_from_text(cleaned.get("eligibility_criteria")),
        terms_and_conditions=EditableContent.lines_from_text(cleaned.get("terms_and_conditions")),
    )


def generate_mandate_document(
    document: MandateDocumentInput,
    consultant: ConsultantInfo,
    sink: DocumentSink | None,
    *,
    mandate_id: str,
    lead_id: int | None = None,
    content: EditableContent | None = None,
    catalog: SchemeCatalog | None = None,
) -> MandateResult:
    """Compose the mandate PDF, hand it to ``sink`` and record the mandate.

    The mandate row is written only after the document exists, and at most
    once per ``mandate_id`` so a retried confirmation reuses the earlier row.
    Reusing an id for different content raises ``MandateConflictError``
    before anything is composed.
    """

    if sink is None:
        raise DocumentEnvironmentError("No document sink is available to receive the mandate PDF.")

    ensure_unchanged(document, mandate_id)
    fee_policy = current_fee_policy()
    try:
        composed = compose(
            document,
            consultant,
            catalog=resolve_catalog(catalog),
            content=content,
            fee_policy=fee_policy,
        )
    except CompositionError:
        logger.exception("Mandate composition failed for %s", document.client_name)
        raise

    token = sink(composed.content, composed.content_type, composed.filename)
    mandate, created = add_mandate(document, mandate_id=mandate_id, lead_id=lead_id)
    return MandateResult(
        content=composed.content,
        content_type=composed.content_type,
        filename=composed.filename,
        token=token,
        page_count=composed.page_count,
        mandate=mandate,
        created=created,
    )
