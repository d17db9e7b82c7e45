"""Mandate document content as a sequence of typed blocks.

``build_sections`` is the single place where the mandate document's wording
and section order are decided. The PDF composer lays these blocks out on
pages; the preview renders the very same blocks as HTML and plain text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any, ClassVar, Mapping, Sequence

from .fees import FeeSchedule, flat_average_schedule
from .formatting import (
    NO_SCHEMES_SELECTED,
    benefit_lines,
    format_document_date,
    format_subject_line,
    not_specified,
    numbered,
)
from .schemes import SchemeCatalog, resolve_catalog

DEFAULT_WORK_SCOPE = (
    "Assessment of eligibility for government subsidy schemes under the applicable policy.",
    "Preparation and submission of all required documents and applications.",
    "Liaison with concerned government departments and agencies.",
    "Follow-up on application status and expedite approvals.",
    "Guidance on compliance requirements and procedures.",
    "Support for any additional documentation or clarifications required.",
    "Regular updates on the progress of applications.",
)

DEFAULT_ELIGIBILITY_CRITERIA = (
    "The unit should be registered under the Companies Act 2013, Partnership Act 1932 or a relevant Act.",
    "The unit should be operational and engaged in manufacturing or service activities.",
    "The unit should have valid business registration and necessary licenses.",
    "The unit should comply with all applicable laws and regulations.",
    "The unit should have proper financial statements and project documentation.",
    "The unit should meet the minimum investment and employment criteria of the scheme.",
    "The unit should adhere to environmental and safety standards.",
)

DEFAULT_TERMS_AND_CONDITIONS = (
    "All services are subject to client cooperation and timely provision of required documents.",
    "Fees are payable as per agreed terms and conditions.",
    "We reserve the right to modify our services based on changing government policies.",
    "Confidentiality of client information is maintained at all times.",
    "Any additional services beyond the scope will be charged separately.",
    "This mandate is valid for 90 days from the date of signing.",
    "Payment terms: 50% advance, 50% on completion of work.",
    "We are not responsible for delays caused by government departments or policy changes.",
)

SIGNATURE_LINE = "APPROVED & AUTHORIZED BY (Sign and Stamp)"
FEES_INTRO = "Our consulting fees are structured as follows:"
FEE_TABLE_HEADER = ("Service", "Fee Structure", "Amount")

OPTIONAL_TEXT_FIELDS = (
    "type_of_case",
    "category",
    "project_cost",
    "industries_type",
    "term_loan_amount",
    "power_connection",
)


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class ConsultantInfo:
    name: str
    address: str
    email: str
    phone: str
    logo_bytes: bytes | None = field(default=None, repr=False)


@dataclass(frozen=True)
class MandateDocumentInput:
    client_name: str
    company: str
    address: str = ""
    kva: str = ""
    schemes: tuple[str, ...] = ()
    type_of_case: str = ""
    category: str = ""
    project_cost: str = ""
    industries_type: str = ""
    term_loan_amount: str = ""
    power_connection: str = ""
    policy: str = ""
    fees: Mapping[str, Any] = field(default_factory=dict)
    percentages: Mapping[str, Any] = field(default_factory=dict)
    fee_types: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the containers so a render call cannot alter caller data.
        object.__setattr__(self, "schemes", tuple(self.schemes))
        for name in ("fees", "percentages", "fee_types"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> MandateDocumentInput:
        text_fields = ("client_name", "company", "address", "kva", "policy", *OPTIONAL_TEXT_FIELDS)
        values: dict[str, Any] = {name: _clean(data.get(name)) for name in text_fields}
        schemes: list[str] = []
        for scheme in data.get("schemes") or ():
            if scheme and scheme not in schemes:
                schemes.append(scheme)
        values["schemes"] = tuple(schemes)
        values["fees"] = dict(data.get("fees") or {})
        values["percentages"] = dict(data.get("percentages") or {})
        values["fee_types"] = dict(data.get("fee_types") or {})
        return cls(**values)


@dataclass(frozen=True)
class EditableContent:
    subject_line: str | None = None
    work_scope: tuple[str, ...] | None = None
    eligibility_criteria: tuple[str, ...] | None = None
    terms_and_conditions: tuple[str, ...] | None = None

    @staticmethod
    def lines_from_text(text: str | None) -> tuple[str, ...] | None:
        if not text:
            return None
        lines = tuple(line.strip() for line in text.splitlines() if line.strip())
        return lines or None


# Blocks ---------------------------------------------------------------------

BODY_SIZE = 10
LIST_SIZE = 9
HEADING_SIZE = 12


@dataclass(frozen=True)
class TextLine:
    kind: ClassVar[str] = "line"
    text: str
    bold: bool = False
    size: float = BODY_SIZE
    align: str = "left"
    indent: float = 0


@dataclass(frozen=True)
class ParagraphBlock:
    kind: ClassVar[str] = "paragraph"
    text: str
    bold: bool = False
    size: float = BODY_SIZE


@dataclass(frozen=True)
class HeadingBlock:
    kind: ClassVar[str] = "heading"
    text: str
    size: float = HEADING_SIZE


@dataclass(frozen=True)
class ListBlock:
    kind: ClassVar[str] = "list"
    items: tuple[str, ...]
    size: float = LIST_SIZE


@dataclass(frozen=True)
class BenefitBlock:
    kind: ClassVar[str] = "benefit"
    title: str
    bullets: tuple[str, ...] = ()


@dataclass(frozen=True)
class TableColumn:
    title: str
    width: float
    align: str = "left"


@dataclass(frozen=True)
class TableBlock:
    """Rows of cells with fixed column widths (fractions of the usable width)."""

    kind: ClassVar[str] = "table"
    columns: tuple[TableColumn, ...]
    rows: tuple[tuple[str, ...], ...]
    show_header: bool = True
    bold_first_column: bool = False
    total_row: tuple[str, ...] | None = None


@dataclass(frozen=True)
class SpacerBlock:
    kind: ClassVar[str] = "spacer"
    lines: float = 1


@dataclass(frozen=True)
class Section:
    name: str
    blocks: tuple[Any, ...]


def commercial_offer_rows(document: MandateDocumentInput) -> tuple[tuple[str, str], ...]:
    return (
        ("Case Name", not_specified(document.company or document.client_name)),
        ("Type of Case", not_specified(document.type_of_case)),
        ("Taluka Category", not_specified(document.category)),
        ("Project Cost", not_specified(document.project_cost)),
        ("Industry", not_specified(document.industries_type)),
        ("Term Loan Amount", not_specified(document.term_loan_amount)),
        ("Power Connection", not_specified(document.power_connection)),
        ("KVA", not_specified(document.kva)),
    )


def subject_for(
    document: MandateDocumentInput,
    catalog: SchemeCatalog,
    content: EditableContent | None = None,
) -> str:
    if content is not None and content.subject_line and content.subject_line.strip():
        return content.subject_line.strip()
    return format_subject_line(document.schemes, catalog, document.policy)


def _header(consultant: ConsultantInfo, subject: str, today: date) -> Section:
    return Section(
        "header",
        (
            TextLine(consultant.name, bold=True, size=HEADING_SIZE),
            TextLine(consultant.address),
            TextLine(f"Email: {consultant.email}"),
            TextLine(f"Phone: {consultant.phone}"),
            SpacerBlock(),
            TextLine(f"Date: {format_document_date(today)}", align="right"),
            SpacerBlock(),
            ParagraphBlock(f"Subject: {subject}", bold=True),
        ),
    )


def _client(document: MandateDocumentInput) -> Section:
    blocks: list[Any] = [
        SpacerBlock(),
        TextLine("To,", bold=True),
        TextLine(document.client_name, bold=True),
        TextLine(document.company),
    ]
    if document.address:
        blocks.append(TextLine(document.address))
    blocks.extend(
        [
            SpacerBlock(),
            TextLine("Dear Sir,"),
            ParagraphBlock(
                "With reference to above said subject & as per discussion with "
                f"Mr {document.client_name} sir hereby we are sending our commercial "
                "offer and scope of work."
            ),
        ]
    )
    return Section("client", tuple(blocks))


def _commercial_offer(document: MandateDocumentInput) -> Section:
    table = TableBlock(
        columns=(TableColumn("Particular", 0.35), TableColumn("Details", 0.65)),
        rows=commercial_offer_rows(document),
        show_header=False,
        bold_first_column=True,
    )
    return Section("commercial offer", (HeadingBlock("COMMERCIAL OFFER"), table))


def _benefits(document: MandateDocumentInput, catalog: SchemeCatalog) -> Section:
    blocks: list[Any] = [HeadingBlock("PROPOSED BENEFITS")]
    if not document.schemes:
        blocks.append(TextLine(NO_SCHEMES_SELECTED))
    for title, bullets in benefit_lines(document.schemes, catalog):
        blocks.append(BenefitBlock(title, tuple(bullets)))
    return Section("proposed benefits", tuple(blocks))


def _listing(name: str, heading: str, items: Sequence[str]) -> Section:
    return Section(name, (HeadingBlock(heading), ListBlock(tuple(numbered(items)))))


def _fees(document: MandateDocumentInput, schedule: FeeSchedule) -> Section:
    blocks: list[Any] = [HeadingBlock("OUR FEES"), TextLine(FEES_INTRO)]
    if not document.schemes:
        blocks.append(TextLine(NO_SCHEMES_SELECTED))
        return Section("fees", tuple(blocks))
    blocks.append(
        TableBlock(
            columns=(
                TableColumn(FEE_TABLE_HEADER[0], 0.5),
                TableColumn(FEE_TABLE_HEADER[1], 0.25),
                TableColumn(FEE_TABLE_HEADER[2], 0.25, align="right"),
            ),
            rows=tuple(
                (f"{index}. {row.service}", row.structure, row.amount)
                for index, row in enumerate(schedule.rows, 1)
            ),
            total_row=("Total", "", schedule.total_display),
        )
    )
    return Section("fees", tuple(blocks))


def build_sections(
    document: MandateDocumentInput,
    consultant: ConsultantInfo,
    today: date,
    catalog: SchemeCatalog | None = None,
    content: EditableContent | None = None,
    fee_schedule: FeeSchedule | None = None,
) -> tuple[Section, ...]:
    catalog = resolve_catalog(catalog)
    content = content or EditableContent()
    schedule = fee_schedule if fee_schedule is not None else flat_average_schedule(document)

    return (
        _header(consultant, subject_for(document, catalog, content), today),
        _client(document),
        _commercial_offer(document),
        _benefits(document, catalog),
        _listing("work scope", "WORK SCOPE", content.work_scope or DEFAULT_WORK_SCOPE),
        _listing(
            "eligibility criteria",
            "ELIGIBILITY CRITERIA",
            content.eligibility_criteria or DEFAULT_ELIGIBILITY_CRITERIA,
        ),
        _fees(document, schedule),
        _listing(
            "terms and conditions",
            "TERMS & CONDITIONS",
            content.terms_and_conditions or DEFAULT_TERMS_AND_CONDITIONS,
        ),
        Section(
            "signature",
            (SpacerBlock(2), TextLine(SIGNATURE_LINE, bold=True, align="center")),
        ),
    )
