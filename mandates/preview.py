from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from .document import (
    DEFAULT_ELIGIBILITY_CRITERIA,
    DEFAULT_TERMS_AND_CONDITIONS,
    DEFAULT_WORK_SCOPE,
    BenefitBlock,
    ConsultantInfo,
    EditableContent,
    HeadingBlock,
    ListBlock,
    MandateDocumentInput,
    ParagraphBlock,
    Section,
    SpacerBlock,
    TableBlock,
    TextLine,
    build_sections,
    subject_for,
)
from .fees import FeeSchedule
from .formatting import mandate_filename
from .schemes import SchemeCatalog, resolve_catalog


@dataclass(frozen=True)
class MandatePreview:
    sections: tuple[Section, ...]
    subject_line: str
    work_scope: tuple[str, ...]
    eligibility_criteria: tuple[str, ...]
    terms_and_conditions: tuple[str, ...]
    filename: str

    @property
    def text(self) -> str:
        return render_preview_text(self.sections)

    @property
    def text_filename(self) -> str:
        return self.filename.rsplit(".", 1)[0] + ".txt"


def build_preview(
    document: MandateDocumentInput,
    consultant: ConsultantInfo,
    catalog: SchemeCatalog | None = None,
    content: EditableContent | None = None,
    today: date | None = None,
    fee_schedule: FeeSchedule | None = None,
) -> MandatePreview:
    today = today or date.today()
    catalog = resolve_catalog(catalog)
    content = content or EditableContent()
    return MandatePreview(
        sections=build_sections(document, consultant, today, catalog, content, fee_schedule),
        subject_line=subject_for(document, catalog, content),
        work_scope=content.work_scope or DEFAULT_WORK_SCOPE,
        eligibility_criteria=content.eligibility_criteria or DEFAULT_ELIGIBILITY_CRITERIA,
        terms_and_conditions=content.terms_and_conditions or DEFAULT_TERMS_AND_CONDITIONS,
        filename=mandate_filename(document.client_name, today),
    )


def _table_lines(block: TableBlock) -> list[str]:
    lines = []
    if block.show_header:
        lines.append(" | ".join(column.title for column in block.columns))
    for row in block.rows:
        lines.append(" | ".join(row))
    if block.total_row is not None:
        lines.append(" | ".join(cell for cell in block.total_row if cell))
    return lines


def render_preview_text(sections: Sequence[Section]) -> str:
    """Plain-text rendering of the same blocks the PDF is drawn from."""
    lines: list[str] = []
    for section in sections:
        for block in section.blocks:
            if isinstance(block, (TextLine, ParagraphBlock)):
                lines.append(block.text)
            elif isinstance(block, HeadingBlock):
                lines.extend(["", block.text])
            elif isinstance(block, ListBlock):
                lines.extend(block.items)
            elif isinstance(block, BenefitBlock):
                lines.append(block.title)
                lines.extend(f"    {bullet}" for bullet in block.bullets)
            elif isinstance(block, TableBlock):
                lines.extend(_table_lines(block))
            elif isinstance(block, SpacerBlock):
                lines.append("")
    return "\n".join(lines).strip() + "\n"
