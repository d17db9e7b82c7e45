"""Paginated PDF composer for mandate documents.

The composer walks the sections produced by :func:`mandates.document.build_sections`
and draws them with reportlab's canvas, keeping its own top-down cursor. Page
breaks are decided ahead of each block from a fixed per-line height estimate
rather than exact glyph metrics, which is enough because body sizes are fixed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from io import BytesIO
from typing import Any, Callable, Sequence

from PIL import Image as PilImage
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from .document import (
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
)
from .fees import FeeSchedule, flat_average_schedule
from .formatting import mandate_filename
from .schemes import SchemeCatalog, resolve_catalog

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 20 * mm
LINE_HEIGHT = 5 * mm
LIST_LINE_HEIGHT = 4.5 * mm
HEADING_HEIGHT = 8 * mm
ROW_HEIGHT = 7 * mm
CELL_PADDING = 2 * mm
BULLET_INDENT = 5 * mm
MIN_FONT_SIZE = 7

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"


class DocumentEnvironmentError(RuntimeError):
    """Raised when there is nowhere to hand the composed document to."""


class CompositionError(RuntimeError):
    """Raised when a mandate document cannot be rendered."""


@dataclass
class RenderCursor:
    """Vertical write position, measured from the top edge of the page."""

    margin: float = MARGIN
    page_width: float = PAGE_WIDTH
    page_height: float = PAGE_HEIGHT
    page_index: int = 0
    offset: float = field(init=False)

    def __post_init__(self) -> None:
        self.offset = self.margin

    @property
    def usable_height(self) -> float:
        return self.page_height - 2 * self.margin

    @property
    def usable_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def bottom_limit(self) -> float:
        return self.page_height - self.margin

    def fits(self, height: float) -> bool:
        return self.offset + height <= self.bottom_limit

    def advance(self, height: float) -> None:
        self.offset += height

    def next_page(self) -> None:
        self.page_index += 1
        self.offset = self.margin

    def baseline(self, line_height: float) -> float:
        """PDF y coordinate of the text baseline for a line starting at the cursor."""
        return self.page_height - self.offset - line_height * 0.75


@dataclass(frozen=True)
class RenderedLine:
    page: int
    text: str


@dataclass(frozen=True)
class ComposedDocument:
    content: bytes
    filename: str
    page_count: int
    lines: tuple[RenderedLine, ...]
    content_type: str = "application/pdf"

    def texts(self) -> list[str]:
        return [line.text for line in self.lines]


class MandateComposer:
    """Draws one mandate document. Create a new instance per document."""

    def __init__(self, title: str = "Mandate", author: str = ""):
        self.buffer = BytesIO()
        # invariant=1 pins the creation date and document id, so the same
        # input on the same day produces the same bytes.
        self.canvas = canvas.Canvas(self.buffer, pagesize=A4, invariant=1)
        self.canvas.setTitle(title)
        if author:
            self.canvas.setAuthor(author)
        self.cursor = RenderCursor()
        self.lines: list[RenderedLine] = []
        self._renderers: dict[type, Callable[[Any], None]] = {
            TextLine: self._write_text_line,
            ParagraphBlock: self._write_paragraph,
            HeadingBlock: self._write_heading,
            ListBlock: self._write_list,
            BenefitBlock: self._write_benefit,
            TableBlock: self._write_table,
            SpacerBlock: self._write_spacer,
        }

    @property
    def page_count(self) -> int:
        return self.cursor.page_index + 1

    def render(self, sections: Sequence[Section], logo_bytes: bytes | None = None) -> bytes:
        if logo_bytes:
            self._draw_logo(logo_bytes)
        for section in sections:
            try:
                for block in section.blocks:
                    self._renderers[type(block)](block)
            except Exception as exc:
                raise CompositionError(f"Failed to render the {section.name} section: {exc}") from exc
        self.canvas.save()
        return self.buffer.getvalue()

    # Primitives ---------------------------------------------------------------

    def ensure_space(self, height: float) -> bool:
        """Start a new page unless ``height`` fits below the cursor."""
        if self.cursor.fits(height):
            return False
        self.canvas.showPage()
        self.cursor.next_page()
        return True

    def _fit_size(self, text: str, font: str, size: float, max_width: float) -> float:
        while size > MIN_FONT_SIZE and self.canvas.stringWidth(text, font, size) > max_width:
            size -= 0.5
        return size

    def _draw_text(
        self,
        text: str,
        x: float,
        y: float,
        size: float,
        font: str = FONT,
        align: str = "left",
    ) -> None:
        self.canvas.setFont(font, size)
        self.canvas.setFillColor(colors.black)
        if align == "right":
            self.canvas.drawRightString(x, y, text)
        elif align == "center":
            self.canvas.drawCentredString(x, y, text)
        else:
            self.canvas.drawString(x, y, text)

    def _put_line(
        self,
        text: str,
        line_height: float,
        size: float,
        bold: bool = False,
        align: str = "left",
        indent: float = 0,
    ) -> None:
        self.ensure_space(line_height)
        font = FONT_BOLD if bold else FONT
        left = self.cursor.margin + indent
        right = self.cursor.page_width - self.cursor.margin
        size = self._fit_size(text, font, size, right - left)
        if align == "right":
            x = right
        elif align == "center":
            x = self.cursor.page_width / 2
        else:
            x = left
        self._draw_text(text, x, self.cursor.baseline(line_height), size, font, align)
        self.lines.append(RenderedLine(self.cursor.page_index, text))
        self.cursor.advance(line_height)

    # Block renderers -------------------------------------------------------------

    def _write_text_line(self, block: TextLine) -> None:
        self._put_line(block.text, LINE_HEIGHT, block.size, block.bold, block.align, block.indent)

    def _write_spacer(self, block: SpacerBlock) -> None:
        height = LINE_HEIGHT * block.lines
        if self.cursor.fits(height):
            self.cursor.advance(height)

    def _write_paragraph(self, block: ParagraphBlock) -> None:
        font = FONT_BOLD if block.bold else FONT
        wrapped = simpleSplit(block.text, font, block.size, self.cursor.usable_width) or [""]
        self.ensure_space(LINE_HEIGHT * min(len(wrapped), 2))
        for line in wrapped:
            self._put_line(line, LINE_HEIGHT, block.size, block.bold)

    def _write_heading(self, block: HeadingBlock) -> None:
        # Keep the heading on the same page as the first line under it.
        self.ensure_space(HEADING_HEIGHT + LINE_HEIGHT + ROW_HEIGHT)
        self.cursor.advance(HEADING_HEIGHT - LINE_HEIGHT)
        self._put_line(block.text, LINE_HEIGHT, block.size, bold=True)

    def _write_list(self, block: ListBlock) -> None:
        for item in block.items:
            self._put_line(item, LIST_LINE_HEIGHT, block.size)

    def _write_benefit(self, block: BenefitBlock) -> None:
        height = LINE_HEIGHT + LIST_LINE_HEIGHT * len(block.bullets)
        if height <= self.cursor.usable_height:
            self.ensure_space(height)
        self._put_line(block.title, LINE_HEIGHT, 10, bold=True)
        for bullet in block.bullets:
            self._put_line(bullet, LIST_LINE_HEIGHT, 9, indent=BULLET_INDENT)

    def _write_table(self, block: TableBlock) -> None:
        width = self.cursor.usable_width
        edges = [self.cursor.margin]
        for column in block.columns:
            edges.append(edges[-1] + column.width * width)

        def header_row() -> None:
            if block.show_header:
                self._table_row(block, edges, [column.title for column in block.columns], header=True)

        self.ensure_space(ROW_HEIGHT * (2 if block.show_header else 1))
        header_row()
        for row in block.rows:
            if self.ensure_space(ROW_HEIGHT):
                header_row()
            self._table_row(block, edges, list(row))
        if block.total_row is not None:
            if self.ensure_space(ROW_HEIGHT):
                header_row()
            self._table_row(block, edges, list(block.total_row), total=True)

    def _table_row(
        self,
        block: TableBlock,
        edges: list[float],
        cells: list[str],
        header: bool = False,
        total: bool = False,
    ) -> None:
        top = self.cursor.page_height - self.cursor.offset
        bottom = top - ROW_HEIGHT
        left, right = edges[0], edges[-1]

        self.canvas.saveState()
        if header:
            self.canvas.setFillColor(colors.HexColor("#f2f2f2"))
            self.canvas.rect(left, bottom, right - left, ROW_HEIGHT, fill=1, stroke=0)
        self.canvas.setStrokeColor(colors.grey)
        self.canvas.setLineWidth(0.5)
        self.canvas.line(left, top, right, top)
        self.canvas.line(left, bottom, right, bottom)
        for x in edges:
            self.canvas.line(x, top, x, bottom)
        self.canvas.restoreState()

        baseline = bottom + (ROW_HEIGHT - 9) / 2 + 1.5
        for index, (column, text) in enumerate(zip(block.columns, cells)):
            bold = header or total or (block.bold_first_column and index == 0)
            font = FONT_BOLD if bold else FONT
            cell_left, cell_right = edges[index], edges[index + 1]
            size = self._fit_size(text, font, 9, cell_right - cell_left - 2 * CELL_PADDING)
            if column.align == "right" and not header:
                self._draw_text(text, cell_right - CELL_PADDING, baseline, size, font, "right")
            else:
                self._draw_text(text, cell_left + CELL_PADDING, baseline, size, font)

        self.lines.append(RenderedLine(self.cursor.page_index, " | ".join(cells)))
        self.cursor.advance(ROW_HEIGHT)

    def _draw_logo(self, logo_bytes: bytes) -> None:
        max_width = 30 * mm
        max_height = 18 * mm
        try:
            with PilImage.open(BytesIO(logo_bytes)) as img:
                img = img.convert("RGBA")
                img.thumbnail((int(max_width), int(max_height)), PilImage.LANCZOS)
                logo_buffer = BytesIO()
                img.save(logo_buffer, format="PNG")
                logo_buffer.seek(0)
                width, height = img.width, img.height
        except Exception:
            logger.warning("Skipping unreadable consultant logo")
            return
        x = self.cursor.page_width - self.cursor.margin - width
        y = self.cursor.page_height - self.cursor.margin - height
        self.canvas.drawImage(ImageReader(logo_buffer), x, y, width=width, height=height, mask="auto")


def compose(
    document: MandateDocumentInput,
    consultant: ConsultantInfo,
    *,
    catalog: SchemeCatalog | None = None,
    content: EditableContent | None = None,
    today: date | None = None,
    fee_policy: Callable[[MandateDocumentInput], FeeSchedule] | None = None,
) -> ComposedDocument:
    """Render a mandate document to PDF bytes.

    Reads the current date only when ``today`` is not given. Any failure is
    reported as a single :class:`CompositionError`.
    """

    today = today or date.today()
    catalog = resolve_catalog(catalog)
    try:
        schedule = (fee_policy or flat_average_schedule)(document)
        sections = build_sections(document, consultant, today, catalog, content, schedule)
        filename = mandate_filename(document.client_name, today)
        composer = MandateComposer(title=f"Mandate - {document.company or document.client_name}", author=consultant.name)
        pdf_bytes = composer.render(sections, consultant.logo_bytes)
    except CompositionError:
        raise
    except Exception as exc:
        raise CompositionError(f"Mandate composition failed: {exc}") from exc

    logger.info("Composed mandate document %s (%d pages)", filename, composer.page_count)
    return ComposedDocument(
        content=pdf_bytes,
        filename=filename,
        page_count=composer.page_count,
        lines=tuple(composer.lines),
    )
