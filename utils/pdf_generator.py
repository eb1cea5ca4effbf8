"""PDF generation for snagging reports.

Layout runs first as a pure pass over a vertical cursor measured in millimetres
from the top of the page, producing a list of pages with draw operations. The
reportlab canvas only replays those operations, so page breaks and text can be
checked without parsing PDF output.
"""
from __future__ import annotations

import hashlib
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple, Union

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas
from werkzeug.utils import secure_filename

from models import Report, Snag
from utils.aggregator import count_snags

logger = logging.getLogger(__name__)

PAGE_WIDTH = 210.0
PAGE_HEIGHT = 297.0
MARGIN = 15.0

ROOM_HEADER_THRESHOLD = 40.0
SNAG_ENTRY_THRESHOLD = 30.0
ROOM_HEADING_ADVANCE = 8.0
SNAG_LINE_ADVANCE = 6.0
SNAG_ENTRY_GAP = 10.0
ROOM_GAP = 5.0
MARKER_RADIUS = 2.0
SNAG_TEXT_INDENT = 8.0
FOOTER_OFFSET = 8.0

RGB = Tuple[int, int, int]

BLACK: RGB = (0, 0, 0)
WHITE: RGB = (255, 255, 255)
NAVY: RGB = (0, 45, 98)
GOLD: RGB = (212, 184, 138)
ROOM_BLUE: RGB = (0, 61, 130)
META_GREY: RGB = (100, 100, 100)

PRIORITY_COLORS: dict[str, RGB] = {
    "critical": (220, 38, 38),
    "high": (245, 158, 11),
    "medium": (59, 130, 246),
    "low": (34, 197, 94),
}

REGULAR_FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"
NOT_SPECIFIED = "Not specified"
FILENAME_FALLBACK = "report"


class DocumentGenerationError(Exception):
    """Raised when a report PDF cannot be assembled."""


@dataclass(frozen=True)
class TextOp:
    x: float
    y: float
    text: str
    size: float = 10
    bold: bool = False
    color: RGB = BLACK


@dataclass(frozen=True)
class MarkerOp:
    x: float
    y: float
    radius: float
    color: RGB


@dataclass(frozen=True)
class BandOp:
    x: float
    y: float
    width: float
    height: float
    color: RGB


DrawOp = Union[TextOp, MarkerOp, BandOp]


@dataclass
class PageLayout:
    number: int
    ops: List[DrawOp] = field(default_factory=list)

    def texts(self) -> List[str]:
        return [op.text for op in self.ops if isinstance(op, TextOp)]


@dataclass
class DocumentLayout:
    filename: str
    pages: List[PageLayout] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def texts(self) -> List[str]:
        return [text for page in self.pages for text in page.texts()]


def report_filename(property_address: str) -> str:
    slug = re.sub(r"\s+", "-", property_address or "") or FILENAME_FALLBACK
    return f"snagging-report-{slug}.pdf"


def snag_summary_line(snag: Snag) -> str:
    return f"{snag.location or 'No location'}: {snag.description or 'No description'}"


def snag_meta_line(snag: Snag) -> str:
    return f"{snag.priority.upper()} | {snag.status.replace('-', ' ').upper()}"


class _LayoutCursor:
    def __init__(self, layout: DocumentLayout):
        self.layout = layout
        self.page = self._append_page()
        self.y = 0.0

    def _append_page(self) -> PageLayout:
        page = PageLayout(number=len(self.layout.pages) + 1)
        self.layout.pages.append(page)
        return page

    def new_page(self) -> None:
        self.page = self._append_page()
        self.y = MARGIN

    def ensure_space(self, threshold: float) -> None:
        if PAGE_HEIGHT - self.y < threshold:
            self.new_page()

    def draw(self, op: DrawOp) -> None:
        self.page.ops.append(op)

    def text(self, text: str, advance: float, x: float = MARGIN, **style) -> None:
        self.draw(TextOp(x=x, y=self.y, text=text, **style))
        self.y += advance


def _cover(cursor: _LayoutCursor, report: Report) -> None:
    cursor.draw(BandOp(x=0, y=0, width=PAGE_WIDTH, height=60, color=NAVY))
    cursor.draw(TextOp(x=MARGIN, y=35, text="Snagging List Report", size=24, color=WHITE))
    cursor.draw(TextOp(x=MARGIN, y=45, text="Professional New Build Defects Report", size=12, color=GOLD))

    cursor.y = 80
    cursor.text("Property Details", 10, size=12, bold=True)
    details = [
        ("Address", report.property_address),
        ("Plot Number", report.plot_number),
        ("Client", report.client_name),
        ("Developer", report.developer_name),
    ]
    for label, value in details:
        cursor.text(f"{label}: {value or NOT_SPECIFIED}", 8, size=12)
    cursor.text(f"Inspection Date: {report.inspection_date or NOT_SPECIFIED}", 15, size=12)

    counts = count_snags(report)
    cursor.text("Summary", 10, size=12, bold=True)
    cursor.text(f"Total Snags: {counts.total}", 8, size=12)
    cursor.text(f"Open Snags: {counts.open}", 8, size=12)
    cursor.text(f"Critical Items: {counts.critical}", 15, size=12)


def _snag_entry(cursor: _LayoutCursor, snag: Snag) -> None:
    cursor.ensure_space(SNAG_ENTRY_THRESHOLD)
    cursor.draw(
        MarkerOp(
            x=MARGIN + MARKER_RADIUS,
            y=cursor.y - 1,
            radius=MARKER_RADIUS,
            color=PRIORITY_COLORS[snag.priority],
        )
    )
    cursor.text(snag_summary_line(snag), SNAG_LINE_ADVANCE, x=MARGIN + SNAG_TEXT_INDENT)
    cursor.text(snag_meta_line(snag), SNAG_ENTRY_GAP, x=MARGIN + SNAG_TEXT_INDENT, color=META_GREY)


def layout_report(report: Report) -> DocumentLayout:
    layout = DocumentLayout(filename=report_filename(report.property_address))
    cursor = _LayoutCursor(layout)
    _cover(cursor, report)

    for room in report.rooms:
        if not room.snags:
            continue
        cursor.ensure_space(ROOM_HEADER_THRESHOLD)
        cursor.text(room.name, ROOM_HEADING_ADVANCE, size=14, bold=True, color=ROOM_BLUE)
        for snag in room.snags:
            _snag_entry(cursor, snag)
        cursor.y += ROOM_GAP

    return layout


def _rgb(value: RGB) -> colors.Color:
    return colors.Color(value[0] / 255, value[1] / 255, value[2] / 255)


def _fit(text: str, font: str, size: float, max_width: float) -> str:
    if stringWidth(text, font, size) <= max_width:
        return text
    ellipsis = "..."
    while text and stringWidth(text + ellipsis, font, size) > max_width:
        text = text[:-1]
    return text + ellipsis


def _draw_page(c: canvas.Canvas, page: PageLayout, total_pages: int) -> None:
    height = PAGE_HEIGHT * mm
    for op in page.ops:
        if isinstance(op, BandOp):
            c.setFillColor(_rgb(op.color))
            c.rect(op.x * mm, height - (op.y + op.height) * mm, op.width * mm, op.height * mm, stroke=0, fill=1)
        elif isinstance(op, MarkerOp):
            c.setFillColor(_rgb(op.color))
            c.circle(op.x * mm, height - op.y * mm, op.radius * mm, stroke=0, fill=1)
        else:
            font = BOLD_FONT if op.bold else REGULAR_FONT
            available = (PAGE_WIDTH - MARGIN - op.x) * mm
            c.setFont(font, op.size)
            c.setFillColor(_rgb(op.color))
            c.drawString(op.x * mm, height - op.y * mm, _fit(op.text, font, op.size, available))

    c.setFont(REGULAR_FONT, 8)
    c.setFillColor(colors.grey)
    c.drawRightString(
        (PAGE_WIDTH - MARGIN) * mm,
        FOOTER_OFFSET * mm,
        f"Page {page.number} of {total_pages}",
    )


def render_pdf(layout: DocumentLayout, title: str = "Snagging List Report") -> bytes:
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(title)
    for page in layout.pages:
        _draw_page(c, page, layout.page_count)
        c.showPage()
    c.save()
    return buffer.getvalue()


def generate_report_pdf(report: Report) -> Tuple[str, bytes]:
    """Lay out and render a report, returning the download filename and PDF bytes."""
    try:
        layout = layout_report(report)
        pdf_bytes = render_pdf(layout, title=f"Snagging List Report - {report.property_address or NOT_SPECIFIED}")
    except Exception as exc:
        logger.exception("PDF generation failed for report %s", report.id)
        raise DocumentGenerationError(f"Unable to generate PDF for report {report.id}") from exc
    logger.info("Generated PDF for report %s (%d pages)", report.id, layout.page_count)
    return layout.filename, pdf_bytes


def save_report_pdf(report: Report, output_dir: str) -> Tuple[str, str]:
    """Write the report PDF into output_dir and return its path and sha256 checksum."""
    filename, pdf_bytes = generate_report_pdf(report)
    path = Path(output_dir) / (secure_filename(filename) or report_filename(""))
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(pdf_bytes)
    except OSError as exc:
        raise DocumentGenerationError(f"Unable to write {path}") from exc
    checksum = hashlib.sha256(pdf_bytes).hexdigest()
    return str(path), checksum
