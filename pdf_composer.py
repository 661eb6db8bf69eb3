# ------------------------------------------------------------------------------
# pdf_composer.py — Coordinate-based report composer for the fleet reports
#
# Public API:
#   - create_document() -> Document
#   - add_header(doc, title, subtitle=None, generated_at=None, ...) -> float
#   - add_stats_section(doc, stats, title="RESUMEN EJECUTIVO") -> float
#   - add_bar_chart(doc, title, series, width=500, height=180, start_x=None) -> float
#   - add_text_section(doc, title, lines, color=BRAND) -> float
#   - add_section_title(doc, text, size=14) / add_page_break(doc)
#   - add_table(doc, headers, rows, start_x=None, start_y=None, row_height=25,
#               column_width=None, column_widths=None) -> float
#   - add_footer(doc, page_number, total_pages=None, year=None) / add_page_footers(doc, year=None)
#   - render_pdf(doc, title=None) -> bytes
#   - finalize(doc, path) -> Path         (atomic write)
#   - iter_pdf_chunks(data, chunk_size) / write_pdf(doc, stream, chunk_size)
#   - attachment_headers(filename) -> dict
#
# Notes:
#   * Layout coordinates are points with the origin at the TOP-LEFT of the page
#     and y growing downwards. The serializer flips into PDF space.
#   * Drawing calls never touch ReportLab directly: each one appends immutable
#     Rect/Line/Text items to the current Page, and render_pdf() paints them.
#   * Every add_* takes the Document, moves doc.cursor_y and returns it.
#     Each move is recorded in doc.cursor_trace.
#   * Stat and chart items are plain mappings: {"label": str, "value": ...}.
# ------------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import io
import logging
import math
import shutil

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from formatting import format_long_datetime

logger = logging.getLogger("FleetReports.PDFComposer")


# ----------------------------- helpers: layout --------------------------------
PAGE_W, PAGE_H = letter  # (612 x 792 pt)
MARGIN = 50

HEADER_BAND_H = 130
HEADER_CURSOR_Y = 140
TABLE_BOTTOM_RESERVE = 100  # rows stop at PAGE_H - 100, footers live below

STAT_COLUMNS = 4
STAT_BOX_W = 120
STAT_BOX_H = 60
STAT_SPACING = 15

CHART_W = 500
CHART_H = 180
CHART_MAX_BAR_W = 80
CHART_BAR_GAP = 10
CHART_GRIDLINES = 5
CHART_TRAILING_GAP = 35

TABLE_ROW_H = 25
CELL_INSET = 5
CELL_PADDING = 16  # 8pt above + 8pt below the wrapped text
TABLE_TRAILING_GAP = 10

LEADING = 1.2  # line height as a multiple of font size

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

BRAND = "#1a5490"
ALERT = "#e74c3c"
TEXT_COLOR = "#000000"
WHITE = "#ffffff"
MUTED = "#666666"
STAT_STROKE = "#34495e"
TABLE_HEADER_FILL = "#3498db"
TABLE_HEADER_STROKE = "#2c3e50"
TABLE_BORDER = "#bdc3c7"
ZEBRA = ("#ecf0f1", "#ffffff")
GRIDLINE = "#e0e0e0"
BAR_STROKE = "#2c3e50"
SHADOW = "#000000"
SHADOW_ALPHA = 0x20 / 255.0

STAT_PALETTE = ("#3498db", "#2ecc71", "#e74c3c", "#f39c12", "#9b59b6", "#1abc9c")
CHART_PALETTE = STAT_PALETTE + ("#34495e",)

INSTITUTION = "UNIVERSIDAD MAYOR DE SAN ANDRÉS"
SYSTEM_NAME = "Sistema de la Unidad de Transporte - UMSA"


# --------------------------------- errors -------------------------------------
class ComposerError(Exception):
    """Base class for everything the composer raises."""


class CompositionError(ComposerError, ValueError):
    """Malformed drawing input. Raised before anything is drawn."""


class DocumentWriteError(ComposerError, OSError):
    """The finished document could not be written to its destination."""


# ------------------------------ drawing items ---------------------------------
@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float
    fill: Optional[str] = None
    stroke: Optional[str] = None
    fill_alpha: float = 1.0


@dataclass(frozen=True)
class Line:
    x1: float
    y1: float
    x2: float
    y2: float
    color: str = TEXT_COLOR
    width: float = 1.0


@dataclass(frozen=True)
class Text:
    x: float
    y: float  # top of the first line
    text: str
    font: str = FONT
    size: float = 10
    color: str = TEXT_COLOR
    width: Optional[float] = None  # wrap + align inside this width when set
    align: str = "left"


Item = Union[Rect, Line, Text]


@dataclass(frozen=True)
class Margins:
    top: float = MARGIN
    bottom: float = MARGIN
    left: float = MARGIN
    right: float = MARGIN


@dataclass
class Page:
    number: int
    items: List[Item] = field(default_factory=list)

    def texts(self) -> List[str]:
        return [it.text for it in self.items if isinstance(it, Text)]


@dataclass
class Document:
    width: float = PAGE_W
    height: float = PAGE_H
    margins: Margins = field(default_factory=Margins)
    pages: List[Page] = field(default_factory=list)
    cursor_y: float = MARGIN
    cursor_trace: List[float] = field(default_factory=list)

    @property
    def page(self) -> Page:
        return self.pages[-1]

    @property
    def content_width(self) -> float:
        return self.width - self.margins.left - self.margins.right

    @property
    def bottom_limit(self) -> float:
        return self.height - self.margins.bottom

    def draw(self, item: Item) -> None:
        self.page.items.append(item)

    def move_to(self, y: float) -> float:
        self.cursor_y = y
        self.cursor_trace.append(y)
        return y

    def new_page(self) -> Page:
        page = Page(number=len(self.pages) + 1)
        self.pages.append(page)
        self.move_to(self.margins.top)
        logger.debug("Started page %d", page.number)
        return page

    def ensure_space(self, needed: float) -> float:
        """Start a new page when `needed` points do not fit above the bottom margin."""
        if self.cursor_y + needed <= self.bottom_limit:
            return self.cursor_y
        at_top = self.cursor_y <= self.margins.top
        if not at_top:
            self.new_page()
        if self.cursor_y + needed > self.bottom_limit:
            logger.warning("Block of %.1fpt is taller than a page; drawing it anyway", needed)
        return self.cursor_y


# ----------------------------- text measurement -------------------------------
def line_height(size: float) -> float:
    return size * LEADING


def wrap_text(text: Any, width: Optional[float], font: str = FONT, size: float = 9) -> List[str]:
    s = "" if text is None else str(text)
    paragraphs = s.split("\n")
    if not width or width <= 0:
        return paragraphs
    lines: List[str] = []
    for para in paragraphs:
        lines.extend(simpleSplit(para, font, size, width) or [""])
    return lines


def text_height(text: Any, width: Optional[float], font: str = FONT, size: float = 9) -> float:
    """Height of `text` wrapped into `width`. Empty text takes no space."""
    if text is None or str(text) == "":
        return 0.0
    return len(wrap_text(text, width, font, size)) * line_height(size)


def _fmt_value(v: Any) -> str:
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


# -------------------------------- document ------------------------------------
def create_document(width: float = PAGE_W, height: float = PAGE_H, margins: Optional[Margins] = None) -> Document:
    doc = Document(width=width, height=height, margins=margins or Margins())
    doc.new_page()
    return doc


def add_page_break(doc: Document) -> float:
    doc.new_page()
    return doc.cursor_y


def add_header(
    doc: Document,
    title: str,
    subtitle: Optional[str] = None,
    generated_at: Optional[datetime] = None,
    institution: str = INSTITUTION,
    system_name: str = SYSTEM_NAME,
    date_formatter: Callable[[datetime], str] = format_long_datetime,
) -> float:
    if len(doc.pages) != 1 or doc.page.items:
        raise CompositionError("header must be the first thing drawn on the first page")

    inner_w = doc.width - doc.margins.left - doc.margins.right
    x = doc.margins.left
    doc.draw(Rect(0, 0, doc.width, HEADER_BAND_H, fill=BRAND))

    y = 30.0
    for text, font, size, gap in (
        (institution, FONT_BOLD, 22, 0.0),
        (system_name, FONT_BOLD, 14, 0.5),
        (title, FONT_BOLD, 16, 0.3),
    ):
        doc.draw(Text(x, y, text, font, size, WHITE, inner_w, "center"))
        y += text_height(text, inner_w, font, size) + gap * line_height(size)
    if subtitle:
        doc.draw(Text(x, y, subtitle, FONT, 11, WHITE, inner_w, "center"))

    y = doc.move_to(HEADER_CURSOR_Y)
    stamp = date_formatter(generated_at or datetime.now())
    doc.draw(Text(x, y, f"Fecha de generacion: {stamp}", FONT, 9, TEXT_COLOR))
    return doc.move_to(y + 2 * line_height(9))


def add_section_title(doc: Document, text: str, size: float = 14, color: str = BRAND) -> float:
    doc.ensure_space(2 * line_height(size))
    doc.draw(Text(doc.margins.left, doc.cursor_y, text, FONT_BOLD, size, color))
    return doc.move_to(doc.cursor_y + 2 * line_height(size))


# --------------------------------- stats --------------------------------------
def stat_box_origin(index: int, start_x: float, start_y: float) -> Tuple[float, float]:
    row, col = divmod(index, STAT_COLUMNS)
    return (start_x + col * (STAT_BOX_W + STAT_SPACING),
            start_y + row * (STAT_BOX_H + STAT_SPACING))


def stats_grid_height(count: int) -> float:
    if count <= 0:
        return 0.0
    rows = math.ceil(count / STAT_COLUMNS)
    return rows * STAT_BOX_H + (rows - 1) * STAT_SPACING


def add_stats_section(doc: Document, stats: Sequence[Mapping[str, Any]], title: Optional[str] = "RESUMEN EJECUTIVO") -> float:
    for i, stat in enumerate(stats):
        if "label" not in stat or "value" not in stat:
            raise CompositionError(f"stat {i} needs both 'label' and 'value'")
    if not stats:
        return doc.cursor_y

    title_h = 1.8 * line_height(14) if title else 0.0
    doc.ensure_space(title_h + stats_grid_height(len(stats)) + STAT_SPACING)

    if title:
        doc.draw(Text(doc.margins.left, doc.cursor_y, title, FONT_BOLD, 14, BRAND))
    top = doc.cursor_y + title_h

    for i, stat in enumerate(stats):
        x, y = stat_box_origin(i, doc.margins.left, top)
        doc.draw(Rect(x, y, STAT_BOX_W, STAT_BOX_H, fill=STAT_PALETTE[i % len(STAT_PALETTE)], stroke=STAT_STROKE))
        doc.draw(Text(x + 5, y + 10, str(stat["value"]), FONT_BOLD, 18, WHITE, STAT_BOX_W - 10, "center"))
        doc.draw(Text(x + 5, y + 35, str(stat["label"]), FONT, 8, WHITE, STAT_BOX_W - 10, "center"))

    return doc.move_to(top + stats_grid_height(len(stats)) + STAT_SPACING)


# -------------------------------- bar chart -----------------------------------
def chart_max(values: Sequence[float]) -> float:
    return max(max(values, default=0), 1)


def bar_heights(values: Sequence[float], chart_height: float = CHART_H) -> List[float]:
    top = chart_max(values)
    return [(v / top) * chart_height for v in values]


def gridline_values(max_value: float, steps: int = CHART_GRIDLINES) -> List[int]:
    """Labels for gridlines 0..steps, top to bottom."""
    return [_round_half_up(max_value * (steps - i) / steps) for i in range(steps + 1)]


def add_bar_chart(
    doc: Document,
    title: str,
    series: Sequence[Mapping[str, Any]],
    width: float = CHART_W,
    height: float = CHART_H,
    start_x: Optional[float] = None,
) -> float:
    values: List[float] = []
    for i, item in enumerate(series):
        try:
            values.append(float(item["value"]))
        except (KeyError, TypeError, ValueError) as e:
            raise CompositionError(f"chart item {i} needs a numeric 'value'") from e
        if not math.isfinite(values[-1]):
            raise CompositionError(f"chart item {i} has a non-finite value: {item['value']!r}")
    if not series:
        return doc.cursor_y

    title_h = 1.8 * line_height(13)
    doc.ensure_space(title_h + height + CHART_TRAILING_GAP)

    x0 = doc.margins.left if start_x is None else start_x
    doc.draw(Text(x0, doc.cursor_y, title, FONT_BOLD, 13, BRAND))
    top = doc.cursor_y + title_h

    max_value = chart_max(values)
    for i, label in enumerate(gridline_values(max_value)):
        gy = top + (height / CHART_GRIDLINES) * i
        doc.draw(Line(x0, gy, x0 + width, gy, GRIDLINE))
        doc.draw(Text(x0 - 30, gy - 3, str(label), FONT, 7, MUTED))

    bar_w = min(width / len(series), CHART_MAX_BAR_W)
    inner_w = max(bar_w - 14, 0)
    for i, (item, bh) in enumerate(zip(series, bar_heights(values, height))):
        x = x0 + i * bar_w + i * CHART_BAR_GAP
        y = top + height - bh
        doc.draw(Rect(x + 7, y + 2, inner_w, bh, fill=SHADOW, fill_alpha=SHADOW_ALPHA))
        doc.draw(Rect(x + 5, y, inner_w, bh, fill=CHART_PALETTE[i % len(CHART_PALETTE)], stroke=BAR_STROKE))
        doc.draw(Text(x, y - 18, _fmt_value(item["value"]), FONT_BOLD, 9, TEXT_COLOR, bar_w, "center"))
        doc.draw(Text(x, top + height + 8, str(item.get("label", "")), FONT, 8, TEXT_COLOR, bar_w, "center"))

    return doc.move_to(top + height + CHART_TRAILING_GAP)


# ------------------------------- text section ---------------------------------
@dataclass(frozen=True)
class TextLine:
    text: str
    size: float = 10
    bold: bool = False
    color: str = TEXT_COLOR
    indent: float = 70


def add_text_section(doc: Document, title: Optional[str], lines: Sequence[TextLine], color: str = BRAND) -> float:
    """Section title plus wrapped lines; breaks pages line by line."""
    if not title and not lines:
        return doc.cursor_y

    def _wrapped(ln: TextLine) -> List[str]:
        font = FONT_BOLD if ln.bold else FONT
        return wrap_text(ln.text, doc.width - doc.margins.right - ln.indent, font, ln.size)

    title_h = 1.5 * line_height(13) if title else 0.0
    first_h = line_height(lines[0].size) if lines else 0.0
    doc.ensure_space(title_h + first_h)
    if title:
        doc.draw(Text(doc.margins.left, doc.cursor_y, title, FONT_BOLD, 13, color))
        doc.move_to(doc.cursor_y + title_h)

    for ln in lines:
        font = FONT_BOLD if ln.bold else FONT
        lh = line_height(ln.size)
        for part in _wrapped(ln):
            doc.ensure_space(lh)
            doc.draw(Text(ln.indent, doc.cursor_y, part, font, ln.size, ln.color))
            doc.move_to(doc.cursor_y + lh)
        # moveDown(0.3) between entries
        doc.move_to(min(doc.cursor_y + 0.3 * lh, doc.bottom_limit))

    tail = line_height(lines[-1].size) if lines else 0.0
    return doc.move_to(min(doc.cursor_y + tail, doc.bottom_limit))


# ---------------------------------- table -------------------------------------
def resolve_column_widths(
    count: int,
    content_width: float,
    column_width: Optional[float] = None,
    column_widths: Optional[Sequence[float]] = None,
) -> List[float]:
    if column_widths is not None:
        widths = [float(w) for w in column_widths]
        if len(widths) != count:
            raise CompositionError(f"got {len(widths)} column widths for {count} columns")
    else:
        widths = [float(column_width or content_width / count)] * count
    if any(w <= 0 for w in widths):
        raise CompositionError("column widths must be positive")
    return widths


def compute_row_height(row: Sequence[Any], widths: Sequence[float], base: float = TABLE_ROW_H, size: float = 9) -> float:
    """Rows grow to fit their tallest wrapped cell, never below `base`."""
    tallest = max((text_height(cell, w - 2 * CELL_INSET, FONT, size) for cell, w in zip(row, widths)), default=0.0)
    return max(base, tallest + CELL_PADDING)


def validate_table(headers: Sequence[Any], rows: Sequence[Sequence[Any]], column_widths: Optional[Sequence[float]] = None) -> None:
    if not headers:
        raise CompositionError("a table needs at least one header")
    n = len(headers)
    if column_widths is not None and len(column_widths) != n:
        raise CompositionError(f"got {len(column_widths)} column widths for {n} columns")
    for i, row in enumerate(rows):
        if len(row) != n:
            raise CompositionError(f"row {i} has {len(row)} cells, expected {n}")


def add_table(
    doc: Document,
    headers: Sequence[Any],
    rows: Sequence[Sequence[Any]],
    start_x: Optional[float] = None,
    start_y: Optional[float] = None,
    row_height: float = TABLE_ROW_H,
    column_width: Optional[float] = None,
    column_widths: Optional[Sequence[float]] = None,
) -> float:
    validate_table(headers, rows, column_widths)
    widths = resolve_column_widths(len(headers), doc.content_width, column_width, column_widths)
    base_h = row_height
    heights = [compute_row_height(r, widths, base_h) for r in rows]
    limit = doc.height - TABLE_BOTTOM_RESERVE
    x0 = doc.margins.left if start_x is None else start_x

    def draw_header(y: float) -> float:
        x = x0
        for h, w in zip(headers, widths):
            doc.draw(Rect(x, y, w, base_h, fill=TABLE_HEADER_FILL, stroke=TABLE_HEADER_STROKE))
            doc.draw(Text(x + CELL_INSET, y + 8, str(h), FONT_BOLD, 9, WHITE, w - 2 * CELL_INSET))
            x += w
        return doc.move_to(y + base_h)

    def draw_row(cells: Sequence[Any], y: float, h: float, index: int) -> float:
        fill = ZEBRA[index % 2]
        x = x0
        for cell, w in zip(cells, widths):
            doc.draw(Rect(x, y, w, h, fill=fill, stroke=TABLE_BORDER))
            doc.draw(Text(x + CELL_INSET, y + 8, str(cell), FONT, 9, TEXT_COLOR, w - 2 * CELL_INSET))
            x += w
        return doc.move_to(y + h)

    y = doc.cursor_y if start_y is None else start_y
    # keep the header with the first row
    first_h = heights[0] if heights else 0.0
    if y + base_h + first_h > limit and y > doc.margins.top:
        doc.new_page()
        y = doc.cursor_y
    y = draw_header(y)

    rows_on_page = 0
    for index, (cells, h) in enumerate(zip(rows, heights)):
        if rows_on_page and y + h > limit:
            doc.new_page()
            y = draw_header(doc.cursor_y)
            rows_on_page = 0
        y = draw_row(cells, y, h, index)
        rows_on_page += 1

    return doc.move_to(y + TABLE_TRAILING_GAP)


# --------------------------------- footers ------------------------------------
def add_footer(doc: Document, page_number: int, total_pages: Optional[int] = None,
               year: Optional[int] = None, system_name: str = SYSTEM_NAME) -> None:
    """Paint the two footer lines on page `page_number` (1-based). Cursor untouched."""
    if not 1 <= page_number <= len(doc.pages):
        raise CompositionError(f"no page {page_number} (document has {len(doc.pages)})")
    page = doc.pages[page_number - 1]
    bottom = doc.height - doc.margins.bottom
    inner_w = doc.width - doc.margins.left - doc.margins.right
    label = f"Pagina {page_number}" + (f" de {total_pages}" if total_pages else "")
    year = year if year is not None else datetime.now().year
    page.items.append(Text(doc.margins.left, bottom, label, FONT, 9, MUTED, inner_w, "center"))
    page.items.append(Text(doc.margins.left, bottom + 12, f"{system_name} - {year}", FONT, 9, MUTED, inner_w, "center"))


def add_page_footers(doc: Document, year: Optional[int] = None, system_name: str = SYSTEM_NAME) -> None:
    total = len(doc.pages)
    for n in range(1, total + 1):
        add_footer(doc, n, total_pages=total, year=year, system_name=system_name)


# ------------------------------- serialization --------------------------------
def _paint(c: canvas.Canvas, item: Item, page_h: float) -> None:
    if isinstance(item, Rect):
        c.saveState()
        if item.fill:
            c.setFillColor(colors.HexColor(item.fill))
            if item.fill_alpha < 1.0:
                c.setFillAlpha(item.fill_alpha)
        if item.stroke:
            c.setStrokeColor(colors.HexColor(item.stroke))
        c.rect(item.x, page_h - item.y - item.h, item.w, item.h,
               stroke=1 if item.stroke else 0, fill=1 if item.fill else 0)
        c.restoreState()
    elif isinstance(item, Line):
        c.saveState()
        c.setStrokeColor(colors.HexColor(item.color))
        c.setLineWidth(item.width)
        c.line(item.x1, page_h - item.y1, item.x2, page_h - item.y2)
        c.restoreState()
    elif isinstance(item, Text):
        c.setFont(item.font, item.size)
        c.setFillColor(colors.HexColor(item.color))
        ascent = pdfmetrics.getAscent(item.font, item.size)
        lh = line_height(item.size)
        for i, ln in enumerate(wrap_text(item.text, item.width, item.font, item.size)):
            base = page_h - (item.y + ascent + i * lh)
            if item.width and item.align == "center":
                c.drawCentredString(item.x + item.width / 2, base, ln)
            elif item.width and item.align == "right":
                c.drawRightString(item.x + item.width, base, ln)
            else:
                c.drawString(item.x, base, ln)
    else:
        raise CompositionError(f"unknown drawing item {item!r}")


def render_pdf(doc: Document, title: Optional[str] = None) -> bytes:
    """Serialize the document. Same Document -> same bytes (invariant mode)."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(doc.width, doc.height), invariant=1)
    if title:
        c.setTitle(title)
    for page in doc.pages:
        for item in page.items:
            _paint(c, item, doc.height)
        c.showPage()
    c.save()
    return buf.getvalue()


def iter_pdf_chunks(data: bytes, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    view = memoryview(data)
    for i in range(0, len(data), max(1, chunk_size)):
        yield bytes(view[i:i + chunk_size])


def write_pdf(doc: Document, stream: BinaryIO, chunk_size: int = 64 * 1024, title: Optional[str] = None) -> int:
    """Write the rendered document to an open binary stream. Returns bytes written."""
    data = render_pdf(doc, title=title)
    try:
        for chunk in iter_pdf_chunks(data, chunk_size):
            stream.write(chunk)
        stream.flush()
    except OSError as e:
        raise DocumentWriteError(f"could not stream PDF: {e}") from e
    return len(data)


def finalize(doc: Document, path: Union[str, Path], title: Optional[str] = None) -> Path:
    """Render and write the document to `path`. Atomic write."""
    data = render_pdf(doc, title=title)
    out = Path(path).resolve()
    tmp_path = out.with_suffix(out.suffix + ".tmp")
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "wb") as fh:
            fh.write(data)
        shutil.move(str(tmp_path), str(out))
    except OSError as e:
        raise DocumentWriteError(f"could not write {out}: {e}") from e
    finally:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            logger.debug("Could not remove temp file %s", tmp_path)
    logger.info("Wrote %s (%d pages, %d bytes)", out, len(doc.pages), len(data))
    return out


def attachment_headers(filename: str) -> Dict[str, str]:
    name = filename if filename.lower().endswith(".pdf") else f"{filename}.pdf"
    return {
        "Content-Type": "application/pdf",
        "Content-Disposition": f'attachment; filename="{name}"',
    }
