# ------------------------------------------------------------------------------
# report_builder.py — ReportRequest contract + fixed section sequence
#
# Public API:
#   - ReportRequest / TextSection / TableSection
#   - validate_request(request) -> None
#   - compose_report(request, generated_at=None, institution=..., system_name=...) -> Document
#   - build_report_pdf(request, output_path, generated_at=None, ...) -> Path
#
# Section order is fixed: header -> stats -> chart -> text sections ->
# (page break, title, detail table) -> footers on every page.
# The request is rendered as given: truncation/formatting belongs to the caller
# (see report_limits.apply_budgets and fleet_reports).
# ------------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import logging
import math

from pdf_composer import (
    BRAND,
    INSTITUTION,
    SYSTEM_NAME,
    CompositionError,
    Document,
    TextLine,
    add_bar_chart,
    add_header,
    add_page_break,
    add_page_footers,
    add_section_title,
    add_stats_section,
    add_table,
    add_text_section,
    create_document,
    finalize,
    validate_table,
)

logger = logging.getLogger("FleetReports.ReportBuilder")


@dataclass
class TextSection:
    title: Optional[str]
    lines: List[TextLine] = field(default_factory=list)
    color: str = BRAND


@dataclass
class TableSection:
    headers: List[str]
    rows: List[List[Any]]
    title: Optional[str] = None
    row_height: float = 25
    column_width: Optional[float] = None
    column_widths: Optional[List[float]] = None
    new_page: bool = True


@dataclass
class ReportRequest:
    title: str
    subtitle: Optional[str] = None
    stats: List[Dict[str, Any]] = field(default_factory=list)
    chart_title: str = "DISTRIBUCION"
    chart_series: List[Dict[str, Any]] = field(default_factory=list)
    text_sections: List[TextSection] = field(default_factory=list)
    table: Optional[TableSection] = None
    filename: str = "reporte.pdf"


def validate_request(request: ReportRequest) -> None:
    """Fail fast on malformed input, before any drawing happens."""
    if not request.title:
        raise CompositionError("report needs a title")
    for i, s in enumerate(request.stats):
        if "label" not in s or "value" not in s:
            raise CompositionError(f"stat {i} needs both 'label' and 'value'")
    for i, p in enumerate(request.chart_series):
        try:
            value = float(p["value"])
        except (KeyError, TypeError, ValueError) as e:
            raise CompositionError(f"chart item {i} needs a numeric 'value'") from e
        if not math.isfinite(value):
            raise CompositionError(f"chart item {i} has a non-finite value: {p['value']!r}")
    t = request.table
    if t is not None:
        validate_table(t.headers, t.rows, t.column_widths)


def compose_report(
    request: ReportRequest,
    generated_at: Optional[datetime] = None,
    institution: str = INSTITUTION,
    system_name: str = SYSTEM_NAME,
) -> Document:
    validate_request(request)
    when = generated_at or datetime.now()

    doc = create_document()
    add_header(doc, request.title, request.subtitle, generated_at=when,
               institution=institution, system_name=system_name)
    add_stats_section(doc, request.stats)
    if request.chart_series:
        add_bar_chart(doc, request.chart_title, request.chart_series)
    for sec in request.text_sections:
        add_text_section(doc, sec.title, sec.lines, color=sec.color)

    t = request.table
    if t is not None:
        if t.new_page:
            add_page_break(doc)
        if t.title:
            add_section_title(doc, t.title)
        if t.rows:
            add_table(doc, t.headers, t.rows, row_height=t.row_height,
                      column_width=t.column_width, column_widths=t.column_widths)

    add_page_footers(doc, year=when.year, system_name=system_name)
    logger.debug("Composed %r: %d pages", request.title, len(doc.pages))
    return doc


def build_report_pdf(
    request: ReportRequest,
    output_path: Union[str, Path],
    generated_at: Optional[datetime] = None,
    institution: str = INSTITUTION,
    system_name: str = SYSTEM_NAME,
) -> Path:
    """Compose `request` and write it to `output_path`. Atomic write."""
    doc = compose_report(request, generated_at=generated_at,
                         institution=institution, system_name=system_name)
    return finalize(doc, output_path, title=request.title)
