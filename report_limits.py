# report_limits.py
"""
Report-size budgets and light shaping before composing the PDF.

DEFAULTS limit table rows, chart bars, stat tiles and text lines so a report
stays a few pages long. Use `apply_budgets()` on a ReportRequest before calling
report_builder.compose_report(); the composer itself never truncates.

API
    from report_limits import DEFAULTS, apply_budgets

Budgets (override in report_config.json under "budgets", or pass as `caps=`):
- MAX_TABLE_ROWS: rows kept in the detail table
- MAX_CHART_BARS: bars kept in the bar chart (first N, in order)
- MAX_STATS: stat tiles kept (two rows of four)
- MAX_TEXT_LINES_TOTAL: lines across all text sections
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

from report_builder import ReportRequest, TextSection

DEFAULTS: Dict[str, int] = {
    "MAX_TABLE_ROWS": 50,
    "MAX_CHART_BARS": 7,
    "MAX_STATS": 8,
    "MAX_TEXT_LINES_TOTAL": 80,
}


def _cap_list(xs: list, n: int) -> list:
    return list(xs[: max(0, n)])


def _count_text_lines(sections: List[TextSection]) -> int:
    return sum(len(s.lines) for s in sections)


def apply_budgets(request: ReportRequest, caps: Optional[Dict[str, int]] = None) -> ReportRequest:
    """Return a trimmed copy of `request`; the input is left untouched."""
    caps = {**DEFAULTS, **(caps or {})}

    stats = _cap_list(request.stats, caps["MAX_STATS"])
    series = _cap_list(request.chart_series, caps["MAX_CHART_BARS"])

    table = request.table
    if table is not None:
        table = replace(table, rows=_cap_list(table.rows, caps["MAX_TABLE_ROWS"]))

    # Cap text lines: drop from the end of the last sections first
    sections = [replace(s, lines=list(s.lines)) for s in request.text_sections]
    excess = _count_text_lines(sections) - caps["MAX_TEXT_LINES_TOTAL"]
    for sec in reversed(sections):
        if excess <= 0:
            break
        drop = min(excess, len(sec.lines))
        sec.lines = sec.lines[: len(sec.lines) - drop]
        excess -= drop
    # a section trimmed down to its title alone is dropped
    sections = [s for s, orig in zip(sections, request.text_sections) if s.lines or not orig.lines]

    return replace(request, stats=stats, chart_series=series, table=table, text_sections=sections)
