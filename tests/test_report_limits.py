"""Tests for report_limits.py — caller-side budgets."""

from pdf_composer import TextLine
from report_builder import ReportRequest, TableSection, TextSection
from report_limits import DEFAULTS, apply_budgets


def _big_request():
    return ReportRequest(
        title="T",
        stats=[{"label": str(i), "value": i} for i in range(12)],
        chart_series=[{"label": str(i), "value": i} for i in range(10)],
        text_sections=[
            TextSection("UNO", [TextLine(f"a{i}") for i in range(60)]),
            TextSection("DOS", [TextLine(f"b{i}") for i in range(15)]),
            TextSection("TRES", [TextLine(f"c{i}") for i in range(10)]),
        ],
        table=TableSection(["A"], [[i] for i in range(120)]),
    )


class TestApplyBudgets:
    def test_defaults(self):
        out = apply_budgets(_big_request())
        assert len(out.stats) == DEFAULTS["MAX_STATS"]
        assert len(out.chart_series) == DEFAULTS["MAX_CHART_BARS"]
        assert len(out.table.rows) == DEFAULTS["MAX_TABLE_ROWS"]
        assert out.table.rows[-1] == [49]
        assert sum(len(s.lines) for s in out.text_sections) == DEFAULTS["MAX_TEXT_LINES_TOTAL"]

    def test_text_trimmed_from_the_end(self):
        out = apply_budgets(_big_request())
        assert [s.title for s in out.text_sections] == ["UNO", "DOS", "TRES"]
        assert len(out.text_sections[0].lines) == 60
        assert len(out.text_sections[1].lines) == 15
        assert len(out.text_sections[2].lines) == 5

    def test_emptied_section_dropped(self):
        out = apply_budgets(_big_request(), {"MAX_TEXT_LINES_TOTAL": 60})
        assert [s.title for s in out.text_sections] == ["UNO"]

    def test_input_not_mutated(self):
        req = _big_request()
        apply_budgets(req, {"MAX_TABLE_ROWS": 1, "MAX_TEXT_LINES_TOTAL": 0})
        assert len(req.table.rows) == 120
        assert len(req.text_sections[0].lines) == 60

    def test_no_table(self):
        out = apply_budgets(ReportRequest(title="T"))
        assert out.table is None
        assert out.text_sections == []
