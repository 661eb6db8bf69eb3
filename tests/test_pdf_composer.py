"""Tests for pdf_composer.py — layout, pagination and serialization."""

import io

import pytest

from pdf_composer import (
    BRAND,
    CHART_H,
    CompositionError,
    DocumentWriteError,
    Rect,
    Text,
    TextLine,
    add_bar_chart,
    add_footer,
    add_header,
    add_page_footers,
    add_section_title,
    add_stats_section,
    add_table,
    add_text_section,
    attachment_headers,
    bar_heights,
    compute_row_height,
    create_document,
    finalize,
    gridline_values,
    iter_pdf_chunks,
    render_pdf,
    stat_box_origin,
    text_height,
    write_pdf,
)


def _rows_with(page, marker):
    return sum(1 for t in page.texts() if t == marker)


# =========================================================================
# header
# =========================================================================

class TestHeader:
    def test_band_and_cursor(self, now):
        doc = create_document()
        y = add_header(doc, "REPORTE DE FLOTA VEHICULAR", "Reporte General - 19/10/2026", generated_at=now)
        band = doc.page.items[0]
        assert isinstance(band, Rect)
        assert (band.x, band.y, band.w, band.h, band.fill) == (0, 0, doc.width, 130, BRAND)
        assert y == pytest.approx(140 + 2 * 10.8)
        assert doc.cursor_trace[-2] == 140

    def test_generation_stamp(self, now):
        doc = create_document()
        add_header(doc, "T", generated_at=now)
        assert "Fecha de generacion: 19 de octubre de 2026, 14:05" in doc.page.texts()

    def test_subtitle_optional(self, now):
        doc = create_document()
        add_header(doc, "T", generated_at=now)
        texts = doc.page.texts()
        assert "T" in texts
        assert len([t for t in texts if t.startswith("Fecha")]) == 1

    def test_header_must_come_first(self, now):
        doc = create_document()
        add_section_title(doc, "ANTES")
        with pytest.raises(CompositionError):
            add_header(doc, "T", generated_at=now)


# =========================================================================
# stats grid
# =========================================================================

class TestStats:
    def test_box_origin_wraps_after_four(self):
        assert stat_box_origin(0, 50, 200) == (50, 200)
        assert stat_box_origin(3, 50, 200) == (50 + 3 * 135, 200)
        assert stat_box_origin(5, 50, 200) == (50 + 135, 200 + 75)

    def test_grid_positions_and_cursor(self, now):
        doc = create_document()
        start = add_header(doc, "T", generated_at=now)
        stats = [{"label": f"S{i}", "value": i} for i in range(8)]
        end = add_stats_section(doc, stats)
        top = start + 1.8 * 16.8
        boxes = [it for it in doc.page.items if isinstance(it, Rect) and it.w == 120]
        assert len(boxes) == 8
        assert (boxes[5].x, boxes[5].y) == pytest.approx((185, top + 75))
        assert end == pytest.approx(top + 135 + 15)

    def test_missing_label_rejected_before_drawing(self):
        doc = create_document()
        before = len(doc.page.items)
        with pytest.raises(CompositionError):
            add_stats_section(doc, [{"label": "ok", "value": 1}, {"value": 2}])
        assert len(doc.page.items) == before

    def test_empty_stats_draw_nothing(self):
        doc = create_document()
        assert add_stats_section(doc, []) == doc.cursor_y
        assert doc.page.items == []


# =========================================================================
# bar chart
# =========================================================================

class TestBarChart:
    def test_gridline_labels(self):
        assert gridline_values(6) == [6, 5, 4, 2, 1, 0]

    def test_all_zero_series_uses_unit_max(self):
        assert bar_heights([0, 0]) == [0, 0]
        assert gridline_values(1) == [1, 1, 1, 0, 0, 0]

    def test_bar_heights_scale_to_max(self):
        assert bar_heights([3, 6, 2]) == pytest.approx([CHART_H / 2, CHART_H, CHART_H / 3])

    def test_bars_and_cursor(self):
        doc = create_document()
        series = [{"label": "DISPONIBLE", "value": 3}, {"label": "EN_USO", "value": 6}, {"label": "INACTIVO", "value": 2}]
        y0 = doc.cursor_y
        end = add_bar_chart(doc, "DISTRIBUCION POR ESTADO", series)
        top = y0 + 1.8 * 15.6
        bars = [it for it in doc.page.items if isinstance(it, Rect) and it.stroke]
        assert len(bars) == 3
        assert bars[1].x == pytest.approx(50 + 80 + 10 + 5)
        assert bars[1].h == pytest.approx(CHART_H)
        assert bars[1].y == pytest.approx(top)
        assert end == pytest.approx(top + CHART_H + 35)
        assert {"DISPONIBLE", "EN_USO", "INACTIVO", "6"} <= set(doc.page.texts())

    def test_non_numeric_value_rejected(self):
        doc = create_document()
        with pytest.raises(CompositionError):
            add_bar_chart(doc, "X", [{"label": "a", "value": "muchos"}])
        assert doc.page.items == []

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf"), "nan"])
    def test_non_finite_value_rejected(self, bad):
        doc = create_document()
        with pytest.raises(CompositionError):
            add_bar_chart(doc, "X", [{"label": "a", "value": 1}, {"label": "b", "value": bad}])
        assert doc.page.items == []
        assert doc.cursor_y == doc.margins.top

    def test_chart_moves_to_next_page_when_it_does_not_fit(self):
        doc = create_document()
        doc.move_to(600)
        add_bar_chart(doc, "X", [{"label": "a", "value": 1}])
        assert len(doc.pages) == 2
        assert doc.pages[0].items == []


# =========================================================================
# text sections
# =========================================================================

class TestTextSection:
    def test_lines_advance_cursor(self):
        doc = create_document()
        lines = [TextLine("uno"), TextLine("dos")]
        end = add_text_section(doc, "ANALISIS", lines)
        expected = 50 + 1.5 * 15.6 + 2 * (12 + 0.3 * 12) + 12
        assert end == pytest.approx(expected)
        assert doc.page.texts() == ["ANALISIS", "uno", "dos"]

    def test_title_never_orphaned(self):
        doc = create_document()
        doc.move_to(doc.bottom_limit - 20)
        add_text_section(doc, "ALERTAS", [TextLine("linea")])
        assert len(doc.pages) == 2
        assert doc.pages[1].texts()[0] == "ALERTAS"

    def test_long_section_breaks_between_lines(self):
        doc = create_document()
        lines = [TextLine(f"linea {i}") for i in range(60)]
        add_text_section(doc, "LARGA", lines)
        assert len(doc.pages) == 2
        for page in doc.pages:
            for it in page.items:
                assert it.y + 12 <= doc.bottom_limit + 1e-6


# =========================================================================
# table
# =========================================================================

class TestTable:
    def test_row_height_grows_with_wrapped_text(self):
        assert compute_row_height(["corto"], [100], base=25) == pytest.approx(26.8)
        tall = compute_row_height(["palabra " * 20], [100], base=25)
        assert tall == pytest.approx(text_height("palabra " * 20, 90) + 16)
        assert tall > 26.8

    def test_pagination_repeats_header(self):
        doc = create_document()
        doc.move_to(190)
        rows = [["x", "y"]] * 40
        end = add_table(doc, ["A", "B"], rows, row_height=30, column_width=100)
        assert len(doc.pages) == 3
        assert [_rows_with(p, "x") for p in doc.pages] == [15, 20, 5]
        assert all(_rows_with(p, "A") == 1 for p in doc.pages)
        header_p2 = [it for it in doc.pages[1].items if isinstance(it, Text) and it.text == "A"][0]
        assert header_p2.y == 50 + 8
        assert end == pytest.approx(50 + 30 + 5 * 30 + 10)

    def test_fixed_height_rows_from_mid_page(self):
        # empty cells keep the 22pt base height: 21 rows fit below y=190, then 28 a page
        doc = create_document()
        doc.move_to(190)
        add_table(doc, ["A"], [[""]] * 60, row_height=22)
        body = [[it for it in p.items if isinstance(it, Rect) and it.fill in ("#ecf0f1", "#ffffff")]
                for p in doc.pages]
        assert [len(b) for b in body] == [21, 28, 11]
        assert body[0][0].y == 212
        assert body[0][-1].y + 22 <= 692
        assert body[1][0].y == 50 + 22

    def test_oversized_row_gets_its_own_page(self):
        doc = create_document()
        huge = "palabra " * 2000
        add_table(doc, ["A"], [["x"], [huge], ["y"]])
        assert len(doc.pages) == 3
        assert doc.pages[0].texts() == ["A", "x"]
        assert doc.pages[1].texts() == ["A", huge]
        assert doc.pages[2].texts() == ["A", "y"]

    def test_rows_stay_above_bottom_reserve(self):
        doc = create_document()
        add_table(doc, ["A"], [["fila"]] * 80, row_height=25)
        for page in doc.pages:
            for it in page.items:
                if isinstance(it, Rect):
                    assert it.y + it.h <= doc.height - 100 + 1e-6

    def test_header_kept_with_first_row(self):
        doc = create_document()
        doc.move_to(650)
        add_table(doc, ["A"], [["x"]], row_height=30)
        assert doc.pages[0].items == []
        assert doc.pages[1].texts() == ["A", "x"]

    def test_zebra_fills(self):
        doc = create_document()
        add_table(doc, ["A"], [["1"], ["2"], ["3"]], row_height=30)
        fills = [it.fill for it in doc.page.items if isinstance(it, Rect)]
        assert fills == ["#3498db", "#ecf0f1", "#ffffff", "#ecf0f1"]

    def test_ragged_rows_rejected(self):
        doc = create_document()
        with pytest.raises(CompositionError):
            add_table(doc, ["A", "B"], [["1", "2"], ["3"]])
        assert doc.page.items == []

    def test_column_widths_must_match_headers(self):
        doc = create_document()
        with pytest.raises(CompositionError):
            add_table(doc, ["A", "B"], [["1", "2"]], column_widths=[100])


# =========================================================================
# footers
# =========================================================================

class TestFooters:
    def test_every_page_numbered(self):
        doc = create_document()
        doc.new_page()
        doc.new_page()
        add_page_footers(doc, year=2026)
        for n, page in enumerate(doc.pages, 1):
            assert f"Pagina {n} de 3" in page.texts()
            assert "Sistema de la Unidad de Transporte - UMSA - 2026" in page.texts()

    def test_footer_does_not_move_cursor(self):
        doc = create_document()
        doc.move_to(300)
        add_footer(doc, 1, year=2026)
        assert doc.cursor_y == 300
        assert "Pagina 1" in doc.page.texts()

    def test_footer_on_missing_page(self):
        doc = create_document()
        with pytest.raises(CompositionError):
            add_footer(doc, 2)


# =========================================================================
# serialization
# =========================================================================

class _BrokenStream(io.RawIOBase):
    def write(self, b):
        raise OSError("disco lleno")


class TestSerialization:
    def _doc(self, now):
        doc = create_document()
        add_header(doc, "REPORTE", "Reporte General", generated_at=now)
        add_table(doc, ["A", "B"], [["1", "2"]] * 5)
        add_page_footers(doc, year=2026)
        return doc

    def test_render_is_deterministic(self, now):
        doc = self._doc(now)
        first = render_pdf(doc, title="REPORTE")
        assert first.startswith(b"%PDF-")
        assert render_pdf(doc, title="REPORTE") == first

    def test_chunks_reassemble(self, now):
        data = render_pdf(self._doc(now))
        chunks = list(iter_pdf_chunks(data, 1000))
        assert all(len(c) <= 1000 for c in chunks)
        assert b"".join(chunks) == data

    def test_stream_matches_render(self, now):
        doc = self._doc(now)
        buf = io.BytesIO()
        written = write_pdf(doc, buf, chunk_size=512)
        assert buf.getvalue() == render_pdf(doc)
        assert written == len(buf.getvalue())

    def test_stream_failure_is_typed(self, now):
        with pytest.raises(DocumentWriteError):
            write_pdf(self._doc(now), _BrokenStream())

    def test_finalize_writes_file(self, now, tmp_path):
        out = finalize(self._doc(now), tmp_path / "sub" / "reporte.pdf")
        assert out.read_bytes().startswith(b"%PDF-")
        assert not list(tmp_path.glob("sub/*.tmp"))

    def test_file_and_stream_bytes_match(self, now, tmp_path):
        doc = self._doc(now)
        buf = io.BytesIO()
        write_pdf(doc, buf, title="REPORTE")
        out = finalize(doc, tmp_path / "reporte.pdf", title="REPORTE")
        assert out.read_bytes() == buf.getvalue()

    def test_finalize_failure_is_typed(self, now, tmp_path):
        blocker = tmp_path / "archivo"
        blocker.write_text("no soy un directorio")
        with pytest.raises(DocumentWriteError):
            finalize(self._doc(now), blocker / "reporte.pdf")

    def test_attachment_headers(self):
        h = attachment_headers("vehiculos_1.pdf")
        assert h["Content-Type"] == "application/pdf"
        assert h["Content-Disposition"] == 'attachment; filename="vehiculos_1.pdf"'
        assert attachment_headers("reporte")["Content-Disposition"].endswith('"reporte.pdf"')
