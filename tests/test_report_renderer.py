from __future__ import annotations

from datetime import date

import pytest

from conftest import RecordingCanvas
from srvinspect.report.models import (
    IssueRow,
    IssuesContent,
    NotesContent,
    RenderedSection,
    RenderModel,
    ResultRow,
    ResultsTableContent,
    SummaryContent,
    UnknownSectionContent,
)
from srvinspect.report.renderer import (
    PLACEHOLDER_TEXT,
    RESULTS_COLUMNS,
    Cursor,
    DrawContext,
    PageLayout,
    draw_issues,
    draw_results_table,
    draw_section,
    render_document,
)


def _rows(n: int) -> ResultsTableContent:
    return ResultsTableContent(rows=[ResultRow(f"web-{i:02d}", "CPU使用率", "OK", "") for i in range(n)])


def _model(*sections: RenderedSection, footer: str = "サーバー点検システム") -> RenderModel:
    return RenderModel(
        title="日次点検報告書",
        customer_name="テスト顧客",
        report_type="daily",
        report_period="2025-03-15",
        report_date=date(2025, 3, 15),
        sections=list(sections),
        footer_text=footer,
    )


@pytest.mark.parametrize(
    "n_rows,expected_breaks",
    [(1, 0), (20, 0), (21, 1), (40, 1), (41, 2), (45, 2), (100, 4)],
)
def test_table_breaks_page_per_full_row_area(builtin_fonts, n_rows, expected_breaks) -> None:
    # 360pt page, 100pt bottom limit, 10pt rows: 20 rows fit below the header.
    canvas = RecordingCanvas(page_height=360, text_height=10)
    ctx = DrawContext(canvas=canvas, fonts=builtin_fonts, layout=PageLayout(row_gap=0))
    cursor = draw_results_table(ctx, Cursor(y=ctx.layout.margin), _rows(n_rows))

    assert cursor.breaks == expected_breaks
    assert cursor.page == expected_breaks + 1
    assert canvas.page_number == cursor.page
    header = RESULTS_COLUMNS[0].label
    for page in range(1, cursor.page + 1):
        assert canvas.texts_on(page).count(header) == 1
    for t in canvas.texts:
        assert t["y"] + 10 <= ctx.bottom_limit


def test_issue_note_travels_with_its_row(builtin_fonts) -> None:
    canvas = RecordingCanvas(page_height=360, text_height=10)
    ctx = DrawContext(canvas=canvas, fonts=builtin_fonts, layout=PageLayout(row_gap=0))
    issues = [IssueRow("web-01", "ディスク容量", "2025/3/15 9:30:00", "田中", "---") for _ in range(19)]
    issues.append(IssueRow("db-01", "ディスク容量", "2025/3/15 14:00:00", "佐藤", "残り5%"))
    cursor = draw_issues(ctx, Cursor(y=ctx.layout.margin), IssuesContent(issues=issues))

    assert cursor.breaks == 1
    (note,) = canvas.find("備考: 残り5%")
    (row,) = canvas.find("db-01")
    assert note["page"] == row["page"] == 2
    assert canvas.find("備考: ---") == []


def test_fallback_row_height_when_measure_returns_nothing(builtin_fonts) -> None:
    canvas = RecordingCanvas(text_height=None)
    ctx = DrawContext(canvas=canvas, fonts=builtin_fonts, layout=PageLayout())
    cursor = draw_results_table(ctx, Cursor(y=50), _rows(1))
    # header and one row, each fallback 14pt plus 5pt gap
    assert cursor.y == 50 + 19 + 19


def test_empty_table_draws_message(recording_canvas, builtin_fonts) -> None:
    ctx = DrawContext(canvas=recording_canvas, fonts=builtin_fonts, layout=PageLayout())
    draw_results_table(ctx, Cursor(y=50), ResultsTableContent())
    assert recording_canvas.find("点検結果データがありません")


def test_section_near_bottom_starts_on_new_page(builtin_fonts) -> None:
    canvas = RecordingCanvas(page_height=360, text_height=10)
    notes = "\n".join(f"行{i}" for i in range(6))
    model = _model(
        RenderedSection("特記事項", "notes", NotesContent(notes=notes)),
        RenderedSection("点検概要", "summary", SummaryContent(inspection_count=1, date="2025/3/15")),
    )
    outcome = render_document(model, canvas, builtin_fonts, generated_on=date(2025, 3, 16))

    (title,) = canvas.find("点検概要")
    assert title["page"] == 2
    assert title["y"] == PageLayout().margin
    assert outcome.page_count == 2
    assert outcome.page_breaks == 1


def test_render_document_header_footer_and_save(recording_canvas, builtin_fonts) -> None:
    model = _model(RenderedSection("点検概要", "summary", SummaryContent(inspection_count=2, date="2025/3/15")))
    outcome = render_document(model, recording_canvas, builtin_fonts, generated_on=date(2025, 3, 16))

    assert recording_canvas.saved
    assert outcome.page_count == 1
    assert recording_canvas.find("日次点検報告書")
    assert recording_canvas.find("顧客名: テスト顧客")
    assert recording_canvas.find("報告日: 2025/3/15")
    assert recording_canvas.find("点検実施件数: 2件")
    (footer,) = recording_canvas.find("サーバー点検システム - 作成日: 2025/3/16 - ページ 1")
    assert footer["y"] == recording_canvas.page_height - 50
    assert len(recording_canvas.lines) == 1


def test_footer_reports_final_page_number(builtin_fonts) -> None:
    canvas = RecordingCanvas(page_height=360, text_height=10)
    model = _model(RenderedSection("点検結果", "results_table", _rows(45)))
    outcome = render_document(model, canvas, builtin_fonts, generated_on=date(2025, 3, 16))
    footer = [t for t in canvas.texts if t["text"].startswith("サーバー点検システム - ")]
    assert len(footer) == 1
    assert footer[0]["text"].endswith(f"ページ {outcome.page_count}")
    assert footer[0]["page"] == outcome.page_count


def test_unknown_section_draws_message_line(recording_canvas, builtin_fonts) -> None:
    model = _model(RenderedSection("未来", "heatmap", UnknownSectionContent(message="unknown section type: heatmap")))
    outcome = render_document(model, recording_canvas, builtin_fonts)
    assert recording_canvas.find("未来")
    assert recording_canvas.find("unknown section type: heatmap")
    assert outcome.diagnostics == []


def test_mismatched_content_renders_placeholder(recording_canvas, builtin_fonts) -> None:
    model = _model(
        RenderedSection("異常項目", "issues", NotesContent(notes="x")),
        RenderedSection("特記事項", "notes", NotesContent(notes="特記事項なし")),
    )
    outcome = render_document(model, recording_canvas, builtin_fonts)

    assert recording_canvas.find(PLACEHOLDER_TEXT)
    assert recording_canvas.find("特記事項なし")
    assert len(outcome.diagnostics) == 1
    assert outcome.diagnostics[0].section_index == 0
    assert outcome.diagnostics[0].section_type == "issues"


def test_malformed_rows_render_placeholder(recording_canvas, builtin_fonts) -> None:
    model = _model(RenderedSection("異常項目", "issues", IssuesContent(issues=[object()])))
    outcome = render_document(model, recording_canvas, builtin_fonts)
    assert recording_canvas.find(PLACEHOLDER_TEXT)
    assert outcome.diagnostics[0].section_type == "issues"


def test_check_hook_aborts_rendering(recording_canvas, builtin_fonts) -> None:
    class Stop(Exception):
        pass

    def check():
        raise Stop()

    model = _model(RenderedSection("特記事項", "notes", NotesContent(notes="x")))
    with pytest.raises(Stop):
        render_document(model, recording_canvas, builtin_fonts, check=check)
    assert not recording_canvas.saved


class MetricCanvas(RecordingCanvas):
    """One wrapped line per call, sized like ReportLabCanvas (size * 1.2)."""

    def measure_text(self, text, font, size, width=None):
        return size * 1.2

    def draw_text(self, x, y, text, font, size, width=None, align="left"):
        super().draw_text(x, y, text, font, size, width, align)
        return size * 1.2


def test_section_title_stays_with_first_table_row(builtin_fonts) -> None:
    canvas = MetricCanvas()
    ctx = DrawContext(canvas=canvas, fonts=builtin_fonts, layout=PageLayout())
    section = RenderedSection("点検結果", "results_table", _rows(3))
    cursor = draw_section(ctx, Cursor(y=canvas.page_height - 150), 0, section)

    (title,) = canvas.find("点検結果")
    (first_row,) = canvas.find("web-00")
    assert title["page"] == first_row["page"] == 2
    assert title["y"] == PageLayout().margin
    headers = [t["page"] for t in canvas.texts if t["text"] == RESULTS_COLUMNS[0].label]
    assert headers == [2]
    assert cursor.breaks == 1


def test_section_with_room_stays_on_page(builtin_fonts) -> None:
    canvas = MetricCanvas()
    ctx = DrawContext(canvas=canvas, fonts=builtin_fonts, layout=PageLayout())
    section = RenderedSection("点検結果", "results_table", _rows(3))
    cursor = draw_section(ctx, Cursor(y=canvas.page_height - 200), 0, section)
    assert cursor.breaks == 0
    assert {t["page"] for t in canvas.texts} == {1}


def test_table_header_not_left_alone_at_page_foot(builtin_fonts) -> None:
    canvas = MetricCanvas()
    ctx = DrawContext(canvas=canvas, fonts=builtin_fonts, layout=PageLayout())
    # room for the header (17pt) but not header plus first row (34pt)
    cursor = draw_results_table(ctx, Cursor(y=ctx.bottom_limit - 20), _rows(2))

    headers = [t["page"] for t in canvas.texts if t["text"] == RESULTS_COLUMNS[0].label]
    assert headers == [2]
    assert canvas.find("web-00")[0]["page"] == 2
    assert cursor.breaks == 1
