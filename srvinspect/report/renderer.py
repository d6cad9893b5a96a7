"""Paginated PDF compositor for merged report models.

The vertical cursor is explicit state: every draw routine takes a Cursor and
returns the advanced one, so pagination can be checked against any
DocumentCanvas, not only reportlab.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Type

from ..errors import SectionRenderDegradation
from .canvas import DocumentCanvas
from .fonts import FontSet
from .models import (
    DailyCountsContent,
    Diagnostic,
    IssueDevicesContent,
    IssuesContent,
    IssueTrendsContent,
    MonthlySummaryContent,
    NotesContent,
    RecommendationsContent,
    RenderedSection,
    RenderModel,
    ResultsTableContent,
    SectionType,
    SummaryContent,
    UnknownSectionContent,
)
from .sections import NO_NOTE, format_date_ja

LOG = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "(このセクションは表示できません)"
NOTE_INDENT = 20.0


@dataclass(frozen=True)
class PageLayout:
    margin: float = 50.0
    section_break_threshold: float = 150.0  # from the page bottom
    row_bottom_limit: float = 100.0  # from the page bottom
    footer_offset: float = 50.0  # from the page bottom
    fallback_row_height: float = 14.0
    row_gap: float = 5.0
    section_gap: float = 24.0
    title_size: float = 20.0
    heading_size: float = 14.0
    body_size: float = 12.0
    table_size: float = 10.0
    footer_size: float = 8.0


@dataclass(frozen=True)
class Cursor:
    y: float
    page: int = 1
    breaks: int = 0


@dataclass(frozen=True)
class Column:
    label: str
    offset: float
    width: float


@dataclass(frozen=True)
class TableRow:
    cells: Tuple[str, ...]
    note: Optional[str] = None


@dataclass
class DrawContext:
    canvas: DocumentCanvas
    fonts: FontSet
    layout: PageLayout
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def bottom_limit(self) -> float:
        return self.canvas.page_height - self.layout.row_bottom_limit

    @property
    def content_width(self) -> float:
        return self.canvas.page_width - 2 * self.layout.margin


@dataclass
class RenderOutcome:
    page_count: int
    page_breaks: int
    diagnostics: List[Diagnostic]


# --- primitives ---
def break_page(ctx: DrawContext, cursor: Cursor) -> Cursor:
    ctx.canvas.new_page()
    return Cursor(y=ctx.layout.margin, page=cursor.page + 1, breaks=cursor.breaks + 1)


def _measure(ctx: DrawContext, text: str, font: str, size: float, width: Optional[float]) -> float:
    h = ctx.canvas.measure_text(text, font, size, width)
    if not h or h <= 0:
        return ctx.layout.fallback_row_height
    return h


def draw_line_of_text(
    ctx: DrawContext,
    cursor: Cursor,
    text: str,
    *,
    bold: bool = False,
    size: Optional[float] = None,
    indent: float = 0.0,
) -> Cursor:
    font = ctx.fonts.bold if bold else ctx.fonts.regular
    size = size or ctx.layout.body_size
    x = ctx.layout.margin + indent
    width = ctx.content_width - indent
    h = _measure(ctx, text, font, size, width)
    if cursor.y + h > ctx.bottom_limit:
        cursor = break_page(ctx, cursor)
    ctx.canvas.draw_text(x, cursor.y, text, font, size, width)
    return replace(cursor, y=cursor.y + h)


def _gap(cursor: Cursor, amount: float) -> Cursor:
    return replace(cursor, y=cursor.y + amount)


def _row_height(ctx: DrawContext, columns: Sequence[Column], cells: Sequence[str], font: str) -> float:
    size = ctx.layout.table_size
    tallest = max(_measure(ctx, cell, font, size, col.width) for col, cell in zip(columns, cells))
    return tallest + ctx.layout.row_gap


def _draw_cells(ctx: DrawContext, cursor: Cursor, left: float, columns: Sequence[Column], cells: Sequence[str], font: str) -> None:
    for col, cell in zip(columns, cells):
        ctx.canvas.draw_text(left + col.offset, cursor.y, cell, font, ctx.layout.table_size, col.width)


def _block_height(ctx: DrawContext, columns: Sequence[Column], row: TableRow, note_width: float) -> float:
    h = _row_height(ctx, columns, row.cells, ctx.fonts.regular)
    if row.note:
        h += _measure(ctx, row.note, ctx.fonts.regular, ctx.layout.table_size, note_width) + ctx.layout.row_gap
    return h


def _header_height(ctx: DrawContext, columns: Sequence[Column]) -> float:
    return _row_height(ctx, columns, [c.label for c in columns], ctx.fonts.bold)


def draw_table_header(ctx: DrawContext, cursor: Cursor, left: float, columns: Sequence[Column]) -> Cursor:
    h = _header_height(ctx, columns)
    _draw_cells(ctx, cursor, left, columns, [c.label for c in columns], ctx.fonts.bold)
    return replace(cursor, y=cursor.y + h)


def draw_table(
    ctx: DrawContext,
    cursor: Cursor,
    columns: Sequence[Column],
    rows: Sequence[TableRow],
    *,
    left: Optional[float] = None,
) -> Cursor:
    """Draw rows, breaking the page before any row that would cross the bottom
    limit and re-emitting the column header on the new page."""
    left = ctx.layout.margin if left is None else left
    size = ctx.layout.table_size
    note_width = ctx.content_width - NOTE_INDENT
    # A header never sits alone at the page foot.
    if rows and cursor.y > ctx.layout.margin:
        lead = _header_height(ctx, columns) + _block_height(ctx, columns, rows[0], note_width)
        if cursor.y + lead > ctx.bottom_limit:
            cursor = break_page(ctx, cursor)
    cursor = draw_table_header(ctx, cursor, left, columns)
    for row in rows:
        h = _row_height(ctx, columns, row.cells, ctx.fonts.regular)
        block = _block_height(ctx, columns, row, note_width)
        if cursor.y + block > ctx.bottom_limit:
            cursor = break_page(ctx, cursor)
            cursor = draw_table_header(ctx, cursor, left, columns)
        _draw_cells(ctx, cursor, left, columns, row.cells, ctx.fonts.regular)
        if row.note:
            ctx.canvas.draw_text(left + NOTE_INDENT, cursor.y + h, row.note, ctx.fonts.regular, size, note_width)
        cursor = replace(cursor, y=cursor.y + block)
    return cursor


# --- section draw routines ---
def draw_summary(ctx: DrawContext, cursor: Cursor, content: SummaryContent) -> Cursor:
    cursor = draw_line_of_text(ctx, cursor, f"点検実施件数: {content.inspection_count}件")
    cursor = draw_line_of_text(ctx, cursor, f"点検実施日: {content.date}")
    return draw_line_of_text(ctx, cursor, f"点検担当者: {content.inspector_names}")


RESULTS_COLUMNS = (
    Column("機器", 0, 140),
    Column("点検項目", 150, 140),
    Column("結果", 300, 40),
    Column("備考", 350, 145),
)


def _result_rows(content: ResultsTableContent) -> List[TableRow]:
    return [TableRow((r.device, r.item, r.status, r.remarks or "")) for r in content.rows]


def draw_results_table(ctx: DrawContext, cursor: Cursor, content: ResultsTableContent) -> Cursor:
    if not content.rows:
        return draw_line_of_text(ctx, cursor, "点検結果データがありません")
    return draw_table(ctx, cursor, RESULTS_COLUMNS, _result_rows(content))


ISSUES_COLUMNS = (
    Column("機器", 0, 140),
    Column("点検項目", 150, 140),
    Column("日時", 300, 90),
    Column("点検者", 400, 95),
)


def _issue_rows(content: IssuesContent) -> List[TableRow]:
    return [
        TableRow(
            (i.device, i.item, i.date, i.inspector),
            note=f"備考: {i.note}" if i.note and i.note != NO_NOTE else None,
        )
        for i in content.issues
    ]


def draw_issues(ctx: DrawContext, cursor: Cursor, content: IssuesContent) -> Cursor:
    if not content.issues:
        return draw_line_of_text(ctx, cursor, "異常項目はありません")
    return draw_table(ctx, cursor, ISSUES_COLUMNS, _issue_rows(content))


def draw_monthly_summary(ctx: DrawContext, cursor: Cursor, content: MonthlySummaryContent) -> Cursor:
    cursor = draw_line_of_text(ctx, cursor, f"対象期間: {content.period}")
    cursor = draw_line_of_text(ctx, cursor, f"点検合計件数: {content.total_inspections}件")
    cursor = draw_line_of_text(ctx, cursor, f"検出された異常: {content.total_issues}件")
    if content.device_summary:
        cursor = _gap(cursor, ctx.layout.row_gap)
        cursor = draw_line_of_text(ctx, cursor, "機器別点検件数:", bold=True, size=11)
        for item in content.device_summary:
            cursor = draw_line_of_text(
                ctx, cursor, f"{item.device}: {item.count}件", size=ctx.layout.table_size, indent=20
            )
    return cursor


DAILY_COLUMNS = (
    Column("日付", 0, 140),
    Column("点検数", 150, 80),
)


def _iso_to_ja(iso_day: str) -> str:
    try:
        d = date.fromisoformat(iso_day)
    except ValueError:
        return iso_day
    return f"{d.year:04d}/{d.month:02d}/{d.day:02d}"


def _daily_rows(content: DailyCountsContent) -> List[TableRow]:
    return [TableRow((_iso_to_ja(d.date), str(d.count))) for d in content.daily_counts]


def draw_daily_counts(ctx: DrawContext, cursor: Cursor, content: DailyCountsContent) -> Cursor:
    if not content.daily_counts:
        return draw_line_of_text(ctx, cursor, "日別点検データがありません")
    return draw_table(ctx, cursor, DAILY_COLUMNS, _daily_rows(content), left=ctx.layout.margin + 50)


ISSUE_DEVICE_COLUMNS = (
    Column("機器名", 0, 190),
    Column("異常件数", 200, 90),
    Column("異常項目", 300, 195),
)


def _issue_device_rows(content: IssueDevicesContent) -> List[TableRow]:
    return [TableRow((d.device, str(d.count), d.items)) for d in content.issue_devices]


def draw_issue_devices(ctx: DrawContext, cursor: Cursor, content: IssueDevicesContent) -> Cursor:
    if not content.issue_devices:
        return draw_line_of_text(ctx, cursor, "異常検出機器データがありません")
    return draw_table(ctx, cursor, ISSUE_DEVICE_COLUMNS, _issue_device_rows(content))


ISSUE_TREND_COLUMNS = (
    Column("点検項目", 0, 240),
    Column("異常件数", 250, 80),
)


def _issue_trend_rows(content: IssueTrendsContent) -> List[TableRow]:
    return [TableRow((t.item, str(t.count))) for t in content.issue_trends]


def draw_issue_trends(ctx: DrawContext, cursor: Cursor, content: IssueTrendsContent) -> Cursor:
    if not content.issue_trends:
        return draw_line_of_text(ctx, cursor, "異常傾向データがありません")
    return draw_table(ctx, cursor, ISSUE_TREND_COLUMNS, _issue_trend_rows(content), left=ctx.layout.margin + 50)


def draw_recommendations(ctx: DrawContext, cursor: Cursor, content: RecommendationsContent) -> Cursor:
    if not content.recommendations:
        return draw_line_of_text(ctx, cursor, "推奨メンテナンス項目はありません")
    cursor = draw_line_of_text(ctx, cursor, "以下のメンテナンスを推奨します:", size=11)
    cursor = _gap(cursor, ctx.layout.row_gap)
    for n, rec in enumerate(content.recommendations, start=1):
        kind = "機器" if rec.type == "device" else "点検項目"
        cursor = draw_line_of_text(ctx, cursor, f"{n}. {rec.target} ({kind})", bold=True, size=11)
        cursor = draw_line_of_text(ctx, cursor, f"原因: {rec.reason}", size=ctx.layout.table_size, indent=20)
        cursor = draw_line_of_text(ctx, cursor, f"推奨: {rec.recommendation}", size=ctx.layout.table_size, indent=20)
        cursor = _gap(cursor, ctx.layout.row_gap)
    return cursor


def draw_notes(ctx: DrawContext, cursor: Cursor, content: NotesContent) -> Cursor:
    for line in str(content.notes).split("\n"):
        cursor = draw_line_of_text(ctx, cursor, line, size=11)
    return cursor


SectionDrawer = Callable[[DrawContext, Cursor, object], Cursor]

SECTION_DRAWERS: Dict[SectionType, Tuple[Type, SectionDrawer]] = {
    SectionType.SUMMARY: (SummaryContent, draw_summary),
    SectionType.RESULTS_TABLE: (ResultsTableContent, draw_results_table),
    SectionType.ISSUES: (IssuesContent, draw_issues),
    SectionType.MONTHLY_SUMMARY: (MonthlySummaryContent, draw_monthly_summary),
    SectionType.DAILY_COUNTS: (DailyCountsContent, draw_daily_counts),
    SectionType.ISSUE_DEVICES: (IssueDevicesContent, draw_issue_devices),
    SectionType.ISSUE_TRENDS: (IssueTrendsContent, draw_issue_trends),
    SectionType.RECOMMENDATIONS: (RecommendationsContent, draw_recommendations),
    SectionType.NOTES: (NotesContent, draw_notes),
}

TABLE_SECTIONS: Dict[SectionType, Tuple[Sequence[Column], Callable[[object], List[TableRow]]]] = {
    SectionType.RESULTS_TABLE: (RESULTS_COLUMNS, _result_rows),
    SectionType.ISSUES: (ISSUES_COLUMNS, _issue_rows),
    SectionType.DAILY_COUNTS: (DAILY_COLUMNS, _daily_rows),
    SectionType.ISSUE_DEVICES: (ISSUE_DEVICE_COLUMNS, _issue_device_rows),
    SectionType.ISSUE_TRENDS: (ISSUE_TREND_COLUMNS, _issue_trend_rows),
}


def _draw_unknown(ctx: DrawContext, cursor: Cursor, section: RenderedSection) -> Cursor:
    content = section.content
    if isinstance(content, UnknownSectionContent):
        message = content.message
    else:
        message = f"unknown section type: {section.type}"
    return draw_line_of_text(ctx, cursor, message)


def _draw_section_body(ctx: DrawContext, cursor: Cursor, section: RenderedSection) -> Cursor:
    kind = SectionType.parse(section.type)
    if kind is None:
        return _draw_unknown(ctx, cursor, section)
    content_cls, drawer = SECTION_DRAWERS[kind]
    if not isinstance(section.content, content_cls):
        raise SectionRenderDegradation(
            section.type, f"expected {content_cls.__name__}, got {type(section.content).__name__}"
        )
    return drawer(ctx, cursor, section.content)


def _body_lead(ctx: DrawContext, section: RenderedSection) -> float:
    """Height of the first block drawn under a section title."""
    line = _measure(ctx, "", ctx.fonts.regular, ctx.layout.body_size, ctx.content_width)
    kind = SectionType.parse(section.type)
    if kind not in TABLE_SECTIONS or not isinstance(section.content, SECTION_DRAWERS[kind][0]):
        return line
    columns, build = TABLE_SECTIONS[kind]
    try:
        rows = build(section.content)
    except (AttributeError, TypeError):
        # drawn as a placeholder line by draw_section
        return line
    if not rows:
        return line
    note_width = ctx.content_width - NOTE_INDENT
    return _header_height(ctx, columns) + _block_height(ctx, columns, rows[0], note_width)


def draw_section(ctx: DrawContext, cursor: Cursor, index: int, section: RenderedSection) -> Cursor:
    # The title moves to the next page with its first body block.
    title_h = _measure(ctx, section.title, ctx.fonts.bold, ctx.layout.heading_size, ctx.content_width)
    lead = title_h + ctx.layout.row_gap + _body_lead(ctx, section)
    if cursor.y > ctx.layout.margin and cursor.y + lead > ctx.bottom_limit:
        cursor = break_page(ctx, cursor)
    cursor = draw_line_of_text(ctx, cursor, section.title, bold=True, size=ctx.layout.heading_size)
    cursor = _gap(cursor, ctx.layout.row_gap)
    try:
        cursor = _draw_section_body(ctx, cursor, section)
    except (SectionRenderDegradation, AttributeError, KeyError, TypeError, ValueError) as e:
        degradation = e if isinstance(e, SectionRenderDegradation) else SectionRenderDegradation(section.type, str(e))
        LOG.warning("Section %d rendered as placeholder: %s", index, degradation)
        ctx.diagnostics.append(Diagnostic(section_index=index, section_type=section.type, message=str(degradation)))
        cursor = draw_line_of_text(ctx, cursor, PLACEHOLDER_TEXT)
    return _gap(cursor, ctx.layout.section_gap)


def draw_header(ctx: DrawContext, cursor: Cursor, model: RenderModel) -> Cursor:
    layout = ctx.layout
    h = ctx.canvas.draw_text(
        layout.margin, cursor.y, model.title, ctx.fonts.bold, layout.title_size, ctx.content_width, align="center"
    )
    cursor = _gap(cursor, (h or layout.title_size) + layout.body_size)
    cursor = draw_line_of_text(ctx, cursor, f"顧客名: {model.customer_name}")
    cursor = draw_line_of_text(ctx, cursor, f"期間: {model.report_period}")
    cursor = draw_line_of_text(ctx, cursor, f"報告日: {format_date_ja(model.report_date)}")
    cursor = _gap(cursor, layout.body_size * 2)
    ctx.canvas.draw_line(layout.margin, cursor.y, ctx.canvas.page_width - layout.margin)
    return _gap(cursor, layout.body_size)


def draw_footer(ctx: DrawContext, cursor: Cursor, footer_text: str, generated_on: date) -> None:
    layout = ctx.layout
    text = f"{footer_text} - 作成日: {format_date_ja(generated_on)} - ページ {cursor.page}"
    ctx.canvas.draw_text(
        layout.margin,
        ctx.canvas.page_height - layout.footer_offset,
        text,
        ctx.fonts.regular,
        layout.footer_size,
        ctx.content_width,
        align="center",
    )


def render_document(
    model: RenderModel,
    canvas: DocumentCanvas,
    fonts: FontSet,
    *,
    layout: Optional[PageLayout] = None,
    generated_on: Optional[date] = None,
    check: Optional[Callable[[], None]] = None,
) -> RenderOutcome:
    """Compose the whole document onto `canvas` and finalize it.

    `check` runs before each section; it may raise to abort (deadline).
    """
    ctx = DrawContext(canvas=canvas, fonts=fonts, layout=layout or PageLayout())
    cursor = Cursor(y=ctx.layout.margin)
    cursor = draw_header(ctx, cursor, model)

    section_limit = canvas.page_height - ctx.layout.section_break_threshold
    for index, section in enumerate(model.sections):
        if check is not None:
            check()
        if cursor.y > section_limit:
            cursor = break_page(ctx, cursor)
        cursor = draw_section(ctx, cursor, index, section)

    draw_footer(ctx, cursor, model.footer_text, generated_on or date.today())
    canvas.save()
    return RenderOutcome(page_count=cursor.page, page_breaks=cursor.breaks, diagnostics=ctx.diagnostics)
