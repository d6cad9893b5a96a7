"""Section processors: pure aggregation over inspection records.

Each processor takes a SectionInput and returns the typed content for one
section type. Empty input always yields the empty content shape.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .models import (
    DailyCount,
    DailyCountsContent,
    DeviceCount,
    InspectionRecord,
    IssueDevice,
    IssueDevicesContent,
    IssueRow,
    IssuesContent,
    IssueTrend,
    IssueTrendsContent,
    MonthlySummaryContent,
    NotesContent,
    Recommendation,
    RecommendationsContent,
    ResultRecord,
    ResultRow,
    ResultsTableContent,
    SectionContent,
    SectionType,
    SummaryContent,
    UnknownSectionContent,
)

UNKNOWN_NAME = "Unknown"
NO_NOTE = "---"
NO_NOTES_TEXT = "特記事項なし"
RECOMMEND_TOP_N = 3
RECOMMEND_ITEM_MIN_ISSUES = 2
RECOMMEND_DEVICE_MIN_ISSUES = 3


@dataclass
class SectionInput:
    inspections: Sequence[InspectionRecord] = field(default_factory=tuple)
    report_period: str = ""
    report_date: Optional[date] = None
    notes: Optional[str] = None


def format_date_ja(d: date | datetime | None) -> str:
    if d is None:
        return ""
    return f"{d.year}/{d.month}/{d.day}"


def format_datetime_ja(d: datetime | None) -> str:
    if d is None:
        return ""
    return f"{d.year}/{d.month}/{d.day} {d.hour}:{d.minute:02d}:{d.second:02d}"


def _device_name(result: ResultRecord) -> str:
    return result.device_name or UNKNOWN_NAME


def _item_name(result: ResultRecord) -> str:
    return result.item_name or UNKNOWN_NAME


def _iter_results(inspections: Sequence[InspectionRecord]) -> Iterator[Tuple[InspectionRecord, ResultRecord]]:
    for inspection in inspections or ():
        for result in inspection.results or ():
            yield inspection, result


def _iter_issues(inspections: Sequence[InspectionRecord]) -> Iterator[Tuple[InspectionRecord, ResultRecord]]:
    for inspection, result in _iter_results(inspections):
        if not result.check_result:
            yield inspection, result


def _ranked(counter: Counter) -> List[Tuple[str, int]]:
    # Counter preserves insertion order; sorted() is stable, so ties keep first-seen order.
    return sorted(counter.items(), key=lambda kv: kv[1], reverse=True)


def process_summary(data: SectionInput) -> SummaryContent:
    inspections = data.inspections or ()
    names = list(dict.fromkeys(i.inspector_name for i in inspections if i.inspector_name))
    return SummaryContent(
        inspection_count=len(inspections),
        date=format_date_ja(data.report_date),
        inspector_names=", ".join(names) if names else NO_NOTE,
    )


def process_results_table(data: SectionInput) -> ResultsTableContent:
    rows = [
        ResultRow(
            device=_device_name(result),
            item=_item_name(result),
            status="OK" if result.check_result else "NG",
            remarks=result.note or "",
        )
        for _inspection, result in _iter_results(data.inspections)
    ]
    return ResultsTableContent(rows=rows)


def process_issues(data: SectionInput) -> IssuesContent:
    issues = [
        IssueRow(
            device=_device_name(result),
            item=_item_name(result),
            date=format_datetime_ja(inspection.inspection_date),
            inspector=inspection.inspector_name or "",
            note=result.note or NO_NOTE,
        )
        for inspection, result in _iter_issues(data.inspections)
    ]
    return IssuesContent(issues=issues)


def process_monthly_summary(data: SectionInput) -> MonthlySummaryContent:
    device_counts: Counter = Counter()
    total_issues = 0
    for _inspection, result in _iter_results(data.inspections):
        device_counts[_device_name(result)] += 1
        if not result.check_result:
            total_issues += 1
    return MonthlySummaryContent(
        total_inspections=len(data.inspections or ()),
        total_issues=total_issues,
        period=data.report_period or "",
        device_summary=[DeviceCount(device=k, count=v) for k, v in device_counts.items()],
    )


def process_daily_counts(data: SectionInput) -> DailyCountsContent:
    per_day: Counter = Counter(i.inspection_date.date().isoformat() for i in data.inspections or ())
    return DailyCountsContent(
        daily_counts=[DailyCount(date=d, count=c) for d, c in sorted(per_day.items())],
    )


def process_issue_devices(data: SectionInput) -> IssueDevicesContent:
    counts: Counter = Counter()
    items: Dict[str, List[str]] = {}
    for _inspection, result in _iter_issues(data.inspections):
        device = result.device_name or f"Device {result.device_id}"
        counts[device] += 1
        bucket = items.setdefault(device, [])
        if result.item_name and result.item_name not in bucket:
            bucket.append(result.item_name)
    return IssueDevicesContent(
        issue_devices=[
            IssueDevice(device=device, count=count, items=", ".join(items.get(device, [])))
            for device, count in _ranked(counts)
        ],
    )


def process_issue_trends(data: SectionInput) -> IssueTrendsContent:
    counts: Counter = Counter(
        result.item_name for _inspection, result in _iter_issues(data.inspections) if result.item_name
    )
    return IssueTrendsContent(issue_trends=[IssueTrend(item=k, count=v) for k, v in _ranked(counts)])


def process_recommendations(data: SectionInput) -> RecommendationsContent:
    item_counts: Counter = Counter()
    device_counts: Counter = Counter()
    for _inspection, result in _iter_issues(data.inspections):
        if result.item_name:
            item_counts[result.item_name] += 1
        if result.device_name:
            device_counts[result.device_name] += 1

    out: List[Recommendation] = []
    for item, count in _ranked(item_counts)[:RECOMMEND_TOP_N]:
        if count >= RECOMMEND_ITEM_MIN_ISSUES:
            out.append(
                Recommendation(
                    type="item",
                    target=item,
                    reason=f"{count}件の異常が検出されました",
                    recommendation=f"{item}の定期的な点検をお勧めします",
                )
            )
    for device, count in _ranked(device_counts)[:RECOMMEND_TOP_N]:
        if count >= RECOMMEND_DEVICE_MIN_ISSUES:
            out.append(
                Recommendation(
                    type="device",
                    target=device,
                    reason=f"{count}件の異常が検出されました",
                    recommendation=f"{device}の総合メンテナンスをお勧めします",
                )
            )
    return RecommendationsContent(recommendations=out)


def process_notes(data: SectionInput) -> NotesContent:
    text = str(data.notes or "").strip()
    return NotesContent(notes=text or NO_NOTES_TEXT)


SectionProcessor = Callable[[SectionInput], SectionContent]

SECTION_PROCESSORS: Dict[SectionType, SectionProcessor] = {
    SectionType.SUMMARY: process_summary,
    SectionType.RESULTS_TABLE: process_results_table,
    SectionType.ISSUES: process_issues,
    SectionType.MONTHLY_SUMMARY: process_monthly_summary,
    SectionType.DAILY_COUNTS: process_daily_counts,
    SectionType.ISSUE_DEVICES: process_issue_devices,
    SectionType.ISSUE_TRENDS: process_issue_trends,
    SectionType.RECOMMENDATIONS: process_recommendations,
    SectionType.NOTES: process_notes,
}


def unknown_section_content(section_type: str) -> UnknownSectionContent:
    return UnknownSectionContent(message=f"unknown section type: {section_type}")


def process_section(section_type: str, data: SectionInput) -> SectionContent:
    kind = SectionType.parse(section_type)
    if kind is None:
        return unknown_section_content(section_type)
    return SECTION_PROCESSORS[kind](data)


EMPTY_CONTENT: Dict[SectionType, Callable[[], SectionContent]] = {
    SectionType.SUMMARY: SummaryContent,
    SectionType.RESULTS_TABLE: ResultsTableContent,
    SectionType.ISSUES: IssuesContent,
    SectionType.MONTHLY_SUMMARY: MonthlySummaryContent,
    SectionType.DAILY_COUNTS: DailyCountsContent,
    SectionType.ISSUE_DEVICES: IssueDevicesContent,
    SectionType.ISSUE_TRENDS: IssueTrendsContent,
    SectionType.RECOMMENDATIONS: RecommendationsContent,
    SectionType.NOTES: lambda: NotesContent(notes=NO_NOTES_TEXT),
}


def empty_content(section_type: str) -> SectionContent:
    """Content shape a section falls back to when its processor fails."""
    kind = SectionType.parse(section_type)
    if kind is None:
        return unknown_section_content(section_type)
    return EMPTY_CONTENT[kind]()
