from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Union

REPORT_TYPES = ("daily", "monthly")


class SectionType(str, Enum):
    SUMMARY = "summary"
    RESULTS_TABLE = "results_table"
    ISSUES = "issues"
    MONTHLY_SUMMARY = "monthly_summary"
    DAILY_COUNTS = "daily_counts"
    ISSUE_DEVICES = "issue_devices"
    ISSUE_TRENDS = "issue_trends"
    RECOMMENDATIONS = "recommendations"
    NOTES = "notes"

    @classmethod
    def parse(cls, value: str) -> Optional["SectionType"]:
        try:
            return cls(value)
        except ValueError:
            return None


# --- Template ---
@dataclass(frozen=True)
class Section:
    title: str
    type: str


@dataclass(frozen=True)
class Template:
    name: str
    type: str
    sections: tuple[Section, ...]
    footer_text: Optional[str] = None


# --- Inspection data (read-only, owned by the data provider) ---
@dataclass(frozen=True)
class ResultRecord:
    device_id: Optional[int]
    device_name: Optional[str]
    item_name: Optional[str]
    check_result: bool
    note: Optional[str] = None


@dataclass(frozen=True)
class InspectionRecord:
    id: int
    inspection_date: datetime
    inspector_name: str
    results: tuple[ResultRecord, ...] = ()


@dataclass(frozen=True)
class PeriodWindow:
    start: datetime
    end: datetime


# --- Provider-side references ---
@dataclass(frozen=True)
class Customer:
    id: int
    name: str


@dataclass(frozen=True)
class TemplateRecord:
    id: int
    name: str
    type: str
    template_path: str


@dataclass(frozen=True)
class ReportRef:
    id: int
    customer_id: int
    report_type: str
    report_date: date
    report_period: str
    template_id: Optional[int] = None
    notes: Optional[str] = None
    file_path: Optional[str] = None
    status: str = "draft"


# --- Section contents, one per SectionType ---
@dataclass
class SummaryContent:
    inspection_count: int = 0
    date: str = ""
    inspector_names: str = "---"


@dataclass
class ResultRow:
    device: str
    item: str
    status: str
    remarks: str


@dataclass
class ResultsTableContent:
    rows: List[ResultRow] = field(default_factory=list)


@dataclass
class IssueRow:
    device: str
    item: str
    date: str
    inspector: str
    note: str


@dataclass
class IssuesContent:
    issues: List[IssueRow] = field(default_factory=list)


@dataclass
class DeviceCount:
    device: str
    count: int


@dataclass
class MonthlySummaryContent:
    total_inspections: int = 0
    total_issues: int = 0
    period: str = ""
    device_summary: List[DeviceCount] = field(default_factory=list)


@dataclass
class DailyCount:
    date: str
    count: int


@dataclass
class DailyCountsContent:
    daily_counts: List[DailyCount] = field(default_factory=list)


@dataclass
class IssueDevice:
    device: str
    count: int
    items: str


@dataclass
class IssueDevicesContent:
    issue_devices: List[IssueDevice] = field(default_factory=list)


@dataclass
class IssueTrend:
    item: str
    count: int


@dataclass
class IssueTrendsContent:
    issue_trends: List[IssueTrend] = field(default_factory=list)


@dataclass
class Recommendation:
    type: str
    target: str
    reason: str
    recommendation: str


@dataclass
class RecommendationsContent:
    recommendations: List[Recommendation] = field(default_factory=list)


@dataclass
class NotesContent:
    notes: str = ""


@dataclass
class UnknownSectionContent:
    message: str


SectionContent = Union[
    SummaryContent,
    ResultsTableContent,
    IssuesContent,
    MonthlySummaryContent,
    DailyCountsContent,
    IssueDevicesContent,
    IssueTrendsContent,
    RecommendationsContent,
    NotesContent,
    UnknownSectionContent,
]


@dataclass(frozen=True)
class Diagnostic:
    section_index: Optional[int]
    section_type: str
    message: str


@dataclass
class RenderedSection:
    title: str
    type: str
    content: SectionContent


@dataclass
class RenderModel:
    title: str
    customer_name: str
    report_type: str
    report_period: str
    report_date: date
    sections: List[RenderedSection]
    footer_text: str
    diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass
class GenerationResult:
    report_id: int
    file_path: str
    status: str
    page_count: int
    diagnostics: List[Diagnostic] = field(default_factory=list)
