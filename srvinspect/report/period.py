from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Tuple

from dateutil.relativedelta import relativedelta

from ..errors import InvalidPeriodFormatError, InvalidReportTypeError
from .models import PeriodWindow

_KANJI_MONTH_RE = re.compile(r"(\d+)\s*年\s*(\d+)\s*月")
_DASH_MONTH_RE = re.compile(r"\s*(\d+)\s*-\s*(\d+)\s*")


def coerce_report_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value or "").strip()[:10])
    except ValueError as e:
        raise InvalidPeriodFormatError(f"invalid report date: {value!r}") from e


def parse_month_label(label: str) -> Tuple[int, int]:
    """'2025年03月' or '2025-03' -> (2025, 3)."""
    text = str(label or "")
    m = None
    if "年" in text and "月" in text:
        m = _KANJI_MONTH_RE.search(text)
    elif "-" in text:
        m = _DASH_MONTH_RE.fullmatch(text)
    if m is None:
        raise InvalidPeriodFormatError("invalid period format; use YYYY年MM月 or YYYY-MM")
    year, month = int(m.group(1)), int(m.group(2))
    if month < 1 or month > 12 or year < 1 or year > 9999:
        raise InvalidPeriodFormatError(f"invalid month in period: {label}")
    return year, month


def resolve_period(report_type: str, report_date: date | datetime | str, report_period: str) -> PeriodWindow:
    """Concrete inclusive [start, end] window for a report, in local time."""
    if report_type == "daily":
        day = coerce_report_date(report_date)
        return PeriodWindow(
            start=datetime.combine(day, time.min),
            end=datetime.combine(day, time.max),
        )
    if report_type == "monthly":
        year, month = parse_month_label(report_period)
        first = date(year, month, 1)
        # day=31 clamps to the month end and stays inside date.max for 9999-12
        last = first + relativedelta(day=31)
        return PeriodWindow(
            start=datetime.combine(first, time.min),
            end=datetime.combine(last, time.max),
        )
    raise InvalidReportTypeError(f"invalid report type: {report_type}")
