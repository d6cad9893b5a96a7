from __future__ import annotations

import logging
import threading
import time
import weakref
from datetime import date, datetime
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from ..config import Settings
from ..errors import GenerationTimeoutError, InvalidTemplateError, NotFoundError, ReportIOError
from .canvas import DocumentCanvas, ReportLabCanvas
from .fonts import FontSet, resolve_font_set
from .merge import ReportData, merge_template_with_data
from .models import (
    Customer,
    Diagnostic,
    GenerationResult,
    InspectionRecord,
    PeriodWindow,
    ReportRef,
    Template,
    TemplateRecord,
)
from .period import resolve_period
from .renderer import render_document
from .templates import default_template_path, load_template, resolve_template_path

LOG = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"


class ReportDataProvider(Protocol):
    def get_report(self, report_id: int) -> Optional[ReportRef]: ...

    def get_customer(self, customer_id: int) -> Optional[Customer]: ...

    def get_template_record(self, template_id: int) -> Optional[TemplateRecord]: ...

    def fetch_inspections(self, customer_id: int, window: PeriodWindow) -> List[InspectionRecord]: ...


class ReportSink(Protocol):
    def mark_completed(self, report_id: int, file_path: str) -> None: ...


CanvasFactory = Callable[[Path, str], DocumentCanvas]


class Deadline:
    def __init__(self, seconds: Optional[float]) -> None:
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds if seconds else None

    def check(self) -> None:
        if self._expires_at is not None and time.monotonic() > self._expires_at:
            raise GenerationTimeoutError(f"report generation exceeded {self.seconds:g}s")


_LOCKS_GUARD = threading.Lock()
# Entries vanish once no generation holds the lock.
_REPORT_LOCKS: weakref.WeakValueDictionary[int, threading.Lock] = weakref.WeakValueDictionary()


def _report_lock(report_id: int) -> threading.Lock:
    with _LOCKS_GUARD:
        lock = _REPORT_LOCKS.get(report_id)
        if lock is None:
            lock = threading.Lock()
            _REPORT_LOCKS[report_id] = lock
        return lock


def report_output_path(reports_root: Path, report: ReportRef, now: Optional[datetime] = None) -> Path:
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    return reports_root / f"customer_{report.customer_id}" / f"{report.report_type}_report_{report.id}_{stamp}.pdf"


def ensure_output_dir(path: Path) -> None:
    """Create the parent directory; an existing directory is fine. One retry on failure."""
    last_error: Optional[OSError] = None
    for _attempt in range(2):
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return
        except OSError as e:
            last_error = e
            LOG.warning("Failed to create report directory %s: %s", path.parent, e)
    raise ReportIOError("could not create report output directory") from last_error


def _default_canvas_factory(path: Path, title: str) -> DocumentCanvas:
    return ReportLabCanvas(path, title=title, author="サーバー点検システム")


class ReportGenerator:
    """Runs one report through period resolution, aggregation, rendering and persistence."""

    def __init__(
        self,
        provider: ReportDataProvider,
        sink: ReportSink,
        settings: Settings,
        *,
        canvas_factory: Optional[CanvasFactory] = None,
        font_resolver: Optional[Callable[[], FontSet]] = None,
    ) -> None:
        self.provider = provider
        self.sink = sink
        self.settings = settings
        self.canvas_factory = canvas_factory or _default_canvas_factory
        self.font_resolver = font_resolver or (
            lambda: resolve_font_set(settings.font_path, settings.font_name)
        )

    def resolve_template(self, report: ReportRef) -> Template:
        if report.template_id:
            record = self.provider.get_template_record(report.template_id)
            if record is None:
                raise NotFoundError(f"template {report.template_id} not found")
            path = resolve_template_path(record.template_path, self.settings.templates_dir)
        else:
            path = default_template_path(report.report_type, self.settings.templates_dir)
        template = load_template(path)
        if template.type != report.report_type:
            raise InvalidTemplateError(
                f"template type '{template.type}' does not match report type '{report.report_type}'"
            )
        return template

    def generate(self, report_id: int, *, deadline: Optional[float] = None) -> GenerationResult:
        with _report_lock(int(report_id)):
            return self._generate(int(report_id), Deadline(deadline or self.settings.generate_deadline_sec))

    def _generate(self, report_id: int, deadline: Deadline) -> GenerationResult:
        report = self.provider.get_report(report_id)
        if report is None:
            raise NotFoundError(f"report {report_id} not found")
        customer = self.provider.get_customer(report.customer_id)
        if customer is None:
            raise NotFoundError(f"customer {report.customer_id} not found")

        template = self.resolve_template(report)
        window = resolve_period(report.report_type, report.report_date, report.report_period)
        deadline.check()

        inspections = self.provider.fetch_inspections(customer.id, window)
        deadline.check()

        model = merge_template_with_data(
            template,
            ReportData(
                customer_name=customer.name,
                report_date=report.report_date,
                report_period=report.report_period,
                inspections=inspections,
                notes=report.notes,
            ),
            default_footer=self.settings.footer_text,
        )

        out_path = report_output_path(self.settings.reports_root, report)
        ensure_output_dir(out_path)
        fonts = self.font_resolver()
        try:
            canvas = self.canvas_factory(out_path, model.title)
            outcome = render_document(model, canvas, fonts, generated_on=date.today(), check=deadline.check)
        except GenerationTimeoutError:
            _discard_partial(out_path)
            raise
        except OSError as e:
            _discard_partial(out_path)
            LOG.exception("Failed to write report %s", report_id)
            raise ReportIOError("could not write report file") from e

        self.sink.mark_completed(report.id, str(out_path))

        diagnostics: List[Diagnostic] = list(model.diagnostics) + list(outcome.diagnostics)
        diagnostics.extend(Diagnostic(section_index=None, section_type="font", message=m) for m in fonts.diagnostics)
        LOG.info(
            "Report %s completed: pages=%s sections=%s inspections=%s font=%s path=%s",
            report.id,
            outcome.page_count,
            len(model.sections),
            len(inspections),
            fonts.regular,
            out_path,
        )
        return GenerationResult(
            report_id=report.id,
            file_path=str(out_path),
            status=STATUS_COMPLETED,
            page_count=outcome.page_count,
            diagnostics=diagnostics,
        )


def _discard_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError:
        LOG.exception("Failed to remove partial report file: %s", path)
