from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Body, HTTPException, Query
from fastapi.responses import FileResponse

from ..config import Settings, load_settings
from ..db import SqliteReportStore
from ..report.generator import ReportGenerator
from ..report.models import ReportRef
from ..schemas import GenerateData, ReportCreate, ReportOut

LOG = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])


def _store(settings: Settings) -> SqliteReportStore:
    return SqliteReportStore(settings.db_path)


def _report_out(report: ReportRef, settings: Settings) -> ReportOut:
    return ReportOut(
        id=report.id,
        customer_id=report.customer_id,
        report_type=report.report_type,
        report_date=report.report_date,
        report_period=report.report_period,
        template_id=report.template_id,
        notes=report.notes,
        file_path=_public_path(report.file_path, settings),
        status=report.status,
    )


def _public_path(file_path: Optional[str], settings: Settings) -> Optional[str]:
    # Paths are reported relative to the reports root; the root itself stays private.
    if not file_path:
        return None
    p = Path(file_path)
    try:
        return p.resolve().relative_to(settings.reports_root.resolve()).as_posix()
    except ValueError:
        return p.name


@router.post("", status_code=201)
def create_report(payload: ReportCreate = Body(...)):
    settings = load_settings()
    store = _store(settings)
    if store.get_customer(payload.customer_id) is None:
        raise HTTPException(status_code=404, detail="customer not found")
    if payload.template_id is not None:
        record = store.get_template_record(payload.template_id)
        if record is None:
            raise HTTPException(status_code=404, detail="template not found")
        if record.type != payload.report_type:
            raise HTTPException(status_code=400, detail="template type does not match report type")
    report = store.create_report(
        customer_id=payload.customer_id,
        report_type=payload.report_type,
        report_date=payload.report_date,
        report_period=payload.report_period.strip(),
        template_id=payload.template_id,
        notes=payload.notes,
    )
    if report is None:
        raise HTTPException(status_code=500, detail="report could not be created")
    return {"success": True, "data": _report_out(report, settings).model_dump(mode="json")}


@router.get("/{report_id}")
def get_report(report_id: int):
    settings = load_settings()
    report = _store(settings).get_report(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="report not found")
    return {"success": True, "data": _report_out(report, settings).model_dump(mode="json")}


@router.post("/generate/{report_id}")
def generate_report(report_id: int, deadline: Optional[float] = Query(default=None, gt=0, le=3600)):
    """Generate the PDF synchronously. Domain errors are mapped by the app's ReportError handler."""
    settings = load_settings()
    store = _store(settings)
    result = ReportGenerator(store, store, settings).generate(report_id, deadline=deadline)
    data = GenerateData(
        id=result.report_id,
        filePath=_public_path(result.file_path, settings) or "",
        status=result.status,
    )
    return {"success": True, "data": data.model_dump()}


@router.get("/download/{report_id}")
def download_report(report_id: int):
    settings = load_settings()
    report = _store(settings).get_report(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="report not found")
    if not report.file_path:
        raise HTTPException(status_code=400, detail="report has not been generated yet")
    path = Path(report.file_path)
    if not path.is_file():
        LOG.warning("Report %s file missing on disk", report_id)
        raise HTTPException(status_code=404, detail="report file not found")
    return FileResponse(str(path), media_type="application/pdf", filename=path.name)
