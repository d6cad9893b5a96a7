import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from .config import env_flag, load_settings
from .db import init_db
from .errors import ReportError
from .routers import reports

LOG = logging.getLogger("srvinspect")

app = FastAPI(title="srvinspect", version="0.1.0")


@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/docs")


@app.exception_handler(ReportError)
async def report_error_handler(request: Request, exc: ReportError):
    # Class name and message only; no traceback or filesystem path leaves the process.
    LOG.warning("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": type(exc).__name__, "message": str(exc)},
    )


app.include_router(reports.router)


@app.on_event("startup")
def init_db_if_missing():
    """
    Ensure the schema exists on first boot.
    """
    if not env_flag("SRVINSPECT_INIT_DB", "1"):
        return
    init_db(load_settings().db_path)
