from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field

ReportType = Literal["daily", "monthly"]
ReportStatus = Literal["draft", "completed"]


# --- Generated report ---
class ReportCreate(BaseModel):
    customer_id: int = Field(..., ge=1)
    report_type: ReportType
    report_date: date
    report_period: str = Field(..., min_length=1, max_length=20)
    template_id: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = Field(default=None, max_length=4000)


class ReportOut(BaseModel):
    id: int
    customer_id: int
    report_type: ReportType
    report_date: date
    report_period: str
    template_id: Optional[int] = None
    notes: Optional[str] = None
    file_path: Optional[str] = None
    status: ReportStatus


class GenerateData(BaseModel):
    id: int
    filePath: str
    status: ReportStatus
