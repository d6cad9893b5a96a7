from __future__ import annotations


class ReportError(Exception):
    """Base class for document-level report generation failures."""

    status_code = 500


class NotFoundError(ReportError):
    status_code = 404


class TemplateNotFoundError(NotFoundError):
    pass


class TemplateParseError(ReportError):
    status_code = 400


class InvalidTemplateError(ReportError):
    status_code = 400


class InvalidPeriodFormatError(ReportError):
    status_code = 400


class InvalidReportTypeError(ReportError):
    status_code = 400


class ReportIOError(ReportError):
    status_code = 500


class GenerationTimeoutError(ReportError):
    status_code = 504


class SectionRenderDegradation(Exception):
    """Non-fatal: a section was rendered as a placeholder. Logged, never propagated."""

    def __init__(self, section_type: str, reason: str) -> None:
        super().__init__(f"section '{section_type}' degraded: {reason}")
        self.section_type = section_type
        self.reason = reason
