from .generator import ReportGenerator
from .merge import ReportData, merge_template_with_data
from .period import resolve_period
from .templates import default_template_path, load_template, validate_template

__all__ = [
    "ReportData",
    "ReportGenerator",
    "default_template_path",
    "load_template",
    "merge_template_with_data",
    "resolve_period",
    "validate_template",
]
