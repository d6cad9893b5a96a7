from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from ..errors import InvalidReportTypeError, InvalidTemplateError, TemplateNotFoundError, TemplateParseError
from .models import REPORT_TYPES, Section, Template

LOG = logging.getLogger(__name__)


def read_template_document(path: Path | str) -> Dict[str, Any]:
    p = Path(path)
    if not p.is_file():
        raise TemplateNotFoundError(f"template not found: {p.name}")
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        LOG.warning("Failed to parse report template %s: %s", p, e)
        raise TemplateParseError(f"template is not valid JSON: {p.name}") from e
    if not isinstance(raw, dict):
        raise TemplateParseError(f"template must be a JSON object: {p.name}")
    return raw


def validate_template(raw: Any) -> bool:
    """Check the minimum shape of a template document. Never raises."""
    if not isinstance(raw, dict):
        return False
    if not raw.get("name") or not raw.get("type") or not raw.get("sections"):
        return False
    if raw.get("type") not in REPORT_TYPES:
        return False
    sections = raw.get("sections")
    if not isinstance(sections, list) or len(sections) == 0:
        return False
    for section in sections:
        if not isinstance(section, dict):
            return False
        if not section.get("title") or not section.get("type"):
            return False
    return True


def template_from_document(raw: Dict[str, Any]) -> Template:
    if not validate_template(raw):
        raise InvalidTemplateError("invalid template format")
    footer = raw.get("footer")
    footer_text = None
    if isinstance(footer, dict) and footer.get("text"):
        footer_text = str(footer["text"])
    return Template(
        name=str(raw["name"]),
        type=str(raw["type"]),
        sections=tuple(Section(title=str(s["title"]), type=str(s["type"])) for s in raw["sections"]),
        footer_text=footer_text,
    )


def load_template(path: Path | str) -> Template:
    """Load and validate a template file.

    Raises TemplateNotFoundError, TemplateParseError or InvalidTemplateError.
    """
    return template_from_document(read_template_document(path))


def default_template_path(report_type: str, templates_dir: Path) -> Path:
    if report_type not in REPORT_TYPES:
        raise InvalidReportTypeError(f"invalid report type: {report_type}")
    return templates_dir / "reports" / f"{report_type}_template.json"


def resolve_template_path(template_path: str, templates_dir: Path) -> Path:
    """Stored template paths are relative to the templates root unless absolute."""
    p = Path(str(template_path or "").strip())
    if p.is_absolute():
        return p
    return templates_dir / p
