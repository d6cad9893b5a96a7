from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from ..config import DEFAULT_FOOTER_TEXT
from .models import Diagnostic, InspectionRecord, RenderedSection, RenderModel, Template
from .sections import SectionInput, empty_content, process_section

LOG = logging.getLogger(__name__)


@dataclass
class ReportData:
    customer_name: str
    report_date: date
    report_period: str
    inspections: Sequence[InspectionRecord] = field(default_factory=tuple)
    notes: Optional[str] = None


def merge_template_with_data(
    template: Template,
    data: ReportData,
    *,
    default_footer: str = DEFAULT_FOOTER_TEXT,
) -> RenderModel:
    """Pair every template section with its processed content, in template order.

    A processor failure degrades that one section to its empty content and is
    recorded as a diagnostic; the returned model is always complete.
    """
    section_input = SectionInput(
        inspections=tuple(data.inspections or ()),
        report_period=data.report_period,
        report_date=data.report_date,
        notes=data.notes,
    )
    sections: List[RenderedSection] = []
    diagnostics: List[Diagnostic] = []
    for index, section in enumerate(template.sections):
        try:
            content = process_section(section.type, section_input)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            LOG.warning("Section %d (%s) processing failed; using empty content: %s", index, section.type, e)
            diagnostics.append(Diagnostic(section_index=index, section_type=section.type, message=str(e)))
            content = empty_content(section.type)
        sections.append(RenderedSection(title=section.title, type=section.type, content=content))

    return RenderModel(
        title=template.name,
        customer_name=data.customer_name,
        report_type=template.type,
        report_period=data.report_period,
        report_date=data.report_date,
        sections=sections,
        footer_text=template.footer_text or default_footer,
        diagnostics=diagnostics,
    )
