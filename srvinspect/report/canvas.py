from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

LEADING_RATIO = 1.2


class DocumentCanvas(Protocol):
    """Paged drawing surface. y is measured downward from the top edge of the page."""

    page_width: float
    page_height: float

    @property
    def page_number(self) -> int: ...

    def measure_text(self, text: str, font: str, size: float, width: Optional[float] = None) -> Optional[float]: ...

    def draw_text(
        self,
        x: float,
        y: float,
        text: str,
        font: str,
        size: float,
        width: Optional[float] = None,
        align: str = "left",
    ) -> float: ...

    def draw_line(self, x1: float, y: float, x2: float) -> None: ...

    def new_page(self) -> None: ...

    def save(self) -> None: ...


def _split_long_line(line: str, font: str, size: float, width: float) -> List[str]:
    # Japanese text has no spaces, so simpleSplit leaves it on one line.
    out: List[str] = []
    buf = ""
    for ch in line:
        if buf and pdfmetrics.stringWidth(buf + ch, font, size) > width:
            out.append(buf)
            buf = ch
        else:
            buf += ch
    if buf or not out:
        out.append(buf)
    return out


def wrap_text(text: str, font: str, size: float, width: Optional[float]) -> List[str]:
    raw = str(text if text is not None else "")
    if width is None or width <= 0:
        return raw.split("\n") or [""]
    lines: List[str] = []
    for line in simpleSplit(raw, font, size, width) or [""]:
        if pdfmetrics.stringWidth(line, font, size) > width:
            lines.extend(_split_long_line(line, font, size, width))
        else:
            lines.append(line)
    return lines


class ReportLabCanvas:
    """DocumentCanvas over a reportlab canvas writing straight to a file."""

    def __init__(
        self,
        path: Path | str,
        *,
        pagesize: Tuple[float, float] = A4,
        title: str = "",
        author: str = "",
        subject: str = "",
    ) -> None:
        self.path = str(path)
        self.page_width, self.page_height = pagesize
        self._c = canvas.Canvas(self.path, pagesize=pagesize)
        if title:
            self._c.setTitle(title)
        if author:
            self._c.setAuthor(author)
        if subject:
            self._c.setSubject(subject)
        self._page_number = 1

    @property
    def page_number(self) -> int:
        return self._page_number

    def measure_text(self, text: str, font: str, size: float, width: Optional[float] = None) -> Optional[float]:
        return len(wrap_text(text, font, size, width)) * size * LEADING_RATIO

    def draw_text(
        self,
        x: float,
        y: float,
        text: str,
        font: str,
        size: float,
        width: Optional[float] = None,
        align: str = "left",
    ) -> float:
        lines = wrap_text(text, font, size, width)
        leading = size * LEADING_RATIO
        self._c.setFont(font, size)
        baseline = self.page_height - y - size
        for line in lines:
            if align == "center" and width:
                self._c.drawCentredString(x + width / 2.0, baseline, line)
            else:
                self._c.drawString(x, baseline, line)
            baseline -= leading
        return len(lines) * leading

    def draw_line(self, x1: float, y: float, x2: float) -> None:
        self._c.line(x1, self.page_height - y, x2, self.page_height - y)

    def new_page(self) -> None:
        self._c.showPage()
        self._page_number += 1

    def save(self) -> None:
        self._c.showPage()
        self._c.save()
