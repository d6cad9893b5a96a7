from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfbase.ttfonts import TTFont

LOG = logging.getLogger(__name__)

CID_FALLBACK_FONT = "HeiseiKakuGo-W5"
BUILTIN_FONT = "Helvetica"
BUILTIN_BOLD_FONT = "Helvetica-Bold"


@dataclass(frozen=True)
class FontSet:
    regular: str
    bold: str
    source: str  # "ttf" | "cid" | "builtin"
    diagnostics: List[str] = field(default_factory=list)

    @property
    def fallback_used(self) -> bool:
        return self.source != "ttf"


def _already_registered(name: str) -> bool:
    return name in pdfmetrics.getRegisteredFontNames()


def resolve_font_set(
    font_path: Optional[Path],
    font_name: str,
    *,
    register: Callable[[Any], None] = pdfmetrics.registerFont,
) -> FontSet:
    """Register the Japanese glyph set once per document.

    Order: configured TTF file, reportlab's CID font, then Helvetica.
    A missing or broken font is logged and recorded, never raised.
    """
    diagnostics: List[str] = []

    if font_path is not None and Path(font_path).is_file():
        try:
            if not _already_registered(font_name):
                register(TTFont(font_name, str(font_path)))
            return FontSet(regular=font_name, bold=font_name, source="ttf", diagnostics=diagnostics)
        except Exception as e:
            msg = f"font '{font_name}' could not be registered: {e}"
            LOG.warning("PDF font registration failed, fallback to %s: %s", CID_FALLBACK_FONT, e)
            diagnostics.append(msg)
    else:
        msg = f"font file not found: {font_path}"
        LOG.warning("PDF font file not found (%s), fallback to %s", font_path, CID_FALLBACK_FONT)
        diagnostics.append(msg)

    try:
        if not _already_registered(CID_FALLBACK_FONT):
            register(UnicodeCIDFont(CID_FALLBACK_FONT))
        diagnostics.append(f"using fallback font {CID_FALLBACK_FONT}")
        return FontSet(regular=CID_FALLBACK_FONT, bold=CID_FALLBACK_FONT, source="cid", diagnostics=diagnostics)
    except Exception as e:
        LOG.warning("CID font %s unavailable, fallback to %s: %s", CID_FALLBACK_FONT, BUILTIN_FONT, e)
        diagnostics.append(f"CID font {CID_FALLBACK_FONT} unavailable: {e}")

    diagnostics.append(f"using built-in font {BUILTIN_FONT}")
    return FontSet(regular=BUILTIN_FONT, bold=BUILTIN_BOLD_FONT, source="builtin", diagnostics=diagnostics)
