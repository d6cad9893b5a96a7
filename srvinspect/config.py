from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
BASE_DIR = PACKAGE_DIR.parent
DATA_DIR = BASE_DIR / "data"

DEFAULT_DB_PATH = DATA_DIR / "srvinspect.db"
DEFAULT_REPORTS_ROOT = BASE_DIR / "reports"
DEFAULT_TEMPLATES_DIR = PACKAGE_DIR / "templates"
DEFAULT_FONT_PATH = BASE_DIR / "fonts" / "NotoSansJP-Regular.ttf"
DEFAULT_FONT_NAME = "NotoSansJP"
DEFAULT_FOOTER_TEXT = "サーバー点検システム"


def env_flag(name: str, default: str = "0") -> bool:
    v = os.getenv(name, default).strip().lower()
    return v in ("1", "true", "yes", "on")


def _env_path(name: str, default: Path) -> Path:
    raw = str(os.getenv(name) or "").strip()
    return Path(raw) if raw else default


def _env_text(name: str, default: str) -> str:
    raw = str(os.getenv(name) or "").strip()
    return raw or default


def _env_deadline(name: str) -> float | None:
    raw = str(os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if value <= 0:
        return None
    return max(1.0, min(3600.0, value))


@dataclass(frozen=True)
class Settings:
    db_path: Path
    reports_root: Path
    templates_dir: Path
    font_path: Path
    font_name: str
    footer_text: str
    generate_deadline_sec: float | None


def load_settings() -> Settings:
    """Read settings from the environment; called per request so tests can monkeypatch."""
    return Settings(
        db_path=_env_path("SRVINSPECT_DB_PATH", DEFAULT_DB_PATH),
        reports_root=_env_path("SRVINSPECT_REPORTS_ROOT", DEFAULT_REPORTS_ROOT),
        templates_dir=_env_path("SRVINSPECT_TEMPLATES_DIR", DEFAULT_TEMPLATES_DIR),
        font_path=_env_path("SRVINSPECT_FONT_PATH", DEFAULT_FONT_PATH),
        font_name=_env_text("SRVINSPECT_FONT_NAME", DEFAULT_FONT_NAME),
        footer_text=_env_text("SRVINSPECT_FOOTER_TEXT", DEFAULT_FOOTER_TEXT),
        generate_deadline_sec=_env_deadline("SRVINSPECT_GENERATE_DEADLINE_SEC"),
    )
