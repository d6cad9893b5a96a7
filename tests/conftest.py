from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from srvinspect.config import DEFAULT_TEMPLATES_DIR, Settings
from srvinspect.db import init_db
from srvinspect.report.fonts import FontSet
from srvinspect.report.models import InspectionRecord, ResultRecord


class RecordingCanvas:
    """DocumentCanvas double: fixed text height, records every draw call."""

    def __init__(self, page_width: float = 595.0, page_height: float = 842.0, text_height: Optional[float] = 10.0):
        self.page_width = page_width
        self.page_height = page_height
        self.text_height = text_height
        self._page_number = 1
        self.texts: List[Dict[str, Any]] = []
        self.lines: List[Tuple[int, float]] = []
        self.saved = False

    @property
    def page_number(self) -> int:
        return self._page_number

    def measure_text(self, text, font, size, width=None):
        return self.text_height

    def draw_text(self, x, y, text, font, size, width=None, align="left"):
        self.texts.append({"page": self._page_number, "x": x, "y": y, "text": text, "font": font, "size": size})
        return self.text_height or 0.0

    def draw_line(self, x1, y, x2):
        self.lines.append((self._page_number, y))

    def new_page(self):
        self._page_number += 1

    def save(self):
        self.saved = True

    def texts_on(self, page: int) -> List[str]:
        return [t["text"] for t in self.texts if t["page"] == page]

    def find(self, text: str) -> List[Dict[str, Any]]:
        return [t for t in self.texts if t["text"] == text]


@pytest.fixture()
def recording_canvas() -> RecordingCanvas:
    return RecordingCanvas()


@pytest.fixture()
def builtin_fonts() -> FontSet:
    return FontSet(regular="Helvetica", bold="Helvetica-Bold", source="builtin")


def make_result(device: Optional[str], item: Optional[str], ok: bool, note: Optional[str] = None, device_id: int = 1) -> ResultRecord:
    return ResultRecord(device_id=device_id, device_name=device, item_name=item, check_result=ok, note=note)


def make_inspection(iid: int, when: datetime, inspector: str, *results: ResultRecord) -> InspectionRecord:
    return InspectionRecord(id=iid, inspection_date=when, inspector_name=inspector, results=tuple(results))


@pytest.fixture()
def two_inspections() -> List[InspectionRecord]:
    return [
        make_inspection(
            2,
            datetime(2025, 3, 15, 14, 0, 0),
            "佐藤",
            make_result("web-01", "CPU使用率", True),
            make_result("web-01", "ディスク容量", False, "残り5%"),
        ),
        make_inspection(
            1,
            datetime(2025, 3, 15, 9, 30, 0),
            "田中",
            make_result("db-01", "CPU使用率", True),
            make_result("db-01", "ディスク容量", False),
        ),
    ]


def make_settings(tmp_path: Path, **overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "db_path": tmp_path / "srvinspect.db",
        "reports_root": tmp_path / "reports",
        "templates_dir": DEFAULT_TEMPLATES_DIR,
        "font_path": tmp_path / "fonts" / "missing.ttf",
        "font_name": "TestFont",
        "footer_text": "サーバー点検システム",
        "generate_deadline_sec": None,
    }
    values.update(overrides)
    return Settings(**values)


def seed_db(db_path: Path) -> Dict[str, int]:
    """Customer with two devices, two daily inspections on 2025-03-15 and one on 2025-03-20."""
    init_db(db_path)
    con = sqlite3.connect(str(db_path))
    try:
        cur = con.cursor()
        cur.execute("INSERT INTO customers(customer_name) VALUES ('テスト顧客')")
        customer_id = cur.lastrowid
        cur.execute("INSERT INTO customers(customer_name) VALUES ('他社')")
        other_customer_id = cur.lastrowid

        cur.execute("INSERT INTO devices(customer_id, device_name) VALUES (?, 'web-01')", (customer_id,))
        web = cur.lastrowid
        cur.execute("INSERT INTO devices(customer_id, device_name) VALUES (?, 'db-01')", (customer_id,))
        dbs = cur.lastrowid
        cur.execute("INSERT INTO devices(customer_id, device_name) VALUES (?, 'other-01')", (other_customer_id,))
        other = cur.lastrowid

        cur.execute("INSERT INTO inspection_item_names(name) VALUES ('CPU使用率')")
        cpu = cur.lastrowid
        cur.execute("INSERT INTO inspection_item_names(name) VALUES ('ディスク容量')")
        disk = cur.lastrowid
        items: Dict[Tuple[int, int], int] = {}
        for dev in (web, dbs, other):
            for name_id in (cpu, disk):
                cur.execute("INSERT INTO inspection_items(device_id, item_name_id) VALUES (?, ?)", (dev, name_id))
                items[(dev, name_id)] = cur.lastrowid

        def inspect(when: str, inspector: str, rows: List[Tuple[int, int, int, Optional[str]]]) -> None:
            cur.execute("INSERT INTO inspections(inspection_date, inspector_name) VALUES (?, ?)", (when, inspector))
            iid = cur.lastrowid
            for dev, name_id, ok, note in rows:
                cur.execute(
                    "INSERT INTO inspection_results(inspection_id, inspection_item_id, device_id, check_result, note) VALUES (?,?,?,?,?)",
                    (iid, items[(dev, name_id)], dev, ok, note),
                )

        inspect("2025-03-15 09:30:00", "田中", [(web, cpu, 1, None), (web, disk, 0, "残り5%")])
        inspect("2025-03-15T14:00:00", "佐藤", [(dbs, cpu, 1, None), (dbs, disk, 0, None)])
        inspect("2025-03-20 10:00:00", "田中", [(web, disk, 0, None), (dbs, disk, 0, None)])
        inspect("2025-03-15 11:00:00", "他社担当", [(other, cpu, 0, None)])

        cur.execute(
            "INSERT INTO generated_reports(customer_id, report_date, report_period, report_type, status) VALUES (?,?,?,?, 'draft')",
            (customer_id, "2025-03-15", "2025-03-15", "daily"),
        )
        daily_report = cur.lastrowid
        cur.execute(
            "INSERT INTO generated_reports(customer_id, report_date, report_period, report_type, notes, status) VALUES (?,?,?,?,?, 'draft')",
            (customer_id, "2025-03-31", "2025年03月", "monthly", "来月はUPS点検を予定"),
        )
        monthly_report = cur.lastrowid
        con.commit()
    finally:
        con.close()
    return {
        "customer_id": customer_id,
        "other_customer_id": other_customer_id,
        "daily_report": daily_report,
        "monthly_report": monthly_report,
    }


def report_row(db_path: Path, report_id: int) -> sqlite3.Row:
    con = sqlite3.connect(str(db_path))
    con.row_factory = sqlite3.Row
    try:
        return con.execute("SELECT * FROM generated_reports WHERE id=?", (report_id,)).fetchone()
    finally:
        con.close()


