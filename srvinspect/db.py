from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from .report.models import Customer, InspectionRecord, PeriodWindow, ReportRef, ResultRecord, TemplateRecord

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS customers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  customer_name TEXT NOT NULL,
  created_at TEXT NOT NULL DEFAULT (datetime('now')),
  updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS devices (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  customer_id INTEGER NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
  device_name TEXT NOT NULL,
  model TEXT,
  location TEXT,
  device_type TEXT,
  hardware_type TEXT
);

CREATE TABLE IF NOT EXISTS inspection_item_names (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS inspection_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  device_id INTEGER NOT NULL REFERENCES devices(id) ON DELETE CASCADE,
  item_name_id INTEGER NOT NULL REFERENCES inspection_item_names(id),
  UNIQUE (device_id, item_name_id)
);

CREATE TABLE IF NOT EXISTS inspections (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  inspection_date TEXT NOT NULL,
  start_time TEXT,
  end_time TEXT,
  inspector_name TEXT NOT NULL,
  status TEXT NOT NULL DEFAULT 'completed'
);

CREATE TABLE IF NOT EXISTS inspection_results (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  inspection_id INTEGER NOT NULL REFERENCES inspections(id) ON DELETE CASCADE,
  inspection_item_id INTEGER REFERENCES inspection_items(id),
  device_id INTEGER NOT NULL REFERENCES devices(id),
  check_result INTEGER NOT NULL,
  note TEXT,
  checked_at TEXT
);

CREATE TABLE IF NOT EXISTS report_templates (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  type TEXT NOT NULL CHECK (type IN ('daily','monthly')),
  template_path TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS generated_reports (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  customer_id INTEGER NOT NULL REFERENCES customers(id),
  report_date TEXT NOT NULL,
  report_period TEXT NOT NULL,
  report_type TEXT NOT NULL CHECK (report_type IN ('daily','monthly')),
  template_id INTEGER REFERENCES report_templates(id),
  notes TEXT,
  file_path TEXT,
  status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft','completed')),
  created_at TEXT NOT NULL DEFAULT (datetime('now')),
  updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS ix_inspections_date ON inspections(inspection_date);
CREATE INDEX IF NOT EXISTS ix_inspection_results_inspection ON inspection_results(inspection_id);
"""


def _connect(db_path: Path | str) -> sqlite3.Connection:
    p = Path(db_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    timeout_sec = 30.0
    try:
        raw = str(os.getenv("SRVINSPECT_SQLITE_TIMEOUT_SEC") or "").strip()
        if raw:
            timeout_sec = float(raw)
    except ValueError:
        timeout_sec = 30.0
    timeout_sec = max(1.0, min(60.0, timeout_sec))
    con = sqlite3.connect(str(p), timeout=timeout_sec)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys=ON;")
    return con


@contextmanager
def db_conn(db_path: Path | str) -> Iterator[sqlite3.Connection]:
    con = _connect(db_path)
    try:
        yield con
        con.commit()
    finally:
        con.close()


def now_iso() -> str:
    return datetime.now().replace(microsecond=0).isoformat(sep=" ")


def init_db(db_path: Path | str) -> None:
    with db_conn(db_path) as con:
        con.executescript(SCHEMA_SQL)


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value or "").strip().replace("T", " ")
    return datetime.fromisoformat(text)


def _parse_date(value: Any) -> date:
    return date.fromisoformat(str(value or "").strip()[:10])


def _report_from_row(row: sqlite3.Row) -> ReportRef:
    return ReportRef(
        id=int(row["id"]),
        customer_id=int(row["customer_id"]),
        report_type=str(row["report_type"]),
        report_date=_parse_date(row["report_date"]),
        report_period=str(row["report_period"] or ""),
        template_id=int(row["template_id"]) if row["template_id"] is not None else None,
        notes=row["notes"],
        file_path=row["file_path"],
        status=str(row["status"] or "draft"),
    )


class SqliteReportStore:
    """Data provider and persistence sink for the report engine, backed by sqlite3."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)

    # --- data provider ---
    def get_report(self, report_id: int) -> Optional[ReportRef]:
        with db_conn(self.db_path) as con:
            row = con.execute("SELECT * FROM generated_reports WHERE id=?", (int(report_id),)).fetchone()
        return _report_from_row(row) if row else None

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        with db_conn(self.db_path) as con:
            row = con.execute("SELECT id, customer_name FROM customers WHERE id=?", (int(customer_id),)).fetchone()
        if not row:
            return None
        return Customer(id=int(row["id"]), name=str(row["customer_name"]))

    def get_template_record(self, template_id: int) -> Optional[TemplateRecord]:
        with db_conn(self.db_path) as con:
            row = con.execute(
                "SELECT id, name, type, template_path FROM report_templates WHERE id=?", (int(template_id),)
            ).fetchone()
        if not row:
            return None
        return TemplateRecord(
            id=int(row["id"]), name=str(row["name"]), type=str(row["type"]), template_path=str(row["template_path"])
        )

    def fetch_inspections(self, customer_id: int, window: PeriodWindow) -> List[InspectionRecord]:
        """Inspections touching the customer's devices within the window, newest first."""
        start = window.start.isoformat(sep=" ")
        end = window.end.isoformat(sep=" ")
        with db_conn(self.db_path) as con:
            rows = con.execute(
                """
                SELECT i.id AS inspection_id, i.inspection_date, i.inspector_name,
                       r.id AS result_id, r.device_id, d.device_name,
                       n.name AS item_name, r.check_result, r.note
                FROM inspections i
                JOIN inspection_results r ON r.inspection_id = i.id
                JOIN devices d ON d.id = r.device_id
                LEFT JOIN inspection_items it ON it.id = r.inspection_item_id
                LEFT JOIN inspection_item_names n ON n.id = it.item_name_id
                WHERE d.customer_id = ?
                  AND datetime(i.inspection_date) BETWEEN ? AND ?
                ORDER BY datetime(i.inspection_date) DESC, i.id DESC, r.id ASC
                """,
                (int(customer_id), start, end),
            ).fetchall()

        order: List[int] = []
        heads: Dict[int, Dict[str, Any]] = {}
        results: Dict[int, List[ResultRecord]] = {}
        for r in rows:
            iid = int(r["inspection_id"])
            if iid not in heads:
                order.append(iid)
                heads[iid] = {"date": _parse_dt(r["inspection_date"]), "inspector": str(r["inspector_name"] or "")}
                results[iid] = []
            results[iid].append(
                ResultRecord(
                    device_id=int(r["device_id"]) if r["device_id"] is not None else None,
                    device_name=r["device_name"],
                    item_name=r["item_name"],
                    check_result=bool(r["check_result"]),
                    note=r["note"],
                )
            )
        return [
            InspectionRecord(
                id=iid,
                inspection_date=heads[iid]["date"],
                inspector_name=heads[iid]["inspector"],
                results=tuple(results[iid]),
            )
            for iid in order
        ]

    # --- persistence sink ---
    def mark_completed(self, report_id: int, file_path: str) -> None:
        with db_conn(self.db_path) as con:
            con.execute(
                "UPDATE generated_reports SET file_path=?, status='completed', updated_at=? WHERE id=?",
                (str(file_path), now_iso(), int(report_id)),
            )

    # --- draft rows for the HTTP surface ---
    def create_report(
        self,
        *,
        customer_id: int,
        report_type: str,
        report_date: date,
        report_period: str,
        template_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Optional[ReportRef]:
        ts = now_iso()
        with db_conn(self.db_path) as con:
            cur = con.execute(
                """
                INSERT INTO generated_reports(
                  customer_id, report_date, report_period, report_type, template_id, notes, status, created_at, updated_at
                ) VALUES(?,?,?,?,?,?,'draft',?,?)
                """,
                (int(customer_id), report_date.isoformat(), report_period, report_type, template_id, notes, ts, ts),
            )
            new_id = int(cur.lastrowid)
        return self.get_report(new_id)
