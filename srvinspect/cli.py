from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .config import load_settings
from .db import SqliteReportStore, init_db
from .errors import ReportError
from .report.generator import ReportGenerator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="srvinspect", description="点検レポート生成")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create the sqlite schema if missing")

    gen = sub.add_parser("generate", help="render one generated_reports row to PDF")
    gen.add_argument("--report-id", type=int, required=True)
    gen.add_argument("--deadline", type=float, default=None, help="abort after N seconds")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings()

    if args.command == "init-db":
        init_db(settings.db_path)
        print(f"OK db: {settings.db_path}")
        return 0

    store = SqliteReportStore(settings.db_path)
    try:
        result = ReportGenerator(store, store, settings).generate(args.report_id, deadline=args.deadline)
    except ReportError as e:
        print(f"ERROR {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    print("OK")
    print(f"report: {result.report_id}")
    print(f"pdf:    {result.file_path}")
    print(f"pages:  {result.page_count}")
    for d in result.diagnostics:
        print(f"note:   [{d.section_type}] {d.message}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
