#!/usr/bin/env python3
"""
Database Export Tool
Dumps the application tables to CSV or JSON files

Usage:
    python -m cloudguard.cli.export_database [--format csv|json] [--output-dir DIR]

CSV: one <table>.csv per table. Strings are quoted with doubled inner quotes,
JSON values are serialized and quoted the same way, NULL is empty.
JSON: one <table>.json per table plus database_export.json with all tables.
Empty tables are skipped; a table that fails to export is logged and skipped.
"""

import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import get_settings
from ..utils.logging_security import redact_database_url, sanitize_error_message_for_log
from ..utils.query_builder import QueryBuilder, quote_identifier

logger = logging.getLogger(__name__)

EXPORT_TABLES = [
    "session",
    "organizations",
    "users",
    "alerts",
    "resources",
    "security_drifts",
    "cost_anomalies",
    "recommendations",
    "cloud_credentials",
    "cost_history",
    "cost_predictions",
    "cost_optimization_suggestions",
]

COMBINED_EXPORT_FILE = "database_export.json"


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return _quote(json.dumps(value))
    if isinstance(value, (datetime, date)):
        return _quote(value.isoformat())
    if isinstance(value, str):
        return _quote(value)
    return str(value)


def rows_to_csv(columns: Sequence[str], rows: List[Dict[str, Any]]) -> str:
    lines = [",".join(columns)]
    for row in rows:
        lines.append(",".join(csv_value(row[column]) for column in columns))
    return "\n".join(lines) + "\n"


def fetch_rows(engine: Engine, table: str) -> List[Dict[str, Any]]:
    query, params = QueryBuilder(quote_identifier(table)).build()
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(text(query), params).mappings()]


def export_database(
    database_url: str,
    output_dir: Path,
    fmt: str = "csv",
    tables: Optional[List[str]] = None,
) -> Dict[str, int]:
    """
    Export tables to ``output_dir``.

    Returns:
        Rows written per exported table (empty and failed tables are absent)
    """
    if fmt not in ("csv", "json"):
        raise ValueError(f"Unsupported export format: {fmt}")

    output_dir.mkdir(parents=True, exist_ok=True)
    engine = create_engine(database_url)
    exported: Dict[str, int] = {}
    combined: Dict[str, List[Dict[str, Any]]] = {}

    try:
        for table in tables or EXPORT_TABLES:
            logger.info(f"Exporting table: {table}")
            try:
                rows = fetch_rows(engine, table)
            except SQLAlchemyError as e:
                logger.error(f"Error exporting table {table}: {sanitize_error_message_for_log(e)}")
                continue

            if not rows:
                logger.info(f"No data in table: {table}")
                continue

            if fmt == "csv":
                path = output_dir / f"{table}.csv"
                path.write_text(rows_to_csv(list(rows[0].keys()), rows), encoding="utf-8")
            else:
                path = output_dir / f"{table}.json"
                path.write_text(json.dumps(rows, indent=2, default=str), encoding="utf-8")
                combined[table] = rows

            exported[table] = len(rows)
            logger.info(f"Exported {len(rows)} rows to {path}")

        if fmt == "json":
            (output_dir / COMBINED_EXPORT_FILE).write_text(
                json.dumps(combined, indent=2, default=str), encoding="utf-8"
            )
    finally:
        engine.dispose()

    return exported


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Export CloudGuard tables to CSV or JSON")
    parser.add_argument("--database-url", help="Database URL (default: DATABASE_URL)")
    parser.add_argument("--format", choices=["csv", "json"], default="csv")
    parser.add_argument("--output-dir", default=None, help="Output directory (default: database_exports or json_exports)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    database_url = args.database_url or get_settings().database_url
    output_dir = Path(args.output_dir or ("database_exports" if args.format == "csv" else "json_exports"))
    logger.info(f"Exporting {redact_database_url(database_url)} to {output_dir}")

    exported = export_database(database_url, output_dir, args.format)
    logger.info(f"Database export completed: {len(exported)} tables, {sum(exported.values())} rows")
    return 0


if __name__ == "__main__":
    sys.exit(main())
