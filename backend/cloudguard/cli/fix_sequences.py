#!/usr/bin/env python3
"""
Sequence Repair Tool
Re-links serial id sequences after rows were copied in with explicit ids

Usage:
    python -m cloudguard.cli.fix_sequences [--database-url URL]

For each serial-keyed table the <table>_id_seq sequence is created if
missing, set as the id column default, and moved to MAX(id). PostgreSQL only.
"""

import argparse
import logging
import sys
from typing import Dict, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from ..config import get_settings
from ..utils.logging_security import redact_database_url, sanitize_error_message_for_log
from ..utils.query_builder import quote_identifier

logger = logging.getLogger(__name__)

SERIAL_TABLES = [
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


def sequence_statements(table: str) -> List[str]:
    """DDL that ensures ``<table>_id_seq`` exists and feeds the id column."""
    sequence = f"{table}_id_seq"
    quoted_table = quote_identifier(table)
    quoted_sequence = quote_identifier(sequence)
    return [
        f"CREATE SEQUENCE IF NOT EXISTS {quoted_sequence} START WITH 1 INCREMENT BY 1",
        f"ALTER TABLE {quoted_table} ALTER COLUMN id SET DEFAULT nextval('{quoted_sequence}')",
        f"ALTER SEQUENCE {quoted_sequence} OWNED BY {quoted_table}.id",
    ]


def fix_sequences(database_url: str, tables: Optional[List[str]] = None) -> Dict[str, Optional[int]]:
    """
    Returns:
        Sequence position per repaired table (None when the table is empty)
    """
    engine = create_engine(database_url)
    if engine.dialect.name != "postgresql":
        engine.dispose()
        raise ValueError("Sequence repair requires a PostgreSQL database")

    fixed: Dict[str, Optional[int]] = {}
    try:
        for table in tables or SERIAL_TABLES:
            try:
                with engine.begin() as conn:
                    exists = conn.execute(
                        text(
                            "SELECT EXISTS (SELECT FROM information_schema.tables "
                            "WHERE table_schema = 'public' AND table_name = :table)"
                        ),
                        {"table": table},
                    ).scalar()
                    if not exists:
                        logger.warning(f"Table {table} does not exist, skipping")
                        continue

                    for statement in sequence_statements(table):
                        conn.execute(text(statement))

                    max_id = conn.execute(text(f"SELECT COALESCE(MAX(id), 0) FROM {quote_identifier(table)}")).scalar()
                    if max_id:
                        conn.execute(
                            text("SELECT setval(:sequence, :max_id, true)"),
                            {"sequence": quote_identifier(f"{table}_id_seq"), "max_id": int(max_id)},
                        )
                        logger.info(f"Set sequence {table}_id_seq to current max ID: {max_id}")
                    else:
                        logger.info(f"Table {table} is empty, keeping sequence at its start value")
                    fixed[table] = int(max_id) or None
            except SQLAlchemyError as e:
                logger.error(f"Error fixing sequence for {table}: {sanitize_error_message_for_log(e)}")
    finally:
        engine.dispose()
    return fixed


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Repair serial id sequences")
    parser.add_argument("--database-url", help="Database URL (default: DATABASE_URL)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    database_url = args.database_url or get_settings().database_url
    logger.info(f"Repairing sequences on {redact_database_url(database_url)}")
    try:
        fixed = fix_sequences(database_url)
    except ValueError as e:
        logger.error(str(e))
        return 2
    logger.info(f"Repaired {len(fixed)} sequences")
    return 0


if __name__ == "__main__":
    sys.exit(main())
