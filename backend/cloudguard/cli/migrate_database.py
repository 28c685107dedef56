#!/usr/bin/env python3
"""
Database Migration Tool
Copies every table of the source database into a target database

Usage:
    python -m cloudguard.cli.migrate_database [--target-url URL] [--create-tables]

The source is DATABASE_URL. The target is --target-url, else
NEON_DATABASE_URL, else the RDS_* parameters from .env.rds.

Rows are copied one at a time with INSERT ... ON CONFLICT DO NOTHING, so a
re-run skips rows that already exist. A failing row or table is logged and
skipped; the run ends with a per-table tally.
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import MetaData, create_engine, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import RDSSettings, get_settings
from ..utils.logging_security import redact_database_url, sanitize_error_message_for_log
from ..utils.mutation_builders import InsertBuilder
from ..utils.query_builder import QueryBuilder, quote_identifier

logger = logging.getLogger(__name__)


@dataclass
class TableResult:
    table: str
    migrated: int = 0
    total: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class MigrationReport:
    tables: List[TableResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.tables if result.succeeded)

    @property
    def failed(self) -> int:
        return len(self.tables) - self.succeeded


def resolve_target_url(target_url: Optional[str] = None) -> str:
    """
    Target database URL: explicit argument, NEON_DATABASE_URL, then .env.rds.

    Raises:
        ValueError: No target is configured
    """
    if target_url:
        return target_url
    settings = get_settings()
    if settings.neon_database_url:
        return settings.neon_database_url
    try:
        return RDSSettings().url
    except ValidationError:
        raise ValueError("No target database: pass --target-url, set NEON_DATABASE_URL or provide .env.rds")


def list_tables(engine: Engine) -> List[str]:
    """Base tables of the public schema (all tables for non-PostgreSQL engines)."""
    if engine.dialect.name != "postgresql":
        return sorted(inspect(engine).get_table_names())

    query, params = (
        QueryBuilder("information_schema.tables")
        .select("table_name")
        .where("table_schema = :schema", "public", "schema")
        .where("table_type = :table_type", "BASE TABLE", "table_type")
        .order_by("table_name")
        .build()
    )
    with engine.connect() as conn:
        return [row.table_name for row in conn.execute(text(query), params)]


def build_create_table(table: str, columns: List[Dict[str, Any]]) -> str:
    """CREATE TABLE IF NOT EXISTS statement from information_schema.columns rows."""
    definitions = []
    for column in columns:
        definition = f"{quote_identifier(column['column_name'])} {column['data_type']}"
        if column.get("character_maximum_length"):
            definition += f"({column['character_maximum_length']})"
        if column.get("is_nullable") == "NO":
            definition += " NOT NULL"
        if column.get("column_default"):
            definition += f" DEFAULT {column['column_default']}"
        definitions.append(definition)
    return f"CREATE TABLE IF NOT EXISTS {quote_identifier(table)} (\n  " + ",\n  ".join(definitions) + "\n)"


def create_target_tables(source: Engine, target: Engine, tables: List[str]) -> int:
    """Recreate table definitions on the target. Returns the number created or verified."""
    if source.dialect.name != "postgresql":
        metadata = MetaData()
        metadata.reflect(bind=source, only=tables)
        metadata.create_all(bind=target, checkfirst=True)
        return len(tables)

    created = 0
    for table in tables:
        query, params = (
            QueryBuilder("information_schema.columns")
            .select("column_name", "data_type", "character_maximum_length", "column_default", "is_nullable")
            .where("table_schema = :schema", "public", "schema")
            .where("table_name = :table", table, "table")
            .order_by("ordinal_position")
            .build()
        )
        try:
            with source.connect() as conn:
                columns = [dict(row) for row in conn.execute(text(query), params).mappings()]
            if not columns:
                logger.warning(f"No column information for {table}, skipping")
                continue
            with target.begin() as conn:
                conn.execute(text(build_create_table(table, columns)))
            created += 1
            logger.info(f"Created table {table}")
        except SQLAlchemyError as e:
            logger.error(f"Error creating table {table}: {sanitize_error_message_for_log(e)}")
    return created


def _bindable(value: Any) -> Any:
    # JSON column values come back as dict/list; bind them as JSON text
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def migrate_table(source_conn: Connection, target: Engine, table: str) -> Tuple[int, int]:
    """
    Copy one table row by row.

    Returns:
        (rows inserted or already present, rows read)
    """
    query, params = QueryBuilder(quote_identifier(table)).build()
    rows = source_conn.execute(text(query), params).mappings().all()

    migrated = 0
    for row in rows:
        insert, insert_params = (
            InsertBuilder(quote_identifier(table))
            .values_dict({column: _bindable(value) for column, value in row.items()})
            .on_conflict_do_nothing()
            .build()
        )
        try:
            with target.begin() as conn:
                conn.execute(text(insert), insert_params)
            migrated += 1
        except SQLAlchemyError as e:
            logger.warning(f"Error inserting row in {table}: {sanitize_error_message_for_log(e)}")
    return migrated, len(rows)


def migrate(source_url: str, target_url: str, create_tables: bool = False) -> MigrationReport:
    source = create_engine(source_url)
    target = create_engine(target_url)
    report = MigrationReport()
    try:
        tables = list_tables(source)
        logger.info(f"Tables to migrate: {', '.join(tables) or 'none'}")

        if create_tables:
            create_target_tables(source, target, tables)

        for table in tables:
            result = TableResult(table)
            try:
                with source.connect() as source_conn:
                    result.migrated, result.total = migrate_table(source_conn, target, table)
                logger.info(f"Migrated {result.migrated}/{result.total} rows from {table}")
            except SQLAlchemyError as e:
                result.error = sanitize_error_message_for_log(e)
                logger.error(f"Error migrating table {table}: {result.error}")
            report.tables.append(result)
    finally:
        source.dispose()
        target.dispose()

    logger.info(f"Migration finished: {report.succeeded} tables succeeded, {report.failed} failed")
    return report


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Copy all tables from DATABASE_URL into a target database")
    parser.add_argument("--source-url", help="Source database URL (default: DATABASE_URL)")
    parser.add_argument("--target-url", help="Target database URL (default: NEON_DATABASE_URL or .env.rds)")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables on the target first")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    source_url = args.source_url or get_settings().database_url
    try:
        target_url = resolve_target_url(args.target_url)
    except ValueError as e:
        logger.error(str(e))
        return 2

    logger.info(f"Migrating {redact_database_url(source_url)} -> {redact_database_url(target_url)}")
    report = migrate(source_url, target_url, create_tables=args.create_tables)
    return 0 if report.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
