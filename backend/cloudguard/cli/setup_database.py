#!/usr/bin/env python3
"""
Database Setup Tool
Creates all CloudGuard tables and seeds the built-in compliance frameworks

Usage:
    python -m cloudguard.cli.setup_database [--database-url URL]
"""

import argparse
import logging
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import Base, create_db_engine
from ..services.compliance_service import seed_frameworks
from ..utils.logging_security import redact_database_url, sanitize_error_message_for_log

logger = logging.getLogger(__name__)


def setup_database(database_url: str) -> int:
    """
    Create missing tables and seed frameworks.

    Returns:
        Number of compliance controls inserted
    """
    engine = create_db_engine(database_url)
    try:
        Base.metadata.create_all(bind=engine)
        logger.info(f"Created {len(Base.metadata.tables)} tables (existing tables kept)")
        with Session(bind=engine) as db:
            return seed_frameworks(db)
    finally:
        engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Create CloudGuard tables and seed reference data")
    parser.add_argument("--database-url", help="Database URL (default: DATABASE_URL)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    database_url = args.database_url or get_settings().database_url
    logger.info(f"Setting up {redact_database_url(database_url)}")
    try:
        inserted = setup_database(database_url)
    except SQLAlchemyError as e:
        logger.error(f"Database setup failed: {sanitize_error_message_for_log(e)}")
        return 1
    logger.info(f"Database setup complete, {inserted} compliance controls seeded")
    return 0


if __name__ == "__main__":
    sys.exit(main())
