#!/usr/bin/env python3
"""
Ecological Profile Migration Runner
===================================
Applies pending SQL migrations from migrations/ in filename order.

Usage:
    python scripts/run_migrations.py
    python scripts/run_migrations.py --dry-run

Or import and call:
    from scripts.run_migrations import run_pending_migrations
    run_pending_migrations()
"""

import argparse
import hashlib
import logging
import os
import re
import sys
from pathlib import Path
from typing import Dict, List, Optional, Set

import psycopg2
from psycopg2.extras import RealDictCursor

logger = logging.getLogger(__name__)

MIGRATION_PATTERN = re.compile(r"^\d+_.+\.sql$")
DEFAULT_DIR = Path(__file__).resolve().parent.parent / "migrations"


def get_db_connection():
    """Connect using DATABASE_URL, falling back to the PG* variables."""
    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        return psycopg2.connect(database_url)
    return psycopg2.connect(
        host=os.environ.get("PGHOST", "localhost"),
        port=os.environ.get("PGPORT", "5432"),
        database=os.environ.get("PGDATABASE", "ecoprofile"),
        user=os.environ.get("PGUSER", "postgres"),
        password=os.environ.get("PGPASSWORD", ""),
    )


def ensure_migrations_table(conn) -> None:
    with conn.cursor() as cur:
        cur.execute("""
            CREATE TABLE IF NOT EXISTS _migrations (
                id SERIAL PRIMARY KEY,
                filename VARCHAR(255) UNIQUE NOT NULL,
                executed_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
                checksum VARCHAR(64),
                success BOOLEAN DEFAULT true,
                error_message TEXT
            )
        """)
    conn.commit()


def get_executed_migrations(conn) -> Set[str]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute("SELECT filename FROM _migrations WHERE success = true")
        return {row["filename"] for row in cur.fetchall()}


def get_pending_migrations(migrations_dir: Path, executed: Set[str]) -> List[Path]:
    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return []
    return sorted(
        (f for f in migrations_dir.glob("*.sql")
         if MIGRATION_PATTERN.match(f.name) and f.name not in executed),
        key=lambda f: f.name,
    )


def checksum(content: str) -> str:
    return hashlib.sha256(content.encode()).hexdigest()


def _record(conn, filename: str, digest: str, success: bool, error: Optional[str] = None) -> None:
    with conn.cursor() as cur:
        cur.execute("""
            INSERT INTO _migrations (filename, checksum, success, error_message)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (filename) DO UPDATE SET
                executed_at = NOW(),
                checksum = EXCLUDED.checksum,
                success = EXCLUDED.success,
                error_message = EXCLUDED.error_message
        """, (filename, digest, success, error))


def run_migration(conn, migration_file: Path) -> bool:
    """Apply one file inside a transaction and record the outcome."""
    logger.info(f"Running migration: {migration_file.name}")
    content = migration_file.read_text(encoding="utf-8")
    digest = checksum(content)

    try:
        with conn.cursor() as cur:
            cur.execute(content)
        _record(conn, migration_file.name, digest, True)
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        logger.error(f"Migration {migration_file.name} failed: {e}")
        try:
            _record(conn, migration_file.name, digest, False, str(e))
            conn.commit()
        except psycopg2.Error as record_error:
            conn.rollback()
            logger.warning(f"Could not record failed migration {migration_file.name}: {record_error}")
        return False

    logger.info(f"Migration {migration_file.name} completed")
    return True


def run_pending_migrations(migrations_dir: Optional[str] = None) -> Dict[str, object]:
    """
    Run all pending migrations, stopping at the first failure.

    Returns:
        dict with 'success', 'executed', 'failed', 'skipped' and 'errors'
    """
    mig_path = Path(migrations_dir) if migrations_dir else DEFAULT_DIR
    result: Dict[str, object] = {
        "success": True,
        "executed": 0,
        "failed": 0,
        "skipped": 0,
        "errors": [],
    }

    try:
        conn = get_db_connection()
    except psycopg2.Error as e:
        logger.error(f"Failed to connect to database: {e}")
        result["success"] = False
        result["errors"].append(str(e))
        return result

    try:
        ensure_migrations_table(conn)
        pending = get_pending_migrations(mig_path, get_executed_migrations(conn))
        logger.info(f"Pending migrations: {len(pending)}")

        for migration_file in pending:
            if run_migration(conn, migration_file):
                result["executed"] += 1
                continue
            result["failed"] += 1
            result["success"] = False
            result["errors"].append(f"Failed: {migration_file.name}")
            break

        result["skipped"] = len(pending) - result["executed"] - result["failed"]
    finally:
        conn.close()

    logger.info(
        f"Migration summary: {result['executed']} executed, "
        f"{result['failed']} failed, {result['skipped']} skipped"
    )
    return result


def main():
    parser = argparse.ArgumentParser(description="Run ecological profile database migrations")
    parser.add_argument("--dir", "-d", help="Migrations directory path")
    parser.add_argument("--dry-run", action="store_true", help="Show pending migrations without running")
    args = parser.parse_args()

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if not args.dry_run:
        result = run_pending_migrations(args.dir)
        sys.exit(0 if result["success"] else 1)

    mig_path = Path(args.dir) if args.dir else DEFAULT_DIR
    try:
        conn = get_db_connection()
        try:
            ensure_migrations_table(conn)
            executed = get_executed_migrations(conn)
            pending = get_pending_migrations(mig_path, executed)
        finally:
            conn.close()
    except psycopg2.Error as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"\nExecuted migrations: {len(executed)}")
    for name in sorted(executed):
        print(f"  + {name}")
    print(f"\nPending migrations: {len(pending)}")
    for f in pending:
        print(f"  o {f.name}")


if __name__ == "__main__":
    main()
