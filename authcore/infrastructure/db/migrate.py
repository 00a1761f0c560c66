"""
Tiny forward-only migration runner.

    authcore-migrate up          apply pending migrations/*.sql in name order
    authcore-migrate status      list applied and pending versions
    authcore-migrate new <name>  create the next numbered migration file
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

import psycopg

from authcore.logging import setup_logging
from authcore.settings import get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(
    os.environ.get("MIGRATIONS_DIR", Path(__file__).resolve().parents[3] / "migrations")
)
SCHEMA_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
  version    text PRIMARY KEY,
  applied_at timestamptz NOT NULL DEFAULT now()
);
"""


def list_migrations(directory: Path = MIGRATIONS_DIR) -> list[Path]:
    if not directory.exists():
        raise FileNotFoundError(f"migrations dir not found: {directory}")
    return sorted(directory.glob("*.sql"))


def next_migration_name(existing: list[Path], name: str) -> str:
    """0001_accounts.sql, 0002_... -> next zero-padded sequence number."""
    numbers = [int(p.stem.split("_", 1)[0]) for p in existing if p.stem[:4].isdigit()]
    slug = "_".join(name.lower().split())
    return f"{max(numbers, default=0) + 1:04d}_{slug}.sql"


def pending(all_paths: list[Path], applied: set[str]) -> list[Path]:
    return [p for p in all_paths if p.stem not in applied]


def applied_versions(conn: psycopg.Connection) -> dict[str, datetime]:
    with conn.cursor() as cur:
        cur.execute(SCHEMA_TABLE_SQL)
        cur.execute("SELECT version, applied_at FROM schema_migrations ORDER BY version;")
        rows = cur.fetchall()
    conn.commit()
    return {version: applied_at for version, applied_at in rows}


def apply_one(conn: psycopg.Connection, path: Path) -> None:
    version = path.stem
    logger.info("applying migration", extra={"version": version})
    with conn.cursor() as cur:
        cur.execute(path.read_text(encoding="utf-8"))
        cur.execute(
            "INSERT INTO schema_migrations (version, applied_at) VALUES (%s, now());",
            (version,),
        )
    conn.commit()
    logger.info("applied migration", extra={"version": version})


def cmd_up() -> int:
    with psycopg.connect(get_settings().database_url, autocommit=False) as conn:
        to_run = pending(list_migrations(), set(applied_versions(conn)))
        if not to_run:
            logger.info("no pending migrations")
            return 0
        for path in to_run:
            try:
                apply_one(conn, path)
            except psycopg.Error:
                conn.rollback()
                logger.exception("migration failed", extra={"version": path.stem})
                return 1
    return 0


def cmd_status() -> int:
    with psycopg.connect(get_settings().database_url) as conn:
        applied = applied_versions(conn)
    print("=== Applied ===")
    for version, at in applied.items():
        print(f"{version} @ {at.isoformat()}")
    print("=== Pending ===")
    for path in pending(list_migrations(), set(applied)):
        print(path.stem)
    return 0


def cmd_new(name: str) -> int:
    MIGRATIONS_DIR.mkdir(parents=True, exist_ok=True)
    path = MIGRATIONS_DIR / next_migration_name(list_migrations(), name)
    path.write_text("-- write your SQL here\n", encoding="utf-8")
    print(str(path))
    return 0


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv if argv is None else argv
    setup_logging(get_settings().log_level)
    if len(argv) < 2:
        print("usage: authcore-migrate [up|status|new <name>]", file=sys.stderr)
        return 2
    cmd = argv[1]
    if cmd == "up":
        return cmd_up()
    if cmd == "status":
        return cmd_status()
    if cmd == "new":
        if len(argv) < 3:
            print("usage: authcore-migrate new <name>", file=sys.stderr)
            return 2
        return cmd_new(argv[2])
    print(f"unknown command: {cmd}", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
