from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import psycopg

from authcore.settings import get_settings

MIGRATIONS_DIR = Path(os.environ.get("MIGRATIONS_DIR", "migrations"))
SCHEMA_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
  version    text PRIMARY KEY,
  applied_at timestamptz NOT NULL DEFAULT now()
);
"""
USAGE = "usage: python -m authcore.infrastructure.db.migrate [up|status|new <name>]"


def log(msg: str) -> None:
    print(msg, flush=True)


def list_migrations(directory: Path | None = None) -> list[Path]:
    directory = directory or MIGRATIONS_DIR
    if not directory.exists():
        raise FileNotFoundError(f"migrations dir not found: {directory}")
    return sorted(directory.glob("*.sql"))


def pending_migrations(all_paths: list[Path], applied: set[str]) -> list[Path]:
    return [p for p in all_paths if p.stem not in applied]


def applied_versions(conn: psycopg.Connection) -> set[str]:
    with conn.cursor() as cur:
        cur.execute(SCHEMA_TABLE_SQL)
        cur.execute("SELECT version FROM schema_migrations ORDER BY version;")
        return {r[0] for r in cur.fetchall()}


def apply_one(conn: psycopg.Connection, path: Path) -> None:
    version = path.stem
    log(f"==> applying {version}")
    with conn.cursor() as cur:
        cur.execute(path.read_text(encoding="utf-8"))
        cur.execute(
            "INSERT INTO schema_migrations (version, applied_at) VALUES (%s, now());",
            (version,),
        )
    conn.commit()
    log(f"applied {version}")


def cmd_up() -> int:
    with psycopg.connect(get_settings().database_url, autocommit=False) as conn:
        to_run = pending_migrations(list_migrations(), applied_versions(conn))
        if not to_run:
            log("No pending migrations.")
            return 0
        for path in to_run:
            try:
                apply_one(conn, path)
            except psycopg.Error as e:
                conn.rollback()
                print(f"failed {path.stem}: {e}", file=sys.stderr)
                return 1
    return 0


def cmd_status() -> int:
    with psycopg.connect(get_settings().database_url) as conn:
        applied = applied_versions(conn)
    log("=== Applied ===")
    for v in sorted(applied):
        log(v)
    log("=== Pending ===")
    for path in pending_migrations(list_migrations(), applied):
        log(path.stem)
    return 0


def cmd_new(name: str, directory: Path | None = None) -> Path:
    directory = directory or MIGRATIONS_DIR
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M")
    path = directory / f"{ts}_{name}.sql"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("-- write your SQL here\n", encoding="utf-8")
    return path


def main(argv: list[str]) -> int:
    if len(argv) < 2:
        print(USAGE, file=sys.stderr)
        return 2
    cmd = argv[1]
    try:
        if cmd == "up":
            return cmd_up()
        if cmd == "status":
            return cmd_status()
        if cmd == "new":
            if len(argv) < 3:
                print("usage: ... new <name>", file=sys.stderr)
                return 2
            log(str(cmd_new(argv[2])))
            return 0
    except FileNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    print(f"unknown command: {cmd}", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
