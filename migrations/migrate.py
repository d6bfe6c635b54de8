"""SQL migration runner for the SQLite ledger database.

Applies migrations/NNN_*.sql in filename order and records each one in a
_migrations table so it runs only once. PostgreSQL deployments create the
schema with ``tokenledger init-db`` instead.

Usage:
    python -m migrations.migrate                # apply pending migrations
    python -m migrations.migrate --dry-run      # list what would be applied
    python -m migrations.migrate --status       # applied / pending summary
"""

import argparse
import os
import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from dotenv import load_dotenv

MIGRATIONS_DIR: Path = Path(__file__).resolve().parent
DEFAULT_DB_PATH: str = "data/tokenledger.db"


def _get_db_path() -> str:
    """DB_SQLITE_PATH from the environment (or .env), relative to the project root."""
    project_root: Path = MIGRATIONS_DIR.parent
    for candidate in (project_root / ".env", project_root.parent / ".env"):
        if candidate.exists():
            load_dotenv(candidate, override=False)

    db_path: str = os.environ.get("DB_SQLITE_PATH", DEFAULT_DB_PATH)
    if not os.path.isabs(db_path):
        db_path = str(project_root / db_path)
    return db_path


def _connect(db_path: str) -> sqlite3.Connection:
    conn: sqlite3.Connection = sqlite3.connect(db_path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute(
        "CREATE TABLE IF NOT EXISTS _migrations ("
        "  filename TEXT PRIMARY KEY,"
        "  applied_at TEXT NOT NULL"
        ")"
    )
    conn.commit()
    return conn


def _applied(conn: sqlite3.Connection) -> set[str]:
    return {row[0] for row in conn.execute("SELECT filename FROM _migrations").fetchall()}


def pending_migrations(applied: set[str]) -> list[Path]:
    return [f for f in sorted(MIGRATIONS_DIR.glob("*.sql")) if f.name not in applied]


def migrate(dry_run: bool = False, db_path: str | None = None) -> list[str]:
    """Apply pending migrations. Returns the filenames applied (or that would be)."""
    path: str = db_path or _get_db_path()
    parent: str = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    print(f"Database: {path}")
    conn = _connect(path)
    done: list[str] = []
    try:
        pending = pending_migrations(_applied(conn))
        if not pending:
            print("No pending migrations.")
            return done

        for migration in pending:
            print(f"{'[DRY RUN] ' if dry_run else ''}Applying {migration.name} ...")
            done.append(migration.name)
            if dry_run:
                continue
            conn.executescript(migration.read_text())
            conn.execute(
                "INSERT INTO _migrations (filename, applied_at) VALUES (?, ?)",
                (migration.name, datetime.now(UTC).isoformat()),
            )
            conn.commit()
            print(f"  Applied {migration.name}")
    finally:
        conn.close()

    print("Done.")
    return done


def status(db_path: str | None = None) -> None:
    path: str = db_path or _get_db_path()
    if not os.path.exists(path):
        print(f"Database not found: {path}")
        print("No migrations applied yet.")
        return

    conn = _connect(path)
    try:
        applied = _applied(conn)
        pending = pending_migrations(applied)
    finally:
        conn.close()

    print(f"Database: {path}")
    print(f"Applied:  {len(applied)}")
    for name in sorted(applied):
        print(f"  [x] {name}")
    print(f"Pending:  {len(pending)}")
    for p in pending:
        print(f"  [ ] {p.name}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Token ledger SQL migration runner")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be applied")
    parser.add_argument("--status", action="store_true", help="Show migration status")
    parser.add_argument("--db", default=None, help="SQLite file (default: DB_SQLITE_PATH)")
    args = parser.parse_args(argv)

    if args.status:
        status(db_path=args.db)
    else:
        migrate(dry_run=args.dry_run, db_path=args.db)


if __name__ == "__main__":
    main()
