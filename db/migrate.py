from __future__ import annotations

import hashlib
import importlib.util
import re
import sqlite3
from datetime import datetime, timezone
from pathlib import Path


MIGRATION_RE = re.compile(r"^(\d{4})_([a-zA-Z0-9_]+)\.(sql|py)$")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _checksum_file(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _ensure_migration_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at_utc TEXT NOT NULL
        )
        """
    )
    conn.commit()


def _load_applied(conn: sqlite3.Connection) -> dict[str, tuple[str, str]]:
    cur = conn.cursor()
    cur.execute("SELECT version, name, checksum FROM schema_migrations")
    return {str(version): (str(name), str(checksum)) for version, name, checksum in cur.fetchall()}


def _load_py_upgrade(path: Path):
    spec = importlib.util.spec_from_file_location(f"bot_migration_{path.stem}", str(path))
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Could not load migration module: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    upgrade = getattr(module, "upgrade", None)
    if not callable(upgrade):
        raise RuntimeError(f"Python migration missing upgrade(conn): {path}")
    return upgrade


def list_migration_files(migrations_dir: str | Path) -> list[tuple[str, str, str, Path]]:
    base = Path(migrations_dir)
    if not base.exists():
        raise RuntimeError(f"Migrations directory not found: {migrations_dir}")
    files: list[tuple[str, str, str, Path]] = []
    for p in sorted(base.iterdir()):
        if not p.is_file():
            continue
        m = MIGRATION_RE.match(p.name)
        if m:
            files.append((m.group(1), m.group(2), m.group(3), p))
    return files


def _apply_one(conn: sqlite3.Connection, version: str, name: str, ext: str, path: Path, checksum: str) -> None:
    record_sql = "INSERT INTO schema_migrations (version, name, checksum, applied_at_utc) VALUES (?, ?, ?, ?)"
    record_args = (version, name, checksum, _utc_now_iso())
    try:
        if ext == "sql":
            # executescript commits anything pending, so the script carries its own transaction.
            sql = path.read_text(encoding="utf-8")
            conn.executescript(f"BEGIN;\n{sql}\n;")
            conn.execute(record_sql, record_args)
        elif ext == "py":
            upgrade = _load_py_upgrade(path)
            conn.execute("BEGIN")
            upgrade(conn)
            conn.execute(record_sql, record_args)
        else:
            raise RuntimeError(f"Unsupported migration extension: {path.name}")
        conn.commit()
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise


def apply_sqlite_migrations(conn: sqlite3.Connection, migrations_dir: str | Path) -> list[str]:
    """
    Apply pending migrations in version order, each in its own transaction.
    Returns the list of newly applied "<version>_<name>" entries.
    """
    _ensure_migration_table(conn)
    applied = _load_applied(conn)
    newly_applied: list[str] = []

    for version, name, ext, path in list_migration_files(migrations_dir):
        checksum = _checksum_file(path)
        existing = applied.get(version)
        if existing:
            old_name, old_checksum = existing
            if old_name != name or old_checksum != checksum:
                raise RuntimeError(
                    f"Migration version {version} already applied with different content "
                    f"(existing name={old_name}, file name={name})."
                )
            continue

        print(f"[DB] Applying migration {version}_{name}.{ext}")
        _apply_one(conn, version, name, ext, path, checksum)
        newly_applied.append(f"{version}_{name}")

    return newly_applied


def list_schema_migrations_sync(conn: sqlite3.Connection, limit: int = 200) -> list[tuple[str, str, str]]:
    cur = conn.cursor()
    try:
        cur.execute(
            """
            SELECT version, name, applied_at_utc
            FROM schema_migrations
            ORDER BY version DESC
            LIMIT ?
            """,
            (max(1, min(int(limit), 500)),),
        )
        return cur.fetchall()
    except sqlite3.OperationalError:
        return []
