from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

SCHEMA_VERSION = 2

_MIGRATIONS: dict[int, str] = {
    # 1: build history plus the parse cache keyed by file path.
    1: """
CREATE TABLE IF NOT EXISTS builds (
  build_id TEXT PRIMARY KEY,
  started_at TEXT NOT NULL,
  ended_at TEXT,
  status TEXT,
  config_hash TEXT NOT NULL,
  versions_json TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS parsed_posts (
  source_path TEXT PRIMARY KEY,
  content_sha256 TEXT NOT NULL,
  settings_sha256 TEXT NOT NULL,
  post_json TEXT NOT NULL,
  parsed_at TEXT NOT NULL
);
""".strip(),
    # 2: per-build outcome counts.
    2: """
ALTER TABLE builds ADD COLUMN files_count INTEGER;
ALTER TABLE builds ADD COLUMN posts_count INTEGER;
ALTER TABLE builds ADD COLUMN error_count INTEGER;
ALTER TABLE builds ADD COLUMN warning_count INTEGER;
""".strip(),
}


def initialize_sqlite(conn: sqlite3.Connection) -> None:
    """
    Bring a cache database up to SCHEMA_VERSION.

    Safe to call on every build; applied versions are recorded in
    `schema_migrations` and skipped.
    """
    conn.execute("PRAGMA busy_timeout = 5000")
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.DatabaseError:
        pass  # in-memory databases keep their default journal

    with conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            "version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
        )

    applied = {int(r[0]) for r in conn.execute("SELECT version FROM schema_migrations")}
    newest = max(applied, default=0)
    if newest > SCHEMA_VERSION:
        raise RuntimeError(
            f"Cache schema version {newest} is newer than supported version {SCHEMA_VERSION}"
        )

    for version in sorted(_MIGRATIONS):
        if version in applied:
            continue
        with conn:
            for statement in _MIGRATIONS[version].split(";"):
                if statement.strip():
                    conn.execute(statement)
            conn.execute(
                "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                (version, datetime.now(timezone.utc).isoformat()),
            )
