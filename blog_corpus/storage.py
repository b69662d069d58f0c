from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from .errors import StorageError
from .post import Post, post_from_dict, post_to_dict
from .storage_schema import initialize_sqlite


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_dumps(value: Any) -> str:
    return json.dumps(
        value,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


def _as_path(value: str | Path) -> str:
    return str(value)


@dataclass(frozen=True)
class BuildRecord:
    build_id: str
    started_at: str
    ended_at: str | None
    status: str | None
    config_hash: str
    versions: dict[str, str]
    files: int | None = None
    posts: int | None = None
    errors: int | None = None
    warnings: int | None = None


def _opt_int(value: Any) -> int | None:
    return int(value) if value is not None else None


class SQLiteStateStore:
    """
    Incremental parse cache and build history.

    Only parsed posts are cached; indexes are never stored here.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: str | Path) -> "SQLiteStateStore":
        db_path = _as_path(path)
        if db_path != ":memory:":
            p = Path(db_path)
            try:
                p.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(f"Failed to create cache directory for {db_path}: {e}") from e

        try:
            conn = sqlite3.connect(db_path)
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to open sqlite database: {db_path}: {e}") from e

        try:
            initialize_sqlite(conn)
        except (sqlite3.DatabaseError, RuntimeError) as e:
            conn.close()
            raise StorageError(f"Failed to initialize sqlite schema: {e}") from e

        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteStateStore":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def create_build(
        self,
        *,
        config_hash: str,
        versions: Mapping[str, str] | None = None,
        build_id: str | None = None,
        started_at: str | None = None,
    ) -> BuildRecord:
        bid = (build_id or uuid.uuid4().hex).strip()
        if not bid:
            raise ValueError("build_id must be non-empty")

        cfg_hash = (config_hash or "").strip()
        if not cfg_hash:
            raise ValueError("config_hash must be non-empty")

        start = (started_at or _utc_now_iso()).strip()
        versions_json = _json_dumps(dict(versions or {}))

        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT OR IGNORE INTO builds(
                      build_id, started_at, ended_at, status, config_hash, versions_json
                    ) VALUES (?, ?, NULL, NULL, ?, ?)
                    """.strip(),
                    (bid, start, cfg_hash, versions_json),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to create build record: {e}") from e

        record = self.get_build(bid)
        if record is None:
            raise StorageError("Failed to read build record after insert")
        return record

    def finish_build(
        self,
        build_id: str,
        *,
        status: str,
        counts: Mapping[str, int] | None = None,
        ended_at: str | None = None,
    ) -> None:
        """Close a build row. `counts` may hold files, posts, errors and warnings."""
        bid = (build_id or "").strip()
        if not bid:
            raise ValueError("build_id must be non-empty")

        end = (ended_at or _utc_now_iso()).strip()
        c = dict(counts or {})

        try:
            with self._conn:
                self._conn.execute(
                    """
                    UPDATE builds SET
                      ended_at = ?, status = ?,
                      files_count = ?, posts_count = ?, error_count = ?, warning_count = ?
                    WHERE build_id = ?
                    """.strip(),
                    (
                        end,
                        status,
                        c.get("files"),
                        c.get("posts"),
                        c.get("errors"),
                        c.get("warnings"),
                        bid,
                    ),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to finish build: {e}") from e

    def get_build(self, build_id: str) -> BuildRecord | None:
        bid = (build_id or "").strip()
        if not bid:
            raise ValueError("build_id must be non-empty")

        row = self._conn.execute(
            """
            SELECT build_id, started_at, ended_at, status, config_hash, versions_json,
                   files_count, posts_count, error_count, warning_count
            FROM builds
            WHERE build_id = ?
            """.strip(),
            (bid,),
        ).fetchone()
        if row is None:
            return None

        try:
            versions = json.loads((row["versions_json"] or "{}").strip())
        except json.JSONDecodeError:
            versions = {}

        if not isinstance(versions, dict):
            versions = {}

        return BuildRecord(
            build_id=str(row["build_id"]),
            started_at=str(row["started_at"]),
            ended_at=str(row["ended_at"]) if row["ended_at"] is not None else None,
            status=str(row["status"]) if row["status"] is not None else None,
            config_hash=str(row["config_hash"]),
            versions={str(k): str(v) for k, v in versions.items()},
            files=_opt_int(row["files_count"]),
            posts=_opt_int(row["posts_count"]),
            errors=_opt_int(row["error_count"]),
            warnings=_opt_int(row["warning_count"]),
        )

    def latest_build(self) -> BuildRecord | None:
        row = self._conn.execute(
            "SELECT build_id FROM builds ORDER BY started_at DESC, rowid DESC LIMIT 1"
        ).fetchone()
        if row is None:
            return None
        return self.get_build(str(row["build_id"]))

    def cached_post(
        self,
        source_path: str,
        *,
        content_sha256: str,
        settings_sha256: str,
    ) -> Post | None:
        """Return the cached Post when the file content and parse settings are unchanged."""
        row = self._conn.execute(
            """
            SELECT post_json
            FROM parsed_posts
            WHERE source_path = ? AND content_sha256 = ? AND settings_sha256 = ?
            """.strip(),
            (source_path, content_sha256, settings_sha256),
        ).fetchone()
        if row is None:
            return None

        try:
            return post_from_dict(json.loads(row["post_json"]))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Cached post for {source_path} could not be parsed: {e}") from e

    def put_post(
        self,
        post: Post,
        *,
        content_sha256: str,
        settings_sha256: str,
        parsed_at: str | None = None,
    ) -> None:
        ts = (parsed_at or _utc_now_iso()).strip()
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO parsed_posts(
                      source_path, content_sha256, settings_sha256, post_json, parsed_at
                    ) VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(source_path) DO UPDATE SET
                      content_sha256 = excluded.content_sha256,
                      settings_sha256 = excluded.settings_sha256,
                      post_json = excluded.post_json,
                      parsed_at = excluded.parsed_at
                    """.strip(),
                    (
                        post.source_path,
                        content_sha256,
                        settings_sha256,
                        _json_dumps(post_to_dict(post)),
                        ts,
                    ),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to cache post {post.source_path}: {e}") from e

    def forget(self, source_paths: Iterable[str]) -> int:
        paths = [(p,) for p in source_paths]
        if not paths:
            return 0
        try:
            with self._conn:
                cur = self._conn.executemany(
                    "DELETE FROM parsed_posts WHERE source_path = ?",
                    paths,
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to drop cached posts: {e}") from e
        return int(cur.rowcount or 0)

    def prune_missing(self, present: Iterable[str]) -> int:
        """Drop cache rows whose source file no longer exists in the corpus."""
        keep = set(present)
        stale = [p for p in self.cached_paths() if p not in keep]
        return self.forget(stale)

    def cached_paths(self) -> set[str]:
        rows = self._conn.execute("SELECT source_path FROM parsed_posts").fetchall()
        return {str(r["source_path"]) for r in rows}

    def cached_post_count(self) -> int:
        row = self._conn.execute("SELECT COUNT(1) AS n FROM parsed_posts").fetchone()
        return int(row["n"]) if row is not None else 0
