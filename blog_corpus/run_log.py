from __future__ import annotations

import json
import time
import traceback
import uuid
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO

LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARN", "ERROR")

_MESSAGE_LIMIT = 2000
_TRACEBACK_LIMIT = 12000


def _clip(text: str, limit: int) -> str:
    s = str(text or "")
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


def _level_name(level: str) -> str:
    lvl = (level or "").strip().upper()
    if lvl == "WARNING":
        lvl = "WARN"
    if lvl not in LEVELS:
        raise ValueError(f"Unknown log level: {level!r}")
    return lvl


def _error_payload(exc: BaseException) -> dict[str, str]:
    tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return {
        "type": type(exc).__name__,
        "message": _clip(str(exc), _MESSAGE_LIMIT),
        "traceback": _clip(tb, _TRACEBACK_LIMIT),
    }


class RunLogger:
    """
    JSONL build log.

    Every line is one JSON object with `ts`, `level`, `event`, `session_id`
    and `elapsed_ms`, plus `build_id` once the build is registered, `source`
    when the event concerns one post file, and `data` for everything else.
    Parse workers share a single instance.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        overwrite: bool = True,
        build_id: str | None = None,
        session_id: str | None = None,
        min_level: str = "INFO",
    ) -> None:
        self._path = Path(path)
        self._mode = "w" if overwrite else "a"
        self._build_id = (build_id or "").strip() or None
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._threshold = LEVELS.index(_level_name(min_level))
        self._t0 = time.monotonic()
        self._lock = Lock()
        self._fp: TextIO | None = None
        self._closed = False
        self._by_level: Counter[str] = Counter()
        self._by_event: Counter[str] = Counter()

    @classmethod
    def open(cls, path: str | Path, **kwargs: Any) -> "RunLogger":
        logger = cls(path, **kwargs)
        with logger._lock:
            logger._handle()
        return logger

    @property
    def path(self) -> Path:
        return self._path

    @property
    def build_id(self) -> str | None:
        return self._build_id

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            fp, self._fp = self._fp, None
        if fp is not None:
            fp.close()

    def set_build_id(self, build_id: str) -> None:
        bid = (build_id or "").strip()
        if bid:
            self._build_id = bid

    def count(self, level: str) -> int:
        return self._by_level[_level_name(level)]

    def summary(self) -> dict[str, Any]:
        """Counts of records written so far, by level and by event."""
        with self._lock:
            return {
                "levels": {lvl: self._by_level[lvl] for lvl in LEVELS if self._by_level[lvl]},
                "events": dict(sorted(self._by_event.items())),
            }

    def debug(self, event: str, *, source: str | None = None, **data: Any) -> None:
        self.log("DEBUG", event, source=source, **data)

    def info(self, event: str, *, source: str | None = None, **data: Any) -> None:
        self.log("INFO", event, source=source, **data)

    def warning(self, event: str, *, source: str | None = None, **data: Any) -> None:
        self.log("WARN", event, source=source, **data)

    def error(self, event: str, *, source: str | None = None, **data: Any) -> None:
        self.log("ERROR", event, source=source, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        source: str | None = None,
        **data: Any,
    ) -> None:
        self.log("ERROR", event, source=source, error=_error_payload(exc), **data)

    def log(self, level: str, event: str, *, source: str | None = None, **data: Any) -> None:
        lvl = _level_name(level)
        if LEVELS.index(lvl) < self._threshold:
            return

        record: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": lvl,
            "event": (event or "").strip() or "event",
            "session_id": self._session_id,
            "elapsed_ms": int((time.monotonic() - self._t0) * 1000),
        }
        if self._build_id:
            record["build_id"] = self._build_id
        if source and source.strip():
            record["source"] = source.strip()
        if data:
            record["data"] = data

        line = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

        with self._lock:
            fp = self._handle()
            if fp is None:
                return
            fp.write(line + "\n")
            fp.flush()
            self._by_level[lvl] += 1
            self._by_event[record["event"]] += 1

    def _handle(self) -> TextIO | None:
        # Caller holds the lock. Records after close() are dropped.
        if self._closed:
            return None
        if self._fp is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fp = self._path.open(self._mode, encoding="utf-8", newline="\n")
            self._mode = "a"
        return self._fp
