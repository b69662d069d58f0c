from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from .config_schema import AppConfig
from .errors import EmitError
from .feed import render_rss, render_sitemap
from .indexer import CorpusIndex
from .post import post_record, post_summary

POSTS_SUBDIR = "posts"


@dataclass(frozen=True)
class EmitResult:
    out_dir: Path
    artifacts: Sequence[str]
    removed: Sequence[str]


def _json_text(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2, sort_keys=False) + "\n"


def write_atomic(path: Path, text: str) -> None:
    """
    Write `text` to `path` through a temp file in the same directory.

    Readers see either the previous file or the complete new one.
    """
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=str(path.parent),
        )
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fp:
            fp.write(text)
            fp.flush()
            os.fsync(fp.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise EmitError(f"Failed to write artifact {path}: {e}") from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass


def _remove_stale_posts(posts_dir: Path, keep: set[str]) -> list[str]:
    removed: list[str] = []
    try:
        candidates = sorted(posts_dir.glob("*.json"))
    except OSError as e:
        raise EmitError(f"Failed to list {posts_dir}: {e}") from e

    for path in candidates:
        if path.name in keep:
            continue
        try:
            path.unlink()
        except OSError as e:
            raise EmitError(f"Failed to remove stale artifact {path}: {e}") from e
        removed.append(f"{POSTS_SUBDIR}/{path.name}")
    return removed


def emit_artifacts(
    index: CorpusIndex,
    related: Mapping[str, Sequence[str]],
    out_dir: str | Path,
    *,
    config: AppConfig,
    config_hash: str,
    built_at: datetime | None = None,
) -> EmitResult:
    """
    Serialize posts and derived indexes into the renderer's artifact layout.

    Raises EmitError when the destination cannot be written.
    """
    out = Path(out_dir)
    posts_dir = out / POSTS_SUBDIR
    when = built_at or datetime.now(timezone.utc)

    try:
        posts_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise EmitError(f"Output directory is not writable: {out}: {e}") from e

    written: list[str] = []

    def _write(rel: str, text: str) -> None:
        write_atomic(out / rel, text)
        written.append(rel)

    post_files: set[str] = set()
    for slug in index.timeline:
        record = post_record(index.post(slug), related_slugs=related.get(slug, ()))
        name = f"{slug}.json"
        _write(f"{POSTS_SUBDIR}/{name}", _json_text(record))
        post_files.add(name)

    _write("posts.json", _json_text([post_summary(index.post(s)) for s in index.timeline]))
    _write("tags.json", _json_text({t: list(slugs) for t, slugs in index.tags.items()}))
    _write("featured.json", _json_text(list(index.featured)))
    _write("archive.json", _json_text({y: list(slugs) for y, slugs in index.archive.items()}))
    _write(
        "tag-list.json",
        _json_text([{"tag": tc.tag, "count": tc.count} for tc in index.tag_counts]),
    )

    if config.site.base_url:
        _write("feed.xml", render_rss(index, site=config.site, built_at=when))
        _write("sitemap.xml", render_sitemap(index, site=config.site, built_at=when))

    removed = _remove_stale_posts(posts_dir, post_files)

    manifest = {
        "built_at": when.isoformat(),
        "config_hash": config_hash,
        "post_count": len(index.timeline),
        "tag_count": len(index.tags),
        "featured_count": len(index.featured),
        "artifacts": sorted(written) + ["manifest.json"],
    }
    _write("manifest.json", _json_text(manifest))

    return EmitResult(out_dir=out, artifacts=tuple(written), removed=tuple(removed))
