from __future__ import annotations

import hashlib
import os
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Mapping, Sequence

from .config import config_sha256, parse_settings_sha256
from .config_schema import AppConfig
from .dedupe import find_duplicate_slugs
from .emit import EmitResult, emit_artifacts
from .errors import ConfigError, DuplicateSlugError, EmitError, PostError, ValidationError
from .failure_report import build_failure_report
from .frontmatter import parse_frontmatter
from .indexer import CorpusIndex, build_corpus_index
from .normalize import build_post
from .post import Post
from .prechecks import run_date_checks
from .relations import compute_related
from .run_log import RunLogger
from .storage import SQLiteStateStore


@dataclass(frozen=True)
class SourceFile:
    path: str
    content: bytes
    sha256: str


@dataclass(frozen=True)
class BuildWarning:
    source_path: str
    kind: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"source_path": self.source_path, "kind": self.kind, "message": self.message}


@dataclass(frozen=True)
class ParseOutcome:
    source: SourceFile
    post: Post | None = None
    error: PostError | None = None
    has_frontmatter: bool = True
    cached: bool = False


@dataclass(frozen=True)
class CorpusLoad:
    files: int
    posts: Sequence[Post]
    errors: Sequence[PostError]
    warnings: Sequence[BuildWarning]
    cache_hits: int = 0


@dataclass(frozen=True)
class BuildResult:
    build_id: str | None
    status: str
    files: int
    posts: int
    cache_hits: int
    errors: Sequence[PostError]
    warnings: Sequence[BuildWarning]
    index: CorpusIndex | None = None
    related: Mapping[str, Sequence[str]] | None = None
    emitted: EmitResult | None = None
    failure_report: dict[str, Any] | None = None
    duplicates: Sequence[DuplicateSlugError] = ()


def _pkg_version(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:
        return "unknown"


def discover_sources(content_dir: str | Path, *, extensions: Sequence[str]) -> list[Path]:
    """Post files directly inside `content_dir`, sorted by name. Hidden files are skipped."""
    root = Path(content_dir)
    if not root.is_dir():
        raise ConfigError(f"Content directory not found: {root}")

    exts = {e.lower() for e in extensions}
    return sorted(
        p
        for p in root.iterdir()
        if p.is_file() and not p.name.startswith(".") and p.suffix.lower() in exts
    )


def read_source(path: Path) -> SourceFile:
    try:
        content = path.read_bytes()
    except OSError as e:
        raise PostError(str(path), f"cannot read file: {e}") from e
    return SourceFile(path=str(path), content=content, sha256=hashlib.sha256(content).hexdigest())


def parse_source(source: SourceFile, *, config: AppConfig) -> ParseOutcome:
    """Frontmatter parsing plus record building for one file. No I/O."""
    try:
        parsed = parse_frontmatter(
            source.content,
            source_path=source.path,
            missing=config.frontmatter.missing,
            max_header_bytes=config.frontmatter.max_header_bytes,
        )
        post = build_post(
            parsed.metadata,
            parsed.body,
            source_path=source.path,
            excerpt_chars=config.posts.excerpt_chars,
            words_per_minute=config.posts.words_per_minute,
            title_fallback_from_body=not parsed.has_frontmatter,
        )
    except PostError as e:
        return ParseOutcome(source=source, error=e)
    return ParseOutcome(source=source, post=post, has_frontmatter=parsed.has_frontmatter)


def _worker_count(config: AppConfig, jobs: int) -> int:
    configured = int(config.build.workers) or (os.cpu_count() or 1)
    return max(1, min(configured, jobs))


def load_corpus(
    content_dir: str | Path,
    config: AppConfig,
    *,
    build_date: date,
    store: SQLiteStateStore | None = None,
    logger: RunLogger | None = None,
) -> CorpusLoad:
    """
    Parse and validate every post file in `content_dir`.

    Per-file errors are collected unless `build.collect_errors` is false, in
    which case the first PostError propagates. Returns only after every file
    has either produced a Post or failed.
    """
    paths = discover_sources(content_dir, extensions=config.posts.extensions)
    settings_hash = parse_settings_sha256(config)

    sources: list[SourceFile] = []
    hits: dict[int, Post] = {}
    errors: list[PostError] = []
    warnings: list[BuildWarning] = []

    def _fail(err: PostError) -> None:
        if logger is not None:
            logger.warning("post_invalid", source=err.source_path, **err.as_dict())
        if not config.build.collect_errors:
            raise err
        errors.append(err)

    for path in paths:
        try:
            source = read_source(path)
        except PostError as e:
            _fail(e)
            continue

        if store is not None:
            cached = store.cached_post(
                source.path,
                content_sha256=source.sha256,
                settings_sha256=settings_hash,
            )
            if cached is not None:
                hits[len(sources)] = cached
        sources.append(source)

    misses = [s for i, s in enumerate(sources) if i not in hits]
    parsed: list[ParseOutcome] = []
    if misses:
        with ThreadPoolExecutor(max_workers=_worker_count(config, len(misses))) as pool:
            parsed = list(pool.map(lambda s: parse_source(s, config=config), misses))

    fresh = iter(parsed)
    outcomes = [
        ParseOutcome(source=s, post=hits[i], cached=True) if i in hits else next(fresh)
        for i, s in enumerate(sources)
    ]

    posts: list[Post] = []
    cache_hits = 0
    for outcome in outcomes:
        post = outcome.post
        if post is None:
            if outcome.error is not None:
                _fail(outcome.error)
            continue

        if outcome.cached:
            cache_hits += 1
        elif store is not None and outcome.has_frontmatter:
            store.put_post(post, content_sha256=outcome.source.sha256, settings_sha256=settings_hash)

        if not outcome.has_frontmatter:
            warnings.append(
                BuildWarning(post.source_path, "frontmatter_missing", "file has no frontmatter; parsed as body only")
            )
            if logger is not None:
                logger.warning("frontmatter_missing", source=post.source_path)

        check = run_date_checks(post, build_date=build_date, posts=config.posts)
        if not check.passed:
            message = f"published_at {post.published_at.isoformat()} is after build date {build_date.isoformat()}"
            if config.posts.future_dates == "error":
                _fail(ValidationError(post.source_path, "date", message))
                continue
            warnings.append(BuildWarning(post.source_path, "date_in_future", message))
            if logger is not None:
                logger.warning(
                    "post_date_in_future",
                    source=post.source_path,
                    published_at=post.published_at.isoformat(),
                    build_date=build_date.isoformat(),
                )

        posts.append(post)

    if store is not None:
        store.prune_missing(str(p) for p in paths)

    return CorpusLoad(
        files=len(paths),
        posts=tuple(posts),
        errors=tuple(errors),
        warnings=tuple(warnings),
        cache_hits=cache_hits,
    )


def run_build(
    config: AppConfig,
    content_dir: str | Path,
    out_dir: str | Path | None = None,
    *,
    store: SQLiteStateStore | None = None,
    logger: RunLogger | None = None,
    build_date: date | None = None,
    built_at: datetime | None = None,
) -> BuildResult:
    """
    Run one full build: parse, validate, index, relate, and (when `out_dir`
    is given) emit artifacts.

    Artifacts are emitted only when every file is valid. DuplicateSlugError
    and EmitError abort the build and propagate to the caller.
    """
    when = built_at or datetime.now(timezone.utc)
    today = build_date or when.date()
    cfg_hash = config_sha256(config)

    build_id: str | None = None
    if store is not None:
        record = store.create_build(
            config_hash=cfg_hash,
            versions={
                "python": sys.version.split()[0],
                "pydantic": _pkg_version("pydantic"),
                "PyYAML": _pkg_version("PyYAML"),
            },
        )
        build_id = record.build_id
        if logger is not None:
            logger.set_build_id(build_id)

    def _finish(status: str, corpus: CorpusLoad | None) -> None:
        if store is None or build_id is None:
            return
        counts: dict[str, int] | None = None
        if corpus is not None:
            counts = {
                "files": corpus.files,
                "posts": len(corpus.posts),
                "errors": len(corpus.errors),
                "warnings": len(corpus.warnings),
            }
        store.finish_build(build_id, status=status, counts=counts)

    if logger is not None:
        logger.info(
            "build_started",
            content_dir=str(content_dir),
            out_dir=str(out_dir) if out_dir is not None else None,
            config_hash=cfg_hash,
            build_date=today.isoformat(),
        )

    try:
        corpus = load_corpus(content_dir, config, build_date=today, store=store, logger=logger)
    except (ConfigError, PostError) as e:
        if logger is not None:
            logger.exception("build_failed", exc=e, status="aborted")
        _finish("aborted", None)
        raise

    if logger is not None:
        logger.info(
            "parse_completed",
            files=corpus.files,
            posts=len(corpus.posts),
            errors=len(corpus.errors),
            warnings=len(corpus.warnings),
            cache_hits=corpus.cache_hits,
        )

    if corpus.errors:
        duplicates = find_duplicate_slugs(corpus.posts)
        report = build_failure_report(
            status="invalid_posts",
            files=corpus.files,
            valid_posts=len(corpus.posts),
            errors=corpus.errors,
            warnings=corpus.warnings,
            duplicates=duplicates,
        )
        if logger is not None:
            logger.error("build_failed", status="invalid_posts", report=report)
        _finish("invalid_posts", corpus)
        return BuildResult(
            build_id=build_id,
            status="invalid_posts",
            files=corpus.files,
            posts=len(corpus.posts),
            cache_hits=corpus.cache_hits,
            errors=corpus.errors,
            warnings=corpus.warnings,
            failure_report=report,
            duplicates=tuple(duplicates),
        )

    try:
        index = build_corpus_index(corpus.posts)
    except DuplicateSlugError as e:
        if logger is not None:
            logger.exception("build_failed", exc=e, status="duplicate_slug", slug=e.slug)
        _finish("duplicate_slug", corpus)
        raise

    if logger is not None:
        logger.info(
            "index_completed",
            posts=len(index.timeline),
            tags=len(index.tags),
            featured=len(index.featured),
        )

    related = compute_related(corpus.posts, limit=config.related.limit)
    if logger is not None:
        logger.info(
            "relations_completed",
            posts_with_related=sum(1 for v in related.values() if v),
            limit=config.related.limit,
        )

    emitted: EmitResult | None = None
    if out_dir is not None:
        try:
            emitted = emit_artifacts(
                index,
                related,
                out_dir,
                config=config,
                config_hash=cfg_hash,
                built_at=when,
            )
        except EmitError as e:
            if logger is not None:
                logger.exception("build_failed", exc=e, status="emit_failed")
            _finish("emit_failed", corpus)
            raise

        if logger is not None:
            logger.info(
                "emit_completed",
                out_dir=str(emitted.out_dir),
                artifacts=len(emitted.artifacts),
                removed=list(emitted.removed),
            )

    _finish("completed", corpus)
    if logger is not None:
        logger.info("build_completed", status="completed", posts=len(index.timeline))

    return BuildResult(
        build_id=build_id,
        status="completed",
        files=corpus.files,
        posts=len(corpus.posts),
        cache_hits=corpus.cache_hits,
        errors=(),
        warnings=corpus.warnings,
        index=index,
        related=related,
        emitted=emitted,
    )
