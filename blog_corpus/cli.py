from __future__ import annotations

import argparse
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Sequence

from .config import load_config
from .errors import ConfigError, DuplicateSlugError, EmitError, PostError, StorageError
from .failure_report import format_failure_report
from .pipeline import BuildResult, run_build
from .run_log import RunLogger
from .storage import SQLiteStateStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blog_corpus")

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser(
        "build",
        help="Parse every post, build the indexes and write the site artifacts.",
    )
    build.add_argument(
        "--content",
        required=True,
        help="Directory containing the post files.",
    )
    build.add_argument(
        "--out",
        required=True,
        help="Output directory for artifacts.",
    )
    build.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file (falls back to $BLOG_CORPUS_CONFIG, then defaults).",
    )
    build.add_argument(
        "--cache",
        default=None,
        help="SQLite file used to skip re-parsing unchanged posts.",
    )
    build.add_argument(
        "--log",
        default=None,
        help=(
            "JSONL build log path (default: <out>/build.log). The log is written even "
            "for failed builds and is never listed in manifest.json."
        ),
    )
    build.set_defaults(_handler=_cmd_build)

    check = subparsers.add_parser(
        "check",
        help="Validate posts and indexes without writing artifacts.",
    )
    check.add_argument(
        "--content",
        required=True,
        help="Directory containing the post files.",
    )
    check.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file (falls back to $BLOG_CORPUS_CONFIG, then defaults).",
    )
    check.set_defaults(_handler=_cmd_check)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _print_result(result: BuildResult) -> None:
    print(f"status={result.status}")
    print(f"files={result.files}")
    print(f"posts={result.posts}")
    print(f"cache_hits={result.cache_hits}")
    print(f"warnings={len(result.warnings)}")
    if result.index is not None:
        print(f"tags={len(result.index.tags)}")
        print(f"featured={len(result.index.featured)}")

    for w in result.warnings:
        _eprint(f"warning: {w.source_path}: {w.message}")

    if result.failure_report is not None:
        _eprint(format_failure_report(result.failure_report))


def _cmd_build(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    log_path = Path(args.log) if args.log else out_dir / "build.log"

    with RunLogger.open(log_path, overwrite=True) as log:
        log.info(
            "build_command_started",
            config_path=str(args.config) if args.config else None,
            content_dir=str(args.content),
            out_dir=str(out_dir),
            cache_path=str(args.cache) if args.cache else None,
        )

        try:
            cfg = load_config(args.config)

            with ExitStack() as stack:
                store = None
                if args.cache:
                    store = stack.enter_context(SQLiteStateStore.open(args.cache))

                result = run_build(cfg, args.content, out_dir, store=store, logger=log)

            _print_result(result)
            if result.emitted is not None:
                print(f"artifacts={len(result.emitted.artifacts)}")
                print(f"out_dir={result.emitted.out_dir}")
            print(f"build_log={log_path}")
            print(f"log_warnings={log.count('WARN')}")

            return 0 if result.status == "completed" else 4
        except Exception as e:
            log.exception("build_command_failed", exc=e)
            raise


def _cmd_check(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    result = run_build(cfg, args.content)
    _print_result(result)
    return 0 if result.status == "completed" else 4


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (EmitError, StorageError) as e:
        _eprint(str(e))
        return 3
    except (DuplicateSlugError, PostError) as e:
        _eprint(str(e))
        return 4
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
