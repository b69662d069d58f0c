from __future__ import annotations

from .config import config_sha256, load_config
from .config_schema import AppConfig
from .errors import (
    ConfigError,
    DuplicateSlugError,
    EmitError,
    MalformedFrontmatter,
    MissingFrontmatter,
    PostError,
    StorageError,
    ValidationError,
)
from .frontmatter import ParsedFile, parse_frontmatter
from .indexer import CorpusIndex, build_corpus_index
from .normalize import build_post
from .pipeline import BuildResult, load_corpus, run_build
from .post import Post
from .relations import compute_related

__all__ = [
    "AppConfig",
    "BuildResult",
    "ConfigError",
    "CorpusIndex",
    "DuplicateSlugError",
    "EmitError",
    "MalformedFrontmatter",
    "MissingFrontmatter",
    "ParsedFile",
    "Post",
    "PostError",
    "StorageError",
    "ValidationError",
    "build_corpus_index",
    "build_post",
    "compute_related",
    "config_sha256",
    "load_config",
    "load_corpus",
    "parse_frontmatter",
    "run_build",
]
