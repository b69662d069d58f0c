from __future__ import annotations

from typing import Sequence


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class StorageError(RuntimeError):
    """Raised when reading or writing the incremental cache in SQLite fails."""


class EmitError(RuntimeError):
    """Raised when writing build artifacts to the output directory fails."""


class PostError(ValueError):
    """
    Base class for problems tied to a single source file.

    These are collected per file so one build can report every broken post.
    """

    kind = "post_error"

    def __init__(self, source_path: str, reason: str, *, field: str | None = None) -> None:
        self.source_path = str(source_path)
        self.reason = str(reason)
        self.field = field
        super().__init__(self._message())

    def _message(self) -> str:
        if self.field:
            return f"{self.source_path}: {self.field}: {self.reason}"
        return f"{self.source_path}: {self.reason}"

    def as_dict(self) -> dict[str, str | None]:
        return {
            "kind": self.kind,
            "source_path": self.source_path,
            "field": self.field,
            "reason": self.reason,
        }


class MalformedFrontmatter(PostError):
    """Raised when a frontmatter block is unterminated or is not a YAML mapping."""

    kind = "malformed_frontmatter"


class MissingFrontmatter(PostError):
    """Raised when a file has no leading frontmatter block and the policy rejects that."""

    kind = "missing_frontmatter"


class ValidationError(PostError):
    """Raised when a frontmatter field is missing or has an unusable value."""

    kind = "validation_error"

    def __init__(self, source_path: str, field: str, reason: str) -> None:
        super().__init__(source_path, reason, field=field)


class DuplicateSlugError(RuntimeError):
    """Raised when two posts resolve to the same slug. Always fatal for the build."""

    def __init__(self, slug: str, source_paths: Sequence[str]) -> None:
        self.slug = slug
        self.source_paths = tuple(str(p) for p in source_paths)
        joined = ", ".join(self.source_paths)
        super().__init__(f"Duplicate slug {slug!r} produced by: {joined}")
