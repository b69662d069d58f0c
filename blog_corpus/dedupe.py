from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .errors import DuplicateSlugError
from .post import Post


@dataclass
class SlugRegistry:
    """Maps each claimed slug to the source path that produced it."""

    owners: dict[str, str] = field(default_factory=dict)

    def has(self, slug: str) -> bool:
        return slug in self.owners

    def claim(self, post: Post) -> None:
        owner = self.owners.get(post.slug)
        if owner is not None and owner != post.source_path:
            raise DuplicateSlugError(post.slug, [owner, post.source_path])
        self.owners[post.slug] = post.source_path

    def update(self, posts: Iterable[Post]) -> None:
        for post in posts:
            self.claim(post)


def ensure_unique_slugs(posts: Iterable[Post]) -> SlugRegistry:
    registry = SlugRegistry()
    registry.update(posts)
    return registry


def find_duplicate_slugs(posts: Iterable[Post]) -> list[DuplicateSlugError]:
    """Every slug produced by more than one file, in first-seen order. Never raises."""
    owners: dict[str, list[str]] = {}
    for post in posts:
        paths = owners.setdefault(post.slug, [])
        if post.source_path not in paths:
            paths.append(post.source_path)
    return [DuplicateSlugError(slug, paths) for slug, paths in owners.items() if len(paths) > 1]
