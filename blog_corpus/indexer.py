from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from .dedupe import ensure_unique_slugs
from .post import Post, ordering_key


@dataclass(frozen=True)
class TagCount:
    tag: str
    count: int


@dataclass(frozen=True)
class CorpusIndex:
    """Derived indexes over one complete, validated set of posts."""

    posts: Mapping[str, Post] = field(default_factory=dict)
    timeline: Sequence[str] = ()
    tags: Mapping[str, Sequence[str]] = field(default_factory=dict)
    featured: Sequence[str] = ()
    archive: Mapping[str, Sequence[str]] = field(default_factory=dict)
    tag_counts: Sequence[TagCount] = ()

    def post(self, slug: str) -> Post:
        return self.posts[slug]


def _ordered_slugs(posts: Iterable[Post]) -> tuple[str, ...]:
    return tuple(p.slug for p in sorted(posts, key=ordering_key))


def build_tag_index(posts: Iterable[Post]) -> dict[str, tuple[str, ...]]:
    buckets: dict[str, list[Post]] = defaultdict(list)
    for post in posts:
        for tag in post.tags:
            buckets[tag].append(post)

    return {tag: _ordered_slugs(buckets[tag]) for tag in sorted(buckets)}


def build_featured_list(posts: Iterable[Post]) -> tuple[str, ...]:
    return _ordered_slugs(p for p in posts if p.featured)


def build_archive(posts: Iterable[Post]) -> dict[str, tuple[str, ...]]:
    buckets: dict[str, list[Post]] = defaultdict(list)
    for post in posts:
        buckets[f"{post.published_at.year:04d}"].append(post)

    return {year: _ordered_slugs(buckets[year]) for year in sorted(buckets, reverse=True)}


def build_corpus_index(posts: Sequence[Post]) -> CorpusIndex:
    """
    Aggregate every post into the derived indexes.

    Raises DuplicateSlugError before any index is built when two posts share a
    slug. Always recomputed from the whole set; nothing is patched in place.
    """
    ensure_unique_slugs(posts)

    by_slug = {p.slug: p for p in posts}
    tag_index = build_tag_index(posts)

    return CorpusIndex(
        posts=by_slug,
        timeline=_ordered_slugs(posts),
        tags=tag_index,
        featured=build_featured_list(posts),
        archive=build_archive(posts),
        tag_counts=tuple(TagCount(tag=t, count=len(slugs)) for t, slugs in tag_index.items()),
    )
