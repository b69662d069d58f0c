from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Sequence

import yaml


@dataclass(frozen=True)
class Post:
    """A validated, immutable post record built from one source file."""

    source_path: str
    slug: str
    title: str
    published_at: date
    excerpt: str
    tags: Sequence[str] = ()
    featured: bool = False
    body: str = ""

    cover_image: str | None = None
    reading_time_minutes: int = 1


def ordering_key(post: Post) -> tuple[int, str]:
    """Newest first, then slug ascending. Shared by every ordered index."""
    return (-post.published_at.toordinal(), post.slug)


def post_summary(post: Post) -> dict[str, Any]:
    return {
        "slug": post.slug,
        "title": post.title,
        "publishedAt": post.published_at.isoformat(),
        "excerpt": post.excerpt,
        "tags": list(post.tags),
        "featured": bool(post.featured),
        "coverImage": post.cover_image,
        "readingTimeMinutes": int(post.reading_time_minutes),
    }


def post_record(post: Post, *, related_slugs: Sequence[str] = ()) -> dict[str, Any]:
    """The per-post artifact handed to the site renderer."""
    record = post_summary(post)
    record["relatedSlugs"] = list(related_slugs)
    record["body"] = post.body
    record["sourcePath"] = post.source_path
    return record


def post_to_dict(post: Post) -> dict[str, Any]:
    return {
        "source_path": post.source_path,
        "slug": post.slug,
        "title": post.title,
        "published_at": post.published_at.isoformat(),
        "excerpt": post.excerpt,
        "tags": list(post.tags),
        "featured": bool(post.featured),
        "body": post.body,
        "cover_image": post.cover_image,
        "reading_time_minutes": int(post.reading_time_minutes),
    }


def post_from_dict(data: Mapping[str, Any]) -> Post:
    return Post(
        source_path=str(data["source_path"]),
        slug=str(data["slug"]),
        title=str(data["title"]),
        published_at=date.fromisoformat(str(data["published_at"])),
        excerpt=str(data.get("excerpt") or ""),
        tags=tuple(str(t) for t in data.get("tags") or ()),
        featured=bool(data.get("featured", False)),
        body=str(data.get("body") or ""),
        cover_image=data.get("cover_image") or None,
        reading_time_minutes=int(data.get("reading_time_minutes") or 1),
    )


def post_frontmatter(post: Post) -> dict[str, Any]:
    """
    Frontmatter fields that reproduce this post when parsed again.

    The slug and excerpt are written explicitly so the result does not depend
    on the file name or on the excerpt budget of a later build.
    """
    data: dict[str, Any] = {
        "title": post.title,
        "date": post.published_at,
        "slug": post.slug,
        "excerpt": post.excerpt,
        "tags": list(post.tags),
        "featured": bool(post.featured),
    }
    if post.cover_image:
        data["coverImage"] = post.cover_image
    return data


def render_post_file(post: Post) -> str:
    header = yaml.safe_dump(
        post_frontmatter(post),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return f"---\n{header}---\n{post.body}"
