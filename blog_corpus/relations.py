from __future__ import annotations

from collections import Counter, defaultdict
from typing import Mapping, Sequence

from .post import Post


def related_for(
    post: Post,
    *,
    posts_by_slug: Mapping[str, Post],
    tag_members: Mapping[str, Sequence[str]],
    limit: int,
) -> tuple[str, ...]:
    """
    Rank other posts by the number of tags shared with `post`.

    Ties go to the more recent post, then to the smaller slug. Posts sharing
    no tag are never returned, so the result may be shorter than `limit`.
    """
    if limit <= 0:
        return ()

    scores: Counter[str] = Counter()
    for tag in post.tags:
        for other in tag_members.get(tag, ()):
            if other != post.slug:
                scores[other] += 1

    ranked = sorted(
        scores.items(),
        key=lambda kv: (
            -kv[1],
            -posts_by_slug[kv[0]].published_at.toordinal(),
            kv[0],
        ),
    )
    return tuple(slug for slug, _ in ranked[:limit])


def compute_related(posts: Sequence[Post], *, limit: int = 3) -> dict[str, tuple[str, ...]]:
    posts_by_slug = {p.slug: p for p in posts}

    tag_members: dict[str, list[str]] = defaultdict(list)
    for p in posts:
        for tag in p.tags:
            tag_members[tag].append(p.slug)

    return {
        p.slug: related_for(
            p,
            posts_by_slug=posts_by_slug,
            tag_members=tag_members,
            limit=limit,
        )
        for p in sorted(posts, key=lambda x: x.slug)
    }
