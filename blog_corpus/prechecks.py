from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from .config_schema import PostsConfig
from .post import Post


@dataclass(frozen=True)
class PrecheckResult:
    passed: bool
    reasons: Sequence[str]


def run_date_checks(post: Post, *, build_date: date, posts: PostsConfig) -> PrecheckResult:
    """
    Sanity checks on a post's publication date relative to the build.

    These never alter the post; the caller decides whether a failed check is a
    warning or an error based on `posts.future_dates`.
    """
    reasons: list[str] = []

    if posts.future_dates != "ignore" and post.published_at > build_date:
        reasons.append("date_in_future")

    return PrecheckResult(passed=not reasons, reasons=reasons)
