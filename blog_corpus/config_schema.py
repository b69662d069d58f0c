from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]+$")


def _normalize_extensions(values: list[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()

    for item in values:
        ext = (item or "").strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        if not _EXTENSION_RE.fullmatch(ext):
            raise ValueError(f"invalid file extension: {item!r}")
        if ext in seen:
            continue
        seen.add(ext)
        out.append(ext)

    if not out:
        raise ValueError("must contain at least one extension")
    return out


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]


class FrontmatterConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    # reject: files without a leading --- block are errors.
    # body_only: the whole file is treated as body with empty metadata.
    missing: Literal["reject", "body_only"] = "reject"
    max_header_bytes: PositiveInt = 10 * 1024


class PostsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    excerpt_chars: PositiveInt = 200
    words_per_minute: PositiveInt = 200
    future_dates: Literal["warn", "ignore", "error"] = "warn"
    extensions: list[str] = Field(default_factory=lambda: [".md", ".mdx"])

    @field_validator("extensions")
    @classmethod
    def _normalize_extension_list(cls, v: list[str]) -> list[str]:
        return _normalize_extensions(v)


class RelatedConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    limit: NonNegativeInt = 3


class BuildConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    workers: NonNegativeInt = 0  # 0 uses os.cpu_count()
    collect_errors: bool = True


class SiteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str | None = None
    title: str = "Blog"
    description: str = ""
    author_name: str = ""
    author_email: str = ""
    language: str = "en"
    feed_limit: NonNegativeInt = 0  # 0 puts every post in the feed
    index_path: str = "/blog"
    post_path: str = "/blog/{slug}"
    tag_path: str = "/blog/tags/{tag}"

    @field_validator("post_path")
    @classmethod
    def _post_path_needs_slug(cls, v: str) -> str:
        if "{slug}" not in v:
            raise ValueError("must contain the {slug} placeholder")
        return v

    @field_validator("tag_path")
    @classmethod
    def _tag_path_needs_tag(cls, v: str) -> str:
        if "{tag}" not in v:
            raise ValueError("must contain the {tag} placeholder")
        return v

    @field_validator("base_url")
    @classmethod
    def _base_url_must_be_http(cls, v: str | None) -> str | None:
        if v is None:
            return None
        url = v.strip().rstrip("/")
        if not url:
            return None
        if not url.startswith(("http://", "https://")):
            raise ValueError("must start with http:// or https://")
        return url


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    frontmatter: FrontmatterConfig = Field(default_factory=FrontmatterConfig)
    posts: PostsConfig = Field(default_factory=PostsConfig)
    related: RelatedConfig = Field(default_factory=RelatedConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    site: SiteConfig = Field(default_factory=SiteConfig)
