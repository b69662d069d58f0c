from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime
from pathlib import PurePath
from typing import Any, Mapping

from .errors import ValidationError
from .post import Post

_SLUG_RE = re.compile(r"^[a-z0-9-]+$")
_ISO_DATE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ][0-9:.+\-Z]*)?$")
_FILENAME_DATE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})-(.*)$")
_H1_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$")

_RULE_RE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")
_IMAGE_ONLY_RE = re.compile(r"^!\[[^\]]*\]\([^)]*\)$")
_LIST_MARKER_RE = re.compile(r"^(?:[-*+]|\d+[.)])\s+")
_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_STRONG_RE = re.compile(r"(\*\*|__)(.+?)\1")
_EM_STAR_RE = re.compile(r"\*(\S(?:.*?\S)?)\*")
_EM_UNDERSCORE_RE = re.compile(r"(?<!\w)_(\S(?:.*?\S)?)_(?!\w)")
_WORD_RE = re.compile(r"\S+")

_TRAILING_PUNCT = " ,;:.-–—"
ELLIPSIS = "…"


def _coerce_text(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    return None


def slugify(value: str) -> str:
    """
    Lower-case, turn spaces/underscores into hyphens, drop everything else
    outside [a-z0-9-].
    """
    s = unicodedata.normalize("NFKD", value or "")
    s = s.encode("ascii", "ignore").decode("ascii")
    s = s.strip().lower()
    s = re.sub(r"[\s_]+", "-", s)
    s = re.sub(r"[^a-z0-9-]", "", s)
    s = re.sub(r"-{2,}", "-", s)
    return s.strip("-")


def filename_parts(source_path: str) -> tuple[str | None, str]:
    """Return (date prefix or None, remainder) of a post's file stem."""
    stem = PurePath(source_path).stem
    m = _FILENAME_DATE_RE.match(stem)
    if m:
        return m.group(1), m.group(2)
    return None, stem


def normalize_tags(values: Any, *, source_path: str) -> tuple[str, ...]:
    if values is None:
        return ()

    if isinstance(values, (str, int, float)) and not isinstance(values, bool):
        items: list[Any] = [values]
    elif isinstance(values, (list, tuple)):
        items = list(values)
    else:
        raise ValidationError(source_path, "tags", "must be a list of strings")

    out: list[str] = []
    seen: set[str] = set()
    for i, item in enumerate(items):
        if item is None:
            continue
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            raise ValidationError(
                source_path, "tags", f"item {i} must be a string, got {type(item).__name__}"
            )
        tag = str(item).strip().lower()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        out.append(tag)
    return tuple(out)


def _parse_iso_date(value: str, *, source_path: str) -> date:
    m = _ISO_DATE_RE.match(value.strip())
    if not m:
        raise ValidationError(source_path, "date", f"expected YYYY-MM-DD, got {value!r}")
    try:
        return date.fromisoformat(m.group(1))
    except ValueError as e:
        raise ValidationError(source_path, "date", f"not a calendar date: {value!r}") from e


def resolve_date(value: Any, *, source_path: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        return _parse_iso_date(value, source_path=source_path)

    if value is not None and not isinstance(value, str):
        raise ValidationError(
            source_path, "date", f"must be a YYYY-MM-DD string, got {type(value).__name__}"
        )

    prefix, _ = filename_parts(source_path)
    if prefix is None:
        raise ValidationError(
            source_path, "date", "missing from frontmatter and file name has no YYYY-MM-DD prefix"
        )
    try:
        return date.fromisoformat(prefix)
    except ValueError as e:
        raise ValidationError(
            source_path, "date", f"file name prefix is not a calendar date: {prefix!r}"
        ) from e


def resolve_slug(value: Any, *, source_path: str) -> str:
    if value is not None:
        explicit = _coerce_text(value)
        if explicit is None or not _SLUG_RE.fullmatch(explicit):
            raise ValidationError(
                source_path, "slug", f"must match [a-z0-9-]+, got {value!r}"
            )
        return explicit

    _, remainder = filename_parts(source_path)
    slug = slugify(remainder)
    if not slug:
        raise ValidationError(source_path, "slug", "could not derive a slug from the file name")
    return slug


def _strip_inline_markdown(text: str) -> str:
    s = _IMAGE_RE.sub(r"\1", text)
    s = _LINK_RE.sub(r"\1", s)
    s = _STRONG_RE.sub(r"\2", s)
    s = _EM_STAR_RE.sub(r"\1", s)
    s = _EM_UNDERSCORE_RE.sub(r"\1", s)
    return s.replace("`", "")


def first_paragraph(body: str) -> str:
    """
    First run of prose lines in a Markdown body.

    Headings, fenced code, block quotes, tables, rules, raw HTML and
    image-only lines are skipped.
    """
    paragraph: list[str] = []
    in_fence = False

    for raw in (body or "").splitlines():
        ln = raw.strip()

        if ln.startswith("```") or ln.startswith("~~~"):
            if paragraph:
                break
            in_fence = not in_fence
            continue
        if in_fence:
            continue

        if not ln:
            if paragraph:
                break
            continue

        skip = (
            ln.startswith(("#", ">", "|", "<"))
            or _RULE_RE.match(ln) is not None
            or _IMAGE_ONLY_RE.match(ln) is not None
        )
        if skip:
            if paragraph:
                break
            continue

        paragraph.append(_LIST_MARKER_RE.sub("", ln))

    return " ".join(paragraph)


def truncate_on_word(text: str, limit: int) -> str:
    """Shorten `text` to at most `limit` characters, ellipsis included."""
    if len(text) <= limit:
        return text

    budget = max(0, limit - len(ELLIPSIS))
    cut = text[:budget]
    if not text[budget].isspace():
        space = cut.rfind(" ")
        if space > 0:
            cut = cut[:space]
    cut = cut.rstrip(_TRAILING_PUNCT)
    return cut + ELLIPSIS


def derive_excerpt(body: str, *, limit: int = 200) -> str:
    text = _strip_inline_markdown(first_paragraph(body))
    text = " ".join(text.split())
    return truncate_on_word(text, limit)


def reading_time_minutes(body: str, *, words_per_minute: int = 200) -> int:
    words = len(_WORD_RE.findall(body or ""))
    return max(1, math.ceil(words / max(1, words_per_minute)))


def title_from_body(body: str) -> str | None:
    for raw in (body or "").splitlines():
        m = _H1_RE.match(raw.strip())
        if m:
            return m.group(1).strip() or None
    return None


def _resolve_title(metadata: Mapping[str, Any], body: str, *, source_path: str, from_body: bool) -> str:
    value = metadata.get("title")
    if isinstance(value, bool) or not (value is None or isinstance(value, (str, int, float))):
        raise ValidationError(
            source_path, "title", f"must be a string, got {type(value).__name__}"
        )

    title = _coerce_text(value)
    if title is None and from_body:
        title = title_from_body(body)
    if title is None:
        raise ValidationError(source_path, "title", "required field is missing or empty")
    return title


def _resolve_featured(value: Any, *, source_path: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    raise ValidationError(source_path, "featured", f"must be true or false, got {value!r}")


def _resolve_cover_image(metadata: Mapping[str, Any], *, source_path: str) -> str | None:
    for key in ("coverImage", "cover_image"):
        value = metadata.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(source_path, key, "must be a string")
        return value.strip() or None
    return None


def build_post(
    metadata: Mapping[str, Any],
    body: str,
    *,
    source_path: str,
    excerpt_chars: int = 200,
    words_per_minute: int = 200,
    title_fallback_from_body: bool = False,
) -> Post:
    """
    Validate frontmatter fields and normalize them into a Post.

    Raises ValidationError naming the first offending field.
    """
    title = _resolve_title(
        metadata, body, source_path=source_path, from_body=title_fallback_from_body
    )
    published_at = resolve_date(metadata.get("date"), source_path=source_path)
    slug = resolve_slug(metadata.get("slug"), source_path=source_path)
    tags = normalize_tags(metadata.get("tags"), source_path=source_path)
    featured = _resolve_featured(metadata.get("featured"), source_path=source_path)

    raw_excerpt = metadata.get("excerpt")
    if raw_excerpt is not None and not isinstance(raw_excerpt, str):
        raise ValidationError(source_path, "excerpt", "must be a string")
    excerpt = (raw_excerpt or "").strip()
    if not excerpt:
        excerpt = derive_excerpt(body, limit=excerpt_chars)

    return Post(
        source_path=source_path,
        slug=slug,
        title=title,
        published_at=published_at,
        excerpt=excerpt,
        tags=tags,
        featured=featured,
        body=body,
        cover_image=_resolve_cover_image(metadata, source_path=source_path),
        reading_time_minutes=reading_time_minutes(body, words_per_minute=words_per_minute),
    )
