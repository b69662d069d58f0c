from __future__ import annotations

from collections import Counter
from typing import Any, Mapping, Protocol, Sequence

from .errors import DuplicateSlugError, PostError


class _Warning(Protocol):
    def as_dict(self) -> dict[str, str]: ...


_RECOMMENDATIONS: dict[str, str] = {
    "missing_frontmatter": (
        "Start each post with a '---' frontmatter block, or set frontmatter.missing: body_only."
    ),
    "malformed_frontmatter": (
        "Close the frontmatter block with a '---' line and check the YAML between the delimiters."
    ),
    "validation_error": "Fix the named frontmatter fields; every post needs a title and a date.",
    "post_error": "Make sure every post file is readable.",
}


def build_failure_report(
    *,
    status: str,
    files: int,
    valid_posts: int,
    errors: Sequence[PostError],
    warnings: Sequence[_Warning] = (),
    duplicates: Sequence[DuplicateSlugError] = (),
) -> dict[str, Any]:
    st = (status or "").strip() or "unknown"

    by_kind = Counter(e.kind for e in errors)
    by_field = Counter(e.field for e in errors if e.field)

    details: dict[str, Any] = {
        "files": int(files),
        "valid_posts": int(valid_posts),
        "invalid_files": len({e.source_path for e in errors}),
        "errors_by_kind": dict(sorted(by_kind.items())),
        "errors_by_field": dict(sorted(by_field.items())),
        "warnings": len(warnings),
        "duplicate_slugs": len(duplicates),
    }

    summary = f"Build stopped with status={st}."
    if st == "invalid_posts":
        summary = (
            f"{details['invalid_files']} of {int(files)} post files failed validation; "
            "no artifacts were written."
        )

    recommendations = [_RECOMMENDATIONS[k] for k in sorted(by_kind) if k in _RECOMMENDATIONS]
    if by_field.get("date"):
        recommendations.append(
            "Add a date: YYYY-MM-DD field or name the file YYYY-MM-DD-slug.md."
        )
    if by_field.get("slug"):
        recommendations.append("Explicit slugs may only contain a-z, 0-9 and '-'.")
    if duplicates:
        recommendations.append(
            "Give each post a distinct slug: rename one of the files or set an explicit slug."
        )

    return {
        "status": st,
        "summary": summary,
        "details": details,
        "errors": [e.as_dict() for e in errors],
        "warnings": [w.as_dict() for w in warnings],
        "duplicate_slugs": [
            {"slug": d.slug, "source_paths": list(d.source_paths)} for d in duplicates
        ],
        "recommendations": recommendations,
    }


def format_failure_report(report: Mapping[str, Any]) -> str:
    status = str(report.get("status") or "").strip() or "unknown"
    summary = str(report.get("summary") or "").strip() or f"Build stopped ({status})."

    lines: list[str] = [summary]

    errs = report.get("errors")
    if isinstance(errs, list) and errs:
        lines.append("Errors:")
        for e in errs:
            if not isinstance(e, Mapping):
                continue
            path = str(e.get("source_path") or "?")
            field = e.get("field")
            reason = str(e.get("reason") or "").strip()
            where = f"{path} [{field}]" if field else path
            lines.append(f"- {where}: {reason}")

    dups = report.get("duplicate_slugs")
    if isinstance(dups, list) and dups:
        lines.append("Duplicate slugs:")
        for d in dups:
            if not isinstance(d, Mapping):
                continue
            paths = ", ".join(str(p) for p in d.get("source_paths") or [])
            lines.append(f"- {d.get('slug')}: {paths}")

    recs = report.get("recommendations")
    if isinstance(recs, list) and recs:
        lines.append("Recommendations:")
        for r in recs:
            t = str(r or "").strip()
            if t:
                lines.append(f"- {t}")

    return "\n".join(lines)
