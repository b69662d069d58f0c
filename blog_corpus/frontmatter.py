from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import yaml

from .errors import MalformedFrontmatter, MissingFrontmatter

_DELIMITER = b"---"
_BOM = b"\xef\xbb\xbf"
# A delimiter line may carry trailing whitespace past the header budget.
_DELIMITER_LINE_SLACK = 64

MissingPolicy = Literal["reject", "body_only"]


@dataclass(frozen=True)
class ParsedFile:
    metadata: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    has_frontmatter: bool = True


def _is_delimiter(line: bytes) -> bool:
    return line.rstrip(b"\r\n").rstrip() == _DELIMITER


def _decode(raw: bytes, *, source_path: str, what: str) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedFrontmatter(
            source_path, f"{what} is not valid UTF-8 (byte {e.start})"
        ) from e


def parse_frontmatter(
    content: bytes | str,
    *,
    source_path: str,
    missing: MissingPolicy = "reject",
    max_header_bytes: int = 10 * 1024,
) -> ParsedFile:
    """
    Split the leading YAML block of a post file from its Markdown body.

    The closing delimiter must start within `max_header_bytes` of the start of
    the file. Only that prefix is scanned for it.
    """
    raw = content.encode("utf-8") if isinstance(content, str) else bytes(content)
    if raw.startswith(_BOM):
        raw = raw[len(_BOM) :]

    window = raw[: max_header_bytes + _DELIMITER_LINE_SLACK]
    partial_tail = len(window) < len(raw)
    lines = window.splitlines(keepends=True)

    def _complete(i: int) -> bool:
        return not (partial_tail and i == len(lines) - 1)

    if not lines or not (_complete(0) and _is_delimiter(lines[0])):
        if missing == "body_only":
            body = _decode(raw, source_path=source_path, what="file")
            return ParsedFile(metadata={}, body=body, has_frontmatter=False)
        raise MissingFrontmatter(source_path, "file does not start with a '---' frontmatter block")

    offset = len(lines[0])
    header_end: int | None = None
    body_start = 0
    for i in range(1, len(lines)):
        if offset > max_header_bytes or not _complete(i):
            break
        if _is_delimiter(lines[i]):
            header_end = offset
            body_start = offset + len(lines[i])
            break
        offset += len(lines[i])

    if header_end is None:
        raise MalformedFrontmatter(
            source_path,
            f"no closing '---' delimiter within the first {max_header_bytes} bytes",
        )

    header = _decode(raw[len(lines[0]) : header_end], source_path=source_path, what="frontmatter")
    body = _decode(raw[body_start:], source_path=source_path, what="body")

    try:
        data = yaml.safe_load(header)
    except yaml.YAMLError as e:
        raise MalformedFrontmatter(source_path, f"invalid YAML: {e}") from e
    except (ValueError, OverflowError) as e:
        # Scalars PyYAML resolves but cannot build, e.g. `date: 2026-02-30`.
        raise MalformedFrontmatter(source_path, f"invalid YAML value: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise MalformedFrontmatter(
            source_path, f"frontmatter must be a mapping, got {type(data).__name__}"
        )

    metadata = {str(k): v for k, v in data.items()}
    return ParsedFile(metadata=metadata, body=body, has_frontmatter=True)
