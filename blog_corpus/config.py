from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError

CONFIG_ENV_VAR = "BLOG_CORPUS_CONFIG"


def resolve_config_path(
    path: str | Path | None, *, environ: Mapping[str, str] | None = None
) -> Path | None:
    """Explicit path first, then $BLOG_CORPUS_CONFIG; None means built-in defaults."""
    if path is not None and str(path).strip():
        return Path(path)
    env = os.environ if environ is None else environ
    from_env = (env.get(CONFIG_ENV_VAR) or "").strip()
    return Path(from_env) if from_env else None


def _read_mapping(p: Path) -> dict[str, Any]:
    if not p.is_file():
        raise ConfigError(f"Config file not found: {p}")

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")
    return data


def load_config(
    path: str | Path | None, *, environ: Mapping[str, str] | None = None
) -> AppConfig:
    """
    Load the build config into a typed AppConfig.

    With no path and no $BLOG_CORPUS_CONFIG the defaults apply. Raises
    ConfigError with a readable validation message on failure.
    """
    p = resolve_config_path(path, environ=environ)
    if p is None:
        return AppConfig()

    data = _read_mapping(p)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e


def _sha256_json(value: Any) -> str:
    payload = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def config_sha256(config: AppConfig) -> str:
    """
    Compute a stable SHA-256 hash of the config values for reproducibility.
    """
    return _sha256_json(config.model_dump(mode="json"))


def parse_settings_sha256(config: AppConfig) -> str:
    """
    Hash only the settings that influence how a single file becomes a Post.

    Cached posts are reusable across builds as long as this value is unchanged.
    """
    return _sha256_json(
        {
            "frontmatter": config.frontmatter.model_dump(mode="json"),
            "excerpt_chars": config.posts.excerpt_chars,
            "words_per_minute": config.posts.words_per_minute,
        }
    )


def _format_pydantic_errors(err: ValidationError, path: Path) -> str:
    lines: list[str] = [f"Invalid configuration in {path}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)
