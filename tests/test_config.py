from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from blog_corpus.config import (
    CONFIG_ENV_VAR,
    config_sha256,
    load_config,
    parse_settings_sha256,
    resolve_config_path,
)
from blog_corpus.config_schema import AppConfig
from blog_corpus.errors import ConfigError


_VALID_YAML = """\
frontmatter:
  missing: body_only
  max_header_bytes: 4096

posts:
  excerpt_chars: 120
  words_per_minute: 250
  future_dates: error
  extensions: [md, .MARKDOWN]

related:
  limit: 5

build:
  workers: 2
  collect_errors: true

site:
  base_url: https://example.com/
  title: Example
  description: Notes
  author_name: Someone
  author_email: someone@example.com
"""


class TestConfig(unittest.TestCase):
    def test_load_config_ok(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text(_VALID_YAML, encoding="utf-8")

            cfg = load_config(path)
            self.assertEqual(cfg.frontmatter.missing, "body_only")
            self.assertEqual(cfg.posts.excerpt_chars, 120)
            self.assertEqual(cfg.posts.extensions, [".md", ".markdown"])
            self.assertEqual(cfg.related.limit, 5)
            self.assertEqual(cfg.site.base_url, "https://example.com")

    def test_none_path_gives_defaults(self) -> None:
        cfg = load_config(None, environ={})
        self.assertEqual(cfg, AppConfig())
        self.assertEqual(cfg.related.limit, 3)
        self.assertEqual(cfg.posts.excerpt_chars, 200)
        self.assertEqual(cfg.frontmatter.missing, "reject")

    def test_env_var_supplies_config_path(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text("related:\n  limit: 1\n", encoding="utf-8")
            env = {CONFIG_ENV_VAR: str(path)}

            self.assertEqual(resolve_config_path(None, environ=env), path)
            self.assertEqual(load_config(None, environ=env).related.limit, 1)
            self.assertEqual(load_config(None, environ={CONFIG_ENV_VAR: "  "}), AppConfig())

    def test_explicit_path_beats_env_var(self) -> None:
        env = {CONFIG_ENV_VAR: "/from/env.yaml"}
        self.assertEqual(resolve_config_path("cli.yaml", environ=env), Path("cli.yaml"))

    def test_empty_file_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text("", encoding="utf-8")
            self.assertEqual(load_config(path), AppConfig())

    def test_missing_file(self) -> None:
        with self.assertRaises(ConfigError):
            load_config("/nonexistent/blog-corpus.yaml")

    def test_rejects_unknown_keys(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text("related:\n  limit: 3\n  fuzzy: true\n", encoding="utf-8")
            with self.assertRaises(ConfigError) as ctx:
                load_config(path)
            self.assertIn("related.fuzzy", str(ctx.exception))

    def test_rejects_bad_values(self) -> None:
        bad = [
            "frontmatter:\n  missing: maybe\n",
            "site:\n  base_url: example.com\n",
            "site:\n  post_path: /blog/\n",
            "posts:\n  excerpt_chars: 0\n",
            "- not\n- a mapping\n",
        ]
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            for text in bad:
                path.write_text(text, encoding="utf-8")
                with self.assertRaises(ConfigError, msg=text):
                    load_config(path)

    def test_hashes_are_stable(self) -> None:
        a = AppConfig()
        b = AppConfig()
        self.assertEqual(config_sha256(a), config_sha256(b))

        changed = AppConfig.model_validate({"related": {"limit": 4}})
        self.assertNotEqual(config_sha256(a), config_sha256(changed))
        self.assertEqual(parse_settings_sha256(a), parse_settings_sha256(changed))

        excerpt = AppConfig.model_validate({"posts": {"excerpt_chars": 80}})
        self.assertNotEqual(parse_settings_sha256(a), parse_settings_sha256(excerpt))


if __name__ == "__main__":
    unittest.main()
