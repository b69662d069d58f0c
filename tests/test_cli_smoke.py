from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


def _env(repo_root: Path) -> dict[str, str]:
    env = dict(os.environ)
    existing_pp = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = (
        f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)
    )
    return env


def _write_posts(content: Path) -> None:
    content.mkdir(parents=True, exist_ok=True)
    (content / "2020-01-01-a.md").write_text(
        "---\ntitle: A\ntags: [rust, wasm]\n---\nAlpha body.\n", encoding="utf-8"
    )
    (content / "2020-01-02-b.md").write_text(
        "---\ntitle: B\ntags: [rust]\nfeatured: true\n---\nBeta body.\n", encoding="utf-8"
    )


class TestCLISmoke(unittest.TestCase):
    def test_build_writes_artifacts(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]

        with tempfile.TemporaryDirectory() as td:
            content = Path(td) / "content"
            out_dir = Path(td) / "out"
            _write_posts(content)

            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text(
                "site:\n  base_url: https://example.com\n  title: Example\n",
                encoding="utf-8",
            )

            proc = subprocess.run(
                [
                    sys.executable,
                    "-m",
                    "blog_corpus",
                    "build",
                    "--content",
                    str(content),
                    "--out",
                    str(out_dir),
                    "--config",
                    str(cfg_path),
                    "--cache",
                    str(Path(td) / "cache.sqlite3"),
                ],
                cwd=repo_root,
                env=_env(repo_root),
                capture_output=True,
                text=True,
            )

            self.assertEqual(proc.returncode, 0, msg=proc.stderr)
            self.assertIn("status=completed", proc.stdout)
            self.assertIn("posts=2", proc.stdout)
            self.assertIn("artifacts=", proc.stdout)
            self.assertIn("build_log=", proc.stdout)

            tags = json.loads((out_dir / "tags.json").read_text(encoding="utf-8"))
            self.assertEqual(tags["rust"], ["b", "a"])
            self.assertTrue((out_dir / "feed.xml").exists())
            self.assertTrue((out_dir / "sitemap.xml").exists())
            self.assertTrue((out_dir / "build.log").exists())

            manifest = json.loads((out_dir / "manifest.json").read_text(encoding="utf-8"))
            self.assertNotIn("build.log", manifest["artifacts"])

    def test_check_reports_invalid_posts(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]

        with tempfile.TemporaryDirectory() as td:
            content = Path(td) / "content"
            _write_posts(content)
            (content / "2020-01-03-broken.md").write_text(
                "---\ntags: [rust]\n---\nNo title.\n", encoding="utf-8"
            )

            proc = subprocess.run(
                [sys.executable, "-m", "blog_corpus", "check", "--content", str(content)],
                cwd=repo_root,
                env=_env(repo_root),
                capture_output=True,
                text=True,
            )

            self.assertEqual(proc.returncode, 4, msg=proc.stderr)
            self.assertIn("status=invalid_posts", proc.stdout)
            self.assertIn("[title]", proc.stderr)


if __name__ == "__main__":
    unittest.main()
