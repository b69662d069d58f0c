from __future__ import annotations

import tempfile
import unittest
from datetime import date
from pathlib import Path

from blog_corpus.post import Post
from blog_corpus.storage import SQLiteStateStore
from blog_corpus.storage_schema import SCHEMA_VERSION


def _post(path: str, slug: str) -> Post:
    return Post(
        source_path=path,
        slug=slug,
        title=slug.title(),
        published_at=date(2026, 1, 1),
        excerpt="Excerpt.",
        tags=("a", "b"),
        featured=True,
        body="Body\n",
        cover_image="/c.png",
        reading_time_minutes=1,
    )


class TestSQLiteStateStore(unittest.TestCase):
    def test_creates_and_finishes_build(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            db_path = Path(td) / "nested" / "cache.sqlite"

            with SQLiteStateStore.open(db_path) as store:
                build = store.create_build(
                    config_hash="abc123",
                    versions={"python": "3.x"},
                    build_id="build_test",
                    started_at="2026-01-01T00:00:00+00:00",
                )
                self.assertEqual(build.build_id, "build_test")
                self.assertIsNone(build.status)

                store.finish_build("build_test", status="completed")
                fetched = store.get_build("build_test")
                self.assertIsNotNone(fetched)
                assert fetched is not None
                self.assertEqual(fetched.status, "completed")
                self.assertIsNotNone(fetched.ended_at)
                self.assertEqual(fetched.versions, {"python": "3.x"})

    def test_finish_build_records_counts(self) -> None:
        with SQLiteStateStore.open(":memory:") as store:
            store.create_build(config_hash="h", build_id="b1", started_at="2026-01-01T00:00:00+00:00")
            store.create_build(config_hash="h", build_id="b2", started_at="2026-01-02T00:00:00+00:00")
            store.finish_build(
                "b2",
                status="invalid_posts",
                counts={"files": 3, "posts": 2, "errors": 1, "warnings": 0},
            )

            latest = store.latest_build()
            assert latest is not None
            self.assertEqual(latest.build_id, "b2")
            self.assertEqual((latest.files, latest.posts, latest.errors, latest.warnings), (3, 2, 1, 0))

            first = store.get_build("b1")
            assert first is not None
            self.assertIsNone(first.posts)

    def test_schema_migrations_are_recorded(self) -> None:
        with SQLiteStateStore.open(":memory:") as store:
            versions = [
                int(r[0])
                for r in store.conn.execute("SELECT version FROM schema_migrations ORDER BY version")
            ]
            self.assertEqual(versions, list(range(1, SCHEMA_VERSION + 1)))

    def test_cached_post_requires_matching_hashes(self) -> None:
        with SQLiteStateStore.open(":memory:") as store:
            post = _post("content/a.md", "a")
            store.put_post(post, content_sha256="c1", settings_sha256="s1")

            self.assertEqual(
                store.cached_post("content/a.md", content_sha256="c1", settings_sha256="s1"),
                post,
            )
            self.assertIsNone(
                store.cached_post("content/a.md", content_sha256="c2", settings_sha256="s1")
            )
            self.assertIsNone(
                store.cached_post("content/a.md", content_sha256="c1", settings_sha256="s2")
            )

    def test_put_post_replaces_existing_row(self) -> None:
        with SQLiteStateStore.open(":memory:") as store:
            store.put_post(_post("content/a.md", "a"), content_sha256="c1", settings_sha256="s")
            store.put_post(_post("content/a.md", "a2"), content_sha256="c2", settings_sha256="s")

            self.assertEqual(store.cached_post_count(), 1)
            cached = store.cached_post("content/a.md", content_sha256="c2", settings_sha256="s")
            assert cached is not None
            self.assertEqual(cached.slug, "a2")

    def test_prune_missing(self) -> None:
        with SQLiteStateStore.open(":memory:") as store:
            store.put_post(_post("content/a.md", "a"), content_sha256="c", settings_sha256="s")
            store.put_post(_post("content/b.md", "b"), content_sha256="c", settings_sha256="s")

            removed = store.prune_missing(["content/a.md"])

            self.assertEqual(removed, 1)
            self.assertEqual(store.cached_paths(), {"content/a.md"})

    def test_reopen_is_idempotent(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            db_path = Path(td) / "cache.sqlite"
            with SQLiteStateStore.open(db_path) as store:
                store.put_post(_post("a.md", "a"), content_sha256="c", settings_sha256="s")
            with SQLiteStateStore.open(db_path) as store:
                self.assertEqual(store.cached_post_count(), 1)


if __name__ == "__main__":
    unittest.main()
