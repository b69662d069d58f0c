from __future__ import annotations

import unittest
from datetime import date

from blog_corpus.frontmatter import parse_frontmatter
from blog_corpus.normalize import build_post
from blog_corpus.post import Post, post_from_dict, post_record, post_to_dict, render_post_file


def _reparse(post: Post) -> Post:
    parsed = parse_frontmatter(render_post_file(post), source_path=post.source_path)
    return build_post(parsed.metadata, parsed.body, source_path=post.source_path)


class TestPostSerialization(unittest.TestCase):
    def test_rendered_file_parses_back_to_equal_post(self) -> None:
        source = (
            "---\n"
            "title: 'Rust: the good parts'\n"
            "tags: [Rust, ' WASM', rust]\n"
            "featured: true\n"
            "coverImage: /img/rust.png\n"
            "---\n"
            "Intro paragraph about *Rust*.\n\nMore text.\n"
        )
        parsed = parse_frontmatter(source, source_path="content/2026-01-01-rust-parts.md")
        post = build_post(parsed.metadata, parsed.body, source_path="content/2026-01-01-rust-parts.md")

        again = _reparse(post)

        self.assertEqual(again, post)
        self.assertEqual(again.tags, ("rust", "wasm"))
        self.assertEqual(_reparse(again), post)

    def test_dict_round_trip(self) -> None:
        post = Post(
            source_path="a.md",
            slug="a",
            title="A",
            published_at=date(2026, 1, 1),
            excerpt="e",
            tags=("x", "y"),
            featured=True,
            body="body",
            cover_image=None,
            reading_time_minutes=2,
        )
        self.assertEqual(post_from_dict(post_to_dict(post)), post)

    def test_post_record_shape(self) -> None:
        post = Post(
            source_path="a.md",
            slug="a",
            title="A",
            published_at=date(2026, 1, 1),
            excerpt="e",
            tags=("x",),
        )
        record = post_record(post, related_slugs=("b",))
        self.assertEqual(record["publishedAt"], "2026-01-01")
        self.assertEqual(record["relatedSlugs"], ["b"])
        for key in ("slug", "title", "excerpt", "tags", "featured", "body"):
            self.assertIn(key, record)


if __name__ == "__main__":
    unittest.main()
