import unittest
from datetime import date, datetime, timezone

from blog_corpus.config_schema import SiteConfig
from blog_corpus.feed import render_rss, render_sitemap, tag_url, tag_url_segment
from blog_corpus.indexer import build_corpus_index
from blog_corpus.post import Post

_BUILT_AT = datetime(2026, 1, 10, 8, 0, tzinfo=timezone.utc)


def _post(slug: str, day: int, tags: tuple[str, ...] = ()) -> Post:
    return Post(
        source_path=f"{slug}.md",
        slug=slug,
        title=slug.upper(),
        published_at=date(2026, 1, day),
        excerpt=f"about {slug}",
        tags=tags,
    )


class TestFeed(unittest.TestCase):
    def setUp(self) -> None:
        self.index = build_corpus_index(
            [_post("a", 1, ("rust",)), _post("b", 2, ("machine learning",)), _post("c", 3)]
        )

    def test_feed_limit_keeps_newest(self) -> None:
        site = SiteConfig(base_url="https://example.com/", feed_limit=2)

        xml = render_rss(self.index, site=site, built_at=_BUILT_AT)

        self.assertIn("<link>https://example.com/blog/c</link>", xml)
        self.assertIn("<link>https://example.com/blog/b</link>", xml)
        self.assertNotIn("/blog/a<", xml)
        self.assertIn("<pubDate>Sat, 03 Jan 2026 00:00:00 GMT</pubDate>", xml)

    def test_author_combines_email_and_name(self) -> None:
        site = SiteConfig(
            base_url="https://example.com", author_email="me@example.com", author_name="Me"
        )

        xml = render_rss(self.index, site=site, built_at=_BUILT_AT)

        self.assertIn("<author>me@example.com (Me)</author>", xml)

    def test_tag_urls_replace_spaces(self) -> None:
        site = SiteConfig(base_url="https://example.com")

        self.assertEqual(tag_url_segment("machine learning"), "machine-learning")
        self.assertEqual(tag_url(site, "c++"), "https://example.com/blog/tags/c%2B%2B")

        xml = render_sitemap(self.index, site=site, built_at=_BUILT_AT)
        self.assertIn("<loc>https://example.com/blog/tags/machine-learning</loc>", xml)
        self.assertIn("<lastmod>2026-01-01</lastmod>", xml)

    def test_requires_base_url(self) -> None:
        with self.assertRaises(ValueError):
            render_rss(self.index, site=SiteConfig(), built_at=_BUILT_AT)
        with self.assertRaises(ValueError):
            render_sitemap(self.index, site=SiteConfig(), built_at=_BUILT_AT)


if __name__ == "__main__":
    unittest.main()
