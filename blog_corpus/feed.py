from __future__ import annotations

from datetime import date, datetime, time, timezone
from email.utils import format_datetime
from urllib.parse import quote
from xml.sax.saxutils import escape

from .config_schema import SiteConfig
from .indexer import CorpusIndex


def _rfc822(d: date | datetime) -> str:
    if not isinstance(d, datetime):
        d = datetime.combine(d, time(0, 0), tzinfo=timezone.utc)
    return format_datetime(d.astimezone(timezone.utc), usegmt=True)


def tag_url_segment(tag: str) -> str:
    return quote("-".join(tag.split()), safe="")


def post_url(site: SiteConfig, slug: str) -> str:
    return f"{site.base_url}{site.post_path.format(slug=slug)}"


def tag_url(site: SiteConfig, tag: str) -> str:
    return f"{site.base_url}{site.tag_path.format(tag=tag_url_segment(tag))}"


def render_rss(index: CorpusIndex, *, site: SiteConfig, built_at: datetime) -> str:
    """RSS 2.0 channel with posts in timeline order."""
    if not site.base_url:
        raise ValueError("site.base_url is required to render a feed")

    slugs = list(index.timeline)
    if site.feed_limit > 0:
        slugs = slugs[: site.feed_limit]

    author = ""
    if site.author_email:
        author = site.author_email
        if site.author_name:
            author = f"{site.author_email} ({site.author_name})"

    items: list[str] = []
    for slug in slugs:
        post = index.post(slug)
        link = escape(post_url(site, slug))
        lines = [
            "    <item>",
            f"      <title>{escape(post.title)}</title>",
            f"      <link>{link}</link>",
            f'      <guid isPermaLink="true">{link}</guid>',
            f"      <description>{escape(post.excerpt)}</description>",
            f"      <pubDate>{_rfc822(post.published_at)}</pubDate>",
        ]
        lines.extend(f"      <category>{escape(t)}</category>" for t in post.tags)
        if author:
            lines.append(f"      <author>{escape(author)}</author>")
        lines.append("    </item>")
        items.append("\n".join(lines))

    feed_url = escape(f"{site.base_url}/feed.xml")
    head = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">',
        "  <channel>",
        f"    <title>{escape(site.title)}</title>",
        f"    <link>{escape(site.base_url)}</link>",
        f"    <description>{escape(site.description)}</description>",
        f"    <language>{escape(site.language)}</language>",
        f"    <lastBuildDate>{_rfc822(built_at)}</lastBuildDate>",
        f'    <atom:link href="{feed_url}" rel="self" type="application/rss+xml"/>',
    ]
    tail = ["  </channel>", "</rss>", ""]
    return "\n".join(head + items + tail)


def _url_entry(loc: str, *, lastmod: date, changefreq: str, priority: float) -> str:
    return "\n".join(
        [
            "  <url>",
            f"    <loc>{escape(loc)}</loc>",
            f"    <lastmod>{lastmod.isoformat()}</lastmod>",
            f"    <changefreq>{changefreq}</changefreq>",
            f"    <priority>{priority:.1f}</priority>",
            "  </url>",
        ]
    )


def render_sitemap(index: CorpusIndex, *, site: SiteConfig, built_at: datetime) -> str:
    if not site.base_url:
        raise ValueError("site.base_url is required to render a sitemap")

    today = built_at.date()
    entries = [
        _url_entry(site.base_url, lastmod=today, changefreq="weekly", priority=1.0),
        _url_entry(
            f"{site.base_url}{site.index_path}", lastmod=today, changefreq="daily", priority=0.9
        ),
    ]
    for slug in index.timeline:
        post = index.post(slug)
        entries.append(
            _url_entry(
                post_url(site, slug),
                lastmod=post.published_at,
                changefreq="monthly",
                priority=0.7,
            )
        )
    for tag in index.tags:
        entries.append(_url_entry(tag_url(site, tag), lastmod=today, changefreq="weekly", priority=0.5))

    head = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    return "\n".join(head + entries + ["</urlset>", ""])
