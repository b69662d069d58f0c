from __future__ import annotations

import unittest
from datetime import date

from blog_corpus.config_schema import PostsConfig
from blog_corpus.post import Post
from blog_corpus.prechecks import run_date_checks


def _post(day: date) -> Post:
    return Post(source_path="x.md", slug="x", title="X", published_at=day, excerpt="")


class TestDateChecks(unittest.TestCase):
    def test_past_and_today_pass(self) -> None:
        today = date(2026, 5, 1)
        self.assertTrue(run_date_checks(_post(today), build_date=today, posts=PostsConfig()).passed)
        self.assertTrue(
            run_date_checks(_post(date(2020, 1, 1)), build_date=today, posts=PostsConfig()).passed
        )

    def test_future_date_flagged(self) -> None:
        result = run_date_checks(
            _post(date(2027, 1, 1)), build_date=date(2026, 5, 1), posts=PostsConfig()
        )
        self.assertFalse(result.passed)
        self.assertIn("date_in_future", result.reasons)

    def test_ignore_policy_skips_check(self) -> None:
        result = run_date_checks(
            _post(date(2027, 1, 1)),
            build_date=date(2026, 5, 1),
            posts=PostsConfig(future_dates="ignore"),
        )
        self.assertTrue(result.passed)


if __name__ == "__main__":
    unittest.main()
