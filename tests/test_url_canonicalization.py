import unittest

from carebrief.ingestion.url_utils import (
    canonicalize_url,
    domain_in,
    host_matches,
    is_absolute_url,
    resolve_redirector,
)


class TestUrlCanonicalization(unittest.TestCase):
    def test_canonicalize_strips_tracking_params(self):
        raw = "https://Example.com/path/to/article?utm_source=x&utm_medium=y&id=123&gclid=AAA#section"
        canon = canonicalize_url(raw)
        self.assertEqual(canon, "https://example.com/path/to/article?id=123")

    def test_no_dangling_query_separator(self):
        self.assertEqual(canonicalize_url("https://example.com/a?utm_source=x"), "https://example.com/a")

    def test_google_news_redirector_is_resolved(self):
        raw = "https://news.google.com/articles/abc?url=https://www.nature.com/articles/x1&hl=en"
        self.assertEqual(resolve_redirector(raw), "https://www.nature.com/articles/x1")
        self.assertEqual(canonicalize_url(raw), "https://www.nature.com/articles/x1")

    def test_google_news_without_target_is_kept(self):
        raw = "https://news.google.com/rss/articles/CBMi123"
        self.assertEqual(canonicalize_url(raw), raw)

    def test_empty_url(self):
        self.assertEqual(canonicalize_url("   "), "")


class TestHostMatching(unittest.TestCase):
    def test_subdomain_matches(self):
        self.assertTrue(host_matches("www.nature.com", "nature.com"))
        self.assertFalse(host_matches("notnature.com", "nature.com"))

    def test_domain_with_path_prefix(self):
        domains = ["apnews.com/press-release"]
        self.assertTrue(domain_in(domains, "https://apnews.com/press-release/abc"))
        self.assertFalse(domain_in(domains, "https://apnews.com/article/abc"))

    def test_is_absolute_url(self):
        self.assertTrue(is_absolute_url("https://www.example.co.jp/a/b"))
        self.assertFalse(is_absolute_url("/relative/path"))
        self.assertFalse(is_absolute_url("ftp://example.com/file"))
        self.assertFalse(is_absolute_url("https://exa mple.com/"))
        self.assertFalse(is_absolute_url(None))


if __name__ == "__main__":
    unittest.main()
