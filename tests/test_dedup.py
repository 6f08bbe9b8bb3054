import unittest

from carebrief.curation.dedup import dedupe_candidates, title_similarity
from carebrief.curation.regions import is_domestic_host, region_of
from carebrief.curation.policy import DEFAULT_POLICY
from carebrief.ingestion.article_types import DOMESTIC, OVERSEAS, Candidate


class TestTitleSimilarity(unittest.TestCase):
    def test_identical_and_symmetric(self):
        self.assertEqual(title_similarity("介護AIの導入", "介護AIの導入"), 1.0)
        a, b = "AI in elderly care", "AI for elderly care"
        self.assertAlmostEqual(title_similarity(a, b), title_similarity(b, a))

    def test_whitespace_ignored(self):
        self.assertEqual(title_similarity("介護 AI", "介護AI"), 1.0)

    def test_unrelated_titles_score_low(self):
        self.assertLess(title_similarity("認知症ケアに生成AI", "Quarterly earnings report"), 0.2)

    def test_short_strings(self):
        self.assertEqual(title_similarity("a", "b"), 0.0)
        self.assertEqual(title_similarity("", ""), 0.0)


class TestDedupe(unittest.TestCase):
    def test_first_seen_wins(self):
        first = Candidate(title="介護施設で見守りAIの実証実験を開始", link="https://a.example.jp/1")
        second = Candidate(title="介護施設で見守りAIの実証実験を開始へ", link="https://b.example.jp/2")
        self.assertEqual(dedupe_candidates([first, second]), [first])
        self.assertEqual(dedupe_candidates([second, first]), [second])

    def test_same_link_dropped(self):
        a = Candidate(title="First title here", link="https://x.example.com/a")
        b = Candidate(title="Completely different", link="https://x.example.com/a")
        self.assertEqual(dedupe_candidates([a, b]), [a])

    def test_distinct_titles_kept(self):
        a = Candidate(title="認知症ケアに生成AIを導入", link="https://x.jp/1")
        b = Candidate(title="Telemedicine widens access for older adults", link="https://y.com/2")
        self.assertEqual(dedupe_candidates([a, b]), [a, b])


class TestRegions(unittest.TestCase):
    def test_suffix_and_exception(self):
        self.assertTrue(is_domestic_host("https://www.mhlw.go.jp/x", DEFAULT_POLICY.domestic_suffixes))
        self.assertFalse(is_domestic_host("https://www.nature.com/x", DEFAULT_POLICY.domestic_suffixes))
        self.assertTrue(
            is_domestic_host(
                "https://www.japantimes.co.jp/news",
                (),
                DEFAULT_POLICY.domestic_exceptions,
            )
        )

    def test_explicit_region_wins(self):
        c = Candidate(title="t", link="https://www.nature.com/x", region=DOMESTIC)
        self.assertEqual(region_of(c, DEFAULT_POLICY), DOMESTIC)
        c = Candidate(title="t", link="https://www.nikkei.co.jp/x")
        self.assertEqual(region_of(c, DEFAULT_POLICY), DOMESTIC)
        c = Candidate(title="t", link="https://www.bbc.co.uk/x")
        self.assertEqual(region_of(c, DEFAULT_POLICY), OVERSEAS)


if __name__ == "__main__":
    unittest.main()
