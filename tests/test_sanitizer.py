import json
import unittest
from datetime import datetime, timezone

from carebrief.contracts.sanitizer import (
    UNKNOWN_PUBLISHED,
    clip_text,
    fallback_record,
    format_local,
    is_valid_source,
    parse_model_output,
    sanitize_summary,
    sanitize_tags,
)
from carebrief.contracts.summary_record import DEFAULT_LIMITS, validate_summary_record
from carebrief.ingestion.article_types import Candidate

CANDIDATE = Candidate(
    title="介護施設で見守りAIの実証実験を開始、転倒を早期に検知",
    link="https://www.example.co.jp/a/b",
    published_at=datetime(2025, 1, 6, 1, 30, tzinfo=timezone.utc),
    source_name="Example新聞",
    snippet="都内の介護施設で、AIカメラを使った見守りの実証実験が始まった。夜間の転倒を検知し職員に通知する。",
)

VALID_OUTPUT = {
    "headline": "介護施設で見守りAI実証",
    "summary": "都内の介護施設でAIカメラによる見守りの実証実験が始まった。夜間の転倒を検知して職員に通知し、負担軽減と事故防止を狙う。",
    "tags": ["介護現場", "転倒予防", "見守り"],
    "source": "www.example.co.jp",
    "url": "https://www.example.co.jp/a/b",
    "published_local": "2025-01-06 10:30",
}

MALFORMED_INPUTS = [
    None,
    "",
    "not json at all",
    "```json\n{\"headline\": \"見出し\", \"summary\": \"短い\",}\n```",
    {"headline": "x" * 120, "summary": "y" * 500, "tags": "AND", "source": "https://www.example.co.jp/a"},
    {"headline": "", "summary": None, "tags": [1, None, "#AI", "AI", "転倒 予防"], "url": "javascript:alert(1)"},
    {"title": "別名キーの見出し", "jp_summary": "z" * 30, "source_domain": "nature.com AND who.int"},
    ["not", "an", "object"],
    "[" * 100000,
    '{"a":' * 100000,
    VALID_OUTPUT,
]


class TestSanitizer(unittest.TestCase):
    def test_tag_sanitization_example(self):
        tags = sanitize_tags(["介護 現場", "OR", "転倒予防", "site:nature.com", "AI"])
        self.assertEqual(tags, ["転倒予防", "AI"])

    def test_tags_capped_and_deduplicated(self):
        tags = sanitize_tags(["a1", "#a1", "a2", "a3", "a4", "a5", "a6"])
        self.assertEqual(tags, ["a1", "a2", "a3", "a4", "a5"])
        self.assertEqual(sanitize_tags("介護"), ["介護"])
        self.assertEqual(sanitize_tags(None), [])

    def test_source_repaired_from_url_host(self):
        raw = dict(VALID_OUTPUT, source="この記事は〜について説明しています。")
        record = sanitize_summary(raw, CANDIDATE)
        self.assertEqual(record.source, "www.example.co.jp")

    def test_source_validity(self):
        self.assertTrue(is_valid_source("Nature Medicine"))
        self.assertTrue(is_valid_source("www.nature.com"))
        self.assertFalse(is_valid_source("nature.com OR bmj.com"))
        self.assertFalse(is_valid_source("https://nature.com"))
        self.assertFalse(is_valid_source("#nature"))
        self.assertFalse(is_valid_source("Nature  Medicine"))
        self.assertFalse(is_valid_source("Nature　Medicine"))
        self.assertFalse(is_valid_source("x" * 65))

    def test_valid_output_passes_through(self):
        record = sanitize_summary(json.dumps(VALID_OUTPUT, ensure_ascii=False), CANDIDATE)
        self.assertEqual(record.headline, VALID_OUTPUT["headline"])
        self.assertEqual(record.summary, VALID_OUTPUT["summary"])
        self.assertEqual(list(record.tags), VALID_OUTPUT["tags"])
        self.assertEqual(record.url, CANDIDATE.link)

    def test_published_local_comes_from_candidate(self):
        raw = dict(VALID_OUTPUT, published_local="昨日")
        self.assertEqual(sanitize_summary(raw, CANDIDATE).published_local, "2025-01-06 10:30")
        undated = Candidate(title="t", link="https://x.example.com/a")
        self.assertEqual(sanitize_summary(raw, undated).published_local, UNKNOWN_PUBLISHED)

    def test_short_summary_falls_back_to_snippet(self):
        record = sanitize_summary(dict(VALID_OUTPUT, summary="短すぎる"), CANDIDATE)
        self.assertEqual(record.summary, CANDIDATE.snippet)

    def test_bounds_and_schema_for_malformed_inputs(self):
        for raw in MALFORMED_INPUTS:
            with self.subTest(raw=raw):
                record = sanitize_summary(raw, CANDIDATE)
                self.assertLessEqual(len(record.headline), DEFAULT_LIMITS.headline_max)
                self.assertLessEqual(len(record.summary), DEFAULT_LIMITS.summary_max)
                self.assertLessEqual(len(record.tags), DEFAULT_LIMITS.tags_max)
                self.assertEqual(validate_summary_record(record.to_dict()), [])

    def test_idempotent(self):
        for raw in MALFORMED_INPUTS:
            with self.subTest(raw=raw):
                once = sanitize_summary(raw, CANDIDATE)
                twice = sanitize_summary(once.to_dict(), CANDIDATE)
                self.assertEqual(once, twice)

    def test_fallback_record(self):
        record = fallback_record(CANDIDATE)
        self.assertEqual(record.tags, ())
        self.assertEqual(record.url, CANDIDATE.link)
        self.assertLessEqual(len(record.headline), DEFAULT_LIMITS.headline_max)
        self.assertEqual(record.headline, CANDIDATE.title)
        self.assertEqual(record.summary, CANDIDATE.snippet)
        self.assertEqual(validate_summary_record(record.to_dict()), [])


class TestHelpers(unittest.TestCase):
    def test_parse_model_output_deeply_nested_text(self):
        self.assertIsNone(parse_model_output("[" * 100000))
        self.assertIsNone(parse_model_output('{"a":' * 100000))

    def test_parse_model_output_repairs_trailing_comma(self):
        self.assertEqual(parse_model_output('```json\n{"a": [1, 2,],}\n```'), {"a": [1, 2]})
        self.assertIsNone(parse_model_output("[1, 2]"))

    def test_clip_text(self):
        self.assertEqual(clip_text("  a   b  ", 10), "a b")
        clipped = clip_text("あ" * 50, 40)
        self.assertEqual(len(clipped), 40)
        self.assertTrue(clipped.endswith("…"))

    def test_format_local_jst(self):
        self.assertEqual(format_local(datetime(2025, 1, 6, 15, 0, tzinfo=timezone.utc)), "2025-01-07 00:00")
        self.assertEqual(format_local(None), UNKNOWN_PUBLISHED)


if __name__ == "__main__":
    unittest.main()
