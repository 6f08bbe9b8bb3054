"""Ingestors for the weekly digest sources.

- NewsAPI keyword search (Japanese + English queries)
- Google News RSS search (domestic JP query / overseas EN query with site: allowlist)
- Plain RSS feeds (ministry + IT press)

Every ingestor only translates its source format into ``Candidate``; filtering,
dedup and scoring happen in ``carebrief.curation``.
"""

from __future__ import annotations

import html
import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import quote_plus, urlparse

import feedparser
import requests

from carebrief.ingestion.article_types import DOMESTIC, OVERSEAS, Candidate
from carebrief.ingestion.url_utils import canonicalize_url

logger = logging.getLogger(__name__)

USER_AGENT = "CareBrief/1.0"

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def _parse_dt(dt: Any) -> Optional[datetime]:
    """Coerce ISO-8601 / RFC-822 strings, struct_time and datetimes to aware UTC."""
    if not dt:
        return None
    if isinstance(dt, datetime):
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    if isinstance(dt, time.struct_time):
        return datetime(*dt[:6], tzinfo=timezone.utc)
    s = str(dt).strip()
    if not s:
        return None
    iso = s.replace("Z", "+00:00")
    if " " in iso and "T" not in iso and "," not in iso:
        iso = iso.replace(" ", "T", 1)
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(s)
        except (TypeError, ValueError, IndexError):
            return None
    # Normalize naive to UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _clean_text(value: Any, limit: int = 500) -> str:
    if not isinstance(value, str):
        return ""
    text = html.unescape(_TAG_RE.sub(" ", value))
    return _WS_RE.sub(" ", text).strip()[:limit]


def _entry_get(entry: Any, key: str) -> Any:
    value = getattr(entry, key, None)
    if value is None and isinstance(entry, dict):
        value = entry.get(key)
    return value


class BaseIngestor:
    name: str = "base"

    def fetch(self) -> List[Candidate]:
        raise NotImplementedError


@dataclass(frozen=True)
class NewsAPIIngestor(BaseIngestor):
    """NewsAPI ``/v2/everything`` keyword search over title, description and content."""

    api_key: str
    queries: Sequence[Tuple[str, str]] = field(default_factory=lambda: list(NEWSAPI_QUERIES))
    days: int = 7
    page_size: int = 50
    endpoint: str = "https://newsapi.org/v2/everything"
    timeout: int = 30

    name: str = "newsapi"

    def fetch(self) -> List[Candidate]:
        since = (datetime.now(timezone.utc) - timedelta(days=self.days)).date().isoformat()
        out: List[Candidate] = []
        for query, language in self.queries:
            out.extend(self._fetch_query(query, language, since))
        return out

    def _fetch_query(self, query: str, language: str, since: str) -> List[Candidate]:
        params = {
            "q": query,
            "language": language,
            "sortBy": "publishedAt",
            "pageSize": min(max(self.page_size, 1), 100),
            "from": since,
            "searchIn": "title,description,content",
        }
        headers = {"X-Api-Key": self.api_key, "User-Agent": USER_AGENT}
        resp = requests.get(self.endpoint, params=params, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json() or {}
        out: List[Candidate] = []
        for a in data.get("articles") or []:
            if not isinstance(a, dict):
                continue
            url = a.get("url") or ""
            title = a.get("title") or ""
            if not url or not title:
                continue
            src = a.get("source")
            source_name = (src.get("name") if isinstance(src, dict) else None) or "NewsAPI"
            out.append(
                Candidate(
                    title=str(title).strip(),
                    link=canonicalize_url(str(url)),
                    published_at=_parse_dt(a.get("publishedAt")),
                    source_name=str(source_name).strip(),
                    snippet=_clean_text(a.get("description")),
                    ingestion_source=self.name,
                )
            )
        return out


@dataclass(frozen=True)
class GoogleNewsRSSIngestor(BaseIngestor):
    """Google News RSS search; each query carries an explicit region."""

    searches: Sequence[Tuple[str, str]]  # (feed_url, region)
    name: str = "google_news"

    def fetch(self) -> List[Candidate]:
        out: List[Candidate] = []
        for feed_url, region in self.searches:
            parsed = feedparser.parse(feed_url, agent=USER_AGENT)
            feed_title = _entry_get(getattr(parsed, "feed", {}) or {}, "title") or urlparse(feed_url).hostname or ""
            feed_title = re.sub(r"^Google News - ", "", str(feed_title), flags=re.IGNORECASE).strip()
            for entry in parsed.entries or []:
                link = _entry_get(entry, "link")
                title = _entry_get(entry, "title")
                if not link or not title:
                    continue
                source = _entry_get(entry, "source")
                source_name = _entry_get(source, "title") if source else None
                published = (
                    _entry_get(entry, "published_parsed")
                    or _entry_get(entry, "published")
                    or _entry_get(entry, "updated")
                )
                out.append(
                    Candidate(
                        title=str(title).strip(),
                        link=canonicalize_url(str(link)),
                        published_at=_parse_dt(published),
                        source_name=str(source_name or feed_title).strip(),
                        snippet=_clean_text(_entry_get(entry, "summary")),
                        region=region,
                        ingestion_source=self.name,
                    )
                )
        return out


@dataclass(frozen=True)
class RSSIngestor(BaseIngestor):
    """Generic RSS ingestor for a list of feed URLs."""

    feeds: Sequence[Tuple[str, str]]  # (feed_name, feed_url)
    name: str = "rss"

    def fetch(self) -> List[Candidate]:
        out: List[Candidate] = []
        for feed_name, feed_url in self.feeds:
            parsed = feedparser.parse(feed_url, agent=USER_AGENT)
            source_name = _entry_get(getattr(parsed, "feed", {}) or {}, "title") or feed_name
            for entry in parsed.entries or []:
                link = _entry_get(entry, "link")
                title = _entry_get(entry, "title")
                if not link or not title:
                    continue
                # published / updated / dc:date are common RSS fields
                published = (
                    _entry_get(entry, "published_parsed")
                    or _entry_get(entry, "updated_parsed")
                    or _entry_get(entry, "published")
                    or _entry_get(entry, "updated")
                )
                out.append(
                    Candidate(
                        title=str(title).strip(),
                        link=str(link).strip(),
                        published_at=_parse_dt(published),
                        source_name=str(source_name).strip(),
                        snippet=_clean_text(_entry_get(entry, "summary")),
                        ingestion_source=self.name,
                    )
                )
        return out


def _safe_fetch(ingestor: BaseIngestor) -> List[Candidate]:
    try:
        items = ingestor.fetch()
    except Exception as e:
        logger.warning(f"[ingest] {ingestor.name} failed, skipping: {e}")
        return []
    logger.info(f"[ingest] {ingestor.name} candidates={len(items)}")
    return items


def collect_candidates(ingestors: Sequence[BaseIngestor], *, max_workers: int = 1) -> List[Candidate]:
    """Run every ingestor and merge their output.

    A failing ingestor contributes zero candidates. The merge is always
    concatenated in ``ingestors`` order, also when fetched in parallel, so
    downstream first-seen-wins dedup stays reproducible.
    """
    if not ingestors:
        return []
    if max_workers <= 1:
        batches = [_safe_fetch(i) for i in ingestors]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            batches = list(pool.map(_safe_fetch, ingestors))
    merged: List[Candidate] = []
    for batch in batches:
        merged.extend(batch)
    return merged


# -----------------------------
# Source descriptors
# -----------------------------
NEWSAPI_QUERIES: List[Tuple[str, str]] = [
    (
        "(高齢者 OR 介護 OR 老人 OR 在宅医療 OR 地域包括 OR 見守り OR 転倒 OR 認知症) "
        "AND (AI OR 人工知能 OR 生成AI OR デジタルヘルス OR 遠隔診療 OR データ分析 OR DX)",
        "ja",
    ),
    (
        '(elderly OR seniors OR geriatric OR "nursing home" OR "long-term care") '
        'AND (AI OR "artificial intelligence" OR "digital health" OR telemedicine OR "fall detection")',
        "en",
    ),
]

GOOGLE_NEWS_QUERY_JP = (
    '("高齢者" OR "介護" OR "在宅医療" OR "認知症") '
    '(AI OR "人工知能" OR "生成AI" OR "デジタルヘルス" OR "遠隔診療")'
)
GOOGLE_NEWS_QUERY_EN = (
    '(elderly OR seniors OR geriatric OR "nursing home" OR "long-term care" OR "older adults" OR dementia) '
    '(AI OR "artificial intelligence" OR "digital health" OR telemedicine OR "fall detection" OR "remote monitoring")'
)


def google_news_searches(site_domains: Sequence[str]) -> List[Tuple[str, str]]:
    """Build the JP (domestic) and EN (overseas, restricted to ``site_domains``) search feeds."""
    url_jp = (
        "https://news.google.com/rss/search?q="
        + quote_plus(GOOGLE_NEWS_QUERY_JP)
        + "&hl=ja&gl=JP&ceid=JP:ja"
    )
    query_en = GOOGLE_NEWS_QUERY_EN
    if site_domains:
        query_en += " (" + " OR ".join(f"site:{d}" for d in site_domains) + ")"
    url_en = (
        "https://news.google.com/rss/search?q="
        + quote_plus(query_en)
        + "&hl=en&gl=US&ceid=US:en"
    )
    return [(url_jp, DOMESTIC), (url_en, OVERSEAS)]


def default_rss_feeds() -> List[Tuple[str, str]]:
    """Curated starter RSS set (ministry + IT press)."""
    return [
        ("厚生労働省", "https://www.mhlw.go.jp/stf/news.rdf"),
        ("ITmedia NEWS", "https://rss.itmedia.co.jp/rss/2.0/news_bursts.xml"),
    ]
