"""Candidate curation: window → canonicalize → quality → relevance → dedup → score → regional quotas.

Nothing in here raises on an empty pool. Every stage keeps "as many as
qualify", including zero, and empty buckets are a valid weekly result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from carebrief.curation.dedup import dedupe_candidates
from carebrief.curation.policy import DEFAULT_POLICY, CurationPolicy
from carebrief.curation.regions import is_domestic_host, region_of
from carebrief.ingestion.article_types import DOMESTIC, Candidate
from carebrief.ingestion.url_utils import canonicalize_url, domain_in, is_absolute_url
from carebrief.scoring.article_scoring import ScoredCandidate, matches_any, score_candidate

logger = logging.getLogger(__name__)


@dataclass
class CurationReport:
    """Per-stage survivor counts of one run."""

    since: Optional[datetime] = None
    merged: int = 0
    in_window: int = 0
    complete: int = 0
    quality: int = 0
    relevant: int = 0
    relevance_mode: str = "and"
    deduped: int = 0
    domestic_pool: int = 0
    overseas_pool: int = 0
    overseas_tiers: Dict[str, int] = field(default_factory=dict)
    domestic_backfill: int = 0


@dataclass
class CurationResult:
    domestic: List[ScoredCandidate]
    overseas: List[ScoredCandidate]
    report: CurationReport

    def links(self) -> List[str]:
        return [s.link for s in self.domestic] + [s.link for s in self.overseas]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _fill(
    bucket: List[ScoredCandidate],
    pool: Iterable[ScoredCandidate],
    target: int,
    used: set,
) -> int:
    """Append items from ``pool`` (in order) until ``bucket`` reaches ``target``."""
    added = 0
    for item in pool:
        if len(bucket) >= target:
            break
        if item.link in used:
            continue
        bucket.append(item)
        used.add(item.link)
        added += 1
    return added


class CurationPipeline:
    def __init__(self, policy: CurationPolicy = DEFAULT_POLICY, *, clock: Callable[[], datetime] = _utcnow):
        self.policy = policy
        self._clock = clock

    # -- stages -----------------------------------------------------------
    def filter_window(self, candidates: Iterable[Candidate], now: datetime) -> List[Candidate]:
        since = now - timedelta(days=self.policy.window_days)
        return [c for c in candidates if c.published_at is not None and _as_aware(c.published_at) >= since]

    @staticmethod
    def canonicalize(candidates: Iterable[Candidate]) -> List[Candidate]:
        return [replace(c, link=canonicalize_url(c.link or "")) for c in candidates]

    @staticmethod
    def filter_complete(candidates: Iterable[Candidate]) -> List[Candidate]:
        return [c for c in candidates if (c.title or "").strip() and is_absolute_url(c.link)]

    def filter_quality(self, candidates: Iterable[Candidate]) -> List[Candidate]:
        return [c for c in candidates if not domain_in(self.policy.avoid_domains, c.link)]

    def filter_relevance(self, candidates: Sequence[Candidate]) -> tuple[List[Candidate], str]:
        """Topic AND technology; loosen to OR when AND leaves nothing."""
        p = self.policy
        both = [
            c for c in candidates
            if matches_any(c.text, p.topic_keywords) and matches_any(c.text, p.tech_keywords)
        ]
        if both:
            return both, "and"
        either = [
            c for c in candidates
            if matches_any(c.text, p.topic_keywords) or matches_any(c.text, p.tech_keywords)
        ]
        return either, "or"

    def score(self, candidates: Iterable[Candidate], now: datetime) -> List[ScoredCandidate]:
        scored = [score_candidate(c, self.policy, now=now) for c in candidates]
        # sorted() is stable: ties keep dedup order
        return sorted(scored, key=lambda s: -s.score)

    def allocate(self, scored: Sequence[ScoredCandidate], report: CurationReport) -> tuple[List[ScoredCandidate], List[ScoredCandidate]]:
        p = self.policy
        domestic_pool: List[ScoredCandidate] = []
        overseas_pool: List[ScoredCandidate] = []
        for s in scored:
            (domestic_pool if region_of(s.candidate, p) == DOMESTIC else overseas_pool).append(s)
        report.domestic_pool = len(domestic_pool)
        report.overseas_pool = len(overseas_pool)

        used: set = set()

        # Overseas: strong allow → semi allow → anything not denied
        overseas: List[ScoredCandidate] = []
        tiers = [
            ("allow", [s for s in overseas_pool if domain_in(p.overseas_allow, s.link)]),
            ("semiallow", [s for s in overseas_pool if domain_in(p.overseas_semiallow, s.link)]),
            ("general", [s for s in overseas_pool if not domain_in(p.avoid_domains, s.link)]),
        ]
        for tier_name, tier_pool in tiers:
            report.overseas_tiers[tier_name] = _fill(overseas, tier_pool, p.overseas_target, used)

        # Domestic: partition first, then backfill from the whole pool by host suffix
        domestic: List[ScoredCandidate] = []
        _fill(domestic, domestic_pool, p.domestic_target, used)
        backfill = [s for s in scored if is_domestic_host(s.link, p.domestic_suffixes, p.domestic_exceptions)]
        report.domestic_backfill = _fill(domestic, backfill, p.domestic_target, used)

        return domestic, overseas

    # -- entry point ------------------------------------------------------
    def curate(self, candidates: Iterable[Candidate], *, now: Optional[datetime] = None) -> CurationResult:
        now = _as_aware(now) if now is not None else self._clock()
        report = CurationReport(since=now - timedelta(days=self.policy.window_days))

        pool = list(candidates)
        report.merged = len(pool)

        pool = self.filter_window(pool, now)
        report.in_window = len(pool)

        pool = self.filter_complete(self.canonicalize(pool))
        report.complete = len(pool)

        pool = self.filter_quality(pool)
        report.quality = len(pool)

        pool, report.relevance_mode = self.filter_relevance(pool)
        report.relevant = len(pool)

        pool = dedupe_candidates(pool, threshold=self.policy.title_similarity_threshold)
        report.deduped = len(pool)

        scored = self.score(pool, now)
        domestic, overseas = self.allocate(scored, report)

        logger.info(
            f"[curate] merged={report.merged} window={report.in_window} quality={report.quality} "
            f"relevant={report.relevant}({report.relevance_mode}) deduped={report.deduped} "
            f"domestic={len(domestic)}/{self.policy.domestic_target} "
            f"overseas={len(overseas)}/{self.policy.overseas_target}"
        )
        return CurationResult(domestic=domestic, overseas=overseas, report=report)
