"""Candidate scoring utilities.

Deterministic, explainable signals only:
- relevance: keyword hits across the topic and technology sets
- freshness: linear decay over the look-back window
- trust: per-domain authority weight, normalized to [0,1]
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional

from carebrief.curation.policy import CurationPolicy
from carebrief.ingestion.article_types import Candidate
from carebrief.ingestion.url_utils import host_matches, host_of


# -----------------------------
# Relevance
# -----------------------------
def keyword_hits(text: str, keywords: Iterable[str]) -> int:
    """Number of keywords occurring in ``text`` (case-insensitive, each counted once)."""
    t = (text or "").lower()
    return sum(1 for kw in keywords if kw and kw.lower() in t)


def matches_any(text: str, keywords: Iterable[str]) -> bool:
    t = (text or "").lower()
    return any(kw and kw.lower() in t for kw in keywords)


def relevance_score(candidate: Candidate, policy: CurationPolicy) -> int:
    text = candidate.text
    return keyword_hits(text, policy.topic_keywords) + keyword_hits(text, policy.tech_keywords)


# -----------------------------
# Freshness
# -----------------------------
def freshness_score(
    published_at: Optional[datetime], *, now: datetime, window_hours: float = 168.0
) -> float:
    if not published_at or window_hours <= 0:
        return 0.0
    dt = published_at if published_at.tzinfo else published_at.replace(tzinfo=timezone.utc)
    age_hours = (now - dt).total_seconds() / 3600.0
    return max(0.0, min(1.0, (window_hours - age_hours) / window_hours))


# -----------------------------
# Source trust
# -----------------------------
def trust_weight(url: str, weights: Mapping[str, int]) -> int:
    """Best matching domain weight (0-5); unmatched hosts get 0."""
    host = host_of(url)
    best = 0
    for domain, w in weights.items():
        if host_matches(host, domain):
            best = max(best, w)
    return best


def trust_score(url: str, policy: CurationPolicy) -> float:
    if policy.max_trust_weight <= 0:
        return 0.0
    return trust_weight(url, policy.trust_weights) / float(policy.max_trust_weight)


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    relevance: int
    freshness: float
    trust: float
    score: float

    @property
    def link(self) -> str:
        return self.candidate.link

    @property
    def title(self) -> str:
        return self.candidate.title


def score_candidate(candidate: Candidate, policy: CurationPolicy, *, now: datetime) -> ScoredCandidate:
    rel = relevance_score(candidate, policy)
    fresh = freshness_score(candidate.published_at, now=now, window_hours=policy.freshness_window_hours)
    trust = trust_score(candidate.link, policy)
    w = policy.weights
    score = rel * w.relevance + fresh * w.freshness + trust * w.trust
    return ScoredCandidate(candidate=candidate, relevance=rel, freshness=fresh, trust=trust, score=score)
