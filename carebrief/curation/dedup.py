"""Greedy URL + title-similarity deduplication."""

from __future__ import annotations

from collections import Counter
from typing import List, Sequence

from carebrief.ingestion.article_types import Candidate


def _bigrams(text: str) -> Counter:
    s = "".join(text.split())
    return Counter(s[i : i + 2] for i in range(len(s) - 1))


def title_similarity(a: str, b: str) -> float:
    """Sørensen-Dice coefficient over character bigrams, whitespace ignored.

    Symmetric, in [0,1]; identical strings score 1.0.
    """
    a = "".join((a or "").split())
    b = "".join((b or "").split())
    if a == b:
        return 1.0 if a else 0.0
    if len(a) < 2 or len(b) < 2:
        return 0.0
    ba, bb = _bigrams(a), _bigrams(b)
    overlap = sum((ba & bb).values())
    return 2.0 * overlap / (len(a) - 1 + len(b) - 1)


def dedupe_candidates(candidates: Sequence[Candidate], *, threshold: float = 0.85) -> List[Candidate]:
    """First-seen wins, in the given order.

    Each candidate is compared only against the already accepted ones, so the
    outcome depends on merge order.
    """
    accepted: List[Candidate] = []
    seen_links = set()
    for c in candidates:
        if c.link in seen_links:
            continue
        if any(title_similarity(d.title, c.title) > threshold for d in accepted):
            continue
        seen_links.add(c.link)
        accepted.append(c)
    return accepted
