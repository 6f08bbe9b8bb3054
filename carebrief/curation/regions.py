"""Domestic / overseas classification."""

from __future__ import annotations

from typing import Iterable

from carebrief.curation.policy import CurationPolicy
from carebrief.ingestion.article_types import DOMESTIC, OVERSEAS, REGIONS, Candidate
from carebrief.ingestion.url_utils import host_matches, host_of


def is_domestic_host(url: str, suffixes: Iterable[str], exceptions: Iterable[str] = ()) -> bool:
    host = host_of(url)
    if not host:
        return False
    if any(host_matches(host, d) for d in exceptions):
        return True
    return any(host.endswith(s) for s in suffixes)


def region_of(candidate: Candidate, policy: CurationPolicy) -> str:
    """Explicit region wins; otherwise classify by host suffix."""
    if candidate.region in REGIONS:
        return candidate.region
    if is_domestic_host(candidate.link, policy.domestic_suffixes, policy.domestic_exceptions):
        return DOMESTIC
    return OVERSEAS
