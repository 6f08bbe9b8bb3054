"""Shared ingestion data types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


DOMESTIC = "domestic"
OVERSEAS = "overseas"
REGIONS = (DOMESTIC, OVERSEAS)


@dataclass(frozen=True)
class Candidate:
    """Normalized candidate news item (pre-curation).

    ``region`` is only set when the source states it explicitly (e.g. a
    Japanese-language search feed); otherwise curation infers it from the host.
    """

    title: str
    link: str
    published_at: Optional[datetime] = None
    source_name: str = ""
    snippet: str = ""
    region: Optional[str] = None
    ingestion_source: str = "unknown"

    @property
    def text(self) -> str:
        return f"{self.title} {self.snippet or ''}"
