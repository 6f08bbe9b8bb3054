"""Weekly digest run: ingest → curate → summarize → assemble → deliver."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from carebrief.briefs.digest import build_digest_messages
from carebrief.config import Settings
from carebrief.contracts.summary_record import SummaryRecord
from carebrief.curation.pipeline import CurationPipeline, CurationResult
from carebrief.curation.policy import CurationPolicy
from carebrief.delivery.line_client import LineClient
from carebrief.errors import DeliveryError
from carebrief.extraction.fulltext import ArticleExtractor
from carebrief.ingestion.ingestors import (
    BaseIngestor,
    GoogleNewsRSSIngestor,
    NewsAPIIngestor,
    RSSIngestor,
    collect_candidates,
    default_rss_feeds,
    google_news_searches,
)
from carebrief.storage.destinations import JsonDestinationRegistry
from carebrief.summarization.generator import OpenAIBackend, SummaryGenerator

logger = logging.getLogger(__name__)

ALL_GROUPS = "all-groups"
PUSH_INTERVAL_SECONDS = 0.15


def default_ingestors(settings: Settings, policy: CurationPolicy) -> List[BaseIngestor]:
    """Adapters in merge-priority order (NewsAPI, Google News, RSS)."""
    ingestors: List[BaseIngestor] = []
    if settings.newsapi_key:
        ingestors.append(
            NewsAPIIngestor(api_key=settings.newsapi_key, days=settings.window_days, timeout=settings.request_timeout)
        )
    ingestors.append(GoogleNewsRSSIngestor(google_news_searches(policy.overseas_allow)))
    ingestors.append(RSSIngestor(default_rss_feeds()))
    return ingestors


@dataclass
class DigestRun:
    curation: CurationResult
    domestic: List[SummaryRecord]
    overseas: List[SummaryRecord]
    messages: List[Dict[str, Any]]


@dataclass
class DeliveryReport:
    mode: str
    sent: bool
    targets: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class WeeklyDigest:
    def __init__(
        self,
        *,
        ingestors: Sequence[BaseIngestor],
        pipeline: CurationPipeline,
        generator: SummaryGenerator,
        topic: str,
        adapter_workers: int = 1,
    ):
        self.ingestors = list(ingestors)
        self.pipeline = pipeline
        self.generator = generator
        self.topic = topic
        self.adapter_workers = adapter_workers

    @classmethod
    def from_settings(cls, settings: Settings) -> "WeeklyDigest":
        policy = settings.curation_policy()
        generator = SummaryGenerator(
            OpenAIBackend(settings.openai_api_key, model=settings.ai_model),
            ArticleExtractor(timeout=settings.request_timeout),
            max_workers=settings.summary_workers,
        )
        return cls(
            ingestors=default_ingestors(settings, policy),
            pipeline=CurationPipeline(policy),
            generator=generator,
            topic=settings.topic,
            adapter_workers=settings.adapter_workers,
        )

    def collect(self, *, now: Optional[datetime] = None) -> CurationResult:
        candidates = collect_candidates(self.ingestors, max_workers=self.adapter_workers)
        return self.pipeline.curate(candidates, now=now)

    def build(self, *, now: Optional[datetime] = None) -> DigestRun:
        start = time.time()
        curation = self.collect(now=now)
        domestic = self.generator.summarize_batch(curation.domestic)
        overseas = self.generator.summarize_batch(curation.overseas)
        messages = build_digest_messages(self.topic, domestic, overseas)
        logger.info(
            f"[digest] built domestic={len(domestic)} overseas={len(overseas)} "
            f"messages={len(messages)} in {time.time() - start:.1f}s"
        )
        return DigestRun(curation=curation, domestic=domestic, overseas=overseas, messages=messages)


def resolve_targets(to: Optional[str], registry: JsonDestinationRegistry) -> tuple[str, List[str]]:
    """Map the ``to`` parameter to a delivery mode and destination list."""
    if to == ALL_GROUPS:
        return "push:all-groups", registry.list_destinations("group")
    if to:
        return "push:single", [to]
    default = registry.get_default_destination()
    if default:
        return "push:default", [default]
    return "broadcast", []


def deliver_digest(
    messages: Sequence[Dict[str, Any]],
    client: LineClient,
    mode: str,
    targets: Sequence[str],
    *,
    send: bool = True,
) -> DeliveryReport:
    """Fire-and-forget delivery; one failing destination does not stop the others."""
    report = DeliveryReport(mode=mode, sent=send, targets=list(targets))
    if not send:
        return report
    if not mode.startswith("push"):
        client.broadcast(messages)
        return report
    for i, to in enumerate(targets):
        if i:
            time.sleep(PUSH_INTERVAL_SECONDS)
        try:
            client.push(to, messages)
        except DeliveryError as e:
            logger.error(f"[deliver] push to {to} failed: {e}")
            report.failed.append(to)
    return report
