"""Per-article summarization.

For each curated item: fetch article text (best effort), ask the model for a
structured record, and fall back to a title/snippet record whenever the call
fails or returns something unparseable. ``SummaryGenerator.summarize`` never
raises; the result always goes through the sanitizer.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Protocol, Sequence

import openai
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from carebrief.contracts.sanitizer import fallback_record, format_local, parse_model_output, sanitize_summary
from carebrief.contracts.summary_record import DEFAULT_LIMITS, SummaryLimits, SummaryRecord, generation_contract
from carebrief.ingestion.article_types import Candidate
from carebrief.scoring.article_scoring import ScoredCandidate

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
MAX_CONTEXT_CHARS = 8000


class Extractor(Protocol):
    def extract(self, url: str) -> str: ...


class SummaryBackend(Protocol):
    def summarize(self, prompt: str, output_contract: Dict[str, Any]) -> Any: ...


class OpenAIBackend:
    """Chat completions with a JSON-schema ``response_format``; returns the raw text."""

    def __init__(self, api_key: str, *, model: str = DEFAULT_MODEL, temperature: float = 0.2, timeout: float = 60.0):
        self.client = openai.OpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.temperature = temperature

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=8),
        retry=retry_if_exception_type((openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)),
        reraise=True,
    )
    def summarize(self, prompt: str, output_contract: Dict[str, Any]) -> str:
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            response_format=output_contract,
        )
        usage = getattr(resp, "usage", None)
        if usage:
            logger.info(
                f"OpenAI usage - Prompt: {usage.prompt_tokens}, "
                f"Completion: {usage.completion_tokens}, Total: {usage.total_tokens} tokens"
            )
        return resp.choices[0].message.content or ""

    def ping(self) -> str:
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": "返答は「ok」だけ。"}],
        )
        return resp.choices[0].message.content or ""


SYSTEM_PROMPT = "あなたは医療×AIの専門記者です。与えられた記事だけを根拠に、事実ベースで要約します。"


def build_prompt(candidate: Candidate, context: str, limits: SummaryLimits = DEFAULT_LIMITS) -> str:
    published = candidate.published_at.isoformat() if candidate.published_at else "不明"
    return f"""
以下のニュース本文を事実ベースで要約してください。
出力はJSONオブジェクトのみで、次のキーをすべて含めます：
- headline: 20字以内の日本語見出し（煽らない・具体、最大{limits.headline_max}字）
- summary: 120〜180字の日本語要約（固有名詞・具体数値を残し、誇張しない、最大{limits.summary_max}字）
- tags: 日本語タグを3〜{limits.tags_max}個。1タグ{limits.tag_max_len}字以内、空白・記号・URL・AND/OR/NOT を含めない
  （例: 介護現場, 転倒予防, 遠隔診療, 認知症ケア, データ利活用）
- source: 媒体のドメイン名のみ（例: www.nature.com）。文章やURLは不可
- url: 下記URLをそのまま
- published_local: {format_local(candidate.published_at)}

本文（最大{MAX_CONTEXT_CHARS}文字に整形済）:
{context}
URL: {candidate.link}
SOURCE: {candidate.source_name}
PUBLISHED(ISO): {published}
""".strip()


class SummaryGenerator:
    def __init__(
        self,
        backend: SummaryBackend,
        extractor: Optional[Extractor] = None,
        *,
        limits: SummaryLimits = DEFAULT_LIMITS,
        max_context_chars: int = MAX_CONTEXT_CHARS,
        max_workers: int = 1,
    ):
        self.backend = backend
        self.extractor = extractor
        self.limits = limits
        self.max_context_chars = max_context_chars
        self.max_workers = max(1, int(max_workers))

    def _context(self, candidate: Candidate) -> str:
        text = ""
        if self.extractor is not None:
            try:
                text = self.extractor.extract(candidate.link) or ""
            except Exception as e:
                logger.warning(f"[summarize] extractor failed for {candidate.link}: {e}")
                text = ""
        text = text.strip()[: self.max_context_chars]
        return text or f"{candidate.title}\n\n{candidate.snippet or ''}".strip()

    def generate(self, candidate: Candidate) -> Dict[str, Any]:
        """Raw (unsanitized) record: the model's JSON object or a fallback built from the candidate."""
        context = self._context(candidate)
        prompt = build_prompt(candidate, context, self.limits)
        try:
            raw = self.backend.summarize(prompt, generation_contract(self.limits))
        except Exception as e:
            logger.warning(f"[summarize] backend failed for {candidate.link}, using fallback: {e}")
            return fallback_record(candidate, limits=self.limits).to_dict()
        payload = parse_model_output(raw)
        if payload is None:
            logger.warning(f"[summarize] unparseable output for {candidate.link}, using fallback")
            return fallback_record(candidate, limits=self.limits).to_dict()
        return payload

    def summarize(self, item: ScoredCandidate | Candidate) -> SummaryRecord:
        candidate = item.candidate if isinstance(item, ScoredCandidate) else item
        try:
            raw = self.generate(candidate)
        except Exception as e:
            logger.error(f"[summarize] unexpected failure for {candidate.link}: {e}", exc_info=True)
            raw = {}
        return sanitize_summary(raw, candidate, self.limits)

    def summarize_batch(self, items: Sequence[ScoredCandidate | Candidate]) -> List[SummaryRecord]:
        """Summaries in input order; at most ``max_workers`` items in flight."""
        if not items:
            return []
        if self.max_workers == 1:
            return [self.summarize(it) for it in items]
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            return list(pool.map(self.summarize, items))
