"""Re-validation and repair of model output into a ``SummaryRecord``.

``sanitize_summary`` is total: any input (mapping, JSON text, code-fenced JSON,
None, garbage) yields a record, and it is idempotent:

    sanitize_summary(sanitize_summary(x, c).to_dict(), c) == sanitize_summary(x, c)

Fields are checked one by one, regardless of whether the rest of the payload
looked valid.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from carebrief.contracts.summary_record import DEFAULT_LIMITS, SummaryLimits, SummaryRecord
from carebrief.ingestion.article_types import Candidate
from carebrief.ingestion.url_utils import host_of, is_absolute_url


JST = timezone(timedelta(hours=9), "JST")
PUBLISHED_FORMAT = "%Y-%m-%d %H:%M"
UNKNOWN_PUBLISHED = "日時不明"
UNKNOWN_SOURCE = "unknown"
UNTITLED = "(無題)"
ELLIPSIS = "…"

FIELD_ALIASES = {
    "headline": ("headline", "jp_title", "title"),
    "summary": ("summary", "jp_summary"),
    "tags": ("tags",),
    "source": ("source", "source_domain", "sourceDomain"),
    "url": ("url", "link"),
}

_BOOLEAN_TOKEN_RE = re.compile(r"(?<![A-Za-z])(?:AND|OR|NOT)(?![A-Za-z])")
_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*://")
_SENTENCE_PUNCT_RE = re.compile(r"[。、．，！？!?,;；…]")
_SOURCE_FORBIDDEN_RE = re.compile(r"[#()\[\]{}\"'“”‘’「」『』（）【】:：/\\<>|]")
_TAG_FORBIDDEN_RE = re.compile(r"[.,;:!?()\[\]{}\"'“”‘’<>/\\|@#$%^&*=+~`。、，．！？：；「」『』（）【】]")
_WS_RUN_RE = re.compile(r"\s{2,}")
_WS_RE = re.compile(r"\s+")


# -----------------------------
# Input coercion
# -----------------------------
def _strip_code_fence(raw: str) -> str:
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`").strip()
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:].strip()
    return cleaned


def _repair_json_text(raw: str) -> str:
    cleaned = _strip_code_fence(raw)
    # remove trailing commas before ] or }
    cleaned = re.sub(r",(\s*[}\]])", r"\1", cleaned)
    # ensure balanced braces/brackets
    open_brackets = cleaned.count("["); close_brackets = cleaned.count("]")
    open_braces = cleaned.count("{"); close_braces = cleaned.count("}")
    if close_brackets < open_brackets:
        cleaned = cleaned + ("]" * (open_brackets - close_brackets))
    if close_braces < open_braces:
        cleaned = cleaned + ("}" * (open_braces - close_braces))
    return cleaned


def parse_model_output(raw: Any) -> Optional[Dict[str, Any]]:
    """Best-effort conversion of model output into a JSON object, or None."""
    if isinstance(raw, Mapping):
        return dict(raw)
    if not isinstance(raw, str) or not raw.strip():
        return None
    for text in (_strip_code_fence(raw), _repair_json_text(raw)):
        try:
            data = json.loads(text)
        except (ValueError, TypeError, RecursionError):
            continue
        if isinstance(data, dict):
            return data
    return None


def _pick(payload: Mapping[str, Any], name: str) -> Any:
    for key in FIELD_ALIASES[name]:
        value = payload.get(key)
        if value is not None:
            return value
    return None


# -----------------------------
# Field rules
# -----------------------------
def clip_text(value: Any, limit: int) -> str:
    """Collapse whitespace and truncate to ``limit`` characters (ellipsis included)."""
    if not isinstance(value, str):
        return ""
    text = _WS_RE.sub(" ", value).strip()
    if len(text) <= limit:
        return text
    if limit <= len(ELLIPSIS):
        return text[:limit]
    return text[: limit - len(ELLIPSIS)].rstrip() + ELLIPSIS


def is_valid_source(value: Any, limits: SummaryLimits = DEFAULT_LIMITS) -> bool:
    if not isinstance(value, str):
        return False
    if not value or value != value.strip() or len(value) > limits.source_max_len:
        return False
    if _WS_RUN_RE.search(value) or any(ch.isspace() and ch != " " for ch in value):
        return False
    if _SENTENCE_PUNCT_RE.search(value) or _SOURCE_FORBIDDEN_RE.search(value):
        return False
    if _BOOLEAN_TOKEN_RE.search(value) or _SCHEME_RE.search(value):
        return False
    return True


def is_valid_tag(tag: Any, limits: SummaryLimits = DEFAULT_LIMITS) -> bool:
    if not isinstance(tag, str) or not tag:
        return False
    if len(tag) > limits.tag_max_len or any(ch.isspace() for ch in tag):
        return False
    if _BOOLEAN_TOKEN_RE.search(tag) or _SCHEME_RE.search(tag) or _TAG_FORBIDDEN_RE.search(tag):
        return False
    return True


def sanitize_tags(raw: Any, limits: SummaryLimits = DEFAULT_LIMITS) -> List[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return []
    out: List[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        tag = item.strip().lstrip("#")
        if not is_valid_tag(tag, limits) or tag in out:
            continue
        out.append(tag)
        if len(out) >= limits.tags_max:
            break
    return out


def sanitize_url(raw: Any, candidate: Candidate) -> str:
    return raw if is_absolute_url(raw) else candidate.link


def sanitize_source(raw: Any, url: str, candidate: Candidate, limits: SummaryLimits = DEFAULT_LIMITS) -> str:
    value = raw.strip() if isinstance(raw, str) else raw
    if is_valid_source(value, limits):
        return value
    for fallback in (host_of(url), (candidate.source_name or "").strip()):
        if is_valid_source(fallback, limits):
            return fallback
    return UNKNOWN_SOURCE


def format_local(published_at: Optional[datetime]) -> str:
    """Render the candidate timestamp in JST; never taken from model output."""
    if published_at is None:
        return UNKNOWN_PUBLISHED
    dt = published_at if published_at.tzinfo else published_at.replace(tzinfo=timezone.utc)
    return dt.astimezone(JST).strftime(PUBLISHED_FORMAT)


def _fallback_headline(candidate: Candidate, limits: SummaryLimits) -> str:
    return clip_text(candidate.title, limits.headline_max) or UNTITLED


def _fallback_summary(candidate: Candidate, limits: SummaryLimits) -> str:
    return (
        clip_text(candidate.snippet, limits.summary_max)
        or clip_text(candidate.title, limits.summary_max)
        or UNTITLED
    )


# -----------------------------
# Entry point
# -----------------------------
def sanitize_summary(raw: Any, candidate: Candidate, limits: SummaryLimits = DEFAULT_LIMITS) -> SummaryRecord:
    payload = parse_model_output(raw) or {}

    headline = clip_text(_pick(payload, "headline"), limits.headline_max) or _fallback_headline(candidate, limits)

    summary = clip_text(_pick(payload, "summary"), limits.summary_max)
    if len(summary) < limits.summary_min:
        summary = _fallback_summary(candidate, limits)

    url = sanitize_url(_pick(payload, "url"), candidate)
    return SummaryRecord(
        headline=headline,
        summary=summary,
        tags=tuple(sanitize_tags(_pick(payload, "tags"), limits)),
        source=sanitize_source(_pick(payload, "source"), url, candidate, limits),
        url=url,
        published_local=format_local(candidate.published_at),
    )


def fallback_record(candidate: Candidate, context: str = "", limits: SummaryLimits = DEFAULT_LIMITS) -> SummaryRecord:
    """Record built from the candidate alone (used when generation fails)."""
    payload = {
        "headline": candidate.title,
        "summary": context or candidate.snippet,
        "tags": [],
        "source": candidate.source_name,
        "url": candidate.link,
    }
    return sanitize_summary(payload, candidate, limits)
