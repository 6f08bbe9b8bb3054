"""Summary record contract.

A summary record is the per-article payload rendered as one digest card.
This module defines:
- ``SummaryRecord`` and its length bounds (``SummaryLimits``)
- A JSON Schema (for validation of sanitized records)
- The lighter structured-output contract requested from the model

The contract handed to the model is a request only; ``carebrief.contracts.sanitizer``
is what guarantees the shape of every record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from jsonschema import Draft202012Validator


RECORD_FIELDS = ("headline", "summary", "tags", "source", "url", "published_local")


@dataclass(frozen=True)
class SummaryLimits:
    headline_max: int = 40
    summary_min: int = 20
    summary_max: int = 200
    tags_max: int = 5
    tag_max_len: int = 20
    source_max_len: int = 64


DEFAULT_LIMITS = SummaryLimits()


@dataclass(frozen=True)
class SummaryRecord:
    headline: str
    summary: str
    source: str
    url: str
    published_local: str
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headline": self.headline,
            "summary": self.summary,
            "tags": list(self.tags),
            "source": self.source,
            "url": self.url,
            "published_local": self.published_local,
        }


def summary_record_schema(limits: SummaryLimits = DEFAULT_LIMITS) -> Dict[str, Any]:
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "required": list(RECORD_FIELDS),
        "properties": {
            "headline": {"type": "string", "minLength": 1, "maxLength": limits.headline_max},
            "summary": {"type": "string", "minLength": 1, "maxLength": limits.summary_max},
            "tags": {
                "type": "array",
                "maxItems": limits.tags_max,
                "uniqueItems": True,
                "items": {"type": "string", "minLength": 1, "maxLength": limits.tag_max_len, "pattern": r"^\S+$"},
            },
            "source": {"type": "string", "minLength": 1, "maxLength": limits.source_max_len, "pattern": r"^[^\s#:/]+(?: [^\s#:/]+)*$"},
            "url": {"type": "string", "pattern": r"^https?://[^\s/]+"},
            "published_local": {"type": "string", "minLength": 1},
        },
        "additionalProperties": False,
    }


SUMMARY_RECORD_SCHEMA: Dict[str, Any] = summary_record_schema()

_VALIDATOR = Draft202012Validator(SUMMARY_RECORD_SCHEMA)


def validate_summary_record(payload: Dict[str, Any]) -> List[str]:
    """Return a list of human-readable validation errors (empty means valid)."""
    errors = []
    for e in sorted(_VALIDATOR.iter_errors(payload), key=lambda x: list(x.path)):
        path = ".".join(str(p) for p in e.path) if e.path else "<root>"
        errors.append(f"{path}: {e.message}")
    return errors


def generation_contract(limits: SummaryLimits = DEFAULT_LIMITS) -> Dict[str, Any]:
    """Structured-output request for the model (``response_format`` json_schema).

    Only the keywords strict structured output accepts are used; length bounds
    travel in the prompt and are enforced by the sanitizer.
    """
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "summary_record",
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {
                    "headline": {"type": "string"},
                    "summary": {"type": "string"},
                    "tags": {"type": "array", "items": {"type": "string"}},
                    "source": {"type": "string"},
                    "url": {"type": "string"},
                    "published_local": {"type": "string"},
                },
                "required": list(RECORD_FIELDS),
                "additionalProperties": False,
            },
        },
    }
