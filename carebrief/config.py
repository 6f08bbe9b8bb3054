"""Process settings loaded from the environment (and a local ``.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import List

from dotenv import load_dotenv

from carebrief.curation.policy import DEFAULT_POLICY, CurationPolicy
from carebrief.errors import ConfigurationError

DEFAULT_TOPIC = "高齢者医療×AI/IT"


@dataclass
class Settings:
    """Runtime configuration with validation."""

    openai_api_key: str
    line_channel_access_token: str
    newsapi_key: str = ""

    topic: str = DEFAULT_TOPIC
    ai_model: str = "gpt-4o-mini"

    port: int = 8080
    request_timeout: int = 30

    # Curation
    window_days: int = 7
    domestic_target: int = 5
    overseas_target: int = 3

    # Concurrency
    summary_workers: int = 1
    adapter_workers: int = 1

    # Destinations
    destinations_path: str = "state/destinations.json"
    default_to: str = ""

    # Scheduling ("<weekday> HH:MM")
    digest_schedule: str = "mon 09:00"

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "Settings":
        """Load and validate configuration from environment variables."""
        if dotenv:
            load_dotenv()
        settings = cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            line_channel_access_token=os.getenv("LINE_CHANNEL_ACCESS_TOKEN", "").strip(),
            newsapi_key=os.getenv("NEWSAPI_KEY", "").strip(),
            topic=os.getenv("TOPIC", DEFAULT_TOPIC),
            ai_model=os.getenv("AI_MODEL", "gpt-4o-mini"),
            port=_int_env("PORT", 8080),
            request_timeout=_int_env("REQUEST_TIMEOUT", 30),
            window_days=_int_env("WINDOW_DAYS", 7),
            domestic_target=_int_env("DOMESTIC_TARGET", 5),
            overseas_target=_int_env("OVERSEAS_TARGET", 3),
            summary_workers=_int_env("SUMMARY_WORKERS", 1),
            adapter_workers=_int_env("ADAPTER_WORKERS", 1),
            destinations_path=os.getenv("DESTINATIONS_PATH", "state/destinations.json"),
            default_to=(os.getenv("TEST_GROUP_ID") or os.getenv("DEFAULT_TO") or "").strip(),
            digest_schedule=os.getenv("DIGEST_SCHEDULE", "mon 09:00"),
        )
        settings._validate()
        return settings

    def _validate(self) -> None:
        errors: List[str] = []
        if not self.openai_api_key:
            errors.append("OPENAI_API_KEY is required")
        if not self.line_channel_access_token:
            errors.append("LINE_CHANNEL_ACCESS_TOKEN is required")
        if self.window_days < 1:
            errors.append("WINDOW_DAYS must be >= 1")
        if self.domestic_target < 0 or self.overseas_target < 0:
            errors.append("DOMESTIC_TARGET / OVERSEAS_TARGET must be >= 0")
        if self.summary_workers < 1 or self.adapter_workers < 1:
            errors.append("SUMMARY_WORKERS / ADAPTER_WORKERS must be >= 1")
        if len(self.digest_schedule.split()) != 2:
            errors.append("DIGEST_SCHEDULE must look like 'mon 09:00'")
        if errors:
            raise ConfigurationError(errors)

    def curation_policy(self, base: CurationPolicy = DEFAULT_POLICY) -> CurationPolicy:
        return replace(
            base,
            window_days=self.window_days,
            freshness_window_hours=float(self.window_days * 24),
            domestic_target=self.domestic_target,
            overseas_target=self.overseas_target,
        )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError([f"{name} must be an integer (got {raw!r})"]) from exc
