"""Minimal LINE Messaging API client (push / broadcast / reply)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from carebrief.errors import DeliveryError

logger = logging.getLogger(__name__)

LINE_API_BASE = "https://api.line.me/v2/bot/message"
# Messaging API accepts at most 5 message objects per request
MAX_MESSAGES_PER_REQUEST = 5


class LineClient:
    def __init__(
        self,
        channel_access_token: str,
        *,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        api_base: str = LINE_API_BASE,
    ):
        self.token = channel_access_token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.api_base = api_base.rstrip("/")

    def _post(self, endpoint: str, body: Dict[str, Any]) -> None:
        url = f"{self.api_base}/{endpoint}"
        headers = {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"}
        try:
            resp = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise DeliveryError(f"LINE {endpoint} request failed: {e}") from e
        if resp.status_code >= 400:
            if resp.status_code == 401:
                logger.error("LINE unauthorized - check LINE_CHANNEL_ACCESS_TOKEN")
            elif resp.status_code == 429:
                logger.error("LINE rate limit / monthly quota exceeded")
            raise DeliveryError(f"LINE {endpoint} HTTP {resp.status_code}: {resp.text[:500]}", resp.status_code)

    @staticmethod
    def _chunks(messages: Sequence[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
        return [list(messages[i : i + MAX_MESSAGES_PER_REQUEST]) for i in range(0, len(messages), MAX_MESSAGES_PER_REQUEST)]

    def push(self, to: str, messages: Sequence[Dict[str, Any]]) -> None:
        for chunk in self._chunks(messages):
            self._post("push", {"to": to, "messages": chunk})
        logger.info(f"LINE push sent to {to} ({len(messages)} messages)")

    def broadcast(self, messages: Sequence[Dict[str, Any]]) -> None:
        for chunk in self._chunks(messages):
            self._post("broadcast", {"messages": chunk})
        logger.info(f"LINE broadcast sent ({len(messages)} messages)")

    def reply(self, reply_token: str, messages: Sequence[Dict[str, Any]]) -> None:
        self._post("reply", {"replyToken": reply_token, "messages": list(messages)[:MAX_MESSAGES_PER_REQUEST]})
