"""Digest message assembly.

Turns sanitized records into transport payloads: one text preamble plus one
carousel per non-empty region bucket. Cards carry headline, summary,
attribution, tags and a single "read more" link.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from carebrief.contracts.summary_record import SummaryRecord

NO_NEWS_TEXT = "今週は該当記事なし（情報源が不安定）"
READ_MORE_LABEL = "続きを読む"
ALT_TEXT_MAX = 400


def text_message(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def build_card(record: SummaryRecord) -> Dict[str, Any]:
    footer: List[Dict[str, Any]] = []
    if record.tags:
        footer.append(
            {"type": "text", "text": "#" + " #".join(record.tags), "size": "xs", "color": "#666666", "wrap": True}
        )
    footer.append(
        {"type": "button", "style": "link", "action": {"type": "uri", "label": READ_MORE_LABEL, "uri": record.url}}
    )
    return {
        "type": "bubble",
        "size": "kilo",
        "body": {
            "type": "box",
            "layout": "vertical",
            "spacing": "sm",
            "contents": [
                {"type": "text", "text": record.headline, "weight": "bold", "size": "md", "wrap": True},
                {"type": "text", "text": record.summary, "size": "sm", "wrap": True},
                {
                    "type": "text",
                    "text": f"出典: {record.source} / {record.published_local}",
                    "size": "xs",
                    "color": "#888888",
                    "wrap": True,
                },
            ],
        },
        "footer": {"type": "box", "layout": "vertical", "contents": footer},
    }


def build_carousel(alt_text: str, records: Sequence[SummaryRecord]) -> Dict[str, Any]:
    return {
        "type": "flex",
        "altText": alt_text[:ALT_TEXT_MAX],
        "contents": {"type": "carousel", "contents": [build_card(r) for r in records]},
    }


def build_digest_messages(
    topic: str,
    domestic: Sequence[SummaryRecord],
    overseas: Sequence[SummaryRecord],
) -> List[Dict[str, Any]]:
    messages = [text_message(f"🗞 直近1週間の「{topic}」")]
    if domestic:
        messages.append(build_carousel(f"国内トピック {len(domestic)}件", domestic))
    if overseas:
        messages.append(build_carousel(f"海外トピック {len(overseas)}件", overseas))
    if len(messages) == 1:
        messages.append(text_message(NO_NEWS_TEXT))
    return messages
