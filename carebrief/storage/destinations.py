"""Delivery destination registry (groups / rooms / users seen by the webhook).

Stored as a small JSON document:

    {"default_to": "C123...", "destinations": {"C123...": {"type": "group", "last_seen": "..."}}}

An env override (``DEFAULT_TO`` / ``TEST_GROUP_ID``) takes priority over the
stored default.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

_ID_KEYS = {"group": "groupId", "room": "roomId", "user": "userId"}


class JsonDestinationRegistry:
    def __init__(self, path: str, *, env_default: str = ""):
        self.path = path
        self.env_default = env_default
        self._lock = threading.Lock()

    # -- storage ----------------------------------------------------------
    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {"default_to": None, "destinations": {}}
        except (OSError, ValueError) as e:
            logger.error(f"[destinations] unreadable store {self.path}: {e}")
            return {"default_to": None, "destinations": {}}
        if not isinstance(data, dict):
            return {"default_to": None, "destinations": {}}
        data.setdefault("default_to", None)
        if not isinstance(data.get("destinations"), dict):
            data["destinations"] = {}
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    # -- registry contract -----------------------------------------------
    def list_destinations(self, channel_type: Optional[str] = None) -> List[str]:
        entries = self._load()["destinations"]
        return [
            dest_id for dest_id, meta in entries.items()
            if channel_type is None or (meta or {}).get("type") == channel_type
        ]

    def get_default_destination(self) -> Optional[str]:
        """Env override → stored default → first known destination."""
        if self.env_default:
            return self.env_default
        data = self._load()
        if data.get("default_to"):
            return data["default_to"]
        ids = list(data["destinations"])
        return ids[0] if ids else None

    def set_default(self, dest_id: str) -> None:
        with self._lock:
            data = self._load()
            data["destinations"].setdefault(
                dest_id, {"type": "unknown", "last_seen": datetime.now(timezone.utc).isoformat()}
            )
            data["default_to"] = dest_id
            self._save(data)

    def record_sighting(
        self, dest_id: str, channel_type: str, timestamp: datetime, display_name: Optional[str] = None
    ) -> None:
        """Upsert ``dest_id``; the first group/room seen becomes the default."""
        with self._lock:
            data = self._load()
            previous = data["destinations"].get(dest_id) or {}
            entry = {"type": channel_type, "last_seen": timestamp.isoformat()}
            name = display_name or previous.get("display_name")
            if name:
                entry["display_name"] = name
            data["destinations"][dest_id] = entry
            if not data.get("default_to") and channel_type in ("group", "room"):
                data["default_to"] = dest_id
            self._save(data)

    def remember_event(self, event: Mapping[str, Any]) -> Optional[str]:
        """Record the source of a webhook event; returns the destination id if any."""
        source = event.get("source")
        if not isinstance(source, Mapping):
            return None
        channel_type = source.get("type")
        if channel_type not in _ID_KEYS:
            return None
        dest_id = source.get(_ID_KEYS[channel_type])
        if not dest_id:
            return None
        ts_ms = event.get("timestamp")
        try:
            seen = datetime.fromtimestamp(float(ts_ms) / 1000.0, tz=timezone.utc)
        except (TypeError, ValueError):
            seen = datetime.now(timezone.utc)
        self.record_sighting(dest_id, channel_type, seen)
        return dest_id
