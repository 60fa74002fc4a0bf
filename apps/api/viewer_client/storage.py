"""Tab-scoped key/value storage for the viewer."""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict, Optional


SESSION_KEY_PREFIX = "hxt_otp_session_"
FINGERPRINT_KEY = "hxt_viewer_session"


class TabStorage:
    """
    Ephemeral per-tab storage holding JSON strings, like a browser's
    sessionStorage. One instance lives for one tab; reloads reuse it.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def get_json(self, key: str) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            self.remove_item(key)
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value))

    def __contains__(self, key: str) -> bool:
        return key in self._items


def session_key(link_token: str) -> str:
    return f"{SESSION_KEY_PREFIX}{link_token}"


def get_fingerprint(storage: TabStorage) -> str:
    """Per-tab visitor fingerprint, created on first use."""
    fingerprint = storage.get_item(FINGERPRINT_KEY)
    if not fingerprint:
        fingerprint = str(uuid.uuid4())
        storage.set_item(FINGERPRINT_KEY, fingerprint)
    return fingerprint
