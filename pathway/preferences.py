# pathway/preferences.py
from __future__ import annotations

import threading
from typing import Dict, Optional


class PreferenceStore:
    """
    Per-user key-value store for engagement preferences
    (referral consent, contact channel, check-in frequency).

    One instance is created by the app and handed to whoever needs it;
    entries are dropped with `invalidate`.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[str, Dict[str, str]] = {}

    def get(self, user_id: str) -> Dict[str, str]:
        with self._lock:
            return dict(self._data.get(user_id, {}))

    def value(self, user_id: str, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._lock:
            return self._data.get(user_id, {}).get(key, default)

    def update(self, user_id: str, **values: str) -> Dict[str, str]:
        with self._lock:
            prefs = self._data.setdefault(user_id, {})
            prefs.update({k: v for k, v in values.items() if v is not None})
            return dict(prefs)

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._data.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
