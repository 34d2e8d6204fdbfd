"""
cache.py — Signed URL cache

Purpose:
- Avoid re-requesting a signed URL for an object every time it is displayed
  (proof thumbnails, event QR codes).
- Entries are keyed by object id (payment id, event id, ...) and store
  `{url, expiresAt}`.

Rules:
- A cached URL is reused only while it stays valid for longer than the
  safety margin (default 2 s); otherwise the caller requests a fresh one.
- Entries without an expiry (local `/uploads/...` paths) are always reused.
- Bounded: the least recently used entry is evicted past `max_entries`.

This module does NOT:
- Hold a process-wide instance. Create one and inject it where needed
  (see campuspay.client.api_client).
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

DEFAULT_SAFETY_MARGIN_SECONDS = 2.0
DEFAULT_MAX_ENTRIES = 256


@dataclass
class CachedUrl:
    url: str
    expires_at: Optional[float] = None


class SignedUrlCache:
    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        safety_margin: float = DEFAULT_SAFETY_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.safety_margin = safety_margin
        self._clock = clock
        self._entries: "OrderedDict[str, CachedUrl]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[str]:
        """
        Cached URL for `key`, or None when missing or too close to expiry.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at - self._clock() <= self.safety_margin:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry.url

    def put(self, key: str, url: str, expires_in: Optional[float] = None) -> None:
        """
        Store a URL valid for `expires_in` seconds (None = never expires).
        """
        expires_at = self._clock() + expires_in if expires_in is not None else None
        self._entries[key] = CachedUrl(url=url, expires_at=expires_at)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def get_or_fetch(self, key: str, fetch: Callable[[], dict]) -> str:
        """
        Cached URL, else call `fetch()` for a `{url, expiresIn}` payload,
        cache it and return the URL.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        payload = fetch()
        url = payload["url"]
        self.put(key, url, payload.get("expiresIn"))
        return url

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
