"""In-memory TTL cache for GET responses, owned by whoever builds the client."""
import time
from typing import Any, Callable, Dict, Optional, Tuple


class ResponseCache:
    """
    Maps a request key (path + sorted query string) to a decoded JSON body.

    Entries expire after ttl_seconds. clear() is the reset hook called on
    logout; invalidate(prefix) drops every key under a path after a write.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    @staticmethod
    def key(path: str, params: Optional[Dict[str, Any]] = None) -> str:
        if not params:
            return path
        query = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return f"{path}?{query}"

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: Any) -> None:
        self._entries[key] = (self._clock(), value)

    def invalidate(self, prefix: str) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
