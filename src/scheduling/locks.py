"""
In-process lock set with automatic expiry.

Keys are held until their TTL elapses; expired keys are purged lazily on
every access, so no timer is needed per key.
"""

import threading
import time
from typing import Callable, Dict


class ExpiringKeySet:
    """
    Set of keys, each expiring `ttl_seconds` after it was acquired.

    Thread-safe. Owned by one scheduler instance; nothing is shared
    across processes.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._expiries: Dict[str, float] = {}
        self._lock = threading.Lock()

    def acquire(self, key: str) -> bool:
        """
        Hold a key.

        Returns:
            True if the key was free and is now held, False if already held
        """
        with self._lock:
            now = self._clock()
            self._purge(now)
            if key in self._expiries:
                return False
            self._expiries[key] = now + self.ttl_seconds
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._expiries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            self._purge(self._clock())
            return key in self._expiries

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._expiries)

    def _purge(self, now: float) -> None:
        expired = [key for key, expiry in self._expiries.items() if expiry <= now]
        for key in expired:
            del self._expiries[key]
