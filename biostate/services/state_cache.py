"""
State Cache - bounded TTL cache of derived states.

Incidental to the engine: derive_state is correct without it. Entries are
keyed by a fingerprint of every input that affects the output. Eviction is
oldest-first on overflow; expiry is checked at read time, so no background
thread is needed.
"""
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence
import hashlib
import logging
import threading
import time

from biostate.config import get_settings
from biostate.engine.types import DerivedState, LogEntry, RuleSnapshot, SafetyLimit

logger = logging.getLogger(__name__)


def state_fingerprint(
    logs: Sequence[LogEntry],
    snapshot: RuleSnapshot,
    now: datetime,
    safety_limits: Optional[Mapping[str, SafetyLimit]],
    timezone: str
) -> str:
    """SHA-256 over the repr of every input; log order does not matter."""
    ordered_logs = sorted(logs, key=lambda entry: entry.id)
    limits = sorted(safety_limits.items()) if safety_limits is not None else None
    payload = repr((ordered_logs, snapshot, now.isoformat(), limits, timezone))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class DerivedStateCache:
    """Bounded TTL cache for DerivedState values."""

    def __init__(
        self,
        max_entries: int = 256,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[DerivedState]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, state = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            return state

    def put(self, key: str, state: DerivedState) -> None:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            self._entries[key] = (self._clock(), state)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted derived state {evicted[:12]}")

    def get_or_compute(self, key: str, compute: Callable[[], DerivedState]) -> DerivedState:
        cached = self.get(key)
        if cached is not None:
            return cached
        state = compute()
        self.put(key, state)
        return state

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def build_state_cache() -> DerivedStateCache:
    settings = get_settings()
    return DerivedStateCache(
        max_entries=settings.state_cache_max_entries,
        ttl_seconds=settings.state_cache_ttl_seconds,
    )


# Singleton instance
state_cache = build_state_cache()
