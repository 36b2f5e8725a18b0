"""
Dashboard Service - the two call sites of the derivation engine.

The authoritative path derives from confirmed logs; the optimistic path
derives from confirmed logs overlaid with pending (not yet confirmed) logs.
Both go through derive_state so a provisional dashboard never disagrees
with the confirmed one for the same log set.
"""
from datetime import datetime
from typing import Iterable, List, Mapping, Optional, Sequence
import logging

import pytz

from biostate.config import get_settings
from biostate.engine import derive_state
from biostate.engine.contract import are_states_equivalent
from biostate.engine.types import DerivedState, LogEntry, RuleSnapshot, SafetyLimit
from biostate.services.state_cache import DerivedStateCache, state_cache, state_fingerprint

logger = logging.getLogger(__name__)


def merge_pending_logs(
    confirmed: Sequence[LogEntry],
    pending: Sequence[LogEntry],
    removed_ids: Optional[Iterable[str]] = None
) -> List[LogEntry]:
    """
    Overlay optimistic changes on confirmed logs.

    A pending entry with the id of a confirmed one replaces it; removed ids
    are dropped from both sets.
    """
    removed = set(removed_ids or ())
    merged = {entry.id: entry for entry in confirmed if entry.id not in removed}
    for entry in pending:
        if entry.id in removed:
            continue
        merged[entry.id] = entry
    return list(merged.values())


class DashboardService:
    """Derives dashboard state for confirmed and optimistic log sets."""

    def __init__(self, cache: Optional[DerivedStateCache] = None, timezone: Optional[str] = None):
        self.cache = cache
        self.timezone = timezone or get_settings().timezone

    def _derive(
        self,
        logs: Sequence[LogEntry],
        snapshot: RuleSnapshot,
        now: Optional[datetime],
        safety_limits: Optional[Mapping[str, SafetyLimit]]
    ) -> DerivedState:
        # Pin `now` so the cache key and the derivation see the same instant
        now = now or datetime.now(pytz.utc)
        if self.cache is None:
            return derive_state(logs, snapshot, now, safety_limits, self.timezone)

        key = state_fingerprint(logs, snapshot, now, safety_limits, self.timezone)
        return self.cache.get_or_compute(
            key,
            lambda: derive_state(logs, snapshot, now, safety_limits, self.timezone)
        )

    def confirmed_state(
        self,
        logs: Sequence[LogEntry],
        snapshot: RuleSnapshot,
        now: Optional[datetime] = None,
        safety_limits: Optional[Mapping[str, SafetyLimit]] = None
    ) -> DerivedState:
        """Authoritative derivation from server-confirmed logs."""
        return self._derive(logs, snapshot, now, safety_limits)

    def optimistic_state(
        self,
        confirmed: Sequence[LogEntry],
        pending: Sequence[LogEntry],
        snapshot: RuleSnapshot,
        removed_ids: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
        safety_limits: Optional[Mapping[str, SafetyLimit]] = None
    ) -> DerivedState:
        """Speculative derivation including logs not yet confirmed."""
        logs = merge_pending_logs(confirmed, pending, removed_ids)
        logger.debug(f"Optimistic derivation over {len(logs)} logs ({len(pending)} pending)")
        return self._derive(logs, snapshot, now, safety_limits)

    def check_consistency(self, authoritative: DerivedState, speculative: DerivedState) -> bool:
        """Log and report a disagreement between the two call sites."""
        consistent = are_states_equivalent(authoritative, speculative)
        if not consistent:
            logger.warning("Optimistic state diverged from confirmed state")
        return consistent


# Singleton instance
dashboard_service = DashboardService(cache=state_cache)
