"""
Derivation orchestrator.

derive_state is the single entry point used by both the authoritative
(confirmed logs) and the speculative (optimistic logs) call sites. It is a
pure function of its inputs: no I/O, no environment lookups, no mutation.
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Mapping, Optional, Sequence

import pytz

from biostate.engine.headroom import calculate_safety_headroom
from biostate.engine.matchers import match_interactions, match_ratios, match_timing
from biostate.engine.safety_limits import DEFAULT_SAFETY_LIMITS
from biostate.engine.state import (
    calculate_active_compounds,
    calculate_bio_score,
    calculate_exclusion_zones,
    calculate_optimizations,
)
from biostate.engine.timeline import build_timeline
from biostate.engine.types import (
    BiologicalState,
    DerivedState,
    LogEntry,
    RuleSnapshot,
    SafetyLimit,
)

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to already be UTC."""
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def local_day(value: datetime, timezone: str) -> date:
    return value.astimezone(pytz.timezone(timezone)).date()


def derive_state(
    logs: Sequence[LogEntry],
    snapshot: RuleSnapshot,
    now: Optional[datetime] = None,
    safety_limits: Optional[Mapping[str, SafetyLimit]] = None,
    timezone: str = "UTC"
) -> DerivedState:
    """
    Map (logs, rule snapshot, evaluation instant) to the full derived state.

    Args:
        logs: Log entries in any order
        snapshot: Supplements and rule tables
        now: Evaluation instant (defaults to wall clock)
        safety_limits: Category limits (defaults to DEFAULT_SAFETY_LIMITS)
        timezone: Zone whose calendar day of `now` bounds ratio and headroom

    Returns:
        DerivedState; identical for identical inputs
    """
    now = as_utc(now or datetime.now(pytz.utc))
    limits = DEFAULT_SAFETY_LIMITS if safety_limits is None else safety_limits
    tz = pytz.timezone(timezone)  # fail fast on an unknown zone

    ordered = sorted(
        (replace(entry, logged_at=as_utc(entry.logged_at)) for entry in logs),
        key=lambda entry: (entry.logged_at, entry.id),
        reverse=True,
    )
    today = now.astimezone(tz).date()
    same_day = [entry for entry in ordered if local_day(entry.logged_at, timezone) == today]
    supplements_by_id = snapshot.supplements_by_id()
    present_ids = {entry.supplement_id for entry in ordered}

    # Fixed order: interaction -> ratio -> timing
    interactions = match_interactions(present_ids, snapshot.interaction_rules)
    ratios = match_ratios(same_day, snapshot.ratio_rules, supplements_by_id)
    timing_warnings = match_timing(ordered, snapshot.timing_rules)

    active_compounds = calculate_active_compounds(ordered, supplements_by_id, now)
    exclusion_zones = calculate_exclusion_zones(ordered, snapshot.timing_rules, now)
    optimizations = calculate_optimizations(present_ids, snapshot.interaction_rules)
    bio_score = calculate_bio_score(active_compounds, exclusion_zones, optimizations)

    if ratios.gaps:
        logger.debug(f"{len(ratios.gaps)} ratio rule(s) could not be evaluated")

    return DerivedState(
        today_log_count=len(same_day),
        last_log_at=ordered[0].logged_at if ordered else None,
        interactions=tuple(interactions),
        ratio_warnings=tuple(ratios.warnings),
        ratio_evaluation_gaps=tuple(ratios.gaps),
        timing_warnings=tuple(timing_warnings),
        biological_state=BiologicalState(
            active_compounds=tuple(active_compounds),
            exclusion_zones=tuple(exclusion_zones),
            optimizations=tuple(optimizations),
            bio_score=bio_score,
            calculated_at=now,
        ),
        timeline_data=tuple(build_timeline(ordered, supplements_by_id, now)),
        safety_headroom=tuple(calculate_safety_headroom(same_day, supplements_by_id, limits)),
    )
