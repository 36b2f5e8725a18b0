"""
Biological state: active compounds, exclusion zones, realized synergies and
the bio-score.

Bio-score (0-100):
  start at 100
  - 50 / 25 / 15 per critical / medium / low exclusion zone
  + 5 per realized synergy, capped at +20
  clamped to [0, 100]; no active compounds -> neutral 50
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Set

from biostate.engine.kinetics import KineticParams, simulate
from biostate.engine.matchers import logs_by_supplement
from biostate.engine.types import (
    ActiveCompound,
    BiologicalState,
    ExclusionZone,
    InteractionRule,
    InteractionType,
    KineticPhase,
    LogEntry,
    OptimizationOpportunity,
    Severity,
    SupplementSnapshot,
    TimingRule,
)

ACTIVE_WINDOW = timedelta(hours=24)

BASE_SCORE = 100
NEUTRAL_SCORE = 50
ZONE_PENALTIES = {
    Severity.CRITICAL: 50,
    Severity.MEDIUM: 25,
    Severity.LOW: 15,
}
SYNERGY_BONUS = 5
SYNERGY_BONUS_CAP = 20


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def calculate_active_compounds(
    logs: Sequence[LogEntry],
    supplements_by_id: Dict[str, SupplementSnapshot],
    now: datetime
) -> List[ActiveCompound]:
    """One entry per dose logged within the last 24 hours."""
    window_start = now - ACTIVE_WINDOW
    compounds = []

    for entry in logs:
        if entry.logged_at < window_start or entry.logged_at > now:
            continue

        supplement = supplements_by_id.get(entry.supplement_id)
        params = KineticParams.for_entry(supplement, entry)
        concentration, phase = simulate(minutes_between(entry.logged_at, now), params)

        compounds.append(ActiveCompound(
            log_id=entry.id,
            supplement_id=entry.supplement_id,
            name=supplement.name if supplement else entry.supplement_name,
            dosage=entry.dosage,
            unit=entry.unit,
            logged_at=entry.logged_at,
            concentration_percent=round(concentration, 1),
            phase=phase,
            peak_minutes=params.peak_minutes,
            half_life_minutes=params.half_life_minutes,
            bioavailability_percent=supplement.bioavailability_percent if supplement else None,
            category=(supplement.category if supplement else None) or entry.supplement_category,
        ))

    return compounds


def calculate_exclusion_zones(
    logs: Sequence[LogEntry],
    rules: Sequence[TimingRule],
    now: datetime
) -> List[ExclusionZone]:
    """
    Forward-looking windows during which a timing rule is still violated.

    A zone opens when both supplements of a timing rule were logged and ends
    min_hours_apart after the latest source dose. Soonest-expiring first.
    """
    grouped = logs_by_supplement(logs)
    zones = []

    for rule in rules:
        source_logs = grouped.get(rule.source_id)
        if not source_logs or not grouped.get(rule.target_id):
            continue
        if rule.source is None or rule.target is None:
            continue

        latest_source = max(source_logs, key=lambda entry: entry.logged_at)
        ends_at = latest_source.logged_at + timedelta(hours=rule.min_hours_apart)
        if ends_at <= now:
            continue

        zones.append(ExclusionZone(
            rule_id=rule.id,
            source_supplement_id=rule.source_id,
            source_supplement_name=rule.source.name,
            target_supplement_id=rule.target_id,
            target_supplement_name=rule.target.name,
            ends_at=ends_at,
            minutes_remaining=round(minutes_between(now, ends_at)),
            reason=rule.reason,
            severity=rule.severity,
            research_url=rule.research_url,
        ))

    return sorted(zones, key=lambda zone: zone.minutes_remaining)


def synergy_suggestion_key(source_id: str, target_id: str) -> str:
    """Stable key used by external dismissal tracking."""
    return "synergy:" + ":".join(sorted((source_id, target_id)))


def calculate_optimizations(
    present_ids: Set[str],
    rules: Sequence[InteractionRule]
) -> List[OptimizationOpportunity]:
    """Synergies whose both endpoints are present in the log set."""
    optimizations = []
    seen = set()

    for rule in rules:
        if rule.type != InteractionType.SYNERGY:
            continue
        if rule.source_id not in present_ids or rule.target_id not in present_ids:
            continue
        if rule.source is None or rule.target is None:
            continue

        key = synergy_suggestion_key(rule.source_id, rule.target_id)
        if key in seen:
            continue
        seen.add(key)

        optimizations.append(OptimizationOpportunity(
            type=InteractionType.SYNERGY.value,
            supplement_ids=(rule.source_id, rule.target_id),
            title=f"Active synergy: {rule.source.name} + {rule.target.name}",
            description=rule.suggestion or "You are getting the benefit of this synergy.",
            priority=1,
            suggestion_key=key,
        ))

    return optimizations


def calculate_bio_score(
    active_compounds: Sequence[ActiveCompound],
    exclusion_zones: Sequence[ExclusionZone],
    optimizations: Sequence[OptimizationOpportunity]
) -> int:
    # Absence of data is not evidence of safety
    if not active_compounds:
        return NEUTRAL_SCORE

    score = BASE_SCORE
    for zone in exclusion_zones:
        score -= ZONE_PENALTIES.get(zone.severity, ZONE_PENALTIES[Severity.LOW])

    synergies = sum(1 for o in optimizations if o.type == InteractionType.SYNERGY.value)
    score += min(synergies * SYNERGY_BONUS, SYNERGY_BONUS_CAP)

    return max(0, min(100, score))


def active_supplements(state: BiologicalState) -> List[ActiveCompound]:
    """Compounds currently absorbing or at peak, for "active now" indicators."""
    return [
        c for c in state.active_compounds
        if c.phase in (KineticPhase.ABSORBING, KineticPhase.PEAK)
    ]


def blocking_zone(state: BiologicalState, supplement_id: str) -> Optional[ExclusionZone]:
    """The exclusion zone that makes taking supplement_id unsafe now, if any."""
    for zone in state.exclusion_zones:
        if zone.target_supplement_id == supplement_id:
            return zone
    return None
