"""
Rule matchers: interaction, ratio and timing.

Each matcher takes the evaluated logs (or the set of supplements present)
and one rule table and returns warnings. The matchers share no state and
may be run in any order; results are always deduplicated by the canonical
unordered pair key so a rule listed as (A, B) and (B, A) yields one warning.

Business policies kept as named functions:
  - latest_dosage_by_supplement: "latest wins" for ratio math
  - closest_log_pair: "closest approach" for timing checks
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, TypeVar

from biostate.engine.types import (
    DosedSupplement,
    GapReason,
    InteractionRule,
    InteractionWarning,
    LogEntry,
    RatioEvaluationGap,
    RatioRule,
    RatioWarning,
    RuleKind,
    SupplementSnapshot,
    TimedSupplement,
    TimingRule,
    TimingWarning,
)
from biostate.engine.units import elemental_amount, to_milligrams

logger = logging.getLogger(__name__)

# Ratio bounds are widened by 15% so minor dosing variance around a
# clinically irrelevant boundary does not make the warning flicker.
RATIO_TOLERANCE = 0.15

T = TypeVar("T")


def pair_key(a: str, b: str) -> str:
    """Canonical unordered pair key."""
    return "-".join(sorted((a, b)))


def dedupe_by_pair(items: Iterable[T], key_of) -> List[T]:
    """Keep the first item per unordered pair, preserving order."""
    seen: Set[str] = set()
    result = []
    for item in items:
        key = pair_key(*key_of(item))
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result


def _has_endpoints(rule) -> bool:
    if rule.source is None or rule.target is None:
        logger.debug(f"Skipping {rule.kind.value} rule {rule.id}: endpoint data missing")
        return False
    return True


def logs_by_supplement(logs: Sequence[LogEntry]) -> Dict[str, List[LogEntry]]:
    grouped: Dict[str, List[LogEntry]] = {}
    for entry in logs:
        grouped.setdefault(entry.supplement_id, []).append(entry)
    return grouped


# ── Interaction matcher ──────────────────────────────────────────────

def match_interactions(
    present_ids: Set[str],
    rules: Sequence[InteractionRule]
) -> List[InteractionWarning]:
    """Presence-only: a rule fires when both endpoints were logged."""
    warnings = []
    for rule in rules:
        if rule.source_id not in present_ids or rule.target_id not in present_ids:
            continue
        if not _has_endpoints(rule):
            continue
        warnings.append(InteractionWarning(
            id=rule.id,
            type=rule.type,
            severity=rule.severity,
            mechanism=rule.mechanism,
            suggestion=rule.suggestion,
            research_url=rule.research_url,
            source=rule.source,
            target=rule.target,
        ))
    return dedupe_by_pair(warnings, lambda w: (w.source.id, w.target.id))


# ── Ratio matcher ────────────────────────────────────────────────────

def latest_dosage_by_supplement(logs: Sequence[LogEntry]) -> Dict[str, LogEntry]:
    """
    Most recent log per supplement ("latest wins").

    When a supplement was logged several times only the newest dose defines
    its ratio contribution; doses are not summed.
    """
    latest: Dict[str, LogEntry] = {}
    for entry in logs:
        current = latest.get(entry.supplement_id)
        if current is None or entry.logged_at > current.logged_at:
            latest[entry.supplement_id] = entry
    return latest


def tolerance_bounds(rule: RatioRule, tolerance: float = RATIO_TOLERANCE) -> Tuple[Optional[float], Optional[float]]:
    low = rule.min_ratio * (1 - tolerance) if rule.min_ratio is not None else None
    high = rule.max_ratio * (1 + tolerance) if rule.max_ratio is not None else None
    return low, high


def is_ratio_compliant(ratio: float, rule: RatioRule, tolerance: float = RATIO_TOLERANCE) -> bool:
    """Inclusive check against the tolerance-expanded band."""
    low, high = tolerance_bounds(rule, tolerance)
    if low is not None and ratio < low:
        return False
    if high is not None and ratio > high:
        return False
    return True


def _elemental_mg(entry: LogEntry, supplement: Optional[SupplementSnapshot]) -> Optional[float]:
    mg = to_milligrams(entry.dosage, entry.unit)
    if mg is None:
        return None
    percent = supplement.elemental_weight_percent if supplement else None
    return elemental_amount(mg, percent)


@dataclass
class RatioResult:
    warnings: List[RatioWarning]
    gaps: List[RatioEvaluationGap]


def match_ratios(
    logs: Sequence[LogEntry],
    rules: Sequence[RatioRule],
    supplements_by_id: Optional[Dict[str, SupplementSnapshot]] = None
) -> RatioResult:
    """
    Compare elemental-mass ratios of the latest doses against ratio rules.

    A rule that cannot be evaluated (unusable dosage or unit) is reported as
    a RatioEvaluationGap instead of a warning.
    """
    supplements_by_id = supplements_by_id or {}
    latest = latest_dosage_by_supplement(logs)
    warnings: List[RatioWarning] = []
    gaps: List[RatioEvaluationGap] = []

    for rule in rules:
        source_log = latest.get(rule.source_id)
        target_log = latest.get(rule.target_id)
        if source_log is None or target_log is None:
            continue

        def gap(reason: GapReason) -> RatioEvaluationGap:
            return RatioEvaluationGap(
                rule_id=rule.id,
                source_supplement_id=rule.source_id,
                target_supplement_id=rule.target_id,
                reason=reason,
            )

        if rule.source is None or rule.target is None:
            gaps.append(gap(GapReason.MISSING_SUPPLEMENT_DATA))
            continue
        if not _is_usable_dosage(source_log.dosage) or not _is_usable_dosage(target_log.dosage):
            gaps.append(gap(GapReason.MISSING_DOSAGE))
            continue

        source_mg = _elemental_mg(source_log, supplements_by_id.get(rule.source_id))
        target_mg = _elemental_mg(target_log, supplements_by_id.get(rule.target_id))
        if source_mg is None or target_mg is None:
            gaps.append(gap(GapReason.NORMALIZATION_FAILED))
            continue
        if target_mg == 0:
            continue

        ratio = source_mg / target_mg
        if is_ratio_compliant(ratio, rule):
            continue

        warnings.append(RatioWarning(
            id=rule.id,
            severity=rule.severity,
            message=rule.warning_message,
            current_ratio=round(ratio, 1),
            optimal_ratio=rule.optimal_ratio,
            min_ratio=rule.min_ratio,
            max_ratio=rule.max_ratio,
            research_url=rule.research_url,
            source=DosedSupplement(
                id=rule.source.id,
                name=rule.source.name,
                dosage=source_log.dosage,
                unit=source_log.unit,
            ),
            target=DosedSupplement(
                id=rule.target.id,
                name=rule.target.name,
                dosage=target_log.dosage,
                unit=target_log.unit,
            ),
        ))

    return RatioResult(
        warnings=dedupe_by_pair(warnings, lambda w: (w.source.id, w.target.id)),
        gaps=gaps,
    )


def _is_usable_dosage(dosage: Optional[float]) -> bool:
    return dosage is not None and math.isfinite(dosage)


# ── Timing matcher ───────────────────────────────────────────────────

def closest_log_pair(
    source_logs: Sequence[LogEntry],
    target_logs: Sequence[LogEntry]
) -> Optional[Tuple[LogEntry, LogEntry, float]]:
    """
    The (source, target) pair with the smallest separation in hours.

    The closest approach is the most charitable reading for the user: one
    compliant pair does not excuse a violating one. First minimum wins.
    """
    best = None
    for source_log in source_logs:
        for target_log in target_logs:
            hours = abs((source_log.logged_at - target_log.logged_at).total_seconds()) / 3600
            if best is None or hours < best[2]:
                best = (source_log, target_log, hours)
    return best


def match_timing(
    logs: Sequence[LogEntry],
    rules: Sequence[TimingRule]
) -> List[TimingWarning]:
    grouped = logs_by_supplement(logs)
    warnings = []

    for rule in rules:
        source_logs = grouped.get(rule.source_id, [])
        target_logs = grouped.get(rule.target_id, [])
        if not source_logs or not target_logs:
            continue
        if not _has_endpoints(rule):
            continue

        best = closest_log_pair(source_logs, target_logs)
        if best is None or best[2] >= rule.min_hours_apart:
            continue

        source_log, target_log, hours = best
        warnings.append(TimingWarning(
            id=rule.id,
            severity=rule.severity,
            reason=rule.reason,
            min_hours_apart=rule.min_hours_apart,
            actual_hours_apart=round(hours, 1),
            research_url=rule.research_url,
            source=TimedSupplement(
                id=rule.source_id,
                name=rule.source.name,
                logged_at=source_log.logged_at,
            ),
            target=TimedSupplement(
                id=rule.target_id,
                name=rule.target.name,
                logged_at=target_log.logged_at,
            ),
        ))

    return dedupe_by_pair(warnings, lambda w: (w.source.id, w.target.id))


def match_rule(rule, logs: Sequence[LogEntry], supplements_by_id: Optional[Dict[str, SupplementSnapshot]] = None):
    """Evaluate a single rule of any kind against the logs."""
    if rule.kind == RuleKind.INTERACTION:
        return match_interactions({entry.supplement_id for entry in logs}, [rule])
    if rule.kind == RuleKind.RATIO:
        return match_ratios(logs, [rule], supplements_by_id)
    if rule.kind == RuleKind.TIMING:
        return match_timing(logs, [rule])
    raise ValueError(f"Unknown rule kind: {rule.kind}")
