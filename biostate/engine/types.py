"""
Engine data model.

Inputs (logs, supplement metadata, rule tables, safety limits) and every
derived output are plain frozen dataclasses so a snapshot can be compared
field-for-field between the authoritative and the optimistic call sites.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    CRITICAL = "critical"


class InteractionType(str, Enum):
    SYNERGY = "synergy"
    INHIBITION = "inhibition"
    COMPETITION = "competition"


class KineticsType(str, Enum):
    FIRST_ORDER = "first_order"
    MICHAELIS_MENTEN = "michaelis_menten"  # saturable transporters


class KineticPhase(str, Enum):
    ABSORBING = "absorbing"
    PEAK = "peak"
    ELIMINATING = "eliminating"
    CLEARED = "cleared"


class RuleKind(str, Enum):
    INTERACTION = "interaction"
    RATIO = "ratio"
    TIMING = "timing"


class GapReason(str, Enum):
    MISSING_DOSAGE = "missing_dosage"
    MISSING_SUPPLEMENT_DATA = "missing_supplement_data"
    NORMALIZATION_FAILED = "normalization_failed"


# ── Inputs ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LogEntry:
    """A recorded intake. Never mutated by the engine."""
    id: str
    supplement_id: str
    dosage: Optional[float]
    unit: str
    logged_at: datetime
    supplement_name: str = ""
    supplement_form: Optional[str] = None
    supplement_category: Optional[str] = None


@dataclass(frozen=True)
class SupplementSnapshot:
    """Static per-evaluation metadata for a compound."""
    id: str
    name: str
    form: Optional[str] = None
    safety_category: Optional[str] = None
    category: Optional[str] = None
    kinetics_type: Optional[KineticsType] = None
    peak_minutes: Optional[float] = None
    half_life_minutes: Optional[float] = None
    bioavailability_percent: Optional[float] = None
    elemental_weight_percent: Optional[float] = None  # None = whole compound
    vmax: Optional[float] = None  # mg/min
    km: Optional[float] = None  # mg


@dataclass(frozen=True)
class SupplementRef:
    """Denormalized rule endpoint."""
    id: str
    name: str
    form: Optional[str] = None


@dataclass(frozen=True)
class InteractionRule:
    id: str
    source_id: str
    target_id: str
    type: InteractionType
    severity: Severity
    source: Optional[SupplementRef]
    target: Optional[SupplementRef]
    mechanism: Optional[str] = None
    suggestion: Optional[str] = None
    research_url: Optional[str] = None
    kind: RuleKind = field(default=RuleKind.INTERACTION, init=False)


@dataclass(frozen=True)
class RatioRule:
    id: str
    source_id: str
    target_id: str
    severity: Severity
    warning_message: str
    source: Optional[SupplementRef]
    target: Optional[SupplementRef]
    min_ratio: Optional[float] = None
    max_ratio: Optional[float] = None
    optimal_ratio: Optional[float] = None
    research_url: Optional[str] = None
    kind: RuleKind = field(default=RuleKind.RATIO, init=False)


@dataclass(frozen=True)
class TimingRule:
    id: str
    source_id: str
    target_id: str
    min_hours_apart: float
    reason: str
    severity: Severity
    source: Optional[SupplementRef]
    target: Optional[SupplementRef]
    research_url: Optional[str] = None
    kind: RuleKind = field(default=RuleKind.TIMING, init=False)


@dataclass(frozen=True)
class RuleSnapshot:
    supplements: Tuple[SupplementSnapshot, ...] = ()
    interaction_rules: Tuple[InteractionRule, ...] = ()
    ratio_rules: Tuple[RatioRule, ...] = ()
    timing_rules: Tuple[TimingRule, ...] = ()

    def supplements_by_id(self) -> Dict[str, SupplementSnapshot]:
        return {s.id: s for s in self.supplements}


@dataclass(frozen=True)
class SafetyLimit:
    limit: float
    unit: str
    is_hard_limit: bool = False
    source: str = ""


# ── Warnings ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class InteractionWarning:
    id: str
    type: InteractionType
    severity: Severity
    mechanism: Optional[str]
    suggestion: Optional[str]
    research_url: Optional[str]
    source: SupplementRef
    target: SupplementRef


@dataclass(frozen=True)
class DosedSupplement:
    id: str
    name: str
    dosage: float
    unit: str


@dataclass(frozen=True)
class RatioWarning:
    id: str
    severity: Severity
    message: str
    current_ratio: float
    optimal_ratio: Optional[float]
    min_ratio: Optional[float]
    max_ratio: Optional[float]
    research_url: Optional[str]
    source: DosedSupplement
    target: DosedSupplement


@dataclass(frozen=True)
class RatioEvaluationGap:
    rule_id: str
    source_supplement_id: str
    target_supplement_id: str
    reason: GapReason


@dataclass(frozen=True)
class TimedSupplement:
    id: str
    name: str
    logged_at: datetime


@dataclass(frozen=True)
class TimingWarning:
    id: str
    severity: Severity
    reason: str
    min_hours_apart: float
    actual_hours_apart: float
    research_url: Optional[str]
    source: TimedSupplement
    target: TimedSupplement


# ── Biological state ─────────────────────────────────────────────────

@dataclass(frozen=True)
class ActiveCompound:
    log_id: str
    supplement_id: str
    name: str
    dosage: Optional[float]
    unit: str
    logged_at: datetime
    concentration_percent: float
    phase: KineticPhase
    peak_minutes: float
    half_life_minutes: float
    bioavailability_percent: Optional[float]
    category: Optional[str]


@dataclass(frozen=True)
class ExclusionZone:
    rule_id: str
    source_supplement_id: str
    source_supplement_name: str
    target_supplement_id: str
    target_supplement_name: str
    ends_at: datetime
    minutes_remaining: int
    reason: str
    severity: Severity
    research_url: Optional[str]


@dataclass(frozen=True)
class OptimizationOpportunity:
    type: str
    supplement_ids: Tuple[str, str]
    title: str
    description: str
    priority: int
    suggestion_key: str


@dataclass(frozen=True)
class BiologicalState:
    active_compounds: Tuple[ActiveCompound, ...]
    exclusion_zones: Tuple[ExclusionZone, ...]
    optimizations: Tuple[OptimizationOpportunity, ...]
    bio_score: int
    calculated_at: datetime


@dataclass(frozen=True)
class TimelinePoint:
    minutes_from_start: int
    timestamp: str
    concentrations: Dict[str, float]


@dataclass(frozen=True)
class SafetyHeadroom:
    category: str
    label: str
    current: float
    limit: float
    unit: str
    percent_used: float
    is_hard_limit: bool


@dataclass(frozen=True)
class DerivedState:
    """The full snapshot handed to presentation collaborators."""
    today_log_count: int
    last_log_at: Optional[datetime]
    interactions: Tuple[InteractionWarning, ...]
    ratio_warnings: Tuple[RatioWarning, ...]
    ratio_evaluation_gaps: Tuple[RatioEvaluationGap, ...]
    timing_warnings: Tuple[TimingWarning, ...]
    biological_state: BiologicalState
    timeline_data: Tuple[TimelinePoint, ...]
    safety_headroom: Tuple[SafetyHeadroom, ...]
