"""Request bodies shared by the routers, with conversion into engine types."""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from biostate.engine.types import (
    InteractionRule,
    InteractionType,
    KineticsType,
    LogEntry,
    RatioRule,
    RuleSnapshot,
    SafetyLimit,
    Severity,
    SupplementRef,
    SupplementSnapshot,
    TimingRule,
)


class LogEntryIn(BaseModel):
    id: str
    supplement_id: str
    dosage: Optional[float] = None
    unit: str
    logged_at: datetime
    supplement_name: str = ""
    supplement_form: Optional[str] = None
    supplement_category: Optional[str] = None

    def to_engine(self) -> LogEntry:
        return LogEntry(**self.model_dump())


class SupplementIn(BaseModel):
    id: str
    name: str
    form: Optional[str] = None
    safety_category: Optional[str] = None
    category: Optional[str] = None
    kinetics_type: Optional[KineticsType] = None
    peak_minutes: Optional[float] = None
    half_life_minutes: Optional[float] = None
    bioavailability_percent: Optional[float] = None
    elemental_weight_percent: Optional[float] = None
    vmax: Optional[float] = None
    km: Optional[float] = None

    def to_engine(self) -> SupplementSnapshot:
        return SupplementSnapshot(**self.model_dump())


class SupplementRefIn(BaseModel):
    id: str
    name: str
    form: Optional[str] = None


def _ref(ref: Optional[SupplementRefIn]) -> Optional[SupplementRef]:
    if ref is None:
        return None
    return SupplementRef(id=ref.id, name=ref.name, form=ref.form)


class InteractionRuleIn(BaseModel):
    id: str
    source_id: str
    target_id: str
    type: InteractionType
    severity: Severity
    source: Optional[SupplementRefIn] = None
    target: Optional[SupplementRefIn] = None
    mechanism: Optional[str] = None
    suggestion: Optional[str] = None
    research_url: Optional[str] = None

    def to_engine(self) -> InteractionRule:
        return InteractionRule(
            id=self.id,
            source_id=self.source_id,
            target_id=self.target_id,
            type=self.type,
            severity=self.severity,
            source=_ref(self.source),
            target=_ref(self.target),
            mechanism=self.mechanism,
            suggestion=self.suggestion,
            research_url=self.research_url,
        )


class RatioRuleIn(BaseModel):
    id: str
    source_id: str
    target_id: str
    severity: Severity
    warning_message: str
    source: Optional[SupplementRefIn] = None
    target: Optional[SupplementRefIn] = None
    min_ratio: Optional[float] = None
    max_ratio: Optional[float] = None
    optimal_ratio: Optional[float] = None
    research_url: Optional[str] = None

    def to_engine(self) -> RatioRule:
        return RatioRule(
            id=self.id,
            source_id=self.source_id,
            target_id=self.target_id,
            severity=self.severity,
            warning_message=self.warning_message,
            source=_ref(self.source),
            target=_ref(self.target),
            min_ratio=self.min_ratio,
            max_ratio=self.max_ratio,
            optimal_ratio=self.optimal_ratio,
            research_url=self.research_url,
        )


class TimingRuleIn(BaseModel):
    id: str
    source_id: str
    target_id: str
    min_hours_apart: float
    reason: str
    severity: Severity
    source: Optional[SupplementRefIn] = None
    target: Optional[SupplementRefIn] = None
    research_url: Optional[str] = None

    def to_engine(self) -> TimingRule:
        return TimingRule(
            id=self.id,
            source_id=self.source_id,
            target_id=self.target_id,
            min_hours_apart=self.min_hours_apart,
            reason=self.reason,
            severity=self.severity,
            source=_ref(self.source),
            target=_ref(self.target),
            research_url=self.research_url,
        )


class RuleSnapshotIn(BaseModel):
    supplements: List[SupplementIn] = []
    interaction_rules: List[InteractionRuleIn] = []
    ratio_rules: List[RatioRuleIn] = []
    timing_rules: List[TimingRuleIn] = []

    def to_engine(self) -> RuleSnapshot:
        return RuleSnapshot(
            supplements=tuple(s.to_engine() for s in self.supplements),
            interaction_rules=tuple(r.to_engine() for r in self.interaction_rules),
            ratio_rules=tuple(r.to_engine() for r in self.ratio_rules),
            timing_rules=tuple(r.to_engine() for r in self.timing_rules),
        )


class SafetyLimitIn(BaseModel):
    limit: float
    unit: str
    is_hard_limit: bool = False
    source: str = ""

    def to_engine(self) -> SafetyLimit:
        return SafetyLimit(**self.model_dump())


def limits_to_engine(limits: Optional[Dict[str, SafetyLimitIn]]) -> Optional[Dict[str, SafetyLimit]]:
    if limits is None:
        return None
    return {category: limit.to_engine() for category, limit in limits.items()}
