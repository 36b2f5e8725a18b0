from datetime import datetime, timedelta

import pytest
import pytz

from biostate.engine.types import (
    InteractionRule,
    InteractionType,
    LogEntry,
    RatioRule,
    RuleSnapshot,
    Severity,
    SupplementRef,
    SupplementSnapshot,
    TimingRule,
)

NOW = pytz.utc.localize(datetime(2025, 3, 14, 12, 0))


def ref(supplement_id):
    return SupplementRef(id=supplement_id, name=supplement_id.replace("_", " ").title())


def make_log(log_id, supplement_id, dosage=10.0, unit="mg", at=NOW, **kwargs):
    return LogEntry(
        id=log_id,
        supplement_id=supplement_id,
        dosage=dosage,
        unit=unit,
        logged_at=at,
        supplement_name=supplement_id.title(),
        **kwargs
    )


def make_interaction(rule_id, source_id, target_id, type=InteractionType.COMPETITION,
                     severity=Severity.MEDIUM, **kwargs):
    return InteractionRule(
        id=rule_id,
        source_id=source_id,
        target_id=target_id,
        type=type,
        severity=severity,
        source=ref(source_id),
        target=ref(target_id),
        **kwargs
    )


def make_ratio(rule_id, source_id, target_id, min_ratio=None, max_ratio=None,
               severity=Severity.MEDIUM, **kwargs):
    return RatioRule(
        id=rule_id,
        source_id=source_id,
        target_id=target_id,
        severity=severity,
        warning_message=f"Keep {source_id}:{target_id} in range",
        source=ref(source_id),
        target=ref(target_id),
        min_ratio=min_ratio,
        max_ratio=max_ratio,
        **kwargs
    )


def make_timing(rule_id, source_id, target_id, min_hours_apart=2.0,
                severity=Severity.MEDIUM, **kwargs):
    return TimingRule(
        id=rule_id,
        source_id=source_id,
        target_id=target_id,
        min_hours_apart=min_hours_apart,
        reason=f"{source_id} blocks {target_id} absorption",
        severity=severity,
        source=ref(source_id),
        target=ref(target_id),
        **kwargs
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def supplements():
    return (
        SupplementSnapshot(id="zinc", name="Zinc", safety_category="zinc", category="mineral"),
        SupplementSnapshot(id="copper", name="Copper", safety_category="copper", category="mineral"),
        SupplementSnapshot(id="iron", name="Iron", safety_category="iron"),
        SupplementSnapshot(id="calcium", name="Calcium", safety_category="calcium"),
        SupplementSnapshot(id="vitamin_d3", name="Vitamin D3", safety_category="vitamin-d3"),
        SupplementSnapshot(id="vitamin_k2", name="Vitamin K2"),
        SupplementSnapshot(id="caffeine", name="Caffeine", peak_minutes=45, half_life_minutes=300),
        SupplementSnapshot(id="l_theanine", name="L-Theanine", peak_minutes=50, half_life_minutes=65),
    )


@pytest.fixture
def snapshot(supplements):
    return RuleSnapshot(
        supplements=supplements,
        interaction_rules=(
            make_interaction("int-zn-cu", "zinc", "copper"),
            make_interaction("int-d3-k2", "vitamin_d3", "vitamin_k2",
                             type=InteractionType.SYNERGY, severity=Severity.LOW,
                             suggestion="K2 directs calcium mobilized by D3 to bone."),
        ),
        ratio_rules=(
            make_ratio("ratio-zn-cu", "zinc", "copper", min_ratio=8, max_ratio=15),
        ),
        timing_rules=(
            make_timing("time-ca-fe", "calcium", "iron", min_hours_apart=2, severity=Severity.CRITICAL),
        ),
    )


@pytest.fixture
def hours_ago(now):
    def _at(hours):
        return now - timedelta(hours=hours)
    return _at
