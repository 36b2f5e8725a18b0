from datetime import timedelta

import pytest

from conftest import NOW, make_interaction, make_log, make_ratio, make_timing
from biostate.engine.matchers import (
    closest_log_pair,
    is_ratio_compliant,
    latest_dosage_by_supplement,
    match_interactions,
    match_ratios,
    match_rule,
    match_timing,
    pair_key,
    tolerance_bounds,
)
from biostate.engine.types import GapReason, InteractionRule, InteractionType, Severity, SupplementSnapshot


def test_pair_key_is_unordered():
    assert pair_key("zinc", "copper") == pair_key("copper", "zinc") == "copper-zinc"


# ── Interactions ─────────────────────────────────────────────────────

def test_interaction_requires_both_endpoints():
    rules = [make_interaction("r1", "zinc", "copper")]
    assert match_interactions({"zinc"}, rules) == []

    warnings = match_interactions({"zinc", "copper", "iron"}, rules)
    assert len(warnings) == 1
    assert warnings[0].id == "r1"
    assert warnings[0].source.id == "zinc"
    assert warnings[0].severity == Severity.MEDIUM


@pytest.mark.parametrize("source,target", [("zinc", "copper"), ("copper", "zinc")])
def test_interaction_direction_does_not_matter(source, target):
    warnings = match_interactions({"zinc", "copper"}, [make_interaction("r1", source, target)])
    assert len(warnings) == 1


def test_interaction_listed_both_ways_warns_once():
    rules = [
        make_interaction("r1", "zinc", "copper"),
        make_interaction("r2", "copper", "zinc"),
    ]
    warnings = match_interactions({"zinc", "copper"}, rules)
    assert [w.id for w in warnings] == ["r1"]


def test_interaction_with_dangling_endpoint_is_skipped():
    broken = InteractionRule(
        id="broken",
        source_id="zinc",
        target_id="copper",
        type=InteractionType.INHIBITION,
        severity=Severity.CRITICAL,
        source=None,
        target=None,
    )
    rules = [broken, make_interaction("ok", "zinc", "iron")]
    warnings = match_interactions({"zinc", "copper", "iron"}, rules)
    assert [w.id for w in warnings] == ["ok"]


# ── Ratios ───────────────────────────────────────────────────────────

def test_latest_dose_wins():
    logs = [
        make_log("a", "zinc", dosage=50, at=NOW - timedelta(hours=3)),
        make_log("b", "zinc", dosage=15, at=NOW - timedelta(hours=1)),
        make_log("c", "copper", dosage=1, at=NOW - timedelta(hours=2)),
    ]
    latest = latest_dosage_by_supplement(logs)
    assert latest["zinc"].id == "b"
    assert latest["copper"].id == "c"


def test_zinc_copper_scenario():
    logs = [
        make_log("zn", "zinc", dosage=50, at=NOW),
        make_log("cu", "copper", dosage=1, at=NOW - timedelta(minutes=90)),
    ]
    result = match_ratios(logs, [make_ratio("r", "zinc", "copper", min_ratio=8, max_ratio=15)])

    assert len(result.warnings) == 1
    warning = result.warnings[0]
    assert warning.current_ratio == pytest.approx(50.0)
    assert warning.min_ratio == 8
    assert warning.max_ratio == 15
    assert warning.source.dosage == 50
    assert warning.target.unit == "mg"
    assert result.gaps == []


@pytest.mark.parametrize("source_mg,warns", [
    (6.8, False),
    (6.79, True),
    (12, False),
    (13.7, False),
    (13.81, True),
])
def test_tolerance_boundaries(source_mg, warns):
    logs = [make_log("s", "zinc", dosage=source_mg), make_log("t", "copper", dosage=1)]
    result = match_ratios(logs, [make_ratio("r", "zinc", "copper", min_ratio=8, max_ratio=12)])
    assert bool(result.warnings) is warns


def test_tolerance_bounds():
    low, high = tolerance_bounds(make_ratio("r", "a", "b", min_ratio=40, max_ratio=60))
    assert low == pytest.approx(34)
    assert high == pytest.approx(69)
    assert is_ratio_compliant(34.01, make_ratio("r", "a", "b", min_ratio=40))


def test_open_ended_bounds():
    rule = make_ratio("r", "a", "b", max_ratio=2)
    assert is_ratio_compliant(0.001, rule)
    assert not is_ratio_compliant(2.31, rule)


def test_units_are_normalized_before_comparing():
    logs = [make_log("s", "zinc", dosage=10, unit="mg"), make_log("t", "copper", dosage=1000, unit="mcg")]
    result = match_ratios(logs, [make_ratio("r", "zinc", "copper", min_ratio=8, max_ratio=12)])
    assert result.warnings == []


def test_elemental_weight_applies():
    logs = [make_log("s", "zinc", dosage=30), make_log("t", "copper", dosage=2)]
    supplements = {
        "zinc": SupplementSnapshot(id="zinc", name="Zinc Picolinate", elemental_weight_percent=21),
        "copper": SupplementSnapshot(id="copper", name="Copper Bisglycinate", elemental_weight_percent=30),
    }
    rule = make_ratio("r", "zinc", "copper", min_ratio=12, max_ratio=15)
    result = match_ratios(logs, [rule], supplements)
    # 6.3mg Zn / 0.6mg Cu = 10.5, inside the widened 12-15 band
    assert result.warnings == []

    rule = make_ratio("r", "zinc", "copper", min_ratio=14, max_ratio=15)
    result = match_ratios(logs, [rule], supplements)
    assert result.warnings[0].current_ratio == 10.5


def test_activity_units_produce_gap_not_warning():
    logs = [make_log("s", "vitamin_d3", dosage=5000, unit="IU"), make_log("t", "vitamin_k2", dosage=100, unit="mcg")]
    result = match_ratios(logs, [make_ratio("r", "vitamin_d3", "vitamin_k2", min_ratio=1, max_ratio=2)])
    assert result.warnings == []
    assert len(result.gaps) == 1
    assert result.gaps[0].reason == GapReason.NORMALIZATION_FAILED
    assert result.gaps[0].source_supplement_id == "vitamin_d3"


def test_missing_dosage_gap():
    logs = [make_log("s", "zinc", dosage=None), make_log("t", "copper", dosage=1)]
    result = match_ratios(logs, [make_ratio("r", "zinc", "copper", min_ratio=8)])
    assert [g.reason for g in result.gaps] == [GapReason.MISSING_DOSAGE]


def test_missing_endpoint_data_gap():
    rule = make_ratio("r", "zinc", "copper", min_ratio=8)
    broken = type(rule)(
        id="r", source_id="zinc", target_id="copper", severity=Severity.LOW,
        warning_message="", source=None, target=rule.target, min_ratio=8,
    )
    logs = [make_log("s", "zinc", dosage=1), make_log("t", "copper", dosage=1)]
    result = match_ratios(logs, [broken])
    assert [g.reason for g in result.gaps] == [GapReason.MISSING_SUPPLEMENT_DATA]


def test_zero_target_dose_does_not_apply():
    logs = [make_log("s", "zinc", dosage=50), make_log("t", "copper", dosage=0)]
    result = match_ratios(logs, [make_ratio("r", "zinc", "copper", min_ratio=8, max_ratio=12)])
    assert result.warnings == []
    assert result.gaps == []


def test_ratio_rule_needs_both_supplements_logged():
    result = match_ratios([make_log("s", "zinc", dosage=50)], [make_ratio("r", "zinc", "copper", min_ratio=8)])
    assert result.warnings == [] and result.gaps == []


# ── Timing ───────────────────────────────────────────────────────────

def test_timing_scenario_half_hour_apart():
    nine = NOW.replace(hour=9, minute=0)
    logs = [
        make_log("a", "supplement_a", at=nine),
        make_log("b", "supplement_b", at=nine + timedelta(minutes=30)),
    ]
    warnings = match_timing(logs, [make_timing("t", "supplement_a", "supplement_b", min_hours_apart=6)])
    assert len(warnings) == 1
    assert warnings[0].actual_hours_apart == 0.5
    assert warnings[0].min_hours_apart == 6
    assert warnings[0].source.logged_at == nine
    assert warnings[0].target.logged_at == nine + timedelta(minutes=30)


def test_timing_uses_closest_pair():
    logs = [
        make_log("ca1", "calcium", at=NOW - timedelta(hours=10)),
        make_log("ca2", "calcium", at=NOW - timedelta(hours=1)),
        make_log("fe1", "iron", at=NOW - timedelta(hours=5)),
        make_log("fe2", "iron", at=NOW - timedelta(minutes=30)),
    ]
    source, target, hours = closest_log_pair(logs[:2], logs[2:])
    assert (source.id, target.id) == ("ca2", "fe2")
    assert hours == pytest.approx(0.5)


def test_timing_far_enough_apart_is_fine():
    logs = [
        make_log("ca", "calcium", at=NOW - timedelta(hours=3)),
        make_log("fe", "iron", at=NOW),
    ]
    assert match_timing(logs, [make_timing("t", "calcium", "iron", min_hours_apart=2)]) == []


def test_timing_exactly_at_minimum_is_fine():
    logs = [
        make_log("ca", "calcium", at=NOW - timedelta(hours=2)),
        make_log("fe", "iron", at=NOW),
    ]
    assert match_timing(logs, [make_timing("t", "calcium", "iron", min_hours_apart=2)]) == []


def test_timing_rules_in_both_directions_collapse():
    logs = [make_log("ca", "calcium"), make_log("fe", "iron")]
    rules = [
        make_timing("t1", "calcium", "iron"),
        make_timing("t2", "iron", "calcium"),
    ]
    warnings = match_timing(logs, rules)
    assert [w.id for w in warnings] == ["t1"]


def test_match_rule_dispatches_on_kind():
    logs = [make_log("ca", "calcium", dosage=100), make_log("fe", "iron", dosage=10)]
    assert len(match_rule(make_timing("t", "calcium", "iron"), logs)) == 1
    assert len(match_rule(make_interaction("i", "calcium", "iron"), logs)) == 1
    assert match_rule(make_ratio("r", "calcium", "iron", max_ratio=5), logs).warnings[0].current_ratio == 10.0
