from datetime import timedelta

import pytest

from conftest import NOW, make_log
from biostate.services.dashboard import DashboardService, merge_pending_logs
from biostate.services.state_cache import DerivedStateCache


@pytest.fixture
def service():
    return DashboardService(timezone="UTC")


def test_merge_pending_logs():
    confirmed = [make_log("a", "zinc", dosage=10), make_log("b", "copper")]
    pending = [make_log("a", "zinc", dosage=25), make_log("c", "iron")]
    merged = merge_pending_logs(confirmed, pending, removed_ids=["b"])

    assert [entry.id for entry in merged] == ["a", "c"]
    assert merged[0].dosage == 25


def test_removed_pending_log_is_dropped():
    merged = merge_pending_logs([], [make_log("a", "zinc")], removed_ids={"a"})
    assert merged == []


def test_optimistic_matches_confirmed_once_saved(service, snapshot):
    confirmed = [make_log("zn", "zinc", dosage=50, at=NOW - timedelta(hours=1))]
    pending = [make_log("cu", "copper", dosage=1, at=NOW)]

    preview = service.optimistic_state(confirmed, pending, snapshot, now=NOW)
    saved = service.confirmed_state(confirmed + pending, snapshot, now=NOW)

    assert preview == saved
    assert [w.id for w in preview.ratio_warnings] == ["ratio-zn-cu"]
    assert service.check_consistency(saved, preview)


def test_removing_a_log_clears_its_warnings(service, snapshot):
    confirmed = [make_log("zn", "zinc", dosage=50), make_log("cu", "copper", dosage=1)]
    preview = service.optimistic_state(confirmed, [], snapshot, removed_ids=["cu"], now=NOW)
    assert preview.ratio_warnings == ()
    assert preview.interactions == ()


def test_divergence_is_logged(service, snapshot, caplog):
    with_warning = service.confirmed_state(
        [make_log("zn", "zinc", dosage=50), make_log("cu", "copper", dosage=1)], snapshot, now=NOW
    )
    without = service.confirmed_state([make_log("zn", "zinc", dosage=50)], snapshot, now=NOW)

    assert not service.check_consistency(with_warning, without)
    assert "diverged" in caplog.text


def test_cached_derivation_is_reused(snapshot):
    cache = DerivedStateCache(max_entries=8)
    service = DashboardService(cache=cache, timezone="UTC")
    logs = [make_log("zn", "zinc")]

    first = service.confirmed_state(logs, snapshot, now=NOW)
    second = service.confirmed_state(logs, snapshot, now=NOW)
    assert first is second
    assert len(cache) == 1


def test_service_timezone_is_applied(snapshot):
    logs = [
        make_log("zn", "zinc", dosage=50, at=NOW.replace(hour=3)),
        make_log("cu", "copper", dosage=1, at=NOW.replace(hour=11)),
    ]
    utc = DashboardService(timezone="UTC").confirmed_state(logs, snapshot, now=NOW)
    eastern = DashboardService(timezone="America/New_York").confirmed_state(logs, snapshot, now=NOW)
    assert utc.today_log_count == 2
    assert eastern.today_log_count == 1
