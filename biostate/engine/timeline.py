"""Concentration time series for visualization."""

from datetime import datetime, timedelta
from typing import Dict, List, Sequence

from biostate.engine.kinetics import KineticParams, concentration_at, stack_concentration
from biostate.engine.types import LogEntry, SupplementSnapshot, TimelinePoint

INTERVAL_MINUTES = 15
LOOKBACK = timedelta(hours=24)
LOOKAHEAD = timedelta(hours=4)


def build_timeline(
    logs: Sequence[LogEntry],
    supplements_by_id: Dict[str, SupplementSnapshot],
    now: datetime,
    interval_minutes: int = INTERVAL_MINUTES
) -> List[TimelinePoint]:
    """
    Sample every dose from 24h before now to 4h after now.

    Old doses are not pre-filtered; the simulator zeroes them once cleared.
    Repeated doses of one supplement stack up to the cap.
    """
    if not logs:
        return []

    window_start = now - LOOKBACK
    total_minutes = int((LOOKBACK + LOOKAHEAD).total_seconds() // 60)
    params_by_log = [
        (entry, KineticParams.for_entry(supplements_by_id.get(entry.supplement_id), entry))
        for entry in logs
    ]

    points = []
    for minutes in range(0, total_minutes + 1, interval_minutes):
        timestamp = window_start + timedelta(minutes=minutes)
        concentrations: Dict[str, float] = {}

        for entry, params in params_by_log:
            since_ingestion = (timestamp - entry.logged_at).total_seconds() / 60
            if since_ingestion < 0:
                continue
            current = concentrations.get(entry.supplement_id, 0.0)
            concentrations[entry.supplement_id] = stack_concentration(
                current, concentration_at(since_ingestion, params)
            )

        points.append(TimelinePoint(
            minutes_from_start=minutes,
            timestamp=timestamp.isoformat(),
            concentrations=concentrations,
        ))

    return points
