"""Safety headroom: how much of each daily limit today's doses have used."""

from typing import Dict, List, Mapping, Sequence

from biostate.engine.safety_limits import category_label
from biostate.engine.types import LogEntry, SafetyHeadroom, SafetyLimit, SupplementSnapshot
from biostate.engine.units import convert_unit, elemental_amount


def calculate_safety_headroom(
    logs: Sequence[LogEntry],
    supplements_by_id: Dict[str, SupplementSnapshot],
    limits: Mapping[str, SafetyLimit]
) -> List[SafetyHeadroom]:
    """
    Sum same-day doses per safety category in the limit's unit.

    Doses that cannot be expressed in the limit's unit are skipped, never
    estimated. Most-consumed category first.
    """
    totals: Dict[str, float] = {}

    for entry in logs:
        supplement = supplements_by_id.get(entry.supplement_id)
        category = supplement.safety_category if supplement else None
        if not category or category not in limits:
            continue

        converted = convert_unit(entry.dosage, entry.unit, limits[category].unit)
        if converted is None:
            continue
        elemental = elemental_amount(converted, supplement.elemental_weight_percent)
        if elemental is None:
            continue

        totals[category] = totals.get(category, 0.0) + elemental

    headroom = []
    for category, current in totals.items():
        limit = limits[category]
        if current <= 0 or limit.limit <= 0:
            continue

        headroom.append(SafetyHeadroom(
            category=category,
            label=category_label(category),
            current=round(current, 1),
            limit=limit.limit,
            unit=limit.unit,
            percent_used=round(current / limit.limit * 100, 1),
            is_hard_limit=limit.is_hard_limit,
        ))

    return sorted(headroom, key=lambda h: (-h.percent_used, h.category))
