"""
Snapshot contract.

An optimistic snapshot is only trustworthy if it agrees with the
authoritative one once the pending logs are confirmed. These helpers reduce
a DerivedState to order-independent warning keys so two snapshots can be
compared without caring about field order or float noise.
"""

from dataclasses import dataclass
from typing import List

from biostate.engine.types import DerivedState


@dataclass(frozen=True)
class ContractKeys:
    interactions: List[str]
    ratio_warnings: List[str]
    timing_warnings: List[str]


def _join(*parts) -> str:
    return "|".join(str(part) for part in parts)


def contract_keys(state: DerivedState) -> ContractKeys:
    interactions = sorted(
        _join(w.id, w.type.value, w.severity.value, w.source.id, w.target.id)
        for w in state.interactions
    )
    ratio_warnings = sorted(
        _join(w.id, w.severity.value, round(w.current_ratio, 3), w.source.id, w.target.id)
        for w in state.ratio_warnings
    )
    timing_warnings = sorted(
        _join(w.id, w.severity.value, round(w.min_hours_apart, 3), w.source.id, w.target.id)
        for w in state.timing_warnings
    )
    return ContractKeys(
        interactions=interactions,
        ratio_warnings=ratio_warnings,
        timing_warnings=timing_warnings,
    )


def are_states_equivalent(authoritative: DerivedState, speculative: DerivedState) -> bool:
    """True when both snapshots raise exactly the same warnings."""
    return contract_keys(authoritative) == contract_keys(speculative)
