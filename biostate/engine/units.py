"""
Dosage unit normalization.

Only the mass lattice (g, mg, mcg) converts. Activity units (IU) and volumes
(ml) never convert to mass: an estimated conversion would corrupt ratio and
safety math, so callers get None and must treat the dose as unevaluable.
"""

import math
from typing import Optional

# mcg per unit
MASS_UNITS = {
    "g": 1_000_000,
    "mg": 1_000,
    "mcg": 1,
}


def convert_unit(amount: float, from_unit: str, to_unit: str) -> Optional[float]:
    """Convert amount between mass units. Returns None if not convertible."""
    if amount is None or not math.isfinite(amount):
        return None
    if from_unit == to_unit:
        return amount
    if from_unit not in MASS_UNITS or to_unit not in MASS_UNITS:
        return None

    factor_from = MASS_UNITS[from_unit]
    factor_to = MASS_UNITS[to_unit]
    # Multiply or divide by an exact power of 1000, never by a fraction
    if factor_from >= factor_to:
        return amount * (factor_from // factor_to)
    return amount / (factor_to // factor_from)


def to_milligrams(amount: float, unit: str) -> Optional[float]:
    return convert_unit(amount, unit, "mg")


def elemental_amount(amount: float, elemental_weight_percent: Optional[float]) -> Optional[float]:
    """
    Elemental content of a compound dose.

    30mg zinc picolinate at 21% elemental weight = 6.3mg elemental zinc.
    A missing percentage means the whole dose counts; a percentage outside
    (0, 100] means the supplement record is unusable.
    """
    if elemental_weight_percent is None:
        return amount
    if elemental_weight_percent <= 0 or elemental_weight_percent > 100:
        return None
    return amount * (elemental_weight_percent / 100)
