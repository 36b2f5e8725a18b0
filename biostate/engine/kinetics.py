"""
Kinetic simulator: relative plasma concentration of a single dose.

Concentration is expressed as a percentage of Cmax (0-100).

First-order model:
  t < Tmax:   C(t) = 100 * t / Tmax                 (linear absorption ramp)
  t >= Tmax:  C(t) = 100 * e^(-k * (t - Tmax))      k = ln(2) / t_half
  Values below 1% are treated as cleared.

Saturable (Michaelis-Menten) absorption, for compounds with saturable
transporters (vitamin C, magnesium, iron):
  dA/dt = -(Vmax * A) / (Km + A)
  A(t)  = Km * W((A0/Km) * e^((A0 - Vmax*t)/Km))     W = Lambert W, branch 0
  The ramp follows the absorbed amount A0 - A(t); elimination is first order.

Phases: absorbing -> peak (30 min plateau) -> eliminating -> cleared.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from biostate.engine.types import KineticPhase, KineticsType, LogEntry, SupplementSnapshot
from biostate.engine.units import to_milligrams

DEFAULT_PEAK_MINUTES = 60.0
DEFAULT_HALF_LIFE_MINUTES = 240.0
PEAK_PLATEAU_MINUTES = 30.0
CLEARED_BELOW_PERCENT = 1.0
STACKING_CAP_PERCENT = 150.0

# math.exp overflows past this exponent
_MAX_EXP_ARG = 700.0


@dataclass(frozen=True)
class KineticParams:
    peak_minutes: float = DEFAULT_PEAK_MINUTES
    half_life_minutes: float = DEFAULT_HALF_LIFE_MINUTES
    kinetics_type: KineticsType = KineticsType.FIRST_ORDER
    dose: Optional[float] = None
    vmax: Optional[float] = None
    km: Optional[float] = None  # dose, vmax and km share the mg scale

    @classmethod
    def for_dose(cls, supplement: Optional[SupplementSnapshot], dose: Optional[float] = None) -> "KineticParams":
        """Build parameters from supplement metadata, defaulting anything missing."""
        if supplement is None:
            return cls(dose=dose)
        return cls(
            peak_minutes=_positive_or(supplement.peak_minutes, DEFAULT_PEAK_MINUTES),
            half_life_minutes=_positive_or(supplement.half_life_minutes, DEFAULT_HALF_LIFE_MINUTES),
            kinetics_type=supplement.kinetics_type or KineticsType.FIRST_ORDER,
            dose=dose,
            vmax=supplement.vmax,
            km=supplement.km,
        )

    @classmethod
    def for_entry(cls, supplement: Optional[SupplementSnapshot], entry: LogEntry) -> "KineticParams":
        """
        Parameters for a logged dose, with the dose in milligrams.

        A dose that cannot be expressed in mg (IU, ml) is not estimated;
        saturable compounds then fall back to first order.
        """
        return cls.for_dose(supplement, to_milligrams(entry.dosage, entry.unit))


def _positive_or(value: Optional[float], default: float) -> float:
    if value is None or value <= 0:
        return default
    return float(value)


def elimination_constant(half_life_minutes: float) -> float:
    """k = ln(2) / t_half"""
    return math.log(2) / half_life_minutes


def _elimination(minutes: float, peak: float, half_life: float) -> float:
    concentration = 100 * math.exp(-elimination_constant(half_life) * (minutes - peak))
    return 0.0 if concentration < CLEARED_BELOW_PERCENT else concentration


def first_order_concentration(minutes: float, peak_minutes: float, half_life_minutes: float) -> float:
    peak = _positive_or(peak_minutes, DEFAULT_PEAK_MINUTES)
    half_life = _positive_or(half_life_minutes, DEFAULT_HALF_LIFE_MINUTES)

    if minutes < 0:
        return 0.0
    if minutes < peak:
        return (minutes / peak) * 100
    return _elimination(minutes, peak, half_life)


# ── Lambert W (for the closed-form Michaelis-Menten solution) ────────

def lambert_w0(x: float) -> float:
    """
    Principal branch of the Lambert W function, W(x) * e^W(x) = x.
    Halley's method; converges in 3-5 iterations for typical inputs.
    """
    if math.isnan(x):
        return math.nan
    if x == 0:
        return 0.0
    if x == math.e:
        return 1.0
    if x < -1 / math.e:
        return math.nan
    if x == -1 / math.e:
        return -1.0

    if x < 1:
        w = x
    elif x < 10:
        w = math.log(x)
    else:
        lnx = math.log(x)
        lnlnx = math.log(lnx)
        w = lnx - lnlnx + lnlnx / lnx

    for _ in range(50):
        ew = math.exp(w)
        f = w * ew - x
        if abs(f) < 1e-12 * abs(x):
            break
        fp = ew * (w + 1)
        fpp = ew * (w + 2)
        denom = 2 * fp * fp - f * fpp
        if denom == 0:
            w -= f / fp
        else:
            w -= 2 * f * fp / denom
    return w


def _lambert_w0_of_exp(log_x: float) -> float:
    """W(e^log_x) for arguments too large to exponentiate: solves w + ln(w) = log_x."""
    w = log_x - math.log(log_x)
    for _ in range(50):
        step = (w + math.log(w) - log_x) / (1 + 1 / w)
        w -= step
        if abs(step) < 1e-12 * w:
            break
    return w


def remaining_dose(initial_dose: float, vmax: float, km: float, minutes: float) -> float:
    """Unabsorbed amount A(t) under Michaelis-Menten absorption."""
    if initial_dose <= 0:
        return 0.0
    if minutes <= 0:
        return initial_dose

    log_x = math.log(initial_dose / km) + (initial_dose - vmax * minutes) / km
    if log_x > _MAX_EXP_ARG:
        w = _lambert_w0_of_exp(log_x)
    else:
        w = lambert_w0(math.exp(log_x))

    return min(max(km * w, 0.0), initial_dose)


def absorbed_amount(initial_dose: float, vmax: float, km: float, minutes: float) -> float:
    return initial_dose - remaining_dose(initial_dose, vmax, km, minutes)


def michaelis_menten_concentration(minutes: float, params: KineticParams) -> float:
    vmax, km, dose = params.vmax, params.km, params.dose
    if not vmax or not km or vmax <= 0 or km <= 0 or not dose or dose <= 0:
        return first_order_concentration(minutes, params.peak_minutes, params.half_life_minutes)

    peak = _positive_or(params.peak_minutes, DEFAULT_PEAK_MINUTES)
    half_life = _positive_or(params.half_life_minutes, DEFAULT_HALF_LIFE_MINUTES)

    if minutes < 0:
        return 0.0
    if minutes < peak:
        absorbed_at_peak = absorbed_amount(dose, vmax, km, peak)
        if absorbed_at_peak <= 0:
            return 0.0
        return absorbed_amount(dose, vmax, km, minutes) / absorbed_at_peak * 100
    return _elimination(minutes, peak, half_life)


def concentration_at(minutes: float, params: KineticParams) -> float:
    """Concentration (% of Cmax) of one dose, minutes after ingestion."""
    if minutes < 0:
        return 0.0

    if params.kinetics_type == KineticsType.MICHAELIS_MENTEN:
        return michaelis_menten_concentration(minutes, params)
    return first_order_concentration(minutes, params.peak_minutes, params.half_life_minutes)


def determine_phase(minutes: float, peak_minutes: float, concentration: float) -> KineticPhase:
    peak = _positive_or(peak_minutes, DEFAULT_PEAK_MINUTES)
    if minutes < peak:
        return KineticPhase.ABSORBING
    if concentration < CLEARED_BELOW_PERCENT:
        return KineticPhase.CLEARED
    if minutes <= peak + PEAK_PLATEAU_MINUTES:
        return KineticPhase.PEAK
    return KineticPhase.ELIMINATING


def simulate(minutes: float, params: KineticParams) -> Tuple[float, KineticPhase]:
    """Concentration and phase of one dose. Doses in the future read as 0, absorbing."""
    concentration = concentration_at(minutes, params)
    return concentration, determine_phase(minutes, params.peak_minutes, concentration)


def stack_concentration(current: float, added: float) -> float:
    """Sum repeated doses of one compound, capped so stacking stays visible but bounded."""
    return min(current + added, STACKING_CAP_PERCENT)
