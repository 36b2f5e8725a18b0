from .derive import derive_state
from .contract import are_states_equivalent
from .safety_limits import DEFAULT_SAFETY_LIMITS
from .types import (
    DerivedState,
    InteractionRule,
    LogEntry,
    RatioRule,
    RuleSnapshot,
    SafetyLimit,
    SupplementRef,
    SupplementSnapshot,
    TimingRule,
)
