"""
Daily upper limits per safety category.

Sources: NIH Office of Dietary Supplements tolerable upper intake levels,
Endocrine Society (vitamin D3).

These are UPPER limits, not recommended doses. Hard limits are categories
where exceeding the limit carries real toxicity risk.
"""

from typing import Dict

from biostate.engine.types import SafetyLimit

DEFAULT_SAFETY_LIMITS: Dict[str, SafetyLimit] = {
    "magnesium": SafetyLimit(limit=350, unit="mg", source="NIH"),  # supplemental only
    "zinc": SafetyLimit(limit=40, unit="mg", source="NIH"),
    "iron": SafetyLimit(limit=45, unit="mg", is_hard_limit=True, source="NIH"),
    "copper": SafetyLimit(limit=10, unit="mg", source="NIH"),
    "calcium": SafetyLimit(limit=2500, unit="mg", source="NIH"),
    "vitamin-d3": SafetyLimit(limit=10000, unit="IU", source="Endocrine Society"),
    "vitamin-a": SafetyLimit(limit=10000, unit="IU", is_hard_limit=True, source="NIH"),
    "vitamin-c": SafetyLimit(limit=2000, unit="mg", source="NIH"),
    "vitamin-b6": SafetyLimit(limit=100, unit="mg", source="NIH"),
    "selenium": SafetyLimit(limit=400, unit="mcg", is_hard_limit=True, source="NIH"),
}


def category_label(category: str) -> str:
    """vitamin-d3 -> Vitamin D3"""
    return " ".join(part[:1].upper() + part[1:] for part in category.split("-"))
