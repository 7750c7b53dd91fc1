"""
Ratio rule mapping.

The editor shows a simple pricing rule (per person, per room, per vehicle,
per group). Items store it as ratio fields: ``ratio_type`` ("ratio" divides
the cost by ``ratio_per`` units, "set" charges it once) and the pax
categories the ratio counts.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RatioFields:
    """Ratio fields as stored on an item."""
    ratio_type: str
    ratio_per: int
    ratio_categories: str


DEFAULT_RATIO = RatioFields("set", 1, "adult")


def map_ratio_rule(
    rule: Optional[str] = None,
    ratio_per: Optional[int] = None,
    ratio_categories: Optional[str] = None,
) -> RatioFields:
    """
    Translate a pricing rule into item ratio fields.

    per_group always charges once (ratio_per = 1) whatever ratio_per says.
    Unknown rules fall back to a single charge for adults.
    """
    per = ratio_per if ratio_per is not None else 1
    categories = ratio_categories or "adult"

    if rule == "per_person":
        return RatioFields("ratio", per, categories)
    if rule == "per_room":
        return RatioFields("ratio", per, "room")
    if rule == "per_vehicle":
        return RatioFields("ratio", per, "vehicle")
    if rule == "per_group":
        return RatioFields("set", 1, categories)
    return DEFAULT_RATIO
