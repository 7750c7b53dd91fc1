"""
Early bird discounts.

A discount applies when the booking is made at least ``days_in_advance``
days before departure, the departure falls in its validity window and its
season filters allow the departure season. When several apply, the best
one wins (priority, then percentage) and cumulative discounts stack on it.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional, Sequence

from tarification.services.margin_calculator import quantize

DEFAULT_RISK_MARGIN_DAYS = 30
URGENT_MARGIN_DAYS = 15


@dataclass
class EarlyBirdAlert:
    """Where a trip stands against one discount's booking deadline."""
    type: str  # expired, warning_15, warning_30, active
    discount: Any
    days_remaining: int

    @property
    def margin_days(self) -> int:
        """Days left to book before the discount is lost."""
        return self.days_remaining - self.discount.days_in_advance

    @property
    def is_at_risk(self) -> bool:
        return self.type in ("warning_15", "warning_30")


def _season_allowed(discount: Any, season_id: Optional[int]) -> bool:
    if discount.season_ids:
        if season_id is None or season_id not in discount.season_ids:
            return False
    if discount.excluded_season_ids and season_id in discount.excluded_season_ids:
        return False
    return True


def _in_validity_window(discount: Any, departure_date: date) -> bool:
    if discount.valid_from and departure_date < discount.valid_from:
        return False
    if discount.valid_to and departure_date > discount.valid_to:
        return False
    return True


def _best_key(discount: Any):
    discount_id = discount.id if discount.id is not None else float("inf")
    return (-(discount.priority or 0), -Decimal(str(discount.discount_percent)), discount_id)


def applicable_early_bird(
    discounts: Sequence[Any],
    booking_date: date,
    departure_date: date,
    season_id: Optional[int] = None,
) -> List[Any]:
    """
    Discounts to apply, best first.

    Returns an empty list when none applies. The best discount is followed
    by the other cumulative ones.
    """
    days_before = (departure_date - booking_date).days
    eligible = sorted(
        (
            d for d in discounts or []
            if d.is_active
            and days_before >= d.days_in_advance
            and _in_validity_window(d, departure_date)
            and _season_allowed(d, season_id)
        ),
        key=_best_key,
    )
    if not eligible:
        return []
    best = eligible[0]
    return [best] + [d for d in eligible[1:] if d.is_cumulative]


def total_discount_percent(discounts: Sequence[Any]) -> Decimal:
    return sum((Decimal(str(d.discount_percent)) for d in discounts), Decimal("0"))


def apply_early_bird(cost: Decimal, discounts: Sequence[Any]) -> Decimal:
    """Cost after discounts, applied one after another, rounded to the cent."""
    result = Decimal(str(cost))
    for discount in discounts:
        result = result * (Decimal("100") - Decimal(str(discount.discount_percent))) / Decimal("100")
    return quantize(result)


def alert_type(days_remaining: int, days_in_advance: int, risk_margin_days: int = DEFAULT_RISK_MARGIN_DAYS) -> str:
    if days_remaining < days_in_advance:
        return "expired"
    margin = days_remaining - days_in_advance
    if margin <= URGENT_MARGIN_DAYS:
        return "warning_15"
    if margin <= risk_margin_days:
        return "warning_30"
    return "active"


def early_bird_alerts(
    departure_date: date,
    discounts: Sequence[Any],
    today: Optional[date] = None,
    risk_margin_days: int = DEFAULT_RISK_MARGIN_DAYS,
) -> List[EarlyBirdAlert]:
    """One alert per active discount, most urgent first."""
    today = today or date.today()
    days_remaining = (departure_date - today).days
    alerts = [
        EarlyBirdAlert(
            type=alert_type(days_remaining, d.days_in_advance, risk_margin_days),
            discount=d,
            days_remaining=days_remaining,
        )
        for d in discounts or []
        if d.is_active
    ]
    return sorted(alerts, key=lambda a: a.margin_days)


def early_bird_at_risk(
    departure_date: date,
    discounts: Sequence[Any],
    today: Optional[date] = None,
    risk_margin_days: int = DEFAULT_RISK_MARGIN_DAYS,
) -> List[EarlyBirdAlert]:
    """Discounts still reachable but lost within ``risk_margin_days`` days."""
    return [a for a in early_bird_alerts(departure_date, discounts, today, risk_margin_days) if a.is_at_risk]
