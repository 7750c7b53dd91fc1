"""
Margin calculator - commissions and VAT for a selling price against a cost.

VAT modes for travel agencies:
- on_margin: VAT base = gross margin (standard French regime for travel
  agencies). There is no recoverable VAT in this mode.
- on_selling_price: VAT base = selling price - primary commission. VAT
  already paid on TTC purchases is deducted.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Union

from tarification.schemas.tarification import PricingSettings, TarificationComputedLine

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Number]) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Number) -> Decimal:
    """Round to the cent, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> int:
    return int(quantize(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


class MarginCalculator:
    """
    Computes the margin breakdown of one tarification line.

    Commissions are taken on the selling price. The VAT base uses the total
    commission percentage (primary + secondary).
    """

    def __init__(self, settings: Optional[PricingSettings] = None):
        self.settings = settings or PricingSettings()
        self.primary_commission_pct = to_decimal(self.settings.primary_commission_pct)
        self.secondary_commission_pct = to_decimal(self.settings.secondary_commission_pct)
        self.vat_pct = to_decimal(self.settings.vat_pct)
        self.vat_mode = self.settings.vat_calculation_mode

    def calculate_vat(
        self,
        total_cost: Decimal,
        total_price: Decimal,
        commission_pct: Decimal,
        vat_recoverable: Decimal = ZERO,
    ) -> Dict[str, Decimal]:
        """
        Calculate VAT for a line.

        Returns:
            Dict with margin, vat_base, vat_amount, vat_recoverable,
            net_vat (VAT minus recoverable, never negative) and price_ttc.
        """
        margin = total_price - total_cost

        if self.vat_mode == "on_selling_price":
            # Base = selling price - commission
            commission_amount = quantize(total_price * commission_pct / Decimal("100"))
            vat_base = total_price - commission_amount
        else:
            vat_base = margin

        vat_amount = quantize(vat_base * self.vat_pct / Decimal("100"))

        net_vat = quantize(vat_amount - vat_recoverable)
        if net_vat < ZERO:
            net_vat = ZERO

        return {
            "margin": quantize(margin),
            "vat_base": quantize(vat_base),
            "vat_amount": vat_amount,
            "vat_recoverable": vat_recoverable,
            "net_vat": net_vat,
            "price_ttc": quantize(total_price + net_vat),
        }

    def compute_line(
        self,
        label: Optional[str],
        selling_price: Number,
        total_cost: Number,
        vat_recoverable: Number = ZERO,
        **details,
    ) -> TarificationComputedLine:
        """Compute a single margin line from selling price and cost."""
        selling_price = quantize(selling_price)
        total_cost = quantize(total_cost)

        margin_total = selling_price - total_cost
        margin_pct = (
            quantize(margin_total / selling_price * Decimal("100"))
            if selling_price > 0 else ZERO
        )

        primary_commission_amount = quantize(selling_price * self.primary_commission_pct / Decimal("100"))
        secondary_commission_amount = quantize(selling_price * self.secondary_commission_pct / Decimal("100"))
        commission_amount = primary_commission_amount + secondary_commission_amount
        agency_selling_price = selling_price - commission_amount
        margin_after_commission = margin_total - commission_amount

        # No recoverable VAT on margin regime
        vat_recoverable = ZERO if self.vat_mode == "on_margin" else quantize(vat_recoverable)
        vat_forecast = ZERO
        net_vat = ZERO

        if self.vat_pct > 0:
            vat_result = self.calculate_vat(
                total_cost=total_cost,
                total_price=selling_price,
                commission_pct=self.primary_commission_pct + self.secondary_commission_pct,
                vat_recoverable=vat_recoverable,
            )
            vat_forecast = vat_result["vat_amount"]
            net_vat = vat_result["net_vat"]

        margin_nette = margin_after_commission - net_vat

        return TarificationComputedLine(
            label=label,
            selling_price=selling_price,
            total_cost=total_cost,
            margin_total=margin_total,
            margin_pct=margin_pct,
            primary_commission_amount=primary_commission_amount,
            secondary_commission_amount=secondary_commission_amount,
            commission_amount=commission_amount,
            agency_selling_price=agency_selling_price,
            margin_after_commission=margin_after_commission,
            vat_forecast=vat_forecast,
            vat_recoverable=vat_recoverable,
            net_vat=net_vat,
            margin_nette=margin_nette,
            **details,
        )
