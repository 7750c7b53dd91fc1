"""
Tarification Engine - Reverse margin calculation.

Given selling prices (set by the user) and cost data (from the cotation's
calculation results), computes margins, commissions and VAT forecasts.

This is the inverse of a quotation:
- Quotation: cost -> margin -> selling price
- Tarification: selling price -> margin (with commission & VAT breakdown)

The result is derived data: it is recomputed from the saved entries every
time and never stored. All amounts are Decimal, rounded to the cent per
line; totals are exact sums of the rounded line values.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from tarification.schemas.room_demand import RoomDemandEntry
from tarification.schemas.tarification import (
    ComputedSupplement,
    CotationPaxResult,
    CotationSupplement,
    EnumerationTarification,
    PaxComposition,
    PerGroupTarification,
    PerPersonTarification,
    PricingSettings,
    RangeWebTarification,
    ServiceListTarification,
    TarificationComputedLine,
    TarificationComputeResult,
    TarificationData,
    parse_tarification,
)
from tarification.services.margin_calculator import ZERO, MarginCalculator, quantize

logger = logging.getLogger(__name__)

TOTAL_LABEL = "Total"

_TOTAL_FIELDS = [
    "selling_price",
    "total_cost",
    "margin_total",
    "primary_commission_amount",
    "secondary_commission_amount",
    "commission_amount",
    "agency_selling_price",
    "margin_after_commission",
    "vat_forecast",
    "vat_recoverable",
    "net_vat",
    "margin_nette",
]


class TarificationValidationError(ValueError):
    """Raised when tarification entries are invalid for their mode."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(message)


class MissingCostBasisError(Exception):
    """Raised when entries must be priced but the cotation has no calculation results."""

    def __init__(self, message: str = "La cotation doit être calculée avant la tarification"):
        self.message = message
        super().__init__(message)


def validate_tarification(raw: Dict[str, Any]) -> TarificationData:
    """
    Parse {"mode": ..., "entries": [...]} into its typed variant.

    Raises TarificationValidationError with the first problem as message.
    """
    try:
        return parse_tarification(raw)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "Invalid tarification")
        if location:
            message = f"{location}: {message}"
        raise TarificationValidationError(message, errors=errors) from e


def parse_pax_results(results_json: Optional[Dict[str, Any]]) -> List[CotationPaxResult]:
    """Extract the pax configurations from a cotation's results_json."""
    if not results_json:
        return []
    return [CotationPaxResult.model_validate(pc) for pc in results_json.get("pax_configs", []) or []]


def find_pax_result(pax_results: Sequence[CotationPaxResult], target_pax: int) -> Optional[CotationPaxResult]:
    """Find the pax configuration matching a target pax count."""
    # Exact match first
    for pc in pax_results:
        if pc.total_pax == target_pax:
            return pc
    # Then paying pax
    for pc in pax_results:
        if pc.paying_pax == target_pax:
            return pc
    # Closest, smaller pax on ties
    if pax_results:
        return min(pax_results, key=lambda pc: (abs(pc.total_pax - target_pax), pc.total_pax))
    return None


def _real_cost(pc: CotationPaxResult) -> Decimal:
    """Supplier cost without the VAT surcharge added to protect the margin."""
    return pc.total_cost - pc.vat_surcharge_total


def _prorate(amount: Decimal, part: int, whole: int) -> Decimal:
    return quantize(amount * part / whole) if whole > 0 else ZERO


def _per_person(amount: Decimal, pax: int) -> Decimal:
    return quantize(amount / pax) if pax > 0 else ZERO


# --- Mode implementations ---

def _compute_range_web(
    data: RangeWebTarification, pax_results: List[CotationPaxResult], calculator: MarginCalculator,
) -> List[TarificationComputedLine]:
    """
    Range Web: each entry has pax_min/max and a selling price per person.

    A range spanning several pax values (e.g. 4-6) gives one line per value
    so the user sees the exact margin for each.
    """
    lines = []
    for entry in data.entries:
        for pax_val in range(entry.pax_min, entry.pax_max + 1):
            pc = find_pax_result(pax_results, pax_val)
            if not pc:
                continue

            total_cost = _real_cost(pc)
            lines.append(calculator.compute_line(
                label=str(pax_val),
                selling_price=entry.selling_price * pc.paying_pax,
                total_cost=total_cost,
                vat_recoverable=pc.vat_recoverable,
                selling_price_per_person=quantize(entry.selling_price),
                cost_per_person=_per_person(total_cost, pc.total_pax),
                paying_pax=pc.paying_pax,
                range_label=entry.label,
            ))
    return lines


def _compute_per_person(
    data: PerPersonTarification, pax_results: List[CotationPaxResult], calculator: MarginCalculator,
) -> List[TarificationComputedLine]:
    """
    Per person: a single price x total pax.

    The selling price uses the entry's pax count; the cost is extrapolated
    from the closest configuration's cost per person.
    """
    lines = []
    for entry in data.entries:
        pc = find_pax_result(pax_results, entry.total_pax)
        if not pc:
            continue

        cost_per_person = _per_person(_real_cost(pc), pc.total_pax)
        lines.append(calculator.compute_line(
            label=f"{entry.total_pax} pers × {entry.price_per_person:.0f}",
            selling_price=entry.price_per_person * entry.total_pax,
            total_cost=cost_per_person * entry.total_pax,
            vat_recoverable=_prorate(pc.vat_recoverable, entry.total_pax, pc.total_pax),
            price_per_person=quantize(entry.price_per_person),
            cost_per_person=cost_per_person,
            paying_pax=entry.total_pax,
        ))
    return lines


def _compute_per_group(
    data: PerGroupTarification, pax_results: List[CotationPaxResult], calculator: MarginCalculator,
) -> List[TarificationComputedLine]:
    """Per group: fixed total price for the group, cost extrapolated per person."""
    lines = []
    for entry in data.entries:
        pc = find_pax_result(pax_results, entry.total_pax)
        if not pc:
            continue

        cost_per_person = _per_person(_real_cost(pc), pc.total_pax)
        lines.append(calculator.compute_line(
            label=f"Groupe de {entry.total_pax}",
            selling_price=entry.group_price,
            total_cost=cost_per_person * entry.total_pax,
            vat_recoverable=_prorate(pc.vat_recoverable, entry.total_pax, pc.total_pax),
            price_per_person=_per_person(entry.group_price, entry.total_pax),
            cost_per_person=cost_per_person,
            paying_pax=entry.total_pax,
        ))
    return lines


def _compute_service_list(
    data: ServiceListTarification, pax_results: List[CotationPaxResult], calculator: MarginCalculator,
) -> List[TarificationComputedLine]:
    """
    Service list: different groups of people with their own pricing.

    Pax are CUMULATIVE: 2 pers (line 1) + 2 pers (line 2) = 4 pax total.
    The cost lookup uses the running cumulative pax count.
    """
    lines = []
    cumulative_pax = 0
    for entry in data.entries:
        cumulative_pax = entry.cumulative_pax or (cumulative_pax + entry.pax)

        pc = find_pax_result(pax_results, cumulative_pax)
        if not pc:
            continue

        # This line's share of the configuration cost
        total_cost_line = _prorate(_real_cost(pc), entry.pax, pc.paying_pax)
        lines.append(calculator.compute_line(
            label=entry.label,
            selling_price=entry.price_per_person * entry.pax,
            total_cost=total_cost_line,
            vat_recoverable=_prorate(pc.vat_recoverable, entry.pax, pc.paying_pax),
            pax=entry.pax,
            price_per_person=quantize(entry.price_per_person),
            cost_per_person=_per_person(total_cost_line, entry.pax),
        ))
    return lines


def _compute_enumeration(
    data: EnumerationTarification, pax_results: List[CotationPaxResult], calculator: MarginCalculator,
) -> List[TarificationComputedLine]:
    """
    Enumeration: detail of services for the SAME people.

    Unlike service_list, pax do NOT accumulate. The quantity of the first
    entry is the pax count used for the cost lookup of every line.
    """
    lines = []
    reference_pax = data.entries[0].quantity if data.entries else 1
    pc = find_pax_result(pax_results, reference_pax)
    if not pc:
        return lines

    for entry in data.entries:
        total_cost_line = _prorate(_real_cost(pc), entry.quantity, pc.paying_pax)
        lines.append(calculator.compute_line(
            label=entry.label,
            selling_price=entry.unit_price * entry.quantity,
            total_cost=total_cost_line,
            vat_recoverable=_prorate(pc.vat_recoverable, entry.quantity, pc.paying_pax),
            unit_price=quantize(entry.unit_price),
            quantity=entry.quantity,
            cost_per_person=_per_person(total_cost_line, entry.quantity),
        ))
    return lines


_MODE_HANDLERS = {
    RangeWebTarification: _compute_range_web,
    PerPersonTarification: _compute_per_person,
    PerGroupTarification: _compute_per_group,
    ServiceListTarification: _compute_service_list,
    EnumerationTarification: _compute_enumeration,
}


def compute_totals(lines: Sequence[TarificationComputedLine]) -> TarificationComputedLine:
    """Aggregate totals from all lines: exact sums of the rounded line amounts."""
    sums = {name: sum((getattr(line, name) for line in lines), ZERO) for name in _TOTAL_FIELDS}
    selling = sums["selling_price"]
    margin_pct = quantize(sums["margin_total"] / selling * Decimal("100")) if selling > 0 else ZERO
    return TarificationComputedLine(label=TOTAL_LABEL, margin_pct=margin_pct, **sums)


def compute_supplements(
    supplements: Sequence[CotationSupplement], pax: PaxComposition,
) -> List[ComputedSupplement]:
    """Supplement amount = price x travellers when per person, else the price."""
    computed = []
    for supplement in supplements:
        quantity = pax.total if supplement.per_person else 1
        computed.append(ComputedSupplement(
            label=supplement.label,
            price=quantize(supplement.price),
            per_person=supplement.per_person,
            quantity=quantity,
            amount=quantize(supplement.price * quantity),
        ))
    return computed


def compute_tarification(
    data: TarificationData,
    pax_results: Sequence[CotationPaxResult],
    settings: Optional[PricingSettings] = None,
    pax: Optional[PaxComposition] = None,
    supplements: Optional[Sequence[CotationSupplement]] = None,
    currency: str = "EUR",
    room_demand: Optional[Sequence[RoomDemandEntry]] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> TarificationComputeResult:
    """
    Compute the margin analysis of a tarification.

    Args:
        data: the active mode and its entries
        pax_results: cost basis, one item per pax configuration
        settings: commission and VAT settings of the trip
        pax: traveller composition (for per-person supplements)
        supplements: optional add-ons

    Raises:
        MissingCostBasisError: entries exist but there is no cost basis.
    """
    pax_results = list(pax_results or [])
    if data.entries and not pax_results:
        raise MissingCostBasisError()

    pax = pax or PaxComposition()
    calculator = MarginCalculator(settings)

    lines = _MODE_HANDLERS[type(data)](data, pax_results, calculator)
    totals = compute_totals(lines)
    computed_supplements = compute_supplements(supplements or [], pax)
    supplements_total = sum((s.amount for s in computed_supplements), ZERO)

    logger.debug(
        "Computed %s tarification: %d entries -> %d lines, total %s",
        data.mode, len(data.entries), len(lines), totals.selling_price,
    )

    return TarificationComputeResult(
        mode=data.mode,
        currency=currency,
        lines=lines,
        totals=totals,
        supplements=computed_supplements,
        supplements_total=supplements_total,
        grand_total=totals.selling_price + supplements_total,
        pax=pax,
        room_demand=list(room_demand or []),
        start_date=start_date,
        end_date=end_date,
    )
