"""
Payment terms rules: presets, validation, due dates and amount schedules.

An installment is due ``days_offset`` days after (positive) or before
(negative) its reference date. Installments are kept in list order; the
order only drives labels ("1re échéance") and the chronology check.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, List, Optional, Sequence

from tarification.models.payment_terms import PaymentDueDateReference
from tarification.schemas.payment_terms import (
    PaymentInstallment,
    PaymentTermsPreset,
    ResolvedInstallment,
    TripDates,
)
from tarification.services.margin_calculator import from_cents, to_cents

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

REFERENCE_LABELS = {
    PaymentDueDateReference.CONFIRMATION: "confirmation",
    PaymentDueDateReference.DEPARTURE: "départ",
    PaymentDueDateReference.SERVICE: "prestation",
    PaymentDueDateReference.RETURN: "retour",
    PaymentDueDateReference.INVOICE: "facture",
    PaymentDueDateReference.FIXED_DATE: "date fixe",
}

_AT_REFERENCE = {
    PaymentDueDateReference.CONFIRMATION: "à la confirmation",
    PaymentDueDateReference.DEPARTURE: "au départ",
    PaymentDueDateReference.SERVICE: "à la prestation",
    PaymentDueDateReference.RETURN: "au retour",
    PaymentDueDateReference.INVOICE: "à la facture",
}

_REFERENCE_DATE_FIELDS = {
    PaymentDueDateReference.CONFIRMATION: "confirmation_date",
    PaymentDueDateReference.DEPARTURE: "departure_date",
    PaymentDueDateReference.SERVICE: "service_date",
    PaymentDueDateReference.RETURN: "return_date",
    PaymentDueDateReference.INVOICE: "invoice_date",
}


def _inst(percentage, reference, days_offset, label) -> PaymentInstallment:
    return PaymentInstallment(percentage=percentage, reference=reference, days_offset=days_offset, label=label)


PAYMENT_TERMS_PRESETS: Dict[str, PaymentTermsPreset] = {
    "30_70_departure": PaymentTermsPreset(
        key="30_70_departure",
        name="30% confirmation / 70% J-14",
        description="Acompte 30% à la confirmation, solde 14 jours avant départ",
        installments=[
            _inst(30, "confirmation", 0, "Acompte"),
            _inst(70, "departure", -14, "Solde"),
        ],
    ),
    "50_50_departure": PaymentTermsPreset(
        key="50_50_departure",
        name="50% confirmation / 50% J-30",
        description="Moitié à la confirmation, moitié 30 jours avant départ",
        installments=[
            _inst(50, "confirmation", 0, "Premier versement"),
            _inst(50, "departure", -30, "Second versement"),
        ],
    ),
    "100_departure_30": PaymentTermsPreset(
        key="100_departure_30",
        name="100% à J-30",
        description="Paiement intégral 30 jours avant le départ",
        installments=[_inst(100, "departure", -30, "Paiement intégral")],
    ),
    "100_confirmation": PaymentTermsPreset(
        key="100_confirmation",
        name="100% à la confirmation",
        description="Paiement intégral à la confirmation",
        installments=[_inst(100, "confirmation", 0, "Paiement intégral")],
    ),
    "50_50_post_service": PaymentTermsPreset(
        key="50_50_post_service",
        name="50% réservation / 50% après service",
        description="Moitié à la réservation, moitié 15 jours après la prestation",
        installments=[
            _inst(50, "confirmation", 0, "Acompte"),
            _inst(50, "service", 15, "Solde post-service"),
        ],
    ),
    "net_30": PaymentTermsPreset(
        key="net_30",
        name="Net 30 après facture",
        description="Paiement intégral 30 jours après réception de la facture",
        installments=[_inst(100, "invoice", 30, "Paiement à 30 jours")],
    ),
}


class PaymentTermsValidationError(ValueError):
    """Installments that cannot be saved."""

    def __init__(
        self,
        message: str,
        total: Optional[Decimal] = None,
        delta: Optional[Decimal] = None,
        index: Optional[int] = None,
    ):
        self.message = message
        self.total = total
        # Percentage still needed to reach 100 (negative when over)
        self.delta = delta
        self.index = index
        super().__init__(message)


def format_percentage(value: Decimal) -> str:
    """Decimal("30.00") -> "30", Decimal("33.5") -> "33.5"."""
    value = Decimal(value)
    if value == value.to_integral_value():
        return str(value.to_integral_value())
    return format(value.normalize(), "f")


def total_percentage(installments: Sequence[PaymentInstallment]) -> Decimal:
    return sum((Decimal(i.percentage) for i in installments), Decimal("0"))


def validate_installments(installments: Sequence[PaymentInstallment]) -> None:
    """
    Check that installments can be saved.

    Raises PaymentTermsValidationError when the list is empty, a percentage
    is outside (0, 100], a fixed date is missing or the sum is not exactly 100.
    """
    if not installments:
        raise PaymentTermsValidationError("Au moins une échéance est requise")

    for index, installment in enumerate(installments):
        if installment.percentage <= 0 or installment.percentage > HUNDRED:
            raise PaymentTermsValidationError(
                f"Échéance {index + 1} : chaque pourcentage doit être entre 0% (exclu) et 100%",
                index=index,
            )
        if installment.reference == PaymentDueDateReference.FIXED_DATE and installment.fixed_date is None:
            raise PaymentTermsValidationError(
                f"Échéance {index + 1} : une date est requise pour une échéance à date fixe",
                index=index,
            )

    total = total_percentage(installments)
    if total != HUNDRED:
        delta = HUNDRED - total
        if delta > 0:
            detail = f"il manque {format_percentage(delta)}%"
        else:
            detail = f"dépassement de {format_percentage(-delta)}%"
        raise PaymentTermsValidationError(
            f"Le total des pourcentages doit être 100% (actuellement {format_percentage(total)}%, {detail})",
            total=total,
            delta=delta,
        )


def ordinal_label(index: int) -> str:
    """0 -> '1re échéance', 1 -> '2e échéance'."""
    return "1re échéance" if index == 0 else f"{index + 1}e échéance"


def format_installment(installment: PaymentInstallment) -> str:
    """Human label, e.g. '30% à la confirmation' or '70% 14j avant départ'."""
    percentage = format_percentage(installment.percentage)

    if installment.reference == PaymentDueDateReference.FIXED_DATE:
        if installment.fixed_date is None:
            return f"{percentage}% à date fixe"
        return f"{percentage}% le {installment.fixed_date.strftime('%d/%m/%Y')}"

    ref_label = REFERENCE_LABELS[installment.reference]
    if installment.days_offset == 0:
        return f"{percentage}% {_AT_REFERENCE[installment.reference]}"
    if installment.days_offset < 0:
        return f"{percentage}% {abs(installment.days_offset)}j avant {ref_label}"
    return f"{percentage}% {installment.days_offset}j après {ref_label}"


def resolve_due_date(installment: PaymentInstallment, dates: TripDates) -> Optional[date]:
    """Due date of one installment, None when its reference date is not known yet."""
    if installment.reference == PaymentDueDateReference.FIXED_DATE:
        return installment.fixed_date

    reference_date = getattr(dates, _REFERENCE_DATE_FIELDS[installment.reference])
    if reference_date is None:
        return None
    return reference_date + timedelta(days=installment.days_offset)


def resolve_due_dates(
    installments: Sequence[PaymentInstallment],
    dates: Optional[TripDates] = None,
) -> List[ResolvedInstallment]:
    """One resolved installment per installment, in list order."""
    dates = dates or TripDates()
    return [
        ResolvedInstallment(
            index=index,
            ordinal_label=ordinal_label(index),
            label=installment.label,
            description=format_installment(installment),
            percentage=installment.percentage,
            reference=installment.reference,
            days_offset=installment.days_offset,
            due_date=resolve_due_date(installment, dates),
        )
        for index, installment in enumerate(installments)
    ]


def check_chronology(resolved: Sequence[ResolvedInstallment]) -> List[str]:
    """
    Warnings for installments due before an earlier one in the list.

    Installments without a known due date are skipped.
    """
    warnings = []
    previous: Optional[ResolvedInstallment] = None
    for item in resolved:
        if item.due_date is None:
            continue
        if previous is not None and item.due_date < previous.due_date:
            warnings.append(
                f"{item.ordinal_label} ({item.due_date.isoformat()}) est due avant "
                f"la {previous.ordinal_label} ({previous.due_date.isoformat()})"
            )
        previous = item
    return warnings


def build_schedule(
    installments: Sequence[PaymentInstallment],
    total: Decimal,
    dates: Optional[TripDates] = None,
) -> List[ResolvedInstallment]:
    """
    Split ``total`` across installments.

    Each share is floored to the cent and the cents left over go, one each,
    to the largest fractional parts (earliest first on a tie). The amounts
    add up to the total and none is negative.
    """
    validate_installments(installments)

    resolved = resolve_due_dates(installments, dates)
    total_cents = to_cents(total)
    shares = [total_cents * Decimal(item.percentage) / HUNDRED for item in resolved]
    cents = [int(share.to_integral_value(rounding=ROUND_FLOOR)) for share in shares]

    leftover = total_cents - sum(cents)
    by_remainder = sorted(range(len(shares)), key=lambda i: (cents[i] - shares[i], i))
    for position in by_remainder[:leftover]:
        cents[position] += 1

    for item, amount in zip(resolved, cents):
        item.amount = from_cents(amount)

    logger.debug("Built schedule of %d installments for %s", len(resolved), total)
    return resolved
