"""
Tariff validity: a saved tarification may carry an expiry date.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

EXPIRY_WARNING_DAYS = 14


@dataclass
class ValidityStatus:
    status: str  # none, valid, expired
    validity_date: Optional[date] = None
    days_remaining: Optional[int] = None

    @property
    def expiring_soon(self) -> bool:
        return self.status == "valid" and self.days_remaining <= EXPIRY_WARNING_DAYS

    @property
    def label(self) -> Optional[str]:
        if self.status == "expired":
            return "Tarif expiré"
        if self.status == "valid":
            return f"Tarif valide encore {self.days_remaining} jour{'s' if self.days_remaining > 1 else ''}"
        return None


def validity_status(validity_date: Optional[date], today: Optional[date] = None) -> ValidityStatus:
    """The tariff is valid through its validity date, inclusive."""
    if validity_date is None:
        return ValidityStatus(status="none")
    today = today or date.today()
    days_remaining = (validity_date - today).days
    if days_remaining < 0:
        return ValidityStatus(status="expired", validity_date=validity_date, days_remaining=days_remaining)
    return ValidityStatus(status="valid", validity_date=validity_date, days_remaining=days_remaining)
