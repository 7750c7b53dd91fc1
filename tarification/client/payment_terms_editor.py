"""
Draft editing of payment terms before they are saved.

The draft may hold invalid installments (a new one starts at 0%); it is
validated before anything is sent, so invalid terms never reach the API.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from tarification.client.api_client import ApiClient, ApiError
from tarification.schemas.payment_terms import (
    PaymentInstallment,
    PaymentTermsResponse,
    ResolvedInstallment,
    TripDates,
)
from tarification.services.payment_terms import (
    HUNDRED,
    PAYMENT_TERMS_PRESETS,
    PaymentTermsValidationError,
    check_chronology,
    ordinal_label,
    resolve_due_dates,
    total_percentage,
    validate_installments,
)

logger = logging.getLogger(__name__)


class PaymentTermsDraft:
    """Editable copy of payment terms; ``id`` is None until first saved."""

    def __init__(
        self,
        name: str = "",
        installments: Optional[List[PaymentInstallment]] = None,
        description: Optional[str] = None,
        supplier_id: Optional[int] = None,
        is_default: bool = False,
        is_active: bool = True,
        id: Optional[int] = None,
    ):
        self.id = id
        self.name = name
        self.description = description
        self.supplier_id = supplier_id
        self.is_default = is_default
        self.is_active = is_active
        self.installments: List[PaymentInstallment] = list(installments or [])
        self.error: Optional[Exception] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "PaymentTermsDraft":
        terms = PaymentTermsResponse.model_validate(data)
        return cls(
            id=terms.id,
            name=terms.name,
            description=terms.description,
            supplier_id=terms.supplier_id,
            is_default=terms.is_default,
            is_active=terms.is_active,
            installments=terms.installments,
        )

    @classmethod
    async def load(cls, api: ApiClient, payment_terms_id: int) -> "PaymentTermsDraft":
        return cls.from_response(await api.get(f"/payment-terms/{payment_terms_id}"))

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def add(self, **fields: Any) -> int:
        """Append an installment, 0% at confirmation unless given; returns its index."""
        fields.setdefault("percentage", Decimal("0"))
        self.installments.append(PaymentInstallment.model_validate(fields))
        return len(self.installments) - 1

    def update(self, index: int, **changes: Any) -> None:
        current = self.installments[index].model_dump(exclude_none=True)
        self.installments[index] = PaymentInstallment.model_validate({**current, **changes})

    def remove(self, index: int) -> None:
        del self.installments[index]

    def move(self, index: int, new_index: int) -> None:
        """Move an installment; order drives its ordinal label."""
        installment = self.installments.pop(index)
        self.installments.insert(new_index, installment)

    def apply_preset(self, key: str) -> None:
        """Replace the installments with a preset's (KeyError on an unknown key)."""
        preset = PAYMENT_TERMS_PRESETS[key]
        self.installments = [inst.model_copy() for inst in preset.installments]
        if not self.name:
            self.name = preset.name
        if self.description is None:
            self.description = preset.description

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def total(self) -> Decimal:
        return total_percentage(self.installments)

    @property
    def remaining(self) -> Decimal:
        """Percentage still to allocate (negative when over 100)."""
        return HUNDRED - self.total

    @property
    def labels(self) -> List[str]:
        return [ordinal_label(index) for index in range(len(self.installments))]

    def validate(self) -> Optional[PaymentTermsValidationError]:
        """The first problem preventing a save, or None."""
        if not self.name.strip():
            return PaymentTermsValidationError("Le nom est requis")
        try:
            validate_installments(self.installments)
        except PaymentTermsValidationError as e:
            return e
        return None

    @property
    def is_valid(self) -> bool:
        return self.validate() is None

    def resolve(self, dates: Optional[TripDates] = None) -> List[ResolvedInstallment]:
        return resolve_due_dates(self.installments, dates)

    def warnings(self, dates: Optional[TripDates] = None) -> List[str]:
        return check_chronology(self.resolve(dates))

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "name": self.name,
            "description": self.description,
            "installments": [inst.model_dump(mode="json", exclude_none=True) for inst in self.installments],
            "is_default": self.is_default,
            "is_active": self.is_active,
        }
        if self.id is None:
            payload["supplier_id"] = self.supplier_id
        return payload

    async def save(self, api: ApiClient) -> bool:
        """
        Create (POST) or update (PATCH) the terms.

        Returns False with ``error`` set when the draft is invalid (nothing
        is sent) or the request failed; the draft is kept as is.
        """
        self.error = self.validate()
        if self.error is not None:
            return False

        try:
            if self.id is None:
                body = await api.post("/payment-terms", json=self.to_payload())
            else:
                body = await api.patch(f"/payment-terms/{self.id}", json=self.to_payload())
        except ApiError as e:
            self.error = e
            return False

        saved = PaymentTermsResponse.model_validate(body)
        self.id = saved.id
        self.is_default = saved.is_default
        logger.info("Saved payment terms %s '%s'", saved.id, saved.name)
        return True
