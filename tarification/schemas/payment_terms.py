"""
Payment terms schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tarification.models.payment_terms import PaymentDueDateReference

# Older reference names still found in stored data
_LEGACY_REFERENCES = {
    "booking_date": PaymentDueDateReference.CONFIRMATION.value,
    "departure_date": PaymentDueDateReference.DEPARTURE.value,
    "days_before_departure": PaymentDueDateReference.DEPARTURE.value,
}


class PaymentInstallment(BaseModel):
    """A single payment installment."""
    percentage: Decimal = Field(..., ge=0, le=100, description="Percentage of total amount")
    reference: PaymentDueDateReference = Field(
        PaymentDueDateReference.CONFIRMATION,
        description="Reference point: confirmation, departure, service, return, invoice, fixed_date",
    )
    days_offset: int = Field(0, description="Days before (-) or after (+) reference date")
    fixed_date: Optional[date] = Field(None, description="Due date when reference is fixed_date")
    label: Optional[str] = Field(None, description="Label for this installment (e.g., 'Acompte', 'Solde')")

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_reference(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "reference" not in data and "due_date_reference" in data:
            data["reference"] = data.pop("due_date_reference")
        legacy = data.get("reference")
        if legacy in _LEGACY_REFERENCES:
            data["reference"] = _LEGACY_REFERENCES[legacy]
            if legacy == "days_before_departure":
                data["days_offset"] = -abs(int(data.get("days_offset") or data.get("days_before") or 0))
        return data


class PaymentTermsCreate(BaseModel):
    """Create payment terms. Installments must add up to 100%."""
    supplier_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    installments: List[PaymentInstallment] = Field(default_factory=list)
    is_default: bool = False
    is_active: bool = True

    @model_validator(mode="after")
    def _check_installments(self):
        from tarification.services.payment_terms import validate_installments

        validate_installments(self.installments)
        return self


class PaymentTermsUpdate(BaseModel):
    """Update payment terms."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    installments: Optional[List[PaymentInstallment]] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _check_installments(self):
        from tarification.services.payment_terms import validate_installments

        if self.installments is not None:
            validate_installments(self.installments)
        return self


class PaymentTermsResponse(BaseModel):
    """Payment terms response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: str
    supplier_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    installments: List[PaymentInstallment]
    is_default: bool
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("tenant_id", mode="before")
    @classmethod
    def _tenant_id_to_str(cls, value):
        return str(value) if value is not None else value


class PaymentTermsPreset(BaseModel):
    key: str
    name: str
    description: str
    installments: List[PaymentInstallment]


class TripDates(BaseModel):
    """Known reference dates. Unknown dates leave installments 'to be confirmed'."""
    confirmation_date: Optional[date] = None
    departure_date: Optional[date] = None
    service_date: Optional[date] = None
    return_date: Optional[date] = None
    invoice_date: Optional[date] = None


class ResolvedInstallment(BaseModel):
    """An installment with its due date (None = date to be confirmed)."""
    index: int
    ordinal_label: str
    label: Optional[str] = None
    description: str
    percentage: Decimal
    reference: PaymentDueDateReference
    days_offset: int = 0
    due_date: Optional[date] = None
    amount: Optional[Decimal] = None

    @property
    def is_confirmed(self) -> bool:
        return self.due_date is not None


class ScheduleRequest(BaseModel):
    total: Decimal = Field(..., ge=0)
    currency: str = "EUR"
    dates: TripDates = Field(default_factory=TripDates)


class ScheduleResponse(BaseModel):
    payment_terms_id: Optional[int] = None
    total: Decimal
    currency: str = "EUR"
    installments: List[ResolvedInstallment]
    warnings: List[str] = Field(default_factory=list)
