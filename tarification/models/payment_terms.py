"""
Payment terms of a supplier: how a total is split into installments and
when each one is due.
"""

from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tarification.models.base import TenantBase


class PaymentDueDateReference(str, Enum):
    """Date an installment's ``days_offset`` counts from."""
    CONFIRMATION = "confirmation"
    DEPARTURE = "departure"
    SERVICE = "service"
    RETURN = "return"
    INVOICE = "invoice"
    FIXED_DATE = "fixed_date"  # the installment carries its own date


class PaymentTerms(TenantBase):
    """
    A named installment schedule, e.g. "30% à la confirmation, 70% 14j avant
    départ". Without a supplier it is a template for the whole tenant.

    ``installments`` holds the serialized PaymentInstallment list in display
    order, e.g. ``[{"percentage": "30", "reference": "confirmation",
    "days_offset": 0, "label": "Acompte"}, ...]``.
    """

    __tablename__ = "payment_terms"

    supplier_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    installments: Mapped[List[dict]] = mapped_column(JSON, nullable=False, default=list)

    # At most one default per supplier
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
