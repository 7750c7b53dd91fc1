"""
Trip model - pricing settings and dates used by the tarification.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import DECIMAL, JSON, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tarification.models.base import TenantBase


class Trip(TenantBase):
    """
    A trip/circuit. Only the fields the pricing stage reads are mapped here.
    """

    __tablename__ = "trips"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Dates
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Pricing settings
    default_currency: Mapped[str] = mapped_column(String(3), default="EUR")
    primary_commission_pct: Mapped[Decimal] = mapped_column(DECIMAL(5, 2), default=Decimal("0.00"))
    primary_commission_label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    secondary_commission_pct: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(5, 2), nullable=True)
    secondary_commission_label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # VAT: "on_margin" (travel agency regime) or "on_selling_price"
    vat_pct: Mapped[Decimal] = mapped_column(DECIMAL(5, 2), default=Decimal("0.00"))
    vat_calculation_mode: Mapped[str] = mapped_column(String(20), default="on_margin")

    # Room demand for the whole trip, e.g. [{"bed_type": "DBL", "qty": 2}]
    room_demand_json: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    @property
    def calculated_end_date(self) -> Optional[date]:
        """The explicit end date, else start date plus duration."""
        if self.end_date is not None:
            return self.end_date
        if self.start_date and self.duration_days:
            return self.start_date + timedelta(days=self.duration_days - 1)
        return None

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, name='{self.name}')>"
