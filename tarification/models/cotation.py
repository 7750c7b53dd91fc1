"""
TripCotation model - named pricing scenarios of a trip.

A cotation stores the *inputs* of the tarification:
- results_json: cost basis per pax configuration, produced by the quotation stage
- tarification_json: the pricing mode and its entries, as saved by the user
- supplements_json: optional client-facing add-ons
- room_demand_override_json: optional room demand replacing the trip's one

The computed tarification (margins, totals) is never stored: it is
recomputed from these inputs on demand.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from tarification.models.base import BigIntId, TenantBase


class TripCotation(TenantBase):
    """
    A named quotation profile for a trip.

    - results_json: {"currency": "EUR", "pax_configs": [{"label": "2 pax", "total_pax": 4,
      "paying_pax": 2, "total_cost": 1800.0, ...}, ...]}
    - tarification_json: {"mode": "range_web", "entries": [...], "validity_date": "2026-12-31"}
    - supplements_json: [{"label": "Chambre single", "price": 120, "per_person": true}]
    - room_demand_override_json: [{"bed_type": "FAM", "qty": 1}, {"bed_type": "SGL", "qty": 1}]
    """

    __tablename__ = "trip_cotations"

    trip_id: Mapped[int] = mapped_column(
        BigIntId,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Identity
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    room_demand_override_json: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Cost basis (stored after the quotation stage)
    results_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    calculated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Tarification entries (source of truth for pricing)
    tarification_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    supplements_json: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Status: draft, calculated
    status: Mapped[str] = mapped_column(String(20), default="draft")

    def __repr__(self) -> str:
        return f"<TripCotation(id={self.id}, name='{self.name}', status='{self.status}')>"
