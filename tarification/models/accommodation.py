"""
Accommodation pricing data read by the season matcher and the early bird
rules: room categories, seasons, room rates and early booking discounts.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, Date, ForeignKey, Integer, JSON, Numeric, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from tarification.models.base import Base, BigIntId, TenantBase


class SeasonType:
    FIXED = "fixed"          # YYYY-MM-DD bounds
    RECURRING = "recurring"  # MM-DD bounds, every year
    WEEKDAY = "weekday"      # days of week


class MealPlan:
    RO = "RO"  # Room Only
    BB = "BB"  # Bed & Breakfast
    HB = "HB"  # Half Board
    FB = "FB"  # Full Board
    AI = "AI"  # All Inclusive


class Accommodation(TenantBase):
    __tablename__ = "accommodations"

    supplier_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class _AccommodationChild(Base):
    """A row that belongs to one accommodation and goes away with it."""

    __abstract__ = True

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    @declared_attr
    def accommodation_id(cls) -> Mapped[int]:
        return mapped_column(
            BigIntId, ForeignKey("accommodations.id", ondelete="CASCADE"), nullable=False, index=True
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id}, accommodation_id={self.accommodation_id})>"


class RoomCategory(_AccommodationChild):
    """Standard, Deluxe, Suite... with the bed types it can be sold as."""

    __tablename__ = "room_categories"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    available_bed_types: Mapped[List[str]] = mapped_column(JSON, default=lambda: ["DBL"])
    sort_order: Mapped[int] = mapped_column(Integer, default=0)


class AccommodationSeason(_AccommodationChild):
    """
    A pricing period. The bounds are stored as text because their format
    depends on ``season_type``: ``2026-11-01`` for a fixed season, ``11-01``
    for a recurring one. Weekday seasons use ``weekdays`` (0 = Sunday).
    """

    __tablename__ = "accommodation_seasons"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    season_type: Mapped[str] = mapped_column(String(20), default=SeasonType.FIXED)

    start_date: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    end_date: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    weekdays: Mapped[Optional[List[int]]] = mapped_column(JSON, nullable=True)
    # Informative label: "2026" or "2026-2027"
    year: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Overlapping seasons: the highest priority applies
    priority: Mapped[int] = mapped_column(Integer, default=1)
    season_level: Mapped[str] = mapped_column(String(10), default="high")  # low, high, peak


class RoomRate(_AccommodationChild):
    """Cost of a room category for a bed type and meal plan; no season = default rate."""

    __tablename__ = "room_rates"

    room_category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("room_categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    season_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("accommodation_seasons.id", ondelete="SET NULL"), nullable=True
    )

    bed_type: Mapped[str] = mapped_column(String(10), nullable=False, default="DBL")
    meal_plan: Mapped[str] = mapped_column(String(5), default=MealPlan.BB)
    rate_type: Mapped[str] = mapped_column(String(30), default="per_night")  # or per_person_per_night

    cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR")
    single_supplement: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)


class EarlyBirdDiscount(_AccommodationChild):
    """
    Percentage off when the booking is made ``days_in_advance`` days or more
    before departure, e.g. 15% at 60 days.

    ``season_ids`` restricts the discount to some seasons,
    ``excluded_season_ids`` rules some out. When several discounts apply the
    highest priority wins; cumulative ones stack on it.
    """

    __tablename__ = "early_bird_discounts"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    days_in_advance: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    # Departure window
    valid_from: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    valid_to: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    season_ids: Mapped[Optional[List[int]]] = mapped_column(JSON, nullable=True)
    excluded_season_ids: Mapped[Optional[List[int]]] = mapped_column(JSON, nullable=True)

    is_cumulative: Mapped[bool] = mapped_column(Boolean, default=False)
    priority: Mapped[int] = mapped_column(Integer, default=1)
