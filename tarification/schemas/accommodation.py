"""
Accommodation schemas: seasons, rates and early bird discounts (read-only).
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AccommodationSeasonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    accommodation_id: int
    name: str
    code: Optional[str] = None
    season_type: str = "fixed"
    season_level: str = "high"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    weekdays: Optional[List[int]] = None
    year: Optional[str] = None
    priority: int = 1
    is_active: bool = True


class RoomRateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    accommodation_id: int
    room_category_id: int
    season_id: Optional[int] = None
    bed_type: str
    meal_plan: str
    rate_type: str = "per_night"
    cost: Decimal
    currency: str = "EUR"
    single_supplement: Optional[Decimal] = None
    is_active: bool = True


class EarlyBirdDiscountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    accommodation_id: int
    name: str
    days_in_advance: int
    discount_percent: Decimal
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    season_ids: Optional[List[int]] = None
    excluded_season_ids: Optional[List[int]] = None
    is_cumulative: bool = False
    priority: int = 1
    is_active: bool = True


class RateLookupRequest(BaseModel):
    """Find the rate of a room for a date."""
    on_date: date
    room_category_id: int
    bed_type: str = "DBL"
    meal_plan: Optional[str] = None


class RateLookupResponse(BaseModel):
    season: Optional[AccommodationSeasonResponse] = None
    rate: RoomRateResponse
    fallback: Optional[str] = None
    formatted: Optional[str] = None


class EarlyBirdApplicableResponse(BaseModel):
    booking_date: date
    departure_date: date
    season_id: Optional[int] = None
    discounts: List[EarlyBirdDiscountResponse] = Field(default_factory=list)
    total_discount_percent: Decimal = Decimal("0")


class EarlyBirdAlertResponse(BaseModel):
    type: str  # expired, warning_15, warning_30, active
    discount_id: Optional[int] = None
    discount_name: str
    discount_percent: Decimal
    days_in_advance: int
    days_remaining: int
    margin_days: int
