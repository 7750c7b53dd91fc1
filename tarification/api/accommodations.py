"""
Accommodations API - seasons, rates, rate lookup and early bird discounts.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from tarification.api.deps import CurrentTenant, DbSession, error_detail
from tarification.config import get_settings
from tarification.models.accommodation import (
    Accommodation,
    AccommodationSeason,
    EarlyBirdDiscount,
    RoomRate,
)
from tarification.schemas.accommodation import (
    AccommodationSeasonResponse,
    EarlyBirdAlertResponse,
    EarlyBirdApplicableResponse,
    EarlyBirdDiscountResponse,
    RateLookupRequest,
    RateLookupResponse,
    RoomRateResponse,
)
from tarification.services.early_bird import (
    applicable_early_bird,
    early_bird_alerts,
    total_discount_percent,
)
from tarification.services.season_matcher import (
    NoRateError,
    OutOfSeasonError,
    format_rate,
    match_rate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accommodations", tags=["Accommodations"])


async def _ensure_accommodation(db, tenant, accommodation_id: int) -> Accommodation:
    result = await db.execute(
        select(Accommodation).where(
            Accommodation.id == accommodation_id, Accommodation.tenant_id == tenant.id
        )
    )
    accommodation = result.scalar_one_or_none()
    if not accommodation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("accommodation_not_found", "Accommodation not found"),
        )
    return accommodation


async def _load_seasons(db, accommodation_id: int) -> List[AccommodationSeason]:
    result = await db.execute(
        select(AccommodationSeason)
        .where(AccommodationSeason.accommodation_id == accommodation_id)
        .order_by(AccommodationSeason.priority.desc(), AccommodationSeason.id)
    )
    return list(result.scalars().all())


async def _load_rates(db, accommodation_id: int, room_category_id: Optional[int] = None) -> List[RoomRate]:
    query = select(RoomRate).where(RoomRate.accommodation_id == accommodation_id)
    if room_category_id is not None:
        query = query.where(RoomRate.room_category_id == room_category_id)
    result = await db.execute(query.order_by(RoomRate.room_category_id, RoomRate.id))
    return list(result.scalars().all())


async def _load_early_bird(db, accommodation_id: int) -> List[EarlyBirdDiscount]:
    result = await db.execute(
        select(EarlyBirdDiscount)
        .where(EarlyBirdDiscount.accommodation_id == accommodation_id)
        .order_by(EarlyBirdDiscount.days_in_advance.desc(), EarlyBirdDiscount.id)
    )
    return list(result.scalars().all())


# ============================================================================
# Seasons & rates
# ============================================================================

@router.get("/{accommodation_id}/seasons", response_model=List[AccommodationSeasonResponse])
async def list_seasons(
    accommodation_id: int,
    db: DbSession,
    tenant: CurrentTenant,
):
    """List seasons for an accommodation."""
    await _ensure_accommodation(db, tenant, accommodation_id)
    return await _load_seasons(db, accommodation_id)


@router.get("/{accommodation_id}/rates", response_model=List[RoomRateResponse])
async def list_rates(
    accommodation_id: int,
    db: DbSession,
    tenant: CurrentTenant,
    room_category_id: Optional[int] = Query(None, description="Filter by room category"),
):
    """List rates for an accommodation."""
    await _ensure_accommodation(db, tenant, accommodation_id)
    return await _load_rates(db, accommodation_id, room_category_id)


@router.post("/{accommodation_id}/rate-lookup", response_model=RateLookupResponse)
async def lookup_rate(
    accommodation_id: int,
    data: RateLookupRequest,
    db: DbSession,
    tenant: CurrentTenant,
):
    """
    Resolve the season of a date and the matching rate.

    409 with code ``out_of_season`` when no season covers the date (the next
    fixed season is returned when known), ``no_rate`` when the season has no
    rate for the room, bed type and meal plan.
    """
    await _ensure_accommodation(db, tenant, accommodation_id)
    settings = get_settings()

    seasons = await _load_seasons(db, accommodation_id)
    rates = await _load_rates(db, accommodation_id, data.room_category_id)

    try:
        match = match_rate(
            rates,
            seasons,
            data.on_date,
            data.room_category_id,
            data.bed_type,
            data.meal_plan or settings.default_meal_plan,
            default_meal_plan=settings.default_meal_plan,
        )
    except OutOfSeasonError as e:
        next_season = (
            AccommodationSeasonResponse.model_validate(e.next_season).model_dump(mode="json")
            if e.next_season is not None else None
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_detail("out_of_season", e.message, next_season=next_season),
        )
    except NoRateError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_detail(
                "no_rate", e.message,
                season_id=e.season_id,
                available_meal_plans=e.available_meal_plans,
            ),
        )

    return RateLookupResponse(
        season=AccommodationSeasonResponse.model_validate(match.season) if match.season is not None else None,
        rate=RoomRateResponse.model_validate(match.rate),
        fallback=match.fallback,
        formatted=format_rate(match.rate),
    )


# ============================================================================
# Early bird
# ============================================================================

@router.get("/{accommodation_id}/early-bird", response_model=List[EarlyBirdDiscountResponse])
async def list_early_bird_discounts(
    accommodation_id: int,
    db: DbSession,
    tenant: CurrentTenant,
):
    await _ensure_accommodation(db, tenant, accommodation_id)
    return await _load_early_bird(db, accommodation_id)


@router.get("/{accommodation_id}/early-bird/applicable", response_model=EarlyBirdApplicableResponse)
async def get_applicable_early_bird(
    accommodation_id: int,
    db: DbSession,
    tenant: CurrentTenant,
    booking_date: date = Query(..., description="Date the booking is made"),
    departure_date: date = Query(..., description="Departure date"),
    season_id: Optional[int] = Query(None, description="Season of the departure"),
):
    """Discounts that apply to a booking, best first."""
    await _ensure_accommodation(db, tenant, accommodation_id)
    discounts = applicable_early_bird(
        await _load_early_bird(db, accommodation_id),
        booking_date,
        departure_date,
        season_id,
    )
    return EarlyBirdApplicableResponse(
        booking_date=booking_date,
        departure_date=departure_date,
        season_id=season_id,
        discounts=[EarlyBirdDiscountResponse.model_validate(d) for d in discounts],
        total_discount_percent=total_discount_percent(discounts),
    )


@router.get("/{accommodation_id}/early-bird/alerts", response_model=List[EarlyBirdAlertResponse])
async def get_early_bird_alerts(
    accommodation_id: int,
    db: DbSession,
    tenant: CurrentTenant,
    departure_date: date = Query(..., description="Departure date"),
    at_risk_only: bool = Query(False, description="Only discounts about to be lost"),
):
    """Booking deadlines of the discounts for a departure, most urgent first."""
    await _ensure_accommodation(db, tenant, accommodation_id)
    settings = get_settings()

    alerts = early_bird_alerts(
        departure_date,
        await _load_early_bird(db, accommodation_id),
        risk_margin_days=settings.early_bird_risk_margin_days,
    )
    if at_risk_only:
        alerts = [a for a in alerts if a.is_at_risk]

    return [
        EarlyBirdAlertResponse(
            type=a.type,
            discount_id=a.discount.id,
            discount_name=a.discount.name,
            discount_percent=a.discount.discount_percent,
            days_in_advance=a.discount.days_in_advance,
            days_remaining=a.days_remaining,
            margin_days=a.margin_days,
        )
        for a in alerts
    ]
