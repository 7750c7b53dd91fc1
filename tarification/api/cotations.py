"""
Cotations API - tarification entries, supplements and on-demand compute.

A cotation is a named pricing scenario (e.g., "Budget", "Classique", "Deluxe").
Only its inputs are stored: cost basis (results), tarification entries,
supplements and room demand override. The computed tarification is returned
by the compute endpoint and never saved.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select

from tarification.api.deps import CurrentTenant, DbSession, error_detail
from tarification.models.cotation import TripCotation
from tarification.models.trip import Trip
from tarification.schemas.room_demand import RoomDemandEntry
from tarification.schemas.tarification import (
    CotationPaxResult,
    CotationSupplement,
    PricingSettings,
    TarificationComputeRequest,
    TarificationComputeResult,
    TarificationSave,
)
from tarification.services.room_demand import (
    RoomDemandError,
    dump_room_demand,
    ensure_unique_bed_types,
    parse_room_demand,
)
from tarification.services.tarification_engine import (
    MissingCostBasisError,
    compute_tarification,
    parse_pax_results,
)
from tarification.services.validity import validity_status

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class CotationUpdate(BaseModel):
    name: Optional[str] = None
    sort_order: Optional[int] = None
    room_demand_override: Optional[List[RoomDemandEntry]] = None
    supplements: Optional[List[CotationSupplement]] = None

    @field_validator("room_demand_override")
    @classmethod
    def _unique_bed_types(cls, value):
        if value is not None:
            ensure_unique_bed_types(value)
        return value


class CotationResultsUpdate(BaseModel):
    """Cost basis produced by the quotation stage."""
    currency: str = "EUR"
    pax_configs: List[CotationPaxResult] = Field(default_factory=list)


class CotationResponse(BaseModel):
    id: int
    trip_id: int
    name: str
    sort_order: int = 0
    status: str = "draft"
    results_json: Optional[dict] = None
    tarification_json: Optional[dict] = None
    room_demand_override: Optional[List[Dict[str, Any]]] = None
    supplements: List[Dict[str, Any]] = Field(default_factory=list)
    validity_status: str = "none"
    validity_days_remaining: Optional[int] = None
    calculated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _cotation_to_response(cotation: TripCotation) -> CotationResponse:
    saved = cotation.tarification_json or {}
    validity = validity_status(
        date.fromisoformat(saved["validity_date"]) if saved.get("validity_date") else None
    )
    return CotationResponse(
        id=cotation.id,
        trip_id=cotation.trip_id,
        name=cotation.name,
        sort_order=cotation.sort_order or 0,
        status=cotation.status or "draft",
        results_json=cotation.results_json,
        tarification_json=cotation.tarification_json,
        room_demand_override=cotation.room_demand_override_json,
        supplements=cotation.supplements_json or [],
        validity_status=validity.status,
        validity_days_remaining=validity.days_remaining,
        calculated_at=cotation.calculated_at,
        created_at=cotation.created_at,
        updated_at=cotation.updated_at,
    )


async def _get_cotation(db, tenant, cotation_id: int) -> TripCotation:
    cotation = await db.scalar(
        select(TripCotation).where(TripCotation.id == cotation_id, TripCotation.tenant_id == tenant.id)
    )
    if cotation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("cotation_not_found", "Cotation not found"),
        )
    return cotation


# ---------------------------------------------------------------------------
# CRUD endpoints
# ---------------------------------------------------------------------------

@router.get("/{cotation_id}", response_model=CotationResponse)
async def get_cotation(
    cotation_id: int,
    db: DbSession,
    tenant: CurrentTenant,
):
    """Get a cotation with its saved tarification entries."""
    cotation = await _get_cotation(db, tenant, cotation_id)
    return _cotation_to_response(cotation)


@router.patch("/{cotation_id}", response_model=CotationResponse)
async def update_cotation(
    cotation_id: int,
    data: CotationUpdate,
    db: DbSession,
    tenant: CurrentTenant,
):
    """Update a cotation: name, order, supplements, room demand override."""
    cotation = await _get_cotation(db, tenant, cotation_id)

    if data.name is not None:
        cotation.name = data.name
    if data.sort_order is not None:
        cotation.sort_order = data.sort_order
    if data.room_demand_override is not None:
        # Empty list clears the override
        cotation.room_demand_override_json = dump_room_demand(data.room_demand_override) or None
    if data.supplements is not None:
        cotation.supplements_json = [s.model_dump(mode="json") for s in data.supplements]

    await db.commit()
    await db.refresh(cotation)
    return _cotation_to_response(cotation)


@router.put("/{cotation_id}/results", response_model=CotationResponse)
async def store_cotation_results(
    cotation_id: int,
    data: CotationResultsUpdate,
    db: DbSession,
    tenant: CurrentTenant,
):
    """Store the cost basis (one result per pax configuration)."""
    cotation = await _get_cotation(db, tenant, cotation_id)

    cotation.results_json = data.model_dump(mode="json")
    cotation.calculated_at = datetime.now(timezone.utc)
    cotation.status = "calculated" if data.pax_configs else "draft"

    await db.commit()
    await db.refresh(cotation)
    logger.info("Stored %d pax results on cotation %s", len(data.pax_configs), cotation_id)
    return _cotation_to_response(cotation)


# ---------------------------------------------------------------------------
# Tarification endpoints
# ---------------------------------------------------------------------------

@router.patch("/{cotation_id}/tarification", response_model=CotationResponse)
async def save_tarification(
    cotation_id: int,
    data: TarificationSave,
    db: DbSession,
    tenant: CurrentTenant,
):
    """Store the mode and entries (never the computed result)."""
    cotation = await _get_cotation(db, tenant, cotation_id)

    cotation.tarification_json = data.tarification.model_dump(mode="json", exclude_none=True)
    await db.commit()
    await db.refresh(cotation)

    logger.info(
        "Saved %s tarification on cotation %s (%d entries)",
        data.tarification.mode, cotation_id, len(data.tarification.entries),
    )
    return _cotation_to_response(cotation)


@router.post("/{cotation_id}/tarification/compute", response_model=TarificationComputeResult)
async def compute_tarification_endpoint(
    cotation_id: int,
    data: TarificationComputeRequest,
    db: DbSession,
    tenant: CurrentTenant,
):
    """
    Price the posted entries against the cotation cost basis and the trip
    commission and VAT settings. Nothing is saved.

    Room demand, supplements and dates default to the saved ones.
    """
    cotation = await _get_cotation(db, tenant, cotation_id)

    trip = await db.scalar(
        select(Trip).where(Trip.id == cotation.trip_id, Trip.tenant_id == tenant.id)
    )
    if trip is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("trip_not_found", "Trip not found"),
        )

    settings = PricingSettings(
        primary_commission_pct=trip.primary_commission_pct or 0,
        primary_commission_label=trip.primary_commission_label or "",
        secondary_commission_pct=trip.secondary_commission_pct or 0,
        secondary_commission_label=trip.secondary_commission_label or "",
        vat_pct=trip.vat_pct or 0,
        vat_calculation_mode=trip.vat_calculation_mode or "on_margin",
    )

    # Request values win over the saved ones
    try:
        room_demand = data.room_demand or parse_room_demand(
            cotation.room_demand_override_json or trip.room_demand_json
        )
    except RoomDemandError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=error_detail("invalid_room_demand", e.message),
        )
    supplements = data.supplements
    if supplements is None:
        supplements = [CotationSupplement.model_validate(s) for s in cotation.supplements_json or []]

    results = cotation.results_json or {}
    try:
        computed = compute_tarification(
            data.tarification,
            parse_pax_results(results),
            settings,
            pax=data.pax,
            supplements=supplements,
            currency=results.get("currency") or trip.default_currency or "EUR",
            room_demand=room_demand,
            start_date=data.start_date or trip.start_date,
            end_date=data.end_date or trip.calculated_end_date,
        )
    except MissingCostBasisError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_detail("missing_cost_basis", e.message),
        )

    logger.info(
        "Computed %s tarification for cotation %s: %d lines, grand total %s",
        computed.mode.value, cotation_id, len(computed.lines), computed.grand_total,
    )
    return computed
