"""
Payment Terms API - supplier payment conditions and their schedules.

Installments are validated on create/update (at least one, each in
(0, 100], exactly 100% in total): invalid payloads get a 422. A supplier
has at most one default.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select, update

from tarification.api.deps import DbSession, TenantId, error_detail
from tarification.models.payment_terms import PaymentTerms
from tarification.schemas.payment_terms import (
    PaymentInstallment,
    PaymentTermsCreate,
    PaymentTermsPreset,
    PaymentTermsResponse,
    PaymentTermsUpdate,
    ScheduleRequest,
    ScheduleResponse,
)
from tarification.services.margin_calculator import quantize
from tarification.services.payment_terms import (
    PAYMENT_TERMS_PRESETS,
    PaymentTermsValidationError,
    build_schedule,
    check_chronology,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment-terms", tags=["payment-terms"])

# Fields that cannot be cleared with an explicit null
_REQUIRED_FIELDS = {"name", "installments", "is_default", "is_active"}


def _dump_installments(installments: List[PaymentInstallment]) -> List[dict]:
    return [inst.model_dump(mode="json", exclude_none=True) for inst in installments]


async def _get_payment_terms(db, tenant_id, payment_terms_id: int) -> PaymentTerms:
    pt = await db.scalar(
        select(PaymentTerms).where(
            PaymentTerms.id == payment_terms_id,
            PaymentTerms.tenant_id == tenant_id,
        )
    )
    if pt is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("payment_terms_not_found", "Payment terms not found"),
        )
    return pt


async def _clear_supplier_default(db, tenant_id, supplier_id: int, keep_id: Optional[int] = None) -> None:
    """Unset the current default of a supplier (except ``keep_id``)."""
    stmt = (
        update(PaymentTerms)
        .where(
            PaymentTerms.tenant_id == tenant_id,
            PaymentTerms.supplier_id == supplier_id,
            PaymentTerms.is_default == True,  # noqa: E712
        )
        .values(is_default=False)
    )
    if keep_id is not None:
        stmt = stmt.where(PaymentTerms.id != keep_id)
    await db.execute(stmt)


# ============================================================================
# Presets
# ============================================================================

@router.get("/presets", response_model=List[PaymentTermsPreset])
async def list_presets():
    """Ready-made installment schedules."""
    return list(PAYMENT_TERMS_PRESETS.values())


# ============================================================================
# CRUD
# ============================================================================

@router.get("", response_model=List[PaymentTermsResponse])
async def list_payment_terms(
    db: DbSession,
    tenant_id: TenantId,
    supplier_id: Optional[int] = Query(None, description="Filter by supplier"),
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
):
    """Payment terms of the tenant, by name."""
    filters = [PaymentTerms.tenant_id == tenant_id]
    if supplier_id is not None:
        filters.append(PaymentTerms.supplier_id == supplier_id)
    if is_active is not None:
        filters.append(PaymentTerms.is_active == is_active)

    result = await db.scalars(
        select(PaymentTerms).where(*filters).order_by(PaymentTerms.name, PaymentTerms.id)
    )
    return [PaymentTermsResponse.model_validate(pt) for pt in result]


@router.get("/{payment_terms_id}", response_model=PaymentTermsResponse)
async def get_payment_terms(
    payment_terms_id: int,
    db: DbSession,
    tenant_id: TenantId,
):
    pt = await _get_payment_terms(db, tenant_id, payment_terms_id)
    return PaymentTermsResponse.model_validate(pt)


@router.post("", response_model=PaymentTermsResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_terms(
    data: PaymentTermsCreate,
    db: DbSession,
    tenant_id: TenantId,
):
    if data.is_default and data.supplier_id:
        await _clear_supplier_default(db, tenant_id, data.supplier_id)

    pt = PaymentTerms(
        tenant_id=tenant_id,
        **data.model_dump(exclude={"installments"}),
        installments=_dump_installments(data.installments),
    )
    db.add(pt)
    await db.commit()
    await db.refresh(pt)

    logger.info("Created payment terms %s '%s' (%d installments)", pt.id, pt.name, len(data.installments))
    return PaymentTermsResponse.model_validate(pt)


@router.patch("/{payment_terms_id}", response_model=PaymentTermsResponse)
async def update_payment_terms(
    payment_terms_id: int,
    data: PaymentTermsUpdate,
    db: DbSession,
    tenant_id: TenantId,
):
    """Partial update; ``description`` may be cleared with null."""
    pt = await _get_payment_terms(db, tenant_id, payment_terms_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("is_default") and pt.supplier_id:
        await _clear_supplier_default(db, tenant_id, pt.supplier_id, keep_id=pt.id)
    if data.installments is not None:
        changes["installments"] = _dump_installments(data.installments)

    for field, value in changes.items():
        if value is None and field in _REQUIRED_FIELDS:
            continue
        setattr(pt, field, value)

    await db.commit()
    await db.refresh(pt)
    return PaymentTermsResponse.model_validate(pt)


@router.delete("/{payment_terms_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment_terms(
    payment_terms_id: int,
    db: DbSession,
    tenant_id: TenantId,
):
    pt = await _get_payment_terms(db, tenant_id, payment_terms_id)
    await db.delete(pt)
    await db.commit()
    logger.info("Deleted payment terms %s", payment_terms_id)


@router.post("/{payment_terms_id}/set-default", response_model=PaymentTermsResponse)
async def set_default_payment_terms(
    payment_terms_id: int,
    db: DbSession,
    tenant_id: TenantId,
):
    """Make these terms the default of their supplier."""
    pt = await _get_payment_terms(db, tenant_id, payment_terms_id)
    if not pt.supplier_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_detail("no_supplier", "Payment terms without supplier cannot be a default"),
        )

    await _clear_supplier_default(db, tenant_id, pt.supplier_id, keep_id=pt.id)
    pt.is_default = True
    await db.commit()
    await db.refresh(pt)
    return PaymentTermsResponse.model_validate(pt)


# ============================================================================
# Schedule
# ============================================================================

@router.post("/{payment_terms_id}/schedule", response_model=ScheduleResponse)
async def compute_schedule(
    payment_terms_id: int,
    data: ScheduleRequest,
    db: DbSession,
    tenant_id: TenantId,
):
    """
    Resolve due dates and amounts of each installment for a total.

    Installments whose reference date is unknown have no due date
    ("date to be confirmed"). Chronology problems come back as warnings.
    """
    pt = await _get_payment_terms(db, tenant_id, payment_terms_id)
    installments = [PaymentInstallment.model_validate(inst) for inst in pt.installments or []]

    try:
        resolved = build_schedule(installments, data.total, data.dates)
    except PaymentTermsValidationError as e:
        # Rows saved before installments were validated
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_detail("invalid_payment_terms", e.message),
        )

    return ScheduleResponse(
        payment_terms_id=pt.id,
        total=quantize(data.total),
        currency=data.currency,
        installments=resolved,
        warnings=check_chronology(resolved),
    )
