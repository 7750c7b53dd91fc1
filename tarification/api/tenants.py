"""
Tenant endpoints: invoice configuration (sender info and CGV).
"""

import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from tarification.api.deps import CurrentTenant, DbSession

logger = logging.getLogger(__name__)

router = APIRouter()


class InvoiceConfigResponse(BaseModel):
    """Company info shown on invoices and the sales conditions (CGV)."""
    company_name: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    vat_number: Optional[str] = None

    # CGV (conditions particulières de vente)
    cgv_html: Optional[str] = None


class InvoiceConfigUpdate(InvoiceConfigResponse):
    pass


# Fields stored in the invoice_sender_info JSON
_SENDER_INFO_FIELDS = list(InvoiceConfigResponse.model_fields)


def _invoice_config_response(tenant) -> InvoiceConfigResponse:
    sender = tenant.invoice_sender_info or {}
    return InvoiceConfigResponse(**{field: sender.get(field) for field in _SENDER_INFO_FIELDS})


@router.get("/current/invoice-config", response_model=InvoiceConfigResponse)
async def get_invoice_config(tenant: CurrentTenant):
    """Get the invoice configuration of the current tenant."""
    return _invoice_config_response(tenant)


@router.patch("/current/invoice-config", response_model=InvoiceConfigResponse)
async def update_invoice_config(
    update: InvoiceConfigUpdate,
    tenant: CurrentTenant,
    db: DbSession,
):
    """
    Update the invoice configuration. Merges with existing data; a field
    explicitly set to null is removed.
    """
    update_data = update.model_dump(exclude_unset=True)

    sender = dict(tenant.invoice_sender_info or {})
    for field, value in update_data.items():
        if value is not None:
            sender[field] = value
        else:
            sender.pop(field, None)
    tenant.invoice_sender_info = sender

    await db.commit()
    await db.refresh(tenant)
    logger.info("Updated invoice config of tenant %s (%s)", tenant.id, ", ".join(update_data) or "no change")

    return _invoice_config_response(tenant)
