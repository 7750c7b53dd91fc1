"""
FastAPI dependencies for tenant isolation and database access.

The tenant is identified by the ``X-Tenant-ID`` header (UUID). Authentication
is handled upstream of this service.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tarification.database import get_db
from tarification.models.tenant import Tenant

TENANT_HEADER = "X-Tenant-ID"


async def get_tenant_id(
    x_tenant_id: Annotated[Optional[str], Header(alias=TENANT_HEADER)] = None,
) -> uuid.UUID:
    """
    Dependency to get the tenant ID from the request header.
    Simpler than get_current_tenant when you only need the ID.
    """
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "tenant_missing", "message": f"Missing {TENANT_HEADER} header"},
        )
    try:
        return uuid.UUID(x_tenant_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "tenant_invalid", "message": f"Invalid {TENANT_HEADER} header"},
        )


async def get_current_tenant(
    tenant_id: Annotated[uuid.UUID, Depends(get_tenant_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Tenant:
    """
    Dependency to get the current tenant, which must exist and be active.
    """
    result = await db.execute(
        select(Tenant).where(Tenant.id == tenant_id, Tenant.is_active == True)  # noqa: E712
    )
    tenant = result.scalar_one_or_none()

    if tenant is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "tenant_not_found", "message": "Tenant not found or inactive"},
        )

    return tenant


async def get_active_tenant_id(
    tenant: Annotated[Tenant, Depends(get_current_tenant)],
) -> uuid.UUID:
    """Tenant ID of an existing, active tenant."""
    return tenant.id


def error_detail(code: str, message: str, **extra) -> dict:
    """HTTPException detail with a machine code and a human message."""
    detail = {"code": code, "message": message}
    detail.update(extra)
    return detail


# Type aliases for cleaner dependency injection
CurrentTenant = Annotated[Tenant, Depends(get_current_tenant)]
TenantId = Annotated[uuid.UUID, Depends(get_active_tenant_id)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
