"""
Tenant model - represents a DMC (Destination Management Company).
Each tenant has isolated data and configurable settings.
"""

import uuid
from typing import Optional

from sqlalchemy import Boolean, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tarification.models.base import Base, TimestampMixin


class Tenant(Base, TimestampMixin):
    """
    A DMC tenant.
    All data is isolated per tenant.
    """

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)

    # Invoice sender configuration (company info, CGV...)
    invoice_sender_info: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug='{self.slug}')>"
