"""
SQLAlchemy models for the tarification service.
Tenant-scoped models inherit from TenantBase for multi-tenant isolation.
"""

from tarification.models.base import Base, TenantBase, TimestampMixin
from tarification.models.tenant import Tenant
from tarification.models.trip import Trip
from tarification.models.cotation import TripCotation
from tarification.models.payment_terms import PaymentTerms, PaymentDueDateReference
from tarification.models.accommodation import (
    Accommodation,
    RoomCategory,
    AccommodationSeason,
    RoomRate,
    EarlyBirdDiscount,
)

__all__ = [
    "Base",
    "TenantBase",
    "TimestampMixin",
    "Tenant",
    "Trip",
    "TripCotation",
    "PaymentTerms",
    "PaymentDueDateReference",
    "Accommodation",
    "RoomCategory",
    "AccommodationSeason",
    "RoomRate",
    "EarlyBirdDiscount",
]
