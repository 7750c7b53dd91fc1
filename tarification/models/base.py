"""
Declarative base and the columns shared by the tables.

Tenant-scoped tables get a big integer id, timestamps and ``tenant_id``.
Every query on them filters on the tenant of the request.
"""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, declared_attr

# BIGSERIAL on PostgreSQL; SQLite only autoincrements INTEGER primary keys
BigIntId = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class TenantBase(Base, TimestampMixin):
    """Rows owned by one tenant (deleted with it)."""

    __abstract__ = True

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)

    @declared_attr
    def tenant_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid(as_uuid=True),
            ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id}, tenant_id={self.tenant_id})>"
