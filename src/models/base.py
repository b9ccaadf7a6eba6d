"""
SQLAlchemy Base Model
Source: https://docs.sqlalchemy.org/en/20/orm/declarative_styles.html
Verified: 2025-12-19
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Evidence: Declarative base for type-safe ORM
    Source: https://docs.sqlalchemy.org/en/20/orm/mapping_styles.html#orm-declarative-mapping
    Verified: 2025-12-19
    """

    pass


class TimeStampedModel:
    """Mixin for models with created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UUIDModel:
    """
    Mixin for models with UUID primary key.

    Evidence: Generic Uuid maps to native UUID on PostgreSQL and CHAR(32) elsewhere
    Source: https://docs.sqlalchemy.org/en/20/core/type_basics.html#sqlalchemy.types.Uuid
    Verified: 2025-12-19
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
