"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for the ledger's SQLAlchemy models.
    Defines the UUID primary key convention, the type annotation map that
    pins monetary columns to exact decimals, and the TrackedBase mixin.
Architecture position: Kernel > DB.  Lowest import target inside the kernel;
    every model file imports from here and this module imports nothing from
    models/, services/ or selectors/.

Invariants enforced:
    - Monetary columns are Numeric(38, 9).  Amounts are never floats.
    - Primary keys are uuid4 values stored as 36-character strings, which
      keeps the schema portable between PostgreSQL and SQLite.

Audit relevance:
    TrackedBase records who created and last changed each row.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as String(36).

    Binds ``uuid.UUID`` values as their canonical string and loads them back
    as ``uuid.UUID``.  Plain strings are accepted on bind so callers holding
    an id from a log line or URL can query with it directly.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for every ledger table.

    Guarantees:
        - ``id`` is a uuid4 primary key.
        - Decimal -> Numeric(38, 9), datetime -> DateTime(timezone=True),
          UUID -> UUIDString, int -> BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base adding creation and modification audit columns.

    ``created_by_id`` is required; ``updated_by_id`` stays null until a
    service records a change on behalf of an actor.
    """

    __abstract__ = True

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

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
