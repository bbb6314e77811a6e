"""
BaseService -- common constructor for kernel services.

Every write service receives the caller's ``Session`` and uses
``session.flush()`` (and savepoints for all-or-nothing steps), never
``session.commit()``.  The caller owns the transaction boundary, which is
what lets a booking event post several entries as one unit of work.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Abstract base class for kernel services. Flush-only."""

    def __init__(self, session: Session):
        self.session = session
