"""
Module: ledger_kernel.models.sequence
Responsibility: Named counter rows backing entry and booking numbers.
Architecture position: Kernel > Models.  Read and written only by
    services/sequence_service.py under a row lock.
"""

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class SequenceCounter(Base):
    """
    One named sequence and the last value handed out.

    Names are ``journal_entry`` for JE numbers and ``booking:<year>`` for
    per-year booking numbers.
    """

    __tablename__ = "sequence_counters"

    __table_args__ = (UniqueConstraint("name", name="uq_sequence_counter_name"),)

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
