"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts.  Each Account is a
    node in a parent/child tree and carries running debit, credit and signed
    balances maintained by the journal poster.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is globally unique (uq_account_code).
    - balance = debit_balance - credit_balance for ASSET/EXPENSE accounts and
      credit_balance - debit_balance for LIABILITY/EQUITY/REVENUE accounts.
      Only JournalPoster.post() mutates the three balance columns.
    - Accounts are never deleted; is_active=False retires them
      (db/immutability.py blocks DELETE).
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def is_debit_normal(self) -> bool:
        """ASSET and EXPENSE accounts increase with a debit."""
        return self in (AccountType.ASSET, AccountType.EXPENSE)

    @property
    def is_permanent(self) -> bool:
        """Balance-sheet accounts whose balances carry into the next year."""
        return self in (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)


class Account(TrackedBase):
    """
    Chart of Accounts entry.

    Contract:
        Seeded once from configuration, then mutated only by the poster.
        Balances are stored per account; parent totals are derived at read
        time by LedgerSelector.account_tree_balances().
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    debit_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    credit_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    # Signed by account type, see module invariants
    balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    allow_manual_entry: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def type(self) -> AccountType:
        """account_type as an enum member (the column loads back as str)."""
        return AccountType(self.account_type)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None
