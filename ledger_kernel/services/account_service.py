"""
AccountService -- chart-of-accounts seeding, lookup and sign rules.

Responsibility:
    Seeds the account tree from configuration, resolves accounts by code and
    owns the debit/credit sign rule used by the poster.  Balances are never
    written here; JournalPoster.post() is the only writer.

Architecture position:
    Kernel > Services.  Used by JournalPoster, FiscalYearService and the
    outer AccountingService.

Invariants enforced:
    - Seeding is idempotent: existing codes are left untouched.
    - Accounts are retired with deactivate(), never deleted.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")


class AccountDefinition(Protocol):
    """Shape of one chart entry as loaded from configuration."""

    code: str
    name: str
    account_type: str
    parent_code: str | None
    allow_manual_entry: bool


def balance_delta(account_type: AccountType | str, is_debit: bool, amount: Decimal) -> Decimal:
    """
    Signed change to ``Account.balance`` for one leg of a posting.

    ASSET and EXPENSE accounts grow with debits; LIABILITY, EQUITY and
    REVENUE accounts grow with credits.
    """
    debit_normal = AccountType(account_type).is_debit_normal
    return amount if is_debit == debit_normal else -amount


def signed_balance(account_type: AccountType | str, debit_total: Decimal, credit_total: Decimal) -> Decimal:
    """Balance of an account from its debit and credit totals."""
    if AccountType(account_type).is_debit_normal:
        return debit_total - credit_total
    return credit_total - debit_total


class AccountService(BaseService[Account]):
    """Chart-of-accounts operations. Flush-only."""

    def __init__(self, session: Session, actor_id: UUID):
        super().__init__(session)
        self._actor_id = actor_id

    def seed_chart(self, definitions: Iterable[AccountDefinition]) -> int:
        """
        Insert every definition whose code is not in the chart yet.

        Parents may appear anywhere in ``definitions``; they are resolved by
        code after all rows exist.

        Returns:
            Number of accounts created.

        Raises:
            AccountNotFoundError: A parent_code names no account.
        """
        definitions = list(definitions)
        existing = {
            account.code: account
            for account in self.session.execute(select(Account)).scalars()
        }

        created = 0
        for definition in definitions:
            if definition.code in existing:
                continue
            account = Account(
                code=definition.code,
                name=definition.name,
                account_type=AccountType(definition.account_type),
                allow_manual_entry=definition.allow_manual_entry,
                created_by_id=self._actor_id,
            )
            self.session.add(account)
            existing[definition.code] = account
            created += 1

        self.session.flush()

        for definition in definitions:
            if definition.parent_code is None:
                continue
            parent = existing.get(definition.parent_code)
            if parent is None:
                raise AccountNotFoundError(definition.parent_code)
            child = existing[definition.code]
            if child.parent_id is None:
                child.parent_id = parent.id

        self.session.flush()
        logger.info(
            "chart_seeded",
            extra={"accounts_created": created, "total": len(existing)},
        )
        return created

    def get_by_code(self, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def require_by_code(self, code: str) -> Account:
        account = self.get_by_code(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def get_info(self, code: str) -> AccountInfo:
        return AccountInfo.from_model(self.require_by_code(code))

    def children_of(self, account_id: UUID) -> list[Account]:
        return list(
            self.session.execute(
                select(Account).where(Account.parent_id == account_id).order_by(Account.code)
            ).scalars()
        )

    def deactivate(self, code: str) -> AccountInfo:
        """Retire an account. Its history and balances stay in place."""
        account = self.require_by_code(code)
        account.is_active = False
        account.updated_by_id = self._actor_id
        self.session.flush()
        logger.info("account_deactivated", extra={"account_code": code})
        return AccountInfo.from_model(account)
