"""
Typed exception hierarchy for the ledger kernel.

Every error raised by the kernel is a subclass of ``LedgerKernelError`` with
a machine-readable ``code`` class attribute and structured attributes, so
callers catch by type and read fields instead of parsing messages:

    try:
        poster.post(entry_id)
    except AlreadyPostedError as e:
        log.info("already posted", extra={"entry_number": e.entry_number})

Hierarchy:

    LedgerKernelError
    |
    +-- PostingError
    |   +-- AlreadyPostedError
    |   +-- EntryNotFoundError
    |   +-- InvalidAmountError
    |   +-- InvalidAccountError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |
    +-- FiscalYearError
    |   +-- FiscalYearNotFoundError
    |   +-- FiscalYearClosedError
    |   +-- FiscalYearAlreadyClosedError
    |   +-- FiscalYearNotClosedError
    |   +-- FiscalYearOverlapError
    |   +-- DuplicateFiscalYearCodeError
    |   +-- InvalidFiscalYearRangeError
    |   +-- FiscalYearLockedError
    |   +-- FiscalYearInUseError
    |
    +-- CurrencyError
    |   +-- InvalidExchangeRateError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError

Category    | Code                        | When raised
------------|-----------------------------|-----------------------------------------
Posting     | ALREADY_POSTED              | post() on an entry that is POSTED
            | ENTRY_NOT_FOUND             | Journal entry id doesn't exist
            | INVALID_AMOUNT              | Entry amount is zero or negative
            | INVALID_ACCOUNT             | Same account on both legs, inactive account
------------|-----------------------------|-----------------------------------------
Account     | ACCOUNT_NOT_FOUND           | Account id or code doesn't exist
------------|-----------------------------|-----------------------------------------
Fiscal year | FISCAL_YEAR_NOT_FOUND       | Year id doesn't exist
            | FISCAL_YEAR_CLOSED          | Writing into a CLOSED year
            | FISCAL_YEAR_ALREADY_CLOSED  | close() on a CLOSED year
            | FISCAL_YEAR_NOT_CLOSED      | carry_forward() from an OPEN year
            | FISCAL_YEAR_OVERLAP         | Date range conflicts with another year
            | DUPLICATE_FISCAL_YEAR_CODE  | Year code already used
            | INVALID_FISCAL_YEAR_RANGE   | start_date after end_date
            | FISCAL_YEAR_LOCKED          | Entry dated on/before the lock date
            | FISCAL_YEAR_IN_USE          | Deleting a current or referenced year
------------|-----------------------------|-----------------------------------------
Currency    | INVALID_EXCHANGE_RATE       | Rate is zero, negative or not numeric
------------|-----------------------------|-----------------------------------------
Immutability| IMMUTABILITY_VIOLATION      | Modifying a posted entry or closing entry
"""

from datetime import date


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses define a ``code`` class attribute.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Posting-related exceptions


class PostingError(LedgerKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class AlreadyPostedError(PostingError):
    """Journal entry is already POSTED."""

    code: str = "ALREADY_POSTED"

    def __init__(self, entry_id: str, entry_number: str):
        self.entry_id = entry_id
        self.entry_number = entry_number
        super().__init__(f"Journal entry {entry_number} ({entry_id}) is already posted")


class EntryNotFoundError(PostingError):
    """Journal entry with given ID was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class InvalidAmountError(PostingError):
    """Entry amount must be strictly positive."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Journal entry amount must be positive, got {amount}")


class InvalidAccountError(PostingError):
    """Account cannot be used for this posting."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Invalid account {account_id}: {reason}")


# Account-related exceptions


class AccountError(LedgerKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account with given ID or code was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_ref: str):
        self.account_ref = account_ref
        super().__init__(f"Account not found: {account_ref}")


# Fiscal-year exceptions


class FiscalYearError(LedgerKernelError):
    """Base exception for fiscal-year errors."""

    code: str = "FISCAL_YEAR_ERROR"


class FiscalYearNotFoundError(FiscalYearError):
    """Fiscal year with given ID was not found."""

    code: str = "FISCAL_YEAR_NOT_FOUND"

    def __init__(self, fiscal_year_id: str):
        self.fiscal_year_id = fiscal_year_id
        super().__init__(f"Fiscal year not found: {fiscal_year_id}")


class FiscalYearClosedError(FiscalYearError):
    """Attempted to write into a CLOSED fiscal year."""

    code: str = "FISCAL_YEAR_CLOSED"

    def __init__(self, fiscal_year_code: str, operation: str):
        self.fiscal_year_code = fiscal_year_code
        self.operation = operation
        super().__init__(
            f"Fiscal year {fiscal_year_code} is closed; cannot {operation}"
        )


class FiscalYearAlreadyClosedError(FiscalYearError):
    """Attempted to close a fiscal year that is already CLOSED."""

    code: str = "FISCAL_YEAR_ALREADY_CLOSED"

    def __init__(self, fiscal_year_code: str):
        self.fiscal_year_code = fiscal_year_code
        super().__init__(f"Fiscal year {fiscal_year_code} is already closed")


class FiscalYearNotClosedError(FiscalYearError):
    """Operation requires a CLOSED fiscal year."""

    code: str = "FISCAL_YEAR_NOT_CLOSED"

    def __init__(self, fiscal_year_code: str):
        self.fiscal_year_code = fiscal_year_code
        super().__init__(
            f"Fiscal year {fiscal_year_code} must be closed before carrying balances forward"
        )


class FiscalYearOverlapError(FiscalYearError):
    """Fiscal year date range overlaps an existing year."""

    code: str = "FISCAL_YEAR_OVERLAP"

    def __init__(
        self,
        fiscal_year_code: str,
        existing_code: str,
        overlap_start: date,
        overlap_end: date,
    ):
        self.fiscal_year_code = fiscal_year_code
        self.existing_code = existing_code
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        super().__init__(
            f"Fiscal year {fiscal_year_code} overlaps {existing_code} "
            f"from {overlap_start} to {overlap_end}"
        )


class DuplicateFiscalYearCodeError(FiscalYearError):
    """Fiscal year code is already in use."""

    code: str = "DUPLICATE_FISCAL_YEAR_CODE"

    def __init__(self, fiscal_year_code: str):
        self.fiscal_year_code = fiscal_year_code
        super().__init__(f"Fiscal year code already exists: {fiscal_year_code}")


class InvalidFiscalYearRangeError(FiscalYearError):
    """start_date falls after end_date."""

    code: str = "INVALID_FISCAL_YEAR_RANGE"

    def __init__(self, start_date: date, end_date: date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"start_date ({start_date}) cannot be after end_date ({end_date})"
        )


class FiscalYearLockedError(FiscalYearError):
    """Entry date falls on or before the fiscal year's lock date."""

    code: str = "FISCAL_YEAR_LOCKED"

    def __init__(self, fiscal_year_code: str, lock_date: date, entry_date: date):
        self.fiscal_year_code = fiscal_year_code
        self.lock_date = lock_date
        self.entry_date = entry_date
        super().__init__(
            f"Fiscal year {fiscal_year_code} is locked through {lock_date}; "
            f"cannot record entry dated {entry_date}"
        )


class FiscalYearInUseError(FiscalYearError):
    """Fiscal year cannot be removed while current or referenced."""

    code: str = "FISCAL_YEAR_IN_USE"

    def __init__(self, fiscal_year_code: str, reason: str):
        self.fiscal_year_code = fiscal_year_code
        self.reason = reason
        super().__init__(f"Fiscal year {fiscal_year_code} is in use: {reason}")


# Currency exceptions


class CurrencyError(LedgerKernelError):
    """Base exception for currency errors."""

    code: str = "CURRENCY_ERROR"


class InvalidExchangeRateError(CurrencyError):
    """Rate table entry is not a positive number."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, currency: str, rate: str):
        self.currency = currency
        self.rate = rate
        super().__init__(f"Invalid exchange rate for {currency}: {rate}")


# Immutability exceptions


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")
