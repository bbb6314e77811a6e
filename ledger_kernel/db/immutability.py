"""
ORM-level immutability enforcement.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below refuse changes to finalized records:

    session.flush()
         |
         v
    [before_flush]   --> every account deletion
    [before_update]  --> posted entries, closing entries, closed years
    [before_delete]  --> posted entries, closing entries, closed years
         |
         v
    SQL sent to database (only if checks pass)

Entity        | When immutable              | Allowed changes
--------------|-----------------------------|------------------------------
JournalEntry  | after status = POSTED       | updated_at, updated_by_id
ClosingEntry  | always                      | none
FiscalYear    | after status = CLOSED       | next_year_id, is_current and
              |                             | audit fields
Account       | any deletion                | deactivate instead

Bulk ``update()``/``delete()`` statements bypass mapper events; the kernel
uses them only where the guard is enforced in the WHERE clause (the
fiscal-year close compare-and-swap).

Usage:

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _status_before(target, sealed_value: str) -> bool:
    """True when the row already had ``sealed_value`` before this flush."""
    history = get_history(target, "status")
    if history.deleted:
        old = history.deleted[0]
        return getattr(old, "value", old) == sealed_value
    if not history.added:
        current = target.status
        return getattr(current, "value", current) == sealed_value
    return False


def _changed_fields(target, allowed: frozenset) -> list[str]:
    return [
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in allowed and attr.history.has_changes()
    ]


# =============================================================================
# JournalEntry
# =============================================================================


def _check_journal_entry_immutability(mapper, connection, target):
    """
    Block updates to entries that were POSTED before this flush.

    The DRAFT -> POSTED transition itself is the posting and is allowed.
    """
    if not _status_before(target, "posted"):
        return
    changed = _changed_fields(target, _AUDIT_FIELDS)
    if changed:
        _blocked(
            "JournalEntry",
            target.id,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on posted journal entry",
            field=changed[0],
        )


def _check_journal_entry_delete(mapper, connection, target):
    status = getattr(target.status, "value", target.status)
    if status == "posted":
        _blocked(
            "JournalEntry",
            target.id,
            "DELETE",
            "Posted journal entries cannot be deleted",
        )


# =============================================================================
# ClosingEntry
# =============================================================================


def _check_closing_entry_immutability(mapper, connection, target):
    _blocked(
        "ClosingEntry",
        target.id,
        "UPDATE",
        "Closing entries are append-only",
    )


def _check_closing_entry_delete(mapper, connection, target):
    _blocked(
        "ClosingEntry",
        target.id,
        "DELETE",
        "Closing entries cannot be deleted",
    )


# =============================================================================
# FiscalYear
# =============================================================================

_CLOSED_YEAR_MUTABLE = _AUDIT_FIELDS | {"next_year_id", "is_current"}


def _check_fiscal_year_immutability(mapper, connection, target):
    """A CLOSED year keeps its dates, status and net income."""
    if not _status_before(target, "closed"):
        return
    changed = _changed_fields(target, _CLOSED_YEAR_MUTABLE)
    if changed:
        _blocked(
            "FiscalYear",
            target.id,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on closed fiscal year",
            field=changed[0],
        )


def _check_fiscal_year_delete(mapper, connection, target):
    status = getattr(target.status, "value", target.status)
    if status == "closed":
        _blocked(
            "FiscalYear",
            target.id,
            "DELETE",
            "Closed fiscal years cannot be deleted",
        )


# =============================================================================
# Account
# =============================================================================


def _check_account_deletion_before_flush(session, flush_context, instances):
    """
    Refuse to delete any account; retire it with is_active=False instead.

    Runs in before_flush so the deletion is rejected before the flush plan
    is built.
    """
    from ledger_kernel.models.account import Account

    for obj in list(session.deleted):
        if isinstance(obj, Account):
            _blocked(
                "Account",
                obj.id,
                "DELETE",
                f"Account {obj.code} cannot be deleted; deactivate it instead",
            )


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from ledger_kernel.models.fiscal_year import ClosingEntry, FiscalYear
    from ledger_kernel.models.journal import JournalEntry

    return [
        (Session, "before_flush", _check_account_deletion_before_flush),
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (ClosingEntry, "before_update", _check_closing_entry_immutability),
        (ClosingEntry, "before_delete", _check_closing_entry_delete),
        (FiscalYear, "before_update", _check_fiscal_year_immutability),
        (FiscalYear, "before_delete", _check_fiscal_year_delete),
    ]


def register_immutability_listeners() -> None:
    """Install the listeners. Safe to call more than once."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the listeners.

    Only for tests that must write forbidden changes to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
