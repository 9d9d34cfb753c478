"""Domain exception hierarchy for the SEF accounting core.

All domain-specific exceptions inherit from SefAccountingError. Every error
belongs to one of four categories (VALIDATION, STATE_CONFLICT, NOT_FOUND,
CONCURRENT_MODIFICATION) and carries a machine-readable ``error_code`` naming
the rule that was violated.
"""

from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class ErrorCategory(str, Enum):
    VALIDATION = "VALIDATION"
    STATE_CONFLICT = "STATE_CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    INTERNAL = "INTERNAL"


class SefAccountingError(Exception):
    """Base exception for all accounting core errors.

    Includes the error category, a reason code for API responses and extra
    context describing the offending values.
    """

    category: ErrorCategory = ErrorCategory.INTERNAL
    error_code: str = "SEF_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.context = context or {}

    @property
    def retryable(self) -> bool:
        return self.category == ErrorCategory.CONCURRENT_MODIFICATION

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.category.value,
            "reason": self.error_code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Categories
# =============================================================================


class ValidationError(SefAccountingError):
    """Malformed or out-of-range input."""

    category = ErrorCategory.VALIDATION
    error_code = "VALIDATION_ERROR"
    status_code = 422


class StateConflictError(SefAccountingError):
    """Operation not allowed in the entity's current state."""

    category = ErrorCategory.STATE_CONFLICT
    error_code = "STATE_CONFLICT"
    status_code = 409


class NotFoundError(SefAccountingError):
    """Unknown entity id."""

    category = ErrorCategory.NOT_FOUND
    error_code = "NOT_FOUND"
    status_code = 404

    entity_label = "Entity"

    def __init__(self, entity_id: UUID | str) -> None:
        super().__init__(
            f"{self.entity_label} not found: {entity_id}",
            context={"id": str(entity_id)},
        )


class ConcurrentModificationError(SefAccountingError):
    """Raised when another caller holds the lock on an entity.

    Safe to retry after a short backoff.
    """

    category = ErrorCategory.CONCURRENT_MODIFICATION
    error_code = "ENTITY_LOCKED"
    status_code = 409

    def __init__(self, kind: str, entity_id: UUID | str, timeout: float) -> None:
        super().__init__(
            f"{kind} {entity_id} is being modified by another request",
            context={"kind": kind, "id": str(entity_id), "timeout": timeout},
        )


# =============================================================================
# Not found
# =============================================================================


class AccountNotFoundError(NotFoundError):
    error_code = "ACCOUNT_NOT_FOUND"
    entity_label = "Account"


class JournalEntryNotFoundError(NotFoundError):
    error_code = "JOURNAL_ENTRY_NOT_FOUND"
    entity_label = "Journal entry"


class AdvanceInvoiceNotFoundError(NotFoundError):
    error_code = "ADVANCE_INVOICE_NOT_FOUND"
    entity_label = "Advance invoice"


class AllocationNotFoundError(NotFoundError):
    error_code = "ALLOCATION_NOT_FOUND"
    entity_label = "Allocation"


class TaxReportNotFoundError(NotFoundError):
    error_code = "TAX_REPORT_NOT_FOUND"
    entity_label = "Tax report"


# =============================================================================
# Generic validation
# =============================================================================


class InvalidAmountError(ValidationError):
    """Raised when an invalid monetary amount is provided."""

    error_code = "INVALID_AMOUNT"

    def __init__(self, amount: Decimal | str, reason: str) -> None:
        super().__init__(
            f"Invalid amount '{amount}': {reason}",
            context={"amount": str(amount), "reason": reason},
        )


class InvalidTransitionError(StateConflictError):
    """Raised when a state machine transition is not allowed."""

    error_code = "INVALID_STATE_TRANSITION"

    def __init__(
        self, kind: str, entity_id: UUID | str, current: str, action: str
    ) -> None:
        super().__init__(
            f"Cannot {action} {kind} {entity_id} in status {current}",
            context={
                "kind": kind,
                "id": str(entity_id),
                "status": current,
                "action": action,
            },
        )


# =============================================================================
# Chart of accounts
# =============================================================================


class InvalidAccountCodeError(ValidationError):
    error_code = "INVALID_ACCOUNT_CODE"

    def __init__(self, code: str, reason: str) -> None:
        super().__init__(
            f"Invalid account code '{code}': {reason}",
            context={"code": code, "reason": reason},
        )


class DuplicateAccountCodeError(StateConflictError):
    error_code = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, code: str, company_id: UUID) -> None:
        super().__init__(
            f"Account code already exists: {code}",
            context={"code": code, "company_id": str(company_id)},
        )


class IncompatibleAccountTypeError(ValidationError):
    """Raised when a child account's type differs from its root ancestor's."""

    error_code = "INCOMPATIBLE_ACCOUNT_TYPE"

    def __init__(self, code: str, account_type: str, root_type: str) -> None:
        super().__init__(
            f"Account {code} of type {account_type} cannot live under a "
            f"{root_type} root",
            context={"code": code, "type": account_type, "root_type": root_type},
        )


class AccountHierarchyError(ValidationError):
    error_code = "INVALID_ACCOUNT_PARENT"


# =============================================================================
# Ledger
# =============================================================================


class InvalidJournalLineError(ValidationError):
    error_code = "INVALID_LINE"


class InactiveAccountError(ValidationError):
    """Raised when a line references an unknown or deactivated account."""

    error_code = "INACTIVE_ACCOUNT"

    def __init__(self, account_id: UUID | str, reason: str) -> None:
        super().__init__(
            f"Account {account_id} cannot be posted to: {reason}",
            context={"account_id": str(account_id), "reason": reason},
        )


class UnbalancedEntryError(ValidationError):
    """Raised when a journal entry's debits don't equal its credits."""

    error_code = "UNBALANCED"

    def __init__(self, debit_total: Decimal, credit_total: Decimal) -> None:
        super().__init__(
            f"Journal entry is unbalanced: debits={debit_total}, credits={credit_total}",
            context={"debit_total": str(debit_total), "credit_total": str(credit_total)},
        )


class DuplicateReferenceError(StateConflictError):
    """Raised when a source document was already booked to the ledger."""

    error_code = "DUPLICATE_REFERENCE"

    def __init__(
        self, reference_type: str, reference_id: str, entry_number: str
    ) -> None:
        super().__init__(
            f"{reference_type} {reference_id} is already booked as {entry_number}",
            context={
                "reference_type": reference_type,
                "reference_id": reference_id,
                "entry_number": entry_number,
            },
        )


class PostingAccountMissingError(ValidationError):
    error_code = "POSTING_ACCOUNT_MISSING"

    def __init__(self, code_prefix: str) -> None:
        super().__init__(
            f"No active account with code {code_prefix}; initialize the chart of accounts",
            context={"code_prefix": code_prefix},
        )


# =============================================================================
# Advance invoices
# =============================================================================


class InvalidPartnerError(ValidationError):
    error_code = "INVALID_PARTNER"


class OverAllocationError(ValidationError):
    """Raised when an allocation exceeds the advance's remaining amount."""

    error_code = "OVER_ALLOCATION"

    def __init__(
        self, advance_id: UUID | str, requested: Decimal, remaining: Decimal
    ) -> None:
        super().__init__(
            f"Cannot use {requested} of advance {advance_id}: only {remaining} remaining",
            context={
                "advance_id": str(advance_id),
                "requested": str(requested),
                "remaining": str(remaining),
            },
        )


class AdvanceInUseError(StateConflictError):
    """Raised when cancelling an advance that still has allocations."""

    error_code = "ADVANCE_IN_USE"

    def __init__(self, advance_id: UUID | str, used: Decimal) -> None:
        super().__init__(
            f"Advance {advance_id} has {used} allocated; release the allocations "
            "or cancel with force",
            context={"advance_id": str(advance_id), "used_amount": str(used)},
        )


# =============================================================================
# Tax periods
# =============================================================================


class InvalidPeriodError(ValidationError):
    error_code = "INVALID_PERIOD"


class DuplicateTaxReportError(StateConflictError):
    error_code = "DUPLICATE_REPORT"

    def __init__(self, company_id: UUID, period_label: str) -> None:
        super().__init__(
            f"A tax report for {period_label} already exists",
            context={"company_id": str(company_id), "period": period_label},
        )


# =============================================================================
# Storage
# =============================================================================


class IntegrityError(SefAccountingError):
    """Raised when stored data violates an invariant on read."""

    error_code = "INTEGRITY_VIOLATION"
    status_code = 500
