from decimal import Decimal
from uuid import uuid4

import pytest

from sef_accounting.exceptions import (
    AccountNotFoundError,
    AdvanceInUseError,
    ConcurrentModificationError,
    DuplicateReferenceError,
    DuplicateTaxReportError,
    ErrorCategory,
    IntegrityError,
    InvalidAmountError,
    InvalidTransitionError,
    NotFoundError,
    OverAllocationError,
    PostingAccountMissingError,
    SefAccountingError,
    StateConflictError,
    ValidationError,
)


class TestErrorCategories:
    @pytest.mark.parametrize(
        ("error", "category", "status_code"),
        [
            (InvalidAmountError("1.234", "too precise"), ErrorCategory.VALIDATION, 422),
            (
                InvalidTransitionError("advance invoice", uuid4(), "DRAFT", "use"),
                ErrorCategory.STATE_CONFLICT,
                409,
            ),
            (AccountNotFoundError(uuid4()), ErrorCategory.NOT_FOUND, 404),
            (
                ConcurrentModificationError("journal_entry", uuid4(), 5.0),
                ErrorCategory.CONCURRENT_MODIFICATION,
                409,
            ),
            (IntegrityError("bad row"), ErrorCategory.INTERNAL, 500),
        ],
    )
    def test_category_and_status(self, error, category, status_code):
        assert isinstance(error, SefAccountingError)
        assert error.category == category
        assert error.status_code == status_code

    def test_subclass_hierarchy(self):
        assert issubclass(OverAllocationError, ValidationError)
        assert issubclass(AdvanceInUseError, StateConflictError)
        assert issubclass(DuplicateTaxReportError, StateConflictError)
        assert issubclass(DuplicateReferenceError, StateConflictError)
        assert issubclass(PostingAccountMissingError, ValidationError)
        assert issubclass(AccountNotFoundError, NotFoundError)

    def test_only_lock_contention_is_retryable(self):
        assert ConcurrentModificationError("advance_invoice", uuid4(), 1.0).retryable
        assert not InvalidAmountError("x", "not a number").retryable


class TestErrorBody:
    def test_to_dict(self):
        advance_id = uuid4()
        error = OverAllocationError(advance_id, Decimal("1300.00"), Decimal("1200.00"))

        assert error.to_dict() == {
            "error": "VALIDATION",
            "reason": "OVER_ALLOCATION",
            "message": f"Cannot use 1300.00 of advance {advance_id}: only 1200.00 remaining",
            "context": {
                "advance_id": str(advance_id),
                "requested": "1300.00",
                "remaining": "1200.00",
            },
        }

    def test_error_code_override(self):
        error = ValidationError("Reason is required", error_code="REASON_REQUIRED")

        assert error.error_code == "REASON_REQUIRED"
        assert ValidationError.error_code == "VALIDATION_ERROR"

    def test_not_found_message(self):
        entity_id = uuid4()

        error = AccountNotFoundError(entity_id)

        assert str(error) == f"Account not found: {entity_id}"
        assert error.context == {"id": str(entity_id)}

    def test_transition_context(self):
        entry_id = uuid4()

        error = InvalidTransitionError("journal entry", entry_id, "POSTED", "delete")

        assert error.context == {
            "kind": "journal entry",
            "id": str(entry_id),
            "status": "POSTED",
            "action": "delete",
        }
