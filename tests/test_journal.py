from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from sef_accounting.domain.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalEntryType,
    JournalLine,
)
from sef_accounting.domain.value_objects import Currency, Money
from sef_accounting.exceptions import (
    IntegrityError,
    InvalidJournalLineError,
    InvalidTransitionError,
    UnbalancedEntryError,
    ValidationError,
)


def _line(debit: str = "0", credit: str = "0", currency: Currency = Currency.RSD) -> JournalLine:
    return JournalLine(
        account_id=uuid4(),
        debit=Money(Decimal(debit), currency),
        credit=Money(Decimal(credit), currency),
    )


def _entry(*lines: JournalLine) -> JournalEntry:
    return JournalEntry(
        company_id=uuid4(),
        entry_date=date(2024, 3, 15),
        lines=list(lines),
        description="Prodaja robe",
    )


@pytest.fixture
def balanced_entry() -> JournalEntry:
    return _entry(_line(debit="1200.00"), _line(credit="1000.00"), _line(credit="200.00"))


class TestJournalLine:
    def test_plain_amounts_become_money(self):
        line = JournalLine(account_id=uuid4(), debit=Decimal("100"))

        assert line.debit == Money(Decimal("100.00"))
        assert line.credit.is_zero
        assert line.is_debit
        assert not line.is_credit

    def test_net_amount(self):
        assert _line(credit="40").net_amount == Money(Decimal("-40"))

    def test_both_sides_rejected(self):
        with pytest.raises(InvalidJournalLineError, match="both"):
            _line(debit="1", credit="1").validate()

    def test_empty_line_rejected(self):
        with pytest.raises(InvalidJournalLineError, match="neither"):
            _line().validate()

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidJournalLineError) as exc_info:
            _line(debit="-5").validate(position=2)

        assert exc_info.value.error_code == "INVALID_LINE"
        assert exc_info.value.context["line"] == 2

    def test_fractional_cents_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            JournalLine(account_id=uuid4(), debit=Decimal("10.001"))

        assert exc_info.value.error_code == "INVALID_AMOUNT"

    def test_mirrored_swaps_sides(self):
        line = _line(debit="75.50")

        mirrored = line.mirrored()

        assert mirrored.credit == line.debit
        assert mirrored.debit.is_zero
        assert mirrored.account_id == line.account_id
        assert mirrored.id != line.id


class TestJournalEntryValidation:
    def test_balanced_entry_passes(self, balanced_entry: JournalEntry):
        balanced_entry.validate()

        assert balanced_entry.is_balanced
        assert balanced_entry.total_debit == Money(Decimal("1200.00"))
        assert balanced_entry.total_credit == Money(Decimal("1200.00"))

    def test_single_line_rejected(self):
        with pytest.raises(InvalidJournalLineError, match="at least 2"):
            _entry(_line(debit="10")).validate()

    def test_unbalanced_rejected(self):
        entry = _entry(_line(debit="100"), _line(credit="90"))

        with pytest.raises(UnbalancedEntryError) as exc_info:
            entry.validate()

        assert exc_info.value.error_code == "UNBALANCED"
        assert exc_info.value.context == {"debit_total": "100.00", "credit_total": "90.00"}

    def test_mixed_currencies_rejected(self):
        entry = _entry(_line(debit="10"), _line(credit="10", currency=Currency.EUR))

        with pytest.raises(InvalidJournalLineError, match="same currency"):
            entry.validate()

    def test_validate_lines_ignores_balance(self):
        _entry(_line(debit="100"), _line(credit="90")).validate_lines()

    def test_fiscal_year_from_entry_date(self, balanced_entry: JournalEntry):
        assert balanced_entry.fiscal_year == 2024


class TestJournalEntryLifecycle:
    def test_post(self, balanced_entry: JournalEntry):
        balanced_entry.post()

        assert balanced_entry.status == JournalEntryStatus.POSTED
        assert balanced_entry.posted_at is not None

    def test_post_twice_rejected(self, balanced_entry: JournalEntry):
        balanced_entry.post()

        with pytest.raises(InvalidTransitionError) as exc_info:
            balanced_entry.post()

        assert exc_info.value.context["status"] == "POSTED"

    def test_replace_lines_on_draft(self, balanced_entry: JournalEntry):
        new_lines = [_line(debit="50"), _line(credit="50")]

        balanced_entry.replace_lines(new_lines, description="Ispravka", entry_date=date(2024, 3, 20))

        assert balanced_entry.lines == new_lines
        assert balanced_entry.description == "Ispravka"
        assert balanced_entry.entry_date == date(2024, 3, 20)

    def test_replace_lines_validates(self, balanced_entry: JournalEntry):
        original = list(balanced_entry.lines)

        with pytest.raises(UnbalancedEntryError):
            balanced_entry.replace_lines([_line(debit="50"), _line(credit="40")])

        assert balanced_entry.lines == original

    def test_posted_entry_is_immutable(self, balanced_entry: JournalEntry):
        balanced_entry.post()

        with pytest.raises(InvalidTransitionError):
            balanced_entry.replace_lines([_line(debit="50"), _line(credit="50")])

    def test_only_drafts_are_deletable(self, balanced_entry: JournalEntry):
        balanced_entry.ensure_deletable()
        balanced_entry.post()

        with pytest.raises(InvalidTransitionError):
            balanced_entry.ensure_deletable()


class TestReversal:
    def test_build_reversal_mirrors_lines(self, balanced_entry: JournalEntry):
        balanced_entry.post()

        reversal = balanced_entry.build_reversal("Pogrešan iznos", date(2024, 4, 1))

        assert reversal.status == JournalEntryStatus.POSTED
        assert reversal.reversal_of == balanced_entry.id
        assert reversal.entry_type == JournalEntryType.ADJUSTMENT
        assert reversal.entry_date == date(2024, 4, 1)
        assert reversal.description.startswith("STORNO:")
        assert reversal.total_debit == balanced_entry.total_credit
        for original, mirrored in zip(balanced_entry.lines, reversal.lines):
            assert mirrored.debit == original.credit
            assert mirrored.credit == original.debit

    def test_build_reversal_leaves_original_untouched(self, balanced_entry: JournalEntry):
        balanced_entry.post()

        balanced_entry.build_reversal("Greška")

        assert balanced_entry.status == JournalEntryStatus.POSTED

    def test_draft_cannot_be_reversed(self, balanced_entry: JournalEntry):
        with pytest.raises(InvalidTransitionError):
            balanced_entry.build_reversal("Greška")

    def test_reason_required(self, balanced_entry: JournalEntry):
        balanced_entry.post()

        with pytest.raises(ValidationError) as exc_info:
            balanced_entry.build_reversal("   ")

        assert exc_info.value.error_code == "REASON_REQUIRED"

    def test_mark_reversed(self, balanced_entry: JournalEntry):
        balanced_entry.post()

        balanced_entry.mark_reversed(" Greška ")

        assert balanced_entry.status == JournalEntryStatus.REVERSED
        assert balanced_entry.reversal_reason == "Greška"
        assert balanced_entry.reversed_at is not None

        with pytest.raises(InvalidTransitionError):
            balanced_entry.build_reversal("Opet")


class TestVerifyTotals:
    def test_matching_totals_pass(self, balanced_entry: JournalEntry):
        balanced_entry.verify_totals(Decimal("1200.00"), Decimal("1200.00"))

    def test_mismatch_raises_integrity_error(self, balanced_entry: JournalEntry):
        with pytest.raises(IntegrityError) as exc_info:
            balanced_entry.verify_totals(Decimal("1200.00"), Decimal("1100.00"))

        assert exc_info.value.status_code == 500
