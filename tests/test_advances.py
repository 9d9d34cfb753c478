from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from sef_accounting.domain.advances import (
    AdvanceAllocation,
    AdvanceInvoice,
    AdvanceInvoiceStatus,
    AdvanceSummary,
    Partner,
)
from sef_accounting.domain.value_objects import Currency, Money, VatRate
from sef_accounting.exceptions import (
    AdvanceInUseError,
    AllocationNotFoundError,
    IntegrityError,
    InvalidAmountError,
    InvalidPartnerError,
    InvalidTransitionError,
    OverAllocationError,
    StateConflictError,
    ValidationError,
)


def rsd(amount: str) -> Money:
    return Money(Decimal(amount))


def _advance(net: str = "1000.00", rate: int = 20, **kwargs) -> AdvanceInvoice:
    return AdvanceInvoice(
        company_id=uuid4(),
        partner=Partner(name="Kupac d.o.o.", tax_id="101234567"),
        issue_date=date(2024, 3, 1),
        net_amount=rsd(net),
        vat_rate=rate,
        **kwargs,
    )


@pytest.fixture
def paid() -> AdvanceInvoice:
    advance = _advance()
    advance.mark_issued()
    advance.mark_paid(date(2024, 3, 5), rsd("1200.00"))
    return advance


class TestPartner:
    def test_valid_partner_is_trimmed(self):
        partner = Partner(name="  Kupac  ", tax_id=" 101234567 ")

        assert partner.name == "Kupac"
        assert partner.tax_id == "101234567"

    @pytest.mark.parametrize("tax_id", ["", "12345678", "1234567890", "10123456a"])
    def test_pib_must_be_nine_digits(self, tax_id):
        with pytest.raises(InvalidPartnerError) as exc_info:
            Partner(name="Kupac", tax_id=tax_id)

        assert exc_info.value.error_code == "INVALID_PARTNER"

    def test_name_required(self):
        with pytest.raises(InvalidPartnerError):
            Partner(name=" ", tax_id="101234567")


class TestAdvanceAmounts:
    def test_vat_and_total(self):
        advance = _advance()

        assert advance.vat_amount == rsd("200.00")
        assert advance.total_amount == rsd("1200.00")
        assert advance.remaining_amount == rsd("1200.00")
        assert advance.used_amount.is_zero
        assert advance.status == AdvanceInvoiceStatus.DRAFT

    def test_reduced_rate_rounds_half_up(self):
        advance = _advance("333.35", 10)

        assert advance.vat_amount == rsd("33.34")
        assert advance.total_amount == rsd("366.69")

    def test_exempt_rate(self):
        advance = _advance("500.00", 0)

        assert advance.vat_rate == VatRate.EXEMPT
        assert advance.total_amount == rsd("500.00")

    def test_non_positive_net_rejected(self):
        with pytest.raises(InvalidAmountError):
            _advance("0")

    def test_unsupported_rate_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _advance(rate=18)

        assert exc_info.value.error_code == "INVALID_VAT_RATE"

    def test_currency_follows_net_amount(self):
        advance = AdvanceInvoice(
            company_id=uuid4(),
            partner=Partner(name="Kupac", tax_id="101234567"),
            issue_date=date(2024, 3, 1),
            net_amount=Money(Decimal("100.00"), Currency.EUR),
            vat_rate=20,
        )

        assert advance.currency == Currency.EUR
        assert advance.paid_amount == Money.zero(Currency.EUR)


class TestIssueAndPay:
    def test_lifecycle(self):
        advance = _advance()

        advance.mark_issued()
        assert advance.status == AdvanceInvoiceStatus.ISSUED
        assert advance.issued_at is not None

        advance.mark_paid(date(2024, 3, 5), rsd("1200.00"))
        assert advance.status == AdvanceInvoiceStatus.PAID
        assert advance.paid_amount == rsd("1200.00")
        assert advance.payment_date == date(2024, 3, 5)

    def test_issue_twice_rejected(self):
        advance = _advance()
        advance.mark_issued()

        with pytest.raises(InvalidTransitionError):
            advance.mark_issued()

    def test_pay_requires_issued(self):
        with pytest.raises(InvalidTransitionError):
            _advance().mark_paid(date(2024, 3, 5), rsd("1200.00"))

    def test_overpayment_rejected(self):
        advance = _advance()
        advance.mark_issued()

        with pytest.raises(InvalidAmountError, match="exceeds"):
            advance.mark_paid(date(2024, 3, 5), rsd("1200.01"))

        assert advance.status == AdvanceInvoiceStatus.ISSUED

    def test_zero_payment_rejected(self):
        advance = _advance()
        advance.mark_issued()

        with pytest.raises(InvalidAmountError):
            advance.mark_paid(date(2024, 3, 5), rsd("0"))


class TestAllocate:
    def test_partial_then_full_use(self, paid: AdvanceInvoice):
        first = paid.allocate("FA-2024-001", rsd("500.00"))

        assert paid.status == AdvanceInvoiceStatus.PARTIALLY_USED
        assert paid.remaining_amount == rsd("700.00")
        assert first.invoice_id == "FA-2024-001"

        paid.allocate("FA-2024-002", rsd("700.00"))

        assert paid.status == AdvanceInvoiceStatus.FULLY_USED
        assert paid.remaining_amount.is_zero
        assert [a.invoice_id for a in paid.linked_invoices] == ["FA-2024-001", "FA-2024-002"]

    def test_over_allocation_leaves_state_unchanged(self, paid: AdvanceInvoice):
        paid.allocate("FA-2024-001", rsd("500.00"))

        with pytest.raises(OverAllocationError) as exc_info:
            paid.allocate("FA-2024-002", rsd("800.00"))

        assert exc_info.value.context["remaining"] == "700.00"
        assert paid.used_amount == rsd("500.00")
        assert len(paid.allocations) == 1
        assert paid.status == AdvanceInvoiceStatus.PARTIALLY_USED

    def test_fully_used_advance_rejects_use(self, paid: AdvanceInvoice):
        paid.allocate("FA-2024-001", rsd("1200.00"))

        with pytest.raises(InvalidTransitionError):
            paid.allocate("FA-2024-002", rsd("0.01"))

    def test_unpaid_advance_rejects_use(self):
        advance = _advance()
        advance.mark_issued()

        with pytest.raises(InvalidTransitionError):
            advance.allocate("FA-2024-001", rsd("100.00"))

    def test_non_positive_amount_rejected(self, paid: AdvanceInvoice):
        with pytest.raises(InvalidAmountError):
            paid.allocate("FA-2024-001", rsd("0"))

    def test_invoice_reference_required(self, paid: AdvanceInvoice):
        with pytest.raises(ValidationError) as exc_info:
            paid.allocate("  ", rsd("10.00"))

        assert exc_info.value.error_code == "INVALID_INVOICE_REFERENCE"

    def test_currency_mismatch_rejected(self, paid: AdvanceInvoice):
        with pytest.raises(InvalidAmountError, match="currency"):
            paid.allocate("FA-2024-001", Money(Decimal("10.00"), Currency.EUR))

    def test_plain_decimal_uses_advance_currency(self, paid: AdvanceInvoice):
        allocation = paid.allocate("FA-2024-001", Decimal("10.00"))

        assert allocation.amount == rsd("10.00")


class TestRelease:
    def test_release_restores_remaining(self, paid: AdvanceInvoice):
        first = paid.allocate("FA-2024-001", rsd("300.00"))
        paid.allocate("FA-2024-002", rsd("200.00"))

        release = paid.release(first.id, "Faktura stornirana")

        assert release.is_release
        assert release.amount == rsd("-300.00")
        assert release.releases_allocation_id == first.id
        assert release.note == "Faktura stornirana"
        assert paid.used_amount == rsd("200.00")
        assert paid.status == AdvanceInvoiceStatus.PARTIALLY_USED
        assert len(paid.allocations) == 3

    def test_releasing_last_allocation_returns_to_paid(self, paid: AdvanceInvoice):
        allocation = paid.allocate("FA-2024-001", rsd("300.00"))

        paid.release(allocation.id)

        assert paid.status == AdvanceInvoiceStatus.PAID
        assert paid.used_amount.is_zero

    def test_double_release_rejected(self, paid: AdvanceInvoice):
        first = paid.allocate("FA-2024-001", rsd("300.00"))
        paid.allocate("FA-2024-002", rsd("200.00"))
        paid.release(first.id)

        with pytest.raises(StateConflictError) as exc_info:
            paid.release(first.id)

        assert exc_info.value.error_code == "ALLOCATION_RELEASED"

    def test_unknown_allocation(self, paid: AdvanceInvoice):
        paid.allocate("FA-2024-001", rsd("300.00"))

        with pytest.raises(AllocationNotFoundError):
            paid.release(uuid4())

    def test_release_event_cannot_be_released(self, paid: AdvanceInvoice):
        first = paid.allocate("FA-2024-001", rsd("300.00"))
        paid.allocate("FA-2024-002", rsd("200.00"))
        release = paid.release(first.id)

        with pytest.raises(AllocationNotFoundError):
            paid.release(release.id)

    def test_fully_used_advance_cannot_release(self, paid: AdvanceInvoice):
        allocation = paid.allocate("FA-2024-001", rsd("1200.00"))

        with pytest.raises(InvalidTransitionError):
            paid.release(allocation.id)


class TestCancel:
    def test_cancel_draft(self):
        advance = _advance()

        released = advance.cancel("Greška u iznosu")

        assert released == []
        assert advance.status == AdvanceInvoiceStatus.CANCELLED
        assert advance.cancellation_reason == "Greška u iznosu"
        assert advance.cancelled_at is not None

    def test_cancel_with_allocations_requires_force(self, paid: AdvanceInvoice):
        paid.allocate("FA-2024-001", rsd("300.00"))

        with pytest.raises(AdvanceInUseError) as exc_info:
            paid.cancel("Otkazano")

        assert exc_info.value.status_code == 409
        assert paid.status == AdvanceInvoiceStatus.PARTIALLY_USED

    def test_forced_cancel_releases_outstanding(self, paid: AdvanceInvoice):
        first = paid.allocate("FA-2024-001", rsd("300.00"))
        second = paid.allocate("FA-2024-002", rsd("200.00"))

        released = paid.cancel("Otkazano", force=True)

        assert {r.releases_allocation_id for r in released} == {first.id, second.id}
        assert paid.used_amount.is_zero
        assert paid.status == AdvanceInvoiceStatus.CANCELLED

    def test_cancel_after_releasing_everything(self, paid: AdvanceInvoice):
        allocation = paid.allocate("FA-2024-001", rsd("300.00"))
        paid.release(allocation.id)

        paid.cancel("Otkazano")

        assert paid.status == AdvanceInvoiceStatus.CANCELLED

    def test_terminal_states_cannot_cancel(self, paid: AdvanceInvoice):
        paid.allocate("FA-2024-001", rsd("1200.00"))

        with pytest.raises(InvalidTransitionError):
            paid.cancel("Otkazano", force=True)

    def test_cancel_twice_rejected(self):
        advance = _advance()
        advance.cancel("Otkazano")

        with pytest.raises(InvalidTransitionError):
            advance.cancel("Opet")

    def test_reason_required(self):
        with pytest.raises(ValidationError) as exc_info:
            _advance().cancel("")

        assert exc_info.value.error_code == "REASON_REQUIRED"


class TestVerifyInvariants:
    def test_consistent_advance_passes(self, paid: AdvanceInvoice):
        paid.allocate("FA-2024-001", rsd("1200.00"))

        paid.verify_invariants()

    def test_overused_advance_detected(self, paid: AdvanceInvoice):
        paid.allocate("FA-2024-001", rsd("1200.00"))
        paid.allocations.append(AdvanceAllocation(invoice_id="FA-X", amount=rsd("1.00")))

        with pytest.raises(IntegrityError):
            paid.verify_invariants()


class TestAdvanceSummary:
    def test_totals_skip_cancelled_and_foreign_currency(self, paid: AdvanceInvoice):
        paid.allocate("FA-2024-001", rsd("200.00"))
        cancelled = _advance("50.00")
        cancelled.cancel("Otkazano")
        euro = AdvanceInvoice(
            company_id=uuid4(),
            partner=Partner(name="Kupac", tax_id="101234567"),
            issue_date=date(2024, 3, 1),
            net_amount=Money(Decimal("100.00"), Currency.EUR),
            vat_rate=20,
        )

        summary = AdvanceSummary.from_advances([paid, cancelled, euro])

        assert summary.count == 3
        assert summary.total_amount == rsd("1200.00")
        assert summary.used_amount == rsd("200.00")
        assert summary.remaining_amount == rsd("1000.00")
        assert summary.by_status[AdvanceInvoiceStatus.PARTIALLY_USED] == 1
        assert summary.by_status[AdvanceInvoiceStatus.CANCELLED] == 1
        assert summary.by_status[AdvanceInvoiceStatus.DRAFT] == 1
