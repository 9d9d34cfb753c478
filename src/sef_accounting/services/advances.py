"""Advance invoice (avansni račun) issuance, payment and allocation."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sef_accounting.domain.advances import (
    USABLE_STATUSES,
    AdvanceAllocation,
    AdvanceInvoice,
    AdvanceInvoiceStatus,
    AdvanceSummary,
    Partner,
)
from sef_accounting.domain.value_objects import Currency, Money, VatRate
from sef_accounting.exceptions import AdvanceInvoiceNotFoundError
from sef_accounting.logging_config import get_logger
from sef_accounting.repositories.interfaces import (
    AdvanceInvoiceRepository,
    SequenceRepository,
    TransactionManager,
)
from sef_accounting.services.interfaces import AdvanceInvoiceService

logger = get_logger(__name__)

LOCK_KIND = "advance_invoice"


def format_advance_number(year: int, sequence: int) -> str:
    return f"AV-{year}-{sequence:04d}"


class AdvanceInvoiceServiceImpl(AdvanceInvoiceService):
    """Implementation of AdvanceInvoiceService.

    Allocations are appended to a log and never rewritten; every mutation of
    one advance is serialized through its entity lock.
    """

    def __init__(
        self,
        transactions: TransactionManager,
        advance_repo: AdvanceInvoiceRepository,
        sequence_repo: SequenceRepository,
    ) -> None:
        self._transactions = transactions
        self._advance_repo = advance_repo
        self._sequence_repo = sequence_repo

    def _load(self, advance_id: UUID) -> AdvanceInvoice:
        advance = self._advance_repo.get(advance_id)
        if advance is None:
            raise AdvanceInvoiceNotFoundError(advance_id)
        return advance

    def issue(
        self,
        company_id: UUID,
        partner: Partner,
        issue_date: date,
        net_amount: Decimal,
        vat_rate: VatRate,
        currency: Currency = Currency.RSD,
        note: str = "",
    ) -> AdvanceInvoice:
        """Create a DRAFT advance with the next ``AV-YYYY-NNNN`` number."""
        advance = AdvanceInvoice(
            company_id=company_id,
            partner=partner,
            issue_date=issue_date,
            net_amount=Money(net_amount, currency),
            vat_rate=vat_rate,
            note=note.strip(),
        )
        with self._transactions.transaction():
            sequence = self._sequence_repo.next_value(
                company_id, f"advance-{issue_date.year}"
            )
            advance.invoice_number = format_advance_number(issue_date.year, sequence)
            self._advance_repo.add(advance)

        logger.info(
            "advance_invoice_issued",
            advance_id=str(advance.id),
            invoice_number=advance.invoice_number,
            partner_tax_id=partner.tax_id,
            total=str(advance.total_amount.amount),
        )
        return advance

    def mark_issued(self, advance_id: UUID) -> AdvanceInvoice:
        with self._transactions.entity_locks.hold(LOCK_KIND, advance_id):
            with self._transactions.transaction():
                advance = self._load(advance_id)
                advance.mark_issued()
                self._advance_repo.update(advance)
        logger.info("advance_invoice_sent", advance_id=str(advance_id))
        return advance

    def mark_paid(
        self, advance_id: UUID, payment_date: date, amount: Decimal
    ) -> AdvanceInvoice:
        with self._transactions.entity_locks.hold(LOCK_KIND, advance_id):
            with self._transactions.transaction():
                advance = self._load(advance_id)
                advance.mark_paid(payment_date, Money(amount, advance.currency))
                self._advance_repo.update(advance)
        logger.info(
            "advance_invoice_paid",
            advance_id=str(advance_id),
            amount=str(advance.paid_amount.amount),
        )
        return advance

    def use(
        self, advance_id: UUID, invoice_id: str, amount: Decimal
    ) -> tuple[AdvanceInvoice, AdvanceAllocation]:
        """Consume ``amount`` of the advance against a final invoice.

        Raises:
            InvalidTransitionError: advance not PAID or PARTIALLY_USED, or nothing remains
            OverAllocationError: amount exceeds the remaining amount
            ConcurrentModificationError: another request holds the advance
        """
        with self._transactions.entity_locks.hold(LOCK_KIND, advance_id):
            with self._transactions.transaction():
                advance = self._load(advance_id)
                allocation = advance.allocate(invoice_id, Money(amount, advance.currency))
                self._advance_repo.add_allocation(advance.id, allocation)
                self._advance_repo.update(advance)

        logger.info(
            "advance_allocated",
            advance_id=str(advance_id),
            invoice_id=allocation.invoice_id,
            amount=str(allocation.amount.amount),
            remaining=str(advance.remaining_amount.amount),
            status=advance.status.value,
        )
        return advance, allocation

    def release(
        self, advance_id: UUID, allocation_id: UUID, reason: str = ""
    ) -> tuple[AdvanceInvoice, AdvanceAllocation]:
        with self._transactions.entity_locks.hold(LOCK_KIND, advance_id):
            with self._transactions.transaction():
                advance = self._load(advance_id)
                release = advance.release(allocation_id, reason)
                self._advance_repo.add_allocation(advance.id, release)
                self._advance_repo.update(advance)

        logger.info(
            "advance_allocation_released",
            advance_id=str(advance_id),
            allocation_id=str(allocation_id),
            amount=str(release.amount.amount),
            status=advance.status.value,
        )
        return advance, release

    def cancel(self, advance_id: UUID, reason: str, force: bool = False) -> AdvanceInvoice:
        with self._transactions.entity_locks.hold(LOCK_KIND, advance_id):
            with self._transactions.transaction():
                advance = self._load(advance_id)
                released = advance.cancel(reason, force=force)
                for release in released:
                    self._advance_repo.add_allocation(advance.id, release)
                self._advance_repo.update(advance)

        logger.info(
            "advance_invoice_cancelled",
            advance_id=str(advance_id),
            forced=force,
            released_allocations=len(released),
        )
        return advance

    def get(self, advance_id: UUID) -> AdvanceInvoice:
        return self._load(advance_id)

    def list_advances(
        self,
        company_id: UUID,
        status: AdvanceInvoiceStatus | None = None,
        partner_tax_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[AdvanceInvoice]:
        return list(
            self._advance_repo.list_by_company(
                company_id, status, partner_tax_id, start_date, end_date
            )
        )

    def available_for_partner(
        self, company_id: UUID, partner_tax_id: str
    ) -> list[AdvanceInvoice]:
        """Advances of a partner that can still be consumed, oldest first."""
        return [
            advance
            for advance in self._advance_repo.list_by_company(
                company_id, partner_tax_id=partner_tax_id.strip()
            )
            if advance.status in USABLE_STATUSES and advance.remaining_amount.is_positive
        ]

    def summary(
        self, company_id: UUID, currency: Currency = Currency.RSD
    ) -> AdvanceSummary:
        return AdvanceSummary.from_advances(
            self._advance_repo.list_by_company(company_id), currency
        )
