import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from uuid import UUID, uuid4

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

PIB_PATTERN = re.compile(r"^\d{9}$")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class AdvanceInvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PAID = "PAID"
    PARTIALLY_USED = "PARTIALLY_USED"
    FULLY_USED = "FULLY_USED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (AdvanceInvoiceStatus.FULLY_USED, AdvanceInvoiceStatus.CANCELLED)


USABLE_STATUSES = (AdvanceInvoiceStatus.PAID, AdvanceInvoiceStatus.PARTIALLY_USED)


@dataclass(frozen=True)
class Partner:
    name: str
    tax_id: str
    address: str = ""

    def __post_init__(self) -> None:
        name = (self.name or "").strip()
        tax_id = (self.tax_id or "").strip()
        if not name:
            raise InvalidPartnerError(
                "Partner name is required", context={"tax_id": tax_id}
            )
        if not PIB_PATTERN.match(tax_id):
            raise InvalidPartnerError(
                f"Partner PIB must be exactly 9 digits: '{tax_id}'",
                context={"tax_id": tax_id},
            )
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "tax_id", tax_id)


@dataclass
class AdvanceAllocation:
    """One event in an advance's allocation log.

    Releases are recorded as new events with a negative amount that point at
    the allocation they compensate.
    """

    invoice_id: str
    amount: Money
    id: UUID = field(default_factory=uuid4)
    allocated_at: datetime = field(default_factory=_utc_now)
    releases_allocation_id: UUID | None = None
    note: str = ""

    @property
    def is_release(self) -> bool:
        return self.releases_allocation_id is not None


@dataclass
class AdvanceInvoice:
    company_id: UUID
    partner: Partner
    issue_date: date
    net_amount: Money
    vat_rate: VatRate
    id: UUID = field(default_factory=uuid4)
    invoice_number: str = ""
    status: AdvanceInvoiceStatus = AdvanceInvoiceStatus.DRAFT
    paid_amount: Money | None = None
    payment_date: date | None = None
    allocations: list[AdvanceAllocation] = field(default_factory=list)
    note: str = ""
    cancellation_reason: str | None = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
    issued_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.net_amount, Money):
            self.net_amount = Money(self.net_amount)
        if not self.net_amount.is_positive:
            raise InvalidAmountError(
                self.net_amount.amount, "net amount must be positive"
            )
        try:
            self.vat_rate = VatRate(int(self.vat_rate))
        except ValueError as e:
            raise ValidationError(
                f"Unsupported VAT rate: {self.vat_rate}",
                error_code="INVALID_VAT_RATE",
                context={"vat_rate": str(self.vat_rate)},
            ) from e
        if self.paid_amount is None:
            self.paid_amount = Money.zero(self.currency)

    @property
    def currency(self) -> Currency:
        return self.net_amount.currency

    @property
    def vat_amount(self) -> Money:
        return self.net_amount.percent(self.vat_rate.value)

    @property
    def total_amount(self) -> Money:
        return self.net_amount + self.vat_amount

    @property
    def used_amount(self) -> Money:
        used = Money.zero(self.currency)
        for allocation in self.allocations:
            used = used + allocation.amount
        return used

    @property
    def remaining_amount(self) -> Money:
        return self.total_amount - self.used_amount

    @property
    def linked_invoices(self) -> list[AdvanceAllocation]:
        return list(self.allocations)

    def outstanding_allocations(self) -> list[AdvanceAllocation]:
        """Allocations that have not been compensated by a release."""
        released = {
            a.releases_allocation_id for a in self.allocations if a.is_release
        }
        return [
            a for a in self.allocations if not a.is_release and a.id not in released
        ]

    def _touch(self) -> None:
        self.updated_at = _utc_now()

    def _require(self, allowed: Iterable[AdvanceInvoiceStatus], action: str) -> None:
        if self.status not in tuple(allowed):
            raise InvalidTransitionError(
                "advance invoice", self.id, self.status.value, action
            )

    def _coerce(self, amount: Money | object) -> Money:
        money = amount if isinstance(amount, Money) else Money(amount, self.currency)  # type: ignore[arg-type]
        if money.currency != self.currency:
            raise InvalidAmountError(
                money.amount,
                f"currency {money.currency.value} does not match {self.currency.value}",
            )
        return money

    def mark_issued(self) -> None:
        self._require([AdvanceInvoiceStatus.DRAFT], "issue")
        self.status = AdvanceInvoiceStatus.ISSUED
        self.issued_at = _utc_now()
        self._touch()

    def mark_paid(self, payment_date: date, amount: Money) -> None:
        self._require([AdvanceInvoiceStatus.ISSUED], "pay")
        amount = self._coerce(amount)
        if not amount.is_positive:
            raise InvalidAmountError(amount.amount, "payment must be positive")
        if amount > self.total_amount:
            raise InvalidAmountError(
                amount.amount,
                f"payment exceeds the advance total of {self.total_amount.amount}",
            )
        self.paid_amount = amount
        self.payment_date = payment_date
        self.status = AdvanceInvoiceStatus.PAID
        self.paid_at = _utc_now()
        self._touch()

    def allocate(self, invoice_id: str, amount: Money) -> AdvanceAllocation:
        """Consume part of the advance against a final invoice.

        Nothing is changed when the request is rejected.
        """
        self._require(USABLE_STATUSES, "use")
        invoice_id = (invoice_id or "").strip()
        if not invoice_id:
            raise ValidationError(
                "An invoice reference is required",
                error_code="INVALID_INVOICE_REFERENCE",
                context={"advance_id": str(self.id)},
            )
        amount = self._coerce(amount)
        if not amount.is_positive:
            raise InvalidAmountError(amount.amount, "allocation must be positive")
        remaining = self.remaining_amount
        if not remaining.is_positive:
            raise InvalidTransitionError(
                "advance invoice", self.id, self.status.value, "use"
            )
        if amount > remaining:
            raise OverAllocationError(self.id, amount.amount, remaining.amount)

        allocation = AdvanceAllocation(invoice_id=invoice_id, amount=amount)
        self.allocations.append(allocation)
        self._refresh_usage_status()
        return allocation

    def release(self, allocation_id: UUID, reason: str = "") -> AdvanceAllocation:
        """Append a compensating event for an earlier allocation."""
        self._require([AdvanceInvoiceStatus.PARTIALLY_USED], "release")
        release = self._release(allocation_id, reason)
        self._refresh_usage_status()
        return release

    def _release(self, allocation_id: UUID, reason: str) -> AdvanceAllocation:
        target = next(
            (a for a in self.allocations if a.id == allocation_id and not a.is_release),
            None,
        )
        if target is None:
            raise AllocationNotFoundError(allocation_id)
        if target not in self.outstanding_allocations():
            raise StateConflictError(
                f"Allocation {allocation_id} was already released",
                error_code="ALLOCATION_RELEASED",
                context={"allocation_id": str(allocation_id)},
            )
        release = AdvanceAllocation(
            invoice_id=target.invoice_id,
            amount=-target.amount,
            releases_allocation_id=target.id,
            note=reason.strip(),
        )
        self.allocations.append(release)
        self._touch()
        return release

    def cancel(self, reason: str, force: bool = False) -> list[AdvanceAllocation]:
        """Cancel the advance.

        An advance with allocated amounts is only cancelled with ``force``; the
        outstanding allocations are then released first and the release
        events are returned.
        """
        if self.status.is_terminal:
            raise InvalidTransitionError(
                "advance invoice", self.id, self.status.value, "cancel"
            )
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError(
                "A cancellation requires a reason",
                error_code="REASON_REQUIRED",
                context={"advance_id": str(self.id)},
            )
        released: list[AdvanceAllocation] = []
        if not self.used_amount.is_zero:
            if not force:
                raise AdvanceInUseError(self.id, self.used_amount.amount)
            for allocation in self.outstanding_allocations():
                released.append(
                    self._release(allocation.id, f"cancelled: {reason}")
                )
        self.status = AdvanceInvoiceStatus.CANCELLED
        self.cancellation_reason = reason
        self.cancelled_at = _utc_now()
        self._touch()
        return released

    def _refresh_usage_status(self) -> None:
        if self.used_amount.is_zero:
            self.status = AdvanceInvoiceStatus.PAID
        elif self.remaining_amount.is_zero:
            self.status = AdvanceInvoiceStatus.FULLY_USED
        else:
            self.status = AdvanceInvoiceStatus.PARTIALLY_USED
        self._touch()

    def verify_invariants(self) -> None:
        used = self.used_amount
        if used.is_negative or used > self.total_amount:
            raise IntegrityError(
                f"Advance {self.invoice_number or self.id} has inconsistent allocations",
                context={
                    "advance_id": str(self.id),
                    "used_amount": str(used.amount),
                    "total_amount": str(self.total_amount.amount),
                },
            )


@dataclass
class AdvanceSummary:
    count: int
    total_amount: Money
    used_amount: Money
    remaining_amount: Money
    by_status: dict[AdvanceInvoiceStatus, int]

    @classmethod
    def from_advances(
        cls, advances: Iterable[AdvanceInvoice], currency: Currency = Currency.RSD
    ) -> "AdvanceSummary":
        """Totals only include advances in ``currency`` that are not cancelled."""
        count = 0
        total = used = remaining = Money.zero(currency)
        by_status = {status: 0 for status in AdvanceInvoiceStatus}
        for advance in advances:
            count += 1
            by_status[advance.status] += 1
            if (
                advance.currency != currency
                or advance.status == AdvanceInvoiceStatus.CANCELLED
            ):
                continue
            total = total + advance.total_amount
            used = used + advance.used_amount
            remaining = remaining + advance.remaining_amount
        return cls(
            count=count,
            total_amount=total,
            used_amount=used,
            remaining_amount=remaining,
            by_status=by_status,
        )
