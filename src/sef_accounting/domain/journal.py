from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sef_accounting.domain.value_objects import Currency, Money
from sef_accounting.exceptions import (
    IntegrityError,
    InvalidJournalLineError,
    InvalidTransitionError,
    UnbalancedEntryError,
    ValidationError,
)

MIN_LINES = 2


def _utc_now() -> datetime:
    return datetime.now(UTC)


class JournalEntryType(str, Enum):
    GENERAL = "GENERAL"
    SALES = "SALES"
    PURCHASE = "PURCHASE"
    CASH = "CASH"
    BANK = "BANK"
    ADJUSTMENT = "ADJUSTMENT"
    CLOSING = "CLOSING"


class JournalEntryStatus(str, Enum):
    DRAFT = "DRAFT"
    POSTED = "POSTED"
    REVERSED = "REVERSED"


@dataclass
class JournalLine:
    account_id: UUID
    debit: Money = field(default_factory=Money.zero)
    credit: Money = field(default_factory=Money.zero)
    description: str = ""
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if not isinstance(self.debit, Money):
            self.debit = Money(self.debit)
        if not isinstance(self.credit, Money):
            self.credit = Money(self.credit)

    @property
    def net_amount(self) -> Money:
        return self.debit - self.credit

    @property
    def is_debit(self) -> bool:
        return self.debit.is_positive and self.credit.is_zero

    @property
    def is_credit(self) -> bool:
        return self.credit.is_positive and self.debit.is_zero

    def validate(self, position: int | None = None) -> None:
        """Exactly one side must be positive and the other exactly zero."""
        context = {"account_id": str(self.account_id)}
        if position is not None:
            context["line"] = position
        if self.debit.is_negative or self.credit.is_negative:
            raise InvalidJournalLineError(
                "Journal line amounts must not be negative", context=context
            )
        if not self.debit.is_zero and not self.credit.is_zero:
            raise InvalidJournalLineError(
                "Journal line has both a debit and a credit amount", context=context
            )
        if self.debit.is_zero and self.credit.is_zero:
            raise InvalidJournalLineError(
                "Journal line has neither a debit nor a credit amount", context=context
            )

    def mirrored(self) -> "JournalLine":
        return JournalLine(
            account_id=self.account_id,
            debit=self.credit,
            credit=self.debit,
            description=self.description,
        )


@dataclass
class JournalEntry:
    company_id: UUID
    entry_date: date
    lines: list[JournalLine] = field(default_factory=list)
    id: UUID = field(default_factory=uuid4)
    entry_number: str = ""
    entry_type: JournalEntryType = JournalEntryType.GENERAL
    status: JournalEntryStatus = JournalEntryStatus.DRAFT
    description: str = ""
    created_at: datetime = field(default_factory=_utc_now)
    posted_at: datetime | None = None
    reversed_at: datetime | None = None
    reversal_of: UUID | None = None
    reversal_reason: str | None = None
    # Source document booked by this entry, e.g. ("invoice", "<SEF id>").
    reference_type: str | None = None
    reference_id: str | None = None

    @property
    def currency(self) -> Currency:
        if not self.lines:
            return Currency.RSD
        return self.lines[0].debit.currency

    @property
    def total_debit(self) -> Money:
        total = Money.zero(self.currency)
        for line in self.lines:
            total = total + line.debit
        return total

    @property
    def total_credit(self) -> Money:
        total = Money.zero(self.currency)
        for line in self.lines:
            total = total + line.credit
        return total

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit

    @property
    def fiscal_year(self) -> int:
        return self.entry_date.year

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of is not None

    @property
    def account_ids(self) -> set[UUID]:
        return {line.account_id for line in self.lines}

    def validate_lines(self) -> None:
        """Check line count, line shape and the single-currency rule."""
        if len(self.lines) < MIN_LINES:
            raise InvalidJournalLineError(
                f"A journal entry needs at least {MIN_LINES} lines",
                context={"line_count": len(self.lines)},
            )
        currencies = set()
        for position, line in enumerate(self.lines, start=1):
            line.validate(position)
            currencies.add(line.debit.currency)
            currencies.add(line.credit.currency)
        if len(currencies) > 1:
            raise InvalidJournalLineError(
                "All journal lines must use the same currency",
                context={"currencies": sorted(c.value for c in currencies)},
            )

    def validate(self) -> None:
        """Check line shape and the balance invariant.

        Raises:
            InvalidJournalLineError: fewer than two lines, or a malformed line
            UnbalancedEntryError: total debit differs from total credit
        """
        self.validate_lines()
        if not self.is_balanced:
            raise UnbalancedEntryError(
                self.total_debit.amount, self.total_credit.amount
            )

    def _require(self, expected: JournalEntryStatus, action: str) -> None:
        if self.status != expected:
            raise InvalidTransitionError(
                "journal entry", self.id, self.status.value, action
            )

    def replace_lines(
        self,
        lines: Sequence[JournalLine],
        description: str | None = None,
        entry_date: date | None = None,
    ) -> None:
        """Swap the content of a draft; posted entries are immutable."""
        self._require(JournalEntryStatus.DRAFT, "update")
        JournalEntry(self.company_id, self.entry_date, list(lines)).validate()
        self.lines = list(lines)
        if description is not None:
            self.description = description
        if entry_date is not None:
            self.entry_date = entry_date

    def post(self) -> None:
        self._require(JournalEntryStatus.DRAFT, "post")
        self.validate()
        self.status = JournalEntryStatus.POSTED
        self.posted_at = _utc_now()

    def ensure_deletable(self) -> None:
        self._require(JournalEntryStatus.DRAFT, "delete")

    def build_reversal(
        self,
        reason: str,
        reversal_date: date | None = None,
        entry_type: JournalEntryType = JournalEntryType.ADJUSTMENT,
    ) -> "JournalEntry":
        """Build the self-posting storno entry for this posted entry.

        The returned entry mirrors every line (debits become credits and vice
        versa) and points back at this entry through ``reversal_of``. This
        entry is left untouched; call :meth:`mark_reversed` once the storno is
        persisted.
        """
        self._require(JournalEntryStatus.POSTED, "reverse")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError(
                "A reversal requires a reason",
                error_code="REASON_REQUIRED",
                context={"entry_id": str(self.id)},
            )
        reversal = JournalEntry(
            company_id=self.company_id,
            entry_date=reversal_date or date.today(),
            lines=[line.mirrored() for line in self.lines],
            entry_type=entry_type,
            description=f"STORNO: {self.description} - {reason}",
            reversal_of=self.id,
            reversal_reason=reason,
        )
        reversal.validate()
        reversal.status = JournalEntryStatus.POSTED
        reversal.posted_at = _utc_now()
        return reversal

    def mark_reversed(self, reason: str) -> None:
        self._require(JournalEntryStatus.POSTED, "reverse")
        self.status = JournalEntryStatus.REVERSED
        self.reversed_at = _utc_now()
        self.reversal_reason = reason.strip()

    def verify_totals(self, stored_debit: Decimal, stored_credit: Decimal) -> None:
        """Compare persisted totals against the lines they were derived from."""
        if (
            stored_debit != self.total_debit.amount
            or stored_credit != self.total_credit.amount
            or stored_debit != stored_credit
        ):
            raise IntegrityError(
                f"Journal entry {self.entry_number or self.id} totals do not match its lines",
                context={
                    "entry_id": str(self.id),
                    "stored_debit": str(stored_debit),
                    "stored_credit": str(stored_credit),
                    "line_debit": str(self.total_debit.amount),
                    "line_credit": str(self.total_credit.amount),
                },
            )
