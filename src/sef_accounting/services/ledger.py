"""LedgerService implementation for double-entry bookkeeping."""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sef_accounting.domain.accounts import Account
from sef_accounting.domain.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalEntryType,
    JournalLine,
)
from sef_accounting.domain.value_objects import (
    BalanceSide,
    Currency,
    Money,
    parse_amount,
)
from sef_accounting.exceptions import (
    AccountNotFoundError,
    DuplicateReferenceError,
    InactiveAccountError,
    IntegrityError,
    InvalidAmountError,
    JournalEntryNotFoundError,
    PostingAccountMissingError,
    ValidationError,
)
from sef_accounting.logging_config import get_logger
from sef_accounting.repositories.interfaces import (
    AccountRepository,
    JournalEntryRepository,
    SequenceRepository,
    TransactionManager,
)
from sef_accounting.services.interfaces import (
    GeneralLedgerLine,
    LedgerService,
    TrialBalance,
    TrialBalanceRow,
)

logger = get_logger(__name__)

LOCK_KIND = "journal_entry"
COUNTED_STATUSES = (JournalEntryStatus.POSTED, JournalEntryStatus.REVERSED)

INVOICE_REFERENCE = "invoice"
# Code prefixes of the accounts an outgoing invoice is booked to.
RECEIVABLE_PREFIX = "204"
REVENUE_PREFIX = "61"
OUTPUT_VAT_PREFIX = "470"


def format_entry_number(year: int, sequence: int) -> str:
    return f"{year}-{sequence:06d}"


class LedgerServiceImpl(LedgerService):
    """Implementation of LedgerService.

    Every mutation of an entry holds that entry's lock for the whole
    read-validate-write sequence, which itself runs in one transaction.
    """

    def __init__(
        self,
        transactions: TransactionManager,
        entry_repo: JournalEntryRepository,
        account_repo: AccountRepository,
        sequence_repo: SequenceRepository,
        currency: Currency = Currency.RSD,
    ) -> None:
        self._transactions = transactions
        self._entry_repo = entry_repo
        self._account_repo = account_repo
        self._sequence_repo = sequence_repo
        self._currency = currency

    def _validate_accounts(self, company_id: UUID, lines: Sequence[JournalLine]) -> None:
        for line in lines:
            account = self._account_repo.get(line.account_id)
            if account is None:
                raise InactiveAccountError(line.account_id, "unknown account")
            if account.company_id != company_id:
                raise InactiveAccountError(line.account_id, "account belongs to another company")
            if not account.is_active:
                raise InactiveAccountError(line.account_id, "account is inactive")

    def _next_entry_number(self, company_id: UUID, fiscal_year: int) -> str:
        sequence = self._sequence_repo.next_value(company_id, f"journal-{fiscal_year}")
        return format_entry_number(fiscal_year, sequence)

    def _load(self, entry_id: UUID) -> JournalEntry:
        entry = self._entry_repo.get(entry_id)
        if entry is None:
            raise JournalEntryNotFoundError(entry_id)
        return entry

    def create_entry(
        self,
        company_id: UUID,
        entry_date: date,
        lines: Sequence[JournalLine],
        entry_type: JournalEntryType = JournalEntryType.GENERAL,
        description: str = "",
    ) -> JournalEntry:
        """Validate a draft and store it with the next entry number.

        Raises:
            InvalidJournalLineError: fewer than two lines or a malformed line
            InactiveAccountError: unknown, inactive or foreign account
            UnbalancedEntryError: debits differ from credits
        """
        entry = JournalEntry(
            company_id=company_id,
            entry_date=entry_date,
            lines=list(lines),
            entry_type=JournalEntryType(entry_type),
            description=description.strip(),
        )
        entry.validate_lines()
        with self._transactions.transaction():
            self._validate_accounts(company_id, entry.lines)
            entry.validate()
            entry.entry_number = self._next_entry_number(company_id, entry.fiscal_year)
            self._entry_repo.add(entry)

        logger.info(
            "journal_entry_created",
            entry_id=str(entry.id),
            entry_number=entry.entry_number,
            company_id=str(company_id),
            total=str(entry.total_debit.amount),
        )
        return entry

    def update_entry(
        self,
        entry_id: UUID,
        lines: Sequence[JournalLine],
        description: str | None = None,
        entry_date: date | None = None,
    ) -> JournalEntry:
        with self._transactions.entity_locks.hold(LOCK_KIND, entry_id):
            with self._transactions.transaction():
                entry = self._load(entry_id)
                entry.replace_lines(lines, description, entry_date)
                self._validate_accounts(entry.company_id, entry.lines)
                self._entry_repo.replace_lines(entry)
        logger.info("journal_entry_updated", entry_id=str(entry_id))
        return entry

    def post_entry(self, entry_id: UUID) -> JournalEntry:
        with self._transactions.entity_locks.hold(LOCK_KIND, entry_id):
            with self._transactions.transaction():
                entry = self._load(entry_id)
                self._validate_accounts(entry.company_id, entry.lines)
                entry.post()
                self._entry_repo.update(entry)
        logger.info(
            "journal_entry_posted",
            entry_id=str(entry_id),
            entry_number=entry.entry_number,
        )
        return entry

    def reverse_entry(
        self,
        entry_id: UUID,
        reason: str,
        reversal_date: date | None = None,
        entry_type: JournalEntryType = JournalEntryType.ADJUSTMENT,
    ) -> JournalEntry:
        """Post a storno for ``entry_id`` and mark the original REVERSED.

        The storno and the status change are committed together.
        """
        with self._transactions.entity_locks.hold(LOCK_KIND, entry_id):
            with self._transactions.transaction():
                original = self._load(entry_id)
                existing = self._entry_repo.get_reversal(entry_id)
                if existing is not None:
                    raise IntegrityError(
                        f"Journal entry {original.entry_number} already has storno "
                        f"{existing.entry_number}",
                        context={
                            "entry_id": str(entry_id),
                            "reversal_id": str(existing.id),
                            "status": original.status.value,
                        },
                    )
                reversal = original.build_reversal(reason, reversal_date, entry_type)
                reversal.entry_number = self._next_entry_number(
                    original.company_id, reversal.fiscal_year
                )
                self._entry_repo.add(reversal)
                original.mark_reversed(reason)
                self._entry_repo.update(original)

        logger.info(
            "journal_entry_reversed",
            entry_id=str(entry_id),
            reversal_id=str(reversal.id),
            reversal_number=reversal.entry_number,
        )
        return reversal

    def _posting_account(self, company_id: UUID, code_prefix: str) -> Account:
        for account in self._account_repo.list_by_company(
            company_id, include_inactive=False
        ):
            if account.code.startswith(code_prefix):
                return account
        raise PostingAccountMissingError(code_prefix)

    def post_invoice(
        self,
        company_id: UUID,
        invoice_id: str,
        invoice_number: str,
        issue_date: date,
        net_amount: Decimal,
        vat_amount: Decimal,
        partner_name: str = "",
        currency: Currency | None = None,
    ) -> JournalEntry:
        """Book an outgoing invoice and post it in one step.

        Debits receivables (204) with the gross amount and credits revenue
        (61) and output VAT (470); the VAT line is left out for a zero-rated
        invoice. Each account is the first active one, by code, under its
        prefix. An invoice is booked at most once per company.

        Raises:
            DuplicateReferenceError: the invoice already has a journal entry
            PostingAccountMissingError: the chart lacks one of the accounts
            InvalidAmountError: non-positive net or negative VAT amount
        """
        invoice_id = (invoice_id or "").strip()
        if not invoice_id:
            raise ValidationError(
                "An invoice posting requires the invoice id",
                error_code="REFERENCE_REQUIRED",
            )
        currency = Currency(currency) if currency else self._currency
        net = Money(parse_amount(net_amount, allow_negative=False), currency)
        vat = Money(parse_amount(vat_amount, allow_negative=False), currency)
        if net.is_zero:
            raise InvalidAmountError(str(net_amount), "net amount must be positive")

        lock_id = f"{company_id}:{invoice_id}"
        with self._transactions.entity_locks.hold("invoice_posting", lock_id):
            with self._transactions.transaction():
                existing = self._entry_repo.get_by_reference(
                    company_id, INVOICE_REFERENCE, invoice_id
                )
                if existing is not None:
                    raise DuplicateReferenceError(
                        INVOICE_REFERENCE, invoice_id, existing.entry_number
                    )

                lines = [
                    JournalLine(
                        account_id=self._posting_account(company_id, RECEIVABLE_PREFIX).id,
                        debit=net + vat,
                    ),
                    JournalLine(
                        account_id=self._posting_account(company_id, REVENUE_PREFIX).id,
                        credit=net,
                    ),
                ]
                if vat.is_positive:
                    lines.append(
                        JournalLine(
                            account_id=self._posting_account(
                                company_id, OUTPUT_VAT_PREFIX
                            ).id,
                            credit=vat,
                        )
                    )
                entry = JournalEntry(
                    company_id=company_id,
                    entry_date=issue_date,
                    lines=lines,
                    entry_type=JournalEntryType.SALES,
                    description=f"Faktura {invoice_number} - {partner_name or 'Kupac'}",
                    reference_type=INVOICE_REFERENCE,
                    reference_id=invoice_id,
                )
                entry.post()
                entry.entry_number = self._next_entry_number(company_id, entry.fiscal_year)
                self._entry_repo.add(entry)

        logger.info(
            "invoice_posted",
            entry_id=str(entry.id),
            entry_number=entry.entry_number,
            company_id=str(company_id),
            invoice_id=invoice_id,
            total=str(entry.total_debit.amount),
        )
        return entry

    def delete_entry(self, entry_id: UUID) -> None:
        with self._transactions.entity_locks.hold(LOCK_KIND, entry_id):
            with self._transactions.transaction():
                entry = self._load(entry_id)
                entry.ensure_deletable()
                self._entry_repo.delete(entry_id)
        logger.info("journal_entry_deleted", entry_id=str(entry_id))

    def get_entry(self, entry_id: UUID) -> JournalEntry:
        return self._load(entry_id)

    def list_entries(
        self,
        company_id: UUID,
        status: JournalEntryStatus | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[JournalEntry]:
        return list(
            self._entry_repo.list_by_company(company_id, status, start_date, end_date)
        )

    def _signed(self, side: BalanceSide, debit: Decimal, credit: Decimal) -> Decimal:
        if side == BalanceSide.DEBIT:
            return debit - credit
        return credit - debit

    def get_account_balance(
        self,
        account_id: UUID,
        as_of_date: date | None = None,
        currency: Currency | None = None,
    ) -> Money:
        """Balance of posted and reversed entries, signed by the normal side.

        Only entries in ``currency`` (the ledger currency by default) count.
        A reversed entry and its storno cancel each other out.
        """
        account = self._account_repo.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        currency = Currency(currency) if currency else self._currency
        debits = credits = Decimal("0")
        for entry in self._entry_repo.list_by_account(
            account_id, end_date=as_of_date, statuses=COUNTED_STATUSES
        ):
            if entry.currency != currency:
                continue
            for line in entry.lines:
                if line.account_id == account_id:
                    debits += line.debit.amount
                    credits += line.credit.amount

        return Money(self._signed(account.normal_side, debits, credits), currency)

    def get_general_ledger(
        self,
        account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        currency: Currency | None = None,
    ) -> list[GeneralLedgerLine]:
        """Account movements in date order with a running balance.

        The running balance starts from the balance on the day before
        ``start_date``.
        """
        account = self._account_repo.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        currency = Currency(currency) if currency else self._currency
        running = Decimal("0")
        if start_date is not None:
            opening_day = date.fromordinal(start_date.toordinal() - 1)
            running = self.get_account_balance(account_id, opening_day, currency).amount

        lines: list[GeneralLedgerLine] = []
        for entry in self._entry_repo.list_by_account(
            account_id, start_date, end_date, statuses=COUNTED_STATUSES
        ):
            if entry.currency != currency:
                continue
            for line in entry.lines:
                if line.account_id != account_id:
                    continue
                running += self._signed(
                    account.normal_side, line.debit.amount, line.credit.amount
                )
                lines.append(
                    GeneralLedgerLine(
                        entry_id=entry.id,
                        entry_number=entry.entry_number,
                        entry_date=entry.entry_date,
                        description=line.description or entry.description,
                        debit=line.debit,
                        credit=line.credit,
                        running_balance=Money(running, currency),
                    )
                )
        return lines

    def get_trial_balance(
        self,
        company_id: UUID,
        as_of_date: date | None = None,
        currency: Currency | None = None,
    ) -> TrialBalance:
        """Debit and credit turnover per account for counted entries.

        Entries in other currencies than ``currency`` (the ledger currency by
        default) are left out. Only accounts with movements are listed,
        ordered by code.
        """
        currency = Currency(currency) if currency else self._currency
        turnover: dict[UUID, tuple[Decimal, Decimal]] = {}
        for entry in self._entry_repo.list_by_company(company_id, end_date=as_of_date):
            if entry.status not in COUNTED_STATUSES or entry.currency != currency:
                continue
            for line in entry.lines:
                debit, credit = turnover.get(line.account_id, (Decimal("0"), Decimal("0")))
                turnover[line.account_id] = (
                    debit + line.debit.amount,
                    credit + line.credit.amount,
                )

        rows: list[TrialBalanceRow] = []
        total_debit = total_credit = Decimal("0")
        for account in self._account_repo.list_by_company(company_id):
            if account.id not in turnover:
                continue
            debit, credit = turnover[account.id]
            total_debit += debit
            total_credit += credit
            rows.append(
                TrialBalanceRow(
                    account_id=account.id,
                    code=account.code,
                    name=account.name,
                    account_type=account.account_type,
                    debit=Money(debit, currency),
                    credit=Money(credit, currency),
                )
            )

        trial_balance = TrialBalance(
            company_id=company_id,
            as_of_date=as_of_date,
            rows=rows,
            total_debit=Money(total_debit, currency),
            total_credit=Money(total_credit, currency),
        )
        if not trial_balance.is_balanced:
            logger.error(
                "trial_balance_out_of_balance",
                company_id=str(company_id),
                currency=currency.value,
                total_debit=str(total_debit),
                total_credit=str(total_credit),
            )
        return trial_balance
