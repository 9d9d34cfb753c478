from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sef_accounting.domain.accounts import Account
from sef_accounting.domain.advances import (
    AdvanceAllocation,
    AdvanceInvoice,
    AdvanceInvoiceStatus,
    AdvanceSummary,
    Partner,
)
from sef_accounting.domain.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalEntryType,
    JournalLine,
)
from sef_accounting.domain.tax_periods import (
    PPPDVCalculation,
    TaxPeriod,
    TaxPeriodReport,
    TaxPeriodType,
    VatRecord,
)
from sef_accounting.domain.value_objects import (
    AccountType,
    BalanceSide,
    Currency,
    Money,
    VatDirection,
    VatRate,
)


@dataclass
class GeneralLedgerLine:
    entry_id: UUID
    entry_number: str
    entry_date: date
    description: str
    debit: Money
    credit: Money
    running_balance: Money


@dataclass
class TrialBalanceRow:
    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    debit: Money
    credit: Money

    @property
    def balance(self) -> Money:
        """Balance signed by the account's normal side."""
        if self.account_type.normal_side == BalanceSide.DEBIT:
            return self.debit - self.credit
        return self.credit - self.debit


@dataclass
class TrialBalance:
    company_id: UUID
    as_of_date: date | None
    rows: list[TrialBalanceRow]
    total_debit: Money
    total_credit: Money

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit

    @property
    def currency(self) -> Currency:
        return self.total_debit.currency


class ChartOfAccountsService(ABC):
    @abstractmethod
    def create_account(
        self,
        company_id: UUID,
        code: str,
        name: str,
        account_type: AccountType,
        parent_id: UUID | None = None,
    ) -> Account:
        pass

    @abstractmethod
    def get_account(self, account_id: UUID) -> Account:
        pass

    @abstractmethod
    def get_by_code(self, company_id: UUID, code: str) -> Account:
        pass

    @abstractmethod
    def list_accounts(
        self, company_id: UUID, include_inactive: bool = True
    ) -> list[Account]:
        pass

    @abstractmethod
    def list_children(self, account_id: UUID) -> list[Account]:
        pass

    @abstractmethod
    def deactivate_account(self, account_id: UUID) -> Account:
        pass

    @abstractmethod
    def activate_account(self, account_id: UUID) -> Account:
        pass

    @abstractmethod
    def reparent_account(self, account_id: UUID, parent_id: UUID | None) -> Account:
        pass

    @abstractmethod
    def initialize_standard_chart(self, company_id: UUID) -> list[Account]:
        pass


class LedgerService(ABC):
    @abstractmethod
    def create_entry(
        self,
        company_id: UUID,
        entry_date: date,
        lines: Sequence[JournalLine],
        entry_type: JournalEntryType = JournalEntryType.GENERAL,
        description: str = "",
    ) -> JournalEntry:
        pass

    @abstractmethod
    def update_entry(
        self,
        entry_id: UUID,
        lines: Sequence[JournalLine],
        description: str | None = None,
        entry_date: date | None = None,
    ) -> JournalEntry:
        pass

    @abstractmethod
    def post_entry(self, entry_id: UUID) -> JournalEntry:
        pass

    @abstractmethod
    def reverse_entry(
        self,
        entry_id: UUID,
        reason: str,
        reversal_date: date | None = None,
        entry_type: JournalEntryType = JournalEntryType.ADJUSTMENT,
    ) -> JournalEntry:
        pass

    @abstractmethod
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
        pass

    @abstractmethod
    def delete_entry(self, entry_id: UUID) -> None:
        pass

    @abstractmethod
    def get_entry(self, entry_id: UUID) -> JournalEntry:
        pass

    @abstractmethod
    def list_entries(
        self,
        company_id: UUID,
        status: JournalEntryStatus | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[JournalEntry]:
        pass

    @abstractmethod
    def get_account_balance(
        self,
        account_id: UUID,
        as_of_date: date | None = None,
        currency: Currency | None = None,
    ) -> Money:
        pass

    @abstractmethod
    def get_general_ledger(
        self,
        account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        currency: Currency | None = None,
    ) -> list[GeneralLedgerLine]:
        pass

    @abstractmethod
    def get_trial_balance(
        self,
        company_id: UUID,
        as_of_date: date | None = None,
        currency: Currency | None = None,
    ) -> TrialBalance:
        pass


class AdvanceInvoiceService(ABC):
    @abstractmethod
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
        pass

    @abstractmethod
    def mark_issued(self, advance_id: UUID) -> AdvanceInvoice:
        pass

    @abstractmethod
    def mark_paid(
        self, advance_id: UUID, payment_date: date, amount: Decimal
    ) -> AdvanceInvoice:
        pass

    @abstractmethod
    def use(
        self, advance_id: UUID, invoice_id: str, amount: Decimal
    ) -> tuple[AdvanceInvoice, AdvanceAllocation]:
        pass

    @abstractmethod
    def release(
        self, advance_id: UUID, allocation_id: UUID, reason: str = ""
    ) -> tuple[AdvanceInvoice, AdvanceAllocation]:
        pass

    @abstractmethod
    def cancel(self, advance_id: UUID, reason: str, force: bool = False) -> AdvanceInvoice:
        pass

    @abstractmethod
    def get(self, advance_id: UUID) -> AdvanceInvoice:
        pass

    @abstractmethod
    def list_advances(
        self,
        company_id: UUID,
        status: AdvanceInvoiceStatus | None = None,
        partner_tax_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[AdvanceInvoice]:
        pass

    @abstractmethod
    def available_for_partner(
        self, company_id: UUID, partner_tax_id: str
    ) -> list[AdvanceInvoice]:
        pass

    @abstractmethod
    def summary(
        self, company_id: UUID, currency: Currency = Currency.RSD
    ) -> AdvanceSummary:
        pass


class TaxPeriodService(ABC):
    @abstractmethod
    def add_vat_record(
        self,
        company_id: UUID,
        record_date: date,
        direction: VatDirection,
        vat_rate: VatRate,
        base_amount: Decimal,
        vat_amount: Decimal,
        document_number: str = "",
        partner_name: str = "",
    ) -> VatRecord:
        pass

    @abstractmethod
    def list_vat_records(
        self,
        company_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        direction: VatDirection | None = None,
    ) -> list[VatRecord]:
        pass

    @abstractmethod
    def calculate(
        self,
        company_id: UUID,
        period: TaxPeriod,
        proportional_deduction_rate: Decimal | None = None,
        previous_credit: Decimal | None = None,
        input_vat_adjustment: Decimal | None = None,
    ) -> PPPDVCalculation:
        pass

    @abstractmethod
    def create_report(
        self,
        company_id: UUID,
        period: TaxPeriod,
        proportional_deduction_rate: Decimal | None = None,
        previous_credit: Decimal | None = None,
        input_vat_adjustment: Decimal | None = None,
    ) -> TaxPeriodReport:
        pass

    @abstractmethod
    def recalculate(
        self,
        report_id: UUID,
        proportional_deduction_rate: Decimal | None = None,
        previous_credit: Decimal | None = None,
        input_vat_adjustment: Decimal | None = None,
    ) -> TaxPeriodReport:
        pass

    @abstractmethod
    def submit(
        self, report_id: UUID, submission_reference: str | None = None
    ) -> TaxPeriodReport:
        pass

    @abstractmethod
    def record_outcome(
        self,
        report_id: UUID,
        accepted: bool,
        reference: str | None = None,
        reason: str | None = None,
    ) -> TaxPeriodReport:
        pass

    @abstractmethod
    def delete_report(self, report_id: UUID) -> None:
        pass

    @abstractmethod
    def get_report(self, report_id: UUID) -> TaxPeriodReport:
        pass

    @abstractmethod
    def list_reports(
        self,
        company_id: UUID,
        year: int | None = None,
        period_type: TaxPeriodType | None = None,
    ) -> list[TaxPeriodReport]:
        pass
