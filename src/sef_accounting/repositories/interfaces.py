from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import AbstractContextManager
from datetime import date
from typing import Any
from uuid import UUID

from sef_accounting.domain.accounts import Account
from sef_accounting.domain.advances import (
    AdvanceAllocation,
    AdvanceInvoice,
    AdvanceInvoiceStatus,
)
from sef_accounting.domain.journal import JournalEntry, JournalEntryStatus
from sef_accounting.domain.tax_periods import (
    TaxPeriod,
    TaxPeriodReport,
    TaxPeriodType,
    VatRecord,
)
from sef_accounting.domain.value_objects import VatDirection
from sef_accounting.locking import EntityLockRegistry


class TransactionManager(ABC):
    """Transaction boundary shared by the repositories of one store."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Any]:
        """All-or-nothing scope; nested scopes join the outer one."""

    @property
    @abstractmethod
    def entity_locks(self) -> EntityLockRegistry:
        pass


class AccountRepository(ABC):
    @abstractmethod
    def add(self, account: Account) -> None:
        pass

    @abstractmethod
    def get(self, account_id: UUID) -> Account | None:
        pass

    @abstractmethod
    def get_by_code(self, company_id: UUID, code: str) -> Account | None:
        pass

    @abstractmethod
    def list_by_company(
        self, company_id: UUID, include_inactive: bool = True
    ) -> Iterable[Account]:
        pass

    @abstractmethod
    def list_children(self, parent_id: UUID) -> Iterable[Account]:
        pass

    @abstractmethod
    def update(self, account: Account) -> None:
        pass


class SequenceRepository(ABC):
    @abstractmethod
    def next_value(self, company_id: UUID, name: str) -> int:
        """Atomically increment and return the named counter."""


class JournalEntryRepository(ABC):
    @abstractmethod
    def add(self, entry: JournalEntry) -> None:
        pass

    @abstractmethod
    def get(self, entry_id: UUID) -> JournalEntry | None:
        pass

    @abstractmethod
    def update(self, entry: JournalEntry) -> None:
        pass

    @abstractmethod
    def replace_lines(self, entry: JournalEntry) -> None:
        pass

    @abstractmethod
    def delete(self, entry_id: UUID) -> None:
        pass

    @abstractmethod
    def list_by_company(
        self,
        company_id: UUID,
        status: JournalEntryStatus | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[JournalEntry]:
        pass

    @abstractmethod
    def list_by_account(
        self,
        account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        statuses: Iterable[JournalEntryStatus] | None = None,
    ) -> Iterable[JournalEntry]:
        pass

    @abstractmethod
    def get_reversal(self, entry_id: UUID) -> JournalEntry | None:
        pass

    @abstractmethod
    def get_by_reference(
        self, company_id: UUID, reference_type: str, reference_id: str
    ) -> JournalEntry | None:
        pass


class AdvanceInvoiceRepository(ABC):
    @abstractmethod
    def add(self, advance: AdvanceInvoice) -> None:
        pass

    @abstractmethod
    def get(self, advance_id: UUID) -> AdvanceInvoice | None:
        pass

    @abstractmethod
    def update(self, advance: AdvanceInvoice) -> None:
        pass

    @abstractmethod
    def add_allocation(self, advance_id: UUID, allocation: AdvanceAllocation) -> None:
        pass

    @abstractmethod
    def list_by_company(
        self,
        company_id: UUID,
        status: AdvanceInvoiceStatus | None = None,
        partner_tax_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[AdvanceInvoice]:
        pass


class VatRecordRepository(ABC):
    @abstractmethod
    def add(self, record: VatRecord) -> None:
        pass

    @abstractmethod
    def get(self, record_id: UUID) -> VatRecord | None:
        pass

    @abstractmethod
    def list_by_company(
        self,
        company_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        direction: VatDirection | None = None,
    ) -> Iterable[VatRecord]:
        pass


class TaxReportRepository(ABC):
    @abstractmethod
    def add(self, report: TaxPeriodReport) -> None:
        pass

    @abstractmethod
    def get(self, report_id: UUID) -> TaxPeriodReport | None:
        pass

    @abstractmethod
    def update(self, report: TaxPeriodReport) -> None:
        pass

    @abstractmethod
    def delete(self, report_id: UUID) -> None:
        pass

    @abstractmethod
    def list_by_company(
        self,
        company_id: UUID,
        year: int | None = None,
        period_type: TaxPeriodType | None = None,
    ) -> Iterable[TaxPeriodReport]:
        pass

    @abstractmethod
    def list_for_period(
        self, company_id: UUID, period: TaxPeriod
    ) -> Iterable[TaxPeriodReport]:
        pass
