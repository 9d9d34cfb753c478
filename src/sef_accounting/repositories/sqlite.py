"""SQLite implementations of repository interfaces."""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from sef_accounting.domain.accounts import Account
from sef_accounting.domain.advances import (
    AdvanceAllocation,
    AdvanceInvoice,
    AdvanceInvoiceStatus,
    Partner,
)
from sef_accounting.domain.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalEntryType,
    JournalLine,
)
from sef_accounting.domain.tax_periods import (
    TaxFieldValues,
    TaxPeriod,
    TaxPeriodReport,
    TaxPeriodType,
    TaxReportStatus,
    VatRecord,
)
from sef_accounting.domain.value_objects import (
    AccountType,
    Currency,
    Money,
    VatDirection,
    VatRate,
)
from sef_accounting.exceptions import InvalidTransitionError
from sef_accounting.locking import EntityLockRegistry
from sef_accounting.logging_config import get_logger
from sef_accounting.repositories.interfaces import (
    AccountRepository,
    AdvanceInvoiceRepository,
    JournalEntryRepository,
    SequenceRepository,
    TaxReportRepository,
    TransactionManager,
    VatRecordRepository,
)

logger = get_logger(__name__)


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _d(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value else None


class SQLiteDatabase(TransactionManager):
    """SQLite database connection manager.

    One connection is shared by every repository; access to it is serialized
    with a re-entrant lock so the database may be used from worker threads
    when ``check_same_thread`` is False.
    """

    def __init__(
        self,
        path: str | Path = ":memory:",
        check_same_thread: bool = True,
        lock_timeout: float = 5.0,
    ) -> None:
        self._path = str(path)
        self._check_same_thread = check_same_thread
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0
        self._entity_locks = EntityLockRegistry(timeout=lock_timeout)

    @property
    def path(self) -> str:
        return self._path

    @property
    def entity_locks(self) -> EntityLockRegistry:
        return self._entity_locks

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        with self._lock:
            if self._connection is None:
                # Transactions are managed explicitly in transaction().
                self._connection = sqlite3.connect(
                    self._path,
                    check_same_thread=self._check_same_thread,
                    isolation_level=None,
                )
                self._connection.row_factory = sqlite3.Row
                self._connection.execute("PRAGMA foreign_keys = ON")
            return self._connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements atomically.

        Nested calls join the outermost transaction; only the outermost one
        commits or rolls back.
        """
        with self._lock:
            conn = self.get_connection()
            if self._depth > 0:
                self._depth += 1
                try:
                    yield conn
                finally:
                    self._depth -= 1
                return

            conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                logger.debug("transaction_rolled_back", path=self._path)
                raise
            else:
                conn.execute("COMMIT")
            finally:
                self._depth = 0

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            yield self.get_connection()

    def initialize(self) -> None:
        """Create all database tables."""
        with self._lock:
            conn = self.get_connection()
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    company_id TEXT NOT NULL,
                    code TEXT NOT NULL,
                    name TEXT NOT NULL,
                    account_type TEXT NOT NULL,
                    parent_id TEXT REFERENCES accounts(id),
                    is_active INTEGER NOT NULL DEFAULT 1,
                    is_system INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (company_id, code)
                );

                CREATE TABLE IF NOT EXISTS sequences (
                    company_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    current_value INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (company_id, name)
                );

                CREATE TABLE IF NOT EXISTS journal_entries (
                    id TEXT PRIMARY KEY,
                    company_id TEXT NOT NULL,
                    entry_number TEXT NOT NULL,
                    entry_date TEXT NOT NULL,
                    entry_type TEXT NOT NULL,
                    status TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    currency TEXT NOT NULL DEFAULT 'RSD',
                    total_debit TEXT NOT NULL,
                    total_credit TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    posted_at TEXT,
                    reversed_at TEXT,
                    reversal_of TEXT,
                    reversal_reason TEXT,
                    reference_type TEXT,
                    reference_id TEXT,
                    UNIQUE (company_id, entry_number)
                );

                CREATE TABLE IF NOT EXISTS journal_lines (
                    id TEXT PRIMARY KEY,
                    entry_id TEXT NOT NULL REFERENCES journal_entries(id) ON DELETE CASCADE,
                    line_number INTEGER NOT NULL,
                    account_id TEXT NOT NULL REFERENCES accounts(id),
                    debit TEXT NOT NULL,
                    credit TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT ''
                );

                CREATE TABLE IF NOT EXISTS advance_invoices (
                    id TEXT PRIMARY KEY,
                    company_id TEXT NOT NULL,
                    invoice_number TEXT NOT NULL,
                    partner_name TEXT NOT NULL,
                    partner_tax_id TEXT NOT NULL,
                    partner_address TEXT NOT NULL DEFAULT '',
                    issue_date TEXT NOT NULL,
                    net_amount TEXT NOT NULL,
                    vat_rate INTEGER NOT NULL,
                    currency TEXT NOT NULL,
                    status TEXT NOT NULL,
                    paid_amount TEXT NOT NULL,
                    payment_date TEXT,
                    note TEXT NOT NULL DEFAULT '',
                    cancellation_reason TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    issued_at TEXT,
                    paid_at TEXT,
                    cancelled_at TEXT,
                    UNIQUE (company_id, invoice_number)
                );

                CREATE TABLE IF NOT EXISTS advance_allocations (
                    id TEXT PRIMARY KEY,
                    advance_id TEXT NOT NULL REFERENCES advance_invoices(id),
                    sequence INTEGER NOT NULL,
                    invoice_id TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    allocated_at TEXT NOT NULL,
                    releases_allocation_id TEXT REFERENCES advance_allocations(id),
                    note TEXT NOT NULL DEFAULT '',
                    UNIQUE (advance_id, sequence)
                );

                CREATE TABLE IF NOT EXISTS vat_records (
                    id TEXT PRIMARY KEY,
                    company_id TEXT NOT NULL,
                    record_date TEXT NOT NULL,
                    direction TEXT NOT NULL,
                    vat_rate INTEGER NOT NULL,
                    base_amount TEXT NOT NULL,
                    vat_amount TEXT NOT NULL,
                    document_number TEXT NOT NULL DEFAULT '',
                    partner_name TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS tax_reports (
                    id TEXT PRIMARY KEY,
                    company_id TEXT NOT NULL,
                    year INTEGER NOT NULL,
                    period_type TEXT NOT NULL,
                    period_number INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    fields TEXT NOT NULL,
                    proportional_deduction_rate TEXT NOT NULL,
                    previous_credit TEXT NOT NULL,
                    record_count INTEGER NOT NULL DEFAULT 0,
                    submission_reference TEXT,
                    rejection_reason TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    calculated_at TEXT,
                    submitted_at TEXT,
                    decided_at TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_accounts_company ON accounts(company_id);
                CREATE INDEX IF NOT EXISTS idx_journal_entries_company_date
                    ON journal_entries(company_id, entry_date);
                CREATE UNIQUE INDEX IF NOT EXISTS ux_journal_entries_reference
                    ON journal_entries(company_id, reference_type, reference_id)
                    WHERE reference_id IS NOT NULL;
                CREATE INDEX IF NOT EXISTS idx_journal_lines_entry ON journal_lines(entry_id);
                CREATE INDEX IF NOT EXISTS idx_journal_lines_account ON journal_lines(account_id);
                CREATE INDEX IF NOT EXISTS idx_advance_invoices_company
                    ON advance_invoices(company_id, status);
                CREATE INDEX IF NOT EXISTS idx_advance_allocations_advance
                    ON advance_allocations(advance_id);
                CREATE INDEX IF NOT EXISTS idx_vat_records_company_date
                    ON vat_records(company_id, record_date);
                CREATE UNIQUE INDEX IF NOT EXISTS ux_tax_reports_open_period
                    ON tax_reports(company_id, year, period_type, period_number)
                    WHERE status != 'REJECTED';
                """
            )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


class SQLiteAccountRepository(AccountRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, account: Account) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO accounts (id, company_id, code, name, account_type, parent_id,
                                      is_active, is_system, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(account.id),
                    str(account.company_id),
                    account.code,
                    account.name,
                    account.account_type.value,
                    str(account.parent_id) if account.parent_id else None,
                    1 if account.is_active else 0,
                    1 if account.is_system else 0,
                    account.created_at.isoformat(),
                    account.updated_at.isoformat(),
                ),
            )

    def get(self, account_id: UUID) -> Account | None:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM accounts WHERE id = ?", (str(account_id),)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def get_by_code(self, company_id: UUID, code: str) -> Account | None:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM accounts WHERE company_id = ? AND code = ?",
                (str(company_id), code),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def list_by_company(
        self, company_id: UUID, include_inactive: bool = True
    ) -> Iterable[Account]:
        query = "SELECT * FROM accounts WHERE company_id = ?"
        if not include_inactive:
            query += " AND is_active = 1"
        query += " ORDER BY code"
        with self._db.reading() as conn:
            rows = conn.execute(query, (str(company_id),)).fetchall()
        return [self._row_to_account(row) for row in rows]

    def list_children(self, parent_id: UUID) -> Iterable[Account]:
        with self._db.reading() as conn:
            rows = conn.execute(
                "SELECT * FROM accounts WHERE parent_id = ? ORDER BY code",
                (str(parent_id),),
            ).fetchall()
        return [self._row_to_account(row) for row in rows]

    def update(self, account: Account) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                UPDATE accounts SET
                    name = ?,
                    parent_id = ?,
                    is_active = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    account.name,
                    str(account.parent_id) if account.parent_id else None,
                    1 if account.is_active else 0,
                    account.updated_at.isoformat(),
                    str(account.id),
                ),
            )

    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            id=UUID(row["id"]),
            company_id=UUID(row["company_id"]),
            code=row["code"],
            name=row["name"],
            account_type=AccountType(row["account_type"]),
            parent_id=UUID(row["parent_id"]) if row["parent_id"] else None,
            is_active=bool(row["is_active"]),
            is_system=bool(row["is_system"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class SQLiteSequenceRepository(SequenceRepository):
    """Counters kept in the ``sequences`` table, one row per (company, name)."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def next_value(self, company_id: UUID, name: str) -> int:
        with self._db.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO sequences (company_id, name, current_value) "
                "VALUES (?, ?, 0)",
                (str(company_id), name),
            )
            conn.execute(
                "UPDATE sequences SET current_value = current_value + 1 "
                "WHERE company_id = ? AND name = ?",
                (str(company_id), name),
            )
            row = conn.execute(
                "SELECT current_value FROM sequences WHERE company_id = ? AND name = ?",
                (str(company_id), name),
            ).fetchone()
        return int(row["current_value"])


class SQLiteJournalEntryRepository(JournalEntryRepository):
    """SQLite implementation of JournalEntryRepository.

    Totals are stored alongside the lines and re-checked whenever an entry is
    loaded.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, entry: JournalEntry) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO journal_entries (id, company_id, entry_number, entry_date, entry_type,
                                             status, description, currency, total_debit,
                                             total_credit, created_at, posted_at, reversed_at,
                                             reversal_of, reversal_reason, reference_type,
                                             reference_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(entry.id),
                    str(entry.company_id),
                    entry.entry_number,
                    entry.entry_date.isoformat(),
                    entry.entry_type.value,
                    entry.status.value,
                    entry.description,
                    entry.currency.value,
                    str(entry.total_debit.amount),
                    str(entry.total_credit.amount),
                    entry.created_at.isoformat(),
                    _iso(entry.posted_at),
                    _iso(entry.reversed_at),
                    str(entry.reversal_of) if entry.reversal_of else None,
                    entry.reversal_reason,
                    entry.reference_type,
                    entry.reference_id,
                ),
            )
            self._insert_lines(conn, entry)

    def _insert_lines(self, conn: sqlite3.Connection, entry: JournalEntry) -> None:
        for line_number, line in enumerate(entry.lines, start=1):
            conn.execute(
                """
                INSERT INTO journal_lines (id, entry_id, line_number, account_id,
                                           debit, credit, description)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(line.id),
                    str(entry.id),
                    line_number,
                    str(line.account_id),
                    str(line.debit.amount),
                    str(line.credit.amount),
                    line.description,
                ),
            )

    def get(self, entry_id: UUID) -> JournalEntry | None:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM journal_entries WHERE id = ?", (str(entry_id),)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_entry(conn, row)

    def update(self, entry: JournalEntry) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                UPDATE journal_entries SET
                    entry_date = ?,
                    description = ?,
                    status = ?,
                    total_debit = ?,
                    total_credit = ?,
                    posted_at = ?,
                    reversed_at = ?,
                    reversal_reason = ?
                WHERE id = ?
                """,
                (
                    entry.entry_date.isoformat(),
                    entry.description,
                    entry.status.value,
                    str(entry.total_debit.amount),
                    str(entry.total_credit.amount),
                    _iso(entry.posted_at),
                    _iso(entry.reversed_at),
                    entry.reversal_reason,
                    str(entry.id),
                ),
            )

    def replace_lines(self, entry: JournalEntry) -> None:
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT status FROM journal_entries WHERE id = ?", (str(entry.id),)
            ).fetchone()
            if row is None or row["status"] != JournalEntryStatus.DRAFT.value:
                current = row["status"] if row else "MISSING"
                raise InvalidTransitionError(
                    "journal entry", entry.id, current, "update"
                )
            conn.execute(
                "DELETE FROM journal_lines WHERE entry_id = ?", (str(entry.id),)
            )
            self._insert_lines(conn, entry)
            self.update(entry)

    def delete(self, entry_id: UUID) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                "DELETE FROM journal_entries WHERE id = ? AND status = ?",
                (str(entry_id), JournalEntryStatus.DRAFT.value),
            )

    def list_by_company(
        self,
        company_id: UUID,
        status: JournalEntryStatus | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[JournalEntry]:
        query = "SELECT * FROM journal_entries WHERE company_id = ?"
        params: list[str] = [str(company_id)]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        if start_date is not None:
            query += " AND entry_date >= ?"
            params.append(start_date.isoformat())
        if end_date is not None:
            query += " AND entry_date <= ?"
            params.append(end_date.isoformat())
        query += " ORDER BY entry_date, entry_number"
        with self._db.reading() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_entry(conn, row) for row in rows]

    def list_by_account(
        self,
        account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        statuses: Iterable[JournalEntryStatus] | None = None,
    ) -> Iterable[JournalEntry]:
        query = """
            SELECT DISTINCT e.* FROM journal_entries e
            JOIN journal_lines l ON e.id = l.entry_id
            WHERE l.account_id = ?
        """
        params: list[str] = [str(account_id)]
        if start_date is not None:
            query += " AND e.entry_date >= ?"
            params.append(start_date.isoformat())
        if end_date is not None:
            query += " AND e.entry_date <= ?"
            params.append(end_date.isoformat())
        if statuses is not None:
            wanted = [s.value for s in statuses]
            query += f" AND e.status IN ({', '.join('?' for _ in wanted)})"
            params.extend(wanted)
        query += " ORDER BY e.entry_date, e.entry_number"
        with self._db.reading() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_entry(conn, row) for row in rows]

    def get_reversal(self, entry_id: UUID) -> JournalEntry | None:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM journal_entries WHERE reversal_of = ?", (str(entry_id),)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_entry(conn, row)

    def get_by_reference(
        self, company_id: UUID, reference_type: str, reference_id: str
    ) -> JournalEntry | None:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM journal_entries "
                "WHERE company_id = ? AND reference_type = ? AND reference_id = ?",
                (str(company_id), reference_type, reference_id),
            ).fetchone()
            if row is None:
                return None
            return self._row_to_entry(conn, row)

    def _row_to_entry(self, conn: sqlite3.Connection, row: sqlite3.Row) -> JournalEntry:
        currency = Currency(row["currency"])
        line_rows = conn.execute(
            "SELECT * FROM journal_lines WHERE entry_id = ? ORDER BY line_number",
            (row["id"],),
        ).fetchall()
        lines = [
            JournalLine(
                id=UUID(line["id"]),
                account_id=UUID(line["account_id"]),
                debit=Money(Decimal(line["debit"]), currency),
                credit=Money(Decimal(line["credit"]), currency),
                description=line["description"],
            )
            for line in line_rows
        ]
        entry = JournalEntry(
            id=UUID(row["id"]),
            company_id=UUID(row["company_id"]),
            entry_number=row["entry_number"],
            entry_date=date.fromisoformat(row["entry_date"]),
            entry_type=JournalEntryType(row["entry_type"]),
            status=JournalEntryStatus(row["status"]),
            description=row["description"],
            lines=lines,
            created_at=datetime.fromisoformat(row["created_at"]),
            posted_at=_dt(row["posted_at"]),
            reversed_at=_dt(row["reversed_at"]),
            reversal_of=UUID(row["reversal_of"]) if row["reversal_of"] else None,
            reversal_reason=row["reversal_reason"],
            reference_type=row["reference_type"],
            reference_id=row["reference_id"],
        )
        entry.verify_totals(Decimal(row["total_debit"]), Decimal(row["total_credit"]))
        return entry


class SQLiteAdvanceInvoiceRepository(AdvanceInvoiceRepository):
    """Advance invoices with an append-only allocation log."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, advance: AdvanceInvoice) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO advance_invoices (id, company_id, invoice_number, partner_name,
                                              partner_tax_id, partner_address, issue_date,
                                              net_amount, vat_rate, currency, status,
                                              paid_amount, payment_date, note,
                                              cancellation_reason, created_at, updated_at,
                                              issued_at, paid_at, cancelled_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(advance.id),
                    str(advance.company_id),
                    advance.invoice_number,
                    advance.partner.name,
                    advance.partner.tax_id,
                    advance.partner.address,
                    advance.issue_date.isoformat(),
                    str(advance.net_amount.amount),
                    advance.vat_rate.value,
                    advance.currency.value,
                    advance.status.value,
                    str(advance.paid_amount.amount),
                    _iso(advance.payment_date),
                    advance.note,
                    advance.cancellation_reason,
                    advance.created_at.isoformat(),
                    advance.updated_at.isoformat(),
                    _iso(advance.issued_at),
                    _iso(advance.paid_at),
                    _iso(advance.cancelled_at),
                ),
            )
            for allocation in advance.allocations:
                self.add_allocation(advance.id, allocation)

    def get(self, advance_id: UUID) -> AdvanceInvoice | None:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM advance_invoices WHERE id = ?", (str(advance_id),)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_advance(conn, row)

    def update(self, advance: AdvanceInvoice) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                UPDATE advance_invoices SET
                    status = ?,
                    paid_amount = ?,
                    payment_date = ?,
                    note = ?,
                    cancellation_reason = ?,
                    updated_at = ?,
                    issued_at = ?,
                    paid_at = ?,
                    cancelled_at = ?
                WHERE id = ?
                """,
                (
                    advance.status.value,
                    str(advance.paid_amount.amount),
                    _iso(advance.payment_date),
                    advance.note,
                    advance.cancellation_reason,
                    advance.updated_at.isoformat(),
                    _iso(advance.issued_at),
                    _iso(advance.paid_at),
                    _iso(advance.cancelled_at),
                    str(advance.id),
                ),
            )

    def add_allocation(self, advance_id: UUID, allocation: AdvanceAllocation) -> None:
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT COALESCE(MAX(sequence), 0) AS last FROM advance_allocations "
                "WHERE advance_id = ?",
                (str(advance_id),),
            ).fetchone()
            conn.execute(
                """
                INSERT INTO advance_allocations (id, advance_id, sequence, invoice_id, amount,
                                                 allocated_at, releases_allocation_id, note)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(allocation.id),
                    str(advance_id),
                    int(row["last"]) + 1,
                    allocation.invoice_id,
                    str(allocation.amount.amount),
                    allocation.allocated_at.isoformat(),
                    str(allocation.releases_allocation_id)
                    if allocation.releases_allocation_id
                    else None,
                    allocation.note,
                ),
            )

    def list_by_company(
        self,
        company_id: UUID,
        status: AdvanceInvoiceStatus | None = None,
        partner_tax_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[AdvanceInvoice]:
        query = "SELECT * FROM advance_invoices WHERE company_id = ?"
        params: list[str] = [str(company_id)]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        if partner_tax_id is not None:
            query += " AND partner_tax_id = ?"
            params.append(partner_tax_id)
        if start_date is not None:
            query += " AND issue_date >= ?"
            params.append(start_date.isoformat())
        if end_date is not None:
            query += " AND issue_date <= ?"
            params.append(end_date.isoformat())
        query += " ORDER BY issue_date, invoice_number"
        with self._db.reading() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_advance(conn, row) for row in rows]

    def _row_to_advance(
        self, conn: sqlite3.Connection, row: sqlite3.Row
    ) -> AdvanceInvoice:
        currency = Currency(row["currency"])
        allocation_rows = conn.execute(
            "SELECT * FROM advance_allocations WHERE advance_id = ? ORDER BY sequence",
            (row["id"],),
        ).fetchall()
        allocations = [
            AdvanceAllocation(
                id=UUID(a["id"]),
                invoice_id=a["invoice_id"],
                amount=Money(Decimal(a["amount"]), currency),
                allocated_at=datetime.fromisoformat(a["allocated_at"]),
                releases_allocation_id=UUID(a["releases_allocation_id"])
                if a["releases_allocation_id"]
                else None,
                note=a["note"],
            )
            for a in allocation_rows
        ]
        advance = AdvanceInvoice(
            id=UUID(row["id"]),
            company_id=UUID(row["company_id"]),
            invoice_number=row["invoice_number"],
            partner=Partner(
                name=row["partner_name"],
                tax_id=row["partner_tax_id"],
                address=row["partner_address"],
            ),
            issue_date=date.fromisoformat(row["issue_date"]),
            net_amount=Money(Decimal(row["net_amount"]), currency),
            vat_rate=VatRate(row["vat_rate"]),
            status=AdvanceInvoiceStatus(row["status"]),
            paid_amount=Money(Decimal(row["paid_amount"]), currency),
            payment_date=_d(row["payment_date"]),
            allocations=allocations,
            note=row["note"],
            cancellation_reason=row["cancellation_reason"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            issued_at=_dt(row["issued_at"]),
            paid_at=_dt(row["paid_at"]),
            cancelled_at=_dt(row["cancelled_at"]),
        )
        advance.verify_invariants()
        return advance


class SQLiteVatRecordRepository(VatRecordRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, record: VatRecord) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO vat_records (id, company_id, record_date, direction, vat_rate,
                                         base_amount, vat_amount, document_number,
                                         partner_name, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(record.id),
                    str(record.company_id),
                    record.record_date.isoformat(),
                    record.direction.value,
                    record.vat_rate.value,
                    str(record.base_amount),
                    str(record.vat_amount),
                    record.document_number,
                    record.partner_name,
                    record.created_at.isoformat(),
                ),
            )

    def get(self, record_id: UUID) -> VatRecord | None:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM vat_records WHERE id = ?", (str(record_id),)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def list_by_company(
        self,
        company_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        direction: VatDirection | None = None,
    ) -> Iterable[VatRecord]:
        query = "SELECT * FROM vat_records WHERE company_id = ?"
        params: list[str] = [str(company_id)]
        if start_date is not None:
            query += " AND record_date >= ?"
            params.append(start_date.isoformat())
        if end_date is not None:
            query += " AND record_date <= ?"
            params.append(end_date.isoformat())
        if direction is not None:
            query += " AND direction = ?"
            params.append(direction.value)
        query += " ORDER BY record_date, created_at"
        with self._db.reading() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def _row_to_record(self, row: sqlite3.Row) -> VatRecord:
        return VatRecord(
            id=UUID(row["id"]),
            company_id=UUID(row["company_id"]),
            record_date=date.fromisoformat(row["record_date"]),
            direction=VatDirection(row["direction"]),
            vat_rate=VatRate(row["vat_rate"]),
            base_amount=Decimal(row["base_amount"]),
            vat_amount=Decimal(row["vat_amount"]),
            document_number=row["document_number"],
            partner_name=row["partner_name"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteTaxReportRepository(TaxReportRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, report: TaxPeriodReport) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO tax_reports (id, company_id, year, period_type, period_number,
                                         status, fields, proportional_deduction_rate,
                                         previous_credit, record_count, submission_reference,
                                         rejection_reason, created_at, updated_at,
                                         calculated_at, submitted_at, decided_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(report.id),
                    str(report.company_id),
                    report.period.year,
                    report.period.period_type.value,
                    report.period.number,
                    report.status.value,
                    json.dumps(report.fields.as_dict()),
                    str(report.proportional_deduction_rate),
                    str(report.previous_credit),
                    report.record_count,
                    report.submission_reference,
                    report.rejection_reason,
                    report.created_at.isoformat(),
                    report.updated_at.isoformat(),
                    _iso(report.calculated_at),
                    _iso(report.submitted_at),
                    _iso(report.decided_at),
                ),
            )

    def get(self, report_id: UUID) -> TaxPeriodReport | None:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM tax_reports WHERE id = ?", (str(report_id),)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_report(row)

    def update(self, report: TaxPeriodReport) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                UPDATE tax_reports SET
                    status = ?,
                    fields = ?,
                    proportional_deduction_rate = ?,
                    previous_credit = ?,
                    record_count = ?,
                    submission_reference = ?,
                    rejection_reason = ?,
                    updated_at = ?,
                    calculated_at = ?,
                    submitted_at = ?,
                    decided_at = ?
                WHERE id = ?
                """,
                (
                    report.status.value,
                    json.dumps(report.fields.as_dict()),
                    str(report.proportional_deduction_rate),
                    str(report.previous_credit),
                    report.record_count,
                    report.submission_reference,
                    report.rejection_reason,
                    report.updated_at.isoformat(),
                    _iso(report.calculated_at),
                    _iso(report.submitted_at),
                    _iso(report.decided_at),
                    str(report.id),
                ),
            )

    def delete(self, report_id: UUID) -> None:
        with self._db.transaction() as conn:
            conn.execute("DELETE FROM tax_reports WHERE id = ?", (str(report_id),))

    def list_by_company(
        self,
        company_id: UUID,
        year: int | None = None,
        period_type: TaxPeriodType | None = None,
    ) -> Iterable[TaxPeriodReport]:
        query = "SELECT * FROM tax_reports WHERE company_id = ?"
        params: list[str | int] = [str(company_id)]
        if year is not None:
            query += " AND year = ?"
            params.append(year)
        if period_type is not None:
            query += " AND period_type = ?"
            params.append(period_type.value)
        query += " ORDER BY year, period_type, period_number, created_at"
        with self._db.reading() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_report(row) for row in rows]

    def list_for_period(
        self, company_id: UUID, period: TaxPeriod
    ) -> Iterable[TaxPeriodReport]:
        with self._db.reading() as conn:
            rows = conn.execute(
                """
                SELECT * FROM tax_reports
                WHERE company_id = ? AND year = ? AND period_type = ? AND period_number = ?
                ORDER BY created_at
                """,
                (
                    str(company_id),
                    period.year,
                    period.period_type.value,
                    period.number,
                ),
            ).fetchall()
        return [self._row_to_report(row) for row in rows]

    def _row_to_report(self, row: sqlite3.Row) -> TaxPeriodReport:
        fields = TaxFieldValues(json.loads(row["fields"]))
        fields.verify_balance()
        return TaxPeriodReport(
            id=UUID(row["id"]),
            company_id=UUID(row["company_id"]),
            period=TaxPeriod(
                year=row["year"],
                period_type=TaxPeriodType(row["period_type"]),
                number=row["period_number"],
            ),
            status=TaxReportStatus(row["status"]),
            fields=fields,
            proportional_deduction_rate=Decimal(row["proportional_deduction_rate"]),
            previous_credit=Decimal(row["previous_credit"]),
            record_count=row["record_count"],
            submission_reference=row["submission_reference"],
            rejection_reason=row["rejection_reason"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            calculated_at=_dt(row["calculated_at"]),
            submitted_at=_dt(row["submitted_at"]),
            decided_at=_dt(row["decided_at"]),
        )
