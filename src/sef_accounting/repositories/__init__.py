from sef_accounting.repositories.interfaces import (
    AccountRepository,
    AdvanceInvoiceRepository,
    JournalEntryRepository,
    SequenceRepository,
    TaxReportRepository,
    TransactionManager,
    VatRecordRepository,
)
from sef_accounting.repositories.sqlite import (
    SQLiteAccountRepository,
    SQLiteAdvanceInvoiceRepository,
    SQLiteDatabase,
    SQLiteJournalEntryRepository,
    SQLiteSequenceRepository,
    SQLiteTaxReportRepository,
    SQLiteVatRecordRepository,
)

__all__ = [
    "AccountRepository",
    "AdvanceInvoiceRepository",
    "JournalEntryRepository",
    "SQLiteAccountRepository",
    "SQLiteAdvanceInvoiceRepository",
    "SQLiteDatabase",
    "SQLiteJournalEntryRepository",
    "SQLiteSequenceRepository",
    "SQLiteTaxReportRepository",
    "SQLiteVatRecordRepository",
    "SequenceRepository",
    "TaxReportRepository",
    "TransactionManager",
    "VatRecordRepository",
]
