from sef_accounting.domain.accounts import STANDARD_CHART, Account
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
    TaxField,
    TaxFieldValues,
    TaxPeriod,
    TaxPeriodReport,
    TaxPeriodType,
    TaxReportStatus,
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

__all__ = [
    "STANDARD_CHART",
    "Account",
    "AccountType",
    "AdvanceAllocation",
    "AdvanceInvoice",
    "AdvanceInvoiceStatus",
    "AdvanceSummary",
    "BalanceSide",
    "Currency",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalEntryType",
    "JournalLine",
    "Money",
    "PPPDVCalculation",
    "Partner",
    "TaxField",
    "TaxFieldValues",
    "TaxPeriod",
    "TaxPeriodReport",
    "TaxPeriodType",
    "TaxReportStatus",
    "VatDirection",
    "VatRate",
    "VatRecord",
]
