from sef_accounting.domain.accounts import Account
from sef_accounting.domain.advances import AdvanceInvoice, Partner
from sef_accounting.domain.journal import JournalEntry, JournalLine
from sef_accounting.domain.tax_periods import TaxPeriod, TaxPeriodReport
from sef_accounting.domain.value_objects import Currency, Money

__all__ = [
    "Account",
    "AdvanceInvoice",
    "Currency",
    "JournalEntry",
    "JournalLine",
    "Money",
    "Partner",
    "TaxPeriod",
    "TaxPeriodReport",
]

__version__ = "0.1.0"
