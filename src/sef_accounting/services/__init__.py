from sef_accounting.services.accounts import ChartOfAccountsServiceImpl
from sef_accounting.services.advances import AdvanceInvoiceServiceImpl
from sef_accounting.services.interfaces import (
    AdvanceInvoiceService,
    ChartOfAccountsService,
    GeneralLedgerLine,
    LedgerService,
    TaxPeriodService,
    TrialBalance,
    TrialBalanceRow,
)
from sef_accounting.services.ledger import LedgerServiceImpl
from sef_accounting.services.tax_periods import TaxPeriodServiceImpl
from sef_accounting.services.vat_calculation import calculate_pppdv

__all__ = [
    "AdvanceInvoiceService",
    "AdvanceInvoiceServiceImpl",
    "ChartOfAccountsService",
    "ChartOfAccountsServiceImpl",
    "GeneralLedgerLine",
    "LedgerService",
    "LedgerServiceImpl",
    "TaxPeriodService",
    "TaxPeriodServiceImpl",
    "TrialBalance",
    "TrialBalanceRow",
    "calculate_pppdv",
]
