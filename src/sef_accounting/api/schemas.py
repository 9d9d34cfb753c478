"""Pydantic v2 schemas for API request/response models.

Monetary request fields accept JSON numbers or strings; the domain rejects
more than two fraction digits. Monetary response fields are Decimals that
render as JSON numbers with exactly two fraction digits (see responses.py).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from sef_accounting.domain.journal import JournalEntryStatus, JournalEntryType
from sef_accounting.domain.value_objects import AccountType, Currency, VatDirection
from sef_accounting.domain.tax_periods import TaxPeriodType


class HealthResponse(BaseModel):
    status: str
    version: str


# Account Schemas
class AccountCreate(BaseModel):
    """Schema for creating an account."""

    model_config = ConfigDict(str_strip_whitespace=True)

    company_id: UUID
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=255)
    account_type: AccountType
    parent_id: UUID | None = None


class AccountReparent(BaseModel):
    parent_id: UUID | None = None


class StandardChartCreate(BaseModel):
    company_id: UUID


class AccountResponse(BaseModel):
    """Schema for account response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    code: str
    name: str
    account_type: str
    parent_id: UUID | None
    level: int
    normal_side: str
    is_active: bool
    is_system: bool
    created_at: datetime
    updated_at: datetime


class AccountBalanceResponse(BaseModel):
    account_id: UUID
    code: str
    as_of_date: date | None
    balance: Decimal
    currency: str


class GeneralLedgerLineResponse(BaseModel):
    entry_id: UUID
    entry_number: str
    entry_date: date
    description: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal


# Journal Schemas
class JournalLineCreate(BaseModel):
    """One posting line; exactly one of debit/credit must be positive."""

    account_id: UUID
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str = ""


class JournalEntryCreate(BaseModel):
    """Schema for creating a draft journal entry."""

    model_config = ConfigDict(str_strip_whitespace=True)

    company_id: UUID
    entry_date: date
    entry_type: JournalEntryType = JournalEntryType.GENERAL
    description: str = Field(default="", max_length=1000)
    lines: list[JournalLineCreate]
    currency: Currency = Currency.RSD


class JournalEntryUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    lines: list[JournalLineCreate]
    description: str | None = Field(default=None, max_length=1000)
    entry_date: date | None = None
    # Defaults to the currency of the draft being replaced.
    currency: Currency | None = None


class JournalEntryReverse(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str = Field(..., min_length=1, max_length=500)
    reversal_date: date | None = None
    entry_type: JournalEntryType = JournalEntryType.ADJUSTMENT


class InvoicePostingCreate(BaseModel):
    """An outgoing invoice to book as receivable, revenue and output VAT."""

    model_config = ConfigDict(str_strip_whitespace=True)

    company_id: UUID
    invoice_id: str = Field(..., min_length=1, max_length=100)
    invoice_number: str = Field(..., min_length=1, max_length=100)
    issue_date: date
    net_amount: Decimal
    vat_amount: Decimal = Decimal("0")
    partner_name: str = ""
    currency: Currency | None = None


class JournalLineResponse(BaseModel):
    id: UUID
    account_id: UUID
    debit: Decimal
    credit: Decimal
    description: str


class JournalEntryResponse(BaseModel):
    id: UUID
    company_id: UUID
    entry_number: str
    entry_date: date
    entry_type: JournalEntryType
    status: JournalEntryStatus
    description: str
    currency: str
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool
    lines: list[JournalLineResponse]
    created_at: datetime
    posted_at: datetime | None
    reversed_at: datetime | None
    reversal_of: UUID | None
    reversal_reason: str | None
    reference_type: str | None
    reference_id: str | None


# Report Schemas
class TrialBalanceRowResponse(BaseModel):
    account_id: UUID
    code: str
    name: str
    account_type: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


class TrialBalanceResponse(BaseModel):
    company_id: UUID
    as_of_date: date | None
    currency: str
    rows: list[TrialBalanceRowResponse]
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool


# Advance Invoice Schemas
class AdvanceInvoiceCreate(BaseModel):
    """Schema for issuing an advance invoice."""

    model_config = ConfigDict(str_strip_whitespace=True)

    company_id: UUID
    partner_name: str
    partner_tax_id: str
    partner_address: str = ""
    issue_date: date
    net_amount: Decimal
    vat_rate: int = Field(..., description="VAT rate in percent: 0, 10 or 20")
    currency: Currency = Currency.RSD
    note: str = Field(default="", max_length=1000)


class AdvancePayment(BaseModel):
    payment_date: date
    amount: Decimal


class AdvanceUse(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    invoice_id: str = Field(..., min_length=1, max_length=100)
    amount: Decimal


class AdvanceRelease(BaseModel):
    allocation_id: UUID
    reason: str = ""


class AdvanceCancel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str = Field(..., min_length=1, max_length=500)
    force: bool = False


class AllocationResponse(BaseModel):
    id: UUID
    invoice_id: str
    amount: Decimal
    allocated_at: datetime
    releases_allocation_id: UUID | None
    note: str


class AdvanceInvoiceResponse(BaseModel):
    id: UUID
    company_id: UUID
    invoice_number: str
    partner_name: str
    partner_tax_id: str
    partner_address: str
    issue_date: date
    currency: str
    net_amount: Decimal
    vat_rate: int
    vat_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    payment_date: date | None
    used_amount: Decimal
    remaining_amount: Decimal
    status: str
    linked_invoices: list[AllocationResponse]
    note: str
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime


class AdvanceUseResponse(BaseModel):
    advance: AdvanceInvoiceResponse
    allocation: AllocationResponse


class AdvanceSummaryResponse(BaseModel):
    company_id: UUID
    currency: str
    count: int
    total_amount: Decimal
    used_amount: Decimal
    remaining_amount: Decimal
    by_status: dict[str, int]


# VAT Record Schemas
class VatRecordCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    company_id: UUID
    record_date: date
    direction: VatDirection
    vat_rate: int
    base_amount: Decimal
    vat_amount: Decimal = Decimal("0")
    document_number: str = ""
    partner_name: str = ""


class VatRecordResponse(BaseModel):
    id: UUID
    company_id: UUID
    record_date: date
    direction: str
    vat_rate: int
    base_amount: Decimal
    vat_amount: Decimal
    document_number: str
    partner_name: str


# Tax Report Schemas
class TaxReportCreate(BaseModel):
    """Period plus optional overrides; omitted overrides use the defaults."""

    company_id: UUID
    year: int
    period_type: TaxPeriodType
    month: int | None = None
    quarter: int | None = None
    proportional_deduction_rate: Decimal | None = None
    previous_credit: Decimal | None = None
    input_vat_adjustment: Decimal | None = None


class TaxReportRecalculate(BaseModel):
    proportional_deduction_rate: Decimal | None = None
    previous_credit: Decimal | None = None
    input_vat_adjustment: Decimal | None = None


class TaxReportSubmit(BaseModel):
    submission_reference: str | None = None


class TaxReportOutcome(BaseModel):
    accepted: bool
    reference: str | None = None
    reason: str | None = None


class PPPDVCalculationResponse(BaseModel):
    company_id: UUID
    year: int
    period_type: TaxPeriodType
    month: int | None
    quarter: int | None
    period: str
    first_day: date
    last_day: date
    fields: dict[str, Decimal]
    proportional_deduction_rate: Decimal
    previous_credit: Decimal
    record_count: int
    total_output_vat: Decimal
    total_input_vat: Decimal
    payable: Decimal
    refundable: Decimal


class TaxReportResponse(BaseModel):
    id: UUID
    company_id: UUID
    year: int
    period_type: TaxPeriodType
    month: int | None
    quarter: int | None
    period: str
    status: str
    fields: dict[str, Decimal]
    proportional_deduction_rate: Decimal
    previous_credit: Decimal
    record_count: int
    payable: Decimal
    refundable: Decimal
    submission_reference: str | None
    rejection_reason: str | None
    created_at: datetime
    updated_at: datetime
    calculated_at: datetime | None
    submitted_at: datetime | None
    decided_at: datetime | None
