"""API routes for the SEF accounting core."""

from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from sef_accounting.api.responses import DecimalJSONResponse, render
from sef_accounting.api.schemas import (
    AccountBalanceResponse,
    AccountCreate,
    AccountReparent,
    AccountResponse,
    AdvanceCancel,
    AdvanceInvoiceCreate,
    AdvanceInvoiceResponse,
    AdvancePayment,
    AdvanceRelease,
    AdvanceSummaryResponse,
    AdvanceUse,
    AdvanceUseResponse,
    AllocationResponse,
    GeneralLedgerLineResponse,
    HealthResponse,
    InvoicePostingCreate,
    JournalEntryCreate,
    JournalEntryResponse,
    JournalEntryReverse,
    JournalEntryUpdate,
    JournalLineCreate,
    JournalLineResponse,
    PPPDVCalculationResponse,
    StandardChartCreate,
    TaxReportCreate,
    TaxReportOutcome,
    TaxReportRecalculate,
    TaxReportResponse,
    TaxReportSubmit,
    TrialBalanceResponse,
    TrialBalanceRowResponse,
    VatRecordCreate,
    VatRecordResponse,
)
from sef_accounting.config import get_settings
from sef_accounting.container import (
    create_advance_service,
    create_chart_service,
    create_ledger_service,
    create_tax_period_service,
)
from sef_accounting.domain.accounts import Account
from sef_accounting.domain.advances import (
    AdvanceAllocation,
    AdvanceInvoice,
    AdvanceInvoiceStatus,
    Partner,
)
from sef_accounting.domain.journal import JournalEntry, JournalEntryStatus, JournalLine
from sef_accounting.domain.tax_periods import (
    PPPDVCalculation,
    TaxPeriod,
    TaxPeriodReport,
    TaxPeriodType,
    VatRecord,
)
from sef_accounting.domain.value_objects import (
    Currency,
    Money,
    VatDirection,
    round_money,
)
from sef_accounting.repositories.sqlite import SQLiteDatabase
from sef_accounting.services.interfaces import (
    AdvanceInvoiceService,
    ChartOfAccountsService,
    LedgerService,
    TaxPeriodService,
)

# Create routers
health_router = APIRouter(tags=["health"])
account_router = APIRouter(prefix="/accounts", tags=["accounts"])
journal_router = APIRouter(prefix="/journal-entries", tags=["journal"])
report_router = APIRouter(prefix="/reports", tags=["reports"])
advance_router = APIRouter(prefix="/advance-invoices", tags=["advance-invoices"])
vat_record_router = APIRouter(prefix="/vat-records", tags=["vat-records"])
tax_report_router = APIRouter(prefix="/tax-reports", tags=["tax-reports"])


# Dependency injection functions
def get_chart_service(db: SQLiteDatabase) -> ChartOfAccountsService:
    return create_chart_service(db)


def get_ledger_service(db: SQLiteDatabase) -> LedgerService:
    return create_ledger_service(db, Currency(get_settings().default_currency))


def get_advance_service(db: SQLiteDatabase) -> AdvanceInvoiceService:
    return create_advance_service(db)


def get_tax_period_service(db: SQLiteDatabase) -> TaxPeriodService:
    return create_tax_period_service(
        db, get_settings().default_proportional_deduction_rate
    )


# Helper functions
def _amount(value: Money | Decimal) -> Decimal:
    if isinstance(value, Money):
        value = value.amount
    return round_money(value)


def _account_to_response(account: Account) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        company_id=account.company_id,
        code=account.code,
        name=account.name,
        account_type=account.account_type.value,
        parent_id=account.parent_id,
        level=account.level,
        normal_side=account.normal_side.value,
        is_active=account.is_active,
        is_system=account.is_system,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


def _lines_from_payload(
    lines: list[JournalLineCreate], currency: Currency
) -> list[JournalLine]:
    return [
        JournalLine(
            account_id=line.account_id,
            debit=Money(line.debit, currency),
            credit=Money(line.credit, currency),
            description=line.description,
        )
        for line in lines
    ]


def _entry_to_response(entry: JournalEntry) -> JournalEntryResponse:
    return JournalEntryResponse(
        id=entry.id,
        company_id=entry.company_id,
        entry_number=entry.entry_number,
        entry_date=entry.entry_date,
        entry_type=entry.entry_type,
        status=entry.status,
        description=entry.description,
        currency=entry.currency.value,
        total_debit=_amount(entry.total_debit),
        total_credit=_amount(entry.total_credit),
        is_balanced=entry.is_balanced,
        lines=[
            JournalLineResponse(
                id=line.id,
                account_id=line.account_id,
                debit=_amount(line.debit),
                credit=_amount(line.credit),
                description=line.description,
            )
            for line in entry.lines
        ],
        created_at=entry.created_at,
        posted_at=entry.posted_at,
        reversed_at=entry.reversed_at,
        reversal_of=entry.reversal_of,
        reversal_reason=entry.reversal_reason,
        reference_type=entry.reference_type,
        reference_id=entry.reference_id,
    )


def _allocation_to_response(allocation: AdvanceAllocation) -> AllocationResponse:
    return AllocationResponse(
        id=allocation.id,
        invoice_id=allocation.invoice_id,
        amount=_amount(allocation.amount),
        allocated_at=allocation.allocated_at,
        releases_allocation_id=allocation.releases_allocation_id,
        note=allocation.note,
    )


def _advance_to_response(advance: AdvanceInvoice) -> AdvanceInvoiceResponse:
    return AdvanceInvoiceResponse(
        id=advance.id,
        company_id=advance.company_id,
        invoice_number=advance.invoice_number,
        partner_name=advance.partner.name,
        partner_tax_id=advance.partner.tax_id,
        partner_address=advance.partner.address,
        issue_date=advance.issue_date,
        currency=advance.currency.value,
        net_amount=_amount(advance.net_amount),
        vat_rate=advance.vat_rate.value,
        vat_amount=_amount(advance.vat_amount),
        total_amount=_amount(advance.total_amount),
        paid_amount=_amount(advance.paid_amount),
        payment_date=advance.payment_date,
        used_amount=_amount(advance.used_amount),
        remaining_amount=_amount(advance.remaining_amount),
        status=advance.status.value,
        linked_invoices=[_allocation_to_response(a) for a in advance.linked_invoices],
        note=advance.note,
        cancellation_reason=advance.cancellation_reason,
        created_at=advance.created_at,
        updated_at=advance.updated_at,
    )


def _vat_record_to_response(record: VatRecord) -> VatRecordResponse:
    return VatRecordResponse(
        id=record.id,
        company_id=record.company_id,
        record_date=record.record_date,
        direction=record.direction.value,
        vat_rate=record.vat_rate.value,
        base_amount=_amount(record.base_amount),
        vat_amount=_amount(record.vat_amount),
        document_number=record.document_number,
        partner_name=record.partner_name,
    )


def _calculation_to_response(calc: PPPDVCalculation) -> PPPDVCalculationResponse:
    return PPPDVCalculationResponse(
        company_id=calc.company_id,
        year=calc.period.year,
        period_type=calc.period.period_type,
        month=calc.period.month,
        quarter=calc.period.quarter,
        period=calc.period.label,
        first_day=calc.period.first_day,
        last_day=calc.period.last_day,
        fields={f.value: _amount(v) for f, v in calc.fields.items()},
        proportional_deduction_rate=calc.proportional_deduction_rate,
        previous_credit=_amount(calc.previous_credit),
        record_count=calc.record_count,
        total_output_vat=_amount(calc.total_output_vat),
        total_input_vat=_amount(calc.total_input_vat),
        payable=_amount(calc.payable),
        refundable=_amount(calc.refundable),
    )


def _report_to_response(report: TaxPeriodReport) -> TaxReportResponse:
    return TaxReportResponse(
        id=report.id,
        company_id=report.company_id,
        year=report.period.year,
        period_type=report.period.period_type,
        month=report.period.month,
        quarter=report.period.quarter,
        period=report.period.label,
        status=report.status.value,
        fields={f.value: _amount(v) for f, v in report.fields.items()},
        proportional_deduction_rate=report.proportional_deduction_rate,
        previous_credit=_amount(report.previous_credit),
        record_count=report.record_count,
        payable=_amount(report.payable),
        refundable=_amount(report.refundable),
        submission_reference=report.submission_reference,
        rejection_reason=report.rejection_reason,
        created_at=report.created_at,
        updated_at=report.updated_at,
        calculated_at=report.calculated_at,
        submitted_at=report.submitted_at,
        decided_at=report.decided_at,
    )


# Health endpoint
@health_router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=get_settings().app_version)


# Account endpoints
@account_router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_account(
    payload: AccountCreate,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    """Create an account; the parent is inferred from the code when omitted."""
    account = get_chart_service(db).create_account(
        payload.company_id,
        payload.code,
        payload.name,
        payload.account_type,
        payload.parent_id,
    )
    return render(_account_to_response(account), status.HTTP_201_CREATED)


@account_router.get("", response_model=list[AccountResponse])
def list_accounts(
    company_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    include_inactive: bool = True,
) -> DecimalJSONResponse:
    """List a company's accounts ordered by code."""
    accounts = get_chart_service(db).list_accounts(company_id, include_inactive)
    return render([_account_to_response(a) for a in accounts])


@account_router.post(
    "/standard-chart",
    response_model=list[AccountResponse],
    status_code=status.HTTP_201_CREATED,
)
def initialize_standard_chart(
    payload: StandardChartCreate,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    """Seed the standard chart; returns only the accounts that were created."""
    accounts = get_chart_service(db).initialize_standard_chart(payload.company_id)
    return render([_account_to_response(a) for a in accounts], status.HTTP_201_CREATED)


@account_router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    account = get_chart_service(db).get_account(account_id)
    return render(_account_to_response(account))


@account_router.post("/{account_id}/deactivate", response_model=AccountResponse)
def deactivate_account(
    account_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    account = get_chart_service(db).deactivate_account(account_id)
    return render(_account_to_response(account))


@account_router.post("/{account_id}/activate", response_model=AccountResponse)
def activate_account(
    account_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    account = get_chart_service(db).activate_account(account_id)
    return render(_account_to_response(account))


@account_router.post("/{account_id}/parent", response_model=AccountResponse)
def reparent_account(
    account_id: UUID,
    payload: AccountReparent,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    account = get_chart_service(db).reparent_account(account_id, payload.parent_id)
    return render(_account_to_response(account))


@account_router.get("/{account_id}/children", response_model=list[AccountResponse])
def list_child_accounts(
    account_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    """Direct sub-accounts ordered by code."""
    children = get_chart_service(db).list_children(account_id)
    return render([_account_to_response(a) for a in children])


@account_router.get("/{account_id}/balance", response_model=AccountBalanceResponse)
def get_account_balance(
    account_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    as_of_date: date | None = None,
    currency: Currency | None = None,
) -> DecimalJSONResponse:
    """Balance of posted entries in one currency, signed by the normal side."""
    account = get_chart_service(db).get_account(account_id)
    balance = get_ledger_service(db).get_account_balance(account_id, as_of_date, currency)
    response = AccountBalanceResponse(
        account_id=account.id,
        code=account.code,
        as_of_date=as_of_date,
        balance=_amount(balance),
        currency=balance.currency.value,
    )
    return render(response)


@account_router.get("/{account_id}/ledger", response_model=list[GeneralLedgerLineResponse])
def get_general_ledger(
    account_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    start_date: date | None = None,
    end_date: date | None = None,
    currency: Currency | None = None,
) -> DecimalJSONResponse:
    lines = get_ledger_service(db).get_general_ledger(
        account_id, start_date, end_date, currency
    )
    return render(
        [
            GeneralLedgerLineResponse(
                entry_id=line.entry_id,
                entry_number=line.entry_number,
                entry_date=line.entry_date,
                description=line.description,
                debit=_amount(line.debit),
                credit=_amount(line.credit),
                running_balance=_amount(line.running_balance),
            )
            for line in lines
        ]
    )


# Journal endpoints
@journal_router.post(
    "",
    response_model=JournalEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_journal_entry(
    payload: JournalEntryCreate,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    """Create a DRAFT entry with the next sequential entry number."""
    entry = get_ledger_service(db).create_entry(
        payload.company_id,
        payload.entry_date,
        _lines_from_payload(payload.lines, payload.currency),
        payload.entry_type,
        payload.description,
    )
    return render(_entry_to_response(entry), status.HTTP_201_CREATED)


@journal_router.post(
    "/invoices",
    response_model=JournalEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
def post_invoice_to_journal(
    payload: InvoicePostingCreate,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    """Book an outgoing invoice as a POSTED sales entry, once per invoice id."""
    entry = get_ledger_service(db).post_invoice(
        payload.company_id,
        payload.invoice_id,
        payload.invoice_number,
        payload.issue_date,
        payload.net_amount,
        payload.vat_amount,
        payload.partner_name,
        payload.currency,
    )
    return render(_entry_to_response(entry), status.HTTP_201_CREATED)


@journal_router.get("", response_model=list[JournalEntryResponse])
def list_journal_entries(
    company_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    entry_status: Annotated[JournalEntryStatus | None, Query(alias="status")] = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> DecimalJSONResponse:
    entries = get_ledger_service(db).list_entries(
        company_id, entry_status, start_date, end_date
    )
    return render([_entry_to_response(e) for e in entries])


@journal_router.get("/{entry_id}", response_model=JournalEntryResponse)
def get_journal_entry(
    entry_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    entry = get_ledger_service(db).get_entry(entry_id)
    return render(_entry_to_response(entry))


@journal_router.put("/{entry_id}", response_model=JournalEntryResponse)
def update_journal_entry(
    entry_id: UUID,
    payload: JournalEntryUpdate,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    """Replace the lines of a DRAFT entry."""
    service = get_ledger_service(db)
    currency = payload.currency or service.get_entry(entry_id).currency
    entry = service.update_entry(
        entry_id,
        _lines_from_payload(payload.lines, currency),
        payload.description,
        payload.entry_date,
    )
    return render(_entry_to_response(entry))


@journal_router.post("/{entry_id}/post", response_model=JournalEntryResponse)
def post_journal_entry(
    entry_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    entry = get_ledger_service(db).post_entry(entry_id)
    return render(_entry_to_response(entry))


@journal_router.post(
    "/{entry_id}/reverse",
    response_model=JournalEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
def reverse_journal_entry(
    entry_id: UUID,
    payload: JournalEntryReverse,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    """Post a storno entry; the response is the new reversing entry."""
    reversal = get_ledger_service(db).reverse_entry(
        entry_id, payload.reason, payload.reversal_date, payload.entry_type
    )
    return render(_entry_to_response(reversal), status.HTTP_201_CREATED)


@journal_router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_journal_entry(
    entry_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> Response:
    get_ledger_service(db).delete_entry(entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Report endpoints
@report_router.get("/trial-balance", response_model=TrialBalanceResponse)
def get_trial_balance(
    company_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    as_of_date: date | None = None,
    currency: Currency | None = None,
) -> DecimalJSONResponse:
    """Turnover per account for entries in one currency (the default ledger one)."""
    trial_balance = get_ledger_service(db).get_trial_balance(
        company_id, as_of_date, currency
    )
    response = TrialBalanceResponse(
        company_id=trial_balance.company_id,
        as_of_date=trial_balance.as_of_date,
        currency=trial_balance.currency.value,
        rows=[
            TrialBalanceRowResponse(
                account_id=row.account_id,
                code=row.code,
                name=row.name,
                account_type=row.account_type.value,
                debit=_amount(row.debit),
                credit=_amount(row.credit),
                balance=_amount(row.balance),
            )
            for row in trial_balance.rows
        ],
        total_debit=_amount(trial_balance.total_debit),
        total_credit=_amount(trial_balance.total_credit),
        is_balanced=trial_balance.is_balanced,
    )
    return render(response)


# Advance invoice endpoints
@advance_router.post(
    "",
    response_model=AdvanceInvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
def issue_advance_invoice(
    payload: AdvanceInvoiceCreate,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    """Create a DRAFT advance invoice numbered ``AV-YYYY-NNNN``."""
    partner = Partner(
        name=payload.partner_name,
        tax_id=payload.partner_tax_id,
        address=payload.partner_address,
    )
    advance = get_advance_service(db).issue(
        payload.company_id,
        partner,
        payload.issue_date,
        payload.net_amount,
        payload.vat_rate,
        payload.currency,
        payload.note,
    )
    return render(_advance_to_response(advance), status.HTTP_201_CREATED)


@advance_router.get("", response_model=list[AdvanceInvoiceResponse])
def list_advance_invoices(
    company_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    advance_status: Annotated[AdvanceInvoiceStatus | None, Query(alias="status")] = None,
    partner_tax_id: str | None = None,
    available_only: bool = False,
) -> DecimalJSONResponse:
    """List advances; ``available_only`` with a partner lists consumable ones."""
    service = get_advance_service(db)
    if available_only and partner_tax_id:
        advances = service.available_for_partner(company_id, partner_tax_id)
    else:
        advances = service.list_advances(company_id, advance_status, partner_tax_id)
    return render([_advance_to_response(a) for a in advances])


@advance_router.get("/summary", response_model=AdvanceSummaryResponse)
def get_advance_summary(
    company_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    currency: Currency = Currency.RSD,
) -> DecimalJSONResponse:
    summary = get_advance_service(db).summary(company_id, currency)
    response = AdvanceSummaryResponse(
        company_id=company_id,
        currency=currency.value,
        count=summary.count,
        total_amount=_amount(summary.total_amount),
        used_amount=_amount(summary.used_amount),
        remaining_amount=_amount(summary.remaining_amount),
        by_status={s.value: n for s, n in summary.by_status.items()},
    )
    return render(response)


@advance_router.get("/{advance_id}", response_model=AdvanceInvoiceResponse)
def get_advance_invoice(
    advance_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    advance = get_advance_service(db).get(advance_id)
    return render(_advance_to_response(advance))


@advance_router.post("/{advance_id}/issue", response_model=AdvanceInvoiceResponse)
def mark_advance_issued(
    advance_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    advance = get_advance_service(db).mark_issued(advance_id)
    return render(_advance_to_response(advance))


@advance_router.post("/{advance_id}/pay", response_model=AdvanceInvoiceResponse)
def mark_advance_paid(
    advance_id: UUID,
    payload: AdvancePayment,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    advance = get_advance_service(db).mark_paid(
        advance_id, payload.payment_date, payload.amount
    )
    return render(_advance_to_response(advance))


@advance_router.post("/{advance_id}/use", response_model=AdvanceUseResponse)
def use_advance(
    advance_id: UUID,
    payload: AdvanceUse,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    advance, allocation = get_advance_service(db).use(
        advance_id, payload.invoice_id, payload.amount
    )
    response = AdvanceUseResponse(
        advance=_advance_to_response(advance),
        allocation=_allocation_to_response(allocation),
    )
    return render(response)


@advance_router.post("/{advance_id}/release", response_model=AdvanceUseResponse)
def release_advance_allocation(
    advance_id: UUID,
    payload: AdvanceRelease,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    advance, release = get_advance_service(db).release(
        advance_id, payload.allocation_id, payload.reason
    )
    response = AdvanceUseResponse(
        advance=_advance_to_response(advance),
        allocation=_allocation_to_response(release),
    )
    return render(response)


@advance_router.post("/{advance_id}/cancel", response_model=AdvanceInvoiceResponse)
def cancel_advance_invoice(
    advance_id: UUID,
    payload: AdvanceCancel,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    advance = get_advance_service(db).cancel(advance_id, payload.reason, payload.force)
    return render(_advance_to_response(advance))


# VAT record endpoints
@vat_record_router.post(
    "",
    response_model=VatRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_vat_record(
    payload: VatRecordCreate,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    record = get_tax_period_service(db).add_vat_record(
        payload.company_id,
        payload.record_date,
        payload.direction,
        payload.vat_rate,
        payload.base_amount,
        payload.vat_amount,
        payload.document_number,
        payload.partner_name,
    )
    return render(_vat_record_to_response(record), status.HTTP_201_CREATED)


@vat_record_router.get("", response_model=list[VatRecordResponse])
def list_vat_records(
    company_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    start_date: date | None = None,
    end_date: date | None = None,
    direction: VatDirection | None = None,
) -> DecimalJSONResponse:
    records = get_tax_period_service(db).list_vat_records(
        company_id, start_date, end_date, direction
    )
    return render([_vat_record_to_response(r) for r in records])


# Tax report endpoints
@tax_report_router.get("/calculate", response_model=PPPDVCalculationResponse)
def calculate_tax_period(
    company_id: UUID,
    year: int,
    period_type: TaxPeriodType,
    db: Annotated[SQLiteDatabase, Depends()],
    month: int | None = None,
    quarter: int | None = None,
    proportional_deduction_rate: Decimal | None = None,
    previous_credit: Decimal | None = None,
    input_vat_adjustment: Decimal | None = None,
) -> DecimalJSONResponse:
    """Preview a period's PPPDV fields without creating a report."""
    period = TaxPeriod.resolve(year, period_type, month, quarter)
    calculation = get_tax_period_service(db).calculate(
        company_id,
        period,
        proportional_deduction_rate,
        previous_credit,
        input_vat_adjustment,
    )
    return render(_calculation_to_response(calculation))


@tax_report_router.post(
    "",
    response_model=TaxReportResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_tax_report(
    payload: TaxReportCreate,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    period = TaxPeriod.resolve(
        payload.year, payload.period_type, payload.month, payload.quarter
    )
    report = get_tax_period_service(db).create_report(
        payload.company_id,
        period,
        payload.proportional_deduction_rate,
        payload.previous_credit,
        payload.input_vat_adjustment,
    )
    return render(_report_to_response(report), status.HTTP_201_CREATED)


@tax_report_router.get("", response_model=list[TaxReportResponse])
def list_tax_reports(
    company_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    year: int | None = None,
    period_type: TaxPeriodType | None = None,
) -> DecimalJSONResponse:
    reports = get_tax_period_service(db).list_reports(company_id, year, period_type)
    return render([_report_to_response(r) for r in reports])


@tax_report_router.get("/{report_id}", response_model=TaxReportResponse)
def get_tax_report(
    report_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    report = get_tax_period_service(db).get_report(report_id)
    return render(_report_to_response(report))


@tax_report_router.post("/{report_id}/recalculate", response_model=TaxReportResponse)
def recalculate_tax_report(
    report_id: UUID,
    payload: TaxReportRecalculate,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    report = get_tax_period_service(db).recalculate(
        report_id,
        payload.proportional_deduction_rate,
        payload.previous_credit,
        payload.input_vat_adjustment,
    )
    return render(_report_to_response(report))


@tax_report_router.post("/{report_id}/submit", response_model=TaxReportResponse)
def submit_tax_report(
    report_id: UUID,
    payload: TaxReportSubmit,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    report = get_tax_period_service(db).submit(report_id, payload.submission_reference)
    return render(_report_to_response(report))


@tax_report_router.post("/{report_id}/outcome", response_model=TaxReportResponse)
def record_tax_report_outcome(
    report_id: UUID,
    payload: TaxReportOutcome,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DecimalJSONResponse:
    """Record the tax authority's decision on a submitted report."""
    report = get_tax_period_service(db).record_outcome(
        report_id, payload.accepted, payload.reference, payload.reason
    )
    return render(_report_to_response(report))


@tax_report_router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tax_report(
    report_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
) -> Response:
    get_tax_period_service(db).delete_report(report_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
