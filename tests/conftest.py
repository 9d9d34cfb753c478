from collections.abc import Iterator
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from sef_accounting.container import (
    create_advance_service,
    create_chart_service,
    create_ledger_service,
    create_tax_period_service,
)
from sef_accounting.domain.accounts import Account
from sef_accounting.domain.advances import AdvanceInvoice, Partner
from sef_accounting.repositories.sqlite import SQLiteDatabase
from sef_accounting.services.interfaces import (
    AdvanceInvoiceService,
    ChartOfAccountsService,
    LedgerService,
    TaxPeriodService,
)


@pytest.fixture
def db() -> Iterator[SQLiteDatabase]:
    """In-memory database shared across threads, as the API uses it."""
    database = SQLiteDatabase(":memory:", check_same_thread=False)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def company_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_company_id() -> UUID:
    return uuid4()


@pytest.fixture
def chart_service(db: SQLiteDatabase) -> ChartOfAccountsService:
    return create_chart_service(db)


@pytest.fixture
def ledger_service(db: SQLiteDatabase) -> LedgerService:
    return create_ledger_service(db)


@pytest.fixture
def advance_service(db: SQLiteDatabase) -> AdvanceInvoiceService:
    return create_advance_service(db)


@pytest.fixture
def tax_service(db: SQLiteDatabase) -> TaxPeriodService:
    return create_tax_period_service(db)


@pytest.fixture
def accounts(
    chart_service: ChartOfAccountsService, company_id: UUID
) -> dict[str, Account]:
    """Standard chart for ``company_id``, keyed by account code."""
    chart_service.initialize_standard_chart(company_id)
    return {a.code: a for a in chart_service.list_accounts(company_id)}


@pytest.fixture
def partner() -> Partner:
    return Partner(name="Kupac d.o.o.", tax_id="101234567", address="Beograd")


@pytest.fixture
def paid_advance(
    advance_service: AdvanceInvoiceService, company_id: UUID, partner: Partner
) -> AdvanceInvoice:
    """Advance of 1000.00 + 20% VAT, issued and paid in full."""
    advance = advance_service.issue(
        company_id, partner, date(2024, 3, 1), Decimal("1000.00"), 20
    )
    advance_service.mark_issued(advance.id)
    return advance_service.mark_paid(advance.id, date(2024, 3, 5), Decimal("1200.00"))
