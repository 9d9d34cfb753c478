"""Dependency injection container for the SEF accounting core.

Services are built from one :class:`SQLiteDatabase`, which owns the shared
connection, the transaction boundary and the per-entity lock registry.

Usage:
    from sef_accounting.container import get_container

    container = get_container()
    entry = container.ledger_service.post_entry(entry_id)
"""

from decimal import Decimal
from functools import cached_property, lru_cache

from sef_accounting.config import Settings, get_settings
from sef_accounting.domain.value_objects import Currency
from sef_accounting.logging_config import get_logger
from sef_accounting.repositories.sqlite import (
    SQLiteAccountRepository,
    SQLiteAdvanceInvoiceRepository,
    SQLiteDatabase,
    SQLiteJournalEntryRepository,
    SQLiteSequenceRepository,
    SQLiteTaxReportRepository,
    SQLiteVatRecordRepository,
)
from sef_accounting.services.accounts import ChartOfAccountsServiceImpl
from sef_accounting.services.advances import AdvanceInvoiceServiceImpl
from sef_accounting.services.interfaces import (
    AdvanceInvoiceService,
    ChartOfAccountsService,
    LedgerService,
    TaxPeriodService,
)
from sef_accounting.services.ledger import LedgerServiceImpl
from sef_accounting.services.tax_periods import TaxPeriodServiceImpl

logger = get_logger(__name__)


def create_chart_service(db: SQLiteDatabase) -> ChartOfAccountsService:
    return ChartOfAccountsServiceImpl(db, SQLiteAccountRepository(db))


def create_ledger_service(
    db: SQLiteDatabase, currency: Currency = Currency.RSD
) -> LedgerService:
    return LedgerServiceImpl(
        db,
        SQLiteJournalEntryRepository(db),
        SQLiteAccountRepository(db),
        SQLiteSequenceRepository(db),
        currency=currency,
    )


def create_advance_service(db: SQLiteDatabase) -> AdvanceInvoiceService:
    return AdvanceInvoiceServiceImpl(
        db, SQLiteAdvanceInvoiceRepository(db), SQLiteSequenceRepository(db)
    )


def create_tax_period_service(
    db: SQLiteDatabase, default_deduction_rate: Decimal = Decimal("100")
) -> TaxPeriodService:
    return TaxPeriodServiceImpl(
        db,
        SQLiteVatRecordRepository(db),
        SQLiteTaxReportRepository(db),
        default_deduction_rate=default_deduction_rate,
    )


class Container:
    """Lazily builds and caches the database and services.

    Tests can pass their own settings:

        container = Container(settings=Settings(sqlite_path=":memory:"))
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        logger.debug(
            "container_created",
            environment=self._settings.environment.value,
            sqlite_path=str(self._settings.sqlite_path),
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def database(self) -> SQLiteDatabase:
        """The shared database; its schema is created on first access."""
        db_path = str(self._settings.sqlite_path)
        if not self._settings.uses_memory_database:
            self._settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("initializing_sqlite_database", path=db_path)
        db = SQLiteDatabase(
            db_path,
            check_same_thread=False,
            lock_timeout=self._settings.lock_timeout_seconds,
        )
        db.initialize()
        return db

    @cached_property
    def chart_service(self) -> ChartOfAccountsService:
        return create_chart_service(self.database)

    @cached_property
    def ledger_service(self) -> LedgerService:
        return create_ledger_service(
            self.database, Currency(self._settings.default_currency)
        )

    @cached_property
    def advance_service(self) -> AdvanceInvoiceService:
        return create_advance_service(self.database)

    @cached_property
    def tax_period_service(self) -> TaxPeriodService:
        return create_tax_period_service(
            self.database, self._settings.default_proportional_deduction_rate
        )

    def close(self) -> None:
        """Close the database if it was opened."""
        if "database" in self.__dict__:
            logger.info("closing_database_connection")
            self.database.close()

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


_container: Container | None = None


@lru_cache
def get_container() -> Container:
    """Get the global container singleton.

    For testing, create a Container directly with custom settings instead.
    """
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Close and forget the global container."""
    global _container
    if _container is not None:
        _container.close()
        _container = None
    get_container.cache_clear()


def get_database() -> SQLiteDatabase:
    """FastAPI dependency for database access."""
    return get_container().database
