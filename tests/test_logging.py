"""Services emit structured events for state changes and lock contention."""

import logging
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import structlog

from sef_accounting.domain.advances import AdvanceInvoice, AdvanceInvoiceStatus
from sef_accounting.domain.tax_periods import TaxPeriod, TaxPeriodType
from sef_accounting.exceptions import ConcurrentModificationError
from sef_accounting.locking import EntityLockRegistry
from sef_accounting.logging_config import (
    LogContext,
    _stringify_domain_values,
    build_processors,
    get_logger,
)
from sef_accounting.services.interfaces import AdvanceInvoiceService, TaxPeriodService


def _output(capsys, caplog) -> str:
    # structlog may write to stdout directly or go through stdlib logging
    captured = capsys.readouterr()
    return captured.out + caplog.text


class TestServiceEvents:
    def test_advance_allocation_is_logged(
        self,
        advance_service: AdvanceInvoiceService,
        paid_advance: AdvanceInvoice,
        capsys,
        caplog,
    ) -> None:
        with caplog.at_level(logging.INFO, logger="sef_accounting.services.advances"):
            advance_service.use(paid_advance.id, "FA-2024-0042", Decimal("100.00"))

        output = _output(capsys, caplog)
        assert "advance_allocated" in output, f"Expected advance_allocated in {output!r}"

    def test_tax_report_creation_is_logged(
        self, tax_service: TaxPeriodService, company_id: UUID, capsys, caplog
    ) -> None:
        with caplog.at_level(logging.INFO, logger="sef_accounting.services.tax_periods"):
            tax_service.create_report(company_id, TaxPeriod(2024, TaxPeriodType.MONTHLY, 3))

        assert "tax_report_created" in _output(capsys, caplog)


class TestLockContention:
    def test_timeout_logs_warning(self, capsys, caplog) -> None:
        registry = EntityLockRegistry(timeout=0.01)

        with caplog.at_level(logging.WARNING, logger="sef_accounting.locking"):
            with registry.hold("advance_invoice", "a1"):
                with pytest.raises(ConcurrentModificationError):
                    with registry.hold("advance_invoice", "a1"):
                        pass

        assert "entity_lock_contention" in _output(capsys, caplog)

    def test_lock_is_released_after_use(self) -> None:
        registry = EntityLockRegistry(timeout=0.01)

        with registry.hold("journal_entry", "e1"):
            assert registry.is_held("journal_entry", "e1")

        assert not registry.is_held("journal_entry", "e1")


class TestLogContext:
    def test_context_manager_binds_and_unbinds(self, capsys, caplog) -> None:
        logger = get_logger("sef_accounting.tests")

        with caplog.at_level(logging.INFO, logger="sef_accounting.tests"):
            with LogContext(company_id="c-1"):
                logger.info("inside_context")

        assert "inside_context" in _output(capsys, caplog)

    def test_context_is_removed_on_exit(self) -> None:
        with LogContext(advance_id="a-1"):
            assert structlog.contextvars.get_contextvars()["advance_id"] == "a-1"

        assert "advance_id" not in structlog.contextvars.get_contextvars()

    def test_nested_context_restores_outer_value(self) -> None:
        with LogContext(company_id="outer"):
            with LogContext(company_id="inner"):
                assert structlog.contextvars.get_contextvars()["company_id"] == "inner"
            assert structlog.contextvars.get_contextvars()["company_id"] == "outer"


class TestProcessors:
    def test_domain_values_are_stringified(self) -> None:
        advance_id = uuid4()
        event = _stringify_domain_values(
            None,
            "info",
            {
                "event": "advance_allocated",
                "advance_id": advance_id,
                "amount": Decimal("500.00"),
                "status": AdvanceInvoiceStatus.PARTIALLY_USED,
            },
        )

        assert event == {
            "event": "advance_allocated",
            "advance_id": str(advance_id),
            "amount": "500.00",
            "status": "PARTIALLY_USED",
        }

    def test_json_pipeline_ends_with_json_renderer(self) -> None:
        processors = build_processors("json")

        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert isinstance(build_processors("console")[-1], structlog.dev.ConsoleRenderer)
