"""Tax period (PPPDV) reports built from VAT records."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sef_accounting.domain.tax_periods import (
    ZERO,
    PPPDVCalculation,
    TaxField,
    TaxPeriod,
    TaxPeriodReport,
    TaxPeriodType,
    TaxReportStatus,
    VatRecord,
)
from sef_accounting.domain.value_objects import HUNDRED, VatDirection, VatRate
from sef_accounting.exceptions import DuplicateTaxReportError, TaxReportNotFoundError
from sef_accounting.logging_config import get_logger
from sef_accounting.repositories.interfaces import (
    TaxReportRepository,
    TransactionManager,
    VatRecordRepository,
)
from sef_accounting.services.interfaces import TaxPeriodService
from sef_accounting.services.vat_calculation import calculate_pppdv

logger = get_logger(__name__)

LOCK_KIND = "tax_report"
CARRY_FORWARD_STATUSES = (TaxReportStatus.SUBMITTED, TaxReportStatus.ACCEPTED)


class TaxPeriodServiceImpl(TaxPeriodService):
    def __init__(
        self,
        transactions: TransactionManager,
        vat_record_repo: VatRecordRepository,
        report_repo: TaxReportRepository,
        default_deduction_rate: Decimal = HUNDRED,
    ) -> None:
        self._transactions = transactions
        self._vat_record_repo = vat_record_repo
        self._report_repo = report_repo
        self._default_deduction_rate = default_deduction_rate

    def _load(self, report_id: UUID) -> TaxPeriodReport:
        report = self._report_repo.get(report_id)
        if report is None:
            raise TaxReportNotFoundError(report_id)
        return report

    def add_vat_record(
        self,
        company_id: UUID,
        record_date: date,
        direction: VatDirection,
        vat_rate: VatRate,
        base_amount: Decimal,
        vat_amount: Decimal,
        document_number: str = "",
        partner_name: str = "",
    ) -> VatRecord:
        record = VatRecord(
            company_id=company_id,
            record_date=record_date,
            direction=direction,
            vat_rate=vat_rate,
            base_amount=base_amount,
            vat_amount=vat_amount,
            document_number=document_number.strip(),
            partner_name=partner_name.strip(),
        )
        self._vat_record_repo.add(record)
        logger.debug(
            "vat_record_added",
            record_id=str(record.id),
            direction=record.direction.value,
            vat_rate=record.vat_rate.value,
        )
        return record

    def list_vat_records(
        self,
        company_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        direction: VatDirection | None = None,
    ) -> list[VatRecord]:
        return list(
            self._vat_record_repo.list_by_company(
                company_id, start_date, end_date, direction
            )
        )

    def _carried_credit(self, company_id: UUID, period: TaxPeriod) -> Decimal:
        """Field 402 of the preceding period's submitted or accepted report."""
        for report in self._report_repo.list_for_period(company_id, period.previous()):
            if report.status in CARRY_FORWARD_STATUSES:
                return report.refundable
        return ZERO

    def calculate(
        self,
        company_id: UUID,
        period: TaxPeriod,
        proportional_deduction_rate: Decimal | None = None,
        previous_credit: Decimal | None = None,
        input_vat_adjustment: Decimal | None = None,
    ) -> PPPDVCalculation:
        """Preview the declaration for a period without persisting anything."""
        if previous_credit is None:
            previous_credit = self._carried_credit(company_id, period)
        records = self._vat_record_repo.list_by_company(
            company_id, period.first_day, period.last_day
        )
        return calculate_pppdv(
            company_id,
            period,
            records,
            proportional_deduction_rate=(
                self._default_deduction_rate
                if proportional_deduction_rate is None
                else proportional_deduction_rate
            ),
            previous_credit=previous_credit,
            input_vat_adjustment=ZERO if input_vat_adjustment is None else input_vat_adjustment,
        )

    def create_report(
        self,
        company_id: UUID,
        period: TaxPeriod,
        proportional_deduction_rate: Decimal | None = None,
        previous_credit: Decimal | None = None,
        input_vat_adjustment: Decimal | None = None,
    ) -> TaxPeriodReport:
        """Calculate and persist a new CALCULATED report.

        Raises:
            DuplicateTaxReportError: a non-rejected report exists for the period
        """
        with self._transactions.entity_locks.hold(
            LOCK_KIND, f"{company_id}:{period.label}"
        ):
            with self._transactions.transaction():
                for existing in self._report_repo.list_for_period(company_id, period):
                    if existing.status != TaxReportStatus.REJECTED:
                        raise DuplicateTaxReportError(company_id, period.label)
                calculation = self.calculate(
                    company_id,
                    period,
                    proportional_deduction_rate,
                    previous_credit,
                    input_vat_adjustment,
                )
                report = TaxPeriodReport(company_id=company_id, period=period)
                report.apply_calculation(calculation)
                self._report_repo.add(report)

        logger.info(
            "tax_report_created",
            report_id=str(report.id),
            company_id=str(company_id),
            period=period.label,
            payable=str(report.payable),
            refundable=str(report.refundable),
        )
        return report

    def recalculate(
        self,
        report_id: UUID,
        proportional_deduction_rate: Decimal | None = None,
        previous_credit: Decimal | None = None,
        input_vat_adjustment: Decimal | None = None,
    ) -> TaxPeriodReport:
        """Re-derive every field from the current records.

        Parameters left as None keep the report's stored values.
        """
        with self._transactions.entity_locks.hold(LOCK_KIND, report_id):
            with self._transactions.transaction():
                report = self._load(report_id)
                calculation = self.calculate(
                    report.company_id,
                    report.period,
                    (
                        report.proportional_deduction_rate
                        if proportional_deduction_rate is None
                        else proportional_deduction_rate
                    ),
                    report.previous_credit if previous_credit is None else previous_credit,
                    (
                        report.fields[TaxField.FIELD_303]
                        if input_vat_adjustment is None
                        else input_vat_adjustment
                    ),
                )
                report.apply_calculation(calculation)
                self._report_repo.update(report)

        logger.info(
            "tax_report_recalculated",
            report_id=str(report_id),
            period=report.period.label,
            payable=str(report.payable),
            refundable=str(report.refundable),
        )
        return report

    def submit(
        self, report_id: UUID, submission_reference: str | None = None
    ) -> TaxPeriodReport:
        with self._transactions.entity_locks.hold(LOCK_KIND, report_id):
            with self._transactions.transaction():
                report = self._load(report_id)
                report.submit(submission_reference)
                self._report_repo.update(report)
        logger.info(
            "tax_report_submitted",
            report_id=str(report_id),
            period=report.period.label,
            submission_reference=report.submission_reference,
        )
        return report

    def record_outcome(
        self,
        report_id: UUID,
        accepted: bool,
        reference: str | None = None,
        reason: str | None = None,
    ) -> TaxPeriodReport:
        with self._transactions.entity_locks.hold(LOCK_KIND, report_id):
            with self._transactions.transaction():
                report = self._load(report_id)
                report.record_outcome(accepted, reference, reason)
                self._report_repo.update(report)
        logger.info(
            "tax_report_decided",
            report_id=str(report_id),
            status=report.status.value,
        )
        return report

    def delete_report(self, report_id: UUID) -> None:
        with self._transactions.entity_locks.hold(LOCK_KIND, report_id):
            with self._transactions.transaction():
                report = self._load(report_id)
                report.ensure_deletable()
                self._report_repo.delete(report_id)
        logger.info("tax_report_deleted", report_id=str(report_id))

    def get_report(self, report_id: UUID) -> TaxPeriodReport:
        return self._load(report_id)

    def list_reports(
        self,
        company_id: UUID,
        year: int | None = None,
        period_type: TaxPeriodType | None = None,
    ) -> list[TaxPeriodReport]:
        return list(self._report_repo.list_by_company(company_id, year, period_type))
