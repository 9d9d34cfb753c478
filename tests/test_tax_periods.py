from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from sef_accounting.domain.tax_periods import (
    PPPDVCalculation,
    TaxField,
    TaxFieldCategory,
    TaxFieldValues,
    TaxPeriod,
    TaxPeriodReport,
    TaxPeriodType,
    TaxReportStatus,
    VatRecord,
)
from sef_accounting.domain.value_objects import VatDirection, VatRate
from sef_accounting.exceptions import (
    IntegrityError,
    InvalidPeriodError,
    InvalidTransitionError,
    ValidationError,
)


def _fields(**overrides: str) -> TaxFieldValues:
    values = {f: Decimal("0") for f in TaxField}
    for key, value in overrides.items():
        values[TaxField(key)] = Decimal(value)
    return TaxFieldValues(values)


def _calculation(report: TaxPeriodReport, **fields: str) -> PPPDVCalculation:
    return PPPDVCalculation(
        company_id=report.company_id,
        period=report.period,
        fields=_fields(**fields),
        proportional_deduction_rate=Decimal("100"),
        previous_credit=Decimal("0.00"),
        record_count=3,
    )


@pytest.fixture
def report() -> TaxPeriodReport:
    return TaxPeriodReport(company_id=uuid4(), period=TaxPeriod(2024, TaxPeriodType.MONTHLY, 3))


class TestTaxField:
    def test_number_and_label(self):
        assert TaxField.FIELD_304.number == "304"
        assert TaxField.FIELD_401.label == "VAT payable"

    def test_only_adjustment_field_is_editable(self):
        assert [f for f in TaxField if f.editable] == [TaxField.FIELD_303]

    def test_categories(self):
        assert TaxField.FIELD_002.category == TaxFieldCategory.OUTPUT
        assert TaxField.FIELD_105.category == TaxFieldCategory.INPUT
        assert TaxField.FIELD_402.category == TaxFieldCategory.CALCULATION


class TestTaxFieldValues:
    def test_zeros_is_complete(self):
        values = TaxFieldValues.zeros()

        assert len(values) == len(TaxField)
        assert values[TaxField.FIELD_203] == Decimal("0.00")

    def test_string_keys_accepted(self):
        values = TaxFieldValues({f.value: "1.50" for f in TaxField})

        assert values["field001"] == Decimal("1.50")
        assert values.as_dict()["field402"] == "1.50"

    def test_incomplete_set_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            TaxFieldValues({TaxField.FIELD_001: Decimal("1")})

        assert exc_info.value.error_code == "INCOMPLETE_TAX_FIELDS"
        assert "field402" in exc_info.value.context["missing"]

    def test_unknown_field_rejected(self):
        values = {f.value: "0" for f in TaxField}
        values["field999"] = "0"

        with pytest.raises(ValidationError) as exc_info:
            TaxFieldValues(values)

        assert exc_info.value.error_code == "UNKNOWN_TAX_FIELD"

    def test_by_category(self):
        output = _fields(field002="200").by_category(TaxFieldCategory.OUTPUT)

        assert set(output) == {
            TaxField.FIELD_001,
            TaxField.FIELD_002,
            TaxField.FIELD_003,
            TaxField.FIELD_004,
            TaxField.FIELD_005,
        }
        assert output[TaxField.FIELD_002] == Decimal("200.00")

    def test_both_payable_and_refundable_is_an_integrity_error(self):
        with pytest.raises(IntegrityError):
            _fields(field401="1", field402="1").verify_balance()

    def test_negative_payable_is_an_integrity_error(self):
        with pytest.raises(IntegrityError):
            _fields(field401="-1").verify_balance()


class TestTaxPeriod:
    def test_monthly_bounds(self):
        period = TaxPeriod(2024, TaxPeriodType.MONTHLY, 2)

        assert period.first_day == date(2024, 2, 1)
        assert period.last_day == date(2024, 2, 29)
        assert period.label == "2024-02"
        assert str(period) == "2024-02"

    def test_quarterly_bounds(self):
        period = TaxPeriod(2024, TaxPeriodType.QUARTERLY, 2)

        assert period.first_day == date(2024, 4, 1)
        assert period.last_day == date(2024, 6, 30)
        assert period.label == "2024-Q2"
        assert period.quarter == 2
        assert period.month is None

    def test_contains(self):
        period = TaxPeriod(2024, TaxPeriodType.MONTHLY, 3)

        assert period.contains(date(2024, 3, 1))
        assert period.contains(date(2024, 3, 31))
        assert not period.contains(date(2024, 4, 1))

    @pytest.mark.parametrize(
        ("period", "expected"),
        [
            (TaxPeriod(2024, TaxPeriodType.MONTHLY, 3), TaxPeriod(2024, TaxPeriodType.MONTHLY, 2)),
            (TaxPeriod(2024, TaxPeriodType.MONTHLY, 1), TaxPeriod(2023, TaxPeriodType.MONTHLY, 12)),
            (
                TaxPeriod(2024, TaxPeriodType.QUARTERLY, 1),
                TaxPeriod(2023, TaxPeriodType.QUARTERLY, 4),
            ),
        ],
    )
    def test_previous(self, period, expected):
        assert period.previous() == expected

    @pytest.mark.parametrize(
        ("period_type", "number"),
        [(TaxPeriodType.MONTHLY, 13), (TaxPeriodType.MONTHLY, 0), (TaxPeriodType.QUARTERLY, 5)],
    )
    def test_out_of_range_number(self, period_type, number):
        with pytest.raises(InvalidPeriodError) as exc_info:
            TaxPeriod(2024, period_type, number)

        assert exc_info.value.error_code == "INVALID_PERIOD"

    def test_resolve_monthly(self):
        assert TaxPeriod.resolve(2024, "MONTHLY", month=5) == TaxPeriod(
            2024, TaxPeriodType.MONTHLY, 5
        )

    def test_resolve_quarter_from_month(self):
        assert TaxPeriod.resolve(2024, TaxPeriodType.QUARTERLY, month=8).number == 3

    def test_resolve_explicit_quarter(self):
        assert TaxPeriod.resolve(2024, TaxPeriodType.QUARTERLY, quarter=4).label == "2024-Q4"

    def test_resolve_monthly_without_month(self):
        with pytest.raises(InvalidPeriodError):
            TaxPeriod.resolve(2024, TaxPeriodType.MONTHLY)

    def test_resolve_unknown_type(self):
        with pytest.raises(InvalidPeriodError):
            TaxPeriod.resolve(2024, "WEEKLY", month=1)


class TestVatRecord:
    def test_coerces_values(self):
        record = VatRecord(
            company_id=uuid4(),
            record_date=date(2024, 3, 1),
            direction="OUTPUT",
            vat_rate=20,
            base_amount="100",
            vat_amount="20",
        )

        assert record.direction == VatDirection.OUTPUT
        assert record.vat_rate == VatRate.STANDARD
        assert record.base_amount == Decimal("100.00")

    def test_unknown_rate(self):
        with pytest.raises(ValidationError) as exc_info:
            VatRecord(uuid4(), date(2024, 3, 1), VatDirection.OUTPUT, 18, "100", "18")

        assert exc_info.value.error_code == "INVALID_VAT_RATE"

    def test_unknown_direction(self):
        with pytest.raises(ValidationError) as exc_info:
            VatRecord(uuid4(), date(2024, 3, 1), "SIDEWAYS", 20, "100", "20")

        assert exc_info.value.error_code == "INVALID_VAT_DIRECTION"

    def test_exempt_record_cannot_carry_vat(self):
        with pytest.raises(ValidationError) as exc_info:
            VatRecord(uuid4(), date(2024, 3, 1), VatDirection.INPUT, 0, "100", "5")

        assert exc_info.value.error_code == "INVALID_VAT_AMOUNT"


class TestTaxPeriodReport:
    def test_new_report_is_draft_and_editable(self, report: TaxPeriodReport):
        assert report.status == TaxReportStatus.DRAFT
        assert report.is_editable
        assert report.payable == Decimal("0.00")

    def test_apply_calculation(self, report: TaxPeriodReport):
        report.apply_calculation(_calculation(report, field203="200", field304="80", field401="120"))

        assert report.status == TaxReportStatus.CALCULATED
        assert report.payable == Decimal("120.00")
        assert report.record_count == 3
        assert report.calculated_at is not None

    def test_calculation_for_other_period_rejected(self, report: TaxPeriodReport):
        foreign = PPPDVCalculation(
            company_id=report.company_id,
            period=TaxPeriod(2024, TaxPeriodType.MONTHLY, 4),
            fields=_fields(),
            proportional_deduction_rate=Decimal("100"),
            previous_credit=Decimal("0"),
            record_count=0,
        )

        with pytest.raises(ValidationError):
            report.apply_calculation(foreign)

    def test_draft_cannot_be_submitted(self, report: TaxPeriodReport):
        with pytest.raises(InvalidTransitionError):
            report.submit()

    def test_submit_and_accept(self, report: TaxPeriodReport):
        report.apply_calculation(_calculation(report))

        report.submit("PPPDV-2024-03-001")
        assert report.status == TaxReportStatus.SUBMITTED
        assert not report.is_editable

        report.record_outcome(accepted=True)
        assert report.status == TaxReportStatus.ACCEPTED
        assert report.submission_reference == "PPPDV-2024-03-001"
        assert report.decided_at is not None

    def test_rejection_keeps_reason(self, report: TaxPeriodReport):
        report.apply_calculation(_calculation(report))
        report.submit()

        report.record_outcome(accepted=False, reason="Pogrešan PIB")

        assert report.status == TaxReportStatus.REJECTED
        assert report.rejection_reason == "Pogrešan PIB"

    def test_outcome_requires_submission(self, report: TaxPeriodReport):
        report.apply_calculation(_calculation(report))

        with pytest.raises(InvalidTransitionError):
            report.record_outcome(accepted=True)

    def test_submitted_report_is_frozen(self, report: TaxPeriodReport):
        report.apply_calculation(_calculation(report))
        report.submit()

        with pytest.raises(InvalidTransitionError):
            report.apply_calculation(_calculation(report))
        with pytest.raises(InvalidTransitionError):
            report.ensure_deletable()
