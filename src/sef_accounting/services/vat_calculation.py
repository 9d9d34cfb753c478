"""PPPDV field computation.

``calculate_pppdv`` is a pure function: it reads nothing but its arguments and
returns the same :class:`PPPDVCalculation` for the same input.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sef_accounting.domain.tax_periods import (
    BUCKET_FIELDS,
    ZERO,
    PPPDVCalculation,
    TaxField,
    TaxFieldValues,
    TaxPeriod,
    VatRecord,
)
from sef_accounting.domain.value_objects import HUNDRED, parse_amount, round_money
from sef_accounting.exceptions import ValidationError


def _check_rate(rate: Decimal) -> Decimal:
    try:
        rate = Decimal(str(rate))
    except ArithmeticError as e:
        raise ValidationError(
            f"Invalid proportional deduction rate: {rate}",
            error_code="INVALID_DEDUCTION_RATE",
            context={"rate": str(rate)},
        ) from e
    if not rate.is_finite() or not Decimal("0") <= rate <= HUNDRED:
        raise ValidationError(
            f"Proportional deduction rate must be between 0 and 100: {rate}",
            error_code="INVALID_DEDUCTION_RATE",
            context={"rate": str(rate)},
        )
    return rate


def settle_balance(
    output_vat: Decimal, deductible_vat: Decimal, previous_credit: Decimal
) -> tuple[Decimal, Decimal]:
    """Split the period's net position into (payable, refundable).

    At most one of the two is non-zero; both are zero only when output VAT
    equals deductible VAT plus the carried-forward credit.
    """
    net = output_vat - deductible_vat - previous_credit
    if net > 0:
        return net, ZERO
    return ZERO, -net if net else ZERO


def calculate_pppdv(
    company_id: UUID,
    period: TaxPeriod,
    records: Iterable[VatRecord],
    *,
    proportional_deduction_rate: Decimal = HUNDRED,
    previous_credit: Decimal = ZERO,
    input_vat_adjustment: Decimal = ZERO,
) -> PPPDVCalculation:
    """Aggregate VAT records of one company and period into PPPDV fields.

    Records of other companies or dated outside the period are ignored.

    Args:
        company_id: Company the declaration is for
        period: Monthly or quarterly period; a quarter covers three months
        records: Candidate VAT records
        proportional_deduction_rate: Share of input VAT that may be deducted, 0..100
        previous_credit: Credit carried forward from the previous period
        input_vat_adjustment: Field 303 (import VAT and corrections)

    Raises:
        ValidationError: rate outside 0..100 or a negative previous credit
    """
    rate = _check_rate(proportional_deduction_rate)
    previous_credit = parse_amount(previous_credit)
    if previous_credit < 0:
        raise ValidationError(
            "Previous credit must not be negative",
            error_code="INVALID_AMOUNT",
            context={"previous_credit": str(previous_credit)},
        )
    adjustment = parse_amount(input_vat_adjustment)

    totals: dict[TaxField, Decimal] = {f: ZERO for f in TaxField}
    record_count = 0
    for record in records:
        if record.company_id != company_id or not period.contains(record.record_date):
            continue
        record_count += 1
        base_field, vat_field = BUCKET_FIELDS[(record.direction, record.vat_rate)]
        totals[base_field] += record.base_amount
        if vat_field is not None:
            totals[vat_field] += record.vat_amount

    totals[TaxField.FIELD_201] = totals[TaxField.FIELD_002]
    totals[TaxField.FIELD_202] = totals[TaxField.FIELD_004]
    totals[TaxField.FIELD_203] = totals[TaxField.FIELD_201] + totals[TaxField.FIELD_202]
    totals[TaxField.FIELD_301] = totals[TaxField.FIELD_102]
    totals[TaxField.FIELD_302] = totals[TaxField.FIELD_104]
    totals[TaxField.FIELD_303] = adjustment
    input_vat = (
        totals[TaxField.FIELD_301] + totals[TaxField.FIELD_302] + totals[TaxField.FIELD_303]
    )
    totals[TaxField.FIELD_304] = round_money(input_vat * rate / HUNDRED)

    payable, refundable = settle_balance(
        totals[TaxField.FIELD_203], totals[TaxField.FIELD_304], previous_credit
    )
    totals[TaxField.FIELD_401] = payable
    totals[TaxField.FIELD_402] = refundable

    fields = TaxFieldValues(totals)
    fields.verify_balance()
    return PPPDVCalculation(
        company_id=company_id,
        period=period,
        fields=fields,
        proportional_deduction_rate=rate,
        previous_credit=previous_credit,
        record_count=record_count,
    )
