import calendar
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from uuid import UUID, uuid4

from sef_accounting.domain.value_objects import (
    HUNDRED,
    VatDirection,
    VatRate,
    parse_amount,
)
from sef_accounting.exceptions import (
    IntegrityError,
    InvalidPeriodError,
    InvalidTransitionError,
    ValidationError,
)

ZERO = Decimal("0.00")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class TaxPeriodType(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"


class TaxReportStatus(str, Enum):
    DRAFT = "DRAFT"
    CALCULATED = "CALCULATED"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


EDITABLE_STATUSES = (TaxReportStatus.DRAFT, TaxReportStatus.CALCULATED)


class TaxFieldCategory(str, Enum):
    OUTPUT = "output"
    INPUT = "input"
    CALCULATION = "calculation"


class TaxField(str, Enum):
    """Numbered line items of the PPPDV form."""

    FIELD_001 = "field001"
    FIELD_002 = "field002"
    FIELD_003 = "field003"
    FIELD_004 = "field004"
    FIELD_005 = "field005"
    FIELD_101 = "field101"
    FIELD_102 = "field102"
    FIELD_103 = "field103"
    FIELD_104 = "field104"
    FIELD_105 = "field105"
    FIELD_201 = "field201"
    FIELD_202 = "field202"
    FIELD_203 = "field203"
    FIELD_301 = "field301"
    FIELD_302 = "field302"
    FIELD_303 = "field303"
    FIELD_304 = "field304"
    FIELD_401 = "field401"
    FIELD_402 = "field402"

    @property
    def number(self) -> str:
        return self.value.removeprefix("field")

    @property
    def spec(self) -> "TaxFieldSpec":
        return TAX_FIELD_SPECS[self]

    @property
    def category(self) -> TaxFieldCategory:
        return self.spec.category

    @property
    def editable(self) -> bool:
        return self.spec.editable

    @property
    def label(self) -> str:
        return self.spec.label


@dataclass(frozen=True)
class TaxFieldSpec:
    category: TaxFieldCategory
    label: str
    editable: bool = False


TAX_FIELD_SPECS: Mapping[TaxField, TaxFieldSpec] = MappingProxyType(
    {
        TaxField.FIELD_001: TaxFieldSpec(TaxFieldCategory.OUTPUT, "Taxable supplies at 20% (base)"),
        TaxField.FIELD_002: TaxFieldSpec(TaxFieldCategory.OUTPUT, "Output VAT at 20%"),
        TaxField.FIELD_003: TaxFieldSpec(TaxFieldCategory.OUTPUT, "Taxable supplies at 10% (base)"),
        TaxField.FIELD_004: TaxFieldSpec(TaxFieldCategory.OUTPUT, "Output VAT at 10%"),
        TaxField.FIELD_005: TaxFieldSpec(TaxFieldCategory.OUTPUT, "Exempt and zero-rated supplies"),
        TaxField.FIELD_101: TaxFieldSpec(TaxFieldCategory.INPUT, "Purchases at 20% (base)"),
        TaxField.FIELD_102: TaxFieldSpec(TaxFieldCategory.INPUT, "Input VAT at 20%"),
        TaxField.FIELD_103: TaxFieldSpec(TaxFieldCategory.INPUT, "Purchases at 10% (base)"),
        TaxField.FIELD_104: TaxFieldSpec(TaxFieldCategory.INPUT, "Input VAT at 10%"),
        TaxField.FIELD_105: TaxFieldSpec(TaxFieldCategory.INPUT, "Exempt and zero-rated purchases"),
        TaxField.FIELD_201: TaxFieldSpec(TaxFieldCategory.CALCULATION, "Output VAT at the general rate"),
        TaxField.FIELD_202: TaxFieldSpec(TaxFieldCategory.CALCULATION, "Output VAT at the special rate"),
        TaxField.FIELD_203: TaxFieldSpec(TaxFieldCategory.CALCULATION, "Total output VAT"),
        TaxField.FIELD_301: TaxFieldSpec(TaxFieldCategory.CALCULATION, "Input VAT at the general rate"),
        TaxField.FIELD_302: TaxFieldSpec(TaxFieldCategory.CALCULATION, "Input VAT at the special rate"),
        TaxField.FIELD_303: TaxFieldSpec(
            TaxFieldCategory.CALCULATION, "Input VAT adjustments and import VAT", editable=True
        ),
        TaxField.FIELD_304: TaxFieldSpec(TaxFieldCategory.CALCULATION, "Deductible input VAT"),
        TaxField.FIELD_401: TaxFieldSpec(TaxFieldCategory.CALCULATION, "VAT payable"),
        TaxField.FIELD_402: TaxFieldSpec(TaxFieldCategory.CALCULATION, "VAT refundable or carried forward"),
    }
)

# (direction, rate) -> (base field, VAT field). Exempt supplies carry no VAT field.
BUCKET_FIELDS: Mapping[tuple[VatDirection, VatRate], tuple[TaxField, TaxField | None]] = (
    MappingProxyType(
        {
            (VatDirection.OUTPUT, VatRate.STANDARD): (TaxField.FIELD_001, TaxField.FIELD_002),
            (VatDirection.OUTPUT, VatRate.REDUCED): (TaxField.FIELD_003, TaxField.FIELD_004),
            (VatDirection.OUTPUT, VatRate.EXEMPT): (TaxField.FIELD_005, None),
            (VatDirection.INPUT, VatRate.STANDARD): (TaxField.FIELD_101, TaxField.FIELD_102),
            (VatDirection.INPUT, VatRate.REDUCED): (TaxField.FIELD_103, TaxField.FIELD_104),
            (VatDirection.INPUT, VatRate.EXEMPT): (TaxField.FIELD_105, None),
        }
    )
)


class TaxFieldValues(Mapping[TaxField, Decimal]):
    """Immutable, complete set of PPPDV field amounts.

    Every :class:`TaxField` must be present; keys may be given as enum
    members or as their ``fieldNNN`` string values.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[TaxField | str, Decimal | int | str]) -> None:
        coerced: dict[TaxField, Decimal] = {}
        for key, value in values.items():
            try:
                tax_field = TaxField(key)
            except ValueError as e:
                raise ValidationError(
                    f"Unknown tax field: {key}",
                    error_code="UNKNOWN_TAX_FIELD",
                    context={"field": str(key)},
                ) from e
            coerced[tax_field] = parse_amount(value)
        missing = [f.value for f in TaxField if f not in coerced]
        if missing:
            raise ValidationError(
                "Tax field set is incomplete",
                error_code="INCOMPLETE_TAX_FIELDS",
                context={"missing": missing},
            )
        self._values = MappingProxyType({f: coerced[f] for f in TaxField})

    @classmethod
    def zeros(cls) -> "TaxFieldValues":
        return cls({f: ZERO for f in TaxField})

    def __getitem__(self, key: TaxField) -> Decimal:
        return self._values[TaxField(key)]

    def __iter__(self) -> Iterator[TaxField]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        inner = ", ".join(f"{f.value}={v}" for f, v in self._values.items() if v)
        return f"TaxFieldValues({inner})"

    def by_category(self, category: TaxFieldCategory) -> dict[TaxField, Decimal]:
        return {f: v for f, v in self._values.items() if f.category == category}

    def as_dict(self) -> dict[str, str]:
        return {f.value: f"{v:.2f}" for f, v in self._values.items()}

    def verify_balance(self) -> None:
        payable = self._values[TaxField.FIELD_401]
        refundable = self._values[TaxField.FIELD_402]
        if payable < 0 or refundable < 0 or (payable and refundable):
            raise IntegrityError(
                "Exactly one of field401/field402 may be non-zero",
                context={"field401": str(payable), "field402": str(refundable)},
            )


@dataclass(frozen=True)
class TaxPeriod:
    """A monthly or quarterly VAT period, e.g. 2024-03 or 2024-Q1."""

    year: int
    period_type: TaxPeriodType
    number: int

    def __post_init__(self) -> None:
        if not isinstance(self.period_type, TaxPeriodType):
            object.__setattr__(self, "period_type", TaxPeriodType(self.period_type))
        if not 1900 <= self.year <= 9999:
            raise InvalidPeriodError(
                f"Year out of range: {self.year}", context={"year": self.year}
            )
        upper = 12 if self.period_type == TaxPeriodType.MONTHLY else 4
        if not 1 <= self.number <= upper:
            raise InvalidPeriodError(
                f"{self.period_type.value.lower()} period must be between 1 and {upper}",
                context={"period_type": self.period_type.value, "number": self.number},
            )

    @classmethod
    def resolve(
        cls,
        year: int,
        period_type: TaxPeriodType | str,
        month: int | None = None,
        quarter: int | None = None,
    ) -> "TaxPeriod":
        """Build a period from the month or quarter a caller supplied.

        A quarterly period may be addressed by any month inside it.
        """
        try:
            period_type = TaxPeriodType(period_type)
        except ValueError as e:
            raise InvalidPeriodError(
                f"Unknown period type: {period_type}",
                context={"period_type": str(period_type)},
            ) from e
        if period_type == TaxPeriodType.MONTHLY:
            if month is None:
                raise InvalidPeriodError(
                    "A monthly period requires a month", context={"year": year}
                )
            return cls(year, period_type, month)
        if quarter is None:
            if month is None:
                raise InvalidPeriodError(
                    "A quarterly period requires a quarter or month",
                    context={"year": year},
                )
            if not 1 <= month <= 12:
                raise InvalidPeriodError(
                    f"Month out of range: {month}", context={"month": month}
                )
            quarter = (month - 1) // 3 + 1
        return cls(year, period_type, quarter)

    @property
    def month(self) -> int | None:
        return self.number if self.period_type == TaxPeriodType.MONTHLY else None

    @property
    def quarter(self) -> int | None:
        return self.number if self.period_type == TaxPeriodType.QUARTERLY else None

    @property
    def first_month(self) -> int:
        if self.period_type == TaxPeriodType.MONTHLY:
            return self.number
        return (self.number - 1) * 3 + 1

    @property
    def last_month(self) -> int:
        if self.period_type == TaxPeriodType.MONTHLY:
            return self.number
        return self.number * 3

    @property
    def first_day(self) -> date:
        return date(self.year, self.first_month, 1)

    @property
    def last_day(self) -> date:
        _, days = calendar.monthrange(self.year, self.last_month)
        return date(self.year, self.last_month, days)

    @property
    def label(self) -> str:
        if self.period_type == TaxPeriodType.MONTHLY:
            return f"{self.year}-{self.number:02d}"
        return f"{self.year}-Q{self.number}"

    def contains(self, day: date) -> bool:
        return self.first_day <= day <= self.last_day

    def previous(self) -> "TaxPeriod":
        if self.number > 1:
            return TaxPeriod(self.year, self.period_type, self.number - 1)
        last = 12 if self.period_type == TaxPeriodType.MONTHLY else 4
        return TaxPeriod(self.year - 1, self.period_type, last)

    def __str__(self) -> str:
        return self.label


@dataclass
class VatRecord:
    """A VAT-classified transaction supplied by the invoicing side."""

    company_id: UUID
    record_date: date
    direction: VatDirection
    vat_rate: VatRate
    base_amount: Decimal
    vat_amount: Decimal
    id: UUID = field(default_factory=uuid4)
    document_number: str = ""
    partner_name: str = ""
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        try:
            self.direction = VatDirection(self.direction)
        except ValueError as e:
            raise ValidationError(
                f"Unknown VAT direction: {self.direction}",
                error_code="INVALID_VAT_DIRECTION",
                context={"direction": str(self.direction)},
            ) from e
        try:
            self.vat_rate = VatRate(int(self.vat_rate))
        except ValueError as e:
            raise ValidationError(
                f"Unsupported VAT rate: {self.vat_rate}",
                error_code="INVALID_VAT_RATE",
                context={"vat_rate": str(self.vat_rate)},
            ) from e
        self.base_amount = parse_amount(self.base_amount)
        self.vat_amount = parse_amount(self.vat_amount)
        if self.vat_rate == VatRate.EXEMPT and self.vat_amount != 0:
            raise ValidationError(
                "Exempt records cannot carry VAT",
                error_code="INVALID_VAT_AMOUNT",
                context={"vat_amount": str(self.vat_amount)},
            )


@dataclass(frozen=True)
class PPPDVCalculation:
    """Preview of a period's declaration; never persisted by itself."""

    company_id: UUID
    period: TaxPeriod
    fields: TaxFieldValues
    proportional_deduction_rate: Decimal
    previous_credit: Decimal
    record_count: int

    @property
    def total_output_vat(self) -> Decimal:
        return self.fields[TaxField.FIELD_203]

    @property
    def total_input_vat(self) -> Decimal:
        return self.fields[TaxField.FIELD_304]

    @property
    def balance(self) -> Decimal:
        return self.total_output_vat - self.total_input_vat

    @property
    def payable(self) -> Decimal:
        return self.fields[TaxField.FIELD_401]

    @property
    def refundable(self) -> Decimal:
        return self.fields[TaxField.FIELD_402]


@dataclass
class TaxPeriodReport:
    company_id: UUID
    period: TaxPeriod
    id: UUID = field(default_factory=uuid4)
    status: TaxReportStatus = TaxReportStatus.DRAFT
    fields: TaxFieldValues = field(default_factory=TaxFieldValues.zeros)
    proportional_deduction_rate: Decimal = HUNDRED
    previous_credit: Decimal = ZERO
    record_count: int = 0
    submission_reference: str | None = None
    rejection_reason: str | None = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
    calculated_at: datetime | None = None
    submitted_at: datetime | None = None
    decided_at: datetime | None = None

    @property
    def input_vat_adjustment(self) -> Decimal:
        return self.fields[TaxField.FIELD_303]

    @property
    def payable(self) -> Decimal:
        return self.fields[TaxField.FIELD_401]

    @property
    def refundable(self) -> Decimal:
        return self.fields[TaxField.FIELD_402]

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    def _require(self, allowed: tuple[TaxReportStatus, ...], action: str) -> None:
        if self.status not in allowed:
            raise InvalidTransitionError(
                "tax report", self.id, self.status.value, action
            )

    def apply_calculation(self, calculation: PPPDVCalculation) -> None:
        self._require(EDITABLE_STATUSES, "recalculate")
        if calculation.period != self.period or calculation.company_id != self.company_id:
            raise ValidationError(
                "Calculation belongs to a different company or period",
                error_code="INVALID_PERIOD",
                context={"report_period": self.period.label, "calculation_period": calculation.period.label},
            )
        calculation.fields.verify_balance()
        self.fields = calculation.fields
        self.proportional_deduction_rate = calculation.proportional_deduction_rate
        self.previous_credit = calculation.previous_credit
        self.record_count = calculation.record_count
        self.status = TaxReportStatus.CALCULATED
        self.calculated_at = self.updated_at = _utc_now()

    def submit(self, submission_reference: str | None = None) -> None:
        self._require((TaxReportStatus.CALCULATED,), "submit")
        self.status = TaxReportStatus.SUBMITTED
        if submission_reference:
            self.submission_reference = submission_reference
        self.submitted_at = self.updated_at = _utc_now()

    def record_outcome(
        self,
        accepted: bool,
        reference: str | None = None,
        reason: str | None = None,
    ) -> None:
        self._require((TaxReportStatus.SUBMITTED,), "record the outcome of")
        self.status = TaxReportStatus.ACCEPTED if accepted else TaxReportStatus.REJECTED
        if reference:
            self.submission_reference = reference
        if not accepted:
            self.rejection_reason = reason
        self.decided_at = self.updated_at = _utc_now()

    def ensure_deletable(self) -> None:
        self._require(EDITABLE_STATUSES, "delete")
