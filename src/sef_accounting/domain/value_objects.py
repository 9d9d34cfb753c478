from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from sef_accounting.exceptions import InvalidAmountError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
# Leaves room for sums of many amounts within the default 28-digit context.
MAX_AMOUNT = Decimal(10) ** 18


class Currency(str, Enum):
    RSD = "RSD"
    EUR = "EUR"
    USD = "USD"
    CHF = "CHF"
    GBP = "GBP"


class AccountType(str, Enum):
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

    @property
    def normal_side(self) -> "BalanceSide":
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return BalanceSide.DEBIT
        return BalanceSide.CREDIT


class BalanceSide(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class VatRate(int, Enum):
    """VAT rates in percent. Serbian law knows only these three buckets."""

    EXEMPT = 0
    REDUCED = 10
    STANDARD = 20

    @property
    def fraction(self) -> Decimal:
        return Decimal(self.value) / HUNDRED


class VatDirection(str, Enum):
    OUTPUT = "OUTPUT"
    INPUT = "INPUT"


def round_money(value: Decimal) -> Decimal:
    """Round a computed amount half-up to whole cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Decimal | int | str, *, allow_negative: bool = True) -> Decimal:
    """Convert user input into an exact two-decimal amount.

    Values with more than two fraction digits are rejected, never rounded.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(str(value), "not a number") from e
    if not amount.is_finite():
        raise InvalidAmountError(str(value), "not a finite number")
    if abs(amount) >= MAX_AMOUNT:
        raise InvalidAmountError(str(value), "out of range")
    try:
        exact = amount.quantize(CENT)
    except InvalidOperation as e:
        raise InvalidAmountError(str(value), "out of range") from e
    if amount != exact:
        raise InvalidAmountError(str(value), "more than two fraction digits")
    if not allow_negative and amount < 0:
        raise InvalidAmountError(str(value), "must not be negative")
    return exact


@dataclass(frozen=True, slots=True)
class Money:
    amount: Decimal
    currency: Currency | str = Currency.RSD

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", parse_amount(self.amount))

        if isinstance(self.currency, Currency):
            return
        try:
            object.__setattr__(self, "currency", Currency(str(self.currency).upper()))
        except ValueError:
            raise ValueError(f"Invalid currency: {self.currency}")

    @classmethod
    def zero(cls, currency: Currency | str = Currency.RSD) -> "Money":
        return cls(Decimal("0"), currency)

    @classmethod
    def rounded(cls, amount: Decimal, currency: Currency | str = Currency.RSD) -> "Money":
        """Build Money from a computed value, rounding half-up to cents."""
        return cls(round_money(amount), currency)

    def _check_currency(self, other: "Money", verb: str) -> None:
        if self.currency != other.currency:
            raise ValueError(f"Cannot {verb} {self.currency} and {other.currency}")

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.amount, self.currency)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount == other.amount and self.currency == other.currency

    def __hash__(self) -> int:
        return hash((self.amount, self.currency))

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        return self == other or self < other

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        return self == other or self > other

    def percent(self, rate: Decimal | int) -> "Money":
        """Return ``rate`` percent of this amount, rounded to cents."""
        return Money.rounded(self.amount * Decimal(rate) / HUNDRED, self.currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == Decimal("0")

    @property
    def is_positive(self) -> bool:
        return self.amount > Decimal("0")

    @property
    def is_negative(self) -> bool:
        return self.amount < Decimal("0")

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency.value}"
