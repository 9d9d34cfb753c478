import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from sef_accounting.domain.value_objects import AccountType, BalanceSide
from sef_accounting.exceptions import InvalidAccountCodeError, ValidationError

ACCOUNT_CODE_PATTERN = re.compile(r"^\d+(\.\d+)*$")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def normalize_account_code(code: str) -> str:
    """Strip whitespace and validate ``code`` as digits with optional dots."""
    normalized = (code or "").strip()
    if not normalized:
        raise InvalidAccountCodeError(code or "", "code is required")
    if not ACCOUNT_CODE_PATTERN.match(normalized):
        raise InvalidAccountCodeError(
            normalized, "only digits separated by single dots are allowed"
        )
    return normalized


def code_digits(code: str) -> str:
    return code.replace(".", "")


@dataclass
class Account:
    company_id: UUID
    code: str
    name: str
    account_type: AccountType
    id: UUID = field(default_factory=uuid4)
    parent_id: UUID | None = None
    is_active: bool = True
    is_system: bool = False
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        self.code = normalize_account_code(self.code)
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationError(
                f"Account {self.code} requires a name",
                error_code="INVALID_ACCOUNT_NAME",
                context={"code": self.code},
            )
        if not isinstance(self.account_type, AccountType):
            self.account_type = AccountType(self.account_type)

    @property
    def level(self) -> int:
        """Depth in the chart; class accounts (one digit) are level 1."""
        return len(code_digits(self.code))

    @property
    def normal_side(self) -> BalanceSide:
        return self.account_type.normal_side

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def is_ancestor_code_of(self, code: str) -> bool:
        own = code_digits(self.code)
        other = code_digits(code)
        return len(other) > len(own) and other.startswith(own)

    def deactivate(self) -> None:
        self.is_active = False
        self.updated_at = _utc_now()

    def activate(self) -> None:
        self.is_active = True
        self.updated_at = _utc_now()

    def move_to(self, parent_id: UUID | None) -> None:
        self.parent_id = parent_id
        self.updated_at = _utc_now()


def find_parent_by_code(code: str, accounts: Iterable[Account]) -> Account | None:
    """Return the account whose code is the longest proper prefix of ``code``."""
    best: Account | None = None
    for candidate in accounts:
        if not candidate.is_ancestor_code_of(code):
            continue
        if best is None or candidate.level > best.level:
            best = candidate
    return best


# Kontni okvir for companies and cooperatives: classes 0-6 plus the
# sub-accounts used by invoicing, payments and VAT postings.
STANDARD_CHART: tuple[tuple[str, str, AccountType], ...] = (
    ("0", "Nematerijalna imovina, nekretnine, postrojenja, oprema i biološka sredstva", AccountType.ASSET),
    ("00", "Nematerijalna imovina", AccountType.ASSET),
    ("02", "Nekretnine, postrojenja i oprema", AccountType.ASSET),
    ("022", "Građevinski objekti", AccountType.ASSET),
    ("023", "Oprema", AccountType.ASSET),
    ("1", "Zalihe i stalna sredstva namenjena prodaji", AccountType.ASSET),
    ("10", "Materijal", AccountType.ASSET),
    ("13", "Roba", AccountType.ASSET),
    ("15", "Plaćeni avansi za zalihe i usluge", AccountType.ASSET),
    ("2", "Kratkoročna potraživanja, plasmani i gotovina", AccountType.ASSET),
    ("20", "Potraživanja od prodaje", AccountType.ASSET),
    ("204", "Kupci u zemlji", AccountType.ASSET),
    ("24", "Gotovinski ekvivalenti i gotovina", AccountType.ASSET),
    ("241", "Tekući računi", AccountType.ASSET),
    ("243", "Blagajna", AccountType.ASSET),
    ("27", "PDV", AccountType.ASSET),
    ("270", "PDV u primljenim fakturama", AccountType.ASSET),
    ("3", "Kapital", AccountType.EQUITY),
    ("30", "Osnovni kapital", AccountType.EQUITY),
    ("34", "Neraspoređena dobit", AccountType.EQUITY),
    ("4", "Dugoročne i kratkoročne obaveze", AccountType.LIABILITY),
    ("40", "Dugoročne obaveze", AccountType.LIABILITY),
    ("43", "Obaveze iz poslovanja", AccountType.LIABILITY),
    ("430", "Primljeni avansi, depoziti i kaucije", AccountType.LIABILITY),
    ("432", "Dobavljači u zemlji", AccountType.LIABILITY),
    ("47", "Obaveze za PDV", AccountType.LIABILITY),
    ("470", "Obaveze za PDV po izdatim fakturama", AccountType.LIABILITY),
    ("48", "Obaveze za zarade", AccountType.LIABILITY),
    ("5", "Rashodi", AccountType.EXPENSE),
    ("50", "Nabavna vrednost prodate robe", AccountType.EXPENSE),
    ("51", "Troškovi materijala", AccountType.EXPENSE),
    ("52", "Troškovi zarada, naknada i ostali lični rashodi", AccountType.EXPENSE),
    ("53", "Troškovi proizvodnih usluga", AccountType.EXPENSE),
    ("55", "Nematerijalni troškovi", AccountType.EXPENSE),
    ("56", "Finansijski rashodi", AccountType.EXPENSE),
    ("6", "Prihodi", AccountType.INCOME),
    ("60", "Prihodi od prodaje robe", AccountType.INCOME),
    ("61", "Prihodi od prodaje proizvoda i usluga", AccountType.INCOME),
    ("66", "Finansijski prihodi", AccountType.INCOME),
    ("67", "Ostali prihodi", AccountType.INCOME),
)
