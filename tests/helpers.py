"""Builders for journal lines used across ledger tests."""

from decimal import Decimal

from sef_accounting.domain.accounts import Account
from sef_accounting.domain.journal import JournalLine
from sef_accounting.domain.value_objects import Money


def debit(account: Account, amount: str) -> JournalLine:
    return JournalLine(account_id=account.id, debit=Money(Decimal(amount)))


def credit(account: Account, amount: str) -> JournalLine:
    return JournalLine(account_id=account.id, credit=Money(Decimal(amount)))


def sale_lines(accounts: dict[str, Account], net: str = "1000.00") -> list[JournalLine]:
    """Cash sale with 20% VAT: 241 / 61 + 470."""
    net_amount = Decimal(net)
    vat = (net_amount * Decimal("0.20")).quantize(Decimal("0.01"))
    return [
        debit(accounts["241"], str(net_amount + vat)),
        credit(accounts["61"], str(net_amount)),
        credit(accounts["470"], str(vat)),
    ]
