"""Chart of accounts management."""

from uuid import UUID

from sef_accounting.domain.accounts import (
    STANDARD_CHART,
    Account,
    find_parent_by_code,
    normalize_account_code,
)
from sef_accounting.domain.value_objects import AccountType
from sef_accounting.exceptions import (
    AccountHierarchyError,
    AccountNotFoundError,
    DuplicateAccountCodeError,
    IncompatibleAccountTypeError,
)
from sef_accounting.logging_config import get_logger
from sef_accounting.repositories.interfaces import (
    AccountRepository,
    TransactionManager,
)
from sef_accounting.services.interfaces import ChartOfAccountsService

logger = get_logger(__name__)


class ChartOfAccountsServiceImpl(ChartOfAccountsService):
    """Hierarchical account registry.

    A child's type must match the type of its root ancestor, and accounts are
    only ever deactivated, never deleted.
    """

    def __init__(
        self, transactions: TransactionManager, account_repo: AccountRepository
    ) -> None:
        self._transactions = transactions
        self._account_repo = account_repo

    def create_account(
        self,
        company_id: UUID,
        code: str,
        name: str,
        account_type: AccountType,
        parent_id: UUID | None = None,
    ) -> Account:
        """Register a new account.

        When no parent is given, the account with the longest code prefix in
        the same company becomes the parent.

        Raises:
            InvalidAccountCodeError: code is not digits with optional dots
            DuplicateAccountCodeError: code already used in the company
            AccountHierarchyError: parent is unknown or in another company
            IncompatibleAccountTypeError: type differs from the root ancestor
        """
        code = normalize_account_code(code)
        account_type = AccountType(account_type)
        with self._transactions.transaction():
            if self._account_repo.get_by_code(company_id, code) is not None:
                raise DuplicateAccountCodeError(code, company_id)

            if parent_id is not None:
                parent = self._account_repo.get(parent_id)
                if parent is None or parent.company_id != company_id:
                    raise AccountHierarchyError(
                        f"Parent account not found in company: {parent_id}",
                        context={"parent_id": str(parent_id), "code": code},
                    )
            else:
                parent = find_parent_by_code(
                    code, self._account_repo.list_by_company(company_id)
                )

            if parent is not None:
                root = self._root_of(parent)
                if root.account_type != account_type:
                    raise IncompatibleAccountTypeError(
                        code, account_type.value, root.account_type.value
                    )

            account = Account(
                company_id=company_id,
                code=code,
                name=name,
                account_type=account_type,
                parent_id=parent.id if parent else None,
            )
            self._account_repo.add(account)

        logger.info(
            "account_created",
            company_id=str(company_id),
            code=code,
            account_type=account_type.value,
            parent_code=parent.code if parent else None,
        )
        return account

    def _root_of(self, account: Account) -> Account:
        seen = {account.id}
        current = account
        while current.parent_id is not None:
            parent = self._account_repo.get(current.parent_id)
            if parent is None or parent.id in seen:
                break
            seen.add(parent.id)
            current = parent
        return current

    def get_account(self, account_id: UUID) -> Account:
        account = self._account_repo.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def get_by_code(self, company_id: UUID, code: str) -> Account:
        code = normalize_account_code(code)
        account = self._account_repo.get_by_code(company_id, code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def list_accounts(
        self, company_id: UUID, include_inactive: bool = True
    ) -> list[Account]:
        return list(self._account_repo.list_by_company(company_id, include_inactive))

    def list_children(self, account_id: UUID) -> list[Account]:
        """Direct sub-accounts ordered by code."""
        self.get_account(account_id)
        return list(self._account_repo.list_children(account_id))

    def deactivate_account(self, account_id: UUID) -> Account:
        with self._transactions.transaction():
            account = self.get_account(account_id)
            account.deactivate()
            self._account_repo.update(account)
        logger.info("account_deactivated", account_id=str(account_id), code=account.code)
        return account

    def activate_account(self, account_id: UUID) -> Account:
        with self._transactions.transaction():
            account = self.get_account(account_id)
            account.activate()
            self._account_repo.update(account)
        logger.info("account_activated", account_id=str(account_id), code=account.code)
        return account

    def reparent_account(self, account_id: UUID, parent_id: UUID | None) -> Account:
        """Move an account under a new parent, or make it a root.

        Raises:
            AccountHierarchyError: the move would create a cycle, or the parent
                belongs to another company
            IncompatibleAccountTypeError: the new root ancestor has another type
        """
        with self._transactions.transaction():
            account = self.get_account(account_id)
            if parent_id is not None:
                parent = self._account_repo.get(parent_id)
                if parent is None or parent.company_id != account.company_id:
                    raise AccountHierarchyError(
                        f"Parent account not found in company: {parent_id}",
                        context={"parent_id": str(parent_id), "code": account.code},
                    )
                # Walk up from the new parent; meeting the account means a cycle.
                current: Account | None = parent
                while current is not None:
                    if current.id == account.id:
                        raise AccountHierarchyError(
                            f"Moving {account.code} under {parent.code} would create a cycle",
                            context={"code": account.code, "parent_code": parent.code},
                        )
                    current = (
                        self._account_repo.get(current.parent_id)
                        if current.parent_id
                        else None
                    )
                root = self._root_of(parent)
                if root.account_type != account.account_type:
                    raise IncompatibleAccountTypeError(
                        account.code,
                        account.account_type.value,
                        root.account_type.value,
                    )
            account.move_to(parent_id)
            self._account_repo.update(account)

        logger.info(
            "account_reparented",
            account_id=str(account_id),
            parent_id=str(parent_id) if parent_id else None,
        )
        return account

    def initialize_standard_chart(self, company_id: UUID) -> list[Account]:
        """Seed the standard Serbian chart (classes 0-6).

        Codes that already exist in the company are left untouched; only the
        newly created accounts are returned.
        """
        created: list[Account] = []
        with self._transactions.transaction():
            by_code = {
                a.code: a for a in self._account_repo.list_by_company(company_id)
            }
            for code, name, account_type in STANDARD_CHART:
                if code in by_code:
                    continue
                parent = find_parent_by_code(code, by_code.values())
                account = Account(
                    company_id=company_id,
                    code=code,
                    name=name,
                    account_type=account_type,
                    parent_id=parent.id if parent else None,
                    is_system=True,
                )
                self._account_repo.add(account)
                by_code[code] = account
                created.append(account)

        logger.info(
            "standard_chart_initialized",
            company_id=str(company_id),
            created=len(created),
        )
        return created
