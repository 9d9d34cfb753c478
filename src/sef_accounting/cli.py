"""Command-line interface for the SEF accounting core."""

import argparse
import os
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

from sef_accounting import __version__
from sef_accounting.config import get_settings
from sef_accounting.container import (
    create_chart_service,
    create_ledger_service,
    create_tax_period_service,
)
from sef_accounting.domain.tax_periods import TaxField, TaxPeriod
from sef_accounting.domain.value_objects import Currency
from sef_accounting.exceptions import SefAccountingError
from sef_accounting.repositories.sqlite import SQLiteDatabase


def get_default_db_path() -> Path:
    """Database path from SEF_SQLITE_PATH, or the configured default."""
    return Path(get_settings().sqlite_path)


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.database) if args.database else get_default_db_path()


def _open_database(args: argparse.Namespace) -> SQLiteDatabase | None:
    db_path = _db_path(args)
    if not db_path.exists():
        print(f"Error: Database not found at {db_path}")
        print("Run 'sef-accounting init' to create a new database")
        return None
    db = SQLiteDatabase(str(db_path), lock_timeout=get_settings().lock_timeout_seconds)
    db.initialize()
    return db


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    db_path = _db_path(args)

    if db_path.exists() and not args.force:
        print(f"Database already exists at {db_path}")
        print("Use --force to reinitialize (WARNING: will delete existing data)")
        return 1

    if db_path.exists() and args.force:
        db_path.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = SQLiteDatabase(str(db_path))
    db.initialize()
    db.close()

    print(f"Initialized database at {db_path}")
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"SEF Accounting Core v{__version__}")
    return 0


def cmd_chart_init(args: argparse.Namespace) -> int:
    """Seed the standard chart of accounts for a company."""
    db = _open_database(args)
    if db is None:
        return 1

    try:
        company_id = UUID(args.company_id)
        created = create_chart_service(db).initialize_standard_chart(company_id)
        print(f"Created {len(created)} accounts for company {company_id}")
        return 0
    except (SefAccountingError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_accounts_list(args: argparse.Namespace) -> int:
    db = _open_database(args)
    if db is None:
        return 1

    try:
        company_id = UUID(args.company_id)
        accounts = create_chart_service(db).list_accounts(
            company_id, include_inactive=not args.active_only
        )
        if not accounts:
            print("No accounts found")
            return 0

        print(f"{'Code':<10} {'Type':<10} {'Name':<50} {'Status'}")
        print("-" * 80)
        for account in accounts:
            state = "active" if account.is_active else "inactive"
            indent = "  " * (account.level - 1)
            name = f"{indent}{account.name}"
            print(f"{account.code:<10} {account.account_type.value:<10} {name[:48]:<50} {state}")

        print(f"\nTotal: {len(accounts)} accounts")
        return 0
    except (SefAccountingError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_trial_balance(args: argparse.Namespace) -> int:
    db = _open_database(args)
    if db is None:
        return 1

    try:
        company_id = UUID(args.company_id)
        as_of = date.fromisoformat(args.as_of) if args.as_of else None
        ledger = create_ledger_service(db, Currency(get_settings().default_currency))
        trial_balance = ledger.get_trial_balance(company_id, as_of)

        print(f"Trial balance for company {company_id}")
        if as_of:
            print(f"As of: {as_of.isoformat()}")
        print(f"{'Code':<10} {'Account':<40} {'Debit':>15} {'Credit':>15}")
        print("-" * 83)
        for row in trial_balance.rows:
            print(
                f"{row.code:<10} {row.name[:38]:<40} "
                f"{row.debit.amount:>15,.2f} {row.credit.amount:>15,.2f}"
            )
        print("-" * 83)
        print(
            f"{'Total':<51} {trial_balance.total_debit.amount:>15,.2f} "
            f"{trial_balance.total_credit.amount:>15,.2f}"
        )
        print("Balanced" if trial_balance.is_balanced else "NOT BALANCED")
        return 0 if trial_balance.is_balanced else 2
    except (SefAccountingError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_tax_calculate(args: argparse.Namespace) -> int:
    """Print the PPPDV fields for a period without saving a report."""
    db = _open_database(args)
    if db is None:
        return 1

    try:
        company_id = UUID(args.company_id)
        period = TaxPeriod.resolve(args.year, args.period_type.upper(), args.month, args.quarter)
        rate = Decimal(args.rate) if args.rate is not None else None
        previous_credit = (
            Decimal(args.previous_credit) if args.previous_credit is not None else None
        )
        service = create_tax_period_service(
            db, get_settings().default_proportional_deduction_rate
        )
        calculation = service.calculate(company_id, period, rate, previous_credit)

        print(f"PPPDV for {period.label} ({period.first_day} - {period.last_day})")
        print(f"Records: {calculation.record_count}")
        print("-" * 72)
        for tax_field in TaxField:
            value = calculation.fields[tax_field]
            print(f"{tax_field.number:<5} {tax_field.label:<50} {value:>15,.2f}")
        print("-" * 72)
        if calculation.payable:
            print(f"VAT payable: {calculation.payable:,.2f}")
        else:
            print(f"VAT credit: {calculation.refundable:,.2f}")
        return 0
    except (SefAccountingError, ValueError, InvalidOperation) as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    if args.database:
        os.environ["SEF_SQLITE_PATH"] = str(args.database)
        get_settings.cache_clear()
    settings = get_settings()

    uvicorn.run(
        "sef_accounting.api.app:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload or settings.api_reload,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sef-accounting",
        description="SEF Accounting Core - ledger, advance invoices and PPPDV tax periods",
    )
    parser.add_argument(
        "--database",
        "-d",
        help="Path to SQLite database file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Initialize a new database")
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force reinitialization (deletes existing data)",
    )
    init_parser.set_defaults(func=cmd_init)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    # chart commands
    chart_parser = subparsers.add_parser("chart", help="Chart of accounts")
    chart_subparsers = chart_parser.add_subparsers(dest="chart_command")
    chart_init_parser = chart_subparsers.add_parser(
        "init", help="Seed the standard chart of accounts"
    )
    chart_init_parser.add_argument("--company-id", required=True, help="Company ID")
    chart_init_parser.set_defaults(func=cmd_chart_init)

    # accounts commands
    accounts_parser = subparsers.add_parser("accounts", help="Account queries")
    accounts_subparsers = accounts_parser.add_subparsers(dest="accounts_command")
    accounts_list_parser = accounts_subparsers.add_parser("list", help="List accounts")
    accounts_list_parser.add_argument("--company-id", required=True, help="Company ID")
    accounts_list_parser.add_argument(
        "--active-only", action="store_true", help="Hide deactivated accounts"
    )
    accounts_list_parser.set_defaults(func=cmd_accounts_list)

    # trial-balance command
    trial_balance_parser = subparsers.add_parser(
        "trial-balance", help="Print the trial balance"
    )
    trial_balance_parser.add_argument("--company-id", required=True, help="Company ID")
    trial_balance_parser.add_argument("--as-of", help="As-of date (YYYY-MM-DD)")
    trial_balance_parser.set_defaults(func=cmd_trial_balance)

    # tax commands
    tax_parser = subparsers.add_parser("tax", help="PPPDV tax periods")
    tax_subparsers = tax_parser.add_subparsers(dest="tax_command")
    tax_calculate_parser = tax_subparsers.add_parser(
        "calculate", help="Preview the PPPDV fields for a period"
    )
    tax_calculate_parser.add_argument("--company-id", required=True, help="Company ID")
    tax_calculate_parser.add_argument("--year", type=int, required=True, help="Tax year")
    tax_calculate_parser.add_argument(
        "--period-type",
        choices=["monthly", "quarterly"],
        default="monthly",
        help="Period type",
    )
    tax_calculate_parser.add_argument("--month", type=int, help="Month (1-12)")
    tax_calculate_parser.add_argument("--quarter", type=int, help="Quarter (1-4)")
    tax_calculate_parser.add_argument(
        "--rate", help="Proportional deduction rate in percent"
    )
    tax_calculate_parser.add_argument(
        "--previous-credit", help="Credit carried forward from the previous period"
    )
    tax_calculate_parser.set_defaults(func=cmd_tax_calculate)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")
    serve_parser.add_argument(
        "--reload", action="store_true", help="Reload on code changes"
    )
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "chart" and getattr(args, "chart_command", None) is None:
        chart_parser.print_help()
        return 0

    if args.command == "accounts" and getattr(args, "accounts_command", None) is None:
        accounts_parser.print_help()
        return 0

    if args.command == "tax" and getattr(args, "tax_command", None) is None:
        tax_parser.print_help()
        return 0

    result: int = args.func(args)
    return result


if __name__ == "__main__":
    sys.exit(main())
