"""Command-line interface for Tenant Books."""

import argparse
import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from tenant_books import __version__
from tenant_books.config import get_settings
from tenant_books.container import Container, ServiceScope
from tenant_books.domain.value_objects import Currency, EntityType
from tenant_books.exceptions import TenantBooksError
from tenant_books.logging_config import configure_logging
from tenant_books.parsers import parser_for
from tenant_books.services.gl_accounts import AccountNode


def get_db_path(args: argparse.Namespace) -> Path:
    """The database named on the command line, or the configured default."""
    if args.database:
        return Path(args.database)
    return get_settings().sqlite_path


def open_container(args: argparse.Namespace) -> Container:
    settings = get_settings().model_copy(update={"sqlite_path": get_db_path(args)})
    return Container(settings=settings)


def open_scope(container: Container, args: argparse.Namespace) -> ServiceScope:
    context = container.tenancy_service.resolve_context(
        UUID(args.tenant_id), UUID(args.user_id)
    )
    return container.scope(context)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date (expected YYYY-MM-DD): {value}"
        ) from None


def _fmt(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    db_path = get_db_path(args)

    if db_path.exists() and not args.force:
        print(f"Database already exists at {db_path}")
        print("Use --force to reinitialize (WARNING: will delete existing data)")
        return 1

    if db_path.exists() and args.force:
        db_path.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    with open_container(args) as container:
        _ = container.database

    print(f"Initialized database at {db_path}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show database status."""
    db_path = get_db_path(args)

    if not db_path.exists():
        print(f"No database found at {db_path}")
        print("Run 'tenant-books init' to create a new database")
        return 1

    with open_container(args) as container:
        tenants = container.tenancy_service.list_tenants()
        print(f"Database: {db_path}")
        print(f"Tenants: {len(tenants)}")
        for tenant in tenants:
            entities = list(container.entity_repo.list_by_tenant(tenant.id))
            print(f"  - {tenant.name} ({tenant.id}): {len(entities)} entities")
            for entity in entities:
                accounts = container.gl_account_repo.list_by_entity(entity.id)
                print(
                    f"      {entity.name} [{entity.functional_currency.value}]: "
                    f"{len(list(accounts))} accounts"
                )
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"Tenant Books v{__version__}")
    return 0


def cmd_tenant_create(args: argparse.Namespace) -> int:
    with open_container(args) as container:
        tenant, owner = container.tenancy_service.create_tenant(
            args.name, args.owner_email, args.owner_name or ""
        )
    print(f"Created tenant {tenant.name}")
    print(f"  Tenant ID: {tenant.id}")
    print(f"  Owner ID:  {owner.id}")
    return 0


def cmd_entity_create(args: argparse.Namespace) -> int:
    with open_container(args) as container:
        context = open_scope(container, args).context
        entity = container.tenancy_service.create_entity(
            context,
            name=args.name,
            entity_type=EntityType(args.entity_type),
            functional_currency=Currency(args.currency),
            fiscal_year_start=args.fiscal_year_start,
        )
    print(f"Created entity {entity.name}")
    print(f"  Entity ID: {entity.id}")
    return 0


def cmd_coa_seed(args: argparse.Namespace) -> int:
    with open_container(args) as container:
        result = open_scope(container, args).gl_accounts.seed_default_coa(UUID(args.entity_id))
    if result.seeded:
        print(f"Seeded {result.account_count} accounts")
    else:
        print(f"Chart of accounts already present ({result.account_count} accounts)")
    return 0


def _print_tree(nodes: list[AccountNode], depth: int = 0) -> None:
    for node in nodes:
        account = node.account
        print(f"{'  ' * depth}{account.code}  {account.name} ({account.account_type.value})")
        _print_tree(node.children, depth + 1)


def cmd_coa_tree(args: argparse.Namespace) -> int:
    with open_container(args) as container:
        tree = open_scope(container, args).gl_accounts.get_account_tree(UUID(args.entity_id))
    if not tree:
        print("No accounts found")
        return 0
    _print_tree(tree)
    return 0


def cmd_feed_import(args: argparse.Namespace) -> int:
    """Import a statement file as recorded transactions, or into the bank feed."""
    file_path = Path(args.file)

    if not file_path.exists():
        print(f"Error: File not found: {file_path}")
        return 1

    with open_container(args) as container:
        bank_import = open_scope(container, args).bank_import
        account_id = UUID(args.account_id)
        if args.feed:
            rows = parser_for(file_path).parse(file_path)
            added = bank_import.add_feed_transactions(account_id, rows)
            print(f"Feed rows received: {len(rows)}")
            print(f"  Added:   {len(added)}")
            print(f"  Skipped: {len(rows) - len(added)}")
            return 0

        batch = bank_import.import_statement(account_id, file_path)

    if batch.error:
        print(f"Import failed: {batch.error}")
        return 1
    print(f"Imported {file_path.name}")
    print(f"  Rows:       {batch.total_rows}")
    print(f"  Imported:   {batch.imported}")
    print(f"  Duplicates: {batch.duplicates}")
    return 0


def cmd_reconcile_suggest(args: argparse.Namespace) -> int:
    with open_container(args) as container:
        suggestions = open_scope(container, args).reconciliation.suggest_matches(
            UUID(args.feed_id), args.limit
        )
    if not suggestions:
        print("No candidate transactions found")
        return 0

    print(f"{'Score':>6}  {'Date':<10}  {'Amount':>12}  Description")
    print("-" * 60)
    for suggestion in suggestions:
        print(
            f"{suggestion.confidence:>6.2f}  {suggestion.transaction_date.isoformat():<10}  "
            f"{_fmt(suggestion.amount.amount):>12}  {suggestion.description}"
        )
        print(f"        {suggestion.transaction_id}  ({'; '.join(suggestion.reasons)})")
    return 0


def cmd_report_trial_balance(args: argparse.Namespace) -> int:
    with open_container(args) as container:
        report = open_scope(container, args).reporting.trial_balance(
            UUID(args.entity_id), args.as_of
        )
    print(f"Trial Balance as of {report.as_of.isoformat()} ({report.currency.value})")
    print("=" * 64)
    print(f"{'Code':<8}{'Account':<32}{'Debit':>12}{'Credit':>12}")
    print("-" * 64)
    for row in report.rows:
        debit = _fmt(row.debit) if row.debit else ""
        credit = _fmt(row.credit) if row.credit else ""
        print(f"{row.code:<8}{row.name[:31]:<32}{debit:>12}{credit:>12}")
    print("-" * 64)
    print(
        f"{'':<8}{'Totals':<32}{_fmt(report.total_debits):>12}{_fmt(report.total_credits):>12}"
    )
    if not report.is_balanced:
        print("WARNING: trial balance is out of balance")
        return 1
    return 0


def cmd_depreciation_run(args: argparse.Namespace) -> int:
    with open_container(args) as container:
        result = open_scope(container, args).assets.run_depreciation(
            UUID(args.entity_id), args.period
        )
    print(f"Depreciation for {result.period_date:%Y-%m}")
    print(f"  Processed: {result.processed}")
    print(f"  Skipped:   {result.skipped}")
    total = sum((entry.amount for entry in result.entries), Decimal("0"))
    print(f"  Total:     {_fmt(total)}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API under uvicorn."""
    import uvicorn

    settings = get_settings()
    if args.database:
        os.environ["TB_SQLITE_PATH"] = args.database
        get_settings.cache_clear()

    print(f"Serving Tenant Books API on http://{args.host or settings.api_host}:"
          f"{args.port or settings.api_port}")
    uvicorn.run(
        "tenant_books.api.app:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=settings.api_reload,
    )
    return 0


def _add_context_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--tenant-id", required=True, help="Tenant ID")
    parser.add_argument("--user-id", required=True, help="Acting user ID")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tenant-books",
        description="Tenant Books - multi-tenant double-entry bookkeeping",
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

    # status command
    status_parser = subparsers.add_parser("status", help="Show database status")
    status_parser.set_defaults(func=cmd_status)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")
    serve_parser.set_defaults(func=cmd_serve)

    # tenant commands
    tenant_parser = subparsers.add_parser("tenant", help="Tenant management")
    tenant_subparsers = tenant_parser.add_subparsers(dest="tenant_command")

    tenant_create_parser = tenant_subparsers.add_parser("create", help="Create a tenant")
    tenant_create_parser.add_argument("--name", required=True, help="Tenant name")
    tenant_create_parser.add_argument("--owner-email", required=True, help="Owner email")
    tenant_create_parser.add_argument("--owner-name", help="Owner display name")
    tenant_create_parser.set_defaults(func=cmd_tenant_create)

    # entity commands
    entity_parser = subparsers.add_parser("entity", help="Entity management")
    entity_subparsers = entity_parser.add_subparsers(dest="entity_command")

    entity_create_parser = entity_subparsers.add_parser("create", help="Create an entity")
    _add_context_arguments(entity_create_parser)
    entity_create_parser.add_argument("--name", required=True, help="Entity name")
    entity_create_parser.add_argument(
        "--entity-type",
        choices=[t.value for t in EntityType],
        default=EntityType.CORPORATION.value,
        help="Legal form",
    )
    entity_create_parser.add_argument(
        "--currency",
        choices=[c.value for c in Currency],
        default=Currency.USD.value,
        help="Functional currency",
    )
    entity_create_parser.add_argument(
        "--fiscal-year-start",
        type=int,
        choices=range(1, 13),
        default=1,
        help="First month of the fiscal year",
    )
    entity_create_parser.set_defaults(func=cmd_entity_create)

    # chart of accounts commands
    coa_parser = subparsers.add_parser("coa", help="Chart of accounts")
    coa_subparsers = coa_parser.add_subparsers(dest="coa_command")

    coa_seed_parser = coa_subparsers.add_parser("seed", help="Seed the default chart")
    _add_context_arguments(coa_seed_parser)
    coa_seed_parser.add_argument("--entity-id", required=True, help="Entity ID")
    coa_seed_parser.set_defaults(func=cmd_coa_seed)

    coa_tree_parser = coa_subparsers.add_parser("tree", help="Print the account tree")
    _add_context_arguments(coa_tree_parser)
    coa_tree_parser.add_argument("--entity-id", required=True, help="Entity ID")
    coa_tree_parser.set_defaults(func=cmd_coa_tree)

    # feed commands
    feed_parser = subparsers.add_parser("feed", help="Bank statements and feeds")
    feed_subparsers = feed_parser.add_subparsers(dest="feed_command")

    feed_import_parser = feed_subparsers.add_parser(
        "import", help="Import a CSV or XLSX bank statement"
    )
    _add_context_arguments(feed_import_parser)
    feed_import_parser.add_argument("file", help="Statement file")
    feed_import_parser.add_argument("--account-id", required=True, help="Bank account ID")
    feed_import_parser.add_argument(
        "--feed",
        action="store_true",
        help="Load rows into the bank feed for reconciliation instead of recording them",
    )
    feed_import_parser.set_defaults(func=cmd_feed_import)

    # reconcile commands
    reconcile_parser = subparsers.add_parser("reconcile", help="Bank reconciliation")
    reconcile_subparsers = reconcile_parser.add_subparsers(dest="reconcile_command")

    reconcile_suggest_parser = reconcile_subparsers.add_parser(
        "suggest", help="Suggest matches for a bank feed row"
    )
    _add_context_arguments(reconcile_suggest_parser)
    reconcile_suggest_parser.add_argument("--feed-id", required=True, help="Bank feed row ID")
    reconcile_suggest_parser.add_argument(
        "--limit", type=int, default=None, help="Maximum number of suggestions"
    )
    reconcile_suggest_parser.set_defaults(func=cmd_reconcile_suggest)

    # report commands
    report_parser = subparsers.add_parser("report", help="Financial reports")
    report_subparsers = report_parser.add_subparsers(dest="report_command")

    trial_balance_parser = report_subparsers.add_parser(
        "trial-balance", help="Print a trial balance"
    )
    _add_context_arguments(trial_balance_parser)
    trial_balance_parser.add_argument("--entity-id", required=True, help="Entity ID")
    trial_balance_parser.add_argument(
        "--as-of", type=_parse_date, default=date.today(), help="Report date (YYYY-MM-DD)"
    )
    trial_balance_parser.set_defaults(func=cmd_report_trial_balance)

    # depreciation commands
    depreciation_parser = subparsers.add_parser("depreciation", help="Fixed asset depreciation")
    depreciation_subparsers = depreciation_parser.add_subparsers(dest="depreciation_command")

    depreciation_run_parser = depreciation_subparsers.add_parser(
        "run", help="Book one month of depreciation"
    )
    _add_context_arguments(depreciation_run_parser)
    depreciation_run_parser.add_argument("--entity-id", required=True, help="Entity ID")
    depreciation_run_parser.add_argument(
        "--period", type=_parse_date, required=True, help="Any date in the month (YYYY-MM-DD)"
    )
    depreciation_run_parser.set_defaults(func=cmd_depreciation_run)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    group_parsers = {
        "tenant": tenant_parser,
        "entity": entity_parser,
        "coa": coa_parser,
        "feed": feed_parser,
        "reconcile": reconcile_parser,
        "report": report_parser,
        "depreciation": depreciation_parser,
    }
    if args.command in group_parsers and getattr(args, f"{args.command}_command", None) is None:
        group_parsers[args.command].print_help()
        return 0

    configure_logging(get_settings())

    try:
        result: int = args.func(args)
    except TenantBooksError as e:
        print(f"Error: {e.message}")
        return 1
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    return result


if __name__ == "__main__":
    sys.exit(main())
