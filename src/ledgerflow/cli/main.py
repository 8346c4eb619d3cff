#!/usr/bin/env python3
"""
ledgerflow CLI - import bank exports and categorize transactions.

Usage:
    ledgerflow account add "Compte courant" --institution "Caisse d'Épargne" --parser caisse_epargne
    ledgerflow import export.csv --account acc-123
    ledgerflow categorize --account acc-123
    ledgerflow rules add CARREFOUR cat-groceries --priority 150
    ledgerflow recurring
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

import pandas as pd

from ledgerflow.core.categories import Category
from ledgerflow.core.config import LedgerConfig
from ledgerflow.core.database import LedgerDatabase
from ledgerflow.core.exceptions import LedgerFlowError
from ledgerflow.core.ledger import LedgerStore
from ledgerflow.parsers.bank import ParserRegistry
from ledgerflow.services.categorization import CategorizationPipeline, MatchType, RuleStore
from ledgerflow.services.import_coordinator import ImportCoordinator
from ledgerflow.services.recurring_detector import RecurringPatternDetector

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, debug: bool = False):
    """Configure logging."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


# ============================================================================
# Command Handlers
# ============================================================================

def cmd_init(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle init command - create schema and optionally seed rules."""
    print(f"Database ready: {config.database_path}")
    if args.seed_rules:
        created = RuleStore(db).seed_defaults()
        print(f"Seeded {created} default rules")
    return 0


def cmd_account(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle account add/list."""
    ledger = LedgerStore(db)

    if args.account_command == "add":
        parser_key = ParserRegistry.resolve(args.parser)
        account = ledger.create_account(args.name, args.institution, parser_key,
                                        currency=args.currency, account_id=args.id)
        print(f"Created account {account.id} ({account.institution}, parser {account.parser_key})")
        return 0

    accounts = ledger.list_accounts()
    if not accounts:
        print("No accounts")
        return 0
    for account in accounts:
        print(f"  {account.id:<20} {account.name:<30} {account.parser_key:<28} "
              f"{account.balance:>12} {account.currency}")
    return 0


def cmd_import(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle import command - parse a file and import it into an account."""
    path = Path(args.file)
    if not path.exists():
        print(f"File not found: {path}")
        return 1

    ledger = LedgerStore(db)
    coordinator = ImportCoordinator(ledger, settings=config.import_settings)
    result = coordinator.import_file(args.account, path.read_bytes(), args.parser, source_file=path.name)

    print(f"\nImport {result.import_id} ({result.parser_key}):")
    print(f"  Parsed:       {result.parsed}")
    print(f"  Inserted:     {result.inserted}")
    print(f"  Duplicates:   {result.skipped}")
    print(f"  Rows skipped: {result.skipped_rows}")
    print(f"  Balance:      {result.balance}")
    for warning in result.warnings:
        print(f"  Warning: {warning}")
    for error in result.errors:
        print(f"  Error: {error}")

    if args.categorize and result.inserted:
        run = CategorizationPipeline(ledger, RuleStore(db), config.categorization).run(args.account)
        _print_stats(run.stats)
    return 0 if result.success else 1


def cmd_reprocess(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle reprocess command - force re-import of a file for an existing import."""
    path = Path(args.file)
    if not path.exists():
        print(f"File not found: {path}")
        return 1

    coordinator = ImportCoordinator(LedgerStore(db), settings=config.import_settings)
    result = coordinator.reprocess(args.import_id, path.read_bytes())
    print(f"Reprocessed {result.import_id}: {result.summary()}, {result.removed} removed")
    return 0 if result.success else 1


def cmd_rollback(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle rollback command."""
    deleted = ImportCoordinator(LedgerStore(db)).rollback_import(args.import_id)
    print(f"Rolled back {args.import_id}: {deleted} transactions deleted")
    return 0


def cmd_categorize(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle categorize command."""
    pipeline = CategorizationPipeline(LedgerStore(db), RuleStore(db), config.categorization)
    run = pipeline.run(args.account, apply=not args.dry_run)
    if args.dry_run:
        print("Dry run, nothing written")
    _print_stats(run.stats)
    return 0


def cmd_set_category(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle set-category command - manual correction with rule learning."""
    pipeline = CategorizationPipeline(LedgerStore(db), RuleStore(db), config.categorization)
    rule = pipeline.categorize_manually(args.transaction_id, args.category, create_rule=not args.no_rule)
    print(f"Transaction {args.transaction_id} set to {args.category}")
    if rule:
        print(f"Learned rule {rule.id}: {rule.match_type.value} {rule.pattern!r} (priority {rule.priority})")
    return 0


def cmd_rules(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle rules add/list/disable/seed."""
    store = RuleStore(db)

    if args.rules_command == "add":
        priority = args.priority if args.priority is not None else config.categorization.default_rule_priority
        rule = store.create_rule(args.pattern, args.category, args.match_type, priority, args.source)
        print(f"Created rule {rule.id}")
    elif args.rules_command == "disable":
        store.deactivate(args.rule_id)
        print(f"Disabled rule {args.rule_id}")
    elif args.rules_command == "seed":
        print(f"Seeded {store.seed_defaults()} default rules")
    else:
        for rule in store.list_rules():
            status = "" if rule.is_active else " (disabled)"
            scope = f" [{rule.source_filter}]" if rule.source_filter else ""
            print(f"  {rule.id:>4} {rule.priority:>4} {rule.match_type.value:<11} "
                  f"{rule.pattern!r} -> {rule.category_id}{scope}{status}")
    return 0


def cmd_recurring(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle recurring command - detect and list recurring patterns."""
    detector = RecurringPatternDetector(db, config.recurring)
    as_of = date.fromisoformat(args.as_of) if args.as_of else None
    result = detector.run(as_of, args.account)
    print(f"Detected {len(result.detected)} patterns ({result.created} new, {result.updated} updated)")

    for pattern in detector.list_active(args.account):
        print(f"  {pattern.frequency.value:<10} {pattern.amount:>10}  {pattern.description} "
              f"(x{pattern.occurrence_count}, last {pattern.last_seen_at})")
    return 0


def cmd_preview(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle preview command - parse a file without importing it."""
    path = Path(args.file)
    if not path.exists():
        print(f"File not found: {path}")
        return 1

    parser = ParserRegistry.create_for_file(args.parser, path.name, config.import_settings)
    result = parser.parse(path.read_bytes(), path.name)
    if result.errors:
        print("Errors: " + "; ".join(result.errors))

    df = pd.DataFrame([
        {
            "date": t.date,
            "description": t.description,
            "amount": t.signed_amount,
            "kind": t.kind.value,
            "category": t.raw_category,
        }
        for t in result
    ])
    print(df.to_string(index=False) if not df.empty else "No transactions")
    print(f"\n{len(result)} transactions, {result.skipped_rows} rows skipped")
    return 0


def cmd_parsers(args, config: LedgerConfig, db: LedgerDatabase):
    """Handle parsers command."""
    for key in ParserRegistry.available():
        print(f"  {key}")
    return 0


def _print_stats(stats):
    print("\nCategorization:")
    print(f"  Total:      {stats.total}")
    print(f"  Rules:      {stats.rule_matches}")
    print(f"  Bank:       {stats.bank_matches}")
    print(f"  Transfers:  {stats.transfer_matches}")
    print(f"  Unmatched:  {stats.unmatched}")
    print(f"  Duration:   {stats.duration} ms")


# ============================================================================
# Main
# ============================================================================

COMMANDS = {
    "init": cmd_init,
    "account": cmd_account,
    "import": cmd_import,
    "reprocess": cmd_reprocess,
    "rollback": cmd_rollback,
    "categorize": cmd_categorize,
    "set-category": cmd_set_category,
    "rules": cmd_rules,
    "recurring": cmd_recurring,
    "preview": cmd_preview,
    "parsers": cmd_parsers,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledgerflow",
        description="ledgerflow - bank export import and categorization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ledgerflow init --seed-rules
  ledgerflow account add "Compte SCI" --institution "Caisse d'Épargne" --parser caisse_epargne_entreprise
  ledgerflow import releve.csv --account acc-123 --categorize
  ledgerflow rules add "NETFLIX" cat-subscriptions --match-type CONTAINS
  ledgerflow recurring --as-of 2024-06-30
        """
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug output")
    parser.add_argument("--db", help="Database path (default: $LEDGERFLOW_DB or ~/.ledgerflow/ledger.db)")
    parser.add_argument("--config", help="JSON config file (default: $LEDGERFLOW_CONFIG)")

    subparsers = parser.add_subparsers(dest="command", help="Command")

    init_parser = subparsers.add_parser("init", help="Create the database")
    init_parser.add_argument("--seed-rules", action="store_true", help="Insert starter rules")

    account_parser = subparsers.add_parser("account", help="Manage accounts")
    account_sub = account_parser.add_subparsers(dest="account_command")
    add_account = account_sub.add_parser("add", help="Create an account")
    add_account.add_argument("name")
    add_account.add_argument("--institution", required=True)
    add_account.add_argument("--parser", required=True, help="Parser key, see 'ledgerflow parsers'")
    add_account.add_argument("--currency", default="EUR")
    add_account.add_argument("--id", help="Account id (generated when omitted)")
    account_sub.add_parser("list", help="List accounts")

    import_parser = subparsers.add_parser("import", help="Import an export file")
    import_parser.add_argument("file")
    import_parser.add_argument("--account", "-a", required=True)
    import_parser.add_argument("--parser", "-p", help="Parser key (default: the account's)")
    import_parser.add_argument("--categorize", action="store_true", help="Categorize after import")

    reprocess_parser = subparsers.add_parser("reprocess", help="Force re-import for an import id")
    reprocess_parser.add_argument("import_id")
    reprocess_parser.add_argument("file")

    rollback_parser = subparsers.add_parser("rollback", help="Delete an import's transactions")
    rollback_parser.add_argument("import_id")

    categorize_parser = subparsers.add_parser("categorize", help="Categorize uncategorized transactions")
    categorize_parser.add_argument("--account", "-a")
    categorize_parser.add_argument("--dry-run", action="store_true")

    set_category = subparsers.add_parser("set-category", help="Manually categorize a transaction")
    set_category.add_argument("transaction_id")
    set_category.add_argument("category", choices=[c.value for c in Category])
    set_category.add_argument("--no-rule", action="store_true", help="Do not learn a rule")

    rules_parser = subparsers.add_parser("rules", help="Manage category rules")
    rules_sub = rules_parser.add_subparsers(dest="rules_command")
    add_rule = rules_sub.add_parser("add", help="Create a rule")
    add_rule.add_argument("pattern")
    add_rule.add_argument("category", choices=[c.value for c in Category])
    add_rule.add_argument("--match-type", "-m", default=MatchType.CONTAINS.value,
                          choices=[m.value for m in MatchType])
    add_rule.add_argument("--priority", type=int)
    add_rule.add_argument("--source", help="Restrict to a parser key or account id")
    rules_sub.add_parser("list", help="List rules")
    disable_rule = rules_sub.add_parser("disable", help="Disable a rule")
    disable_rule.add_argument("rule_id", type=int)
    rules_sub.add_parser("seed", help="Insert starter rules")

    recurring_parser = subparsers.add_parser("recurring", help="Detect recurring transactions")
    recurring_parser.add_argument("--account", "-a")
    recurring_parser.add_argument("--as-of", help="Reference date YYYY-MM-DD (default: today)")

    preview_parser = subparsers.add_parser("preview", help="Parse a file without importing")
    preview_parser.add_argument("file")
    preview_parser.add_argument("--parser", "-p", required=True)

    subparsers.add_parser("parsers", help="List parser keys")

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose, args.debug)

    try:
        config = LedgerConfig.load(Path(args.config) if args.config else None)
        if args.db:
            config.database_path = args.db

        with LedgerDatabase(config.database_path) as db:
            return COMMANDS[args.command](args, config, db)
    except LedgerFlowError as e:
        print(f"Error: {e.message}")
        logger.debug(f"{e.code}: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
