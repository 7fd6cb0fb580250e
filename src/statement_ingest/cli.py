#!/usr/bin/env python3
"""Command-line interface for statement-ingest."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from statement_ingest.config import create_default_config, get_config_path, load_config, save_json_config
from statement_ingest.errors import StatementIngestError
from statement_ingest.export import write_csv, write_full_csv
from statement_ingest.logging_setup import configure_logging
from statement_ingest.models import Statement
from statement_ingest.service import IngestionService, ProgressEvent, ResultEvent


def print_breakdown(service: IngestionService, statement: Statement, category: str | None = None) -> None:
    """Print card details plus category and merchant breakdowns."""
    info = statement.to_dict()
    print(f"Statement {info['id']}: {info['issuer'] or 'Unknown issuer'} {info['last4']}".rstrip())
    if info["period"]:
        print(f"  Period: {info['period']}")
    if statement.summary and statement.summary.total_spend is not None:
        print(f"  Total spend: {statement.summary.total_spend}")
    print(f"  Transactions: {info['transactions']} (source: {info['source']})")

    aggregates = service.get_aggregates(statement, category)

    print("\nBy category:")
    for agg in aggregates.categories:
        print(f"  {agg.category:<20} {agg.total_amount:>12}  {agg.percent_of_total:>6}%  "
              f"({agg.transaction_count})")

    print(f"\nBy merchant{f' ({category})' if category else ''}:")
    for merchant in aggregates.merchants:
        print(f"  {merchant.canonical_merchant[:30]:<30} {merchant.total_amount:>12}  "
              f"({merchant.transaction_count})")


async def _ingest(service: IngestionService, document: bytes, card_id: str | None,
                  show_progress: bool) -> Statement:
    statement: Statement | None = None
    async for event in service.begin_ingestion(document, card_id=card_id):
        if isinstance(event, ProgressEvent):
            if show_progress:
                print(f"\rProgress: {event.progress:>4.0%}", end="", file=sys.stderr)
        elif isinstance(event, ResultEvent):
            statement = event.statement
        else:
            if show_progress:
                print(file=sys.stderr)
            raise event.error

    if show_progress:
        print(file=sys.stderr)
    assert statement is not None  # the stream always ends with a result or an error
    return statement


def cmd_ingest(service: IngestionService, args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.exists():
        print(f"Error: {path} not found", file=sys.stderr)
        return 1

    document = path.read_bytes()
    statement = asyncio.run(_ingest(service, document, args.card_id, not args.quiet))

    print(f"Stored statement {statement.statement_id} with "
          f"{len(statement.transactions)} transactions", file=sys.stderr)
    print_breakdown(service, statement, args.category)

    if args.csv:
        output_path = Path(args.csv)
        delimiter = "\t" if args.format == "tsv" else ","
        if args.full:
            write_full_csv(statement.transactions, output_path, delimiter)
        else:
            write_csv(statement.transactions, output_path, delimiter)
        print(f"Wrote {len(statement.transactions)} transactions to {output_path}", file=sys.stderr)

    return 0


def cmd_list(service: IngestionService, args: argparse.Namespace) -> int:
    statements = service.list_statements()
    if not statements:
        print("No statements stored.")
        return 0

    for statement in statements:
        info = statement.to_dict()
        print(f"  [{info['id']}] {info['issuer'] or '-':<20} {info['last4'] or '----'}  "
              f"{info['period'] or '-':<26} {info['transactions']:>4} tx  {info['total_debits']:>12}")
    return 0


def cmd_show(service: IngestionService, args: argparse.Namespace) -> int:
    statement = service.find_statement(args.statement)
    if statement is None:
        print(f"Error: statement {args.statement} not found", file=sys.stderr)
        return 1
    print_breakdown(service, statement, args.category)
    return 0


def cmd_delete(service: IngestionService, args: argparse.Namespace) -> int:
    if not service.delete_statement(args.statement_id):
        print(f"Error: statement {args.statement_id} not found", file=sys.stderr)
        return 1
    print(f"Deleted statement {args.statement_id}", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="statement-ingest",
        description="Extract, categorize and summarize credit-card statements",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  statement-ingest init
  statement-ingest ingest ~/Downloads/hdfc-march.pdf
  statement-ingest ingest statement.png --csv transactions.csv
  statement-ingest list
  statement-ingest show 3 --category "Food & Dining"
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.json file",
    )
    parser.add_argument(
        "--db",
        help="Database URL (overrides config)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init", help="Write a default config.json")

    ingest = subparsers.add_parser("ingest", help="Ingest a statement PDF or image")
    ingest.add_argument("file", help="Statement file")
    ingest.add_argument("--card-id", help="Card the statement belongs to")
    ingest.add_argument("--category", help="Show merchants of this category only")
    ingest.add_argument("--csv", help="Also write transactions to this file")
    ingest.add_argument(
        "--format",
        choices=["csv", "tsv"],
        default="csv",
        help="Output format (default: csv)",
    )
    ingest.add_argument(
        "--full",
        action="store_true",
        help="Include all fields in output (merchant, currency, fx, etc.)",
    )
    ingest.add_argument("-q", "--quiet", action="store_true", help="Hide progress")

    subparsers.add_parser("list", help="List stored statements")

    show = subparsers.add_parser("show", help="Show a stored statement's breakdown")
    show.add_argument("statement", help="Statement id or identity key")
    show.add_argument("--category", help="Show merchants of this category only")

    delete = subparsers.add_parser("delete", help="Delete a stored statement")
    delete.add_argument("statement_id", type=int, help="Statement id")

    return parser


COMMANDS = {
    "ingest": cmd_ingest,
    "list": cmd_list,
    "show": cmd_show,
    "delete": cmd_delete,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else "WARNING")

    if args.command == "init":
        target = args.config or get_config_path()
        if target.exists():
            print(f"Config already exists at {target}", file=sys.stderr)
            return 1
        path = save_json_config(create_default_config(), target)
        print(f"Wrote default config to {path}", file=sys.stderr)
        return 0

    if args.command is None:
        parser.print_help()
        return 1

    # Load configuration
    config: dict[str, Any] | None = load_config(args.config)

    try:
        service = IngestionService.from_config(config, database_url=args.db)
        return COMMANDS[args.command](service, args)
    except StatementIngestError as e:
        print(f"Error: {e.user_message}", file=sys.stderr)
        if args.verbose:
            print(f"  {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
