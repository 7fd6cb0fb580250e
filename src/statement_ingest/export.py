"""CSV/TSV export of enriched transactions."""

import csv
from pathlib import Path

from statement_ingest.models import EnrichedTransaction


def write_csv(
    transactions: list[EnrichedTransaction] | tuple[EnrichedTransaction, ...],
    output_path: Path,
    delimiter: str = ",",
) -> None:
    """
    Write transactions to CSV file.

    Amounts are signed: debits negative, credits positive.

    Args:
        transactions: List of transactions
        output_path: Output file path
        delimiter: CSV delimiter (default comma)
    """
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, delimiter=delimiter)
        writer.writerow(["Date", "Description", "Merchant", "Category", "Amount"])
        for tx in transactions:
            writer.writerow([
                tx.date.isoformat(),
                tx.description,
                tx.canonical_merchant,
                tx.category,
                str(tx.signed_amount),
            ])


def write_full_csv(
    transactions: list[EnrichedTransaction] | tuple[EnrichedTransaction, ...],
    output_path: Path,
    delimiter: str = ",",
) -> None:
    """
    Write transactions to CSV with all fields.

    Args:
        transactions: List of transactions
        output_path: Output file path
        delimiter: CSV delimiter
    """
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(
            f,
            fieldnames=[
                "date",
                "description",
                "amount",
                "currency",
                "direction",
                "canonical_merchant",
                "category",
                "aggregator",
                "underlying_merchant",
                "is_recurring",
                "original_amount",
                "original_currency",
                "card_id",
            ],
            delimiter=delimiter,
        )
        writer.writeheader()
        for tx in transactions:
            fx = tx.foreign_exchange
            writer.writerow({
                "date": tx.date.isoformat(),
                "description": tx.description,
                "amount": str(tx.amount),
                "currency": tx.currency,
                "direction": tx.direction.value,
                "canonical_merchant": tx.canonical_merchant,
                "category": tx.category,
                "aggregator": tx.aggregator or "",
                "underlying_merchant": tx.underlying_merchant or "",
                "is_recurring": "yes" if tx.is_recurring else "no",
                "original_amount": str(fx.original_amount) if fx else "",
                "original_currency": fx.original_currency if fx else "",
                "card_id": tx.card_id or "",
            })
