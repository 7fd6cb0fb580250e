"""Category and merchant aggregation over enriched transactions."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from statement_ingest.models import CategoryAggregate, EnrichedTransaction, MerchantAggregate
from statement_ingest.normalizer import grouping_key
from statement_ingest.rules import icon_for

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERCENT_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class Totals:
    """Debit, credit and net totals of a transaction set."""

    debits: Decimal
    credits: Decimal
    debit_count: int
    credit_count: int

    @property
    def net(self) -> Decimal:
        """Net spend: debits minus credits."""
        return self.debits - self.credits


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole == ZERO:
        return ZERO.quantize(PERCENT_QUANTUM)
    return (HUNDRED * part / whole).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def aggregate_by_category(transactions: Iterable[EnrichedTransaction]) -> list[CategoryAggregate]:
    """
    Total debit spend per category.

    Credits are counted in neither totals nor percentages, but a category
    holding only credits is still listed with a zero total.

    Args:
        transactions: Enriched transactions of one statement

    Returns:
        CategoryAggregate list sorted by total descending, then name
    """
    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}

    for tx in transactions:
        totals.setdefault(tx.category, ZERO)
        counts.setdefault(tx.category, 0)
        if tx.is_debit:
            totals[tx.category] += tx.amount
            counts[tx.category] += 1

    total_debit = sum(totals.values(), ZERO)

    aggregates = [
        CategoryAggregate(
            category=category,
            total_amount=total,
            transaction_count=counts[category],
            percent_of_total=_percent(total, total_debit),
        )
        for category, total in totals.items()
    ]
    aggregates.sort(key=lambda a: (-a.total_amount, a.category.casefold()))
    return aggregates


def aggregate_by_merchant(
    transactions: Iterable[EnrichedTransaction],
    category: str | None = None,
) -> list[MerchantAggregate]:
    """
    Total debit spend per merchant group.

    Args:
        transactions: Enriched transactions
        category: Only include transactions whose category matches exactly

    Returns:
        MerchantAggregate list sorted by total descending, then name
    """
    names: dict[str, str] = {}
    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}

    for tx in transactions:
        if category is not None and tx.category != category:
            continue

        key = grouping_key(tx)
        display = tx.aggregator or tx.canonical_merchant
        # Smallest name wins so the result is independent of input order
        if key not in names or display < names[key]:
            names[key] = display

        totals.setdefault(key, ZERO)
        counts.setdefault(key, 0)
        if tx.is_debit:
            totals[key] += tx.amount
            counts[key] += 1

    aggregates = [
        MerchantAggregate(
            canonical_merchant=names[key],
            icon=icon_for(names[key]),
            total_amount=total,
            transaction_count=counts[key],
        )
        for key, total in totals.items()
    ]
    aggregates.sort(key=lambda a: (-a.total_amount, a.canonical_merchant.casefold()))
    return aggregates


def top_merchant(
    transactions: Iterable[EnrichedTransaction],
    category: str | None = None,
) -> MerchantAggregate | None:
    """Merchant group with the highest debit spend, or None."""
    merchants = aggregate_by_merchant(transactions, category)
    return merchants[0] if merchants else None


def transactions_for_merchant(
    transactions: Iterable[EnrichedTransaction],
    merchant: str,
    category: str | None = None,
) -> list[EnrichedTransaction]:
    """
    Transactions of one merchant group, in statement order.

    Args:
        transactions: Enriched transactions
        merchant: Grouping key or display name of the group; case and
            whitespace are ignored
        category: Only transactions of this exact category, when given

    Returns:
        Debits and credits of the group
    """
    key = " ".join(merchant.split()).casefold()
    return [
        tx
        for tx in transactions
        if grouping_key(tx) == key and (category is None or tx.category == category)
    ]


def totals(transactions: Iterable[EnrichedTransaction]) -> Totals:
    """Debit and credit totals of a transaction set."""
    debits = credits = ZERO
    debit_count = credit_count = 0
    for tx in transactions:
        if tx.is_debit:
            debits += tx.amount
            debit_count += 1
        else:
            credits += tx.amount
            credit_count += 1
    return Totals(debits=debits, credits=credits, debit_count=debit_count, credit_count=credit_count)
