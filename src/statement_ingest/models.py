"""Data models for statements and transactions."""

import hashlib
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum


class Direction(str, Enum):
    """Direction of money movement on the card."""

    DEBIT = "debit"
    CREDIT = "credit"


@dataclass(frozen=True)
class RawTransactionRecord:
    """A transaction exactly as extracted from the statement."""

    date: date
    description: str
    amount: Decimal
    direction: Direction = Direction.DEBIT
    currency: str = "INR"
    original_amount: Decimal | None = None
    original_currency: str | None = None

    def __post_init__(self) -> None:
        """Validate transaction data."""
        if not self.description.strip():
            object.__setattr__(self, "description", "(No description)")


@dataclass(frozen=True)
class ForeignExchange:
    """Amount and currency of a charge made abroad."""

    original_amount: Decimal
    original_currency: str


@dataclass(frozen=True)
class EnrichedTransaction:
    """A raw record plus its merchant identity and category."""

    raw: RawTransactionRecord
    canonical_merchant: str
    category: str
    is_recurring: bool = False
    foreign_exchange: ForeignExchange | None = None
    aggregator: str | None = None
    underlying_merchant: str | None = None
    card_id: str | None = None

    @property
    def date(self) -> date:
        return self.raw.date

    @property
    def description(self) -> str:
        return self.raw.description

    @property
    def amount(self) -> Decimal:
        return self.raw.amount

    @property
    def currency(self) -> str:
        return self.raw.currency

    @property
    def direction(self) -> Direction:
        return self.raw.direction

    @property
    def is_debit(self) -> bool:
        """Return True if this transaction is a spend."""
        return self.raw.direction == Direction.DEBIT

    @property
    def signed_amount(self) -> Decimal:
        """Amount with debits negative and credits positive."""
        return -self.raw.amount if self.is_debit else self.raw.amount

    def recategorized(self, category: str) -> "EnrichedTransaction":
        """Return a copy of this transaction under a different category."""
        return replace(self, category=category)


@dataclass(frozen=True)
class StatementPeriod:
    """Billing cycle covered by a statement."""

    start: date
    end: date


@dataclass(frozen=True)
class CardMetadata:
    """Card details printed on the statement. Every field may be missing."""

    issuer: str | None = None
    product_name: str | None = None
    last_four_digits: str | None = None
    statement_period: StatementPeriod | None = None

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.issuer, self.product_name, self.last_four_digits, self.statement_period)
        )


@dataclass(frozen=True)
class StatementSummary:
    """Statement-level totals printed by the issuer."""

    total_spend: Decimal | None = None
    opening_balance: Decimal | None = None
    closing_balance: Decimal | None = None
    minimum_payment: Decimal | None = None
    due_date: date | None = None


@dataclass(frozen=True)
class CategoryAggregate:
    """Debit spend for one category."""

    category: str
    total_amount: Decimal
    transaction_count: int
    percent_of_total: Decimal


@dataclass(frozen=True)
class MerchantAggregate:
    """Debit spend for one merchant group."""

    canonical_merchant: str
    icon: str
    total_amount: Decimal
    transaction_count: int


def compute_identity_key(
    card: CardMetadata | None,
    transaction_dates: list[date] | tuple[date, ...] = (),
) -> str:
    """Compute the de-duplication key of a statement.

    Uses issuer, last four digits and statement period. When the period is
    missing the earliest transaction date takes its place, so the key never
    depends on the order transactions were extracted in.
    """
    issuer = " ".join((card.issuer or "").split()).casefold() if card else ""
    last_four = (card.last_four_digits or "").strip() if card else ""

    period = card.statement_period if card else None
    if period is not None:
        start, end = period.start.isoformat(), period.end.isoformat()
    elif transaction_dates:
        start, end = min(transaction_dates).isoformat(), ""
    else:
        start, end = "", ""

    data = f"{issuer}|{last_four}|{start}|{end}"
    return hashlib.sha256(data.encode()).hexdigest()


@dataclass(frozen=True)
class Statement:
    """A fully assembled, categorized statement."""

    identity_key: str
    transactions: tuple[EnrichedTransaction, ...] = ()
    card: CardMetadata | None = None
    summary: StatementSummary | None = None
    source: str = "primary"
    statement_id: int | None = field(default=None, compare=False)

    @property
    def total_debits(self) -> Decimal:
        return sum((t.amount for t in self.transactions if t.is_debit), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((t.amount for t in self.transactions if not t.is_debit), Decimal("0"))

    def with_id(self, statement_id: int) -> "Statement":
        """Return a copy carrying the identifier assigned by the store."""
        return replace(self, statement_id=statement_id)

    def to_dict(self) -> dict[str, str]:
        """Flatten card and summary fields for display."""
        card = self.card or CardMetadata()
        period = card.statement_period
        return {
            "id": str(self.statement_id) if self.statement_id is not None else "",
            "issuer": card.issuer or "",
            "product": card.product_name or "",
            "last4": card.last_four_digits or "",
            "period": f"{period.start.isoformat()} to {period.end.isoformat()}" if period else "",
            "transactions": str(len(self.transactions)),
            "total_debits": str(self.total_debits),
            "source": self.source,
        }
