"""Merchant and category normalizer for extracted transactions."""

from statement_ingest.models import EnrichedTransaction, ForeignExchange, RawTransactionRecord
from statement_ingest.rules import (
    OTHER,
    RULES,
    MerchantRule,
    RuleKind,
    contains_keyword,
    icon_for,
    normalize_text,
)

RECURRING_MARKERS = (
    "subscription*",
    "autopay",
    "auto pay",
    "auto-debit",
    "standing instruction",
    "si-",
    "mandate",
    "recurring",
    "emi",
)


class TransactionNormalizer:
    """
    Resolve raw statement descriptions into canonical merchants and categories.

    Usage:
        normalizer = TransactionNormalizer()
        enriched = normalizer.normalize(raw)
        key = normalizer.grouping_key(enriched)

    Rules of each kind are looked up independently, so an aggregator token
    and a brand token are both found wherever they appear in the text. The
    aggregator names the merchant; the brand decides the category.
    """

    def __init__(self, rules: tuple[MerchantRule, ...] = RULES) -> None:
        self.rules = rules

    def _first(self, kind: RuleKind, text: str) -> MerchantRule | None:
        for rule in self.rules:
            if rule.kind == kind and rule.matches(text):
                return rule
        return None

    def normalize(self, raw: RawTransactionRecord, card_id: str | None = None) -> EnrichedTransaction:
        """
        Enrich one raw record. Never raises; unknown merchants become Other.

        Args:
            raw: Record as extracted from the statement
            card_id: Optional identifier of the card the record belongs to

        Returns:
            EnrichedTransaction
        """
        text = normalize_text(raw.description)

        aggregator = self._first(RuleKind.AGGREGATOR, text)
        brand = self._first(RuleKind.BRAND, text)
        generic = self._first(RuleKind.GENERIC, text)
        rail = self._first(RuleKind.RAIL, text)

        if aggregator is not None:
            merchant = aggregator.merchant
        elif brand is not None:
            merchant = brand.merchant
        else:
            merchant = " ".join(raw.description.split())

        category = next(
            (r.category for r in (brand, aggregator, generic, rail) if r is not None),
            OTHER,
        )

        matched = [r for r in (aggregator, brand, generic) if r is not None]
        is_recurring = any(r.recurring for r in matched) or any(
            contains_keyword(text, marker) for marker in RECURRING_MARKERS
        )

        return EnrichedTransaction(
            raw=raw,
            canonical_merchant=merchant or raw.description,
            category=category,
            is_recurring=is_recurring,
            foreign_exchange=self._foreign_exchange(raw),
            aggregator=aggregator.merchant if aggregator else None,
            underlying_merchant=brand.merchant if (aggregator and brand) else None,
            card_id=card_id,
        )

    def normalize_all(
        self,
        records: list[RawTransactionRecord] | tuple[RawTransactionRecord, ...],
        card_id: str | None = None,
    ) -> list[EnrichedTransaction]:
        """Normalize records, keeping statement order."""
        return [self.normalize(raw, card_id=card_id) for raw in records]

    @staticmethod
    def _foreign_exchange(raw: RawTransactionRecord) -> ForeignExchange | None:
        if raw.original_amount is None or not raw.original_currency:
            return None
        if raw.original_currency.upper() == raw.currency.upper():
            return None
        return ForeignExchange(
            original_amount=raw.original_amount,
            original_currency=raw.original_currency.upper(),
        )

    @staticmethod
    def grouping_key(tx: EnrichedTransaction) -> str:
        """Key used to cluster transactions: aggregator, else canonical merchant."""
        return grouping_key(tx)

    @staticmethod
    def icon_for(merchant: str) -> str:
        return icon_for(merchant)


def grouping_key(tx: EnrichedTransaction) -> str:
    """
    Stable, case-insensitive grouping key of a transaction.

    Args:
        tx: Enriched transaction

    Returns:
        Aggregator if present else canonical merchant, collapsed and case-folded
    """
    name = tx.aggregator or tx.canonical_merchant
    return " ".join(name.split()).casefold()
