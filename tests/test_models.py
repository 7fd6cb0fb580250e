"""Tests for data models."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

from statement_ingest.models import (
    CardMetadata,
    Direction,
    EnrichedTransaction,
    RawTransactionRecord,
    Statement,
    StatementPeriod,
    compute_identity_key,
)


class TestRawTransactionRecord:
    """Tests for RawTransactionRecord dataclass."""

    def test_defaults(self) -> None:
        """Test that direction and currency default to an INR debit."""
        raw = RawTransactionRecord(date(2025, 3, 4), "SWIGGY", Decimal("180"))

        assert raw.direction == Direction.DEBIT
        assert raw.currency == "INR"
        assert raw.original_amount is None

    def test_blank_description_replaced(self) -> None:
        """Test that an empty description gets a placeholder."""
        raw = RawTransactionRecord(date(2025, 3, 4), "   ", Decimal("10"))
        assert raw.description == "(No description)"

    def test_copies_never_blank(self) -> None:
        """Test copies made with replace keep a description."""
        raw = RawTransactionRecord(date(2025, 3, 4), "SWIGGY", Decimal("10"))
        assert replace(raw, description="").description == "(No description)"


class TestEnrichedTransaction:
    """Tests for EnrichedTransaction."""

    def _tx(self, direction: Direction) -> EnrichedTransaction:
        raw = RawTransactionRecord(date(2025, 3, 4), "REFUND", Decimal("50.00"), direction)
        return EnrichedTransaction(raw=raw, canonical_merchant="Shop", category="Shopping")

    def test_signed_amount_debit(self) -> None:
        """Test that debits are negative when signed."""
        assert self._tx(Direction.DEBIT).signed_amount == Decimal("-50.00")

    def test_signed_amount_credit(self) -> None:
        """Test that credits are positive when signed."""
        assert self._tx(Direction.CREDIT).signed_amount == Decimal("50.00")

    def test_recategorized_returns_new_value(self) -> None:
        """Test that re-categorization leaves the original untouched."""
        tx = self._tx(Direction.DEBIT)
        changed = tx.recategorized("Travel")

        assert changed.category == "Travel"
        assert tx.category == "Shopping"
        assert changed.raw is tx.raw


class TestIdentityKey:
    """Tests for statement identity key computation."""

    def test_key_is_sha256_hex(self) -> None:
        """Test key format."""
        key = compute_identity_key(CardMetadata(issuer="HDFC", last_four_digits="1234"))
        assert len(key) == 64
        assert all(c in "0123456789abcdef" for c in key)

    def test_issuer_case_and_whitespace_ignored(self) -> None:
        """Test that issuer formatting does not change the key."""
        period = StatementPeriod(date(2025, 3, 1), date(2025, 3, 31))
        a = CardMetadata(issuer="HDFC Bank", last_four_digits="1234", statement_period=period)
        b = CardMetadata(issuer="  hdfc   bank ", last_four_digits="1234", statement_period=period)

        assert compute_identity_key(a) == compute_identity_key(b)

    def test_different_period_gives_different_key(self) -> None:
        """Test that consecutive statements of one card differ."""
        march = StatementPeriod(date(2025, 3, 1), date(2025, 3, 31))
        april = StatementPeriod(date(2025, 4, 1), date(2025, 4, 30))

        assert compute_identity_key(
            CardMetadata(issuer="HDFC", last_four_digits="1234", statement_period=march)
        ) != compute_identity_key(
            CardMetadata(issuer="HDFC", last_four_digits="1234", statement_period=april)
        )

    def test_falls_back_to_earliest_transaction_date(self) -> None:
        """Test that without a period the key ignores transaction order."""
        card = CardMetadata(issuer="HDFC", last_four_digits="1234")
        dates = [date(2025, 3, 9), date(2025, 3, 4), date(2025, 3, 15)]

        assert compute_identity_key(card, dates) == compute_identity_key(card, list(reversed(dates)))
        assert compute_identity_key(card, dates) != compute_identity_key(card, [date(2025, 4, 1)])

    def test_missing_card(self) -> None:
        """Test that a key is computed without any card metadata."""
        assert compute_identity_key(None, [date(2025, 3, 4)]) == compute_identity_key(
            CardMetadata(), [date(2025, 3, 4)]
        )


class TestStatement:
    """Tests for Statement helpers."""

    def test_totals_split_by_direction(self) -> None:
        """Test debit and credit totals."""
        debit = RawTransactionRecord(date(2025, 3, 4), "A", Decimal("100"))
        credit = RawTransactionRecord(date(2025, 3, 5), "B", Decimal("30"), Direction.CREDIT)
        statement = Statement(
            identity_key="k",
            transactions=(
                EnrichedTransaction(raw=debit, canonical_merchant="A", category="Other"),
                EnrichedTransaction(raw=credit, canonical_merchant="B", category="Other"),
            ),
        )

        assert statement.total_debits == Decimal("100")
        assert statement.total_credits == Decimal("30")

    def test_with_id_keeps_equality(self) -> None:
        """Test that the stored id does not take part in equality."""
        statement = Statement(identity_key="k")
        stored = statement.with_id(7)

        assert stored.statement_id == 7
        assert stored == statement
        assert statement.statement_id is None

    def test_to_dict(self) -> None:
        """Test flattened display fields."""
        card = CardMetadata(
            issuer="HDFC",
            last_four_digits="1234",
            statement_period=StatementPeriod(date(2025, 3, 1), date(2025, 3, 31)),
        )
        info = Statement(identity_key="k", card=card).with_id(3).to_dict()

        assert info["id"] == "3"
        assert info["issuer"] == "HDFC"
        assert info["period"] == "2025-03-01 to 2025-03-31"
        assert info["transactions"] == "0"
