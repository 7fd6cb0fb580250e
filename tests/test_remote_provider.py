"""Tests for the remote extraction provider and payload validation."""

import json
from collections.abc import Iterator
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import PDF_BYTES
from statement_ingest.errors import ProviderError
from statement_ingest.models import Direction, StatementPeriod
from statement_ingest.providers.base import Phase, null_progress
from statement_ingest.providers.remote import RemoteExtractionProvider
from statement_ingest.providers.schema import parse_payload_text, to_provider_result

API_URL = "https://extract.example.com/v1/statements"

PAYLOAD: dict[str, Any] = {
    "card": {
        "issuer": "HDFC",
        "product": "Regalia",
        "last4": "XXXX XXXX XXXX 1234",
        "statement_period": {"from": "2025-03-01", "to": "2025-03-31"},
    },
    "transactions": [
        {"date": "04/03/2025", "description": "SWIGGY Order #12345", "amount": "180.00"},
        {"date": "09/03/2025", "description": "UPI-INSTMART-ORDER", "amount": 720},
        {"date": "2025-03-20", "description": "PAYMENT RECEIVED", "amount": "5,000.00", "type": "CR"},
        {
            "date": "22 Mar 2025",
            "description": "SPOTIFY USA",
            "amount": "215.00",
            "fx": {"original_amount": "2.50", "original_currency": "usd"},
        },
    ],
    "summary": {"total_spend": "1,115.00", "min_payment": "70.00", "due_date": "2025-04-18"},
}


def _response(body: Any = None, text: str | None = None) -> MagicMock:
    response = MagicMock()
    if text is not None:
        response.json.side_effect = ValueError("not json")
        response.text = text
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def mock_session() -> Iterator[MagicMock]:
    """Patch requests.Session inside the remote provider."""
    with patch("statement_ingest.providers.remote.requests.Session") as session_cls:
        yield session_cls.return_value


@pytest.fixture
def provider(mock_session: MagicMock) -> RemoteExtractionProvider:
    return RemoteExtractionProvider(API_URL, api_key="test-key", timeout=5.0)


class TestRemoteExtractionProvider:
    """Tests for RemoteExtractionProvider."""

    def test_init_sets_headers(self, mock_session: MagicMock) -> None:
        """Test bearer token header is set."""
        RemoteExtractionProvider(API_URL, api_key="test-key")

        mock_session.headers.update.assert_any_call({"Authorization": "Bearer test-key"})

    def test_no_key_no_auth_header(self, mock_session: MagicMock) -> None:
        """Test no Authorization header without a key."""
        RemoteExtractionProvider(API_URL)

        calls = [c.args[0] for c in mock_session.headers.update.call_args_list]
        assert all("Authorization" not in c for c in calls)

    def test_extract(self, provider: RemoteExtractionProvider, mock_session: MagicMock) -> None:
        """Test a full payload becomes a provider result."""
        mock_session.post.return_value = _response(PAYLOAD)

        result = provider.extract(PDF_BYTES, null_progress)

        assert result.card is not None
        assert result.card.last_four_digits == "1234"
        assert result.card.statement_period == StatementPeriod(date(2025, 3, 1), date(2025, 3, 31))
        assert [t.amount for t in result.transactions] == [
            Decimal("180.00"),
            Decimal("720"),
            Decimal("5000.00"),
            Decimal("215.00"),
        ]
        assert result.transactions[2].direction == Direction.CREDIT
        assert result.transactions[3].original_currency == "USD"
        assert result.summary is not None
        assert result.summary.minimum_payment == Decimal("70.00")
        assert result.summary.due_date == date(2025, 4, 18)

        args, kwargs = mock_session.post.call_args
        assert args[0] == API_URL
        assert kwargs["timeout"] == 5.0
        assert kwargs["files"]["document"][2] == "application/pdf"

    def test_reports_progress(self, provider: RemoteExtractionProvider, mock_session: MagicMock) -> None:
        """Test phases are reported in order."""
        mock_session.post.return_value = _response(PAYLOAD)
        reports: list[tuple[Phase, float]] = []

        provider.extract(PDF_BYTES, lambda phase, fraction: reports.append((phase, fraction)))

        assert [phase for phase, _ in reports] == [
            Phase.DOCUMENT_LOAD,
            Phase.SEMANTIC_EXTRACTION,
            Phase.SEMANTIC_EXTRACTION,
            Phase.FINALIZATION,
        ]

    def test_data_wrapper(self, provider: RemoteExtractionProvider, mock_session: MagicMock) -> None:
        """Test payloads wrapped under a data key."""
        mock_session.post.return_value = _response({"data": PAYLOAD})

        assert len(provider.extract(PDF_BYTES, null_progress).transactions) == 4

    def test_json_inside_text_field(
        self, provider: RemoteExtractionProvider, mock_session: MagicMock
    ) -> None:
        """Test JSON serialized inside a model's text answer."""
        text = "Here is the statement:\n```json\n" + json.dumps(PAYLOAD) + "\n```"
        mock_session.post.return_value = _response({"text": text})

        assert len(provider.extract(PDF_BYTES, null_progress).transactions) == 4

    def test_non_json_body(self, provider: RemoteExtractionProvider, mock_session: MagicMock) -> None:
        """Test a plain-text body with an embedded object."""
        mock_session.post.return_value = _response(text="Result: " + json.dumps(PAYLOAD) + " done")

        assert len(provider.extract(PDF_BYTES, null_progress).transactions) == 4

    def test_malformed_body(self, provider: RemoteExtractionProvider, mock_session: MagicMock) -> None:
        """Test garbage is reported as malformed."""
        mock_session.post.return_value = _response(text="<html>gateway error</html>")

        with pytest.raises(ProviderError) as exc_info:
            provider.extract(PDF_BYTES, null_progress)

        assert exc_info.value.reason == ProviderError.MALFORMED

    def test_list_body_is_malformed(
        self, provider: RemoteExtractionProvider, mock_session: MagicMock
    ) -> None:
        """Test a JSON array is not a statement."""
        mock_session.post.return_value = _response([1, 2, 3])

        with pytest.raises(ProviderError) as exc_info:
            provider.extract(PDF_BYTES, null_progress)

        assert exc_info.value.reason == ProviderError.MALFORMED

    def test_timeout(self, provider: RemoteExtractionProvider, mock_session: MagicMock) -> None:
        """Test request timeouts."""
        mock_session.post.side_effect = requests.Timeout("read timed out")

        with pytest.raises(ProviderError) as exc_info:
            provider.extract(PDF_BYTES, null_progress)

        assert exc_info.value.reason == ProviderError.TIMEOUT

    @pytest.mark.parametrize(
        ("status", "reason"),
        [(429, ProviderError.QUOTA), (402, ProviderError.QUOTA), (500, ProviderError.UNAVAILABLE)],
    )
    def test_http_errors(
        self,
        provider: RemoteExtractionProvider,
        mock_session: MagicMock,
        status: int,
        reason: str,
    ) -> None:
        """Test HTTP status codes map to failure reasons."""
        http_response = MagicMock(status_code=status)
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status} error", response=http_response
        )
        mock_session.post.return_value = response

        with pytest.raises(ProviderError) as exc_info:
            provider.extract(PDF_BYTES, null_progress)

        assert exc_info.value.reason == reason

    def test_connection_error(self, provider: RemoteExtractionProvider, mock_session: MagicMock) -> None:
        """Test network failures are unavailable."""
        mock_session.post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(ProviderError) as exc_info:
            provider.extract(PDF_BYTES, null_progress)

        assert exc_info.value.reason == ProviderError.UNAVAILABLE


class TestParsePayloadText:
    """Tests for parse_payload_text."""

    def test_plain_json(self) -> None:
        """Test text that is already JSON."""
        assert parse_payload_text('{"transactions": []}') == {"transactions": []}

    def test_fenced_block(self) -> None:
        """Test a fenced code block."""
        text = 'Sure!\n```json\n{"card": {"issuer": "SBI"}}\n```\nAnything else?'
        assert parse_payload_text(text) == {"card": {"issuer": "SBI"}}

    def test_brace_span(self) -> None:
        """Test the outermost braces are used as a last resort."""
        assert parse_payload_text('answer: {"a": {"b": 1}} end') == {"a": {"b": 1}}

    def test_no_object(self) -> None:
        """Test text without an object."""
        with pytest.raises(ProviderError):
            parse_payload_text("[1, 2]")


class TestToProviderResult:
    """Tests for to_provider_result."""

    def test_bad_rows_dropped(self) -> None:
        """Test rows with unreadable dates or amounts are skipped."""
        result = to_provider_result({
            "transactions": [
                {"date": "04/03/2025", "description": "SWIGGY", "amount": "180.00"},
                {"date": "someday", "description": "ZOMATO", "amount": "99.00"},
                {"date": "05/03/2025", "description": "HPCL", "amount": "lots"},
                {"date": "06/03/2025", "description": "OLA"},
            ]
        })

        assert [t.description for t in result.transactions] == ["SWIGGY"]

    def test_negative_amount_is_credit(self) -> None:
        """Test sign is moved into the direction."""
        result = to_provider_result({
            "transactions": [{"date": "2025-03-04", "description": "REFUND", "amount": "-50.00"}]
        })

        tx = result.transactions[0]
        assert tx.amount == Decimal("50.00")
        assert tx.direction == Direction.CREDIT

    def test_debit_marker(self) -> None:
        """Test an explicit debit marker."""
        result = to_provider_result({
            "transactions": [
                {"date": "2025-03-04", "description": "HPCL", "amount": "500", "type": "Dr"}
            ]
        })

        assert result.transactions[0].direction == Direction.DEBIT

    def test_default_currency(self) -> None:
        """Test rows without currency take the settlement currency."""
        result = to_provider_result(
            {"transactions": [{"date": "2025-03-04", "description": "TESCO", "amount": "5"}]},
            default_currency="GBP",
        )

        assert result.transactions[0].currency == "GBP"

    def test_empty_card_is_none(self) -> None:
        """Test a card block with nothing in it."""
        result = to_provider_result({"card": {"issuer": ""}, "transactions": []})

        assert result.card is None
        assert result.transactions == ()

    def test_wrong_shape(self) -> None:
        """Test a payload whose transactions are not a list."""
        with pytest.raises(ProviderError) as exc_info:
            to_provider_result({"transactions": "none"})

        assert exc_info.value.reason == ProviderError.MALFORMED
