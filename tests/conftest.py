"""Pytest configuration and fixtures."""

import threading
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import ClassVar

import pytest

from statement_ingest.errors import ProviderError
from statement_ingest.gateway import PersistenceGateway
from statement_ingest.models import (
    CardMetadata,
    Direction,
    RawTransactionRecord,
    StatementPeriod,
)
from statement_ingest.normalizer import TransactionNormalizer
from statement_ingest.providers.base import (
    ExtractionProvider,
    Phase,
    ProgressReporter,
    ProviderResult,
)
from statement_ingest.store import StatementStore

# Smallest byte strings the document sniffer accepts
PDF_BYTES = b"%PDF-1.4\n%fake statement\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16

# Text of a one-page HDFC statement as Tesseract would return it
OCR_TEXT = """\
HDFC Bank Credit Card Statement
Card Number: XXXX XXXX XXXX 1234
Statement Period: 01/03/2025 to 31/03/2025
Payment Due Date: 18/04/2025
Total Amount Due: ₹1,400.00
Minimum Amount Due: Rs. 70.00
Previous Balance: 0.00

Date Transaction Description Amount
04/03/2025 SWIGGY Order #12345 180.00
09/03/2025 UPI-INSTMART-ORDER 720.00
15 Mar 2025 UPI transfer RATI MEHRA ₹500.00
20/03/2025 PAYMENT RECEIVED THANK YOU 5,000.00 Cr
"""


class FakeProvider(ExtractionProvider):
    """Provider returning a canned result or raising a canned error."""

    name: ClassVar[str] = "fake"

    def __init__(
        self,
        result: ProviderResult | None = None,
        error: Exception | None = None,
        stage: str = "primary",
        phases: tuple[Phase, ...] = tuple(Phase),
        gate: threading.Event | None = None,
    ) -> None:
        self.result = result
        self.error = error
        self.stage = stage  # type: ignore[misc]
        self.phases = phases
        self.gate = gate
        self.calls = 0

    def extract(self, document: bytes, progress: ProgressReporter) -> ProviderResult:
        self.calls += 1
        for phase in self.phases:
            progress(phase, 0.5)
            if self.gate is not None:
                self.gate.wait(timeout=5)
            if self.error is not None and phase == Phase.TEXT_RECOGNITION:
                raise self.error
            progress(phase, 1.0)
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the user's config, data and environment."""
    for var in (
        "STATEMENT_INGEST_API_URL",
        "STATEMENT_INGEST_API_KEY",
        "STATEMENT_INGEST_DATABASE_URL",
        "STATEMENT_INGEST_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg_config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg_data"))


@pytest.fixture
def make_raw() -> Callable[..., RawTransactionRecord]:
    """Return a factory for raw transaction records."""

    def _make(
        description: str,
        amount: str = "100.00",
        direction: Direction = Direction.DEBIT,
        posted_on: date = date(2025, 3, 4),
        **kwargs: object,
    ) -> RawTransactionRecord:
        return RawTransactionRecord(
            date=posted_on,
            description=description,
            amount=Decimal(amount),
            direction=direction,
            **kwargs,  # type: ignore[arg-type]
        )

    return _make


@pytest.fixture
def sample_records() -> tuple[RawTransactionRecord, ...]:
    """Three debits: one food delivery order and two UPI payments."""
    return (
        RawTransactionRecord(date(2025, 3, 4), "SWIGGY Order #12345", Decimal("180")),
        RawTransactionRecord(date(2025, 3, 9), "UPI-INSTMART-ORDER", Decimal("720")),
        RawTransactionRecord(date(2025, 3, 15), "UPI transfer RATI MEHRA", Decimal("500")),
    )


@pytest.fixture
def sample_card() -> CardMetadata:
    """HDFC card with a March 2025 statement period."""
    return CardMetadata(
        issuer="HDFC",
        product_name="Regalia",
        last_four_digits="1234",
        statement_period=StatementPeriod(date(2025, 3, 1), date(2025, 3, 31)),
    )


@pytest.fixture
def sample_result(
    sample_card: CardMetadata, sample_records: tuple[RawTransactionRecord, ...]
) -> ProviderResult:
    """Provider result for the three-transaction statement."""
    return ProviderResult(card=sample_card, transactions=sample_records)


@pytest.fixture
def normalizer() -> TransactionNormalizer:
    """Return a normalizer with the default rule table."""
    return TransactionNormalizer()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Return URL of a file-backed SQLite database."""
    return f"sqlite+pysqlite:///{tmp_path / 'statements.db'}"


@pytest.fixture
def store(database_url: str) -> StatementStore:
    """Return a store with the schema created."""
    store = StatementStore(database_url)
    store.create_schema()
    return store


@pytest.fixture
def gateway(store: StatementStore) -> PersistenceGateway:
    """Return a gateway over the test store."""
    return PersistenceGateway(store)


@pytest.fixture
def failing_provider() -> Callable[..., FakeProvider]:
    """Return a factory for providers that fail with a ProviderError."""

    def _make(reason: str = ProviderError.QUOTA, stage: str = "primary") -> FakeProvider:
        return FakeProvider(error=ProviderError(reason, "simulated"), stage=stage)

    return _make


@pytest.fixture
def succeeding_provider() -> Callable[..., FakeProvider]:
    """Return a factory for providers returning a canned result."""

    def _make(result: ProviderResult, stage: str = "primary", **kwargs: object) -> FakeProvider:
        return FakeProvider(result=result, stage=stage, **kwargs)  # type: ignore[arg-type]

    return _make
