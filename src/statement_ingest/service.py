"""Ingestion service: the boundary used by the CLI and other front ends."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, replace
from datetime import date
from typing import Any

from statement_ingest.aggregation import aggregate_by_category, aggregate_by_merchant
from statement_ingest.config import (
    get_database_url,
    get_default_currency,
    get_extraction_settings,
    get_ocr_settings,
    resolve_card_id,
)
from statement_ingest.coordinator import ExtractionCoordinator, ProgressSink
from statement_ingest.errors import StatementIngestError
from statement_ingest.gateway import PersistenceGateway, assemble
from statement_ingest.logging_setup import get_logger
from statement_ingest.models import CategoryAggregate, MerchantAggregate, Statement
from statement_ingest.normalizer import TransactionNormalizer
from statement_ingest.providers import OcrExtractionProvider, RemoteExtractionProvider
from statement_ingest.store import StatementStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    progress: float


@dataclass(frozen=True)
class ResultEvent:
    statement: Statement


@dataclass(frozen=True)
class ErrorEvent:
    error: StatementIngestError


IngestionEvent = ProgressEvent | ResultEvent | ErrorEvent


@dataclass(frozen=True)
class Aggregates:
    """Category and merchant breakdowns of one statement."""

    categories: list[CategoryAggregate]
    merchants: list[MerchantAggregate]


_DONE = object()


class IngestionService:
    """
    Extracts, normalizes and stores statements.

    Usage:
        service = IngestionService.from_config(load_config())
        statement = await service.ingest(document_bytes)
        aggregates = service.get_aggregates(statement)
    """

    def __init__(
        self,
        coordinator: ExtractionCoordinator,
        normalizer: TransactionNormalizer,
        gateway: PersistenceGateway,
        config: dict[str, Any] | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.normalizer = normalizer
        self.gateway = gateway
        self.config = config

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any] | None = None,
        database_url: str | None = None,
    ) -> "IngestionService":
        """
        Wire up providers, store and gateway from a loaded JSON config.

        The remote provider is primary when an API URL is configured, with
        OCR as fallback; otherwise OCR runs alone.
        """
        extraction = get_extraction_settings(config)
        ocr_settings = get_ocr_settings(config)
        currency = get_default_currency(config)

        ocr = OcrExtractionProvider(
            min_words_per_page=ocr_settings.min_words_per_page,
            dpi=ocr_settings.dpi,
            language=ocr_settings.language,
            default_currency=currency,
        )
        if extraction.api_url:
            remote = RemoteExtractionProvider(
                extraction.api_url,
                api_key=extraction.api_key,
                timeout=extraction.timeout,
                default_currency=currency,
            )
            coordinator = ExtractionCoordinator(remote, ocr, extraction.provider_timeout)
        else:
            logger.info("No extraction API configured, using on-device OCR only")
            coordinator = ExtractionCoordinator(ocr, None, extraction.provider_timeout)

        store = StatementStore(get_database_url(config, override=database_url))
        store.create_schema()

        return cls(coordinator, TransactionNormalizer(), PersistenceGateway(store), config=config)

    async def ingest(
        self,
        document: bytes,
        progress_sink: ProgressSink | None = None,
        card_id: str | None = None,
    ) -> Statement:
        """
        Extract, normalize, assemble and store one statement.

        Args:
            document: PDF or image bytes
            progress_sink: Receives non-decreasing progress in [0, 1]
            card_id: Card the statement belongs to; resolved from the
                configured cards when omitted

        Returns:
            The stored Statement, carrying its identifier

        Raises:
            ExtractionError: If the document could not be read
            PersistenceError: If the statement could not be stored
        """
        outcome = await self.coordinator.process(document, progress_sink)
        result = outcome.result

        if card_id is None and result.card is not None:
            card_id = resolve_card_id(
                result.card.last_four_digits, result.card.issuer, config=self.config
            )

        transactions = self.normalizer.normalize_all(result.transactions, card_id=card_id)
        statement = assemble(result.card, transactions, result.summary, source=outcome.stage)

        statement_id = await asyncio.to_thread(self.gateway.upsert, statement)
        return statement.with_id(statement_id)

    async def begin_ingestion(
        self,
        document: bytes,
        card_id: str | None = None,
    ) -> AsyncIterator[IngestionEvent]:
        """
        Ingest a document as a stream of events.

        Yields ProgressEvent values, then exactly one ResultEvent or
        ErrorEvent. Unexpected failures arrive as a plain
        StatementIngestError. Closing the stream early cancels the ingestion.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue()
        task = asyncio.create_task(self.ingest(document, queue.put_nowait, card_id=card_id))
        task.add_done_callback(lambda _: queue.put_nowait(_DONE))

        try:
            while (item := await queue.get()) is not _DONE:
                yield ProgressEvent(progress=item)

            try:
                statement = task.result()
            except StatementIngestError as e:
                yield ErrorEvent(error=e)
            except Exception as e:
                logger.exception("Ingestion failed unexpectedly")
                error = StatementIngestError(f"unexpected error: {e}")
                error.__cause__ = e
                yield ErrorEvent(error=error)
            else:
                yield ResultEvent(statement=statement)
        finally:
            task.cancel()

    def get_aggregates(self, statement: Statement, category: str | None = None) -> Aggregates:
        """Category breakdown plus merchant breakdown, optionally for one category."""
        return Aggregates(
            categories=aggregate_by_category(statement.transactions),
            merchants=aggregate_by_merchant(statement.transactions, category),
        )

    def recategorize(self, statement: Statement, index: int, category: str) -> Statement:
        """Return a copy of the statement with one transaction re-categorized."""
        transactions = list(statement.transactions)
        transactions[index] = transactions[index].recategorized(category)
        return replace(statement, transactions=tuple(transactions))

    def save(self, statement: Statement) -> int:
        """Store an already assembled statement."""
        return self.gateway.upsert(statement)

    def list_statements(self) -> list[Statement]:
        return self.gateway.list_all()

    def find_statement(self, key_or_id: str) -> Statement | None:
        """Look a statement up by numeric identifier or identity key."""
        if key_or_id.isdigit():
            return self.gateway.get(int(key_or_id))
        return self.gateway.find_by_key(key_or_id)

    def statements_for_card(self, last_four_digits: str) -> list[Statement]:
        return self.gateway.find_by_card(last_four_digits)

    def statements_between(self, start: date, end: date) -> list[Statement]:
        """Statements whose billing period lies within [start, end]."""
        return self.gateway.list_between(start, end)

    def delete_statement(self, statement_id: int) -> bool:
        return self.gateway.delete(statement_id)
