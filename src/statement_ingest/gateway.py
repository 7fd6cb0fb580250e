"""Statement assembly, validation and persistence."""

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal

from sqlalchemy import exc as sa_exc

from statement_ingest.errors import PersistenceError
from statement_ingest.logging_setup import get_logger
from statement_ingest.models import (
    CardMetadata,
    Direction,
    EnrichedTransaction,
    Statement,
    StatementSummary,
    compute_identity_key,
)
from statement_ingest.store import StatementStore

logger = get_logger(__name__)

# Errors meaning the database could not be reached, as opposed to bad data
_UNAVAILABLE_ERRORS = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
)
# Errors meaning the statement itself was rejected by the database
_DATA_ERRORS = (sa_exc.IntegrityError, sa_exc.DataError)


@contextmanager
def _store_errors() -> Iterator[None]:
    """Translate SQLAlchemy errors raised by the store into PersistenceError."""
    try:
        yield
    except _UNAVAILABLE_ERRORS as e:
        logger.error("Database unavailable: %s", e)
        raise PersistenceError.unavailable(str(e)) from e
    except _DATA_ERRORS as e:
        logger.error("Database rejected statement: %s", e)
        raise PersistenceError.invalid_data(str(e)) from e
    except sa_exc.SQLAlchemyError as e:
        logger.error("Database error: %s", e)
        raise PersistenceError.unavailable(str(e)) from e


def assemble(
    card: CardMetadata | None,
    transactions: Iterable[EnrichedTransaction],
    summary: StatementSummary | None = None,
    source: str = "primary",
) -> Statement:
    """
    Build an immutable Statement with its identity key.

    When the issuer's summary could not be read, one is derived whose
    total spend is the sum of debits.
    """
    transactions = tuple(transactions)
    if summary is None:
        debits = sum((t.amount for t in transactions if t.is_debit), Decimal("0"))
        summary = StatementSummary(total_spend=debits)

    return Statement(
        identity_key=compute_identity_key(card, [t.date for t in transactions]),
        transactions=transactions,
        card=card,
        summary=summary,
        source=source,
    )


def validate(statement: Statement) -> None:
    """
    Reject structurally invalid statements before anything is written.

    Raises:
        PersistenceError: With kind INVALID_DATA describing the first problem
    """
    if not statement.identity_key:
        raise PersistenceError.invalid_data("statement has no identity key")

    period = statement.card.statement_period if statement.card else None
    if period is not None and period.end < period.start:
        raise PersistenceError.invalid_data(
            f"statement period ends ({period.end}) before it starts ({period.start})"
        )

    for index, tx in enumerate(statement.transactions):
        if tx.amount < 0:
            raise PersistenceError.invalid_data(f"transaction {index} has a negative amount")
        if not isinstance(tx.direction, Direction):
            raise PersistenceError.invalid_data(f"transaction {index} has an invalid direction")
        if not tx.category.strip():
            raise PersistenceError.invalid_data(f"transaction {index} has no category")


class PersistenceGateway:
    """Validates statements and stores them, one writer per identity key."""

    def __init__(self, store: StatementStore) -> None:
        self.store = store
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, identity_key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(identity_key, threading.Lock())

    def upsert(self, statement: Statement) -> int:
        """
        Store a statement, replacing any stored statement with the same key.

        Args:
            statement: Assembled statement

        Returns:
            Identifier of the stored statement

        Raises:
            PersistenceError: INVALID_DATA before any write or when the
                database rejects the rows, UNAVAILABLE when the database
                cannot be reached
        """
        validate(statement)

        with self._lock_for(statement.identity_key), _store_errors():
            statement_id = self.store.replace(statement)

        logger.info(
            "Stored statement %d (%d transactions)", statement_id, len(statement.transactions)
        )
        return statement_id

    def find_by_key(self, identity_key: str) -> Statement | None:
        with _store_errors():
            return self.store.find_by_key(identity_key)

    def get(self, statement_id: int) -> Statement | None:
        with _store_errors():
            return self.store.get(statement_id)

    def find_by_card(self, last_four_digits: str) -> list[Statement]:
        with _store_errors():
            return self.store.find_by_card(last_four_digits)

    def list_between(self, start: date, end: date) -> list[Statement]:
        with _store_errors():
            return self.store.list_between(start, end)

    def delete(self, statement_id: int) -> bool:
        with _store_errors():
            return self.store.delete(statement_id)

    def list_all(self) -> list[Statement]:
        with _store_errors():
            return self.store.list_all()
