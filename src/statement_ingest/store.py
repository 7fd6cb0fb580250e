"""SQLAlchemy persistence for statements and their transactions.

Usage
-----
store = StatementStore("sqlite+pysqlite:///statements.db")
store.create_schema()
statement_id = store.replace(statement)
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CHAR,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    selectinload,
    sessionmaker,
)

from statement_ingest.logging_setup import get_logger
from statement_ingest.models import (
    CardMetadata,
    Direction,
    EnrichedTransaction,
    ForeignExchange,
    RawTransactionRecord,
    Statement,
    StatementPeriod,
    StatementSummary,
)

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class StatementRow(Base):
    __tablename__ = "statements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity_key: Mapped[str] = mapped_column(CHAR(64), nullable=False, unique=True)
    source: Mapped[str] = mapped_column(String, nullable=False, default="primary")
    issuer: Mapped[str | None] = mapped_column(String, nullable=True)
    product_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_four_digits: Mapped[str | None] = mapped_column(String(4), nullable=True)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    # Distinguishes "no summary" from a summary whose fields are all empty
    has_summary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_spend: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    opening_balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    closing_balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    minimum_payment: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    transactions: Mapped[list["TransactionRow"]] = relationship(
        back_populates="statement",
        cascade="all, delete-orphan",
        order_by="TransactionRow.position",
    )


class TransactionRow(Base):
    __tablename__ = "statement_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    statement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("statements.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Preserves statement order
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    direction: Mapped[str] = mapped_column(String(6), nullable=False)
    original_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    original_currency: Mapped[str | None] = mapped_column(CHAR(3), nullable=True)
    canonical_merchant: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    fx_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    fx_currency: Mapped[str | None] = mapped_column(CHAR(3), nullable=True)
    aggregator: Mapped[str | None] = mapped_column(String, nullable=True)
    underlying_merchant: Mapped[str | None] = mapped_column(String, nullable=True)
    card_id: Mapped[str | None] = mapped_column(String, nullable=True)

    statement: Mapped[StatementRow] = relationship(back_populates="transactions")


def _transaction_to_row(position: int, tx: EnrichedTransaction) -> TransactionRow:
    raw = tx.raw
    fx = tx.foreign_exchange
    return TransactionRow(
        position=position,
        date=raw.date,
        description=raw.description,
        amount=raw.amount,
        currency=raw.currency,
        direction=raw.direction.value,
        original_amount=raw.original_amount,
        original_currency=raw.original_currency,
        canonical_merchant=tx.canonical_merchant,
        category=tx.category,
        is_recurring=tx.is_recurring,
        fx_amount=fx.original_amount if fx else None,
        fx_currency=fx.original_currency if fx else None,
        aggregator=tx.aggregator,
        underlying_merchant=tx.underlying_merchant,
        card_id=tx.card_id,
    )


def _statement_to_row(statement: Statement) -> StatementRow:
    card = statement.card or CardMetadata()
    summary = statement.summary or StatementSummary()
    period = card.statement_period
    return StatementRow(
        identity_key=statement.identity_key,
        source=statement.source,
        issuer=card.issuer,
        product_name=card.product_name,
        last_four_digits=card.last_four_digits,
        period_start=period.start if period else None,
        period_end=period.end if period else None,
        has_summary=statement.summary is not None,
        total_spend=summary.total_spend,
        opening_balance=summary.opening_balance,
        closing_balance=summary.closing_balance,
        minimum_payment=summary.minimum_payment,
        due_date=summary.due_date,
        transactions=[
            _transaction_to_row(position, tx) for position, tx in enumerate(statement.transactions)
        ],
    )


def _row_to_transaction(row: TransactionRow) -> EnrichedTransaction:
    raw = RawTransactionRecord(
        date=row.date,
        description=row.description,
        amount=row.amount,
        direction=Direction(row.direction),
        currency=row.currency,
        original_amount=row.original_amount,
        original_currency=row.original_currency,
    )
    fx = None
    if row.fx_amount is not None and row.fx_currency:
        fx = ForeignExchange(original_amount=row.fx_amount, original_currency=row.fx_currency)
    return EnrichedTransaction(
        raw=raw,
        canonical_merchant=row.canonical_merchant,
        category=row.category,
        is_recurring=row.is_recurring,
        foreign_exchange=fx,
        aggregator=row.aggregator,
        underlying_merchant=row.underlying_merchant,
        card_id=row.card_id,
    )


def _row_to_statement(row: StatementRow) -> Statement:
    period = None
    if row.period_start is not None and row.period_end is not None:
        period = StatementPeriod(start=row.period_start, end=row.period_end)

    card = CardMetadata(
        issuer=row.issuer,
        product_name=row.product_name,
        last_four_digits=row.last_four_digits,
        statement_period=period,
    )

    summary = None
    if row.has_summary:
        summary = StatementSummary(
            total_spend=row.total_spend,
            opening_balance=row.opening_balance,
            closing_balance=row.closing_balance,
            minimum_payment=row.minimum_payment,
            due_date=row.due_date,
        )

    return Statement(
        identity_key=row.identity_key,
        transactions=tuple(_row_to_transaction(t) for t in row.transactions),
        card=None if card.is_empty else card,
        summary=summary,
        source=row.source,
        statement_id=row.id,
    )


class StatementStore:
    """Statement repository backed by a SQLAlchemy engine."""

    def __init__(self, database_url: str, *, engine: Engine | None = None) -> None:
        self.database_url = database_url
        self.engine = engine or create_engine(database_url, pool_pre_ping=True)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._session_maker = sessionmaker(bind=self.engine, expire_on_commit=False, class_=Session)

    def create_schema(self) -> None:
        """Create tables that do not exist yet."""
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""
        session = self._session_maker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _select(self):
        return select(StatementRow).options(selectinload(StatementRow.transactions))

    def find_by_key(self, identity_key: str) -> Statement | None:
        with self.session_scope() as s:
            row = s.scalars(self._select().where(StatementRow.identity_key == identity_key)).first()
            return _row_to_statement(row) if row else None

    def get(self, statement_id: int) -> Statement | None:
        with self.session_scope() as s:
            row = s.scalars(self._select().where(StatementRow.id == statement_id)).first()
            return _row_to_statement(row) if row else None

    def replace(self, statement: Statement) -> int:
        """
        Insert a statement, replacing any stored one with the same identity key.

        Lookup, delete and insert share one database transaction.

        Returns:
            Identifier of the stored statement
        """
        with self.session_scope() as s:
            existing = s.scalars(
                select(StatementRow).where(StatementRow.identity_key == statement.identity_key)
            ).first()
            if existing is not None:
                logger.info("Replacing statement %d with key %s", existing.id, statement.identity_key[:12])
                s.delete(existing)
                s.flush()

            row = _statement_to_row(statement)
            s.add(row)
            s.flush()
            return row.id

    def delete(self, statement_id: int) -> bool:
        """Delete a statement and its transactions. Returns False if not found."""
        with self.session_scope() as s:
            row = s.get(StatementRow, statement_id)
            if row is None:
                return False
            s.delete(row)
            return True

    def find_by_card(self, last_four_digits: str) -> list[Statement]:
        """Statements of one card, most recently stored first."""
        with self.session_scope() as s:
            rows = s.scalars(
                self._select()
                .where(StatementRow.last_four_digits == last_four_digits.strip())
                .order_by(StatementRow.created_at.desc(), StatementRow.id.desc())
            ).all()
            return [_row_to_statement(row) for row in rows]

    def list_between(self, start: date, end: date) -> list[Statement]:
        """
        Statements whose whole period falls within [start, end].

        Statements without a period are never returned.
        """
        with self.session_scope() as s:
            rows = s.scalars(
                self._select()
                .where(StatementRow.period_start >= start, StatementRow.period_end <= end)
                .order_by(StatementRow.period_start.desc(), StatementRow.id.desc())
            ).all()
            return [_row_to_statement(row) for row in rows]

    def list_all(self) -> list[Statement]:
        """All stored statements, most recent period first."""
        with self.session_scope() as s:
            rows = s.scalars(
                self._select().order_by(StatementRow.period_start.desc(), StatementRow.id.desc())
            ).all()
            return [_row_to_statement(row) for row in rows]


def _enable_sqlite_foreign_keys(dbapi_conn, _connection_record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()
