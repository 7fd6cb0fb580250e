"""Validation and post-processing of provider JSON payloads."""

import json
import re
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from statement_ingest.errors import ProviderError
from statement_ingest.logging_setup import get_logger
from statement_ingest.models import (
    CardMetadata,
    Direction,
    RawTransactionRecord,
    StatementPeriod,
    StatementSummary,
)
from statement_ingest.providers.base import ProviderResult
from statement_ingest.utils.parsing import clean_description, parse_amount, parse_date

logger = get_logger(__name__)

_CREDIT_MARKERS = {"credit", "cr", "c", "refund", "payment", "reversal"}
_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _amount_or_none(v: Any) -> Decimal | None:
    if v is None or v == "":
        return None
    amount = parse_amount(v)
    if amount is None:
        raise ValueError(f"not an amount: {v!r}")
    return amount


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)


class PeriodPayload(_Payload):
    start: str | None = Field(default=None, alias="from")
    end: str | None = Field(default=None, alias="to")


class CardPayload(_Payload):
    issuer: str | None = None
    product: str | None = None
    last4: str | None = None
    statement_period: PeriodPayload | None = None

    @field_validator("last4", mode="before")
    @classmethod
    def _last_four_digits(cls, v: Any) -> str | None:
        if v is None:
            return None
        digits = re.sub(r"\D", "", str(v))
        return digits[-4:] if digits else None


class FxPayload(_Payload):
    original_amount: Decimal
    original_currency: str

    @field_validator("original_amount", mode="before")
    @classmethod
    def _parse_original_amount(cls, v: Any) -> Decimal:
        amount = _amount_or_none(v)
        if amount is None:
            raise ValueError("original_amount is required")
        return amount


class TransactionPayload(_Payload):
    posted_on: str = Field(alias="date")
    description: str = ""
    amount: Decimal
    currency: str | None = None
    direction: str | None = Field(default=None, alias="type")
    fx: FxPayload | None = None

    @field_validator("posted_on", mode="before")
    @classmethod
    def _coerce_date(cls, v: Any) -> str:
        return str(v)

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, v: Any) -> Decimal:
        amount = _amount_or_none(v)
        if amount is None:
            raise ValueError("amount is required")
        return amount


class SummaryPayload(_Payload):
    total_spend: Decimal | None = None
    opening_balance: Decimal | None = None
    closing_balance: Decimal | None = None
    minimum_payment: Decimal | None = Field(default=None, alias="min_payment")
    due_date: str | None = None

    @field_validator(
        "total_spend", "opening_balance", "closing_balance", "minimum_payment", mode="before"
    )
    @classmethod
    def _parse_amounts(cls, v: Any) -> Decimal | None:
        return _amount_or_none(v)


class StatementPayload(_Payload):
    card: CardPayload | None = None
    # Rows are validated one at a time so a bad row does not sink the document
    transactions: list[dict[str, Any]] = Field(default_factory=list)
    summary: SummaryPayload | None = None


def parse_payload_text(text: str) -> dict[str, Any]:
    """
    Recover a JSON object from provider text.

    Tries, in order: the whole text, the first fenced code block, and the
    span between the first '{' and the last '}'.

    Raises:
        ProviderError: If no JSON object can be recovered
    """
    candidates = [text.strip()]

    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())

    first, last = text.find("{"), text.rfind("}")
    if first != -1 and last > first:
        candidates.append(text[first : last + 1])

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value

    raise ProviderError(ProviderError.MALFORMED, "no JSON object in response")


def _direction(marker: str | None, amount: Decimal) -> Direction:
    if marker:
        return Direction.CREDIT if marker.strip().lower() in _CREDIT_MARKERS else Direction.DEBIT
    return Direction.CREDIT if amount < 0 else Direction.DEBIT


def _to_record(row: TransactionPayload, default_currency: str) -> RawTransactionRecord | None:
    posted_on = parse_date(row.posted_on)
    if posted_on is None:
        return None

    currency = (row.currency or default_currency).upper()
    original_amount = original_currency = None
    if row.fx is not None:
        original_amount = abs(row.fx.original_amount)
        original_currency = row.fx.original_currency.upper()

    return RawTransactionRecord(
        date=posted_on,
        description=clean_description(row.description),
        amount=abs(row.amount),
        direction=_direction(row.direction, row.amount),
        currency=currency,
        original_amount=original_amount,
        original_currency=original_currency,
    )


def _to_card(card: CardPayload | None) -> CardMetadata | None:
    if card is None:
        return None

    period = None
    if card.statement_period is not None:
        start = parse_date(card.statement_period.start or "")
        end = parse_date(card.statement_period.end or "")
        if start and end:
            period = StatementPeriod(start=start, end=end)

    metadata = CardMetadata(
        issuer=card.issuer or None,
        product_name=card.product or None,
        last_four_digits=card.last4,
        statement_period=period,
    )
    return None if metadata.is_empty else metadata


def _to_summary(summary: SummaryPayload | None) -> StatementSummary | None:
    if summary is None:
        return None

    def _abs(value: Decimal | None) -> Decimal | None:
        return abs(value) if value is not None else None

    return StatementSummary(
        total_spend=_abs(summary.total_spend),
        opening_balance=_abs(summary.opening_balance),
        closing_balance=_abs(summary.closing_balance),
        minimum_payment=_abs(summary.minimum_payment),
        due_date=parse_date(summary.due_date) if summary.due_date else None,
    )


def to_provider_result(data: Any, default_currency: str = "INR") -> ProviderResult:
    """
    Validate a decoded provider payload and convert it to a ProviderResult.

    Accepts the payload bare or wrapped under a "data" key. Transaction rows
    whose date or amount cannot be read are dropped with a warning.

    Raises:
        ProviderError: If the payload does not have the expected shape
    """
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        data = data["data"]

    try:
        payload = StatementPayload.model_validate(data)
    except ValidationError as e:
        raise ProviderError(ProviderError.MALFORMED, str(e)) from e

    records: list[RawTransactionRecord] = []
    for index, row in enumerate(payload.transactions):
        try:
            record = _to_record(TransactionPayload.model_validate(row), default_currency)
        except ValidationError as e:
            logger.warning("Dropping transaction row %d: %s", index, e.errors()[0]["msg"])
            continue
        if record is None:
            logger.warning("Dropping transaction row %d: unreadable date", index)
            continue
        records.append(record)

    return ProviderResult(
        card=_to_card(payload.card),
        transactions=tuple(records),
        summary=_to_summary(payload.summary),
    )
