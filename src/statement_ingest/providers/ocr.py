"""On-device text recognition provider used as the fallback."""

import io
import re
from decimal import Decimal
from typing import ClassVar

import pdfplumber
import pytesseract
from PIL import Image, UnidentifiedImageError

from statement_ingest.errors import ProviderError
from statement_ingest.logging_setup import get_logger
from statement_ingest.models import (
    CardMetadata,
    Direction,
    RawTransactionRecord,
    StatementPeriod,
    StatementSummary,
)
from statement_ingest.providers.base import (
    ExtractionProvider,
    Phase,
    ProgressReporter,
    ProviderResult,
)
from statement_ingest.utils.parsing import (
    clean_description,
    parse_amount,
    parse_date,
    sniff_document_type,
)

logger = get_logger(__name__)

KNOWN_ISSUERS = (
    "HDFC",
    "ICICI",
    "SBI",
    "Axis",
    "Kotak",
    "HSBC",
    "Citi",
    "Standard Chartered",
    "American Express",
    "IndusInd",
    "Yes Bank",
    "RBL",
    "IDFC First",
)

_CARD_PATTERN = re.compile(
    r"(?:Card Number|Card No\.?|Card)[^0-9\n]*(?:[*xX•]\s*){4,}[\s\-*xX•0-9]*?([0-9]{4})\b",
    re.IGNORECASE,
)
_PERIOD_PATTERN = re.compile(
    r"(?:Statement Period|Billing Period|Statement Date)[^0-9\n]*"
    r"(\d{1,2}[\-/ ](?:\d{1,2}|[A-Za-z]{3})[\-/ ]\d{2,4})\s*(?:to|-)\s*"
    r"(\d{1,2}[\-/ ](?:\d{1,2}|[A-Za-z]{3})[\-/ ]\d{2,4})",
    re.IGNORECASE,
)
_AMOUNT = r"(?:₹|Rs\.?|INR)?\s*-?[\d,]+(?:\.\d{1,2})?"
_SUMMARY_PATTERNS = {
    "total_spend": r"(?:Total Amount Due|Total Dues?|Total Spends?)",
    "minimum_payment": r"(?:Minimum Amount Due|Minimum Due|Minimum Payment)",
    "opening_balance": r"(?:Opening Balance|Previous Balance)",
    "closing_balance": r"(?:Closing Balance|Current Balance)",
}
_DUE_DATE_PATTERN = re.compile(
    r"(?:Payment Due Date|Due Date)[^0-9\n]*(\d{1,2}[\-/ ](?:\d{1,2}|[A-Za-z]{3})[\-/ ]\d{2,4})",
    re.IGNORECASE,
)
_TRANSACTION_LINE = re.compile(
    r"^(?P<date>\d{1,2}[\-/ ](?:\d{1,2}|[A-Za-z]{3})[\-/ ]\d{2,4})\s+"
    r"(?P<description>.+?)\s+"
    r"(?P<amount>(?:₹|Rs\.?|INR)?\s*-?[\d,]+\.\d{2})"
    r"\s*(?P<marker>Cr|Dr|C|D)?\.?$",
    re.IGNORECASE,
)


def parse_card_metadata(text: str) -> CardMetadata | None:
    """
    Read issuer, last four digits and statement period from statement text.

    Args:
        text: Recognized statement text

    Returns:
        CardMetadata, or None if nothing was found
    """
    issuer = None
    for name in KNOWN_ISSUERS:
        if re.search(rf"\b{re.escape(name)}", text, re.IGNORECASE):
            issuer = name
            break

    last_four = None
    card_match = _CARD_PATTERN.search(text)
    if card_match:
        last_four = card_match.group(1)

    period = None
    period_match = _PERIOD_PATTERN.search(text)
    if period_match:
        start = parse_date(period_match.group(1))
        end = parse_date(period_match.group(2))
        if start and end:
            period = StatementPeriod(start=start, end=end)

    card = CardMetadata(issuer=issuer, last_four_digits=last_four, statement_period=period)
    return None if card.is_empty else card


def parse_summary(text: str) -> StatementSummary | None:
    """Read the issuer's summary box from statement text."""
    amounts: dict[str, Decimal | None] = {}
    for field_name, label in _SUMMARY_PATTERNS.items():
        match = re.search(rf"{label}[^0-9₹\n]*({_AMOUNT})", text, re.IGNORECASE)
        value = parse_amount(match.group(1)) if match else None
        amounts[field_name] = abs(value) if value is not None else None

    due_date = None
    due_match = _DUE_DATE_PATTERN.search(text)
    if due_match:
        due_date = parse_date(due_match.group(1))

    if due_date is None and all(v is None for v in amounts.values()):
        return None

    return StatementSummary(due_date=due_date, **amounts)


def parse_transaction_lines(text: str, currency: str = "INR") -> list[RawTransactionRecord]:
    """
    Parse transaction lines of the form ``date description amount [Cr|Dr]``.

    Args:
        text: Recognized statement text
        currency: Settlement currency of the card

    Returns:
        List of RawTransactionRecord in statement order
    """
    records: list[RawTransactionRecord] = []

    for line in text.splitlines():
        match = _TRANSACTION_LINE.match(line.strip())
        if not match:
            continue

        posted_on = parse_date(match.group("date"))
        amount = parse_amount(match.group("amount"))
        if posted_on is None or amount is None:
            continue

        marker = (match.group("marker") or "").lower()
        if marker in ("cr", "c") or amount < 0:
            direction = Direction.CREDIT
        else:
            direction = Direction.DEBIT

        records.append(
            RawTransactionRecord(
                date=posted_on,
                description=clean_description(match.group("description")),
                amount=abs(amount),
                direction=direction,
                currency=currency,
            )
        )

    return records


class OcrExtractionProvider(ExtractionProvider):
    """Reads statements with pdfplumber and Tesseract, without a network."""

    name: ClassVar[str] = "ocr"
    stage: ClassVar[str] = "fallback"

    def __init__(
        self,
        min_words_per_page: int = 25,
        dpi: int = 250,
        language: str = "eng",
        default_currency: str = "INR",
    ) -> None:
        self.min_words_per_page = min_words_per_page
        self.dpi = dpi
        self.language = language
        self.default_currency = default_currency

    def _recognize(self, image: Image.Image) -> str:
        try:
            return pytesseract.image_to_string(image, lang=self.language)
        except pytesseract.TesseractNotFoundError as e:
            raise ProviderError(ProviderError.UNREADABLE, "tesseract is not installed") from e
        except pytesseract.TesseractError as e:
            raise ProviderError(ProviderError.UNREADABLE, str(e)) from e

    def _pdf_text(self, document: bytes, progress: ProgressReporter) -> str:
        """Text layer of every page, with low-text pages recognized from images."""
        try:
            pdf = pdfplumber.open(io.BytesIO(document))
        except Exception as e:
            raise ProviderError(ProviderError.UNREADABLE, f"cannot open PDF: {e}") from e

        with pdf:
            progress(Phase.DOCUMENT_LOAD, 1.0)
            page_count = len(pdf.pages)
            texts: list[str] = []
            needs_ocr: list[int] = []

            for idx, page in enumerate(pdf.pages):
                text = page.extract_text() or ""
                texts.append(text)
                if len(text.split()) < self.min_words_per_page:
                    needs_ocr.append(idx)
                progress(Phase.PAGE_CONVERSION, (idx + 1) / page_count)

            for done, idx in enumerate(needs_ocr, start=1):
                logger.debug("Page %d has little text, running OCR", idx + 1)
                image = pdf.pages[idx].to_image(resolution=self.dpi).original
                recognized = self._recognize(image)
                if len(recognized.split()) > len(texts[idx].split()):
                    texts[idx] = recognized
                progress(Phase.TEXT_RECOGNITION, done / len(needs_ocr))

        return "\n".join(texts)

    def _image_text(self, document: bytes, progress: ProgressReporter) -> str:
        try:
            image = Image.open(io.BytesIO(document))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ProviderError(ProviderError.UNREADABLE, f"cannot open image: {e}") from e

        progress(Phase.DOCUMENT_LOAD, 1.0)
        progress(Phase.PAGE_CONVERSION, 1.0)
        text = self._recognize(image)
        progress(Phase.TEXT_RECOGNITION, 1.0)
        return text

    def extract(self, document: bytes, progress: ProgressReporter) -> ProviderResult:
        """Recognize the document and parse statement fields from its text."""
        if sniff_document_type(document) == "application/pdf":
            text = self._pdf_text(document, progress)
        else:
            text = self._image_text(document, progress)

        if not text.strip():
            raise ProviderError(ProviderError.UNREADABLE, "no text recognized")

        progress(Phase.SEMANTIC_EXTRACTION, 0.0)
        card = parse_card_metadata(text)
        summary = parse_summary(text)
        transactions = parse_transaction_lines(text, self.default_currency)
        progress(Phase.SEMANTIC_EXTRACTION, 1.0)

        logger.info("OCR extraction found %d transactions", len(transactions))
        progress(Phase.FINALIZATION, 1.0)
        return ProviderResult(card=card, transactions=tuple(transactions), summary=summary)
