"""Parsing utilities for statement text and provider payloads."""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

# Magic bytes of the document formats we accept.
_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"%PDF-", "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
)

_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")


def parse_date(date_str: str) -> date | None:
    """
    Parse various date formats to date object.

    Supported formats:
    - YYYY-MM-DD (2025-03-04)
    - DD/MM/YYYY (04/03/2025)
    - DD-MM-YYYY (04-03-2025)
    - DD MMM YYYY / DD MMM YY (04 Mar 2025, 04 Mar 25)
    - DD MMMM YYYY (04 March 2025)
    - MM/DD/YYYY when the day-first reading is impossible (03/24/2025)

    Args:
        date_str: Date string to parse

    Returns:
        date object if successful, None otherwise
    """
    date_str = date_str.strip().strip('"').strip().rstrip(",")

    if not date_str:
        return None

    formats = [
        "%Y-%m-%d",  # 2025-03-04
        "%d/%m/%Y",  # 04/03/2025
        "%d-%m-%Y",  # 04-03-2025
        "%d %b %Y",  # 04 Mar 2025
        "%d %b %y",  # 04 Mar 25
        "%d %B %Y",  # 04 March 2025
        "%d-%b-%Y",  # 04-Mar-2025
        "%d-%b-%y",  # 04-Mar-25
        "%d/%m/%y",  # 04/03/25
        "%m/%d/%Y",  # 03/24/2025
        "%Y/%m/%d",  # 2025/03/04
        "%b %d, %Y",  # Mar 04, 2025
    ]

    for fmt in formats:
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    # ISO timestamps: keep the date part
    match = re.match(r"^(\d{4}-\d{2}-\d{2})[T ]", date_str)
    if match:
        return parse_date(match.group(1))

    return _parse_date_components(date_str)


def _parse_date_components(date_str: str) -> date | None:
    """Last-resort parse from loose day/month/year components."""
    numbers = [int(n) for n in re.findall(r"\d+", date_str)]
    lowered = date_str.lower()
    month_number = next(
        (i + 1 for i, name in enumerate(_MONTHS) if name in lowered), None
    )

    if month_number is not None and len(numbers) >= 2:
        day, year = numbers[0], numbers[1]
    elif len(numbers) >= 3:
        day, month_number, year = numbers[0], numbers[1], numbers[2]
    else:
        return None

    if year < 100:
        year += 2000

    try:
        return date(year, month_number, day)
    except ValueError:
        return None


def parse_amount(amount_str: str | float | int | Decimal | None) -> Decimal | None:
    """
    Parse amount string to Decimal.

    Handles:
    - Currency symbols and codes (₹, Rs., INR, $)
    - Thousands separators (commas)
    - Negative values (both -123 and (123))
    - Trailing debit/credit markers (Dr, Cr)
    - Numbers already decoded from JSON

    Args:
        amount_str: Amount to parse

    Returns:
        Decimal if successful, None otherwise
    """
    if amount_str is None or isinstance(amount_str, bool):
        return None

    if isinstance(amount_str, Decimal):
        return amount_str

    if isinstance(amount_str, (int, float)):
        return Decimal(str(amount_str))

    amount_str = amount_str.strip().strip('"').strip()

    if not amount_str:
        return None

    # Check for parentheses (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency markers, direction suffixes and whitespace
    amount_str = re.sub(r"(?i)\b(?:cr|dr)\b\.?$", "", amount_str.strip())
    amount_str = re.sub(r"(?i)(?:rs\.?|inr|usd|₹|\$|\s)", "", amount_str)

    # Handle thousands separator (comma)
    amount_str = amount_str.replace(",", "")

    # Check for negative sign
    if amount_str.startswith("-"):
        is_negative = True
        amount_str = amount_str[1:]

    try:
        value = Decimal(amount_str)
        return -value if is_negative else value
    except InvalidOperation:
        return None


def clean_description(desc: str) -> str:
    """
    Clean up transaction description.

    Removes:
    - Extra whitespace and newlines
    - Card number masks
    - Characters outside words, spaces and - . , / # @ * &

    Args:
        desc: Raw description string

    Returns:
        Cleaned description
    """
    # Remove extra whitespace and newlines
    desc = " ".join(desc.split())

    # Remove card number masks (various formats)
    desc = re.sub(r"[•X*]{4}[-\s]*[•X*]{4}[-\s]*[•X*]{4}[-\s]*\d{4}", "", desc)

    # Drop symbols that only add noise
    desc = re.sub(r"[^\w\s\-.,/#@*&']", "", desc)

    # Clean up extra spaces
    desc = " ".join(desc.split())

    return desc.strip()


def sniff_document_type(content: bytes) -> str | None:
    """
    Identify a document by its magic bytes.

    Args:
        content: Raw document bytes

    Returns:
        MIME type string, or None if the bytes are not a supported document
    """
    if not content:
        return None

    # Some PDF writers put a few junk bytes before the header
    if b"%PDF-" in content[:1024]:
        return "application/pdf"

    for signature, mime_type in _SIGNATURES:
        if content.startswith(signature):
            return mime_type

    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"

    if content[4:8] == b"ftyp" and content[8:12] in (b"heic", b"heix", b"mif1", b"msf1"):
        return "image/heic"

    return None
