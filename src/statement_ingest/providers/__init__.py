"""Extraction providers package."""

from statement_ingest.providers.base import (
    ExtractionProvider,
    Phase,
    ProgressReporter,
    ProviderResult,
    null_progress,
)
from statement_ingest.providers.ocr import OcrExtractionProvider
from statement_ingest.providers.remote import RemoteExtractionProvider

__all__ = [
    "ExtractionProvider",
    "Phase",
    "ProgressReporter",
    "ProviderResult",
    "null_progress",
    "OcrExtractionProvider",
    "RemoteExtractionProvider",
]
