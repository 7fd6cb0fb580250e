"""statement-ingest - Extract and categorize credit-card statements."""

from statement_ingest.coordinator import ExtractionCoordinator
from statement_ingest.models import EnrichedTransaction, RawTransactionRecord, Statement
from statement_ingest.normalizer import TransactionNormalizer
from statement_ingest.service import IngestionService

__version__ = "0.1.0"
__all__ = [
    "ExtractionCoordinator",
    "IngestionService",
    "TransactionNormalizer",
    "EnrichedTransaction",
    "RawTransactionRecord",
    "Statement",
]
