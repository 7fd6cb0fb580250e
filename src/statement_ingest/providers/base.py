"""Base provider class and progress phases for statement extraction."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar

from statement_ingest.models import CardMetadata, RawTransactionRecord, StatementSummary


class Phase(Enum):
    """Extraction phases, each owning a disjoint slice of overall progress."""

    DOCUMENT_LOAD = (0.0, 0.1)
    PAGE_CONVERSION = (0.1, 0.3)
    TEXT_RECOGNITION = (0.3, 0.6)
    SEMANTIC_EXTRACTION = (0.6, 0.9)
    FINALIZATION = (0.9, 1.0)

    @property
    def start(self) -> float:
        return self.value[0]

    @property
    def end(self) -> float:
        return self.value[1]

    def overall(self, fraction: float) -> float:
        """Map a fraction of this phase onto overall progress in [0, 1]."""
        fraction = min(max(fraction, 0.0), 1.0)
        return self.start + (self.end - self.start) * fraction


ProgressReporter = Callable[[Phase, float], None]


def null_progress(phase: Phase, fraction: float) -> None:
    """Progress reporter that discards everything."""


@dataclass(frozen=True)
class ProviderResult:
    """Everything one provider managed to read from a statement."""

    card: CardMetadata | None
    transactions: tuple[RawTransactionRecord, ...] = ()
    summary: StatementSummary | None = None


class ExtractionProvider(ABC):
    """Abstract base class for statement extraction providers."""

    # Class attributes to be overridden by subclasses
    name: ClassVar[str] = "unknown"
    stage: ClassVar[str] = "primary"  # primary or fallback

    @abstractmethod
    def extract(self, document: bytes, progress: ProgressReporter) -> ProviderResult:
        """
        Extract card metadata, transactions and summary from a document.

        Runs in a worker thread and may block.

        Args:
            document: Raw PDF or image bytes
            progress: Callback receiving (phase, fraction-of-phase)

        Returns:
            ProviderResult with everything that could be read

        Raises:
            ProviderError: If the document could not be extracted
        """
        pass
