"""Exception hierarchy for statement ingestion."""

from enum import Enum


class StatementIngestError(Exception):
    """Base class for all errors raised by this package."""

    @property
    def user_message(self) -> str:
        return "could not process this document"


class ProviderError(StatementIngestError):
    """An extraction provider could not produce a result.

    Raised by providers and handled by the coordinator; callers only ever see
    it chained under an :class:`ExtractionError`.
    """

    TIMEOUT = "timeout"
    QUOTA = "quota"
    UNAVAILABLE = "unavailable"
    MALFORMED = "malformed"
    UNREADABLE = "unreadable"

    def __init__(self, reason: str, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class ExtractionErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    PROVIDER_FAILURE = "provider_failure"
    ALREADY_RUNNING = "already_running"


class ExtractionError(StatementIngestError):
    """Terminal failure to turn a document into a statement."""

    def __init__(
        self,
        kind: ExtractionErrorKind,
        message: str = "",
        stage: str | None = None,
    ) -> None:
        self.kind = kind
        self.stage = stage
        text = message or kind.value
        if stage:
            text = f"{text} (stage: {stage})"
        super().__init__(text)

    @classmethod
    def invalid_input(cls, message: str) -> "ExtractionError":
        return cls(ExtractionErrorKind.INVALID_INPUT, message)

    @classmethod
    def provider_failure(cls, stage: str, message: str = "") -> "ExtractionError":
        return cls(ExtractionErrorKind.PROVIDER_FAILURE, message, stage=stage)

    @property
    def user_message(self) -> str:
        if self.kind == ExtractionErrorKind.ALREADY_RUNNING:
            return "this document is already being processed"
        return "could not read this document"


class PersistenceErrorKind(str, Enum):
    UNAVAILABLE = "unavailable"
    INVALID_DATA = "invalid_data"


class PersistenceError(StatementIngestError):
    """Failure to store a statement."""

    def __init__(self, kind: PersistenceErrorKind, message: str = "") -> None:
        self.kind = kind
        super().__init__(message or kind.value)

    @classmethod
    def unavailable(cls, message: str = "") -> "PersistenceError":
        return cls(PersistenceErrorKind.UNAVAILABLE, message)

    @classmethod
    def invalid_data(cls, message: str) -> "PersistenceError":
        return cls(PersistenceErrorKind.INVALID_DATA, message)

    @property
    def retryable(self) -> bool:
        return self.kind == PersistenceErrorKind.UNAVAILABLE

    @property
    def user_message(self) -> str:
        if self.retryable:
            return "could not save - try again"
        return "could not save this statement"
