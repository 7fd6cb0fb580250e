"""Runs extraction providers with fallback and ordered progress reporting."""

import asyncio
import hashlib
import threading
from dataclasses import dataclass
from typing import Callable

from statement_ingest.errors import ExtractionError, ExtractionErrorKind, ProviderError
from statement_ingest.logging_setup import get_logger
from statement_ingest.providers.base import (
    ExtractionProvider,
    Phase,
    ProgressReporter,
    ProviderResult,
)
from statement_ingest.utils.parsing import sniff_document_type

logger = get_logger(__name__)

ProgressSink = Callable[[float], None]


@dataclass(frozen=True)
class ExtractionOutcome:
    """Provider result and the stage that produced it."""

    result: ProviderResult
    stage: str


class ProgressChannel:
    """Delivers overall progress in [0, 1] to a sink on the event loop.

    Values never decrease. After ``rebase`` the next provider's [0, 1] is
    mapped onto [last reported, 1], and reports from earlier providers are
    ignored. Nothing is delivered once the channel is closed.
    """

    def __init__(self, sink: ProgressSink | None, loop: asyncio.AbstractEventLoop) -> None:
        self._sink = sink
        self._loop = loop
        self._lock = threading.Lock()
        self._base = 0.0
        self._last = 0.0
        self._delivered = -1.0
        self._generation = 0
        self._closed = False

    @property
    def last(self) -> float:
        return self._last

    def reporter(self) -> ProgressReporter:
        """Return a thread-safe reporter bound to the current provider."""
        generation = self._generation

        def report(phase: Phase, fraction: float) -> None:
            overall = phase.overall(fraction)
            with self._lock:
                if self._closed or generation != self._generation:
                    return
                value = self._base + (1.0 - self._base) * overall
                if value <= self._last:
                    return
                self._last = value
            self._loop.call_soon_threadsafe(self._deliver, value)

        return report

    def rebase(self) -> None:
        with self._lock:
            self._generation += 1
            self._base = self._last

    def finish(self) -> None:
        """Report completion. Must be called on the loop thread."""
        with self._lock:
            if self._closed:
                return
            self._last = 1.0
        self._deliver(1.0)

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def _deliver(self, value: float) -> None:
        if self._closed or value <= self._delivered:
            return
        self._delivered = value
        if self._sink is not None:
            self._sink(value)


class ExtractionCoordinator:
    """Turns document bytes into a provider result, falling back on failure."""

    def __init__(
        self,
        primary: ExtractionProvider,
        fallback: ExtractionProvider | None = None,
        provider_timeout: float | None = None,
    ) -> None:
        self.primary = primary
        self.fallback = fallback
        self.provider_timeout = provider_timeout
        # Holders per reference: the job itself plus every provider thread
        # still running for it, including ones abandoned after a timeout.
        self._in_flight: dict[str, int] = {}
        self._in_flight_lock = threading.Lock()

    def is_running(self, reference: str) -> bool:
        with self._in_flight_lock:
            return reference in self._in_flight

    def _hold(self, reference: str) -> None:
        with self._in_flight_lock:
            self._in_flight[reference] = self._in_flight.get(reference, 0) + 1

    def _release(self, reference: str) -> None:
        with self._in_flight_lock:
            remaining = self._in_flight.get(reference, 0) - 1
            if remaining > 0:
                self._in_flight[reference] = remaining
            else:
                self._in_flight.pop(reference, None)

    async def process(
        self,
        document: bytes,
        progress_sink: ProgressSink | None = None,
        reference: str | None = None,
    ) -> ExtractionOutcome:
        """
        Extract a statement from raw document bytes.

        Args:
            document: PDF or image bytes
            progress_sink: Called on the event loop with non-decreasing
                overall progress, ending with 1.0 on success
            reference: Job identifier; defaults to the SHA-256 of the bytes

        Returns:
            ExtractionOutcome from the primary or the fallback provider

        Raises:
            ExtractionError: On invalid input, a duplicate job, or when every
                provider failed
        """
        if not document:
            raise ExtractionError.invalid_input("document is empty")
        if sniff_document_type(document) is None:
            raise ExtractionError.invalid_input("document is not a PDF or a supported image")

        reference = reference or hashlib.sha256(document).hexdigest()
        with self._in_flight_lock:
            if reference in self._in_flight:
                raise ExtractionError(
                    ExtractionErrorKind.ALREADY_RUNNING,
                    f"extraction already running for {reference}",
                )
            self._in_flight[reference] = 1

        channel = ProgressChannel(progress_sink, asyncio.get_running_loop())
        try:
            outcome = await self._run(document, reference, channel)
            channel.finish()
            return outcome
        finally:
            channel.close()
            self._release(reference)

    async def _run(
        self, document: bytes, reference: str, channel: ProgressChannel
    ) -> ExtractionOutcome:
        try:
            result = await self._attempt(self.primary, document, reference, channel)
            return ExtractionOutcome(result=result, stage=self.primary.stage)
        except ProviderError as e:
            if self.fallback is None:
                raise ExtractionError.provider_failure(self.primary.stage, str(e)) from e
            logger.warning("Provider %s failed (%s), falling back", self.primary.name, e)
        except Exception as e:
            if self.fallback is None:
                raise ExtractionError.provider_failure(self.primary.stage, str(e)) from e
            logger.warning(
                "Provider %s raised unexpectedly, falling back", self.primary.name, exc_info=True
            )

        channel.rebase()
        try:
            result = await self._attempt(self.fallback, document, reference, channel)
        except Exception as e:
            logger.error("Provider %s failed: %s", self.fallback.name, e)
            raise ExtractionError.provider_failure(self.fallback.stage, str(e)) from e

        return ExtractionOutcome(result=result, stage=self.fallback.stage)

    async def _attempt(
        self,
        provider: ExtractionProvider,
        document: bytes,
        reference: str,
        channel: ProgressChannel,
    ) -> ProviderResult:
        logger.info("Extracting with %s provider", provider.name)
        reporter = channel.reporter()

        def work() -> ProviderResult:
            try:
                return provider.extract(document, reporter)
            finally:
                self._release(reference)

        # The thread outlives a timeout or cancellation; it holds the
        # reference until it returns.
        self._hold(reference)
        try:
            call = asyncio.get_running_loop().run_in_executor(None, work)
        except BaseException:
            self._release(reference)
            raise
        if self.provider_timeout is None:
            return await call

        try:
            return await asyncio.wait_for(call, self.provider_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(
                ProviderError.TIMEOUT, f"{provider.name} took longer than {self.provider_timeout}s"
            ) from e
