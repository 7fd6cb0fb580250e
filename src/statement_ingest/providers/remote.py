"""Remote document-understanding client used as the primary provider."""

from typing import Any, ClassVar

import requests

from statement_ingest.errors import ProviderError
from statement_ingest.logging_setup import get_logger
from statement_ingest.providers.base import (
    ExtractionProvider,
    Phase,
    ProgressReporter,
    ProviderResult,
)
from statement_ingest.providers.schema import parse_payload_text, to_provider_result
from statement_ingest.utils.parsing import sniff_document_type

logger = get_logger(__name__)

# Status codes meaning the account has run out of requests or credit
QUOTA_STATUS_CODES = {402, 429}


class RemoteExtractionProvider(ExtractionProvider):
    """Client that posts a statement to a structured-extraction endpoint."""

    name: ClassVar[str] = "remote"
    stage: ClassVar[str] = "primary"

    DEFAULT_TIMEOUT = 60.0

    def __init__(
        self,
        api_url: str,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        default_currency: str = "INR",
    ) -> None:
        """Initialize client with endpoint URL and optional API key."""
        self.api_url = api_url
        self.timeout = timeout
        self.default_currency = default_currency
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if api_key:
            self._session.headers.update({"Authorization": f"Bearer {api_key}"})

    def _request(self, document: bytes) -> requests.Response:
        """Upload the document and return the raw response."""
        mime_type = sniff_document_type(document) or "application/octet-stream"
        files = {"document": ("statement", document, mime_type)}

        try:
            response = self._session.post(self.api_url, files=files, timeout=self.timeout)
            response.raise_for_status()
        except requests.Timeout as e:
            raise ProviderError(ProviderError.TIMEOUT, str(e)) from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in QUOTA_STATUS_CODES:
                raise ProviderError(ProviderError.QUOTA, f"HTTP {status}") from e
            raise ProviderError(ProviderError.UNAVAILABLE, str(e)) from e
        except requests.RequestException as e:
            raise ProviderError(ProviderError.UNAVAILABLE, str(e)) from e

        return response

    def _decode(self, response: requests.Response) -> dict[str, Any]:
        """Decode the response body, recovering JSON embedded in text."""
        try:
            body = response.json()
        except ValueError:
            return parse_payload_text(response.text)

        # Some models answer with the JSON serialized inside a text field
        if isinstance(body, dict):
            for key in ("text", "content", "output"):
                if isinstance(body.get(key), str) and "transactions" not in body:
                    return parse_payload_text(body[key])
            return body

        if isinstance(body, str):
            return parse_payload_text(body)

        raise ProviderError(ProviderError.MALFORMED, f"unexpected response type {type(body).__name__}")

    def extract(self, document: bytes, progress: ProgressReporter) -> ProviderResult:
        """Send the document for structured extraction."""
        progress(Phase.DOCUMENT_LOAD, 1.0)

        logger.info("Uploading %d bytes to %s", len(document), self.api_url)
        progress(Phase.SEMANTIC_EXTRACTION, 0.0)
        response = self._request(document)
        progress(Phase.SEMANTIC_EXTRACTION, 1.0)

        result = to_provider_result(self._decode(response), self.default_currency)
        logger.info("Remote extraction returned %d transactions", len(result.transactions))
        progress(Phase.FINALIZATION, 1.0)
        return result
