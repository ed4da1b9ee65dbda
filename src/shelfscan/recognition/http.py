# ABOUTME: Async HTTP client abstraction for recognition and correction API calls.
# ABOUTME: Classifies failures (transport vs. overload) and supports an injectable transport.

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)

_ERROR_PREVIEW_CHARS = 200


class RecognitionFetchError(Exception):
    """Raised when a request to a recognition or correction API fails.

    Covers network errors and non-success status codes. status_code is None
    when no response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderOverloadedError(RecognitionFetchError):
    """Raised when a provider signals it is temporarily at capacity."""


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for JSON POST operations against model APIs."""

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]: ...


def _error_detail(response: httpx.Response) -> str:
    """Read the provider's error payload for diagnostics, tolerating garbage."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:_ERROR_PREVIEW_CHARS]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])[:_ERROR_PREVIEW_CHARS]
        if isinstance(error, str):
            return error[:_ERROR_PREVIEW_CHARS]
    return str(body)[:_ERROR_PREVIEW_CHARS]


class ShelfscanHttpClient:
    """HTTP client for model API calls.

    Wraps httpx.AsyncClient. Retries are left to the orchestrator; this layer
    only classifies failures. Status codes listed in overload_status_codes
    raise ProviderOverloadedError, every other failure RecognitionFetchError.
    """

    def __init__(
        self,
        *,
        overload_status_codes: frozenset[int] = frozenset({503}),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        client_kwargs: dict[str, Any] = {
            "headers": {"User-Agent": "shelfscan/0.1.0"},
            # Hard deadlines are applied by callers with asyncio.wait_for.
            "timeout": httpx.Timeout(None, connect=15.0),
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)
        self._overload_status_codes = overload_status_codes

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send a JSON POST request and return the parsed JSON body.

        Args:
            url: The URL to request.
            payload: JSON-serializable request body.
            headers: Extra request headers (credentials, content type).

        Returns:
            Parsed JSON response body (a non-object body yields an empty dict).

        Raises:
            ProviderOverloadedError: On an overload-class status code.
            RecognitionFetchError: On network errors or any other non-success status.
        """
        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise RecognitionFetchError(f"Request failed: {_redact(url)}: {exc}") from exc

        if response.is_success:
            try:
                body = response.json()
            except ValueError as exc:
                raise RecognitionFetchError(
                    f"Invalid JSON body from {_redact(url)}", response.status_code
                ) from exc
            return body if isinstance(body, dict) else {}

        detail = _error_detail(response)
        message = f"HTTP {response.status_code} from {_redact(url)}: {detail}"
        if response.status_code in self._overload_status_codes:
            logger.warning("Provider at capacity: %s", message)
            raise ProviderOverloadedError(message, response.status_code)
        raise RecognitionFetchError(message, response.status_code)

    async def aclose(self) -> None:
        await self._client.aclose()


def _redact(url: str) -> str:
    """Drop the query string so API keys passed as parameters never reach logs."""
    return url.split("?", 1)[0]
