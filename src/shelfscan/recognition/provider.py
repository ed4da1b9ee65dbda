# ABOUTME: RecognitionProvider protocol and the shared machinery behind vision adapters.
# ABOUTME: Adapters never raise; each call yields a RecognitionAttempt tagged with its status.

import asyncio
import base64
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from shelfscan.recognition.http import HttpClient, ProviderOverloadedError, RecognitionFetchError
from shelfscan.recognition.repair import parse_candidates
from shelfscan.recognition.responses import (
    ErrorResponse,
    ProviderResponse,
    RefusalResponse,
    TextResponse,
    TruncatedResponse,
)
from shelfscan.recognition.types import BookCandidate

logger = logging.getLogger(__name__)

RECOGNITION_INSTRUCTION = """Scan this image and return ALL visible book spines.

RULES:
- TITLE is the book name (usually the larger text on the spine)
- AUTHOR is the person who wrote it (usually smaller text above or below the title)
- Never swap title and author: titles are book names, authors are people's names
- Use null for an author you cannot read
- confidence is "high", "medium" or "low"

Return ONLY a JSON array, with no markdown, code blocks or explanations:
[{"title": "Book Title", "author": "Author Name", "confidence": "high"}]"""


@dataclass(frozen=True)
class ScanImage:
    """An encoded image payload handed to the providers unchanged."""

    data: bytes
    mime_type: str = "image/jpeg"

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


class AttemptStatus(str, Enum):
    """Outcome class of one adapter call."""

    OK = "ok"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    OVERLOADED = "overloaded"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class RecognitionAttempt:
    """Result of a single outbound recognition request.

    An OK attempt may still carry zero candidates (refusal, truncation,
    unparseable output); detail then says why.
    """

    status: AttemptStatus
    candidates: tuple[BookCandidate, ...] = ()
    model: str | None = None
    detail: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is AttemptStatus.OK


@runtime_checkable
class RecognitionProvider(Protocol):
    """Protocol for vision services that detect books on a shelf photo.

    models lists the variants in fallback order; the first is the primary.
    """

    @property
    def name(self) -> str: ...

    @property
    def models(self) -> tuple[str, ...]: ...

    async def recognize(
        self, image: ScanImage, model: str | None = None
    ) -> RecognitionAttempt: ...


class VisionAdapter:
    """Base for HTTP-backed recognition adapters.

    Subclasses describe the wire format (endpoint, headers, payload, response
    classification); this class owns the deadline, failure mapping and parsing.
    Only adapters with detects_overload set report OVERLOADED; for the others
    a capacity error is an ordinary failure.
    """

    provider_name: str = ""
    detects_overload: bool = False
    overload_status_codes: frozenset[int] = frozenset({503})

    def __init__(
        self,
        http_client: HttpClient,
        *,
        api_key: str | None,
        models: tuple[str, ...],
        timeout: float,
    ) -> None:
        if not models:
            raise ValueError("at least one model variant is required")
        self._http = http_client
        self._api_key = api_key
        self._models = models
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self.provider_name

    @property
    def models(self) -> tuple[str, ...]:
        return self._models

    def _endpoint(self, model: str) -> str:
        raise NotImplementedError

    def _headers(self, api_key: str) -> dict[str, str]:
        raise NotImplementedError

    def _payload(self, image: ScanImage, model: str) -> dict[str, Any]:
        raise NotImplementedError

    def _classify(self, data: dict[str, Any]) -> ProviderResponse:
        raise NotImplementedError

    def _is_overload(self, exc: RecognitionFetchError) -> bool:
        if not self.detects_overload:
            return False
        return (
            isinstance(exc, ProviderOverloadedError)
            or exc.status_code in self.overload_status_codes
        )

    async def recognize(self, image: ScanImage, model: str | None = None) -> RecognitionAttempt:
        """Issue one recognition request and parse whatever comes back.

        Never raises: timeouts, transport errors and malformed output all
        degrade to an attempt with no candidates and a logged diagnostic.
        """
        model = model or self._models[0]
        try:
            return await self._recognize(image, model)
        except Exception as exc:
            logger.error("%s/%s adapter error: %s", self.name, model, exc, exc_info=exc)
            return RecognitionAttempt(
                AttemptStatus.FAILED, model=model, detail=f"adapter error: {exc}"
            )

    async def _recognize(self, image: ScanImage, model: str) -> RecognitionAttempt:
        if not self._api_key:
            logger.warning("%s skipped: no API key configured", self.name)
            return RecognitionAttempt(
                AttemptStatus.UNAVAILABLE, model=model, detail="no API key configured"
            )

        try:
            data = await asyncio.wait_for(
                self._http.post_json(
                    self._endpoint(model),
                    self._payload(image, model),
                    self._headers(self._api_key),
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("%s/%s timed out after %.0fs", self.name, model, self._timeout)
            return RecognitionAttempt(
                AttemptStatus.TIMED_OUT, model=model, detail=f"timed out after {self._timeout}s"
            )
        except RecognitionFetchError as exc:
            if self._is_overload(exc):
                logger.warning("%s/%s overloaded: %s", self.name, model, exc)
                return RecognitionAttempt(AttemptStatus.OVERLOADED, model=model, detail=str(exc))
            logger.warning("%s/%s request failed: %s", self.name, model, exc)
            return RecognitionAttempt(AttemptStatus.FAILED, model=model, detail=str(exc))

        return self._interpret(self._classify(data), model)

    def _interpret(self, response: ProviderResponse, model: str) -> RecognitionAttempt:
        if isinstance(response, TextResponse):
            if response.truncated:
                logger.warning("%s/%s output was truncated, repairing", self.name, model)
            candidates = tuple(parse_candidates(response.text))
            logger.info("%s/%s returned %d candidates", self.name, model, len(candidates))
            detail = None if candidates else "no book entries in response"
            return RecognitionAttempt(AttemptStatus.OK, candidates, model=model, detail=detail)

        if isinstance(response, ErrorResponse):
            logger.warning("%s/%s API error: %s", self.name, model, response.message)
            return RecognitionAttempt(AttemptStatus.FAILED, model=model, detail=response.message)

        if isinstance(response, RefusalResponse):
            detail = f"refused: {response.reason}"
        elif isinstance(response, TruncatedResponse):
            detail = f"truncated: {response.detail}"
        else:
            detail = "empty response"
        logger.warning("%s/%s produced no text (%s)", self.name, model, detail)
        return RecognitionAttempt(AttemptStatus.OK, model=model, detail=detail)
