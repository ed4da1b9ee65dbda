# ABOUTME: The recognition-consolidation pipeline: recognize, clean, merge, flag junk, validate.
# ABOUTME: Turns one shelf image into a ScanOutcome; internal failures never escape.

import logging

from shelfscan.config import ScanSettings
from shelfscan.recognition.cleanup import clean_candidates, junk_reason
from shelfscan.recognition.dedup import merge, merge_validated
from shelfscan.recognition.gemini import GeminiVisionProvider
from shelfscan.recognition.http import HttpClient, ShelfscanHttpClient
from shelfscan.recognition.openai import OpenAIVisionProvider
from shelfscan.recognition.orchestrator import RecognitionOrchestrator
from shelfscan.recognition.provider import ScanImage
from shelfscan.recognition.types import BookCandidate, ScanOutcome, ValidatedBook
from shelfscan.recognition.validator import BatchValidator, OpenAICorrectionClient

logger = logging.getLogger(__name__)


class ScanPipeline:
    """Runs one scan end to end.

    Providers run concurrently, their candidates are concatenated in provider
    order, cleaned and merged. Obvious junk is flagged invalid without a model
    call, the rest goes through the batch validator, and corrected books that
    now coincide are merged once more. The outcome carries per-provider
    diagnostics so callers can tell "no books on the shelf" from "provider
    unreachable".
    """

    def __init__(
        self,
        orchestrator: RecognitionOrchestrator,
        validator: BatchValidator,
        *,
        http_client: ShelfscanHttpClient | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._validator = validator
        self._http_client = http_client

    async def scan(self, image: ScanImage) -> ScanOutcome:
        results = await self._orchestrator.recognize_all(image)

        combined: list[BookCandidate] = []
        for result in results:
            combined.extend(result.candidates)

        merged = merge(clean_candidates(combined))
        logger.info(
            "Scan results: %s, total=%d, merged=%d unique (removed %d duplicates)",
            ", ".join(f"{r.name}={r.diagnostics.count}" for r in results),
            len(combined),
            len(merged),
            len(combined) - len(merged),
        )
        if not combined:
            logger.warning(
                "No provider returned books: %s",
                "; ".join(f"{r.name}: {r.diagnostics.error or 'no books'}" for r in results),
            )

        books = merge_validated(await self._validate(merged))
        invalid = sum(1 for book in books if not book.is_valid)
        logger.info(
            "Validation complete: %d books, %d flagged invalid, %d merged after correction",
            len(books),
            invalid,
            len(merged) - len(books),
        )

        return ScanOutcome(
            books=tuple(books),
            provider_diagnostics={r.name: r.diagnostics for r in results},
        )

    async def _validate(self, candidates: list[BookCandidate]) -> list[ValidatedBook]:
        """Flag junk locally and send only plausible books to the validator, keeping order."""
        reasons = [junk_reason(candidate) for candidate in candidates]
        plausible = [c for c, reason in zip(candidates, reasons) if reason is None]
        if len(plausible) < len(candidates):
            logger.info(
                "Flagged %d of %d books as junk before validation",
                len(candidates) - len(plausible),
                len(candidates),
            )

        checked = iter(await self._validator.validate(plausible))
        return [
            next(checked) if reason is None
            else ValidatedBook.from_candidate(candidate).invalidated(reason)
            for candidate, reason in zip(candidates, reasons)
        ]

    async def aclose(self) -> None:
        """Close the owned HTTP client, if any."""
        if self._http_client is not None:
            await self._http_client.aclose()


def build_pipeline(
    settings: ScanSettings,
    *,
    http_client: HttpClient | None = None,
    validate: bool = True,
) -> ScanPipeline:
    """Wire the default providers and validator from settings.

    Both providers are always constructed (OpenAI first, it is the primary);
    one without credentials reports itself unavailable in diagnostics. When
    http_client is given the caller owns its lifecycle.
    """
    owned = None
    if http_client is None:
        owned = ShelfscanHttpClient()
        http_client = owned

    if not settings.has_any_provider:
        logger.error("No provider credentials configured; scans will return no books")

    providers = [
        OpenAIVisionProvider(
            http_client,
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.openai_timeout,
        ),
        GeminiVisionProvider(
            http_client,
            api_key=settings.gemini_api_key,
            models=settings.gemini_models,
            timeout=settings.gemini_timeout,
        ),
    ]
    orchestrator = RecognitionOrchestrator(
        providers,
        max_attempts=settings.max_attempts,
        backoff_base=settings.backoff_base,
    )

    correction_client = None
    if validate and settings.openai_api_key:
        correction_client = OpenAICorrectionClient(
            http_client,
            api_key=settings.openai_api_key,
            model=settings.validation_model,
        )
    validator = BatchValidator(
        correction_client,
        batch_size=settings.batch_size,
        timeout=settings.validation_timeout,
    )
    return ScanPipeline(orchestrator, validator, http_client=owned)
