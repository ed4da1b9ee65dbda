# ABOUTME: Drives recognition providers with bounded retries, model fallback, and concurrency.
# ABOUTME: Always yields one result per provider; a failing provider never fails the scan.

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from shelfscan.recognition.provider import (
    AttemptStatus,
    RecognitionAttempt,
    RecognitionProvider,
    ScanImage,
)
from shelfscan.recognition.types import BookCandidate, ProviderDiagnostics

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 2
DEFAULT_BACKOFF_BASE = 0.8

# Only transport-level failures are retried. An OK attempt with zero books is
# a legitimate answer for this round, and overload goes to model fallback.
_RETRYABLE_STATUSES = frozenset({AttemptStatus.FAILED, AttemptStatus.TIMED_OUT})


@dataclass(frozen=True)
class ProviderResult:
    """The candidates one provider contributed plus its diagnostics."""

    name: str
    candidates: tuple[BookCandidate, ...]
    diagnostics: ProviderDiagnostics


def _needs_fallback(attempt: RecognitionAttempt) -> bool:
    if attempt.status is AttemptStatus.OVERLOADED:
        return True
    return attempt.succeeded and not attempt.candidates


def _to_result(name: str, attempt: RecognitionAttempt, attempts: int) -> ProviderResult:
    return ProviderResult(
        name=name,
        candidates=attempt.candidates,
        diagnostics=ProviderDiagnostics(
            count=len(attempt.candidates),
            succeeded=attempt.succeeded,
            model=attempt.model,
            attempts=attempts,
            error=attempt.detail,
        ),
    )


class RecognitionOrchestrator:
    """Runs every configured provider concurrently and collects their candidates.

    Per provider: up to max_attempts calls with linear backoff
    (backoff_base * attempt_index) on transport failures and timeouts. Providers
    with several model variants get exactly one fallback to the second variant
    when the primary is overloaded or answers with nothing.
    """

    def __init__(
        self,
        providers: Sequence[RecognitionProvider],
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self._providers = list(providers)
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    async def _attempt_with_retries(
        self, provider: RecognitionProvider, image: ScanImage, model: str | None
    ) -> tuple[RecognitionAttempt, int]:
        """Call one model variant, retrying transport failures.

        Returns:
            (final attempt, number of requests made)
        """
        attempt_index = 1
        while True:
            attempt = await provider.recognize(image, model)
            if attempt.status not in _RETRYABLE_STATUSES or attempt_index >= self._max_attempts:
                return attempt, attempt_index

            delay = self._backoff_base * attempt_index
            logger.warning(
                "%s %s, retrying in %.1fs (attempt %d/%d)",
                provider.name,
                attempt.status.value,
                delay,
                attempt_index,
                self._max_attempts,
            )
            await asyncio.sleep(delay)
            attempt_index += 1

    async def recognize_with_fallback(
        self, provider: RecognitionProvider, image: ScanImage
    ) -> ProviderResult:
        """Produce the best available candidates from one provider."""
        models = provider.models
        primary, attempts = await self._attempt_with_retries(provider, image, models[0])

        if len(models) < 2 or not _needs_fallback(primary):
            return _to_result(provider.name, primary, attempts)

        logger.info(
            "%s/%s %s, falling back to %s",
            provider.name,
            models[0],
            "overloaded" if primary.status is AttemptStatus.OVERLOADED else "found nothing",
            models[1],
        )
        alternate, fallback_attempts = await self._attempt_with_retries(provider, image, models[1])
        attempts += fallback_attempts

        # Keep the primary's empty-but-successful answer over a failed fallback.
        if alternate.candidates or not primary.succeeded:
            return _to_result(provider.name, alternate, attempts)
        return _to_result(provider.name, primary, attempts)

    async def recognize_all(self, image: ScanImage) -> list[ProviderResult]:
        """Run all providers concurrently and wait for every one of them.

        Results come back in provider order, so the primary provider's
        candidates always precede the secondary's.
        """
        outcomes = await asyncio.gather(
            *(self.recognize_with_fallback(provider, image) for provider in self._providers),
            return_exceptions=True,
        )

        results: list[ProviderResult] = []
        for provider, outcome in zip(self._providers, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "%s raised unexpectedly: %s", provider.name, outcome, exc_info=outcome
                )
                outcome = ProviderResult(
                    name=provider.name,
                    candidates=(),
                    diagnostics=ProviderDiagnostics(
                        count=0, succeeded=False, error=str(outcome) or type(outcome).__name__
                    ),
                )
            results.append(outcome)
        return results
