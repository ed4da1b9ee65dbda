# ABOUTME: Batched text-only correction pass over merged candidates.
# ABOUTME: Fixes swapped fields and OCR errors, flags non-books, and never drops an entry.

import asyncio
import json
import logging
from typing import Any, Protocol, runtime_checkable

from shelfscan.recognition.http import HttpClient, RecognitionFetchError
from shelfscan.recognition.repair import coerce_text, extract_json_array
from shelfscan.recognition.responses import (
    ErrorResponse,
    TextResponse,
    classify_chat_completion,
)
from shelfscan.recognition.types import BookCandidate, Confidence, ValidatedBook

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_VALIDATION_TIMEOUT = 60.0
DEFAULT_VALIDATION_MODEL = "gpt-4o-mini"
_VALIDATION_MAX_TOKENS = 2000
_VALIDATION_TEMPERATURE = 0.1

_CONFIDENCE_VALUES = frozenset(c.value for c in Confidence)

_PROMPT_TEMPLATE = """You are a book expert checking books detected on a bookshelf photo.

DETECTED BOOKS:
{books}

For each numbered book:
1. Mark isValid false ONLY if it is clearly not a real book (random words, OCR garbage).
   Books without an author and partial titles are valid.
2. If title and author are swapped, swap them back.
3. Fix obvious OCR errors in title and author.

Return ONLY a JSON array with exactly {count} objects, in the same order as the
input, with no markdown or explanations:
[{{"index": 1, "isValid": true, "title": "Corrected Title", "author": "Corrected Author",
"confidence": "high|medium|low", "reason": "brief explanation"}}]"""


@runtime_checkable
class CorrectionClient(Protocol):
    """Protocol for a text-only language model used by the correction pass."""

    async def complete(self, prompt: str) -> str: ...


class OpenAICorrectionClient:
    """Correction client backed by a text-only OpenAI chat completion."""

    def __init__(
        self,
        http_client: HttpClient,
        *,
        api_key: str,
        model: str = DEFAULT_VALIDATION_MODEL,
        api_base: str = "https://api.openai.com/v1",
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._model = model
        self._api_base = api_base.rstrip("/")

    async def complete(self, prompt: str) -> str:
        """Send one prompt and return the reply text ("" if the reply had none).

        Raises:
            RecognitionFetchError: On transport failures or an API error body.
        """
        data = await self._http.post_json(
            f"{self._api_base}/chat/completions",
            {
                "model": self._model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": _VALIDATION_MAX_TOKENS,
                "temperature": _VALIDATION_TEMPERATURE,
            },
            {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"},
        )
        response = classify_chat_completion(data)
        if isinstance(response, ErrorResponse):
            raise RecognitionFetchError(f"Correction API error: {response.message}")
        if isinstance(response, TextResponse):
            return response.text
        return ""


def build_correction_prompt(batch: list[BookCandidate]) -> str:
    """Render a batch as a numbered list inside the correction instructions."""
    lines = [
        f"{number}. {json.dumps(candidate.to_dict(), ensure_ascii=False)}"
        for number, candidate in enumerate(batch, start=1)
    ]
    return _PROMPT_TEMPLATE.format(books="\n".join(lines), count=len(batch))


def _is_explicitly_false(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "false"
    return value is False


def _align_analyses(analyses: list[Any], size: int) -> list[Any]:
    """Line analyses up with the batch, one slot per input entry.

    When every entry carries a distinct 1-based index within range, results are
    placed by index. Otherwise they are taken positionally; missing slots are None.
    """
    indices = [a.get("index") if isinstance(a, dict) else None for a in analyses]
    in_range = all(type(i) is int and 1 <= i <= size for i in indices)
    if indices and in_range and len(set(indices)) == len(indices):
        aligned: list[Any] = [None] * size
        for index, analysis in zip(indices, analyses):
            aligned[index - 1] = analysis
        return aligned

    positional = list(analyses[:size])
    return positional + [None] * (size - len(positional))


def apply_correction(candidate: BookCandidate, analysis: Any) -> ValidatedBook:
    """Combine a candidate with its correction-pass analysis.

    Missing or malformed analyses pass the candidate through unchanged. An
    explicit isValid false keeps the entry but downgrades it to low confidence.
    """
    if not isinstance(analysis, dict):
        return ValidatedBook.from_candidate(candidate)

    title = coerce_text(analysis.get("title")) or candidate.title
    author = coerce_text(analysis.get("author")) or candidate.author
    raw_confidence = coerce_text(analysis.get("confidence")).lower()
    confidence = candidate.confidence
    if raw_confidence in _CONFIDENCE_VALUES:
        confidence = Confidence(raw_confidence)
    reason = coerce_text(analysis.get("reason")) or None
    corrected = (title, author) != (candidate.title, candidate.author)

    book = ValidatedBook(
        title=title,
        author=author,
        confidence=confidence,
        reason=reason if corrected else None,
    )
    if _is_explicitly_false(analysis.get("isValid")):
        return book.invalidated(reason or "rejected by correction pass")
    return book


class BatchValidator:
    """Re-submits merged candidates, in fixed-size batches, for correction.

    Always returns exactly one ValidatedBook per input, in input order. A batch
    that fails (transport error, timeout, unparseable reply) passes its
    candidates through unchanged; other batches are unaffected.
    """

    def __init__(
        self,
        client: CorrectionClient | None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout: float = DEFAULT_VALIDATION_TIMEOUT,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self._client = client
        self._batch_size = batch_size
        self._timeout = timeout

    async def validate(self, candidates: list[BookCandidate]) -> list[ValidatedBook]:
        """Run the correction pass over all candidates, one batch at a time."""
        if self._client is None:
            logger.info(
                "No correction client configured; passing %d books through", len(candidates)
            )
            return [ValidatedBook.from_candidate(c) for c in candidates]

        batches = [
            candidates[i : i + self._batch_size]
            for i in range(0, len(candidates), self._batch_size)
        ]
        validated: list[ValidatedBook] = []
        for number, batch in enumerate(batches, start=1):
            logger.info("Validating batch %d/%d (%d books)", number, len(batches), len(batch))
            validated.extend(await self._validate_batch(self._client, batch, number))
        return validated

    async def _validate_batch(
        self, client: CorrectionClient, batch: list[BookCandidate], number: int
    ) -> list[ValidatedBook]:
        passthrough = [ValidatedBook.from_candidate(c) for c in batch]
        try:
            reply = await asyncio.wait_for(
                client.complete(build_correction_prompt(batch)), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Batch %d timed out after %.0fs; passing through", number, self._timeout)
            return passthrough
        except RecognitionFetchError as exc:
            logger.warning("Batch %d failed: %s; passing through", number, exc)
            return passthrough
        except Exception as exc:
            logger.warning(
                "Batch %d raised unexpectedly: %s; passing through", number, exc, exc_info=exc
            )
            return passthrough

        analyses = extract_json_array(reply) if isinstance(reply, str) and reply else None
        if analyses is None:
            logger.warning("Batch %d reply unparseable; passing through: %.200s", number, reply)
            return passthrough

        if len(analyses) < len(batch):
            logger.warning(
                "Batch %d partial reply: %d of %d analyses", number, len(analyses), len(batch)
            )

        aligned = _align_analyses(analyses, len(batch))
        results = [apply_correction(c, a) for c, a in zip(batch, aligned)]
        invalid = sum(1 for book in results if not book.is_valid)
        if invalid:
            logger.info("Batch %d flagged %d invalid entries", number, invalid)
        return results
