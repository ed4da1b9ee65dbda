# ABOUTME: Core data structures for book detections flowing through the scan pipeline.
# ABOUTME: BookCandidate -> ValidatedBook, with per-provider diagnostics in ScanOutcome.

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Confidence(str, Enum):
    """How sure a provider (or the correction pass) is about a detection."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: Any) -> "Confidence":
        """Parse a loosely-typed confidence value, defaulting to LOW."""
        if isinstance(value, Confidence):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.LOW
        return cls.LOW


@dataclass(frozen=True)
class BookCandidate:
    """A single book detection before cross-provider consolidation.

    Candidates are provider-agnostic once emitted by an adapter. Title and
    author may be empty or garbage; downstream stages treat "" as unknown.
    """

    title: str
    author: str = ""
    confidence: Confidence = Confidence.LOW

    def to_dict(self) -> dict[str, str]:
        return {
            "title": self.title,
            "author": self.author,
            "confidence": self.confidence.value,
        }


@dataclass(frozen=True)
class ValidatedBook:
    """A candidate after the correction pass.

    Invalid entries are kept (never dropped) with confidence downgraded to LOW,
    so the caller decides what to discard.
    """

    title: str
    author: str = ""
    confidence: Confidence = Confidence.LOW
    is_valid: bool = True
    reason: str | None = None

    @classmethod
    def from_candidate(cls, candidate: BookCandidate) -> "ValidatedBook":
        """Promote a candidate unchanged (the pass-through path)."""
        return cls(
            title=candidate.title,
            author=candidate.author,
            confidence=candidate.confidence,
        )

    def invalidated(self, reason: str | None = None) -> "ValidatedBook":
        return replace(self, is_valid=False, confidence=Confidence.LOW, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "confidence": self.confidence.value,
            "isValid": self.is_valid,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ProviderDiagnostics:
    """What one provider contributed to a scan.

    Attributes:
        count: Number of candidates the provider produced.
        succeeded: Whether the provider answered at all (zero books can still succeed).
        model: The model variant whose result was used, if any.
        attempts: Total outbound requests made across retries and fallback.
        error: Last failure description, when the provider did not succeed.
    """

    count: int
    succeeded: bool
    model: str | None = None
    attempts: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "succeeded": self.succeeded,
            "model": self.model,
            "attempts": self.attempts,
            "error": self.error,
        }


@dataclass(frozen=True)
class ScanOutcome:
    """Pipeline return value: the final books plus per-provider diagnostics."""

    books: tuple[ValidatedBook, ...] = ()
    provider_diagnostics: dict[str, ProviderDiagnostics] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the response-body shape."""
        return {
            "books": [book.to_dict() for book in self.books],
            "providerDiagnostics": {
                name: diag.to_dict() for name, diag in self.provider_diagnostics.items()
            },
        }
