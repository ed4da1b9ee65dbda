# ABOUTME: Recognition package: provider adapters, output repair, merge, and correction pass.
# ABOUTME: Exports the core data types and stage entry points used by the scan pipeline.

from shelfscan.recognition.dedup import merge, normalize_author, normalize_title
from shelfscan.recognition.orchestrator import ProviderResult, RecognitionOrchestrator
from shelfscan.recognition.provider import (
    AttemptStatus,
    RecognitionAttempt,
    RecognitionProvider,
    ScanImage,
)
from shelfscan.recognition.repair import parse_candidates
from shelfscan.recognition.types import (
    BookCandidate,
    Confidence,
    ProviderDiagnostics,
    ScanOutcome,
    ValidatedBook,
)
from shelfscan.recognition.validator import BatchValidator, CorrectionClient

__all__ = [
    "AttemptStatus",
    "BatchValidator",
    "BookCandidate",
    "Confidence",
    "CorrectionClient",
    "ProviderDiagnostics",
    "ProviderResult",
    "RecognitionAttempt",
    "RecognitionOrchestrator",
    "RecognitionProvider",
    "ScanImage",
    "ScanOutcome",
    "ValidatedBook",
    "merge",
    "normalize_author",
    "normalize_title",
    "parse_candidates",
]
