# ABOUTME: Core scan orchestration: the pipeline, the request boundary, and quota collaborator.
# ABOUTME: Exports ScanPipeline, build_pipeline, ScanService, and ScanRequest.

from shelfscan.core.pipeline import ScanPipeline, build_pipeline
from shelfscan.core.quota import UnlimitedQuota, UsageQuota
from shelfscan.core.service import (
    InvalidScanRequestError,
    QuotaExceededError,
    ScanRequest,
    ScanService,
)

__all__ = [
    "InvalidScanRequestError",
    "QuotaExceededError",
    "ScanPipeline",
    "ScanRequest",
    "ScanService",
    "UnlimitedQuota",
    "UsageQuota",
    "build_pipeline",
]
