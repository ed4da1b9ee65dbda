# ABOUTME: Request boundary for scans: image validation, quota gate, and pipeline invocation.
# ABOUTME: Only malformed requests and quota denials surface as errors to the caller.

import base64
import binascii
import logging
import re
from dataclasses import dataclass

from shelfscan.core.pipeline import ScanPipeline
from shelfscan.core.quota import UnlimitedQuota, UsageQuota
from shelfscan.recognition.provider import ScanImage
from shelfscan.recognition.types import ScanOutcome

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 20 * 1024 * 1024

_DATA_URL_RE = re.compile(r"^data:(?P<mime>image/[A-Za-z0-9.+-]+);base64,(?P<data>.+)$", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")


class InvalidScanRequestError(ValueError):
    """Raised when the scan request is missing or carries a malformed image."""


class QuotaExceededError(Exception):
    """Raised when the quota collaborator refuses a scan for this caller."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Scan quota exhausted for user {user_id}")
        self.user_id = user_id


@dataclass(frozen=True)
class ScanRequest:
    """A validated scan request: one image, ready for the providers."""

    image: ScanImage

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "ScanRequest":
        """Validate raw image bytes.

        Raises:
            InvalidScanRequestError: If the payload is empty, too large, or not an image type.
        """
        if not data:
            raise InvalidScanRequestError("image is empty")
        if len(data) > MAX_IMAGE_BYTES:
            raise InvalidScanRequestError(
                f"image is {len(data)} bytes, limit is {MAX_IMAGE_BYTES}"
            )
        if not mime_type.startswith("image/"):
            raise InvalidScanRequestError(f"unsupported content type: {mime_type}")
        return cls(image=ScanImage(data=data, mime_type=mime_type))

    @classmethod
    def from_data_url(cls, value: object) -> "ScanRequest":
        """Validate an image passed as a base64 data URL (data:image/...;base64,...).

        Raises:
            InvalidScanRequestError: If the value is missing, not a data URL, or not base64.
        """
        if not isinstance(value, str) or not value.strip():
            raise InvalidScanRequestError("imageDataURL required")

        match = _DATA_URL_RE.match(value.strip())
        if match is None:
            raise InvalidScanRequestError("imageDataURL must be a base64 image data URL")

        try:
            data = base64.b64decode(_WHITESPACE_RE.sub("", match.group("data")), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidScanRequestError("imageDataURL is not valid base64") from exc
        return cls.from_bytes(data, match.group("mime"))


class ScanService:
    """Entry point for one scan request.

    Quota collaborator failures are logged and ignored so an accounting outage
    never blocks scanning. Everything the pipeline absorbs stays absorbed.
    """

    def __init__(self, pipeline: ScanPipeline, quota: UsageQuota | None = None) -> None:
        self._pipeline = pipeline
        self._quota = quota or UnlimitedQuota()

    async def handle(self, request: ScanRequest, user_id: str | None = None) -> ScanOutcome:
        """Run a scan for an already-validated request.

        Raises:
            QuotaExceededError: If the quota collaborator refuses this caller.
        """
        if user_id and not await self._may_scan(user_id):
            raise QuotaExceededError(user_id)

        outcome = await self._pipeline.scan(request.image)

        if user_id:
            await self._record_scan(user_id)
        return outcome

    async def _may_scan(self, user_id: str) -> bool:
        try:
            return await self._quota.may_scan(user_id)
        except Exception as exc:
            logger.warning("Quota check failed for %s, allowing scan: %s", user_id, exc)
            return True

    async def _record_scan(self, user_id: str) -> None:
        try:
            await self._quota.record_scan(user_id)
        except Exception as exc:
            logger.warning("Recording scan usage failed for %s: %s", user_id, exc)
