# ABOUTME: Gemini vision recognition adapter (generateContent with inline image data).
# ABOUTME: Exposes a primary and an alternate model; capacity errors are tagged as overload.

from typing import Any

from shelfscan.recognition.http import HttpClient
from shelfscan.recognition.provider import RECOGNITION_INSTRUCTION, ScanImage, VisionAdapter
from shelfscan.recognition.responses import ProviderResponse, classify_generate_content

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_GEMINI_MODELS = ("gemini-2.5-pro", "gemini-2.5-flash")
DEFAULT_GEMINI_TIMEOUT = 45.0
_MAX_OUTPUT_TOKENS = 8000
_TEMPERATURE = 0.1


class GeminiVisionProvider(VisionAdapter):
    """Recognition provider backed by the Gemini generateContent API.

    HTTP 503 (unavailable) and 429 (resource exhausted) are reported as
    overload so the orchestrator can fall back to the alternate model.
    """

    provider_name = "gemini"
    detects_overload = True
    overload_status_codes = frozenset({429, 503})

    def __init__(
        self,
        http_client: HttpClient,
        *,
        api_key: str | None,
        models: tuple[str, ...] = DEFAULT_GEMINI_MODELS,
        timeout: float = DEFAULT_GEMINI_TIMEOUT,
        api_base: str = GEMINI_API_BASE,
    ) -> None:
        super().__init__(http_client, api_key=api_key, models=models, timeout=timeout)
        self._api_base = api_base.rstrip("/")

    def _endpoint(self, model: str) -> str:
        return f"{self._api_base}/models/{model}:generateContent"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"x-goog-api-key": api_key, "Content-Type": "application/json"}

    def _payload(self, image: ScanImage, model: str) -> dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": RECOGNITION_INSTRUCTION},
                        {"inline_data": {"mime_type": image.mime_type, "data": image.base64}},
                    ]
                }
            ],
            "generationConfig": {
                "temperature": _TEMPERATURE,
                "maxOutputTokens": _MAX_OUTPUT_TOKENS,
            },
        }

    def _classify(self, data: dict[str, Any]) -> ProviderResponse:
        return classify_generate_content(data)
