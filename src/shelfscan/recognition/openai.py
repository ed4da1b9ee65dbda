# ABOUTME: OpenAI vision recognition adapter (chat completions with an image part).
# ABOUTME: Single model variant; capacity errors are treated as ordinary, retryable failures.

from typing import Any

from shelfscan.recognition.http import HttpClient
from shelfscan.recognition.provider import RECOGNITION_INSTRUCTION, ScanImage, VisionAdapter
from shelfscan.recognition.responses import ProviderResponse, classify_chat_completion

OPENAI_API_BASE = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_OPENAI_TIMEOUT = 60.0
_MAX_TOKENS = 4000


class OpenAIVisionProvider(VisionAdapter):
    """Recognition provider backed by the OpenAI chat completions API."""

    provider_name = "openai"

    def __init__(
        self,
        http_client: HttpClient,
        *,
        api_key: str | None,
        model: str = DEFAULT_OPENAI_MODEL,
        timeout: float = DEFAULT_OPENAI_TIMEOUT,
        api_base: str = OPENAI_API_BASE,
    ) -> None:
        super().__init__(http_client, api_key=api_key, models=(model,), timeout=timeout)
        self._api_base = api_base.rstrip("/")

    def _endpoint(self, model: str) -> str:
        return f"{self._api_base}/chat/completions"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    def _payload(self, image: ScanImage, model: str) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": RECOGNITION_INSTRUCTION},
                        {"type": "image_url", "image_url": {"url": image.data_url}},
                    ],
                }
            ],
            "max_tokens": _MAX_TOKENS,
        }

    def _classify(self, data: dict[str, Any]) -> ProviderResponse:
        return classify_chat_completion(data)
