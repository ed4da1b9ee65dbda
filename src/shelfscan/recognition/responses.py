# ABOUTME: Tagged union of the response shapes a vision/chat provider can return.
# ABOUTME: Each adapter classifies its raw JSON into exactly one shape, in a fixed priority order.

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TextResponse:
    """The provider produced text that should contain the JSON array."""

    text: str
    truncated: bool = False


@dataclass(frozen=True)
class RefusalResponse:
    """The provider declined to answer (refusal field, safety block)."""

    reason: str


@dataclass(frozen=True)
class TruncatedResponse:
    """Output hit the token limit before any text was produced."""

    detail: str


@dataclass(frozen=True)
class ErrorResponse:
    """A success status whose body still carries an API error object."""

    message: str


@dataclass(frozen=True)
class EmptyResponse:
    """None of the known fields held anything usable."""


ProviderResponse = (
    TextResponse | RefusalResponse | TruncatedResponse | ErrorResponse | EmptyResponse
)


def _first_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return {}


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error.get("status") or error)
    return str(error)


def classify_chat_completion(data: dict[str, Any]) -> ProviderResponse:
    """Classify an OpenAI-style chat completion body.

    Priority: error object, text (message.content, choice.content, choice.text,
    message.text), refusal, length truncation, empty.
    """
    if data.get("error"):
        return ErrorResponse(_error_message(data["error"]))

    choice = _first_dict(data.get("choices"))
    message = choice.get("message") if isinstance(choice.get("message"), dict) else {}
    finish_reason = choice.get("finish_reason")

    for value in (
        message.get("content"),
        choice.get("content"),
        choice.get("text"),
        message.get("text"),
    ):
        text = _text(value)
        if text:
            return TextResponse(text=text, truncated=finish_reason == "length")

    refusal = _text(message.get("refusal"))
    if refusal:
        return RefusalResponse(refusal)

    if finish_reason == "length":
        usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
        return TruncatedResponse(
            f"token limit reached after {usage.get('completion_tokens', 0)} completion tokens"
        )

    return EmptyResponse()


_GEMINI_REFUSAL_REASONS = frozenset({"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT"})


def classify_generate_content(data: dict[str, Any]) -> ProviderResponse:
    """Classify a Gemini-style generateContent body.

    Priority: error object, text (first non-empty part, candidate.text,
    content.text, top-level text), prompt block or safety finish (refusal),
    MAX_TOKENS (truncation), empty.
    """
    if data.get("error"):
        return ErrorResponse(_error_message(data["error"]))

    candidate = _first_dict(data.get("candidates"))
    content = candidate.get("content") if isinstance(candidate.get("content"), dict) else {}
    finish_reason = candidate.get("finishReason")

    parts = content.get("parts") if isinstance(content.get("parts"), list) else []
    texts = [_text(part.get("text")) for part in parts if isinstance(part, dict)]
    fallbacks = (candidate.get("text"), content.get("text"), data.get("text"))
    texts.extend(_text(value) for value in fallbacks)
    for text in texts:
        if text:
            return TextResponse(text=text, truncated=finish_reason == "MAX_TOKENS")

    feedback = data.get("promptFeedback") if isinstance(data.get("promptFeedback"), dict) else {}
    if feedback.get("blockReason"):
        return RefusalResponse(f"prompt blocked: {feedback['blockReason']}")
    if finish_reason in _GEMINI_REFUSAL_REASONS:
        return RefusalResponse(f"generation stopped: {finish_reason}")

    if finish_reason == "MAX_TOKENS":
        usage = data.get("usageMetadata") if isinstance(data.get("usageMetadata"), dict) else {}
        return TruncatedResponse(
            f"token limit reached with {usage.get('thoughtsTokenCount', 0)} reasoning tokens"
        )

    return EmptyResponse()
