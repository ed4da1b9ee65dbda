# ABOUTME: Best-effort recovery of a JSON array of book entries from raw model output.
# ABOUTME: Handles markdown fences, surrounding prose, and output truncated mid-object.

import json
import logging
import re
from typing import Any

from shelfscan.recognition.types import BookCandidate, Confidence

logger = logging.getLogger(__name__)

_OPEN_FENCE_RE = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\n?")
_CLOSE_FENCE_RE = re.compile(r"\n?[ \t]*```$")

# A complete, flat object that mentions a title key. Nested braces are excluded
# so a match never spans two entries.
_CANDIDATE_OBJECT_RE = re.compile(r"\{[^{}]*\"title\"\s*:[^{}]*\}")

_TRAILING_COMMA_RE = re.compile(r",\s*$")

_CLOSERS = {"[": "]", "{": "}"}


def strip_code_fence(text: str) -> str:
    """Remove a leading/trailing triple-backtick fence (with optional language tag).

    An opening fence without a closing one (truncated output) is still removed.
    """
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = _OPEN_FENCE_RE.sub("", stripped, count=1)
    if stripped.endswith("```"):
        stripped = _CLOSE_FENCE_RE.sub("", stripped, count=1)
    return stripped.strip()


def _load_array(text: str) -> list[Any] | None:
    """Parse text as JSON and return it only if it is a non-empty array."""
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None
    if isinstance(parsed, list) and parsed:
        return parsed
    return None


def extract_json_array(text: str) -> list[Any] | None:
    """Find a JSON array in text by direct parse, then by bracketed slice.

    Returns:
        The parsed non-empty array, or None if neither strategy succeeds.
    """
    cleaned = strip_code_fence(text)

    direct = _load_array(cleaned)
    if direct is not None:
        logger.debug("Parsed %d entries (direct JSON)", len(direct))
        return direct

    start = cleaned.find("[")
    end = cleaned.rfind("]")
    if start != -1 and end > start:
        sliced = _load_array(cleaned[start : end + 1])
        if sliced is not None:
            logger.debug("Parsed %d entries (extracted from text)", len(sliced))
            return sliced

    return None


def _close_dangling_string_value(fragment: str) -> str:
    """Insert a closing quote when the text appears to end mid-string-value.

    The heuristic: if the last double quote comes before the last colon, the
    value after that colon was never terminated. The quote goes just before the
    next unescaped comma or closing brace, or at the end if there is none.
    """
    last_colon = fragment.rfind(":")
    if last_colon == -1 or fragment.rfind('"') > last_colon:
        return fragment

    for i in range(last_colon + 1, len(fragment)):
        if fragment[i] in ",}" and fragment[i - 1] != "\\":
            return fragment[:i] + '"' + fragment[i:]
    return fragment + '"'


def _scan_structure(fragment: str) -> tuple[list[str], bool]:
    """Walk the fragment and report unclosed brackets and an unterminated string.

    Brackets inside string values are ignored. Returns the stack of openers
    still pending (outermost first) and whether the text ends inside a string.
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    for char in fragment:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(char)
        elif char in "]}" and stack:
            stack.pop()
    return stack, in_string


def repair_truncated_json(text: str) -> str | None:
    """Structurally repair a JSON array that was cut off mid-output.

    Pure function: works on the slice starting at the first "[" and returns a
    repaired string, or None when there is no array to repair. The result is
    not guaranteed to parse.
    """
    start = text.find("[")
    if start == -1:
        return None

    fragment = _close_dangling_string_value(text[start:].rstrip())
    stack, in_string = _scan_structure(fragment)
    if in_string:
        fragment += '"'
    fragment = _TRAILING_COMMA_RE.sub("", fragment)
    return fragment + "".join(_CLOSERS[opener] for opener in reversed(stack))


def extract_candidate_objects(text: str) -> list[dict[str, Any]]:
    """Pull every complete, flat title-bearing object out of raw text.

    Each match is parsed independently; matches that fail to parse are dropped.
    """
    objects: list[dict[str, Any]] = []
    for match in _CANDIDATE_OBJECT_RE.finditer(text):
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            objects.append(parsed)
    return objects


def coerce_text(value: Any) -> str:
    """Coerce a loosely-typed JSON value to a stripped string ("" for null or objects)."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def candidate_from_entry(entry: Any) -> BookCandidate | None:
    """Build a BookCandidate from one parsed entry, or None if it is not an object."""
    if not isinstance(entry, dict):
        return None
    return BookCandidate(
        title=coerce_text(entry.get("title")),
        author=coerce_text(entry.get("author")),
        confidence=Confidence.parse(entry.get("confidence")),
    )


def parse_candidates(text: str | None) -> list[BookCandidate]:
    """Turn a raw provider text blob into book candidates. Never raises.

    Strategies, first non-empty result wins:
    1. Direct parse of the fence-stripped text
    2. The first "[" through the last "]"
    3. Structural repair of truncated output
    4. Independent extraction of complete candidate objects

    Returns an empty list when nothing usable is found.
    """
    if not text or not text.strip():
        return []

    entries = extract_json_array(text)

    if entries is None:
        repaired = repair_truncated_json(strip_code_fence(text))
        if repaired is not None:
            entries = _load_array(repaired)
            if entries is not None:
                logger.debug("Parsed %d entries (repaired truncated JSON)", len(entries))

    if entries is None:
        objects = extract_candidate_objects(text)
        if objects:
            logger.debug("Parsed %d entries (reconstructed from objects)", len(objects))
            entries = objects

    if entries is None:
        logger.warning("No JSON array recoverable from response: %.200s", text)
        return []

    return [c for c in (candidate_from_entry(e) for e in entries) if c is not None]
