# ABOUTME: Cleanup of raw detections: author formatting, title/author swap repair, junk flags.
# ABOUTME: Pure functions returning new candidates; the inputs are never modified.

import logging
import re
from dataclasses import replace

from shelfscan.recognition.dedup import PLACEHOLDER_AUTHORS, normalize_author
from shelfscan.recognition.types import BookCandidate, Confidence

logger = logging.getLogger(__name__)

# "John Smith", "J. Smith", "John A. Smith" at the start of a string.
_PERSON_NAME_RES = (
    re.compile(r"^[A-Z][a-z]+ [A-Z][a-z]+"),
    re.compile(r"^[A-Z]\. [A-Z][a-z]+"),
    re.compile(r"^[A-Z][a-z]+ [A-Z]\. [A-Z][a-z]+"),
)
_MAX_NAME_WORDS = 4
_TITLE_PREFIXES = ("the ", "a ", "an ")
_MIN_TITLE_LIKE_LENGTH = 20
_INITIAL_RE = re.compile(r"^[A-Za-z]\.?$")

# Spine-reading artifacts: pipes for rules between spines, "VOL" labels, stray symbols.
_PIPES_RE = re.compile(r"\|+")
_VOLUME_PREFIX_RE = re.compile(r"^vol\.?\s+")
_VOLUME_SUFFIX_RE = re.compile(r"\s+vol\.?$")
_WHITESPACE_RE = re.compile(r"\s+")
_DIGITS_ONLY_RE = re.compile(r"^[0-9\s.,;:!?]+$")
_NONSENSE_RE = re.compile(r"^(?:IIII|@@@@|%%%%|####|\|\|\|\|)$", re.IGNORECASE)
_GENERIC_WORDS = frozenset({"the", "a", "an", "book", "volume", "vol"})
_MIN_SPINE_TEXT_LENGTH = 3


def format_author_name(author: str) -> str:
    """Format an author name as capitalized "First Last".

    Examples:
        "JOHN SMITH" -> "John Smith"
        "smith, john" -> "John Smith"
        "mary j. jones" -> "Mary J. Jones"
    """
    name = author.strip()
    if not name:
        return ""

    parts = [p.strip() for p in name.split(",")]
    if len(parts) == 2 and all(parts):
        name = f"{parts[1]} {parts[0]}"

    return " ".join(_format_name_word(word) for word in name.split())


def _format_name_word(word: str) -> str:
    # Initials ("j.", "J.R.R.") stay upper-case; hyphenated parts are capitalized separately.
    if _INITIAL_RE.match(word) or "." in word.rstrip("."):
        return word.upper()
    return "-".join(part[:1].upper() + part[1:].lower() for part in word.split("-"))


def _looks_like_person_name(text: str) -> bool:
    if len(text.split()) > _MAX_NAME_WORDS:
        return False
    return any(pattern.match(text) for pattern in _PERSON_NAME_RES)


def _looks_like_title(text: str) -> bool:
    lowered = text.lower()
    return (
        lowered.startswith(_TITLE_PREFIXES)
        or len(text) > _MIN_TITLE_LIKE_LENGTH
        or len(text.split()) > _MAX_NAME_WORDS
    )


def fix_swapped_fields(candidate: BookCandidate) -> BookCandidate:
    """Swap title and author when the title reads like a name and the author like a title."""
    title = candidate.title.strip()
    author = candidate.author.strip()
    if not title or not author:
        return candidate
    if _looks_like_person_name(title) and _looks_like_title(author):
        logger.info("Swapping title/author: %r <-> %r", title, author)
        return replace(candidate, title=author, author=format_author_name(title))
    return candidate


def clean_candidates(candidates: list[BookCandidate]) -> list[BookCandidate]:
    """Repair swapped fields and format author names, preserving order."""
    cleaned = []
    for candidate in candidates:
        fixed = fix_swapped_fields(candidate)
        formatted = format_author_name(fixed.author)
        if formatted != fixed.author:
            fixed = replace(fixed, author=formatted)
        cleaned.append(fixed)
    return cleaned


def _spine_text(title: str) -> str:
    """Title as read off a spine: lowercased, pipes and "VOL" labels removed."""
    text = _WHITESPACE_RE.sub(" ", _PIPES_RE.sub(" ", title.lower())).strip()
    text = _VOLUME_PREFIX_RE.sub("", text)
    return _VOLUME_SUFFIX_RE.sub("", text).strip()


def junk_reason(candidate: BookCandidate) -> str | None:
    """Return why a detection is obviously not a book, or None if it is plausible.

    A real author rescues short or numeric titles ("1984" by George Orwell,
    "It" by Stephen King). Flagged detections are kept and reported as
    invalid; nothing is dropped here.
    """
    title = candidate.title.strip()
    has_author = normalize_author(candidate.author) not in PLACEHOLDER_AUTHORS

    if _NONSENSE_RE.match(title):
        return "unreadable spine text"
    if has_author:
        return None
    if _DIGITS_ONLY_RE.match(title):
        return "title is only digits or punctuation"

    text = _spine_text(title)
    if len(text) < _MIN_SPINE_TEXT_LENGTH:
        return "spine text too short"
    if candidate.confidence is Confidence.LOW and text in _GENERIC_WORDS:
        return "generic word without an author"
    return None
