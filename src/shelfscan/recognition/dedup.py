# ABOUTME: Normalization and two-pass merge of book candidates from several providers.
# ABOUTME: Exact-key dedup, same-author title-containment merge, and a rerun after correction.

import re
from typing import TypeVar

from shelfscan.recognition.types import BookCandidate, ValidatedBook

# Anything with title and author strings; merge only reads those two fields.
Book = TypeVar("Book", BookCandidate, ValidatedBook)

# Pre-compiled regexes for normalization.
_QUOTES_RE = re.compile(r"[“”„«»]")
_APOSTROPHES_RE = re.compile(r"[‘’‚′]")
_DASHES_RE = re.compile(r"[–—−]")
_PUNCTUATION_RE = re.compile(r"[.,;:!?]")
_WHITESPACE_RE = re.compile(r"\s+")
# Repeated so "the the hobbit" and "smith jr iii" normalize in one pass.
_LEADING_ARTICLES_RE = re.compile(r"^(?:(?:the|a|an)\s+)+")
_GENERATIONAL_SUFFIX_RE = re.compile(r"(?:\s+(?:jr|sr|ii|iii|iv))+$")

# Author values that carry no identity and must never drive a merge.
PLACEHOLDER_AUTHORS = frozenset({"", "unknown", "unknown author"})

# Titles this short (after normalization) are too generic for containment matching.
_MIN_CONTAINMENT_TITLE_LENGTH = 3


def _normalize(text: str) -> str:
    """Shared steps: fold typography, lowercase, drop punctuation, collapse spaces."""
    folded = _QUOTES_RE.sub('"', text)
    folded = _APOSTROPHES_RE.sub("'", folded)
    folded = _DASHES_RE.sub("-", folded)
    folded = _PUNCTUATION_RE.sub("", folded.strip().lower())
    return _WHITESPACE_RE.sub(" ", folded).strip()


def normalize_title(title: str) -> str:
    """Normalize a title for comparison; also strips leading articles.

    Stable: normalizing an already-normalized title returns it unchanged.
    """
    return _LEADING_ARTICLES_RE.sub("", _normalize(title))


def normalize_author(author: str) -> str:
    """Normalize an author for comparison; also strips generational suffixes.

    Stable: normalizing an already-normalized author returns it unchanged.
    """
    return _GENERATIONAL_SUFFIX_RE.sub("", _normalize(author))


def _candidate_key(candidate: BookCandidate | ValidatedBook) -> str:
    return f"{normalize_title(candidate.title)}|{normalize_author(candidate.author)}"


def _authors_match(first: str, second: str) -> bool:
    """Whether two normalized authors name the same person.

    Equal strings match, as does a surname-only form against a full name
    ("fitzgerald" vs "f scott fitzgerald"). Placeholders never match.
    """
    if first in PLACEHOLDER_AUTHORS or second in PLACEHOLDER_AUTHORS:
        return False
    if first == second:
        return True
    shorter, longer = sorted((first, second), key=len)
    return longer.endswith(" " + shorter)


def _titles_overlap(first: str, second: str) -> bool:
    if len(first) <= _MIN_CONTAINMENT_TITLE_LENGTH or len(second) <= _MIN_CONTAINMENT_TITLE_LENGTH:
        return False
    return first in second or second in first


def _dedupe_exact(candidates: list[Book]) -> list[Book]:
    """Pass 1: keep the first candidate seen for each normalized title|author key."""
    seen: set[str] = set()
    survivors: list[Book] = []
    for candidate in candidates:
        key = _candidate_key(candidate)
        if key in seen:
            continue
        seen.add(key)
        survivors.append(candidate)
    return survivors


def _merge_near_duplicates(candidates: list[Book]) -> list[Book]:
    """Pass 2: drop candidates whose title contains (or is contained in) an accepted one.

    Only applies when the authors match. Two distinct short-titled books by the
    same author can be merged; titles of three characters or fewer are exempt.
    """
    accepted: list[tuple[Book, str, str]] = []
    for candidate in candidates:
        title = normalize_title(candidate.title)
        author = normalize_author(candidate.author)
        is_duplicate = any(
            _authors_match(author, kept_author) and _titles_overlap(title, kept_title)
            for _, kept_title, kept_author in accepted
        )
        if not is_duplicate:
            accepted.append((candidate, title, author))
    return [candidate for candidate, _, _ in accepted]


def merge(candidates: list[Book]) -> list[Book]:
    """Merge candidates into a unique set.

    Deterministic and idempotent: merge(merge(xs)) == merge(xs). Input order
    matters (first seen wins), so the primary provider's output goes first.
    Candidates are never modified, only selected.
    """
    return _merge_near_duplicates(_dedupe_exact(list(candidates)))


def merge_validated(books: list[ValidatedBook]) -> list[ValidatedBook]:
    """Collapse valid books that became duplicates after correction.

    Two detections can be corrected to the same book ("Dune" and a misread
    "Dnue" both become "Dune" by Frank Herbert). Invalid books are
    left in place and never absorb a valid one.
    """
    kept = {id(book) for book in merge([book for book in books if book.is_valid])}
    return [book for book in books if not book.is_valid or id(book) in kept]
