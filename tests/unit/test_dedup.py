# ABOUTME: Unit tests for candidate normalization and the two-pass merge.
# ABOUTME: Covers idempotence, normalization stability, containment merges, and ordering.

import pytest

from shelfscan.recognition.dedup import merge, merge_validated, normalize_author, normalize_title
from shelfscan.recognition.types import BookCandidate, Confidence, ValidatedBook

TITLES = [
    "The Great Gatsby",
    "  the   THE hobbit ",
    "Don’t Panic!",
    "A Tale of Two Cities",
    "Dune: Messiah",
    "“Emma”",
    "The",
    "An A Z",
    "",
]

AUTHORS = [
    "F. Scott Fitzgerald",
    "Martin Luther King, Jr.",
    "John Smith Jr. III",
    "Jr",
    "Ursula K. Le Guin",
    "",
]


class TestNormalizeTitle:
    """Tests for normalize_title()."""

    def test_strips_leading_article_and_case(self) -> None:
        """Leading articles and case differences are ignored."""
        assert normalize_title("The Great Gatsby") == "great gatsby"

    def test_removes_punctuation(self) -> None:
        """Sentence punctuation does not affect the comparison form."""
        assert normalize_title("Dune: Messiah!") == "dune messiah"

    def test_folds_typographic_apostrophes(self) -> None:
        """Curly and straight apostrophes compare equal."""
        assert normalize_title("Don’t Panic") == normalize_title("Don't Panic")

    def test_folds_dashes(self) -> None:
        """En and em dashes compare equal to a hyphen."""
        assert normalize_title("Catch–22") == normalize_title("Catch-22")

    @pytest.mark.parametrize("title", TITLES)
    def test_is_stable(self, title: str) -> None:
        """Normalizing an already-normalized title changes nothing."""
        once = normalize_title(title)
        assert normalize_title(once) == once


class TestNormalizeAuthor:
    """Tests for normalize_author()."""

    def test_strips_generational_suffix(self) -> None:
        """Jr./Sr./roman numeral suffixes are dropped."""
        assert normalize_author("Martin Luther King Jr.") == "martin luther king"

    def test_keeps_article_like_words(self) -> None:
        """Authors never lose leading words."""
        assert normalize_author("A. A. Milne") == "a a milne"

    @pytest.mark.parametrize("author", AUTHORS)
    def test_is_stable(self, author: str) -> None:
        """Normalizing an already-normalized author changes nothing."""
        once = normalize_author(author)
        assert normalize_author(once) == once


class TestMerge:
    """Tests for merge()."""

    def test_exact_duplicates_collapse(self) -> None:
        """Candidates equal after normalization collapse to one."""
        result = merge(
            [
                BookCandidate("Dune", "Frank Herbert", Confidence.HIGH),
                BookCandidate("dune", "frank herbert", Confidence.MEDIUM),
            ]
        )
        assert len(result) == 1

    def test_first_seen_wins(self) -> None:
        """The survivor is the first candidate, including its confidence."""
        first = BookCandidate("Dune", "Frank Herbert", Confidence.LOW)
        result = merge([first, BookCandidate("DUNE", "Frank Herbert", Confidence.HIGH)])
        assert result == [first]

    def test_near_duplicate_containment(self) -> None:
        """A shortened title by the same author merges into the full one."""
        full = BookCandidate("The Great Gatsby", "F. Scott Fitzgerald", Confidence.HIGH)
        short = BookCandidate("Great Gatsby", "Fitzgerald", Confidence.MEDIUM)
        assert merge([full, short]) == [full]

    def test_subtitle_variant_merges(self) -> None:
        """A title contained in a longer one merges when authors are equal."""
        result = merge(
            [
                BookCandidate("Sapiens", "Yuval Noah Harari"),
                BookCandidate("Sapiens: A Brief History of Humankind", "Yuval Noah Harari"),
            ]
        )
        assert [c.title for c in result] == ["Sapiens"]

    def test_different_authors_do_not_merge(self) -> None:
        """Same title by different authors stays separate."""
        result = merge(
            [
                BookCandidate("Collected Poems", "Sylvia Plath"),
                BookCandidate("Collected Poems", "Philip Larkin"),
            ]
        )
        assert len(result) == 2

    def test_unknown_authors_never_drive_containment(self) -> None:
        """Placeholder authors do not make near-duplicate titles merge."""
        result = merge(
            [
                BookCandidate("History", ""),
                BookCandidate("History of Rome", ""),
                BookCandidate("History of Greece", "Unknown"),
            ]
        )
        assert len(result) == 3

    def test_short_titles_are_exempt_from_containment(self) -> None:
        """Titles of three characters or fewer are not substring-matched."""
        result = merge(
            [
                BookCandidate("It", "Stephen King"),
                BookCandidate("It Ends With Us", "Stephen King"),
            ]
        )
        assert len(result) == 2

    def test_preserves_input_order(self) -> None:
        """Survivors keep their relative input order."""
        books = [
            BookCandidate("Foundation", "Isaac Asimov"),
            BookCandidate("Dune", "Frank Herbert"),
            BookCandidate("Emma", "Jane Austen"),
        ]
        assert merge(books) == books

    def test_is_idempotent(self) -> None:
        """Merging a merged list changes nothing."""
        books = [
            BookCandidate("The Great Gatsby", "F. Scott Fitzgerald"),
            BookCandidate("Great Gatsby", "Fitzgerald"),
            BookCandidate("Gatsby", "F. Scott Fitzgerald"),
            BookCandidate("Dune", "Frank Herbert"),
            BookCandidate("DUNE", "Frank Herbert"),
            BookCandidate("It", "Stephen King"),
            BookCandidate("History", ""),
            BookCandidate("History of Rome", ""),
        ]
        once = merge(books)
        assert merge(once) == once

    def test_empty_input(self) -> None:
        """Nothing in, nothing out."""
        assert merge([]) == []

    def test_does_not_mutate_input(self) -> None:
        """The input list is left untouched."""
        books = [BookCandidate("Dune", "Frank Herbert"), BookCandidate("Dune", "Frank Herbert")]
        merge(books)
        assert len(books) == 2


class TestMergeValidated:
    """Tests for merge_validated()."""

    def test_corrected_duplicates_collapse(self) -> None:
        """Two books corrected to the same title merge, the first one wins."""
        first = ValidatedBook("Dune", "Frank Herbert", Confidence.HIGH)
        second = ValidatedBook("Dune", "Frank Herbert", Confidence.MEDIUM, reason="fixed spelling")
        result = merge_validated([first, ValidatedBook("Emma", "Jane Austen"), second])
        assert result == [first, ValidatedBook("Emma", "Jane Austen")]
        assert result[0] is first

    def test_invalid_books_stay_in_place(self) -> None:
        """Invalid books neither merge nor absorb valid ones."""
        junk = ValidatedBook("Dune", "Frank Herbert").invalidated("not a book")
        valid = ValidatedBook("Dune", "Frank Herbert", Confidence.HIGH)
        result = merge_validated([junk, valid, junk])
        assert result == [junk, valid, junk]

    def test_no_duplicates_is_unchanged(self) -> None:
        """Distinct books come back in order."""
        books = [ValidatedBook("Dune", "Frank Herbert"), ValidatedBook("Emma", "Jane Austen")]
        assert merge_validated(books) == books
