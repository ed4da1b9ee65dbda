# ABOUTME: Unit tests for recovering book entries from raw model output.
# ABOUTME: Covers fences, surrounding prose, truncated output, and object extraction.

from shelfscan.recognition.repair import (
    extract_candidate_objects,
    extract_json_array,
    parse_candidates,
    repair_truncated_json,
    strip_code_fence,
)
from shelfscan.recognition.types import BookCandidate, Confidence

DUNE_JSON = '[{"title": "Dune", "author": "Frank Herbert", "confidence": "high"}]'


class TestStripCodeFence:
    """Tests for strip_code_fence()."""

    def test_removes_json_fence(self) -> None:
        """A ```json fence around the array is removed."""
        assert strip_code_fence(f"```json\n{DUNE_JSON}\n```") == DUNE_JSON

    def test_removes_unclosed_fence(self) -> None:
        """An opening fence without a closing one is still removed."""
        assert strip_code_fence('```\n[{"title": "Du') == '[{"title": "Du'

    def test_leaves_plain_text_alone(self) -> None:
        """Text without fences is returned stripped."""
        assert strip_code_fence(f"  {DUNE_JSON}  ") == DUNE_JSON


class TestExtractJsonArray:
    """Tests for extract_json_array()."""

    def test_direct_parse(self) -> None:
        """A bare JSON array parses directly."""
        assert extract_json_array(DUNE_JSON) == [
            {"title": "Dune", "author": "Frank Herbert", "confidence": "high"}
        ]

    def test_array_inside_prose(self) -> None:
        """An array surrounded by commentary is sliced out."""
        text = f"Here are the books I found:\n{DUNE_JSON}\nLet me know if you need more."
        result = extract_json_array(text)
        assert result is not None
        assert result[0]["title"] == "Dune"

    def test_empty_array_is_not_success(self) -> None:
        """An empty array counts as no result."""
        assert extract_json_array("[]") is None

    def test_object_is_not_an_array(self) -> None:
        """A top-level object is not accepted as the array."""
        assert extract_json_array('{"title": "Dune"}') is None


class TestRepairTruncatedJson:
    """Tests for repair_truncated_json()."""

    def test_no_bracket_returns_none(self) -> None:
        """Text without any array start cannot be repaired."""
        assert repair_truncated_json("I could not read any spines.") is None

    def test_strips_trailing_comma_and_closes(self) -> None:
        """A trailing comma is dropped and the array closed."""
        assert repair_truncated_json('[{"title": "Emma"},') == '[{"title": "Emma"}]'

    def test_closes_unterminated_string_and_object(self) -> None:
        """Output cut inside a string value gets the string, object and array closed."""
        text = (
            '[{"title": "Dune", "author": "Frank Herbert"}, '
            '{"title": "Neuromancer", "author": "William Gib'
        )
        repaired = repair_truncated_json(text)
        assert repaired == (
            '[{"title": "Dune", "author": "Frank Herbert"}, '
            '{"title": "Neuromancer", "author": "William Gib"}]'
        )

    def test_ignores_brackets_inside_strings(self) -> None:
        """Brackets within string values do not affect the closers."""
        repaired = repair_truncated_json('[{"title": "Notes [draft] {v2}"')
        assert repaired == '[{"title": "Notes [draft] {v2}"}]'

    def test_does_not_modify_input(self) -> None:
        """The function is pure: the same input gives the same output."""
        text = '[{"title": "Emma"'
        assert repair_truncated_json(text) == repair_truncated_json(text)


class TestExtractCandidateObjects:
    """Tests for extract_candidate_objects()."""

    def test_keeps_only_complete_objects(self) -> None:
        """Complete title-bearing objects are extracted and the partial one dropped."""
        text = 'noise {"title": "Dune", "author": "Frank Herbert"} more {"title": "Emm'
        assert extract_candidate_objects(text) == [{"title": "Dune", "author": "Frank Herbert"}]

    def test_ignores_objects_without_title(self) -> None:
        """Objects lacking a title key are not candidates."""
        assert extract_candidate_objects('{"author": "Nobody"}') == []


class TestParseCandidates:
    """Tests for the full parse_candidates() cascade."""

    def test_fenced_array(self) -> None:
        """Fenced output parses to candidates."""
        result = parse_candidates(f"```json\n{DUNE_JSON}\n```")
        assert result == [BookCandidate("Dune", "Frank Herbert", Confidence.HIGH)]

    def test_truncated_output_keeps_complete_entries(self) -> None:
        """Entries completed before the cut survive truncation."""
        text = (
            '[{"title": "Dune", "author": "Frank Herbert", "confidence": "high"}, '
            '{"title": "Foundation", "author": "Isaac Asimov", "confidence": "medium"}, '
            '{"title": "Hyperi'
        )
        titles = [c.title for c in parse_candidates(text)]
        assert titles[:2] == ["Dune", "Foundation"]

    def test_truncated_inside_nested_value_falls_back_to_objects(self) -> None:
        """When repair cannot produce valid JSON, complete objects are still recovered."""
        text = '[{"title": "Dune", "author": "Frank Herbert"}, {"title": "Emma", "author": nul'
        titles = [c.title for c in parse_candidates(text)]
        assert "Dune" in titles

    def test_missing_fields_default(self) -> None:
        """Null author becomes empty and unknown confidence becomes low."""
        result = parse_candidates('[{"title": "Emma", "author": null, "confidence": "certain"}]')
        assert result == [BookCandidate("Emma", "", Confidence.LOW)]

    def test_confidence_is_case_insensitive(self) -> None:
        """Upper-case confidence strings are accepted."""
        result = parse_candidates('[{"title": "Emma", "confidence": "HIGH"}]')
        assert result[0].confidence is Confidence.HIGH

    def test_non_object_entries_are_skipped(self) -> None:
        """Bare strings inside the array are not candidates."""
        result = parse_candidates('["Dune", {"title": "Emma"}]')
        assert [c.title for c in result] == ["Emma"]

    def test_unrecoverable_text_returns_empty(self) -> None:
        """Prose without any JSON yields an empty list."""
        assert parse_candidates("Sorry, I can't identify any books here.") == []

    def test_empty_input_returns_empty(self) -> None:
        """Empty and None inputs yield an empty list."""
        assert parse_candidates("") == []
        assert parse_candidates(None) == []
