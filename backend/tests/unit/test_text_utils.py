"""
Unit tests for text utilities.
"""

import pytest

from quizforge.utils.text_utils import (
    clean_text,
    extract_json_from_response,
    normalize_id,
    normalize_llm_json_response,
    split_into_batches,
    split_into_chunks,
    truncate_text,
    unwrap_llm_single_object_response,
)
from tests.factories import SAMPLE_TEXT


class TestNormalizeId:
    """Tests for taxonomy identity normalization."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Neonatal Jaundice", "neonatal_jaundice"),
            ("pediatric   cardiology!!", "pediatric_cardiology"),
            ("Neonatology", "neonatology"),
            ("  Heart Failure  ", "_heart_failure_"),
            ("ABO/Rh Incompatibility", "aborh_incompatibility"),
            ("Café au lait", "caf_au_lait"),
            ("", ""),
        ],
    )
    def test_examples(self, name, expected):
        assert normalize_id(name) == expected

    def test_idempotent(self):
        for name in ["Neonatal Jaundice", "pediatric   cardiology!!", "G6PD  Deficiency"]:
            once = normalize_id(name)
            assert normalize_id(once) == once

    def test_case_and_spacing_collapse_to_same_id(self):
        assert normalize_id("Neonatal Jaundice") == normalize_id("neonatal   JAUNDICE")


class TestTextUtils:
    """Tests for text utility functions."""

    def test_clean_text_whitespace(self):
        """Test cleaning excessive whitespace."""
        dirty = "Hello    world\n\n\n\ntest"
        clean = clean_text(dirty)

        assert "    " not in clean
        assert "\n\n\n" not in clean
        assert clean == "Hello world\n\ntest"

    def test_clean_text_null_chars(self):
        """Test removing null characters."""
        assert clean_text("Hello\x00World") == "HelloWorld"

    def test_clean_text_empty(self):
        assert clean_text("") == ""

    def test_extract_json_raw(self):
        """Test extracting raw JSON."""
        assert extract_json_from_response('{"mcq_count": 12}') == {"mcq_count": 12}

    def test_extract_json_markdown_block(self):
        """Test extracting JSON from markdown code block."""
        response = """Here is the plan:
```json
{"mcq_count": 12, "flashcard_count": 8}
```
"""
        result = extract_json_from_response(response)

        assert result["mcq_count"] == 12
        assert result["flashcard_count"] == 8

    def test_extract_json_embedded_in_prose(self):
        response = 'Sure! {"groups": []} Hope that helps.'
        assert extract_json_from_response(response) == {"groups": []}

    def test_extract_json_invalid(self):
        """Test handling invalid JSON."""
        assert extract_json_from_response("This is not JSON at all") is None

    def test_normalize_llm_json_response_wraps_list(self):
        assert normalize_llm_json_response([{"a": 1}], "mcqs") == {"mcqs": [{"a": 1}]}
        assert normalize_llm_json_response({"mcqs": []}, "mcqs") == {"mcqs": []}
        assert normalize_llm_json_response("nope", "mcqs") == {}

    def test_unwrap_single_object(self):
        assert unwrap_llm_single_object_response([{"mcq_count": 3}]) == {"mcq_count": 3}
        assert unwrap_llm_single_object_response({"mcq_count": 3}) == {"mcq_count": 3}
        assert unwrap_llm_single_object_response([]) == {}

    def test_truncate_text(self):
        """Test text truncation."""
        text = "This is a long sentence that needs to be truncated"
        truncated = truncate_text(text, max_length=20)

        assert len(truncated) <= 20
        assert truncated.endswith("...")

    def test_truncate_text_no_truncation(self):
        assert truncate_text("Short", max_length=20) == "Short"

    def test_split_into_chunks(self):
        text = "Paragraph one.\n\n" * 50
        chunks = split_into_chunks(text, chunk_size=100, chunk_overlap=0)

        assert len(chunks) > 1
        assert all(len(c) <= 100 for c in chunks)


class TestSplitIntoBatches:
    """Tests for splitting source text into one chunk per batch."""

    @pytest.mark.parametrize("batch_count", [1, 2, 3, 5, 8])
    def test_exact_batch_count(self, batch_count):
        chunks = split_into_batches(SAMPLE_TEXT, batch_count)

        assert len(chunks) == batch_count
        assert all(chunk.strip() for chunk in chunks)

    def test_single_batch_is_whole_text(self):
        assert split_into_batches(SAMPLE_TEXT, 1) == [SAMPLE_TEXT]

    def test_chunks_are_in_source_order(self):
        chunks = split_into_batches(SAMPLE_TEXT, 3)

        assert chunks[0].startswith("Neonatal jaundice")
        assert "kernicterus" in chunks[-1]

    def test_short_text_still_fills_every_batch(self):
        chunks = split_into_batches("Bilirubin", 3)

        assert len(chunks) == 3
        assert all(chunk for chunk in chunks)

    def test_empty_text(self):
        assert split_into_batches("   ", 3) == []

    def test_rejects_non_positive_count(self):
        with pytest.raises(ValueError):
            split_into_batches(SAMPLE_TEXT, 0)
