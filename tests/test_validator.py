"""Tests for word validation."""

import pytest

from collab_story.weaving.errors import InvalidWord
from collab_story.weaving.services import validate_word


class TestValidateWord:

    @pytest.mark.parametrize("word", ["validword", "Num63r$&&SYmb0l$", "don't", "é", "a" * 240])
    def test_accepts_single_tokens(self, word):
        assert validate_word(word) == word

    @pytest.mark.parametrize(
        "word",
        [
            "invalid word",
            " leadingspace",
            "trailingspace ",
            "multiple number of spaces",
            "new\nline",
            "tab\tbed",
            "non\u00a0breaking",
        ],
    )
    def test_rejects_whitespace(self, word):
        with pytest.raises(InvalidWord, match="multiple words"):
            validate_word(word)

    def test_rejects_empty(self):
        with pytest.raises(InvalidWord, match="length"):
            validate_word("")

    def test_rejects_too_long(self):
        with pytest.raises(InvalidWord, match="length"):
            validate_word("a" * 241)

    def test_custom_bound(self):
        assert validate_word("Num63r$&&SYmb0l$", max_length=16)
        with pytest.raises(InvalidWord):
            validate_word("InvalidLengthOfTheWord", max_length=16)

    def test_rejects_non_string(self):
        with pytest.raises(InvalidWord):
            validate_word(None)

    def test_error_carries_validate_stage(self):
        with pytest.raises(InvalidWord) as exc_info:
            validate_word("two words")
        assert exc_info.value.stage == "validate"
