"""Tests for the capacity policy."""

import pytest

from collab_story.weaving.policy import DEFAULT_POLICY, CapacityPolicy, count_words


class TestCapacityPolicy:

    def test_defaults(self):
        assert DEFAULT_POLICY.title_words == 2
        assert DEFAULT_POLICY.sentence_words == 15
        assert DEFAULT_POLICY.paragraph_sentences == 10
        assert DEFAULT_POLICY.story_paragraphs == 7
        assert DEFAULT_POLICY.max_word_length == 240

    def test_predicates_at_thresholds(self):
        policy = DEFAULT_POLICY
        assert not policy.title_complete(1)
        assert policy.title_complete(2)
        assert not policy.sentence_complete(14)
        assert policy.sentence_complete(15)
        assert not policy.paragraph_complete(9)
        assert policy.paragraph_complete(10)
        assert not policy.story_complete(6)
        assert policy.story_complete(7)

    def test_words_per_story(self):
        assert DEFAULT_POLICY.words_per_story == 2 + 1050

    @pytest.mark.parametrize("field", ["title_words", "sentence_words", "story_paragraphs"])
    def test_rejects_non_positive(self, field):
        with pytest.raises(ValueError, match=field):
            CapacityPolicy(**{field: 0})


class TestCountWords:

    def test_counts(self):
        assert count_words("") == 0
        assert count_words("one") == 1
        assert count_words("one two three") == 3
