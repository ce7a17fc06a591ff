"""
Capacity policy.

Thresholds at which a title, sentence, paragraph or story is considered
complete. Pure and stateless; the defaults define the canonical story shape.
"""

from dataclasses import dataclass

TITLE_WORDS = 2
SENTENCE_WORDS = 15
PARAGRAPH_SENTENCES = 10
STORY_PARAGRAPHS = 7
MAX_WORD_LENGTH = 240


@dataclass(frozen=True)
class CapacityPolicy:
    """Container capacities. Every field must be a positive integer."""

    title_words: int = TITLE_WORDS
    sentence_words: int = SENTENCE_WORDS
    paragraph_sentences: int = PARAGRAPH_SENTENCES
    story_paragraphs: int = STORY_PARAGRAPHS
    max_word_length: int = MAX_WORD_LENGTH

    def __post_init__(self):
        for name in (
            "title_words",
            "sentence_words",
            "paragraph_sentences",
            "story_paragraphs",
            "max_word_length",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    def title_complete(self, word_count: int) -> bool:
        return word_count >= self.title_words

    def sentence_complete(self, word_count: int) -> bool:
        return word_count >= self.sentence_words

    def paragraph_complete(self, finished_sentence_count: int) -> bool:
        return finished_sentence_count >= self.paragraph_sentences

    def story_complete(self, finished_paragraph_count: int) -> bool:
        return finished_paragraph_count >= self.story_paragraphs

    @property
    def words_per_story(self) -> int:
        """Words needed to finish one story, title included."""
        return self.title_words + (
            self.sentence_words * self.paragraph_sentences * self.story_paragraphs
        )


DEFAULT_POLICY = CapacityPolicy()


def count_words(text: str) -> int:
    """Number of space-separated words in a title or sentence."""
    return len(text.split()) if text else 0
