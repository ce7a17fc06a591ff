"""Word validation. Runs before any storage access."""

import re

from ..errors import InvalidWord
from ..policy import MAX_WORD_LENGTH

# A word is a single token: no whitespace anywhere, leading or trailing included
_SINGLE_TOKEN = re.compile(r"\S+")


def validate_word(word: str, max_length: int = MAX_WORD_LENGTH) -> str:
    """
    Check that word is a single non-empty token within the length bound.

    Args:
        word: Submitted word
        max_length: Maximum number of characters

    Returns:
        The word, unchanged

    Raises:
        InvalidWord: If the word is empty, too long or contains whitespace
    """
    if not isinstance(word, str):
        raise InvalidWord("word must be a string")
    if len(word) < 1 or len(word) > max_length:
        raise InvalidWord(f"invalid word length: must be 1-{max_length} characters")
    if not _SINGLE_TOKEN.fullmatch(word):
        raise InvalidWord("multiple words sent: a word must not contain whitespace")
    return word
