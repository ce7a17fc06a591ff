"""Helpers shared by the weaving tests."""


def words(count: int, prefix: str = "w"):
    """Distinct words w0, w1, ... for filling containers."""
    return [f"{prefix}{i}" for i in range(count)]


def append_all(engine, items):
    """Append every word, returning the last result."""
    result = None
    for word in items:
        result = engine.append_word(word)
    return result
