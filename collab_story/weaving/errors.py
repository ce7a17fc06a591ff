"""
Error taxonomy for word placement.

Every failure of AppendWord surfaces as exactly one of these. The optional
``stage`` names where it happened (validate, story, title, paragraph,
sentence, cascade, commit, lock).
"""

from typing import Optional


class WeaveError(Exception):
    """Base class for story weaving failures."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class InvalidWord(WeaveError):
    """The submitted word was rejected before any storage access."""

    def __init__(self, message: str):
        super().__init__(message, stage="validate")


class StorageUnavailable(WeaveError):
    """The store failed; nothing was committed and the call may be retried."""
    pass


class TransactionFailed(StorageUnavailable):
    """Commit or rollback failed. Whether the write landed is unknown."""
    pass


class LockTimeout(StorageUnavailable):
    """The append lock could not be acquired in time."""

    def __init__(self, timeout: float):
        super().__init__(f"timed out after {timeout}s waiting for append lock", stage="lock")
        self.timeout = timeout


class InconsistentState(WeaveError):
    """A container vanished or changed underneath an open transaction.

    Indicates an atomicity violation in the store or a write that bypassed
    the append lock. Not retryable.
    """
    pass


class StoryNotFound(WeaveError):
    """Requested story id does not exist."""

    def __init__(self, story_id: int):
        super().__init__(f"story {story_id} not found", stage="story")
        self.story_id = story_id
