"""
Story Weaving

Places incoming words into the Story -> Paragraph -> Sentence hierarchy and
finalizes containers as they fill up.
"""

from .errors import (
    InconsistentState,
    InvalidWord,
    LockTimeout,
    StorageUnavailable,
    StoryNotFound,
    TransactionFailed,
    WeaveError,
)
from .policy import DEFAULT_POLICY, CapacityPolicy
from .services import AppendEngine, StoryQueryService, validate_word

__all__ = [
    "AppendEngine",
    "CapacityPolicy",
    "DEFAULT_POLICY",
    "InconsistentState",
    "InvalidWord",
    "LockTimeout",
    "StorageUnavailable",
    "StoryNotFound",
    "StoryQueryService",
    "TransactionFailed",
    "WeaveError",
    "validate_word",
]
