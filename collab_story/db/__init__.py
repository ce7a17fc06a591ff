"""Storage for stories, paragraphs and sentences."""

from .models import Paragraph, Sentence, Story
from .store import (
    ClosedContainer,
    CommitError,
    ConflictError,
    EntityNotFound,
    Store,
    StoreError,
    StoreTransaction,
)

__all__ = [
    "ClosedContainer",
    "CommitError",
    "ConflictError",
    "EntityNotFound",
    "Paragraph",
    "Sentence",
    "Store",
    "StoreError",
    "StoreTransaction",
    "Story",
]
