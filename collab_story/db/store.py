"""
Store interface.

The append engine and the query service talk to storage only through these
types. A Store hands out transactions; a StoreTransaction exposes per-entity
reads and writes that are committed or rolled back together.

Lookups return None when nothing matches. Writes against an id that does not
exist raise EntityNotFound.
"""

from abc import ABC, abstractmethod
from typing import Callable, ContextManager, List, Optional, Protocol, TypeVar

from .models import Paragraph, Sentence, Story

T = TypeVar("T")


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""
    pass


class EntityNotFound(StoreError):
    """A write referenced a story, paragraph or sentence that does not exist."""

    def __init__(self, kind: str, entity_id: int):
        super().__init__(f"{kind} {entity_id} does not exist")
        self.kind = kind
        self.entity_id = entity_id


class ClosedContainer(StoreError):
    """A word was appended to a finished sentence or a complete title."""
    pass


class ConflictError(StoreError):
    """A write would create a second unfinished container at the same level."""
    pass


class CommitError(StoreError):
    """Commit (or rollback) of a transaction failed."""
    pass


class StoreTransaction(Protocol):
    """Operations available inside one atomic unit of work.

    Every write under a story (new paragraph, new sentence, appended word)
    also bumps that story's updated_at.
    """

    # Stories
    def get_unfinished_story(self) -> Optional[Story]:
        ...

    def create_story(self) -> Story:
        """Create a story with an empty title. Returns the new row."""
        ...

    def get_story(self, story_id: int) -> Optional[Story]:
        ...

    def append_to_story_title(self, story_id: int, word: str) -> Story:
        """Join word onto the title, marking it complete at capacity."""
        ...

    def mark_story_finished(self, story_id: int) -> None:
        ...

    def count_finished_paragraphs(self, story_id: int) -> int:
        ...

    # Paragraphs
    def get_unfinished_paragraph(self, story_id: int) -> Optional[Paragraph]:
        ...

    def create_paragraph(self, story_id: int) -> Paragraph:
        ...

    def get_paragraph(self, paragraph_id: int) -> Optional[Paragraph]:
        ...

    def mark_paragraph_finished(self, paragraph_id: int) -> None:
        ...

    def count_finished_sentences(self, paragraph_id: int) -> int:
        ...

    # Sentences
    def get_unfinished_sentence(self, paragraph_id: int) -> Optional[Sentence]:
        ...

    def create_sentence(self, paragraph_id: int, word: str) -> Sentence:
        ...

    def append_to_sentence(self, sentence_id: int, word: str) -> Sentence:
        """Join word onto the sentence, marking it finished at capacity."""
        ...

    # Read-side listing
    def list_stories(self, limit: int, offset: int) -> List[Story]:
        ...

    def count_stories(self) -> int:
        ...

    def list_paragraphs(self, story_id: int) -> List[Paragraph]:
        ...

    def list_sentences(self, paragraph_id: int) -> List[Sentence]:
        ...


class Store(ABC):
    """Transactional story storage."""

    @abstractmethod
    def transaction(self, write: bool = True) -> ContextManager[StoreTransaction]:
        """
        Open a transaction.

        Commits when the block exits normally and rolls back on any exception.

        Args:
            write: False for read-only work (skips write serialization)

        Raises:
            StoreError: If the transaction cannot be started
            CommitError: If commit fails
        """
        pass

    @abstractmethod
    def ping(self) -> None:
        """Raise StoreError if the store is unreachable."""
        pass

    def with_transaction(self, fn: Callable[[StoreTransaction], T], write: bool = True) -> T:
        """Run fn inside a transaction and return its result."""
        with self.transaction(write=write) as tx:
            return fn(tx)
