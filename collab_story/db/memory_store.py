"""
In-memory Store.

Used for tests, local development and the STORE_BACKEND=memory deployment.
Transactions are serializable: the store lock is held for the whole
transaction. Writes go straight to the tables; each transaction keeps an undo
log of the rows it touched and replays it on rollback.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from pydantic import BaseModel

from collab_story.weaving.policy import DEFAULT_POLICY, CapacityPolicy, count_words

from .models import Paragraph, Sentence, Story
from .store import ClosedContainer, CommitError, EntityNotFound, Store, StoreError


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Tables:
    stories: Dict[int, Story] = field(default_factory=dict)
    paragraphs: Dict[int, Paragraph] = field(default_factory=dict)
    sentences: Dict[int, Sentence] = field(default_factory=dict)
    next_ids: Dict[str, int] = field(
        default_factory=lambda: {"story": 1, "paragraph": 1, "sentence": 1}
    )

    def allocate(self, kind: str) -> int:
        entity_id = self.next_ids[kind]
        self.next_ids[kind] = entity_id + 1
        return entity_id

    def table(self, kind: str) -> Dict[int, BaseModel]:
        return {"story": self.stories, "paragraph": self.paragraphs, "sentence": self.sentences}[kind]


class InMemoryTransaction:
    """StoreTransaction writing in place, with an undo log for rollback."""

    def __init__(self, tables: _Tables, policy: CapacityPolicy, hook: Callable[[str], None]):
        self._t = tables
        self._policy = policy
        self._hook = hook
        self._next_ids = dict(tables.next_ids)
        # (kind, id, row before the first write; None for rows created here)
        self._undo: List[Tuple[str, int, Optional[BaseModel]]] = []
        self._saved: Set[Tuple[str, int]] = set()

    def rollback(self) -> None:
        """Restore every row touched by this transaction."""
        for kind, entity_id, original in reversed(self._undo):
            table = self._t.table(kind)
            if original is None:
                table.pop(entity_id, None)
            else:
                table[entity_id] = original
        self._t.next_ids.clear()
        self._t.next_ids.update(self._next_ids)
        self._undo.clear()
        self._saved.clear()

    # -- stories -------------------------------------------------------------

    def get_unfinished_story(self) -> Optional[Story]:
        self._hook("get_unfinished_story")
        for story in self._t.stories.values():
            if not story.finished:
                return story.model_copy()
        return None

    def create_story(self) -> Story:
        self._hook("create_story")
        now = _now()
        story = Story(id=self._t.allocate("story"), created_at=now, updated_at=now)
        self._insert("story", story)
        return story.model_copy()

    def get_story(self, story_id: int) -> Optional[Story]:
        self._hook("get_story")
        story = self._t.stories.get(story_id)
        return story.model_copy() if story else None

    def append_to_story_title(self, story_id: int, word: str) -> Story:
        self._hook("append_to_story_title")
        story = self._writable("story", story_id)
        if story.title_complete:
            raise ClosedContainer(f"title of story {story_id} is already complete")
        story.title = f"{story.title} {word}" if story.title else word
        story.title_complete = self._policy.title_complete(count_words(story.title))
        story.updated_at = _now()
        return story.model_copy()

    def mark_story_finished(self, story_id: int) -> None:
        self._hook("mark_story_finished")
        story = self._writable("story", story_id)
        story.finished = True
        story.updated_at = _now()

    def count_finished_paragraphs(self, story_id: int) -> int:
        self._hook("count_finished_paragraphs")
        return sum(
            1 for p in self._t.paragraphs.values() if p.story_id == story_id and p.finished
        )

    # -- paragraphs ----------------------------------------------------------

    def get_unfinished_paragraph(self, story_id: int) -> Optional[Paragraph]:
        self._hook("get_unfinished_paragraph")
        for paragraph in self._t.paragraphs.values():
            if paragraph.story_id == story_id and not paragraph.finished:
                return paragraph.model_copy()
        return None

    def create_paragraph(self, story_id: int) -> Paragraph:
        self._hook("create_paragraph")
        self._require_story(story_id)
        paragraph = Paragraph(id=self._t.allocate("paragraph"), story_id=story_id)
        self._insert("paragraph", paragraph)
        self._touch_story(story_id)
        return paragraph.model_copy()

    def get_paragraph(self, paragraph_id: int) -> Optional[Paragraph]:
        self._hook("get_paragraph")
        paragraph = self._t.paragraphs.get(paragraph_id)
        return paragraph.model_copy() if paragraph else None

    def mark_paragraph_finished(self, paragraph_id: int) -> None:
        self._hook("mark_paragraph_finished")
        self._writable("paragraph", paragraph_id).finished = True

    def count_finished_sentences(self, paragraph_id: int) -> int:
        self._hook("count_finished_sentences")
        return sum(
            1
            for s in self._t.sentences.values()
            if s.paragraph_id == paragraph_id and s.finished
        )

    # -- sentences -----------------------------------------------------------

    def get_unfinished_sentence(self, paragraph_id: int) -> Optional[Sentence]:
        self._hook("get_unfinished_sentence")
        for sentence in self._t.sentences.values():
            if sentence.paragraph_id == paragraph_id and not sentence.finished:
                return sentence.model_copy()
        return None

    def create_sentence(self, paragraph_id: int, word: str) -> Sentence:
        self._hook("create_sentence")
        paragraph = self._require_paragraph(paragraph_id)
        sentence = Sentence(
            id=self._t.allocate("sentence"),
            paragraph_id=paragraph_id,
            content=word,
            finished=self._policy.sentence_complete(1),
        )
        self._insert("sentence", sentence)
        self._touch_story(paragraph.story_id)
        return sentence.model_copy()

    def append_to_sentence(self, sentence_id: int, word: str) -> Sentence:
        self._hook("append_to_sentence")
        sentence = self._writable("sentence", sentence_id)
        if sentence.finished:
            raise ClosedContainer(f"sentence {sentence_id} is already finished")
        sentence.content = f"{sentence.content} {word}" if sentence.content else word
        sentence.finished = self._policy.sentence_complete(count_words(sentence.content))
        paragraph = self._require_paragraph(sentence.paragraph_id)
        self._touch_story(paragraph.story_id)
        return sentence.model_copy()

    # -- listing -------------------------------------------------------------

    def list_stories(self, limit: int, offset: int) -> List[Story]:
        self._hook("list_stories")
        ordered = sorted(self._t.stories.values(), key=lambda s: s.id)
        return [s.model_copy() for s in ordered[offset:offset + limit]]

    def count_stories(self) -> int:
        self._hook("count_stories")
        return len(self._t.stories)

    def list_paragraphs(self, story_id: int) -> List[Paragraph]:
        self._hook("list_paragraphs")
        return [
            p.model_copy()
            for p in sorted(self._t.paragraphs.values(), key=lambda p: p.id)
            if p.story_id == story_id
        ]

    def list_sentences(self, paragraph_id: int) -> List[Sentence]:
        self._hook("list_sentences")
        return [
            s.model_copy()
            for s in sorted(self._t.sentences.values(), key=lambda s: s.id)
            if s.paragraph_id == paragraph_id
        ]

    # -- helpers -------------------------------------------------------------

    def _writable(self, kind: str, entity_id: int):
        """Live row for in-place mutation, saved to the undo log on first write."""
        row = self._t.table(kind).get(entity_id)
        if row is None:
            raise EntityNotFound(kind, entity_id)
        if (kind, entity_id) not in self._saved:
            self._saved.add((kind, entity_id))
            self._undo.append((kind, entity_id, row.model_copy()))
        return row

    def _insert(self, kind: str, row: BaseModel) -> None:
        self._t.table(kind)[row.id] = row
        self._saved.add((kind, row.id))
        self._undo.append((kind, row.id, None))

    def _touch_story(self, story_id: int) -> None:
        self._writable("story", story_id).updated_at = _now()

    def _require_story(self, story_id: int) -> Story:
        story = self._t.stories.get(story_id)
        if story is None:
            raise EntityNotFound("story", story_id)
        return story

    def _require_paragraph(self, paragraph_id: int) -> Paragraph:
        paragraph = self._t.paragraphs.get(paragraph_id)
        if paragraph is None:
            raise EntityNotFound("paragraph", paragraph_id)
        return paragraph


class InMemoryStore(Store):
    """
    Thread-safe dict-backed Store.

    Every operation name passes through ``fault_hook`` before it runs (and
    "commit" before a commit), which lets tests inject StoreError at any
    point. With ``record_calls=True`` operation names are also kept in
    ``calls`` for spying; a default store records nothing.
    """

    def __init__(
        self,
        policy: CapacityPolicy = DEFAULT_POLICY,
        fault_hook: Optional[Callable[[str], None]] = None,
        record_calls: bool = False,
    ):
        self.policy = policy
        self.fault_hook = fault_hook
        self.record_calls = record_calls
        self.calls: List[str] = []
        self._tables = _Tables()
        self._lock = threading.RLock()

    def _hook(self, operation: str) -> None:
        if self.record_calls:
            self.calls.append(operation)
        if self.fault_hook is not None:
            self.fault_hook(operation)

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[InMemoryTransaction]:
        with self._lock:
            self._hook("begin")
            tx = InMemoryTransaction(self._tables, self.policy, self._hook)
            try:
                yield tx
                try:
                    self._hook("commit")
                except StoreError as e:
                    raise CommitError(f"commit failed: {e}") from e
            except BaseException:
                tx.rollback()
                raise

    def ping(self) -> None:
        self._hook("ping")

    # Direct read helpers for tests and tooling (outside any transaction)

    def stories(self) -> List[Story]:
        with self._lock:
            return [s.model_copy() for s in sorted(self._tables.stories.values(), key=lambda s: s.id)]

    def paragraphs(self) -> List[Paragraph]:
        with self._lock:
            return [
                p.model_copy()
                for p in sorted(self._tables.paragraphs.values(), key=lambda p: p.id)
            ]

    def sentences(self) -> List[Sentence]:
        with self._lock:
            return [
                s.model_copy()
                for s in sorted(self._tables.sentences.values(), key=lambda s: s.id)
            ]
