"""
Append Engine

Places one word into the active Story -> Paragraph -> Sentence chain.

Every call resolves the active containers top-down from the store (no cached
"current" ids), applies the write, then cascades finalization upwards:
a finished sentence may finish its paragraph, which may finish its story.
Resolution, write and cascade share one store transaction, and the whole
sequence runs under the append lock so concurrent callers observe a serial
order.

Resubmitting a word after a failed call is not idempotent. If the commit
landed but its acknowledgement was lost (TransactionFailed), sending the
word again appends it a second time.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from collab_story.db.models import Paragraph, Sentence, Story
from collab_story.db.store import (
    ClosedContainer,
    CommitError,
    ConflictError,
    EntityNotFound,
    Store,
    StoreError,
    StoreTransaction,
)
from collab_story.observability import MetricsSink, NullMetrics

from ..errors import (
    InconsistentState,
    InvalidWord,
    LockTimeout,
    StorageUnavailable,
    TransactionFailed,
    WeaveError,
)
from ..models import AppendResult
from ..policy import DEFAULT_POLICY, CapacityPolicy
from .validator import validate_word

logger = logging.getLogger(__name__)


class Placement(str, Enum):
    """Where the next word goes."""

    NEW_STORY = "new_story"
    TITLE_WORD = "title_word"
    NEW_PARAGRAPH = "new_paragraph"
    NEW_SENTENCE = "new_sentence"
    EXTEND_SENTENCE = "extend_sentence"


@dataclass
class Resolution:
    """Active containers found by resolve() and the placement they imply."""

    placement: Placement
    story: Optional[Story] = None
    paragraph: Optional[Paragraph] = None
    sentence: Optional[Sentence] = None


@dataclass
class _Outcome:
    story: Story
    sentence: Optional[Sentence] = None
    events: List[str] = field(default_factory=list)


@contextmanager
def _stage(name: str):
    """Translate storage exceptions raised in a stage into WeaveErrors."""
    try:
        yield
    except (EntityNotFound, ClosedContainer, ConflictError) as e:
        logger.error(f"Inconsistent state during {name}: {e}")
        raise InconsistentState(str(e), stage=name) from e
    except StoreError as e:
        raise StorageUnavailable(str(e), stage=name) from e


class AppendEngine:
    """
    Serialized word placement.

    Args:
        store: Transactional storage
        policy: Capacities; defaults to the store's policy
        lock: Critical section around each append. Anything with
            acquire(timeout=...) and release() works (threading.Lock,
            multiprocessing.Lock, a distributed lock adapter).
        lock_timeout: Seconds to wait for the lock; negative waits forever
        metrics: Counter/timer sink
    """

    def __init__(
        self,
        store: Store,
        policy: Optional[CapacityPolicy] = None,
        lock=None,
        lock_timeout: float = -1,
        metrics: Optional[MetricsSink] = None,
    ):
        self.store = store
        self.policy = policy or getattr(store, "policy", DEFAULT_POLICY)
        self.lock_timeout = lock_timeout
        self.metrics = metrics or NullMetrics()
        self._lock = lock if lock is not None else threading.Lock()

    def append_word(self, word: str) -> AppendResult:
        """
        Append one word to the collaborative story.

        Returns:
            The story id and title, and the content of the sentence the word
            went into ("" while the title is still being written)

        Raises:
            InvalidWord: Word rejected; the store was not touched
            StorageUnavailable: Store failure, nothing committed (retryable)
            TransactionFailed: Commit failed; outcome unknown
            LockTimeout: Append lock not acquired in time
            InconsistentState: A container changed outside the lock
        """
        try:
            validate_word(word, self.policy.max_word_length)
        except InvalidWord:
            self.metrics.incr("words.rejected")
            raise

        start = time.monotonic()
        try:
            with self._locked():
                outcome = self._append_in_transaction(word)
        except WeaveError as e:
            self.metrics.incr("append.failed")
            if isinstance(e, StorageUnavailable):
                logger.warning(f"Append of {word!r} failed: {e}")
            raise
        finally:
            self.metrics.timing("append.duration_ms", (time.monotonic() - start) * 1000)

        self.metrics.incr("words.appended")
        for event in outcome.events:
            self.metrics.incr(event)

        logger.debug(f"Appended {word!r} to story {outcome.story.id}")
        return AppendResult(
            story_id=outcome.story.id,
            title=outcome.story.title,
            sentence_content=outcome.sentence.content if outcome.sentence else "",
        )

    @contextmanager
    def _locked(self):
        if self.lock_timeout is None or self.lock_timeout < 0:
            acquired = self._lock.acquire()
        else:
            acquired = self._lock.acquire(timeout=self.lock_timeout)
        if not acquired:
            raise LockTimeout(self.lock_timeout)
        try:
            yield
        finally:
            self._lock.release()

    def _append_in_transaction(self, word: str) -> _Outcome:
        try:
            with self.store.transaction() as tx:
                resolution = self.resolve(tx)
                outcome = self._apply(tx, resolution, word)
                self._cascade(tx, outcome)
        except CommitError as e:
            raise TransactionFailed(str(e), stage="commit") from e
        except StoreError as e:
            # Only the transaction begin is outside a stage
            raise StorageUnavailable(str(e), stage="begin") from e
        return outcome

    # ========================================================================
    # Resolution
    # ========================================================================

    def resolve(self, tx: StoreTransaction) -> Resolution:
        """Find the active containers, top-down, and decide the placement."""
        with _stage("story"):
            story = tx.get_unfinished_story()
        if story is None:
            return Resolution(Placement.NEW_STORY)
        if not story.title_complete:
            return Resolution(Placement.TITLE_WORD, story=story)

        with _stage("paragraph"):
            paragraph = tx.get_unfinished_paragraph(story.id)
        if paragraph is None:
            return Resolution(Placement.NEW_PARAGRAPH, story=story)

        with _stage("sentence"):
            sentence = tx.get_unfinished_sentence(paragraph.id)
        if sentence is None:
            return Resolution(Placement.NEW_SENTENCE, story=story, paragraph=paragraph)
        return Resolution(
            Placement.EXTEND_SENTENCE, story=story, paragraph=paragraph, sentence=sentence
        )

    # ========================================================================
    # Placement
    # ========================================================================

    def _apply(self, tx: StoreTransaction, resolution: Resolution, word: str) -> _Outcome:
        handlers: Dict[Placement, Callable[[StoreTransaction, Resolution, str], _Outcome]] = {
            Placement.NEW_STORY: self._start_story,
            Placement.TITLE_WORD: self._add_title_word,
            Placement.NEW_PARAGRAPH: self._start_paragraph,
            Placement.NEW_SENTENCE: self._start_sentence,
            Placement.EXTEND_SENTENCE: self._extend_sentence,
        }
        return handlers[resolution.placement](tx, resolution, word)

    def _start_story(self, tx: StoreTransaction, resolution: Resolution, word: str) -> _Outcome:
        with _stage("story"):
            story = tx.create_story()
        logger.info(f"Started story {story.id}")
        with _stage("title"):
            story = tx.append_to_story_title(story.id, word)
        return _Outcome(story=story, events=["stories.created"])

    def _add_title_word(self, tx: StoreTransaction, resolution: Resolution, word: str) -> _Outcome:
        with _stage("title"):
            story = tx.append_to_story_title(resolution.story.id, word)
        if story.title_complete:
            logger.info(f"Story {story.id} titled {story.title!r}")
        return _Outcome(story=story)

    def _start_paragraph(self, tx: StoreTransaction, resolution: Resolution, word: str) -> _Outcome:
        story = resolution.story
        with _stage("paragraph"):
            paragraph = tx.create_paragraph(story.id)
        logger.info(f"Started paragraph {paragraph.id} in story {story.id}")
        with _stage("sentence"):
            sentence = tx.create_sentence(paragraph.id, word)
        return _Outcome(
            story=story,
            sentence=sentence,
            events=["paragraphs.created", "sentences.created"],
        )

    def _start_sentence(self, tx: StoreTransaction, resolution: Resolution, word: str) -> _Outcome:
        with _stage("sentence"):
            sentence = tx.create_sentence(resolution.paragraph.id, word)
        return _Outcome(story=resolution.story, sentence=sentence, events=["sentences.created"])

    def _extend_sentence(self, tx: StoreTransaction, resolution: Resolution, word: str) -> _Outcome:
        with _stage("sentence"):
            sentence = tx.append_to_sentence(resolution.sentence.id, word)
        return _Outcome(story=resolution.story, sentence=sentence)

    # ========================================================================
    # Cascade
    # ========================================================================

    def _cascade(self, tx: StoreTransaction, outcome: _Outcome) -> None:
        sentence = outcome.sentence
        if sentence is None or not sentence.finished:
            return

        outcome.events.append("sentences.finished")
        logger.info(f"Sentence {sentence.id} finished")
        with _stage("cascade"):
            if self._finish_paragraph(tx, sentence.paragraph_id, outcome):
                self._finish_story(tx, outcome.story.id, outcome)

    def _finish_paragraph(self, tx: StoreTransaction, paragraph_id: int, outcome: _Outcome) -> bool:
        finished_sentences = tx.count_finished_sentences(paragraph_id)
        if not self.policy.paragraph_complete(finished_sentences):
            return False

        paragraph = tx.get_paragraph(paragraph_id)
        if paragraph is None:
            raise EntityNotFound("paragraph", paragraph_id)
        if paragraph.finished:
            return False

        tx.mark_paragraph_finished(paragraph_id)
        outcome.events.append("paragraphs.finished")
        logger.info(f"Paragraph {paragraph_id} finished ({finished_sentences} sentences)")
        return True

    def _finish_story(self, tx: StoreTransaction, story_id: int, outcome: _Outcome) -> None:
        finished_paragraphs = tx.count_finished_paragraphs(story_id)
        if not self.policy.story_complete(finished_paragraphs):
            return

        story = tx.get_story(story_id)
        if story is None:
            raise EntityNotFound("story", story_id)
        if story.finished:
            return

        tx.mark_story_finished(story_id)
        outcome.story = story.model_copy(update={"finished": True})
        outcome.events.append("stories.finished")
        logger.info(
            f"Story {story_id} ({story.title!r}) finished ({finished_paragraphs} paragraphs)"
        )
