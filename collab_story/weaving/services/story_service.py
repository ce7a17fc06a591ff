"""
Story Query Service

Read-only assembly of story listings and full story text.
"""

import logging

from collab_story.db.store import Store, StoreError

from ..errors import StorageUnavailable, StoryNotFound
from ..models import ParagraphDetail, StoryBrief, StoryDetail, StoryListResponse

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class StoryQueryService:
    """
    Read side of the story store.

    Responsibilities:
    - Paginated story listing
    - Story detail with paragraphs and sentence text
    """

    def __init__(self, store: Store):
        self.store = store

    def list_stories(self, limit: int = 10, offset: int = 0) -> StoryListResponse:
        """List stories oldest first.

        Args:
            limit: Max stories to return (1-100)
            offset: Pagination offset
        """
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        try:
            with self.store.transaction(write=False) as tx:
                stories = tx.list_stories(limit, offset)
                total = tx.count_stories()
        except StoreError as e:
            logger.warning(f"Story listing failed: {e}")
            raise StorageUnavailable(str(e), stage="story") from e

        return StoryListResponse(
            limit=limit,
            offset=offset,
            count=total,
            results=[
                StoryBrief(
                    id=s.id,
                    title=s.title,
                    created_at=s.created_at,
                    updated_at=s.updated_at,
                )
                for s in stories
            ],
        )

    def get_story(self, story_id: int) -> StoryDetail:
        """Get a story with all of its paragraphs and sentences.

        Raises:
            StoryNotFound: If no story has this id
        """
        try:
            with self.store.transaction(write=False) as tx:
                story = tx.get_story(story_id)
                if story is None:
                    raise StoryNotFound(story_id)
                paragraphs = [
                    ParagraphDetail(
                        id=p.id,
                        finished=p.finished,
                        sentences=[s.content for s in tx.list_sentences(p.id)],
                    )
                    for p in tx.list_paragraphs(story_id)
                ]
        except StoreError as e:
            logger.warning(f"Reading story {story_id} failed: {e}")
            raise StorageUnavailable(str(e), stage="story") from e

        return StoryDetail(
            id=story.id,
            title=story.title,
            finished=story.finished,
            created_at=story.created_at,
            updated_at=story.updated_at,
            paragraphs=paragraphs,
        )
