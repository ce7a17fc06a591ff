"""
Story Read Endpoints

Paginated listing and full story detail.
"""

from fastapi import APIRouter, Depends, Query

from collab_story.api.deps import get_query_service
from collab_story.weaving.models import StoryDetail, StoryListResponse
from collab_story.weaving.services import StoryQueryService
from collab_story.weaving.services.story_service import MAX_PAGE_SIZE

router = APIRouter(prefix="/stories", tags=["stories"])


@router.get("", response_model=StoryListResponse)
def list_stories(
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    service: StoryQueryService = Depends(get_query_service),
):
    """List stories, oldest first."""
    return service.list_stories(limit=limit, offset=offset)


@router.get("/{story_id}", response_model=StoryDetail)
def get_story(
    story_id: int,
    service: StoryQueryService = Depends(get_query_service),
):
    """
    Get a story with its paragraphs and sentences.

    Returns 404 if the story does not exist.
    """
    return service.get_story(story_id)
