"""
Word Submission Endpoint

POST /add appends one word to the collaborative story.
"""

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from collab_story.api.deps import get_engine
from collab_story.weaving.models import WordRequest, WordResponse
from collab_story.weaving.services import AppendEngine

router = APIRouter(tags=["words"])


def require_json(content_type: str = Header(default="")) -> None:
    """Reject requests whose body is not declared as JSON."""
    if content_type.split(";")[0].strip().lower() != "application/json":
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="content type 'application/json' required",
        )


@router.post(
    "/add",
    response_model=WordResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_json)],
    responses={
        400: {"description": "Invalid word or malformed body"},
        415: {"description": "Content type is not application/json"},
        503: {"description": "Storage unavailable; safe to retry"},
    },
)
async def add_word(
    body: WordRequest,
    engine: AppendEngine = Depends(get_engine),
):
    """
    Add a word to the active story.

    Words fill the title first, then sentences. Retrying after a 503 may
    append the word twice if the original write did commit.
    """
    # The engine blocks on its lock; keep the event loop free
    result = await run_in_threadpool(engine.append_word, body.word)
    return WordResponse.from_result(result)
