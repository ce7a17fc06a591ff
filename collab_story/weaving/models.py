"""
Weaving Models

Request/response shapes for word submission and story reads.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class WordRequest(BaseModel):
    """Body of an add-word request."""

    word: str


class AppendResult(BaseModel):
    """Where a word landed: the story and the sentence now being written."""

    story_id: int
    title: str
    sentence_content: str = ""


class WordResponse(BaseModel):
    """Add-word response body."""

    id: int
    title: str
    current_sentence: str

    @classmethod
    def from_result(cls, result: AppendResult) -> "WordResponse":
        return cls(
            id=result.story_id,
            title=result.title,
            current_sentence=result.sentence_content,
        )


class StoryBrief(BaseModel):
    """Story summary for list views."""

    id: int
    title: str
    created_at: datetime
    updated_at: datetime


class StoryListResponse(BaseModel):
    """Paginated story listing."""

    limit: int
    offset: int
    count: int
    results: List[StoryBrief] = Field(default_factory=list)


class ParagraphDetail(BaseModel):
    id: int
    finished: bool = False
    sentences: List[str] = Field(default_factory=list)


class StoryDetail(BaseModel):
    """Full story text grouped by paragraph."""

    id: int
    title: str
    finished: bool = False
    created_at: datetime
    updated_at: datetime
    paragraphs: List[ParagraphDetail] = Field(default_factory=list)
