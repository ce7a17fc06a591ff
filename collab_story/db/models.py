"""Pydantic models for stored entities."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict


class Story(BaseModel):
    """Top-level container. At most one story is unfinished at a time."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str = ""
    title_complete: bool = False
    finished: bool = False
    created_at: datetime
    updated_at: datetime

    @property
    def title_words(self) -> List[str]:
        return self.title.split()


class Paragraph(BaseModel):
    """A run of sentences inside a story."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    story_id: int
    finished: bool = False


class Sentence(BaseModel):
    """Space-joined words inside a paragraph."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    paragraph_id: int
    finished: bool = False
    content: str = ""

    @property
    def words(self) -> List[str]:
        return self.content.split()
