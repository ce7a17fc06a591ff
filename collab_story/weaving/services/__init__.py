"""
Weaving Services

Word validation, placement and read-side story assembly.
"""

from .append_engine import AppendEngine, Placement, Resolution
from .story_service import StoryQueryService
from .validator import validate_word

__all__ = [
    "AppendEngine",
    "Placement",
    "Resolution",
    "StoryQueryService",
    "validate_word",
]
