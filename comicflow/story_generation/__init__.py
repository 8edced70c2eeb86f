"""
Story generation utilities for expanding a prompt into comic panels.
"""

from .panel import ImageAlreadySetError, Panel
from .story_service import StoryGenerator

__all__ = [
    "ImageAlreadySetError",
    "Panel",
    "StoryGenerator",
]
