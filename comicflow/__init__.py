"""
comicflow package turning a short prompt into an illustrated multi-panel story.
"""

from .ai_generation import PanelImageGenerator
from .pipeline import (
    GenerationOrchestrator,
    GenerationPhase,
    OrchestrationState,
    PanelImageSequencer,
)
from .story_generation import Panel, StoryGenerator

__all__ = [
    "GenerationOrchestrator",
    "GenerationPhase",
    "OrchestrationState",
    "Panel",
    "PanelImageGenerator",
    "PanelImageSequencer",
    "StoryGenerator",
]
