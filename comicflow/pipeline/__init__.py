"""
End-to-end orchestration for comicflow story and image generation.
"""

from .orchestrator import GenerationOrchestrator, StateListener
from .sequencer import PanelImageSequencer, SequenceOutcome
from .state import (
    ErrorInfo,
    GenerationPhase,
    HaltInfo,
    OrchestrationState,
    apply_complete,
    apply_halt,
    apply_image_requested,
    apply_panel_image,
    apply_story_failed,
    apply_story_loaded,
    reset,
)

__all__ = [
    "ErrorInfo",
    "GenerationOrchestrator",
    "GenerationPhase",
    "HaltInfo",
    "OrchestrationState",
    "PanelImageSequencer",
    "SequenceOutcome",
    "StateListener",
    "apply_complete",
    "apply_halt",
    "apply_image_requested",
    "apply_panel_image",
    "apply_story_failed",
    "apply_story_loaded",
    "reset",
]
