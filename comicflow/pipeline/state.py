"""
Immutable orchestration state and the pure transitions applied to it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Sequence

import yaml

from comicflow.common import ImageHaltError, StoryError
from comicflow.story_generation import Panel


class GenerationPhase(Enum):
    IDLE = "idle"
    STORY_LOADING = "story_loading"
    FAILED = "failed"
    PANELS_READY = "panels_ready"
    IMAGE_LOADING = "image_loading"
    COMPLETE = "complete"
    HALTED = "halted"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_PHASES


_TERMINAL_PHASES = frozenset(
    {GenerationPhase.FAILED, GenerationPhase.COMPLETE, GenerationPhase.HALTED}
)


@dataclass(frozen=True)
class ErrorInfo:
    """
    User-facing description of a generation failure.

    Attributes
    ----------
    kind:
        ``"empty_story"``, ``"story_service"`` or ``"image_halt"``.
    message:
        Text meant to be shown to the user as-is.
    detail:
        Diagnostic text taken from the underlying exception.
    """

    kind: str
    message: str
    detail: str = ""

    @classmethod
    def from_exception(cls, error: StoryError | ImageHaltError) -> "ErrorInfo":
        return cls(kind=error.kind, message=error.user_message, detail=str(error))

    def as_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message, "detail": self.detail}


@dataclass(frozen=True)
class HaltInfo:
    """Where and why an image sequence stopped."""

    index: int
    reason: str

    @classmethod
    def from_exception(cls, error: ImageHaltError) -> "HaltInfo":
        reason = str(error.cause) if error.cause is not None else str(error)
        return cls(index=error.index, reason=reason)


@dataclass(frozen=True)
class OrchestrationState:
    """
    Read-only snapshot of the generation pipeline handed to the rendering layer.
    """

    panels: tuple[Panel, ...] = ()
    is_busy: bool = False
    last_error: ErrorInfo | None = None
    generation_epoch: int = 0
    phase: GenerationPhase = GenerationPhase.IDLE
    active_index: int | None = None
    halt: HaltInfo | None = None
    prompt_text: str = ""

    @property
    def completed_count(self) -> int:
        return sum(1 for panel in self.panels if panel.has_image)

    @property
    def pending_indices(self) -> tuple[int, ...]:
        return tuple(index for index, panel in enumerate(self.panels) if not panel.has_image)

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt_text,
            "generation_epoch": self.generation_epoch,
            "phase": self.phase.value,
            "is_busy": self.is_busy,
            "active_index": self.active_index,
            "last_error": self.last_error.as_dict() if self.last_error else None,
            "halt": {"index": self.halt.index, "reason": self.halt.reason} if self.halt else None,
            "panels": [panel.as_dict() for panel in self.panels],
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)


def reset(state: OrchestrationState, prompt_text: str) -> OrchestrationState:
    """Begin a new epoch: panels and errors cleared, story request outstanding."""
    return OrchestrationState(
        panels=(),
        is_busy=True,
        last_error=None,
        generation_epoch=state.generation_epoch + 1,
        phase=GenerationPhase.STORY_LOADING,
        prompt_text=prompt_text,
    )


def apply_story_loaded(
    state: OrchestrationState, panels: Sequence[Panel]
) -> OrchestrationState:
    if not panels:
        raise ValueError("A loaded story must contain at least one panel.")
    return replace(
        state,
        panels=tuple(panels),
        phase=GenerationPhase.PANELS_READY,
        active_index=None,
    )


def apply_story_failed(state: OrchestrationState, error: ErrorInfo) -> OrchestrationState:
    return replace(
        state,
        panels=(),
        is_busy=False,
        last_error=error,
        phase=GenerationPhase.FAILED,
        active_index=None,
    )


def apply_image_requested(state: OrchestrationState, index: int) -> OrchestrationState:
    _check_index(state, index)
    return replace(state, phase=GenerationPhase.IMAGE_LOADING, active_index=index)


def apply_panel_image(
    state: OrchestrationState, index: int, image_ref: str
) -> OrchestrationState:
    """
    Merge ``image_ref`` into the panel at ``index``; order, length and all other
    panel fields are preserved.
    """
    _check_index(state, index)
    panels = list(state.panels)
    panels[index] = panels[index].with_image(image_ref)
    return replace(state, panels=tuple(panels))


def apply_halt(
    state: OrchestrationState,
    halt: HaltInfo,
    *,
    error: ErrorInfo | None = None,
) -> OrchestrationState:
    """
    Stop the sequence. Completed panels are kept; ``error`` is only recorded when given.
    """
    return replace(
        state,
        is_busy=False,
        phase=GenerationPhase.HALTED,
        active_index=None,
        halt=halt,
        last_error=error if error is not None else state.last_error,
    )


def apply_complete(state: OrchestrationState) -> OrchestrationState:
    return replace(
        state,
        is_busy=False,
        phase=GenerationPhase.COMPLETE,
        active_index=None,
    )


def _check_index(state: OrchestrationState, index: int) -> None:
    if not 0 <= index < len(state.panels):
        raise IndexError(
            f"Panel index {index} out of range for {len(state.panels)} panels."
        )
