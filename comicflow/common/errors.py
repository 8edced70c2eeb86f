"""
Exception taxonomy shared by the comicflow services and pipeline.
"""

from __future__ import annotations

from typing import Any

EMPTY_STORY_MESSAGE = (
    "Sorry, I couldn't generate a story for this prompt. Please try a different prompt "
    "that's more appropriate for a family-friendly dog adventure!"
)
STORY_SERVICE_MESSAGE = "An error occurred while generating the story. Please try again."
IMAGE_HALT_MESSAGE = "An error occurred while generating the panel images. Please try again."


class ComicFlowError(Exception):
    """Base class for every error raised by comicflow."""


class ServiceRequestError(ComicFlowError):
    """
    Raised when a JSON service call fails at the transport, status, or decoding level.
    """

    def __init__(self, message: str, *, url: str, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class StoryError(ComicFlowError):
    """
    Story-stage failure. Terminal for the generation that triggered it.
    """

    kind = "story"
    user_message = STORY_SERVICE_MESSAGE


class EmptyStoryError(StoryError):
    """The story service answered but produced no usable panels."""

    kind = "empty_story"
    user_message = EMPTY_STORY_MESSAGE


class StoryServiceError(StoryError):
    """Transport or parse failure on the story call."""

    kind = "story_service"
    user_message = STORY_SERVICE_MESSAGE


class ImageServiceError(ComicFlowError):
    """The image service did not return a usable image reference."""


class ImageHaltError(ComicFlowError):
    """
    Mid-sequence image failure that stopped the panel sequence at ``index``.
    """

    kind = "image_halt"
    user_message = IMAGE_HALT_MESSAGE

    def __init__(self, *, index: int, epoch: int, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Image generation halted at panel {index} (epoch {epoch}){detail}")
        self.index = index
        self.epoch = epoch
        self.cause: Any = cause
