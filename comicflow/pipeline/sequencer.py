"""
Strictly ordered, one-at-a-time image generation across the panels of a story.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Sequence

from comicflow.ai_generation import PanelImageGenerator
from comicflow.common import ImageHaltError, ImageServiceError
from comicflow.story_generation import Panel

PanelUpdatedCallback = Callable[[int, str], None]
HaltCallback = Callable[[ImageHaltError], None]
RequestCallback = Callable[[int], None]
EpochGuard = Callable[[int], bool]

logger = logging.getLogger(__name__)


class SequenceOutcome(Enum):
    COMPLETED = "completed"
    HALTED = "halted"
    ABANDONED = "abandoned"


class PanelImageSequencer:
    """
    Drives per-panel image requests in ascending index order, never concurrently.

    Each response is applied through ``on_panel_updated`` before the next request is
    issued. The first failure halts the sequence and leaves later panels untouched.
    Results that arrive after their epoch went stale are dropped without calling back.
    """

    def __init__(self, image_generator: PanelImageGenerator) -> None:
        self._image_generator = image_generator

    async def run(
        self,
        panels: Sequence[Panel],
        epoch: int,
        on_panel_updated: PanelUpdatedCallback,
        on_halt: HaltCallback,
        *,
        is_current: EpochGuard,
        on_request: RequestCallback | None = None,
    ) -> SequenceOutcome:
        index = 0
        total = len(panels)
        while index < total:
            panel = panels[index]
            if panel.has_image:
                index += 1
                continue

            if not is_current(epoch):
                return self._abandon(epoch, index)

            if on_request is not None:
                on_request(index)

            logger.debug("Requesting image %d/%d (epoch %d).", index + 1, total, epoch)
            try:
                image_ref = await self._image_generator.generate_image(panel.prompt_text)
            except ImageServiceError as exc:
                if not is_current(epoch):
                    return self._abandon(epoch, index)
                on_halt(ImageHaltError(index=index, epoch=epoch, cause=exc))
                return SequenceOutcome.HALTED

            if not is_current(epoch):
                return self._abandon(epoch, index)

            on_panel_updated(index, image_ref)
            index += 1

        return SequenceOutcome.COMPLETED

    @staticmethod
    def _abandon(epoch: int, index: int) -> SequenceOutcome:
        logger.debug("Discarding stale image sequence for epoch %d at panel %d.", epoch, index)
        return SequenceOutcome.ABANDONED
