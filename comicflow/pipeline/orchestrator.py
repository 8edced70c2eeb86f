"""
Orchestrates prompt-to-comic generation: story first, then panel images in order.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Callable

from comicflow.ai_generation import PanelImageGenerator
from comicflow.common import (
    ImageHaltError,
    JsonPostCallable,
    StoryError,
    StoryServiceError,
)
from comicflow.story_generation import StoryGenerator

from .sequencer import PanelImageSequencer, SequenceOutcome
from .state import (
    ErrorInfo,
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

StateListener = Callable[[OrchestrationState], None]

logger = logging.getLogger(__name__)


class GenerationOrchestrator:
    """
    Owns the orchestration state and chains the story and image services.

    ``start_generation`` may be called while an earlier generation is still running.
    Each call opens a new epoch; results belonging to an older epoch are discarded
    before they can touch the state. In-flight requests are never aborted.

    Image-stage halts leave ``last_error`` untouched unless ``surface_image_errors``
    is set; the halt is always visible through ``state.phase`` and ``state.halt``.
    """

    def __init__(
        self,
        *,
        story_generator: StoryGenerator | None = None,
        image_generator: PanelImageGenerator | None = None,
        sequencer: PanelImageSequencer | None = None,
        base_url: str | None = None,
        story_url: str | None = None,
        image_url: str | None = None,
        timeout: float | None = None,
        post_fn: JsonPostCallable | None = None,
        surface_image_errors: bool = False,
    ) -> None:
        self._story_generator = story_generator or StoryGenerator(
            url=story_url,
            base_url=base_url,
            timeout=timeout,
            post_fn=post_fn,
        )
        if sequencer is None:
            sequencer = PanelImageSequencer(
                image_generator
                or PanelImageGenerator(
                    url=image_url,
                    base_url=base_url,
                    timeout=timeout,
                    post_fn=post_fn,
                )
            )
        self._sequencer = sequencer
        self._surface_image_errors = surface_image_errors
        self._state = OrchestrationState()
        self._listeners: list[StateListener] = []
        self._tasks: set[asyncio.Task[OrchestrationState]] = set()

    @property
    def state(self) -> OrchestrationState:
        """Return the current read-only snapshot."""
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Call ``listener`` with every new snapshot. Returns an unsubscribe callable.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def submit(self, prompt_text: str) -> asyncio.Task[OrchestrationState]:
        """
        Schedule :meth:`start_generation` on the running loop and return its task.
        """
        _validate_prompt(prompt_text)
        task = asyncio.get_running_loop().create_task(self.start_generation(prompt_text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> OrchestrationState:
        """Wait for every task started through :meth:`submit` to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
        return self._state

    async def start_generation(self, prompt_text: str) -> OrchestrationState:
        """
        Run one generation to its terminal phase and return the latest snapshot.

        The returned snapshot may already belong to a newer generation if another
        call superseded this one.
        """
        _validate_prompt(prompt_text)
        self._set_state(reset(self._state, prompt_text))
        epoch = self._state.generation_epoch
        logger.info("Starting generation %d for prompt %r.", epoch, prompt_text)

        try:
            return await self._run_epoch(epoch, prompt_text)
        except asyncio.CancelledError:
            self._settle_cancelled(epoch)
            raise

    async def _run_epoch(self, epoch: int, prompt_text: str) -> OrchestrationState:
        try:
            panels = await self._story_generator.generate_story(prompt_text)
        except StoryError as exc:
            if not self._is_current(epoch):
                logger.debug("Discarding stale story failure for epoch %d.", epoch)
                return self._state
            logger.warning("Story generation %d failed: %s", epoch, exc)
            self._set_state(apply_story_failed(self._state, ErrorInfo.from_exception(exc)))
            return self._state

        if not self._is_current(epoch):
            logger.debug("Discarding stale story result for epoch %d.", epoch)
            return self._state

        self._set_state(apply_story_loaded(self._state, panels))
        logger.info("Generation %d produced %d panels.", epoch, len(panels))

        outcome = await self._sequencer.run(
            panels,
            epoch,
            functools.partial(self._handle_panel_updated, epoch),
            functools.partial(self._handle_halt, epoch),
            is_current=self._is_current,
            on_request=functools.partial(self._handle_image_requested, epoch),
        )

        if outcome is SequenceOutcome.COMPLETED and self._is_current(epoch):
            self._set_state(apply_complete(self._state))
            logger.info("Generation %d complete.", epoch)

        return self._state

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._state.generation_epoch

    def _settle_cancelled(self, epoch: int) -> None:
        if not self._is_current(epoch) or not self._state.is_busy:
            return
        logger.warning("Generation %d was cancelled.", epoch)
        if not self._state.panels:
            error = StoryServiceError("Story request was cancelled.")
            self._set_state(apply_story_failed(self._state, ErrorInfo.from_exception(error)))
            return
        index = self._state.active_index
        if index is None:
            pending = self._state.pending_indices
            index = pending[0] if pending else len(self._state.panels) - 1
        self._set_state(apply_halt(self._state, HaltInfo(index=index, reason="cancelled")))

    def _handle_image_requested(self, epoch: int, index: int) -> None:
        if self._is_current(epoch):
            self._set_state(apply_image_requested(self._state, index))

    def _handle_panel_updated(self, epoch: int, index: int, image_ref: str) -> None:
        if self._is_current(epoch):
            self._set_state(apply_panel_image(self._state, index, image_ref))

    def _handle_halt(self, epoch: int, error: ImageHaltError) -> None:
        if not self._is_current(epoch):
            return
        logger.warning(
            "Image sequence for generation %d halted at panel %d: %s",
            epoch,
            error.index,
            error.cause,
        )
        surfaced = ErrorInfo.from_exception(error) if self._surface_image_errors else None
        self._set_state(apply_halt(self._state, HaltInfo.from_exception(error), error=surfaced))

    def _set_state(self, state: OrchestrationState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener %r failed.", listener)


def _validate_prompt(prompt_text: str) -> None:
    if not prompt_text or not prompt_text.strip():
        raise ValueError("Prompt text must be a non-empty string.")
