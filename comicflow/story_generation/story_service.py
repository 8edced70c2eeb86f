"""
Service layer turning a user prompt into an ordered list of comic panels.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Iterable, Mapping, Sequence

from comicflow.common import (
    EmptyStoryError,
    JsonPostCallable,
    ServiceResponse,
    StoryServiceError,
    post_json,
    resolve_base_url,
)

from .panel import Panel

STORY_ENDPOINT_PATH = "/api/generate/prompt"

logger = logging.getLogger(__name__)


class StoryGenerator:
    """
    Issues a single request to the story service and converts its answer into panels.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        post_fn: JsonPostCallable | None = None,
    ) -> None:
        self._url = (
            url
            or os.getenv("COMICFLOW_STORY_URL")
            or f"{resolve_base_url(base_url)}{STORY_ENDPOINT_PATH}"
        )
        self._timeout = timeout
        self._post_fn: JsonPostCallable = post_fn or post_json

    @property
    def url(self) -> str:
        """Return the story endpoint in use."""
        return self._url

    async def generate_story(self, prompt_text: str) -> tuple[Panel, ...]:
        """
        Expand ``prompt_text`` into panels, preserving the service-provided order.

        Raises
        ------
        ValueError
            If ``prompt_text`` is empty.
        EmptyStoryError
            If the service produced no ``comics``.
        StoryServiceError
            On transport failure or a malformed response.
        """
        if not prompt_text or not prompt_text.strip():
            raise ValueError("Prompt text must be a non-empty string.")

        try:
            response: ServiceResponse = await self._post_fn(
                url=self._url,
                payload={"prompt": prompt_text},
                timeout=self._timeout,
            )
        except Exception as exc:
            raise StoryServiceError(f"Story request failed: {exc}") from exc

        comics = self._extract_comics(response.payload)
        panels = self._convert_to_panels(comics)
        logger.debug("Story service produced %d panels.", len(panels))
        return panels

    def _extract_comics(self, payload: Any) -> Sequence[Any]:
        if not isinstance(payload, Mapping):
            raise StoryServiceError("Story response must be a JSON object.")

        result = payload.get("result")
        if result is None:
            raise EmptyStoryError("Story response did not include a result.")
        if not isinstance(result, Mapping):
            raise StoryServiceError("Story response 'result' must be an object.")

        comics = result.get("comics")
        if comics is None:
            raise EmptyStoryError("Story response did not include any comics.")
        if not isinstance(comics, list):
            raise StoryServiceError("Story response 'comics' must be a list.")
        if not comics:
            raise EmptyStoryError("Story response contained an empty comics list.")

        return comics

    def _convert_to_panels(self, comics: Iterable[Any]) -> tuple[Panel, ...]:
        panels: list[Panel] = []
        for entry in comics:
            try:
                panels.append(Panel.from_mapping(entry))
            except ValueError as exc:
                raise StoryServiceError(str(exc)) from exc
        return tuple(panels)
