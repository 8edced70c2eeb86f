from __future__ import annotations

from typing import Any

import pytest

from comicflow.ai_generation import PanelImageGenerator
from comicflow.pipeline import GenerationOrchestrator
from comicflow.story_generation import StoryGenerator

from fakes import FakeService


@pytest.fixture
def event_log() -> list[str]:
    return []


@pytest.fixture
def story_service(event_log: list[str]) -> FakeService:
    return FakeService("story", event_log)


@pytest.fixture
def image_service(event_log: list[str]) -> FakeService:
    return FakeService("image", event_log)


@pytest.fixture
def make_orchestrator(story_service: FakeService, image_service: FakeService):
    def _make(**kwargs: Any) -> GenerationOrchestrator:
        return GenerationOrchestrator(
            story_generator=StoryGenerator(url="http://story.test", post_fn=story_service),
            image_generator=PanelImageGenerator(url="http://image.test", post_fn=image_service),
            **kwargs,
        )

    return _make
