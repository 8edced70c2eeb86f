from __future__ import annotations

import asyncio

from comicflow.ai_generation import PanelImageGenerator
from comicflow.common import ImageHaltError, ServiceRequestError
from comicflow.pipeline import PanelImageSequencer, SequenceOutcome
from comicflow.story_generation import Panel

from fakes import FakeService, wait_for

PANELS = (
    Panel("scene 0", "caption 0"),
    Panel("scene 1", "caption 1"),
    Panel("scene 2", "caption 2"),
)


def _sequencer(service: FakeService) -> PanelImageSequencer:
    return PanelImageSequencer(PanelImageGenerator(url="http://image.test", post_fn=service))


def test_sequencer_processes_panels_in_order() -> None:
    log: list[str] = []
    service = FakeService("image", log)
    for index in range(3):
        service.responses[f"scene {index}"] = {"imageUrl": f"https://img/{index}.png"}
    halts: list[ImageHaltError] = []

    outcome = asyncio.run(
        _sequencer(service).run(
            PANELS,
            1,
            lambda index, ref: log.append(f"applied:{index}:{ref}"),
            halts.append,
            is_current=lambda epoch: True,
        )
    )

    assert outcome is SequenceOutcome.COMPLETED
    assert halts == []
    assert log == [
        "image:request:scene 0",
        "image:response:scene 0",
        "applied:0:https://img/0.png",
        "image:request:scene 1",
        "image:response:scene 1",
        "applied:1:https://img/1.png",
        "image:request:scene 2",
        "image:response:scene 2",
        "applied:2:https://img/2.png",
    ]
    assert service.max_in_flight == 1


def test_sequencer_halts_on_first_failure() -> None:
    service = FakeService("image")
    service.responses["scene 0"] = {"imageUrl": "https://img/0.png"}
    service.responses["scene 1"] = {"error": "safety filter"}
    service.responses["scene 2"] = {"imageUrl": "https://img/2.png"}
    updates: list[tuple[int, str]] = []
    halts: list[ImageHaltError] = []

    outcome = asyncio.run(
        _sequencer(service).run(
            PANELS,
            4,
            lambda index, ref: updates.append((index, ref)),
            halts.append,
            is_current=lambda epoch: True,
        )
    )

    assert outcome is SequenceOutcome.HALTED
    assert updates == [(0, "https://img/0.png")]
    assert len(halts) == 1
    assert halts[0].index == 1
    assert halts[0].epoch == 4
    assert service.requests == ["scene 0", "scene 1"]


def test_sequencer_abandons_stale_epoch_silently() -> None:
    async def scenario() -> None:
        service = FakeService("image")
        service.responses["scene 0"] = {"imageUrl": "https://img/0.png"}
        service.responses["scene 1"] = {"imageUrl": "https://img/1.png"}
        service.gates["scene 0"] = asyncio.Event()
        current = {"epoch": 1}
        updates: list[int] = []
        halts: list[ImageHaltError] = []

        task = asyncio.create_task(
            _sequencer(service).run(
                PANELS,
                1,
                lambda index, ref: updates.append(index),
                halts.append,
                is_current=lambda epoch: epoch == current["epoch"],
            )
        )
        await wait_for(lambda: service.requests == ["scene 0"])
        current["epoch"] = 2
        service.gates["scene 0"].set()

        assert await task is SequenceOutcome.ABANDONED
        assert updates == []
        assert halts == []
        assert service.requests == ["scene 0"]

    asyncio.run(scenario())


def test_sequencer_suppresses_halt_for_stale_epoch() -> None:
    async def scenario() -> None:
        service = FakeService("image")
        service.responses["scene 0"] = ServiceRequestError("timeout", url="http://image.test")
        service.gates["scene 0"] = asyncio.Event()
        current = {"epoch": 1}
        halts: list[ImageHaltError] = []

        task = asyncio.create_task(
            _sequencer(service).run(
                PANELS,
                1,
                lambda index, ref: None,
                halts.append,
                is_current=lambda epoch: epoch == current["epoch"],
            )
        )
        await wait_for(lambda: bool(service.requests))
        current["epoch"] = 2
        service.gates["scene 0"].set()

        assert await task is SequenceOutcome.ABANDONED
        assert halts == []

    asyncio.run(scenario())


def test_sequencer_skips_panels_that_already_have_images() -> None:
    service = FakeService("image")
    service.responses["scene 1"] = {"imageUrl": "https://img/1.png"}
    requested: list[int] = []
    panels = (
        Panel("scene 0", "caption 0", "https://img/0.png"),
        Panel("scene 1", "caption 1"),
    )

    outcome = asyncio.run(
        _sequencer(service).run(
            panels,
            1,
            lambda index, ref: None,
            lambda error: None,
            is_current=lambda epoch: True,
            on_request=requested.append,
        )
    )

    assert outcome is SequenceOutcome.COMPLETED
    assert requested == [1]
    assert service.requests == ["scene 1"]
