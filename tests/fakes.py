"""
Test doubles for the story and image services.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from comicflow.common import ServiceResponse


class FakeService:
    """
    Scripted stand-in for a JSON endpoint, keyed by the request's ``prompt`` field.

    A response may be a payload, a :class:`ServiceResponse`, or an exception to raise.
    Prompts listed in ``gates`` block until their event is set.
    """

    def __init__(self, name: str, log: list[str] | None = None) -> None:
        self.name = name
        self.responses: dict[str, Any] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.requests: list[str] = []
        self.log = log if log is not None else []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, *, url: str, payload: dict[str, Any], timeout: float | None = None):
        prompt = payload["prompt"]
        self.requests.append(prompt)
        self.log.append(f"{self.name}:request:{prompt}")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            gate = self.gates.get(prompt)
            if gate is not None:
                await gate.wait()
            else:
                await asyncio.sleep(0)
            outcome = self.responses[prompt]
        finally:
            self.in_flight -= 1

        self.log.append(f"{self.name}:response:{prompt}")
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, ServiceResponse):
            return outcome
        return ServiceResponse(status=200, payload=outcome)


def story_payload(*panels: tuple[str, str]) -> dict[str, Any]:
    return {
        "result": {
            "comics": [{"prompt": prompt, "caption": caption} for prompt, caption in panels]
        }
    }


async def wait_for(predicate: Callable[[], bool], *, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("Condition was not met in time.")
