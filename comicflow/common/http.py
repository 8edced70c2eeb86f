"""
Requests-powered JSON service helpers.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

import requests

from .errors import ServiceRequestError

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_TIMEOUT = 60.0

logger = logging.getLogger(__name__)


@dataclass
class ServiceResponse:
    """
    Decoded JSON response returned from a service call.
    """

    status: int
    payload: Any


JsonPostCallable = Callable[..., Awaitable[ServiceResponse]]


def resolve_base_url(base_url: str | None = None) -> str:
    """Return the service base URL without a trailing slash."""
    resolved = base_url or os.getenv("COMICFLOW_BASE_URL") or DEFAULT_BASE_URL
    return resolved.rstrip("/")


def resolve_timeout(timeout: float | None = None) -> float:
    if timeout is not None:
        return float(timeout)

    raw = os.getenv("COMICFLOW_REQUEST_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(
            f"COMICFLOW_REQUEST_TIMEOUT must be a number of seconds, got {raw!r}"
        ) from exc


async def post_json(
    *,
    url: str,
    payload: Mapping[str, Any],
    timeout: float | None = None,
    session: requests.Session | None = None,
) -> ServiceResponse:
    """
    POST ``payload`` as JSON and return the decoded body.

    The blocking request runs in a worker thread so the event loop stays free;
    the caller resumes on the loop once the response is decoded.
    """
    return await asyncio.to_thread(
        _post_json_blocking,
        url=url,
        payload=payload,
        timeout=resolve_timeout(timeout),
        session=session,
    )


def _post_json_blocking(
    *,
    url: str,
    payload: Mapping[str, Any],
    timeout: float,
    session: requests.Session | None,
) -> ServiceResponse:
    headers = {"Content-Type": "application/json"}

    sender = session.post if session is not None else requests.post
    logger.debug("POST %s", url)
    try:
        response = sender(url, json=dict(payload), headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise ServiceRequestError(f"Request to {url} failed: {exc}", url=url) from exc

    status = response.status_code
    if not 200 <= status < 300:
        raise ServiceRequestError(
            f"Request to {url} returned HTTP {status}.", url=url, status=status
        )

    try:
        body = response.json()
    except ValueError as exc:
        raise ServiceRequestError(
            f"Response from {url} is not valid JSON.", url=url, status=status
        ) from exc

    return ServiceResponse(status=status, payload=body)


def with_retries(
    post_fn: JsonPostCallable,
    *,
    attempts: int = 3,
    delay: float = 1.0,
) -> JsonPostCallable:
    """
    Wrap ``post_fn`` so :class:`ServiceRequestError` failures are retried.

    ``attempts`` counts the first call. Other exceptions propagate immediately.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1.")

    @functools.wraps(post_fn)
    async def _retrying(**kwargs: Any) -> ServiceResponse:
        attempt = 1
        while True:
            try:
                return await post_fn(**kwargs)
            except ServiceRequestError as exc:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "Attempt %d/%d to %s failed (%s); retrying in %.1fs.",
                    attempt,
                    attempts,
                    exc.url,
                    exc,
                    delay,
                )
            await asyncio.sleep(delay)
            attempt += 1

    return _retrying
