"""
Client for the panel image generation service.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping

from comicflow.common import (
    ImageServiceError,
    JsonPostCallable,
    post_json,
    resolve_base_url,
)

IMAGE_ENDPOINT_PATH = "/api/generate/image-gen"

logger = logging.getLogger(__name__)


def _extract_image_url(payload: Any) -> str:
    if not isinstance(payload, Mapping):
        raise ImageServiceError("Image response must be a JSON object.")

    image_url = payload.get("imageUrl")
    if not isinstance(image_url, str) or not image_url.strip():
        raise ImageServiceError("Image response did not include an 'imageUrl'.")

    return image_url


class PanelImageGenerator:
    """
    Thin wrapper around the image service: one prompt in, one image reference out.

    Parameters
    ----------
    url:
        Full image endpoint. Falls back to ``COMICFLOW_IMAGE_URL``, then to
        ``{base_url}/api/generate/image-gen``.
    base_url:
        Service root used when no explicit endpoint is configured. Falls back to
        ``COMICFLOW_BASE_URL``.
    timeout:
        Per-request timeout in seconds. Falls back to ``COMICFLOW_REQUEST_TIMEOUT``.
    post_fn:
        Optional coroutine used to issue the request. Mainly useful for testing.
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
            or os.getenv("COMICFLOW_IMAGE_URL")
            or f"{resolve_base_url(base_url)}{IMAGE_ENDPOINT_PATH}"
        )
        self._timeout = timeout
        self._post_fn: JsonPostCallable = post_fn or post_json

    @property
    def url(self) -> str:
        """Return the image endpoint in use."""
        return self._url

    async def generate_image(self, prompt_text: str) -> str:
        """
        Render one panel image and return its reference (usually a URL).

        Raises
        ------
        ImageServiceError
            On transport failure, non-2xx status, or a response without ``imageUrl``.
        """
        try:
            response = await self._post_fn(
                url=self._url,
                payload={"prompt": prompt_text},
                timeout=self._timeout,
            )
        except Exception as exc:
            raise ImageServiceError(f"Image request failed: {exc}") from exc

        image_url = _extract_image_url(response.payload)
        logger.debug("Image service returned %s", image_url)
        return image_url
