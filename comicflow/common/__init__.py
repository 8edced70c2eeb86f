"""
Common utilities shared across comicflow modules.
"""

from .errors import (
    ComicFlowError,
    EmptyStoryError,
    ImageHaltError,
    ImageServiceError,
    ServiceRequestError,
    StoryError,
    StoryServiceError,
)
from .http import (
    JsonPostCallable,
    ServiceResponse,
    post_json,
    resolve_base_url,
    resolve_timeout,
    with_retries,
)

__all__ = [
    "ComicFlowError",
    "EmptyStoryError",
    "ImageHaltError",
    "ImageServiceError",
    "JsonPostCallable",
    "ServiceRequestError",
    "ServiceResponse",
    "StoryError",
    "StoryServiceError",
    "post_json",
    "resolve_base_url",
    "resolve_timeout",
    "with_retries",
]
