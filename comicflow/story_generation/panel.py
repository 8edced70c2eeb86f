"""
Panel data entity shared by the story and image stages.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping


class ImageAlreadySetError(ValueError):
    """Raised when a panel that already holds an image is given another one."""


@dataclass(frozen=True)
class Panel:
    """
    Represents one unit of the generated story.
    """

    prompt_text: str
    caption_text: str
    image_ref: str | None = None

    @property
    def has_image(self) -> bool:
        return self.image_ref is not None

    def with_image(self, image_ref: str) -> "Panel":
        """
        Return a copy carrying ``image_ref``. The image can be set only once.
        """
        if self.image_ref is not None:
            raise ImageAlreadySetError(
                f"Panel already has an image ({self.image_ref!r}); refusing to overwrite it."
            )
        if not image_ref:
            raise ValueError("image_ref must be a non-empty string.")
        return replace(self, image_ref=image_ref)

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "prompt": self.prompt_text,
            "caption": self.caption_text,
        }
        if self.image_ref is not None:
            data["imageUrl"] = self.image_ref
        return data

    @classmethod
    def from_mapping(cls, entry: Any) -> "Panel":
        """
        Build a panel from one ``comics`` entry of the story service response.
        """
        if not isinstance(entry, Mapping):
            raise ValueError(f"Invalid panel entry: {entry!r}")

        prompt = entry.get("prompt")
        caption = entry.get("caption")
        if not isinstance(prompt, str) or not isinstance(caption, str):
            raise ValueError(f"Panel entry must carry string 'prompt' and 'caption': {entry!r}")

        return cls(prompt_text=prompt, caption_text=caption)
