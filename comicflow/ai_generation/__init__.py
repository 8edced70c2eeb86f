"""
AI image generation package for comicflow.
"""

from .image_service import PanelImageGenerator

__all__ = ["PanelImageGenerator"]
