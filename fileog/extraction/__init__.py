"""Content extraction module."""

from .content_reader import ImagePayload, read_text_preview, read_image_payload

__all__ = [
    "ImagePayload",
    "read_text_preview",
    "read_image_payload",
]
