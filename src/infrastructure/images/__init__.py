"""
Image resizing and transcoding for the /img proxy.

Uses Pillow for decoding, resizing and encoding.
"""

from .transform import (
    TransformOptions,
    is_transformable,
    negotiate_format,
    render_transformed,
    resolve_options,
    transform_image,
)

__all__ = [
    "TransformOptions",
    "is_transformable",
    "negotiate_format",
    "render_transformed",
    "resolve_options",
    "transform_image",
]
