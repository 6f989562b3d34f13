"""
Image Processor: thumbnails and PNG encoding

Reduces full-size portraits to small square thumbnails with box filtering
and encodes images as PNG bytes or base64 data URLs for the portrait
library and the HTTP API.
"""

from __future__ import annotations

import base64
import logging
from io import BytesIO

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

# Full-size portrait dimensions
FULL_SIZE = 1024

# Thumbnail dimensions stored alongside each portrait
THUMBNAIL_SIZE = 64

_DATA_URL_PREFIX = "data:image/png;base64,"


class EncodingError(RuntimeError):
    """An image could not be encoded to PNG."""


def reduce_thumbnail(image: Image.Image, size: int = THUMBNAIL_SIZE) -> Image.Image:
    """Downsample an image to a size x size square using a box filter.

    Args:
        image: Source image (any mode; converted to RGBA).
        size:  Thumbnail edge in pixels.

    Raises:
        ValueError: If size is not positive.
    """
    if size <= 0:
        raise ValueError(f"Thumbnail size must be > 0, got {size}")

    img = image.convert("RGBA")
    if img.size == (size, size):
        return img.copy()
    return img.resize((size, size), Image.BOX)


def encode_png(image: Image.Image) -> bytes:
    """Encode an image as PNG bytes.

    Raises:
        EncodingError: If Pillow fails to write the image.
    """
    buf = BytesIO()
    try:
        image.save(buf, "PNG")
    except (OSError, ValueError, KeyError) as exc:
        raise EncodingError(f"PNG encoding failed: {exc}") from exc
    return buf.getvalue()


def to_data_url(png_bytes: bytes) -> str:
    """Wrap PNG bytes in a base64 data URL."""
    return _DATA_URL_PREFIX + base64.b64encode(png_bytes).decode("ascii")


def decode_data_url(data_url: str) -> Image.Image:
    """Inverse of to_data_url(); returns the decoded RGBA image."""
    if not data_url.startswith(_DATA_URL_PREFIX):
        raise ValueError("Not a PNG data URL")
    raw = base64.b64decode(data_url[len(_DATA_URL_PREFIX):])
    return Image.open(BytesIO(raw)).convert("RGBA")


def visible_pixel_count(image: Image.Image) -> int:
    """Number of pixels with non-zero alpha."""
    alpha = np.asarray(image.convert("RGBA").getchannel("A"))
    return int(np.count_nonzero(alpha))


def is_image_empty(image: Image.Image, threshold: int = 100) -> bool:
    """True if fewer than *threshold* pixels are visible."""
    return visible_pixel_count(image) < threshold
