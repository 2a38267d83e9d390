"""Validation of image payloads returned by remote providers.

Small helpers around Pillow that confirm a byte payload really is a raster
image and build the data URL handed to the rest of the pipeline.

Example:
    mime = detect_image_mime(payload)
    url = to_data_url(payload, mime)
"""
from __future__ import annotations

import base64
import io

from PIL import Image, UnidentifiedImageError


def detect_image_mime(data: bytes) -> str:
    """Return the MIME type of an encoded image.

    Args:
        data: Raw bytes as returned by a provider.

    Returns:
        A MIME type such as `image/jpeg` or `image/png`.

    Raises:
        ValueError: If the bytes are empty, truncated, or not an image Pillow can read.
    """
    if not data:
        raise ValueError("Empty image payload")

    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError("Payload is not a supported image format") from exc

    mime = Image.MIME.get(fmt or "")
    if not mime:
        raise ValueError(f"Unsupported image format: {fmt}")
    return mime


def to_data_url(data: bytes, mime_type: str) -> str:
    """Encode image bytes as a base64 data URL."""
    encoded = base64.b64encode(data).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"
