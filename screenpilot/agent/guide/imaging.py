from __future__ import annotations

import base64
import hashlib
from io import BytesIO
from typing import Any

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import ImageEncodingFailed


def _pil_to_base64_png(image: Image.Image) -> str:
    buf = BytesIO()
    if image.mode not in ("RGB", "RGBA", "L"):
        image = image.convert("RGB")
    image.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("utf-8")


def encode_image(image: Any) -> str:
    """
    Serialize a screenshot to base64 PNG.

    Accepts a PIL image, an HxWxC / HxW uint8-compatible array, raw encoded image
    bytes, or a string that is already base64. Raises `ImageEncodingFailed`.
    """
    if image is None:
        raise ImageEncodingFailed("no image")
    if isinstance(image, str):
        if not image.strip():
            raise ImageEncodingFailed("empty base64 string")
        return image.strip()
    try:
        if isinstance(image, Image.Image):
            return _pil_to_base64_png(image)
        if isinstance(image, (bytes, bytearray)):
            with Image.open(BytesIO(bytes(image))) as img:
                img.load()
                return _pil_to_base64_png(img)
        if isinstance(image, np.ndarray):
            arr = np.asarray(image)
            if arr.dtype != np.uint8:
                arr = np.clip(arr, 0, 255).astype("uint8")
            return _pil_to_base64_png(Image.fromarray(arr))
    except (OSError, ValueError, TypeError, UnidentifiedImageError) as e:
        raise ImageEncodingFailed(f"{type(image).__name__}: {e}") from e
    raise ImageEncodingFailed(f"unsupported image type: {type(image).__name__}")


def image_signature(image_b64: str) -> str:
    return hashlib.md5((image_b64 or "").encode("utf-8", errors="ignore")).hexdigest()
