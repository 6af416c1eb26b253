"""
Conversion of loaded sprite images into occupancy values.

The asset pipeline loads the file; this module only reads pixels of a
PIL image that is already in memory.
"""

from __future__ import annotations

import numpy as np
from PIL import Image

from colgen import log
from colgen.errors import InvalidInputError

SUPPORTED_CHANNELS = ("A", "L", "R", "G", "B")


def _has_alpha(image: Image.Image) -> bool:
    if "A" in image.getbands():
        return True
    return image.mode == "P" and "transparency" in image.info


def _normalised_luminance(image: Image.Image) -> np.ndarray:
    if image.mode in ("I", "I;16", "I;16B", "I;16L"):
        data = np.asarray(image, dtype=np.float64)
        return np.clip(data / 65535.0, 0.0, 1.0)
    if image.mode == "F":
        data = np.asarray(image, dtype=np.float64)
        return np.clip(np.nan_to_num(data, nan=0.0), 0.0, 1.0)
    return np.asarray(image.convert("L"), dtype=np.float64) / 255.0


def image_to_occupancy(image: Image.Image, channel: str = "A") -> np.ndarray:
    """
    Extract per-pixel occupancy in [0, 1] from a PIL image.

    Args:
        image: Loaded image of any Pillow mode.
        channel: "A" for alpha, "L" for luminance, "R"/"G"/"B" for a colour
            channel. Images without alpha fall back to luminance.

    Returns:
        float64 array of shape (height, width).
    """
    if not isinstance(image, Image.Image):
        raise InvalidInputError(f"expected a PIL image, got {type(image).__name__}")
    if channel not in SUPPORTED_CHANNELS:
        raise InvalidInputError(
            f"unsupported channel {channel!r}, expected one of {SUPPORTED_CHANNELS}"
        )
    width, height = image.size
    if width < 1 or height < 1:
        raise InvalidInputError(f"image must be at least 1x1, got {width}x{height}")

    if channel == "A":
        if _has_alpha(image):
            rgba = image.convert("RGBA")
            return np.asarray(rgba.getchannel("A"), dtype=np.float64) / 255.0
        log.info(f"[image_to_occupancy] Image mode {image.mode} has no alpha, using luminance")
        return _normalised_luminance(image)

    if channel == "L":
        return _normalised_luminance(image)

    rgb = image.convert("RGB")
    return np.asarray(rgb.getchannel(channel), dtype=np.float64) / 255.0
