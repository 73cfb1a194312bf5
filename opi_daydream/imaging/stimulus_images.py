"""
Stimulus and fixation images uploaded to the phone.

All images are H x W x 3 uint8 RGB arrays, sent row-major, left to right,
top to bottom, three bytes per pixel.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

DEFAULT_FIXATION_COLOR = (0, 128, 0)


def make_disc_image(radius: int, foreground: int, background: int) -> NDArray[np.uint8]:
    """
    Filled disc on a square background.

    The image is 2*radius pixels on a side. Pixel (radius + iy, radius + ix)
    is foreground when ix^2 + iy^2 <= radius; note the squared offset is
    compared with the radius itself, as the phone software expects.

    Args:
        radius: Half the image side in pixels (>= 1)
        foreground: Grey level inside the disc
        background: Grey level outside the disc

    Returns:
        RGB image of shape (2*radius, 2*radius, 3)
    """
    radius = max(int(radius), 1)
    side = 2 * radius
    image = np.full((side, side, 3), background, dtype=np.uint8)

    offsets = np.arange(side) - radius
    iy, ix = np.meshgrid(offsets, offsets, indexing="ij")
    inside = ix ** 2 + iy ** 2 <= radius
    image[inside] = foreground
    return image


def make_cross_image(size: int, color: Sequence[int] = DEFAULT_FIXATION_COLOR) -> NDArray[np.uint8]:
    """
    Cross-hair fixation marker: one row and one column through the middle.

    Args:
        size: Side length in pixels (odd sizes give a centred cross)
        color: RGB triple in [0, 255]

    Returns:
        RGB image of shape (size, size, 3), black outside the cross
    """
    if size < 1:
        raise ValueError(f"Fixation size must be positive, got {size}")
    rgb = np.asarray(color, dtype=np.int64)
    if rgb.shape != (3,):
        raise ValueError(f"Fixation color must be an RGB triple, got {color!r}")

    image = np.zeros((size, size, 3), dtype=np.uint8)
    middle = (size - 1) // 2
    image[middle, :, :] = np.clip(rgb, 0, 255)
    image[:, middle, :] = np.clip(rgb, 0, 255)
    return image


def image_to_payload(image: NDArray) -> bytes:
    """
    Serialize an H x W x 3 image to the upload byte stream.

    Raises:
        ValueError: if the array is not H x W x 3
    """
    pixels = np.asarray(image)
    if pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(f"Image must have shape (height, width, 3), got {pixels.shape}")
    return np.ascontiguousarray(np.clip(pixels, 0, 255).astype(np.uint8)).tobytes()
