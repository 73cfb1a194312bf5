"""
Luminance conversion and stimulus image synthesis.
"""

from .luminance import LuminanceTable, LUT_SIZE
from .stimulus_images import make_disc_image, make_cross_image, image_to_payload

__all__ = [
    "LuminanceTable",
    "LUT_SIZE",
    "make_disc_image",
    "make_cross_image",
    "image_to_payload",
]
