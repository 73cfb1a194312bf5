"""
Daydream wire protocol vocabulary.

Every request is one ASCII line terminated by '\\n'. Binary fields are
little-endian:

    OPI_GET_RES                                -> 4 x int32, 1 filler byte
    OPI_IMAGE <w> <h>                          -> "READY", <w*h*3 uint8>, "OK"
    OPI_MONO_PRESENT <eye> <x> <y> <dur> <rw>  -> uint8 seen, float32 time, 1 filler byte
    OPI_MONO_SET_BG <eye> <grey>               -> "OK"
    OPI_MONO_BG_ADD <eye> <cx> <cy>            -> "OK"
    OPI_CLOSE                                  -> "OK"
"""

from __future__ import annotations

import struct
from typing import Dict, Union

# -----------------------------
# Commands (client -> phone)
# -----------------------------
CMD_GET_RES = "OPI_GET_RES"
CMD_IMAGE = "OPI_IMAGE"
CMD_MONO_PRESENT = "OPI_MONO_PRESENT"
CMD_MONO_SET_BG = "OPI_MONO_SET_BG"
CMD_MONO_BG_ADD = "OPI_MONO_BG_ADD"
CMD_CLOSE = "OPI_CLOSE"

# -----------------------------
# Replies (phone -> client)
# -----------------------------
REPLY_READY = "READY"
REPLY_OK = "OK"

# -----------------------------
# Binary layouts
# -----------------------------
ENDIAN = "little"
RESOLUTION_FORMAT = struct.Struct("<4i")   # width, height, single_width, single_height
SEEN_FORMAT = struct.Struct("<B")
TIME_FORMAT = struct.Struct("<f")
FILLER_SIZE = 1                            # trailing '\n' after binary replies

# Time codes the phone sends with seen == 0 when presentation failed
PRESENT_ERRORS: Dict[int, str] = {
    0: "Background image not set",
    1: "Trouble with stim image",
    2: "Location out of range for daydream",
    3: "OPI present error back from daydream",
}

Number = Union[int, float]


def format_number(value: Number) -> str:
    """Render a numeric argument with at most 15 significant digits.

    Integral values go out without a decimal point, so 150.0 is "150" and
    1.1 * 50 is "55" rather than "55.00000000000001".
    """
    if isinstance(value, bool):
        return str(int(value))
    if hasattr(value, "item"):
        # numpy scalar
        value = value.item()
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.15g}"
    return str(value)


def build_command(name: str, *args: Union[Number, str]) -> str:
    """Join a command name and its arguments with single spaces."""
    parts = [name]
    for arg in args:
        parts.append(arg if isinstance(arg, str) else format_number(arg))
    return " ".join(parts)


def image_command(width: int, height: int) -> str:
    return build_command(CMD_IMAGE, width, height)


def present_command(eye: str, x: Number, y: Number, duration: Number, response_window: Number) -> str:
    return build_command(CMD_MONO_PRESENT, eye, x, y, duration, response_window)


def set_background_command(eye: str, grey: int) -> str:
    return build_command(CMD_MONO_SET_BG, eye, grey)


def background_add_command(eye: str, cx: Number, cy: Number) -> str:
    return build_command(CMD_MONO_BG_ADD, eye, cx, cy)
