"""
Core data contracts for the Daydream OPI client.

All modules exchange these types for:
- Stimulus requests
- Device responses
- Session state and screen geometry
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional, Dict, Any, Callable, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray


# ============================================================
# ENUMERATIONS
# ============================================================

class Eye(str, Enum):
    """Eye a stimulus or background is shown to."""
    LEFT = "L"
    RIGHT = "R"


class StimulusKind(Enum):
    """Stimulus variants defined by the OPI.

    Only STATIC is presented by the Daydream; the others are stub cases.
    """
    STATIC = "static"
    KINETIC = "kinetic"
    TEMPORAL = "temporal"


DegreesToPixels = Callable[[float, float], Sequence[float]]


# ============================================================
# REQUESTS
# ============================================================

@dataclass
class Stimulus:
    """
    A single stimulus presentation request.

    Position and size are in degrees of visual field, level in cd/m^2,
    duration and response_window in milliseconds. Any field may be None;
    present() reports the first missing one instead of contacting the device.
    """
    kind: StimulusKind = StimulusKind.STATIC
    eye: Optional[Union[Eye, str]] = None
    x: Optional[float] = None
    y: Optional[float] = None
    size: Optional[float] = None
    level: Optional[float] = None
    duration: Optional[float] = None
    response_window: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Stimulus:
        """Build a stimulus from a config mapping (camelCase keys accepted)."""
        kind = data.get("kind", StimulusKind.STATIC)
        if not isinstance(kind, StimulusKind):
            kind = StimulusKind(str(kind).lower())
        response_window = data.get("response_window", data.get("responseWindow"))
        return cls(
            kind=kind,
            eye=data.get("eye"),
            x=data.get("x"),
            y=data.get("y"),
            size=data.get("size"),
            level=data.get("level"),
            duration=data.get("duration"),
            response_window=response_window,
        )


# ============================================================
# RESULTS
# ============================================================

@dataclass
class OpiResult:
    """Result of initialise/close: err is None on success."""
    err: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.err is None


@dataclass
class PresentResult:
    """
    Result of a stimulus presentation.

    seen and time are None (NA) when err is set by validation or a device
    error code.
    """
    err: Optional[str] = None
    seen: Optional[bool] = None
    time: Optional[float] = None

    @classmethod
    def failure(cls, message: str) -> PresentResult:
        return cls(err=message, seen=None, time=None)


# ============================================================
# SESSION STATE
# ============================================================

@dataclass
class ScreenGeometry:
    """Phone screen size and the per-eye sub-screen, in pixels."""
    width: int
    height: int
    single_width: int
    single_height: int

    @property
    def eye_center(self) -> Tuple[int, int]:
        return (round(self.single_width / 2), round(self.single_height / 2))


@dataclass
class SessionState:
    """
    Everything a Daydream session knows about its device.

    Created at initialise, background levels updated by set_background.
    """
    socket: Any = None
    endian: str = "little"
    lut: Optional[NDArray[np.float64]] = None
    degrees_to_pixels: Optional[DegreesToPixels] = None

    width: Optional[int] = None
    height: Optional[int] = None
    single_width: Optional[int] = None
    single_height: Optional[int] = None

    background_left: Optional[int] = None
    background_right: Optional[int] = None

    SEEN: int = 1
    NOT_SEEN: int = 0

    def apply_geometry(self, geometry: ScreenGeometry) -> None:
        self.width = geometry.width
        self.height = geometry.height
        self.single_width = geometry.single_width
        self.single_height = geometry.single_height

    def background_for(self, eye: Eye) -> Optional[int]:
        return self.background_left if eye == Eye.LEFT else self.background_right

    def set_background_for(self, eye: Eye, grey: int) -> None:
        if eye == Eye.LEFT:
            self.background_left = grey
        else:
            self.background_right = grey

    def snapshot(self) -> Dict[str, Any]:
        """Field name -> current value, without deep-copying the socket."""
        return {f.name: getattr(self, f.name) for f in fields(self)}
