"""
Daydream perimeter session.

One DaydreamSession owns one connection to the phone and the constants
learned for it. Every call is a blocking request/response exchange:

1. initialise      - probe, connect, read screen geometry
2. set_background  - OPI_MONO_SET_BG, optional cross fixation
3. present         - upload disc image, OPI_MONO_PRESENT, read response
4. query_device    - session state snapshot
5. close           - OPI_CLOSE, release the socket

Device replies that are not what the protocol expects come back as error
strings; only an unreachable phone at initialise raises.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray
from loguru import logger

from ..config import DaydreamConfig
from ..core.contracts import (
    DegreesToPixels,
    Eye,
    OpiResult,
    PresentResult,
    SessionState,
    Stimulus,
    StimulusKind,
)
from ..core.errors import DeviceConnectionError, OpiError
from ..imaging.luminance import LuminanceTable
from ..imaging.stimulus_images import (
    DEFAULT_FIXATION_COLOR,
    image_to_payload,
    make_cross_image,
    make_disc_image,
)
from ..protocol import commands as P
from ..protocol.connection import DeviceConnection
from .base import OpiMachine

KINETIC_UNSUPPORTED = "DayDream does not support kinetic stimuli (yet)"
TEMPORAL_UNSUPPORTED = "DayDream does not support temporal stimuli (yet)"
NULL_STIMULUS = "The NULL stimulus not supported"
LOAD_IMAGE_FAILED = "OPI present could not load stimulus image"

# Checked in this order; the first missing field is reported
REQUIRED_FIELDS = (
    ("x", "No x coordinate in stimulus"),
    ("y", "No y coordinate in stimulus"),
    ("size", "No size in stimulus"),
    ("level", "No level in stimulus"),
    ("duration", "No duration in stimulus"),
    ("response_window", "No responseWindow in stimulus"),
    ("eye", "No eye in stimulus"),
)


class DaydreamSession(OpiMachine):
    """
    OPI binding for the Daydream VR headset.

    Usage:
        session = DaydreamSession()
        session.initialise(ip="10.0.1.1", port=50008, lut=lut)
        session.set_background(lum=10, eye="L")
        result = session.present(Stimulus(eye="L", x=3, y=3, size=0.43,
                                          level=100, duration=200,
                                          response_window=1500))
        session.close()
    """

    name = "Daydream"

    def __init__(self, config: Optional[DaydreamConfig] = None):
        self.config = config or DaydreamConfig()
        self.state = SessionState()
        self._connection: Optional[DeviceConnection] = None
        self._lut: Optional[LuminanceTable] = None

    # ------------------------------------------------------------------
    # initialise
    # ------------------------------------------------------------------

    def initialise(
        self,
        ip: Optional[str] = None,
        port: Optional[int] = None,
        lut: Optional[Union[LuminanceTable, Sequence[float]]] = None,
        degrees_to_pixels: Optional[DegreesToPixels] = None,
    ) -> OpiResult:
        """
        Connect to the phone and read its screen geometry.

        Args:
            ip: Phone address (config default 127.0.0.1)
            port: OPI server port (config default 50008)
            lut: 256 values, lut[g] is cd/m^2 for grey level g
            degrees_to_pixels: f(x, y) in degrees -> (x, y) in pixels for one eye

        Returns:
            OpiResult(err=None)

        Raises:
            DeviceUnreachableError: if no phone answers (no usable session)
            DeviceConnectionError: if the phone drops the connection mid-handshake
            LookupTableError: if lut does not have 256 entries
        """
        ip = ip if ip is not None else self.config.ip
        port = int(port if port is not None else self.config.port)

        if lut is None:
            table = self.config.load_lut()
        elif isinstance(lut, LuminanceTable):
            table = lut
        else:
            table = LuminanceTable(lut)

        if self._connection is not None:
            logger.info("Closing previous phone connection before reconnecting")
            try:
                self.close()
            except OSError as e:
                logger.warning(f"Previous connection did not close cleanly: {e}")

        logger.info(f"Looking for phone at {ip}")
        DeviceConnection.probe(ip, port, timeout=self.config.probe_timeout)
        logger.info(f"Found phone at {ip}:{port}")

        connection = DeviceConnection.open(ip, port, timeout=self.config.socket_timeout)
        try:
            connection.send_line(P.CMD_GET_RES)
            geometry = connection.read_resolution()
        except (OSError, OpiError) as e:
            logger.error(f"Handshake with phone at {ip}:{port} failed: {e}")
            connection.close()
            raise

        self._connection = connection
        self._lut = table
        self.state = SessionState(
            socket=connection.socket,
            lut=table.values,
            degrees_to_pixels=degrees_to_pixels or self.config.degrees_to_pixels(),
        )
        self.state.apply_geometry(geometry)

        logger.info(
            f"Phone res {geometry.width} {geometry.height} "
            f"{geometry.single_width} {geometry.single_height}"
        )
        return OpiResult(err=None)

    # ------------------------------------------------------------------
    # Luminance and images
    # ------------------------------------------------------------------

    def find_pixel_value(self, cdm2: float) -> int:
        """Grey level 0-255 closest to cdm2 in this session's lookup table."""
        if self._lut is None:
            raise DeviceConnectionError("Session is not initialised: no luminance table")
        return self._lut.find_pixel_value(cdm2)

    def load_image(self, image: NDArray[np.uint8]) -> bool:
        """
        Upload an H x W x 3 RGB image into phone memory.

        Returns:
            True if the phone acknowledged the image with OK
        """
        pixels = np.asarray(image)
        payload = image_to_payload(pixels)
        height, width = pixels.shape[0], pixels.shape[1]
        connection = self._require_connection()

        connection.send_line(P.image_command(width, height))
        reply = connection.read_line()
        if reply != P.REPLY_READY:
            logger.warning(f"Phone not ready for {width}x{height} image: {reply!r}")
            return False

        connection.send_bytes(payload)
        reply = connection.read_line()
        logger.debug(f"Load image {reply}")
        return reply == P.REPLY_OK

    # ------------------------------------------------------------------
    # present
    # ------------------------------------------------------------------

    def present(self, stimulus: Optional[Stimulus], next_stimulus: Optional[Stimulus] = None) -> PresentResult:
        """
        Present one stimulus and wait for the response.

        next_stimulus is accepted for OPI compatibility; the Daydream cannot
        prepare ahead so it is ignored.

        Returns:
            PresentResult: err None with seen/time, or an error message
        """
        if stimulus is None:
            return PresentResult.failure(NULL_STIMULUS)

        if stimulus.kind == StimulusKind.STATIC:
            return self._present_static(stimulus)
        if stimulus.kind == StimulusKind.KINETIC:
            logger.warning(KINETIC_UNSUPPORTED)
            return PresentResult(err=KINETIC_UNSUPPORTED, seen=False, time=0)
        if stimulus.kind == StimulusKind.TEMPORAL:
            logger.warning(TEMPORAL_UNSUPPORTED)
            return PresentResult(err=TEMPORAL_UNSUPPORTED, seen=False, time=0)
        raise ValueError(f"Unknown stimulus kind {stimulus.kind!r}")

    def _present_static(self, stimulus: Stimulus) -> PresentResult:
        for field_name, message in REQUIRED_FIELDS:
            if getattr(stimulus, field_name) is None:
                return PresentResult.failure(message)

        eye = Eye(stimulus.eye)
        connection = self._require_connection()
        to_pixels = self.state.degrees_to_pixels

        foreground = self.find_pixel_value(stimulus.level)
        half = stimulus.size / 2
        radius = round(float(np.mean(to_pixels(half, half))))
        position = to_pixels(stimulus.x, stimulus.y)

        background = self.state.background_for(eye)
        if background is None:
            logger.warning(f"No background set for eye {eye.value}, stimulus drawn on 0")
            background = 0

        image = make_disc_image(radius, foreground, background)
        if not self.load_image(image):
            logger.warning(LOAD_IMAGE_FAILED)
            return PresentResult.failure(LOAD_IMAGE_FAILED)

        connection.send_line(
            P.present_command(
                eye.value, position[0], position[1], stimulus.duration, stimulus.response_window
            )
        )
        seen_flag, time_ms = connection.read_present_response()
        seen = seen_flag == self.state.SEEN

        if not seen and time_ms in P.PRESENT_ERRORS:
            message = P.PRESENT_ERRORS[int(time_ms)]
            logger.warning(f"Present failed: {message}")
            return PresentResult.failure(message)

        logger.debug(f"Present {eye.value} ({stimulus.x}, {stimulus.y}): seen={seen} time={time_ms}")
        return PresentResult(err=None, seen=seen, time=time_ms)

    # ------------------------------------------------------------------
    # set_background
    # ------------------------------------------------------------------

    def set_background(
        self,
        lum: Optional[float] = None,
        color: Any = None,
        fixation: Optional[str] = "Cross",
        fixation_size: int = 21,
        fixation_color: Sequence[int] = DEFAULT_FIXATION_COLOR,
        eye: Union[Eye, str] = Eye.LEFT,
    ) -> Optional[str]:
        """
        Set the background for one eye and optionally add a fixation cross.

        Args:
            lum: Background luminance in cd/m^2
            color: Ignored
            fixation: "Cross" adds a cross-hair at the eye's screen centre
            fixation_size: Cross-hair length in pixels
            fixation_color: Cross-hair RGB in [0, 255]
            eye: "L" or "R"

        Returns:
            None on success, an error message otherwise
        """
        if lum is None:
            message = "Cannot set background to NA in opiSetBackground"
            logger.warning(message)
            return message
        if color is not None:
            logger.warning("Color ignored in opiSetBackground.")

        eye = Eye(eye)
        connection = self._require_connection()

        grey = self.find_pixel_value(lum)
        connection.send_line(P.set_background_command(eye.value, grey))
        if connection.read_line() != P.REPLY_OK:
            message = f"Cannot set background to {grey} in opiSetBackground"
            logger.warning(message)
            return message

        self.state.set_background_for(eye, grey)

        if fixation == "Cross":
            if not self.load_image(make_cross_image(fixation_size, fixation_color)):
                message = "Trouble loading fixation image in opiSetBackground."
                logger.warning(message)
                return message

            cx = round(self.state.single_width / 2)
            cy = round(self.state.single_height / 2)
            logger.debug(f"Fixation for {eye.value} at ({cx}, {cy})")

            connection.send_line(P.background_add_command(eye.value, cx, cy))
            if connection.read_line() != P.REPLY_OK:
                message = "Trouble adding fixation to background in opiSetBackground"
                logger.warning(message)
                return message
        elif fixation is not None:
            logger.warning(f"Fixation {fixation!r} not supported, only 'Cross'")

        return None

    # ------------------------------------------------------------------
    # close / query_device
    # ------------------------------------------------------------------

    def close(self) -> OpiResult:
        """Send OPI_CLOSE and release the socket whatever the phone replies."""
        connection = self._require_connection()
        try:
            connection.send_line(P.CMD_CLOSE)
            reply = connection.read_line()
        finally:
            connection.close()
            self._connection = None
            self.state.socket = None

        if reply != P.REPLY_OK:
            logger.warning(f"Close reply {reply!r}")
            return OpiResult(err="Trouble closing daydream connection.")
        logger.info("Daydream connection closed")
        return OpiResult(err=None)

    def query_device(self) -> Dict[str, Any]:
        """Every session state field name mapped to its current value."""
        return self.state.snapshot()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and self._connection.is_open

    def _require_connection(self) -> DeviceConnection:
        if self._connection is None or not self._connection.is_open:
            raise DeviceConnectionError("Daydream session is not initialised or already closed")
        return self._connection
