"""
Socket connection to the Daydream phone.

Handles:
- Reachability probe before the real connection
- ASCII command/reply lines
- Fixed-size little-endian binary replies
- Raw payload upload
"""

from __future__ import annotations

import socket
from typing import Optional, Tuple

from loguru import logger

from ..core.contracts import ScreenGeometry
from ..core.errors import DeviceConnectionError, DeviceUnreachableError
from . import commands as P

PROBE_TIMEOUT_S = 10.0
SOCKET_TIMEOUT_S = 1000.0


class DeviceConnection:
    """
    Blocking request/response connection to one phone.

    Wraps a connected TCP socket. Reads go through a buffered reader so that
    reply lines and binary fields can be interleaved on the same stream.
    """

    def __init__(self, sock: socket.socket, address: Optional[Tuple[str, int]] = None):
        self._sock: Optional[socket.socket] = sock
        self._reader = sock.makefile("rb")
        self.address = address

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    @staticmethod
    def probe(ip: str, port: int, timeout: float = PROBE_TIMEOUT_S) -> None:
        """
        Check that something is listening at ip:port, then hang up.

        Raises:
            DeviceUnreachableError: if the connection cannot be made in time
        """
        try:
            probe = socket.create_connection((ip, port), timeout=timeout)
        except OSError as e:
            raise DeviceUnreachableError(
                f"cannot find a phone at {ip} on port {port}", ip=ip, port=port
            ) from e
        probe.close()

    @classmethod
    def open(cls, ip: str, port: int, timeout: float = SOCKET_TIMEOUT_S) -> DeviceConnection:
        """
        Open the operational connection.

        Raises:
            DeviceUnreachableError: if the phone refuses the connection
        """
        try:
            sock = socket.create_connection((ip, port), timeout=timeout)
        except OSError as e:
            raise DeviceUnreachableError(
                f"Cannot connect to phone at {ip} on port {port}", ip=ip, port=port
            ) from e
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        logger.debug(f"Connected to {ip}:{port} (timeout {timeout}s)")
        return cls(sock, address=(ip, port))

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def send_line(self, line: str) -> None:
        """Send one command line, newline-terminated."""
        logger.debug(f"-> {line}")
        self._require_socket().sendall(line.encode("ascii") + b"\n")

    def send_bytes(self, payload: bytes) -> None:
        """Send a raw binary payload."""
        logger.debug(f"-> <{len(payload)} bytes>")
        self._require_socket().sendall(payload)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_line(self) -> str:
        """Read one reply line without its terminator."""
        self._require_socket()
        raw = self._reader.readline()
        if not raw:
            raise DeviceConnectionError("Phone closed the connection while a reply line was expected")
        line = raw.decode("ascii", errors="replace").rstrip("\r\n")
        logger.debug(f"<- {line}")
        return line

    def read_exact(self, size: int) -> bytes:
        """Read exactly `size` bytes."""
        self._require_socket()
        data = self._reader.read(size)
        if data is None or len(data) < size:
            got = 0 if data is None else len(data)
            raise DeviceConnectionError(f"Phone closed the connection: expected {size} bytes, got {got}")
        return data

    def read_resolution(self) -> ScreenGeometry:
        """Read the OPI_GET_RES reply: four int32 and a filler byte."""
        width, height, single_width, single_height = P.RESOLUTION_FORMAT.unpack(
            self.read_exact(P.RESOLUTION_FORMAT.size)
        )
        self.skip_filler()
        return ScreenGeometry(width, height, single_width, single_height)

    def read_present_response(self) -> Tuple[int, float]:
        """Read the OPI_MONO_PRESENT reply: seen flag, float32 time, filler byte."""
        (seen,) = P.SEEN_FORMAT.unpack(self.read_exact(P.SEEN_FORMAT.size))
        (time_ms,) = P.TIME_FORMAT.unpack(self.read_exact(P.TIME_FORMAT.size))
        self.skip_filler()
        logger.debug(f"<- seen={seen} time={time_ms}")
        return seen, time_ms

    def skip_filler(self) -> None:
        self.read_exact(P.FILLER_SIZE)

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._sock is None:
            return
        try:
            self._reader.close()
        finally:
            self._sock.close()
            self._sock = None
        logger.debug("Connection closed")

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    @property
    def socket(self) -> Optional[socket.socket]:
        return self._sock

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise DeviceConnectionError("Connection to phone is closed")
        return self._sock
