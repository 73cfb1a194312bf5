"""
Exceptions raised by the Daydream OPI client.

Device protocol violations are not exceptions: they come back to the
caller as error strings. These cover the cases where no usable session
can exist or the caller passed something malformed.
"""

from __future__ import annotations


class OpiError(Exception):
    """Base class for OPI client errors."""


class DeviceUnreachableError(OpiError):
    """No phone answered at the given address during initialise."""

    def __init__(self, message: str, ip: str = "", port: int = 0):
        super().__init__(message)
        self.ip = ip
        self.port = port


class DeviceConnectionError(OpiError, ConnectionError):
    """The connection was closed or unusable mid-exchange."""


class LookupTableError(OpiError, ValueError):
    """The luminance lookup table does not have 256 entries."""
