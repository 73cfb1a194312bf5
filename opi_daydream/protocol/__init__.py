"""
Daydream wire protocol: command vocabulary and the socket connection.
"""

from .connection import DeviceConnection, PROBE_TIMEOUT_S, SOCKET_TIMEOUT_S
from . import commands

__all__ = ["DeviceConnection", "PROBE_TIMEOUT_S", "SOCKET_TIMEOUT_S", "commands"]
