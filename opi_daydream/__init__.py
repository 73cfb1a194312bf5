"""
OPI client for the Daydream VR perimeter.

Drives a Daydream headset (phone running the OPI server app) over a TCP
socket, implementing the Open Perimetry Interface:

1. initialise      - connect and learn the screen geometry
2. set_background  - background grey level and fixation marker per eye
3. present         - upload a stimulus image and wait for the response
4. query_device    - snapshot of the session state
5. close           - release the device
"""

__version__ = "0.1.0"
__author__ = "OPI Daydream Team"

from .device import MACHINES, choose_opi, list_machines
from .device.daydream import DaydreamSession
from .core.contracts import Eye, StimulusKind, Stimulus, PresentResult, OpiResult

__all__ = [
    "MACHINES",
    "choose_opi",
    "list_machines",
    "DaydreamSession",
    "Eye",
    "StimulusKind",
    "Stimulus",
    "PresentResult",
    "OpiResult",
]
