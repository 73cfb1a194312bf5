"""
Core data contracts and errors shared by every OPI module.
"""

from .contracts import (
    Eye,
    StimulusKind,
    Stimulus,
    PresentResult,
    OpiResult,
    ScreenGeometry,
    SessionState,
)
from .errors import (
    OpiError,
    DeviceUnreachableError,
    DeviceConnectionError,
    LookupTableError,
)
