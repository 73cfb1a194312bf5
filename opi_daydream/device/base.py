"""
Base class for OPI machines.

To add a new machine:
1. Create a new file in the device/ directory
2. Inherit from OpiMachine
3. Implement all abstract methods
4. Register in device/__init__.py MACHINES dict

Example implementation:
    class SimulatedMachine(OpiMachine):
        def initialise(self, **kwargs) -> OpiResult:
            return OpiResult()

        def present(self, stimulus, next_stimulus=None) -> PresentResult:
            return PresentResult(seen=True, time=300.0)

        def set_background(self, **kwargs) -> Optional[str]:
            return None

        def close(self) -> OpiResult:
            return OpiResult()

        def query_device(self) -> dict:
            return {"machine": "simulated"}
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..core.contracts import OpiResult, PresentResult, Stimulus


class OpiMachine(ABC):
    """Abstract base class for perimeters driven through the OPI.

    Every machine exposes the same five operations so that test procedures
    can run unchanged on any device.
    """

    name: str = "unknown"

    @abstractmethod
    def initialise(self, **kwargs: Any) -> OpiResult:
        """Connect to the machine and prepare it for testing.

        Returns:
            OpiResult with err None on success
        """
        pass

    @abstractmethod
    def present(self, stimulus: Optional[Stimulus], next_stimulus: Optional[Stimulus] = None) -> PresentResult:
        """Present one stimulus and wait for the subject's response.

        Args:
            stimulus: The stimulus to show
            next_stimulus: The one that will follow, for machines that can prepare it

        Returns:
            PresentResult with err, seen and time
        """
        pass

    @abstractmethod
    def set_background(self, **kwargs: Any) -> Optional[str]:
        """Set background and fixation.

        Returns:
            None on success, an error message otherwise
        """
        pass

    @abstractmethod
    def close(self) -> OpiResult:
        """Release the machine."""
        pass

    @abstractmethod
    def query_device(self) -> Dict[str, Any]:
        """Get machine-specific constants and state."""
        pass
