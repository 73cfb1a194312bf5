"""
OPI machine module.

Provides the machines this client can drive, selected by name.

To add a new machine:
1. Create a new file in this directory
2. Implement a class inheriting from OpiMachine
3. Register it in MACHINES dict below
"""

from .base import OpiMachine
from .daydream import DaydreamSession

# Registry of available machines
MACHINES = {
    "Daydream": DaydreamSession,
}


def choose_opi(name: str, config=None) -> OpiMachine:
    """Get a machine instance by name.

    Args:
        name: Machine name (e.g., "Daydream")
        config: Optional DaydreamConfig

    Returns:
        Fresh, uninitialised machine instance

    Raises:
        ValueError: If machine name is not registered
    """
    if name not in MACHINES:
        available = ", ".join(MACHINES.keys())
        raise ValueError(f"Unknown machine '{name}'. Available: {available}")

    return MACHINES[name](config=config)


def list_machines() -> list:
    """List available machine names."""
    return list(MACHINES.keys())


__all__ = ['OpiMachine', 'DaydreamSession', 'MACHINES', 'choose_opi', 'list_machines']
