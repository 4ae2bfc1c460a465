"""
Courier Security Components

Pre-execution request validation and capability checks.
"""

from .capabilities import AllowAllCapabilities, CapabilityProvider, StaticCapabilities
from .gate import GateResult, SecurityGate

__all__ = [
    "AllowAllCapabilities",
    "CapabilityProvider",
    "StaticCapabilities",
    "GateResult",
    "SecurityGate",
]
