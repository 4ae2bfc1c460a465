"""
Capability checks consulted before network access is allowed.
"""

from abc import ABC, abstractmethod
from typing import Iterable


class CapabilityProvider(ABC):
    """Answers whether the host has granted a named capability."""

    @abstractmethod
    def has_capability(self, name: str) -> bool:
        pass


class StaticCapabilities(CapabilityProvider):
    """Fixed set of granted capabilities."""

    def __init__(self, granted: Iterable[str] = ()) -> None:
        self._granted = frozenset(granted)

    def has_capability(self, name: str) -> bool:
        return name in self._granted

    def __repr__(self) -> str:
        return f"StaticCapabilities({sorted(self._granted)})"


class AllowAllCapabilities(CapabilityProvider):
    """Grants every capability; used when no permission layer is present."""

    def has_capability(self, name: str) -> bool:
        return True
