"""
Courier - HTTP Test-Request Execution Core

Validates, executes, caches and records user-authored HTTP test requests.
"""

__version__ = "0.1.0"

from .orchestrator import RequestOrchestrator, create_orchestrator

__all__ = ["RequestOrchestrator", "create_orchestrator", "__version__"]
