"""
Courier Response Cache

Fingerprint-keyed, TTL-bounded cache of successful outcomes.
"""

from .response_cache import CacheStats, ResponseCache, fingerprint, normalize_url

__all__ = ["CacheStats", "ResponseCache", "fingerprint", "normalize_url"]
