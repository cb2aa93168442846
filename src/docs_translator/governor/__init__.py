"""
Concurrency governor.

Per-service token-bucket admission control shared by all network calls.
"""

from docs_translator.governor.governor import Governor
from docs_translator.governor.limiter import RateLimiter, ServiceMetrics

__all__ = ["Governor", "RateLimiter", "ServiceMetrics"]
