"""
Multi-service concurrency governor.

Owns one independent RateLimiter per service name. There is no process-wide
singleton: callers hold a reference to the governor they were built with.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeVar

from docs_translator.config import GovernorConfig
from docs_translator.errors import ConfigurationError, GovernorShutdownError, ServiceNotRegisteredError
from docs_translator.governor.limiter import Operation, RateLimiter, ServiceMetrics
from docs_translator.logging_config import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class Governor:
    """
    Per-service concurrency and rate governor.

    Example:
        governor = Governor({"llm": GOVERNOR_PRESETS["paid_llm"]})
        text = await governor.schedule("llm", lambda: provider.chat(system, user))
    """

    def __init__(self, services: Mapping[str, GovernorConfig] | None = None):
        self._limiters: dict[str, RateLimiter] = {}
        self._shutdown = False
        for name, config in (services or {}).items():
            self.register_service(name, config)

    @property
    def services(self) -> list[str]:
        """Registered service names."""
        return list(self._limiters)

    def register_service(self, name: str, config: GovernorConfig) -> RateLimiter:
        """
        Add a named queue.

        Raises:
            ConfigurationError: If the name is taken or the governor is shut down.
        """
        if self._shutdown:
            raise GovernorShutdownError(
                "Cannot register services on a shut-down governor",
                operation="Governor.register_service",
                metadata={"service": name},
            )
        if name in self._limiters:
            raise ConfigurationError(
                f"Service '{name}' is already registered",
                operation="Governor.register_service",
                metadata={"service": name},
            )
        limiter = RateLimiter(name, config)
        self._limiters[name] = limiter
        return limiter

    def _get(self, name: str, operation: str) -> RateLimiter:
        try:
            return self._limiters[name]
        except KeyError:
            raise ServiceNotRegisteredError(
                f"Service '{name}' is not registered",
                operation=operation,
                metadata={"service": name, "registered": self.services},
            ) from None

    async def schedule(self, name: str, operation: Operation[T], priority: int = 0) -> T:
        """
        Run ``operation`` under the named service's limits.

        Args:
            name: Registered service name.
            operation: Zero-argument callable returning an awaitable.
            priority: Higher values are started sooner.

        Returns:
            The operation's own result (its exceptions propagate unchanged).
        """
        if self._shutdown:
            raise GovernorShutdownError(
                "Governor is shut down",
                operation="Governor.schedule",
                metadata={"service": name},
            )
        limiter = self._get(name, "Governor.schedule")
        return await limiter.schedule(operation, priority)

    def get_metrics(self, name: str) -> ServiceMetrics:
        """Immutable metrics snapshot for one service."""
        return self._get(name, "Governor.get_metrics").metrics()

    def clear_queue(self, name: str) -> int:
        """Reject all queued (not started) operations for one service."""
        return self._get(name, "Governor.clear_queue").clear_queue()

    async def shutdown(self) -> None:
        """Reject queued work, drain in-flight work, refuse new work. Idempotent."""
        if self._shutdown:
            return
        self._shutdown = True
        logger.info("Shutting down governor", extra={"services": self.services})
        for limiter in self._limiters.values():
            await limiter.shutdown(drop_waiting=True)
