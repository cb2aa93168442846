"""
Error hierarchy for docs-translator.

Every error raised by the pipeline derives from TranslationError and carries
a stable ErrorCode, the operation that failed, and free-form metadata that
is enough to reproduce the failure (file identity, counts, durations).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import openai


class ErrorCode(str, Enum):
    """Standardized error codes for the translation workflow."""

    # LLM API
    LLM_API_ERROR = "LLM_API_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    UNAUTHORIZED = "UNAUTHORIZED"
    SERVER_ERROR = "SERVER_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"

    # Content
    NO_CONTENT = "NO_CONTENT"
    FORMAT_VALIDATION_FAILED = "FORMAT_VALIDATION_FAILED"
    CHUNK_PROCESSING_FAILED = "CHUNK_PROCESSING_FAILED"

    # Process
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    GOVERNOR_SHUTDOWN = "GOVERNOR_SHUTDOWN"
    QUEUE_CLEARED = "QUEUE_CLEARED"
    INITIALIZATION_ERROR = "INITIALIZATION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class TranslationError(Exception):
    """
    Base exception for all translation-related errors.

    Attributes:
        message: Human-readable error message.
        code: Standardized error code.
        operation: Name of the operation that failed.
        metadata: Additional debugging context.
        retryable: Whether the retry executor may try the operation again.
        timestamp: When the error was created (UTC).
    """

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        operation: str = "unknown",
        metadata: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.operation = operation
        self.metadata: dict[str, Any] = dict(metadata or {})
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        base = self.message
        if self.metadata:
            context = ", ".join(f"{k}={v}" for k, v in self.metadata.items())
            base += f" ({context})"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for structured logs."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "code": self.code.value,
            "operation": self.operation,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================================
# Input and content errors
# ============================================================================


class EmptyContentError(TranslationError):
    """Raised when a document has no content to translate."""

    code = ErrorCode.NO_CONTENT


class TranslationValidationError(TranslationError):
    """Raised when translated output fails a fatal structural check."""

    code = ErrorCode.FORMAT_VALIDATION_FAILED


class ChunkProcessingError(TranslationError):
    """Raised when chunk splitting or reassembly loses segments."""

    code = ErrorCode.CHUNK_PROCESSING_FAILED


# ============================================================================
# Configuration and lifecycle errors
# ============================================================================


class ConfigurationError(TranslationError):
    """Raised for invalid or missing configuration."""

    code = ErrorCode.CONFIGURATION_ERROR


class InitializationError(TranslationError):
    """Raised when a collaborator fails its startup check."""

    code = ErrorCode.INITIALIZATION_ERROR


# ============================================================================
# Governor errors
# ============================================================================


class GovernorError(TranslationError):
    """Base exception for concurrency governor errors."""


class ServiceNotRegisteredError(GovernorError, ConfigurationError):
    """Raised when scheduling against a service name that was never registered."""

    code = ErrorCode.CONFIGURATION_ERROR


class GovernorShutdownError(GovernorError):
    """Raised for work submitted to, or still queued in, a shut-down governor."""

    code = ErrorCode.GOVERNOR_SHUTDOWN


class QueueClearedError(GovernorError):
    """Raised for queued work dropped by clear_queue()."""

    code = ErrorCode.QUEUE_CLEARED


# ============================================================================
# LLM errors
# ============================================================================


class LLMError(TranslationError):
    """
    Error returned by an LLM provider.

    Attributes:
        status: HTTP status code when the provider returned one.
    """

    code = ErrorCode.LLM_API_ERROR

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        code: ErrorCode | None = None,
        operation: str = "llm",
        metadata: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, operation=operation, metadata=metadata)
        self.status = status
        if status is not None:
            self.metadata.setdefault("status", status)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        if self.status is None:
            return False
        return self.status == 429 or 500 <= self.status < 600


class LLMRateLimitError(LLMError):
    """HTTP 429 from the provider."""

    code = ErrorCode.RATE_LIMIT_EXCEEDED


class LLMServerError(LLMError):
    """HTTP 5xx from the provider."""

    code = ErrorCode.SERVER_ERROR


class LLMAuthenticationError(LLMError):
    """HTTP 401/403 from the provider. Never retried."""

    code = ErrorCode.UNAUTHORIZED


class LLMConnectionError(LLMError):
    """Network failure or timeout before a response arrived."""

    code = ErrorCode.CONNECTION_ERROR

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return True


class LLMResponseError(LLMError):
    """The provider answered but returned no usable content."""

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return True


def llm_error_from_status(
    message: str,
    status: int | None,
    *,
    operation: str = "llm",
    metadata: dict[str, Any] | None = None,
) -> LLMError:
    """Build the LLMError subclass matching an HTTP status."""
    if status == 429:
        cls: type[LLMError] = LLMRateLimitError
    elif status in (401, 403):
        cls = LLMAuthenticationError
    elif status is not None and 500 <= status < 600:
        cls = LLMServerError
    else:
        cls = LLMError
    return cls(message, status=status, operation=operation, metadata=metadata)


def llm_error_from_exception(error: Exception, *, operation: str = "llm") -> LLMError:
    """
    Map an openai SDK exception onto the LLMError hierarchy.

    Args:
        error: Exception raised by the openai client.
        operation: Operation name recorded on the resulting error.

    Returns:
        LLMError subclass preserving the HTTP status when one exists.
    """
    if isinstance(error, LLMError):
        return error
    if isinstance(error, openai.APITimeoutError | openai.APIConnectionError):
        return LLMConnectionError(str(error) or "Connection error", operation=operation)
    if isinstance(error, openai.APIStatusError):
        return llm_error_from_status(str(error), error.status_code, operation=operation)
    return LLMError(str(error), operation=operation)
