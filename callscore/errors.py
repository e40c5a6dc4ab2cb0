"""
Error taxonomy shared by the engine, services, and API layers.

- ``ConfigurationError``: a dependency is not configured. Never retried.
- ``TransientServiceError``: an external call failed and may succeed later.
- ``CircuitOpenError``: a breaker rejected the call without invoking it.
- ``NotFoundError``: a requested call or artifact does not exist.
"""

import math


class CallScoreError(Exception):
    """Base class for all application errors."""


class ConfigurationError(CallScoreError):
    """A required external dependency is not configured."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(message)
        self.service = service


class TransientServiceError(CallScoreError):
    """An external dependency failed in a way that may be retried."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(message)
        self.service = service


class CircuitOpenError(TransientServiceError):
    """Raised when a circuit breaker short-circuits a call."""

    def __init__(self, service: str, remaining_seconds: float, reason: str = "") -> None:
        self.remaining_seconds = max(0.0, remaining_seconds)
        message = f"Circuit breaker is OPEN for {service}"
        if reason:
            message = f"{message} ({reason})"
        message = f"{message}. Will retry in {self.retry_after}s"
        super().__init__(service, message)

    @property
    def retry_after(self) -> int:
        """Whole seconds until the breaker may accept a probe."""
        return math.ceil(self.remaining_seconds)


class NotFoundError(CallScoreError):
    """A requested resource does not exist."""

    def __init__(self, resource: str, key: str) -> None:
        super().__init__(f"{resource} '{key}' not found.")
        self.resource = resource
        self.key = key
