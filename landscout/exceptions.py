"""Custom exception hierarchy for LandScout.

This module defines domain-specific exceptions that provide semantic clarity
and enable targeted error handling throughout the application. Each exception
includes contextual information to aid debugging and observability.

Most of these never reach a caller of the request surface: fetch-level
failures are converted into zeroed results where they occur, and resolver or
pipeline failures are reported in-band. They exist so that the conversion
points can log precise context.
"""

from datetime import UTC, datetime
from typing import Any


class LandScoutError(Exception):
    """Base exception for all LandScout errors.

    Attributes:
        message: Human-readable error description.
        context: Optional dictionary with additional debugging information.
        timestamp: UTC timestamp when the exception was raised.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(UTC)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format exception message with context for logging."""
        base = f"[{self.timestamp.isoformat()}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base} | Context: {context_str}"
        return base


class BrowserInitializationError(LandScoutError):
    """Raised when the shared browser session fails to launch or connect.

    Common causes include missing Playwright browsers, an unreachable
    remote endpoint, or resource constraints.
    """

    def __init__(self, reason: str, browser_type: str = "chromium") -> None:
        super().__init__(
            message=f"Failed to initialize {browser_type} browser: {reason}",
            context={"browser_type": browser_type, "reason": reason},
        )


class NavigationError(LandScoutError):
    """Raised when page navigation fails.

    This may indicate network issues, blocked requests, or a timeout.
    """

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(
            message=f"Navigation to '{url}' failed: {reason}",
            context={"url": url, "reason": reason, "status_code": status_code},
        )


class UpstreamResponseError(LandScoutError):
    """Raised when a data request to the remote service returns a non-OK status."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(
            message=f"Upstream request to '{url}' returned HTTP {status_code}",
            context={"url": url, "status_code": status_code},
        )
        self.status_code = status_code


class ResolutionMissError(LandScoutError):
    """Raised when a display name could not be mapped to an identifier."""

    def __init__(self, display_name: str) -> None:
        super().__init__(
            message=f"Identifier not found: {display_name}",
            context={"display_name": display_name},
        )
        self.display_name = display_name


class CacheNamespaceError(LandScoutError):
    """Raised when the cache is addressed with an unconfigured namespace."""

    def __init__(self, namespace: str) -> None:
        super().__init__(
            message=f"Unknown cache namespace '{namespace}'",
            context={"namespace": namespace},
        )


class LoggingInitializationError(LandScoutError):
    """Raised when the logging system fails to initialize.

    This is a startup-blocking error - the application cannot proceed
    without a functioning logging infrastructure.
    """

    def __init__(self, log_dir: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to initialize logging at '{log_dir}': {reason}",
            context={"log_dir": log_dir, "reason": reason},
        )
