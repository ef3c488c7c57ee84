"""Common exception classes.

Every domain error in the application derives from ``AppError`` so that
the API layer can translate them into HTTP responses in one place.
"""

from __future__ import annotations

# =============================================================================
# Base exception
# =============================================================================


class AppError(Exception):
    """Base exception for the application."""


class ConfigurationError(AppError):
    """Raised when a component is wired with an invalid configuration.

    Attributes:
        component: Name of the misconfigured component.
        reason: Human readable explanation.

    Example:
        >>> raise ConfigurationError("execution_log", "unknown backend 'redis'")
    """

    def __init__(self, component: str, reason: str) -> None:
        """Initialize ConfigurationError.

        Args:
            component: Name of the misconfigured component.
            reason: Human readable explanation.
        """
        self.component = component
        self.reason = reason
        super().__init__(f"Invalid configuration for {component}: {reason}")


# =============================================================================
# Exports
# =============================================================================


__all__ = [
    "AppError",
    "ConfigurationError",
]
