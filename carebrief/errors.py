"""Exception types shared across CareBrief."""

from __future__ import annotations


class CareBriefError(Exception):
    """Base class for CareBrief errors."""


class ConfigurationError(CareBriefError):
    """Missing or invalid settings at startup."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("Configuration validation failed:\n" + "\n".join(f"- {e}" for e in self.errors))


class DeliveryError(CareBriefError):
    """The messaging transport rejected a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
