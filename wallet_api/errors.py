"""Exception taxonomy shared by providers, fetchers and the HTTP layer."""

from __future__ import annotations


class AddressError(ValueError):
    """Base class for failures that make a portfolio request unanswerable.

    These are the only errors surfaced to callers as client errors.
    """

    def __init__(self, message: str, *, value: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.value = value


class InvalidAddress(AddressError):
    """Raised when input is neither a valid address nor a name-service name."""


class ResolutionFailed(AddressError):
    """Raised when the name-service lookup errored or timed out."""


class NameNotFound(AddressError):
    """Raised when the name-service has no address record for a name."""


class ProviderError(RuntimeError):
    """Raised when an upstream provider returns an error or malformed payload."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderUnavailable(ProviderError):
    """Raised when a provider is disabled or missing credentials."""


__all__ = [
    "AddressError",
    "InvalidAddress",
    "ResolutionFailed",
    "NameNotFound",
    "ProviderError",
    "ProviderUnavailable",
]
