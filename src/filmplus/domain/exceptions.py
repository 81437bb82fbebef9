"""Stream-resolution exceptions."""

from __future__ import annotations


class ExtractionError(Exception):
    """Base class for a single provider failing to produce a stream."""

    def __init__(self, message: str, *, provider_id: str | None = None) -> None:
        super().__init__(message)
        self.provider_id = provider_id

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""


class UpstreamUnavailable(ExtractionError):
    """Raised on network errors, 5xx responses and timeouts."""


class NotFound(ExtractionError):
    """Raised when the upstream answered but offered no usable stream or link."""


class UnknownProvider(NotFound):
    """Raised when a forced provider id is not in the provider list."""


class UpstreamShapeChanged(ExtractionError):
    """Raised when an upstream response no longer has the expected structure."""


class DecodeError(Exception):
    """Raised when a proxy token is malformed or was minted by another process."""


class AllProvidersExhausted(Exception):
    """Raised when every provider in the waterfall failed."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("All providers failed: " + "; ".join(self.errors))
