"""
Error kinds raised by the record and auth clients.

Everything that talks to the backend raises one of these; the pure
aggregation code never does.
"""


class SalesboardError(Exception):
    """Base class for all engine errors."""


class FetchError(SalesboardError):
    """Network failure or non-2xx response from the record or auth interface."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"[{self.status}] {self.message}"


class ConfigError(FetchError):
    """Backend location or credentials are missing (locally or at the proxy)."""


class AuthError(FetchError):
    """Token missing, invalid or expired (HTTP 401/403)."""


class ParseError(SalesboardError):
    """Response body could not be decoded into records."""
