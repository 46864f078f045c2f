"""
Error taxonomy for custom providers.

Every failure raised by the library derives from `ByomuxError`, which carries
the provider and model the failure is attributed to so callers can log it
without extra bookkeeping.
"""
from typing import Optional, Type


class ByomuxError(Exception):
    """
    Base class for all library errors.

    Attributes:
        message: Human-readable description.
        provider: Provider id or format the error originated from.
        model: Model id associated with the failure, if any.
    """

    def __init__(self, message: str, *, provider: Optional[str] = None, model: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.model = model

    def __str__(self) -> str:
        if self.provider:
            return f"{self.provider}:{self.model or '-'} {self.message}"
        return self.message


class ConfigurationError(ByomuxError):
    """Invalid provider configuration (bad URL, duplicate name, unknown format)."""


class AuthenticationError(ByomuxError):
    """The endpoint rejected the credentials, or no key is configured."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class DiscoveryError(ByomuxError):
    """Fetching the model list failed. Recovered locally as an empty list."""


class ConversionError(ByomuxError):
    """An internal conversation cannot be expressed in the target wire format."""


class ProtocolViolationError(ByomuxError):
    """
    The server response does not match the configured wire format.

    Attributes:
        api_format: Format whose parser rejected the payload.
        payload: The offending raw payload (truncated for logging).
    """

    def __init__(self, message: str, *, api_format: Optional[str] = None, payload: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.api_format = api_format
        self.payload = payload[:500] if payload else payload

    def __str__(self) -> str:
        base = super().__str__()
        if self.payload:
            return f"{base} [{self.api_format}] payload={self.payload!r}"
        return base


class StreamAbortedError(ByomuxError):
    """The caller cancelled the stream. Treated as a clean end of stream."""


class TransportError(ByomuxError):
    """
    Network failure or an HTTP error status other than an auth failure.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


def classify_http_status(status_code: int) -> Optional[Type[ByomuxError]]:
    """
    Map an HTTP status to the error class raised for it.

    Returns None for successful statuses.
    """
    if status_code < 400:
        return None
    if status_code in (401, 403):
        return AuthenticationError
    return TransportError


__all__ = [
    "ByomuxError",
    "ConfigurationError",
    "AuthenticationError",
    "DiscoveryError",
    "ConversionError",
    "ProtocolViolationError",
    "StreamAbortedError",
    "TransportError",
    "classify_http_status",
]
