"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class AbrFetchError(Exception):
    """Base exception for all application-specific errors."""


class TransportError(AbrFetchError):
    """Raised when an HTTP request to the media server fails for good."""


class CircuitOpenError(TransportError):
    """Raised when the transport's circuit breaker is blocking requests."""


class ManifestParseError(AbrFetchError):
    """Raised when manifest text is malformed or violates the track invariants."""

    def __init__(self, message: str, line_number: int | None = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class SessionStartError(AbrFetchError):
    """
    Raised when a playback session cannot start because the manifest could not
    be fetched or parsed.
    """


class SegmentFetchError(AbrFetchError):
    """Raised when a segment cannot be fetched while a session is streaming."""


class StreamFailedError(AbrFetchError):
    """Raised on the consumer side when the producer reports a failed stream."""


class ConfigurationError(AbrFetchError):
    """Raised for issues related to configuration loading or validation."""
