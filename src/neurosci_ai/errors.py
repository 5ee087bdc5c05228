"""Error taxonomy shared by the ingestion path, the gateway and the controller."""

from typing import Optional


class ChatError(Exception):
    """Base error carrying a user-facing message and an HTTP status."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequest(ChatError):
    """Malformed or empty ingestion payload."""

    status_code = 400


class GatewayError(ChatError):
    """Failure while obtaining a completion."""


class ConfigurationError(GatewayError):
    """The completion API credential is missing."""


class UpstreamError(GatewayError):
    """The completion provider answered with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message, status_code=status_code)


class TransportError(GatewayError):
    """The completion provider could not be reached."""
