"""Platform API exceptions for error handling."""
from __future__ import annotations
from typing import Any, Optional


class PlatformError(Exception):
    """Base exception for all platform management API operations."""
    pass


class PlatformAPIError(PlatformError):
    """Failed call to the platform management API.

    Raised for non-2xx responses, transport errors and unparseable bodies.

    Attributes:
        status_code: HTTP status code (0 when no response was received)
        message: Error message or raw response text
        endpoint: API endpoint that failed
        method: HTTP method used
        response: Raw response object, kept for diagnostics
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        endpoint: str,
        method: str = "",
        response: Optional[Any] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        self.method = method.upper()
        self.response = response
        super().__init__(f"[{status_code}] {self.method} {endpoint}: {message}")


class PlatformAuthenticationError(PlatformError):
    """The token endpoint answered without an access token."""
    pass
