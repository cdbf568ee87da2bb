"""Terminal errors of a token exchange.

Every error maps onto the OAuth2 ``server_error`` category; ``description``
is the text returned to the caller, ``cause`` keeps the underlying failure
for logging only.
"""
from __future__ import annotations
from typing import Optional

SERVER_ERROR = "server_error"


class ProvisioningError(Exception):
    """Base exception for every failure that blocks the token response."""

    error = SERVER_ERROR
    description = "The token proxy failed to provision access."

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message or self.description)

    def to_dict(self) -> dict:
        """Convert to the OAuth2 error response body."""
        return {"error": self.error, "error_description": self.description}


class ResponseParseFailed(ProvisioningError):
    description = "The token proxy failed to parse the token response."


class MissingIdToken(ProvisioningError):
    description = "The token proxy failed to find an id_token in the token response."


class ClaimsDecodeFailed(ProvisioningError):
    description = "The token proxy failed to decode the id_token."


class MissingSubjectClaim(ProvisioningError):
    description = "The token proxy failed to find a sub claim in the id_token."


class TokenEndpointUnreachable(ProvisioningError):
    description = "The token proxy failed to reach the token endpoint."


class AuthenticationFailed(ProvisioningError):
    """Service authentication against the platform API failed."""


class UpstreamApiFailed(ProvisioningError):
    """A platform API call returned non-2xx, failed in transport, or was not JSON."""


class DirectoryLookupFailed(ProvisioningError):
    """The directory group lookup failed."""
