"""Platform management API client library.

Architecture:
- client.py: HTTP client with service authentication and the TLS profile
- registry.py: User registry lookups and creation
- roles.py: Organization role listing
- members.py: Organization member create-or-update
- exceptions.py: Typed exceptions for error handling

Usage:
    from app.core.platform import PlatformClient, MembershipService

    client = PlatformClient("https://platform.example.org/api")
    client.authenticate("admin", "password", "client", "secret", "admin/default-idp-1")
    member, created = MembershipService(client, "admin").upsert("jdoe", user, role_urls)
"""
from .client import PlatformClient, REQUEST_TIMEOUT
from .exceptions import PlatformError, PlatformAPIError, PlatformAuthenticationError
from .registry import UserRegistryService
from .roles import OrgRoleService
from .members import MembershipService

__all__ = [
    # Client
    "PlatformClient",
    "REQUEST_TIMEOUT",

    # Exceptions
    "PlatformError",
    "PlatformAPIError",
    "PlatformAuthenticationError",

    # Services
    "UserRegistryService",
    "OrgRoleService",
    "MembershipService",
]
