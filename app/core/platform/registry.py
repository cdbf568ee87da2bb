"""User registry operations."""
from __future__ import annotations
import logging
from typing import Optional

from app.core.models import IdentityClaims, PlatformUser

from .client import PlatformClient

logger = logging.getLogger(__name__)


class UserRegistryService:
    """Service for the users of one platform user registry."""

    def __init__(self, client: PlatformClient, org: str, registry: str):
        """Initialize registry service.

        Args:
            client: Authenticated platform client
            org: Organization owning the registry
            registry: Registry name, also used as identity provider
        """
        self.client = client
        self.org = org
        self.registry = registry

    @property
    def users_path(self) -> str:
        return f"/user-registries/{self.org}/{self.registry}/users"

    def get_user_by_username(self, username: str) -> Optional[PlatformUser]:
        """Return the registry user that exactly matches the username."""
        for item in self.client.get_results(self.users_path, params={"fields": "username,url"}):
            if item.get("username") == username:
                return PlatformUser.from_api(item)
        return None

    def create_user(self, claims: IdentityClaims) -> PlatformUser:
        """Create a registry user from the identity claims.

        Optional claims that are absent are left out of the payload.
        """
        body = {
            "username": claims.subject,
            "first_name": claims.given_name,
            "last_name": claims.family_name,
            "email": claims.email,
            "identity_provider": self.registry,
        }
        body = {key: value for key, value in body.items() if value is not None}
        created = self.client.post(self.users_path, json=body, expect=dict)
        logger.info("Created registry user '%s' in %s/%s", claims.subject, self.org, self.registry)
        return PlatformUser.from_api(created)

    def find_or_create(self, claims: IdentityClaims) -> tuple[PlatformUser, bool]:
        """Return the registry user for the subject, creating it when missing.

        Returns:
            (user, created) tuple
        """
        user = self.get_user_by_username(claims.subject)
        if user is not None:
            logger.debug("Registry user '%s' already exists", claims.subject)
            return user, False
        return self.create_user(claims), True
