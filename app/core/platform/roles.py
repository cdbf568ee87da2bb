"""Organization role lookups."""
from __future__ import annotations

from app.core.models import OrgRole

from .client import PlatformClient


class OrgRoleService:
    """Service for the roles defined in a platform organization."""

    def __init__(self, client: PlatformClient, org: str):
        self.client = client
        self.org = org

    def list_roles(self) -> list[OrgRole]:
        """Return every role of the organization, in API order."""
        results = self.client.get_results(f"/orgs/{self.org}/roles", params={"fields": "name,title,url"})
        return [OrgRole.from_api(item) for item in results]
