"""Organization membership reconciliation."""
from __future__ import annotations
import logging
from typing import Optional, Sequence

from app.core.models import OrgMember, PlatformUser

from .client import PlatformClient

logger = logging.getLogger(__name__)


class MembershipService:
    """Create-or-update of organization member records."""

    def __init__(self, client: PlatformClient, org: str):
        self.client = client
        self.org = org

    @property
    def members_path(self) -> str:
        return f"/orgs/{self.org}/members"

    def list_members(self) -> list[OrgMember]:
        results = self.client.get_results(self.members_path, params={"fields": "name,title,url"})
        return [OrgMember.from_api(item) for item in results]

    @staticmethod
    def find_member(members: Sequence[OrgMember], username: str) -> Optional[OrgMember]:
        """Find the member whose name AND title both equal the username.

        Both fields must match exactly (case-sensitive); a member matching
        only one of them is treated as absent.
        """
        for member in members:
            if member.name == username and member.title == username:
                return member
        return None

    def update_roles(self, member: OrgMember, role_urls: Sequence[str]) -> OrgMember:
        """Replace the member's role URLs with ``role_urls``."""
        payload = self.client.patch(
            f"{self.members_path}/{member.name}",
            json={"role_urls": list(role_urls)},
            expect=dict,
        )
        return OrgMember.from_api(payload)

    def create_member(self, user: PlatformUser, role_urls: Sequence[str]) -> OrgMember:
        payload = self.client.post(self.members_path, json={
            "user": {"url": user.url},
            "role_urls": list(role_urls),
        }, expect=dict)
        return OrgMember.from_api(payload)

    def upsert(self, username: str, user: PlatformUser, role_urls: Sequence[str]) -> tuple[OrgMember, bool]:
        """Make the organization member for ``username`` hold exactly ``role_urls``.

        An existing member is patched, otherwise a new member referencing
        ``user.url`` is created. Repeating the call with the same inputs
        leaves the same end state.

        Returns:
            (member, created) tuple
        """
        existing = self.find_member(self.list_members(), username)
        if existing is not None:
            member = self.update_roles(existing, role_urls)
            logger.info("Updated member '%s' in org %s with %d role(s)", username, self.org, len(role_urls))
            return member, False

        member = self.create_member(user, role_urls)
        logger.info("Created member '%s' in org %s with %d role(s)", username, self.org, len(role_urls))
        return member, True
