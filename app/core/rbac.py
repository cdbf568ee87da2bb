"""Directory group to platform role mapping."""
from __future__ import annotations
from typing import Iterable, Mapping

from app.core.models import DirectoryGroup, OrgRole


def resolve_roles(
    username: str,
    groups: Iterable[DirectoryGroup],
    table: Mapping[str, str],
) -> frozenset[str]:
    """Return the platform roles granted to ``username`` by its directory groups.

    A table entry contributes its role when a group with exactly that
    identity exists and lists the user (case-insensitive). Unmapped groups
    and groups without the user contribute nothing.
    """
    by_identity = {}
    for group in groups:
        by_identity.setdefault(group.identity, []).append(group)

    roles = set()
    for identity, role in table.items():
        for group in by_identity.get(identity, ()):
            if group.has_member(username):
                roles.add(role)
    return frozenset(roles)


def role_urls_for(org_roles: Iterable[OrgRole], roles: Iterable[str]) -> list[str]:
    """Return the URLs of the organization roles named in ``roles``.

    Roles missing from the organization are skipped. Order follows the
    organization's role listing.
    """
    wanted = set(roles)
    urls = []
    for org_role in org_roles:
        if org_role.name in wanted and org_role.url not in urls:
            urls.append(org_role.url)
    return urls
