"""Value objects exchanged between the provisioning stages.

Everything here is scoped to a single token exchange; nothing is cached.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional


@dataclass(frozen=True)
class IdentityClaims:
    """Identity claims of the verified subject, taken from the id_token."""
    subject: str
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class DirectoryGroup:
    """A directory group and its members.

    Members are stored upper-cased so membership checks are case-insensitive.
    """
    identity: str
    members: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def build(cls, identity: str, members: Iterable[str]) -> "DirectoryGroup":
        return cls(identity=identity, members=frozenset(m.upper() for m in members if m))

    def has_member(self, username: str) -> bool:
        return username.upper() in self.members


@dataclass(frozen=True)
class PlatformUser:
    """User record in the platform's identity registry."""
    username: str
    url: str

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "PlatformUser":
        return cls(username=payload.get("username", ""), url=payload.get("url", ""))


@dataclass(frozen=True)
class OrgRole:
    """Role available within a platform organization."""
    name: str
    title: str
    url: str

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "OrgRole":
        return cls(
            name=payload.get("name", ""),
            title=payload.get("title", ""),
            url=payload.get("url", ""),
        )


@dataclass(frozen=True)
class OrgMember:
    """Member record of a platform organization."""
    name: str
    title: str
    url: str
    role_urls: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "OrgMember":
        role_urls = payload.get("role_urls")
        return cls(
            name=payload.get("name", ""),
            title=payload.get("title", ""),
            url=payload.get("url", ""),
            role_urls=tuple(role_urls) if isinstance(role_urls, list) else (),
        )
