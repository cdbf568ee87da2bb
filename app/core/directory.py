"""Directory group lookups.

The orchestrator only depends on :class:`DirectoryGroupClient`; the LDAP
implementation below is one way of answering it.
"""
from __future__ import annotations
import logging
import ssl
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from ldap3 import NONE, SUBTREE, Connection, Server, Tls
from ldap3.core.exceptions import LDAPException
from ldap3.utils.dn import parse_dn

from app.core.models import DirectoryGroup

logger = logging.getLogger(__name__)


class DirectoryError(Exception):
    """Directory lookup failed (bind, search or result handling)."""
    pass


class DirectoryGroupClient(ABC):
    """Source of directory groups and their members."""

    @abstractmethod
    def lookup_groups(
        self,
        search_filter: Optional[str] = None,
        search_base: Optional[str] = None,
    ) -> List[DirectoryGroup]:
        """Return the groups matching ``search_filter`` under ``search_base``.

        Raises:
            DirectoryError: If the lookup cannot be completed
        """


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _leading_rdn_value(value: str) -> str:
    """Return ``JDOE`` for ``CN=JDOE,OU=Users,...``; plain values pass through."""
    if "=" not in value:
        return value
    try:
        components = parse_dn(value)
    except LDAPException:
        return value
    if not components:
        return value
    return components[0][1]


class LdapDirectoryClient(DirectoryGroupClient):
    """LDAP group search with ldap3.

    Each group entry becomes a :class:`DirectoryGroup` whose identity is the
    group ``cn`` and whose members are the upper-cased leading RDN values of
    the member attribute.

    Usage:
        client = LdapDirectoryClient("ldaps://ldap.example.org", bind_dn, password,
                                     "OU=Groups,DC=EXAMPLE,DC=ORG")
        groups = client.lookup_groups("(&(member=*)(cn=GR-APIC_*))")
    """

    def __init__(
        self,
        server: str,
        bind_dn: str,
        bind_password: str,
        target_dn: str,
        *,
        attribute_name: str = "member",
        search_filter: str = "(&(member=*)(cn=GR-APIC_*))",
        use_ssl: bool = True,
        ca_bundle: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.server_address = server
        self.bind_dn = bind_dn
        self.bind_password = bind_password
        self.target_dn = target_dn
        self.attribute_name = attribute_name
        self.search_filter = search_filter
        self.use_ssl = use_ssl
        self.ca_bundle = ca_bundle
        self.timeout = timeout

    @classmethod
    def from_config(cls, cfg) -> "LdapDirectoryClient":
        """Build a client from :class:`app.config.AppConfig`."""
        return cls(
            cfg.ldap_server,
            cfg.ldap_bind_dn,
            cfg.ldap_bind_password,
            cfg.ldap_target_dn,
            attribute_name=cfg.ldap_attribute_name,
            search_filter=cfg.ldap_filter,
            use_ssl=cfg.ldap_use_ssl,
            ca_bundle=cfg.ldap_ca_bundle or None,
            timeout=cfg.ldap_timeout,
        )

    def _server(self) -> Server:
        tls = None
        if self.ca_bundle:
            tls = Tls(validate=ssl.CERT_REQUIRED, ca_certs_file=self.ca_bundle)
        return Server(
            self.server_address,
            use_ssl=self.use_ssl,
            tls=tls,
            get_info=NONE,
            connect_timeout=self.timeout,
        )

    def lookup_groups(
        self,
        search_filter: Optional[str] = None,
        search_base: Optional[str] = None,
    ) -> List[DirectoryGroup]:
        search_filter = search_filter or self.search_filter
        search_base = search_base or self.target_dn
        logger.debug("ldap search base=%s filter=%s", search_base, search_filter)

        try:
            conn = Connection(
                self._server(),
                user=self.bind_dn,
                password=self.bind_password,
                auto_bind=True,
                read_only=True,
                receive_timeout=self.timeout,
            )
        except LDAPException as e:
            logger.error("ldap bind to %s failed: %s", self.server_address, e)
            raise DirectoryError(f"LDAP bind failed: {e}") from e

        try:
            found = conn.search(
                search_base,
                search_filter,
                search_scope=SUBTREE,
                attributes=["cn", self.attribute_name],
            )
            result = conn.result or {}
            # search() returns False on both an empty result and an error result
            if not found and result.get("result", 0) != 0:
                logger.error("ldap search under %s failed: %s", search_base, result)
                raise DirectoryError(f"LDAP search failed: {result.get('description')} ({result.get('message')})")
            return self._groups_from_response(conn.response or [])
        except LDAPException as e:
            logger.error("ldap search under %s failed: %s", search_base, e)
            raise DirectoryError(f"LDAP search failed: {e}") from e
        finally:
            conn.unbind()

    def _groups_from_response(self, response: Sequence[dict]) -> List[DirectoryGroup]:
        groups = []
        for entry in response:
            if entry.get("type") != "searchResEntry":
                continue
            attributes = entry.get("attributes") or {}
            names = _as_list(attributes.get("cn"))
            identity = str(names[0]) if names else _leading_rdn_value(entry.get("dn", ""))
            members = [_leading_rdn_value(str(value)) for value in _as_list(attributes.get(self.attribute_name))]
            groups.append(DirectoryGroup.build(identity, members))
        logger.debug("ldap search returned %d group(s)", len(groups))
        return groups
