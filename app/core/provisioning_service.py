"""
Provisioning Service Layer - access reconciliation for one token exchange

Drives the platform API, the directory and the role table so that the
subject's organization membership matches its directory groups before the
token response is released.

Architecture:
    token proxy (/oauth2/token) ──┐
                                  ├──> provisioning_service.py ──> app.core.platform ──> platform API
    app/cli.py ───────────────────┘                           └──> app.core.directory ──> LDAP

Stages (strictly sequential, first failure wins):
    1. authenticate service identity           -> AuthenticationFailed
    2. find-or-create registry user            -> UpstreamApiFailed
    3. look up directory groups                -> DirectoryLookupFailed
    4. resolve roles from the mapping table    (pure)
    5. list organization roles                 -> UpstreamApiFailed
    6. find existing organization member       -> UpstreamApiFailed
    7. patch or create the member              -> UpstreamApiFailed

Side effects of completed stages are not rolled back. Stages 2 and 6 are
lookups, so the next authentication converges on the same end state.
"""

from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Sequence, Type

from app.core.directory import DirectoryError, DirectoryGroupClient, LdapDirectoryClient
from app.core.exceptions import (
    AuthenticationFailed,
    DirectoryLookupFailed,
    ProvisioningError,
    UpstreamApiFailed,
)
from app.core.models import IdentityClaims, OrgMember, PlatformUser
from app.core.platform import (
    MembershipService,
    OrgRoleService,
    PlatformClient,
    PlatformError,
    UserRegistryService,
)
from app.core.rbac import resolve_roles, role_urls_for
from app.core import audit

logger = logging.getLogger(__name__)

AUDIT_OPERATOR = "token-proxy"


@contextmanager
def _stage(
    name: str,
    error_cls: Type[ProvisioningError],
    catch: tuple[Type[BaseException], ...],
) -> Iterator[None]:
    """Convert a stage's client errors into the given provisioning error."""
    try:
        yield
    except catch as e:
        logger.error("Provisioning stage '%s' failed: %s", name, e)
        raise error_cls(f"{name}: {e}", cause=e) from e


class ProvisioningOrchestrator:
    """Runs the reconciliation pipeline for one subject at a time.

    The orchestrator holds no per-invocation state: every :meth:`provision`
    call builds its own platform client, so bearer tokens never outlive the
    call that obtained them.
    """

    def __init__(
        self,
        cfg,
        directory: Optional[DirectoryGroupClient] = None,
        client_factory: Callable[..., PlatformClient] = PlatformClient.from_config,
        operator: str = AUDIT_OPERATOR,
    ):
        """Initialize the orchestrator.

        Args:
            cfg: Application configuration (AppConfig)
            directory: Directory group source (defaults to LDAP from cfg)
            client_factory: Builds a fresh PlatformClient from cfg
            operator: Name recorded in audit events
        """
        self.cfg = cfg
        self.directory = directory or LdapDirectoryClient.from_config(cfg)
        self.client_factory = client_factory
        self.operator = operator

    def provision(self, claims: IdentityClaims) -> OrgMember:
        """Reconcile the subject's organization membership.

        Returns:
            The created or updated organization member

        Raises:
            ProvisioningError: On the first failing stage
        """
        username = claims.subject
        try:
            client = self.client_factory(self.cfg)
            self._authenticate(client)
            user = self._find_or_create_user(client, claims)
            roles = self.resolve_user_roles(user.username)
            role_urls = self._role_urls(client, roles)
            member = self._upsert_member(client, user, role_urls)
        except ProvisioningError as e:
            audit.safe_log_provisioning_event(
                "provisioning_failed",
                username,
                operator=self.operator,
                org=self.cfg.platform_org,
                details={"error": type(e).__name__, "detail": str(e)},
                success=False,
            )
            raise

        logger.debug("Created/Updated member %s", member)
        return member

    def resolve_user_roles(self, username: str) -> frozenset[str]:
        """Look up directory groups and map them to role names."""
        with _stage("directory lookup", DirectoryLookupFailed, (DirectoryError,)):
            groups = self.directory.lookup_groups(self.cfg.ldap_filter, self.cfg.ldap_target_dn)
        roles = resolve_roles(username, groups, self.cfg.role_mapping)
        logger.info("Resolved roles for '%s': %s", username, sorted(roles) or "none")
        return roles

    # ─────────────────────────────────────────────────────────────────────────
    # Stages
    # ─────────────────────────────────────────────────────────────────────────

    def _authenticate(self, client: PlatformClient) -> None:
        cfg = self.cfg
        with _stage("authenticate", AuthenticationFailed, (PlatformError,)):
            client.authenticate(
                cfg.platform_username,
                cfg.platform_password,
                cfg.platform_client_id,
                cfg.platform_client_secret,
                cfg.platform_user_realm,
            )

    def _find_or_create_user(self, client: PlatformClient, claims: IdentityClaims) -> PlatformUser:
        registry = UserRegistryService(client, self.cfg.platform_org, self.cfg.platform_registry)
        with _stage("registry user", UpstreamApiFailed, (PlatformError,)):
            user, created = registry.find_or_create(claims)
        if created:
            audit.safe_log_provisioning_event(
                "registry_user_created",
                user.username,
                operator=self.operator,
                org=self.cfg.platform_org,
                details={"registry": self.cfg.platform_registry, "url": user.url},
            )
        return user

    def _role_urls(self, client: PlatformClient, roles: frozenset[str]) -> list[str]:
        with _stage("list roles", UpstreamApiFailed, (PlatformError,)):
            org_roles = OrgRoleService(client, self.cfg.platform_org).list_roles()
        return role_urls_for(org_roles, roles)

    def _upsert_member(self, client: PlatformClient, user: PlatformUser, role_urls: Sequence[str]) -> OrgMember:
        members = MembershipService(client, self.cfg.platform_org)
        with _stage("member upsert", UpstreamApiFailed, (PlatformError,)):
            member, created = members.upsert(user.username, user, role_urls)
        audit.safe_log_provisioning_event(
            "member_created" if created else "member_updated",
            user.username,
            operator=self.operator,
            org=self.cfg.platform_org,
            details={"role_urls": list(role_urls)},
        )
        return member


def provision_access(cfg, claims: IdentityClaims, directory: Optional[DirectoryGroupClient] = None) -> OrgMember:
    """Convenience wrapper: build an orchestrator and provision one subject."""
    return ProvisioningOrchestrator(cfg, directory=directory).provision(claims)
