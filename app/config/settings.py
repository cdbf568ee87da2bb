"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_ROLE_MAPPING = {
    "GR-APIC_ADMIN_MEMBER": "administrator",
    "GR-APIC_ADMIN_VIEWER": "viewer",
}

# Example values used only when DEMO_MODE=true
_DEMO_DEFAULTS = {
    "UPSTREAM_TOKEN_URL": "https://idp.example.org/oauth2/token",
    "PLATFORM_ENDPOINT": "https://apic-platform-api.example.org/api",
    "PLATFORM_USERNAME": "admin",
    "PLATFORM_PASSWORD": "password",
    "PLATFORM_CLIENT_ID": "datapowerdemo",
    "PLATFORM_CLIENT_SECRET": "secret",
    "LDAP_SERVER": "ldap.example.org",
    "LDAP_BIND_DN": "CN=SVC_APICProd,OU=Service Accounts,OU=DEPT,DC=EXAMPLE,DC=ORG",
    "LDAP_BIND_PASSWORD": "password",
    "LDAP_TARGET_DN": "OU=TIM,OU=Groups,OU=DEPT,DC=EXAMPLE,DC=ORG",
}


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.info("[settings] Loaded %s from /run/secrets", secret_name)
                return secret_value
        except OSError as e:
            logger.warning("[settings] Failed to read /run/secrets/%s: %s", secret_name, e)

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass(frozen=True)
class AppConfig:
    """Immutable application configuration, resolved once at process start."""
    # Mode
    demo_mode: bool

    # Upstream OAuth/OIDC token endpoint
    upstream_token_url: str
    id_token_jwks_url: str = ""
    id_token_audience: str = ""

    # Platform management API
    platform_endpoint: str = ""
    platform_tls_verify: Union[bool, str] = True
    platform_client_cert: Optional[tuple[str, str]] = None
    platform_timeout: float = 10.0
    platform_org: str = "admin"
    platform_username: str = ""
    platform_password: str = ""
    platform_client_id: str = ""
    platform_client_secret: str = ""
    platform_user_realm: str = "admin/default-idp-1"
    platform_registry: str = "sso-oidc"

    # Directory
    ldap_server: str = ""
    ldap_bind_dn: str = ""
    ldap_bind_password: str = ""
    ldap_target_dn: str = ""
    ldap_attribute_name: str = "member"
    ldap_filter: str = "(&(member=*)(cn=GR-APIC_*))"
    ldap_use_ssl: bool = True
    ldap_ca_bundle: str = ""
    ldap_timeout: float = 10.0

    # Directory group identity -> platform role name
    role_mapping: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_ROLE_MAPPING))
    )

    # Logging
    log_level: str = "INFO"


def _get_or_default(var_name: str, demo_mode: bool, secret_name: str | None = None) -> str:
    """Get a required value from secrets/environment, or its demo default."""
    if secret_name:
        value = _load_secret_from_file(secret_name, var_name)
    else:
        value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and var_name in _DEMO_DEFAULTS:
        logger.info("[demo-mode] Using default for %s", var_name)
        return _DEMO_DEFAULTS[var_name]

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _tls_verify_setting() -> Union[bool, str]:
    """CA bundle path when configured, otherwise PLATFORM_TLS_VERIFY (default on)."""
    ca_bundle = os.environ.get("PLATFORM_CA_BUNDLE", "").strip()
    if ca_bundle:
        return ca_bundle
    return _parse_bool(os.environ.get("PLATFORM_TLS_VERIFY", "true"))


def _client_cert_setting() -> Optional[tuple[str, str]]:
    cert = os.environ.get("PLATFORM_CLIENT_CERT", "").strip()
    key = os.environ.get("PLATFORM_CLIENT_KEY", "").strip()
    if not cert:
        return None
    if not key:
        raise RuntimeError("PLATFORM_CLIENT_KEY is required when PLATFORM_CLIENT_CERT is set.")
    return (cert, key)


def load_role_mapping(raw: str | None = None, path: str | None = None) -> Mapping[str, str]:
    """Parse the directory group -> role table from YAML (or JSON) text or a file.

    Args:
        raw: Inline YAML/JSON mapping (takes precedence over ``path``)
        path: Path to a YAML/JSON file holding the mapping

    Returns:
        Read-only mapping; the default table when neither source is given

    Raises:
        ValueError: If the document is not a flat string -> string mapping
    """
    if raw:
        document = yaml.safe_load(raw)
    elif path:
        with open(path, encoding="utf-8") as fh:
            document = yaml.safe_load(fh)
    else:
        return MappingProxyType(dict(DEFAULT_ROLE_MAPPING))

    if not isinstance(document, dict):
        raise ValueError("Role mapping must be a mapping of directory group to role name")

    table = {}
    for group, role in document.items():
        if not isinstance(group, str) or not isinstance(role, str) or not group or not role:
            raise ValueError(f"Invalid role mapping entry: {group!r} -> {role!r}")
        table[group] = role
    return MappingProxyType(table)


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    upstream_token_url = _get_or_default("UPSTREAM_TOKEN_URL", demo_mode)
    platform_endpoint = _get_or_default("PLATFORM_ENDPOINT", demo_mode).rstrip("/")

    # Service credentials (secrets first)
    platform_username = _get_or_default("PLATFORM_USERNAME", demo_mode)
    platform_password = _get_or_default("PLATFORM_PASSWORD", demo_mode, secret_name="platform_password")
    platform_client_id = _get_or_default("PLATFORM_CLIENT_ID", demo_mode)
    platform_client_secret = _get_or_default(
        "PLATFORM_CLIENT_SECRET", demo_mode, secret_name="platform_client_secret"
    )

    # Directory
    ldap_server = _get_or_default("LDAP_SERVER", demo_mode)
    ldap_bind_dn = _get_or_default("LDAP_BIND_DN", demo_mode)
    ldap_bind_password = _get_or_default("LDAP_BIND_PASSWORD", demo_mode, secret_name="ldap_bind_password")
    ldap_target_dn = _get_or_default("LDAP_TARGET_DN", demo_mode)

    role_mapping = load_role_mapping(
        raw=os.environ.get("ROLE_MAPPING"),
        path=os.environ.get("ROLE_MAPPING_FILE"),
    )

    cfg = AppConfig(
        demo_mode=demo_mode,
        upstream_token_url=upstream_token_url,
        id_token_jwks_url=os.environ.get("ID_TOKEN_JWKS_URL", ""),
        id_token_audience=os.environ.get("ID_TOKEN_AUDIENCE", ""),
        platform_endpoint=platform_endpoint,
        platform_tls_verify=_tls_verify_setting(),
        platform_client_cert=_client_cert_setting(),
        platform_timeout=float(os.environ.get("PLATFORM_TIMEOUT", "10")),
        platform_org=os.environ.get("PLATFORM_ORG", "admin"),
        platform_username=platform_username,
        platform_password=platform_password,
        platform_client_id=platform_client_id,
        platform_client_secret=platform_client_secret,
        platform_user_realm=os.environ.get("PLATFORM_USER_REALM", "admin/default-idp-1"),
        platform_registry=os.environ.get("PLATFORM_REGISTRY", "sso-oidc"),
        ldap_server=ldap_server,
        ldap_bind_dn=ldap_bind_dn,
        ldap_bind_password=ldap_bind_password,
        ldap_target_dn=ldap_target_dn,
        ldap_attribute_name=os.environ.get("LDAP_ATTRIBUTE_NAME", "member"),
        ldap_filter=os.environ.get("LDAP_FILTER", "(&(member=*)(cn=GR-APIC_*))"),
        ldap_use_ssl=_parse_bool(os.environ.get("LDAP_USE_SSL", "true")),
        ldap_ca_bundle=os.environ.get("LDAP_CA_BUNDLE", ""),
        ldap_timeout=float(os.environ.get("LDAP_TIMEOUT", "10")),
        role_mapping=role_mapping,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    logger.info(
        "[settings] Mode=%s; org=%s; registry=%s; mapped groups=%d",
        mode_label, cfg.platform_org, cfg.platform_registry, len(cfg.role_mapping),
    )
    if demo_mode:
        logger.warning("[settings] Demo credentials in use. Do not deploy with these defaults.")

    return cfg
