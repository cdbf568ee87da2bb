"""Pytest shared fixtures: fake platform API, fake directory, config factory."""
import json
import pathlib
import sys
from types import MappingProxyType
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import jwt
import pytest
import requests

from app.config.settings import AppConfig
from app.core.directory import DirectoryError, DirectoryGroupClient
from app.core.models import DirectoryGroup
from app.core import audit

BASE_URL = "https://platform.test/api"
ORG = "admin"
REGISTRY = "sso-oidc"
SERVICE_TOKEN = "svc-token"
ID_TOKEN_KEY = "unit-test-id-token-signing-key-0123456789"

USERS_PATH = f"/user-registries/{ORG}/{REGISTRY}/users"
ROLES_PATH = f"/orgs/{ORG}/roles"
MEMBERS_PATH = f"/orgs/{ORG}/members"


def role_url(name: str) -> str:
    return f"{BASE_URL}{ROLES_PATH}/{name}"


def make_config(**overrides) -> AppConfig:
    base = dict(
        demo_mode=False,
        upstream_token_url="https://idp.test/oauth2/token",
        platform_endpoint=BASE_URL,
        platform_org=ORG,
        platform_username="svc",
        platform_password="svc-password",
        platform_client_id="svc-client",
        platform_client_secret="svc-secret",
        platform_user_realm="admin/default-idp-1",
        platform_registry=REGISTRY,
        ldap_server="ldap.test",
        ldap_bind_dn="CN=svc,DC=TEST",
        ldap_bind_password="ldap-password",
        ldap_target_dn="OU=Groups,DC=TEST",
        role_mapping=MappingProxyType({
            "GR-APIC_ADMIN_MEMBER": "administrator",
            "GR-APIC_ADMIN_VIEWER": "viewer",
        }),
    )
    base.update(overrides)
    return AppConfig(**base)


def make_id_token(**claims) -> str:
    return jwt.encode(claims, ID_TOKEN_KEY, algorithm="HS256")


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    def __init__(self, payload, status_code: int = 200, url: str = ""):
        self._payload = payload
        self.status_code = status_code
        self.url = url
        self.text = payload if isinstance(payload, str) else json.dumps(payload)
        self.content = self.text.encode("utf-8")
        self.headers = {"Content-Type": "application/json"}

    def json(self):
        if isinstance(self._payload, str):
            return json.loads(self._payload)
        return self._payload


class FakePlatform:
    """Stateful stand-in for the platform management API.

    Installed in place of ``requests.request``. ``failures`` maps
    (METHOD, path) to a status code to return instead of the normal answer.
    """

    def __init__(self):
        self.users = []
        self.roles = [
            {"name": "administrator", "title": "Administrator", "url": role_url("administrator")},
            {"name": "viewer", "title": "Viewer", "url": role_url("viewer")},
            {"name": "member", "title": "Member", "url": role_url("member")},
        ]
        self.members = []
        self.calls = []
        self.failures = {}
        self.raw_bodies = {}

    def add_user(self, username: str) -> dict:
        user = {"username": username, "url": f"{BASE_URL}{USERS_PATH}/{username}"}
        self.users.append(user)
        return user

    def add_member(self, name: str, title: Optional[str] = None, role_urls=()) -> dict:
        member = {
            "name": name,
            "title": name if title is None else title,
            "url": f"{BASE_URL}{MEMBERS_PATH}/{name}",
            "role_urls": list(role_urls),
        }
        self.members.append(member)
        return member

    def calls_for(self, method: str, path: str) -> list:
        return [call for call in self.calls if call[0] == method and call[1] == path]

    def __call__(self, method, url, params=None, data=None, headers=None, **kwargs):
        method = method.upper()
        assert url.startswith(BASE_URL), f"Unexpected URL {url}"
        path = url[len(BASE_URL):]
        body = json.loads(data) if data else None
        self.calls.append((method, path, body, dict(headers or {})))

        key = (method, path)
        if key in self.failures:
            return StubResponse({"message": "injected failure"}, self.failures[key], url)
        if key in self.raw_bodies:
            return StubResponse(self.raw_bodies[key], 200, url)

        if key == ("POST", "/token"):
            return StubResponse({"access_token": SERVICE_TOKEN, "token_type": "Bearer"}, 200, url)

        if (headers or {}).get("Authorization") != f"Bearer {SERVICE_TOKEN}":
            return StubResponse({"message": "unauthorized"}, 401, url)

        if key == ("GET", USERS_PATH):
            return StubResponse({"total_results": len(self.users), "results": list(self.users)}, 200, url)
        if key == ("POST", USERS_PATH):
            user = self.add_user(body["username"])
            return StubResponse(dict(user, **{k: v for k, v in body.items() if k != "username"}), 201, url)
        if key == ("GET", ROLES_PATH):
            return StubResponse({"results": list(self.roles)}, 200, url)
        if key == ("GET", MEMBERS_PATH):
            return StubResponse({"results": [dict(m) for m in self.members]}, 200, url)
        if key == ("POST", MEMBERS_PATH):
            user = next(u for u in self.users if u["url"] == body["user"]["url"])
            member = self.add_member(user["username"], role_urls=body["role_urls"])
            return StubResponse(dict(member), 201, url)
        if method == "PATCH" and path.startswith(MEMBERS_PATH + "/"):
            name = path.rsplit("/", 1)[1]
            member = next((m for m in self.members if m["name"] == name), None)
            if member is None:
                return StubResponse({"message": "not found"}, 404, url)
            member["role_urls"] = list(body["role_urls"])
            return StubResponse(dict(member), 200, url)

        return StubResponse({"message": f"no route {method} {path}"}, 404, url)


class FakeDirectory(DirectoryGroupClient):
    """In-memory directory returning a fixed group list."""

    def __init__(self, groups=None, error: Optional[Exception] = None):
        self.groups = list(groups or [])
        self.error = error
        self.calls = []

    def lookup_groups(self, search_filter=None, search_base=None):
        self.calls.append((search_filter, search_base))
        if self.error is not None:
            raise self.error
        return list(self.groups)


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch):
    """Prevent unit tests from issuing real HTTP calls."""

    def _refuse(*args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP call in unit test: {args[:2]}")

    monkeypatch.setattr(requests, "request", _refuse)
    monkeypatch.setattr(requests, "post", _refuse)
    monkeypatch.setattr(requests, "get", _refuse)


@pytest.fixture(autouse=True)
def _audit_to_tmp(monkeypatch, tmp_path):
    """Keep audit events of a test inside its temp dir."""
    audit_dir = tmp_path / "audit"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_dir / "provisioning-events.jsonl")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "audit-test-key")
    return audit_dir


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def cfg():
    return make_config()


@pytest.fixture()
def platform(monkeypatch):
    fake = FakePlatform()
    monkeypatch.setattr(requests, "request", fake)
    return fake


@pytest.fixture()
def directory():
    return FakeDirectory([
        DirectoryGroup.build("GR-APIC_ADMIN_MEMBER", ["JDOE", "ASMITH"]),
        DirectoryGroup.build("GR-APIC_ADMIN_VIEWER", ["ASMITH"]),
        DirectoryGroup.build("GR-APIC_UNMAPPED", ["JDOE"]),
    ])


@pytest.fixture()
def failing_directory():
    return FakeDirectory(error=DirectoryError("LDAP bind failed: invalid credentials"))
