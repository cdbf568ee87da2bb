from unittest.mock import MagicMock

import pytest
from ldap3.core.exceptions import LDAPBindError, LDAPException

from app.core import directory
from app.core.directory import DirectoryError, LdapDirectoryClient

from conftest import make_config


def _entry(dn, cn, members):
    return {"type": "searchResEntry", "dn": dn, "attributes": {"cn": cn, "member": members}}


@pytest.fixture()
def ldap_conn(monkeypatch):
    conn = MagicMock()
    conn.response = []
    connection_cls = MagicMock(return_value=conn)
    monkeypatch.setattr(directory, "Connection", connection_cls)
    monkeypatch.setattr(directory, "Server", MagicMock())
    conn.connection_cls = connection_cls
    return conn


def _client(**kwargs):
    return LdapDirectoryClient(
        "ldaps://ldap.test",
        "CN=svc,DC=TEST",
        "secret",
        "OU=Groups,DC=TEST",
        **kwargs,
    )


def test_lookup_groups_maps_entries(ldap_conn):
    ldap_conn.response = [
        _entry(
            "CN=GR-APIC_ADMIN_MEMBER,OU=Groups,DC=TEST",
            ["GR-APIC_ADMIN_MEMBER"],
            ["CN=jdoe,OU=Users,DC=TEST", "CN=ASmith,OU=Users,DC=TEST"],
        ),
        {"type": "searchResRef", "uri": ["ldap://elsewhere"]},
    ]

    groups = _client().lookup_groups()

    assert len(groups) == 1
    assert groups[0].identity == "GR-APIC_ADMIN_MEMBER"
    assert groups[0].members == frozenset({"JDOE", "ASMITH"})
    assert groups[0].has_member("asmith")


def test_lookup_groups_uses_filter_base_and_attribute(ldap_conn):
    client = _client(attribute_name="uniqueMember")

    client.lookup_groups("(cn=GR-X)", "OU=Other,DC=TEST")

    args, kwargs = ldap_conn.search.call_args
    assert args == ("OU=Other,DC=TEST", "(cn=GR-X)")
    assert kwargs["attributes"] == ["cn", "uniqueMember"]
    ldap_conn.unbind.assert_called_once()


def test_lookup_groups_defaults(ldap_conn):
    _client().lookup_groups()

    args, _ = ldap_conn.search.call_args
    assert args == ("OU=Groups,DC=TEST", "(&(member=*)(cn=GR-APIC_*))")
    kwargs = ldap_conn.connection_cls.call_args.kwargs
    assert kwargs["user"] == "CN=svc,DC=TEST"
    assert kwargs["password"] == "secret"
    assert kwargs["auto_bind"] is True


def test_plain_member_values_and_missing_cn(ldap_conn):
    ldap_conn.response = [
        {"type": "searchResEntry", "dn": "CN=GR-APIC_ADMIN_VIEWER,OU=Groups,DC=TEST",
         "attributes": {"member": "jdoe"}},
    ]

    groups = _client().lookup_groups()

    assert groups[0].identity == "GR-APIC_ADMIN_VIEWER"
    assert groups[0].members == frozenset({"JDOE"})


def test_bind_failure_raises_directory_error(monkeypatch):
    monkeypatch.setattr(directory, "Server", MagicMock())
    monkeypatch.setattr(directory, "Connection", MagicMock(side_effect=LDAPBindError("invalid credentials")))

    with pytest.raises(DirectoryError, match="bind failed"):
        _client().lookup_groups()


def test_search_failure_raises_directory_error_and_unbinds(ldap_conn):
    ldap_conn.search.side_effect = LDAPException("noSuchObject")

    with pytest.raises(DirectoryError, match="search failed"):
        _client().lookup_groups()
    ldap_conn.unbind.assert_called_once()


@pytest.mark.parametrize(
    "code,description",
    [(32, "noSuchObject"), (50, "insufficientAccessRights")],
)
def test_search_error_result_raises_directory_error(ldap_conn, code, description):
    # ldap3 reports these without raising: search() returns False and sets result
    ldap_conn.search.return_value = False
    ldap_conn.result = {"result": code, "description": description, "message": ""}

    with pytest.raises(DirectoryError, match=description):
        _client().lookup_groups()
    ldap_conn.unbind.assert_called_once()


def test_empty_successful_search_returns_no_groups(ldap_conn):
    ldap_conn.search.return_value = False
    ldap_conn.result = {"result": 0, "description": "success", "message": ""}
    ldap_conn.response = []

    assert _client().lookup_groups() == []


def test_from_config():
    cfg = make_config(ldap_attribute_name="uniqueMember", ldap_use_ssl=False, ldap_timeout=3.0)
    client = LdapDirectoryClient.from_config(cfg)
    assert client.server_address == "ldap.test"
    assert client.attribute_name == "uniqueMember"
    assert client.use_ssl is False
    assert client.ca_bundle is None
    assert client.timeout == 3.0
