import itertools

import pytest

from app.core import rbac
from app.core.models import DirectoryGroup, OrgRole

TABLE = {
    "GR-APIC_ADMIN_MEMBER": "administrator",
    "GR-APIC_ADMIN_VIEWER": "viewer",
}


def _groups():
    return [
        DirectoryGroup.build("GR-APIC_ADMIN_MEMBER", ["JDOE", "ASMITH"]),
        DirectoryGroup.build("GR-APIC_ADMIN_VIEWER", ["asmith"]),
        DirectoryGroup.build("GR-APIC_OTHER", ["JDOE"]),
    ]


def test_resolve_roles_example_from_directory():
    groups = [DirectoryGroup.build("GR-APIC_ADMIN_MEMBER", ["JDOE"])]
    assert rbac.resolve_roles("jdoe", groups, {"GR-APIC_ADMIN_MEMBER": "administrator"}) == {"administrator"}


@pytest.mark.parametrize(
    "username,expected",
    [
        ("jdoe", {"administrator"}),
        ("JDoe", {"administrator"}),
        ("asmith", {"administrator", "viewer"}),
        ("nobody", set()),
    ],
)
def test_resolve_roles_is_case_insensitive_on_membership(username, expected):
    assert rbac.resolve_roles(username, _groups(), TABLE) == expected


def test_resolve_roles_ignores_unmapped_groups():
    groups = [DirectoryGroup.build("GR-APIC_OTHER", ["JDOE"])]
    assert rbac.resolve_roles("jdoe", groups, TABLE) == frozenset()


def test_resolve_roles_group_identity_is_exact_match():
    groups = [DirectoryGroup.build("gr-apic_admin_member", ["JDOE"])]
    assert rbac.resolve_roles("jdoe", groups, TABLE) == frozenset()


def test_resolve_roles_deduplicates_roles():
    table = {"GR-A": "administrator", "GR-B": "administrator"}
    groups = [DirectoryGroup.build("GR-A", ["JDOE"]), DirectoryGroup.build("GR-B", ["JDOE"])]
    roles = rbac.resolve_roles("jdoe", groups, table)
    assert roles == {"administrator"}
    assert isinstance(roles, frozenset)


def test_resolve_roles_independent_of_group_order():
    results = {
        rbac.resolve_roles("asmith", list(order), TABLE)
        for order in itertools.permutations(_groups())
    }
    assert results == {frozenset({"administrator", "viewer"})}


def test_resolve_roles_empty_inputs():
    assert rbac.resolve_roles("jdoe", [], TABLE) == frozenset()
    assert rbac.resolve_roles("jdoe", _groups(), {}) == frozenset()


def test_role_urls_for_keeps_org_order_and_skips_unknown_roles():
    org_roles = [
        OrgRole("viewer", "Viewer", "https://p/roles/viewer"),
        OrgRole("member", "Member", "https://p/roles/member"),
        OrgRole("administrator", "Administrator", "https://p/roles/administrator"),
    ]
    urls = rbac.role_urls_for(org_roles, {"administrator", "viewer", "ghost"})
    assert urls == ["https://p/roles/viewer", "https://p/roles/administrator"]


def test_role_urls_for_empty_role_set():
    org_roles = [OrgRole("viewer", "Viewer", "https://p/roles/viewer")]
    assert rbac.role_urls_for(org_roles, frozenset()) == []
