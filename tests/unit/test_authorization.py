"""Unit tests for role tier mapping."""

import pytest

from phytoreq.models.enums import RoleTier
from phytoreq.registry.authorization import RolePolicy


def test_tier_for_configured_roles(role_policy):
    assert role_policy.tier_for(1) == RoleTier.VIEWER
    assert role_policy.tier_for(2) == RoleTier.AUTHOR
    for role_id in (3, 4, 5):
        assert role_policy.tier_for(role_id) == RoleTier.EDITOR


def test_unknown_role_is_viewer(role_policy):
    assert role_policy.tier_for(42) == RoleTier.VIEWER
    assert role_policy.tier_for(None) == RoleTier.VIEWER
    assert not role_policy.can_create(42)


def test_create_and_edit_gates(role_policy):
    assert [role_policy.can_create(r) for r in (1, 2, 3)] == [False, True, True]
    assert [role_policy.can_edit(r) for r in (1, 2, 3)] == [False, False, True]


def test_role_in_two_tiers_is_rejected():
    with pytest.raises(ValueError, match="more than one tier"):
        RolePolicy({RoleTier.AUTHOR: [2], RoleTier.EDITOR: [2, 3]})


def test_accepts_tier_names_as_keys():
    policy = RolePolicy({"author": [7], "editor": [9]})

    assert policy.tier_for(7) == RoleTier.AUTHOR
    assert policy.tier_for(9) == RoleTier.EDITOR


def test_from_config_matches_default_roles():
    """The shipped config maps role ids 1..5 the same way as the fixture policy."""
    policy = RolePolicy.from_config()

    assert policy.tier_for(1) == RoleTier.VIEWER
    assert policy.tier_for(2) == RoleTier.AUTHOR
    assert policy.tier_for(5) == RoleTier.EDITOR


def test_admin_roles_are_separate_from_tiers(role_policy):
    assert [role_policy.is_admin(r) for r in (1, 2, 3, 4, 5)] == [False, False, False, True, True]
    assert not role_policy.is_admin(None)
    assert role_policy.tier_for(4) == RoleTier.EDITOR


def test_from_config_reads_admins():
    policy = RolePolicy.from_config()

    assert policy.is_admin(4) and policy.is_admin(5)
    assert not policy.is_admin(3)
