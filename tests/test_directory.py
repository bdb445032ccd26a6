"""
Unit tests for the user directory.
"""

import pytest

from cloakroom.directory import UserDirectory
from cloakroom.errors import DuplicateUsername, Forbidden, NotFound, ValidationError
from cloakroom.models import Role


def make_directory():
    d = UserDirectory(privileged_usernames=["nikitovsky", "superadmin"])
    d.seed("nikitovsky", Role.NIKITOVSKY)
    d.seed("superadmin", Role.SUPER_ADMIN)
    d.seed("anna", Role.CASHIER)
    return d


# ── Tests: create_user ───────────────────────────────────────────────

def test_create_user_ok():
    d = make_directory()
    user = d.create_user("boris", Role.HEAD_CASHIER, "secret", actor=Role.ADMIN)
    assert user.username == "boris"
    assert user.role is Role.HEAD_CASHIER
    assert not user.blocked
    assert not hasattr(user, "secret")
    assert d.get("boris") == user


def test_create_user_duplicate_is_case_sensitive():
    d = make_directory()
    with pytest.raises(DuplicateUsername):
        d.create_user("anna", Role.CASHIER, actor=Role.ADMIN)
    assert d.create_user("Anna", Role.CASHIER, actor=Role.ADMIN).username == "Anna"


def test_create_user_empty_name():
    d = make_directory()
    with pytest.raises(ValidationError) as e:
        d.create_user("   ", Role.CASHIER, actor=Role.ADMIN)
    assert e.value.fields == ["username"]


def test_create_user_requires_manage_users():
    d = make_directory()
    with pytest.raises(Forbidden):
        d.create_user("boris", Role.CASHIER, actor=Role.HEAD_CASHIER)
    assert d.get("boris") is None


def test_privileged_role_creation_needs_super_admin():
    d = make_directory()
    with pytest.raises(Forbidden):
        d.create_user("nik2", Role.NIKITOVSKY, actor=Role.CREATOR)
    assert d.create_user("nik2", Role.NIKITOVSKY, actor=Role.SUPER_ADMIN).role is Role.NIKITOVSKY


# ── Tests: block / reassign ──────────────────────────────────────────

def test_block_and_unblock():
    d = make_directory()
    assert d.set_blocked("anna", True, actor=Role.ADMIN).blocked
    assert d.get("anna").blocked
    assert not d.set_blocked("anna", False, actor=Role.ADMIN).blocked


def test_block_privileged_identity_needs_super_admin():
    d = make_directory()
    with pytest.raises(Forbidden):
        d.set_blocked("nikitovsky", True, actor=Role.ADMIN)
    assert not d.get("nikitovsky").blocked
    d.set_blocked("nikitovsky", True, actor=Role.SUPER_ADMIN)
    assert d.get("nikitovsky").blocked


def test_block_unknown_user():
    d = make_directory()
    with pytest.raises(NotFound):
        d.set_blocked("ghost", True, actor=Role.ADMIN)


def test_block_checks_capability_before_lookup():
    d = make_directory()
    with pytest.raises(Forbidden):
        d.set_blocked("ghost", True, actor=Role.CLIENT)
    with pytest.raises(Forbidden):
        d.set_blocked("ghost", True, actor=None)


def test_reassign_role_only_super_admin():
    d = make_directory()
    with pytest.raises(Forbidden):
        d.reassign_role("anna", Role.ADMIN, actor=Role.ADMIN)
    user = d.reassign_role("anna", Role.NIKITOVSKY, actor=Role.SUPER_ADMIN)
    assert user.role is Role.NIKITOVSKY
    assert d.find("anna", Role.CASHIER) is None
    assert d.find("anna", Role.NIKITOVSKY) is not None


def test_users_with_role():
    d = make_directory()
    d.seed("boris", Role.CASHIER)
    assert [u.username for u in d.users_with_role(Role.CASHIER)] == ["anna", "boris"]
    assert d.users_with_role(Role.ADMIN) == []


# ── Tests: reads ─────────────────────────────────────────────────────

def test_find_requires_role_match():
    d = make_directory()
    assert d.find("anna", Role.CASHIER).username == "anna"
    assert d.find("anna", Role.ADMIN) is None
    assert d.find("ghost", Role.CASHIER) is None


def test_reads_return_copies():
    d = make_directory()
    d.get("anna").blocked = True
    assert not d.get("anna").blocked


def test_privileged_identity():
    d = make_directory()
    assert d.is_privileged_identity(d.get("superadmin"))
    assert not d.is_privileged_identity(d.get("anna"))
    assert [u.username for u in d.list_users()] == ["nikitovsky", "superadmin", "anna"]
