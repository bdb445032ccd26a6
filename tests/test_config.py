"""
Unit tests for configuration parsing.
"""

import pytest

from cloakroom.config import (
    DEFAULT_CATEGORY_LIMITS,
    load_category_limits,
    load_secrets,
    load_seed_users,
    parse_pairs,
)


# ── Tests: parse_pairs ───────────────────────────────────────────────

def test_parse_pairs_empty():
    assert parse_pairs(None, "X") == {}
    assert parse_pairs("", "X") == {}


def test_parse_pairs_strips_and_allows_empty_values():
    assert parse_pairs(" cashier = 11 , client= ,", "X") == {"cashier": "11", "client": ""}


def test_parse_pairs_missing_equals():
    with pytest.raises(ValueError, match="X: expected key=value"):
        parse_pairs("cashier", "X")


# ── Tests: loaders ───────────────────────────────────────────────────

def test_load_secrets_defaults(monkeypatch):
    monkeypatch.delenv("CLOAKROOM_SECRETS", raising=False)
    secrets = load_secrets()
    assert secrets["cashier"] == "25"
    assert secrets["archive"] == "202505"
    assert secrets["client"] == ""


def test_load_secrets_override_is_read_only(monkeypatch):
    monkeypatch.setenv("CLOAKROOM_SECRETS", "cashier=777")
    secrets = load_secrets()
    assert secrets["cashier"] == "777"
    assert secrets["admin"] == "2025"
    with pytest.raises(TypeError):
        secrets["cashier"] = "1"


def test_load_category_limits_override(monkeypatch):
    monkeypatch.setenv("CLOAKROOM_CATEGORY_LIMITS", "cards=3")
    limits = load_category_limits()
    assert limits["cards"] == 3
    assert limits["documents"] == DEFAULT_CATEGORY_LIMITS["documents"]


def test_load_category_limits_rejects_garbage(monkeypatch):
    monkeypatch.setenv("CLOAKROOM_CATEGORY_LIMITS", "cards=many")
    with pytest.raises(ValueError, match="not an integer"):
        load_category_limits()


def test_load_category_limits_rejects_negative(monkeypatch):
    monkeypatch.setenv("CLOAKROOM_CATEGORY_LIMITS", "cards=-1")
    with pytest.raises(ValueError, match="negative"):
        load_category_limits()


def test_load_seed_users(monkeypatch):
    monkeypatch.setenv("CLOAKROOM_SEED_USERS", "anna=cashier,olga=admin")
    assert load_seed_users() == {"anna": "cashier", "olga": "admin"}
