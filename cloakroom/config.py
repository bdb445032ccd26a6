"""
Centralised configuration constants and environment helpers.
"""

import os
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

load_dotenv()

# ── Login / lockout ──────────────────────────────────────────────────
MAX_FAILED_ATTEMPTS = 3
LOCKOUT_SECONDS = 90

# Key of the reserved secret guarding the archive view.
ARCHIVE_SECRET_KEY = "archive"

DEFAULT_SECRETS = {
    "client": "",
    "cashier": "25",
    "head-cashier": "202520",
    "admin": "2025",
    "creator": "202505",
    "nikitovsky": "20252025",
    "super-admin": "2025202520",
    ARCHIVE_SECRET_KEY: "202505",
}

# ── Privileged identities ────────────────────────────────────────────
NIKITOVSKY_USERNAME = os.getenv("CLOAKROOM_NIKITOVSKY_USERNAME", "nikitovsky")
SUPERADMIN_USERNAME = os.getenv("CLOAKROOM_SUPERADMIN_USERNAME", "superadmin")

# ── Ledger ───────────────────────────────────────────────────────────
DEFAULT_CATEGORY_LIMITS = {
    "documents": 100,
    "photos": 100,
    "cards": 100,
    "other": 999,
}
CODE_DIGITS = 4

# ── Display ──────────────────────────────────────────────────────────
MAX_PREVIEW_ROWS = 20
LOG_LEVEL = os.getenv("CLOAKROOM_LOG_LEVEL", "WARNING")

# ── Announcements ────────────────────────────────────────────────────
# External speech command, e.g. "espeak -v ru". Unset: cues go to the log.
ANNOUNCE_COMMAND = os.getenv("CLOAKROOM_ANNOUNCE_COMMAND", "")


def parse_pairs(raw: Optional[str], name: str) -> Dict[str, str]:
    """
    Parse ``key=value,key=value`` into a dict.
    Empty values are allowed (``client=``); a missing ``=`` is not.
    """
    pairs: Dict[str, str] = {}
    if not raw:
        return pairs
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        if "=" not in chunk:
            raise ValueError(f"{name}: expected key=value, got '{chunk}'")
        key, value = chunk.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError(f"{name}: empty key in '{chunk}'")
        pairs[key] = value.strip()
    return pairs


def load_secrets() -> Mapping[str, str]:
    """Role secrets (plus the archive secret), read-only for the process lifetime."""
    secrets = dict(DEFAULT_SECRETS)
    secrets.update(parse_pairs(os.getenv("CLOAKROOM_SECRETS"), "CLOAKROOM_SECRETS"))
    return MappingProxyType(secrets)


def load_category_limits() -> Mapping[str, int]:
    """Per-category maximum number of active documents."""
    limits = dict(DEFAULT_CATEGORY_LIMITS)
    raw = parse_pairs(os.getenv("CLOAKROOM_CATEGORY_LIMITS"), "CLOAKROOM_CATEGORY_LIMITS")
    for category, value in raw.items():
        try:
            limit = int(value)
        except ValueError:
            raise ValueError(
                f"CLOAKROOM_CATEGORY_LIMITS: limit for '{category}' is not an integer: '{value}'"
            ) from None
        if limit < 0:
            raise ValueError(f"CLOAKROOM_CATEGORY_LIMITS: negative limit for '{category}'")
        limits[category] = limit
    return MappingProxyType(limits)


def load_seed_users() -> Dict[str, str]:
    """Extra ``username=role`` pairs seeded into the directory at start-up."""
    return parse_pairs(os.getenv("CLOAKROOM_SEED_USERS"), "CLOAKROOM_SEED_USERS")
