"""
Role-Based Access Control – the role → capability matrix and management rules.
"""

from typing import Dict, FrozenSet, Optional

from cloakroom.errors import Forbidden
from cloakroom.models import Capability, Policy, Role, User

_C = Capability

_STAFF = frozenset({_C.CREATE_DOCUMENT, _C.ISSUE_DOCUMENT})
_MANAGERS = _STAFF | {_C.VIEW_ARCHIVE, _C.DELETE_DOCUMENT, _C.MANAGE_USERS}

ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.CLIENT: frozenset(),
    Role.CASHIER: _STAFF,
    Role.HEAD_CASHIER: _STAFF | {_C.DELETE_DOCUMENT},
    Role.ADMIN: _MANAGERS,
    Role.CREATOR: _MANAGERS,
    Role.NIKITOVSKY: _MANAGERS,
    Role.SUPER_ADMIN: _MANAGERS | {_C.MANAGE_PRIVILEGED_USERS},
}

ROLE_NOTES = {
    Role.CLIENT: "Client can only sign in; no ledger operations.",
    Role.CASHIER: "Cashier checks items in and issues them.",
    Role.HEAD_CASHIER: "Head cashier can also delete active records.",
    Role.ADMIN: "Admin manages ordinary users and can open the archive.",
    Role.CREATOR: "Creator manages ordinary users and can open the archive.",
    Role.NIKITOVSKY: "Nikitovsky manages ordinary users and can open the archive.",
    Role.SUPER_ADMIN: "Super-admin can do everything, including managing privileged identities.",
}


def build_policy(role: Role) -> Policy:
    """Derive the Policy for a role."""
    if role not in ROLE_CAPABILITIES:
        raise ValueError(f"Unknown role: {role}")
    return Policy(role=role, capabilities=ROLE_CAPABILITIES[role], notes=ROLE_NOTES[role])


def capabilities_for(role: Optional[Role]) -> FrozenSet[Capability]:
    if role is None:
        return frozenset()
    return ROLE_CAPABILITIES[role]


def has_capability(role: Optional[Role], capability: Capability) -> bool:
    return capability in capabilities_for(role)


def require(role: Optional[Role], capability: Capability) -> None:
    """Raise Forbidden unless *role* holds *capability*. A logged-out session holds nothing."""
    if not has_capability(role, capability):
        raise Forbidden(capability.value, role.value if role else None)


# ── User management rules ────────────────────────────────────────────

def require_create_role(actor: Optional[Role], target_role: Role) -> None:
    """manage-users creates ordinary roles; privileged roles need manage-privileged-users."""
    require(actor, Capability.MANAGE_USERS)
    if target_role.is_privileged:
        require(actor, Capability.MANAGE_PRIVILEGED_USERS)


def require_block(actor: Optional[Role], target: User, privileged_identity: bool) -> None:
    require(actor, Capability.MANAGE_USERS)
    if privileged_identity or target.role.is_privileged:
        require(actor, Capability.MANAGE_PRIVILEGED_USERS)


def require_reassign(actor: Optional[Role]) -> None:
    require(actor, Capability.MANAGE_PRIVILEGED_USERS)
