"""
User directory – identity records the login flow validates against.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from cloakroom import rbac
from cloakroom.errors import DuplicateUsername, NotFound, ValidationError
from cloakroom.models import Capability, Role, User, utcnow

logger = logging.getLogger(__name__)


class UserDirectory:
    """
    In-memory user store guarded by one lock.

    ``privileged_usernames`` are the special identities bound to the
    nikitovsky / super-admin roles; blocking them needs manage-privileged-users.
    """

    def __init__(self, privileged_usernames: Iterable[str] = (), clock: Callable = utcnow):
        self._users: Dict[str, User] = {}
        self._lock = threading.RLock()
        self._privileged = frozenset(privileged_usernames)
        self._clock = clock

    # ── Reads ────────────────────────────────────────────────────────

    def get(self, username: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(username)
            return replace(user) if user else None

    def find(self, username: str, role: Role) -> Optional[User]:
        """Return the user only if both username and role match."""
        user = self.get(username)
        if user is None or user.role != role:
            return None
        return user

    def list_users(self) -> List[User]:
        with self._lock:
            return [replace(u) for u in self._users.values()]

    def users_with_role(self, role: Role) -> List[User]:
        with self._lock:
            return [replace(u) for u in self._users.values() if u.role == role]

    def is_privileged_identity(self, user: User) -> bool:
        return user.username in self._privileged

    # ── Mutations ────────────────────────────────────────────────────

    def seed(self, username: str, role: Role) -> User:
        """Start-up insertion; bypasses the capability check."""
        with self._lock:
            return self._insert(username, role)

    def create_user(self, username: str, role: Role, secret: Optional[str] = None,
                    *, actor: Optional[Role]) -> User:
        # Login matches the role's shared secret only, so a per-user secret is not kept.
        rbac.require_create_role(actor, role)
        with self._lock:
            user = self._insert(username, role)
        logger.info("user %s created with role %s by %s", user.username, role.value, actor.value)
        return user

    def set_blocked(self, username: str, blocked: bool, *, actor: Optional[Role]) -> User:
        rbac.require(actor, Capability.MANAGE_USERS)
        with self._lock:
            user = self._require(username)
            rbac.require_block(actor, user, self.is_privileged_identity(user))
            user.blocked = blocked
            logger.info("user %s %s by %s", username, "blocked" if blocked else "unblocked", actor.value)
            return replace(user)

    def reassign_role(self, username: str, role: Role, *, actor: Optional[Role]) -> User:
        rbac.require_reassign(actor)
        with self._lock:
            user = self._require(username)
            user.role = role
            logger.info("user %s reassigned to %s by %s", username, role.value, actor.value)
            return replace(user)

    # ── Internals ────────────────────────────────────────────────────

    def _insert(self, username: str, role: Role) -> User:
        username = (username or "").strip()
        if not username:
            raise ValidationError(["username"])
        if username in self._users:
            raise DuplicateUsername(username)
        user = User(username=username, role=role, created_at=self._clock())
        self._users[username] = user
        return replace(user)

    def _require(self, username: str) -> User:
        user = self._users.get(username)
        if user is None:
            raise NotFound("User", username)
        return user
