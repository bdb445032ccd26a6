"""
Session manager – role selection, shared-secret login and brute-force lockout.

Two ways in:

* the directory path: pick a role, then type a username and the role's secret;
* the privileged path: type only a secret, which is matched against the
  nikitovsky and super-admin credentials in turn. The matching role signs in
  its seeded identity, or any other unblocked user holding that role.

Every failed comparison counts toward the lockout no matter why it failed.
The third failure in a row locks the login for LOCKOUT_SECONDS and starts a
new cycle. Expiry is evaluated lazily on each attempt against the clock.
"""

import logging
import math
from datetime import timedelta
from enum import Enum
from typing import Callable, Mapping, Optional, Tuple

from cloakroom import rbac
from cloakroom.config import ARCHIVE_SECRET_KEY, LOCKOUT_SECONDS, MAX_FAILED_ATTEMPTS
from cloakroom.directory import UserDirectory
from cloakroom.errors import (
    AuthenticationError,
    BadSecret,
    Forbidden,
    LockedOut,
    UserBlocked,
    UserNotFound,
    ValidationError,
)
from cloakroom.models import Capability, Role, Session, User, utcnow

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LOGGED_OUT = "logged-out"
    ROLE_CHOSEN = "role-chosen"
    LOGGED_IN = "logged-in"


class SessionManager:
    def __init__(
        self,
        directory: UserDirectory,
        secrets: Mapping[str, str],
        privileged_users: Mapping[Role, str],
        clock: Callable = utcnow,
        max_failed_attempts: int = MAX_FAILED_ATTEMPTS,
        lockout_seconds: int = LOCKOUT_SECONDS,
    ):
        self.directory = directory
        self.session = Session()
        self._secrets = secrets
        # Order matters: the first matching secret wins.
        self._privileged: Tuple[Tuple[Role, str], ...] = tuple(
            (role, privileged_users[role]) for role in (Role.NIKITOVSKY, Role.SUPER_ADMIN)
            if role in privileged_users
        )
        self._clock = clock
        self._max_failed = max_failed_attempts
        self._lockout = timedelta(seconds=lockout_seconds)

    # ── State ────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        if self.session.role is not None:
            return SessionState.LOGGED_IN
        if self.session.selected_role is not None:
            return SessionState.ROLE_CHOSEN
        return SessionState.LOGGED_OUT

    @property
    def role(self) -> Optional[Role]:
        return self.session.role

    @property
    def user(self) -> Optional[User]:
        return self.session.user

    @property
    def failed_attempts(self) -> int:
        self._expire_lockout()
        return self.session.failed_attempts

    def lockout_remaining(self) -> int:
        """Whole seconds until login is allowed again (0 when not locked)."""
        self._expire_lockout()
        until = self.session.lockout_until
        if until is None:
            return 0
        return max(1, math.ceil((until - self._clock()).total_seconds()))

    def require_login(self) -> Role:
        if self.session.role is None:
            raise Forbidden("login")
        return self.session.role

    # ── Transitions ──────────────────────────────────────────────────

    def choose_role(self, role: Role) -> None:
        if role.is_privileged:
            raise ValidationError(["role"], f"Role '{role.value}' signs in with its secret only")
        self.session.selected_role = role

    def cancel(self) -> None:
        self.session.selected_role = None

    def login(self, username: str, secret: str) -> User:
        """Directory path: the chosen role plus username and shared secret."""
        role = self.session.selected_role
        if role is None:
            raise ValidationError(["role"], "Choose a role first")
        self._check_lockout()

        user = self.directory.find(username, role)
        if user is None:
            raise self._record_failure(UserNotFound(username))
        if user.blocked:
            raise self._record_failure(UserBlocked(username))
        expected = self._secrets.get(role.value)
        if expected is None or secret != expected:
            raise self._record_failure(BadSecret(username))

        self._succeed(role, user)
        return user

    def login_privileged(self, secret: str) -> User:
        """Privileged path: the secret alone decides between the special identities."""
        self._check_lockout()

        blocked = missing = None
        for role, username in self._privileged:
            expected = self._secrets.get(role.value)
            if expected is None or secret != expected:
                continue
            # The seeded identity goes first, then anyone promoted to the role.
            holders = sorted(self.directory.users_with_role(role), key=lambda u: u.username != username)
            if not holders:
                missing = missing or username
                continue
            for user in holders:
                if not user.blocked:
                    self._succeed(role, user)
                    return user
            blocked = blocked or holders[0].username

        if blocked is not None:
            raise self._record_failure(UserBlocked(blocked))
        if missing is not None:
            raise self._record_failure(UserNotFound(missing))
        raise self._record_failure(BadSecret())

    def logout(self) -> None:
        """Clears the login and form state. Lockout survives logout."""
        if self.session.role is not None:
            logger.info("logout: %s", self.session.role.value)
        self.session.role = None
        self.session.user = None
        self.session.selected_role = None
        self.session.archive_unlocked = False

    def unlock_archive(self, secret: str) -> None:
        """Second secret in front of the archive view; failures here do not count toward lockout."""
        rbac.require(self.session.role, Capability.VIEW_ARCHIVE)
        if secret != self._secrets.get(ARCHIVE_SECRET_KEY):
            raise BadSecret("archive")
        self.session.archive_unlocked = True

    # ── Internals ────────────────────────────────────────────────────

    def _expire_lockout(self) -> None:
        until = self.session.lockout_until
        if until is not None and self._clock() >= until:
            self.session.lockout_until = None
            self.session.failed_attempts = 0

    def _check_lockout(self) -> None:
        remaining = self.lockout_remaining()
        if remaining:
            raise LockedOut(remaining)

    def _succeed(self, role: Role, user: User) -> None:
        s = self.session
        s.role = role
        s.user = user
        s.selected_role = None
        s.failed_attempts = 0
        s.lockout_until = None
        s.archive_unlocked = False
        logger.info("login: %s as %s", user.username, role.value)

    def _record_failure(self, error: AuthenticationError) -> AuthenticationError:
        s = self.session
        s.failed_attempts += 1
        error.attempt = s.failed_attempts
        if s.failed_attempts >= self._max_failed:
            s.lockout_until = self._clock() + self._lockout
            s.failed_attempts = 0
            s.selected_role = None
            error.lockout_seconds = int(self._lockout.total_seconds())
            logger.warning("login locked for %ss after %s failures", error.lockout_seconds, self._max_failed)
        else:
            logger.warning("failed login attempt %s/%s: %s", error.attempt, self._max_failed, error)
        return error
