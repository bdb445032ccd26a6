"""
Error taxonomy. Every error here is recoverable by the caller.
"""

from typing import Iterable, Optional


class CloakroomError(Exception):
    """Base class for all domain errors."""


class ValidationError(CloakroomError):
    """Required input missing or malformed."""

    def __init__(self, fields: Iterable[str], message: Optional[str] = None):
        self.fields = list(fields)
        super().__init__(message or f"Missing required field(s): {', '.join(self.fields)}")


class CapacityExceeded(CloakroomError):
    def __init__(self, category: str, limit: int):
        self.category = category
        self.limit = limit
        super().__init__(f"Category '{category}' is full: limit of {limit} active items reached")


class DuplicateUsername(CloakroomError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username '{username}' already exists")


class Forbidden(CloakroomError):
    def __init__(self, capability: str, role: Optional[str] = None):
        self.capability = capability
        self.role = role
        who = f"role '{role}'" if role else "anonymous session"
        super().__init__(f"Forbidden: {who} lacks '{capability}'")


class NotFound(CloakroomError):
    def __init__(self, what: str, key: str):
        self.what = what
        self.key = key
        super().__init__(f"{what} not found: {key}")


class LockedOut(CloakroomError):
    """Raised before any secret comparison while a lockout is running."""

    def __init__(self, remaining_seconds: int):
        self.remaining_seconds = remaining_seconds
        super().__init__(f"Login locked. {remaining_seconds} seconds remaining")


class AuthenticationError(CloakroomError):
    """
    A failed login attempt. ``attempt`` is the position in the current
    cycle (1..3); ``lockout_seconds`` is set on the failure that starts a lockout.
    """

    reason = "Authentication failed"

    def __init__(self, detail: str = "", attempt: int = 0, lockout_seconds: Optional[int] = None):
        self.detail = detail
        self.attempt = attempt
        self.lockout_seconds = lockout_seconds
        super().__init__(f"{self.reason}: {detail}" if detail else self.reason)


class UserNotFound(AuthenticationError):
    reason = "User not found"


class UserBlocked(AuthenticationError):
    reason = "User is blocked"


class BadSecret(AuthenticationError):
    reason = "Wrong password"
