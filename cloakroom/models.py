"""
Domain enums and dataclasses used across the application.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Optional


def utcnow() -> datetime:
    """Timezone-aware current UTC time; the default clock everywhere."""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    CLIENT = "client"
    CASHIER = "cashier"
    HEAD_CASHIER = "head-cashier"
    ADMIN = "admin"
    CREATOR = "creator"
    NIKITOVSKY = "nikitovsky"
    SUPER_ADMIN = "super-admin"

    @property
    def display_name(self) -> str:
        return ROLE_DISPLAY_NAMES[self]

    @property
    def is_privileged(self) -> bool:
        return self in PRIVILEGED_ROLES

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Look up a role by its tag, e.g. ``"head-cashier"``."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown role: '{value}'") from None


ROLE_DISPLAY_NAMES = {
    Role.CLIENT: "Покупатель",
    Role.CASHIER: "Кассир",
    Role.HEAD_CASHIER: "Главный кассир",
    Role.ADMIN: "Администратор",
    Role.CREATOR: "Создатель",
    Role.NIKITOVSKY: "Никитовский",
    Role.SUPER_ADMIN: "Суперадмин",
}

PRIVILEGED_ROLES = frozenset({Role.NIKITOVSKY, Role.SUPER_ADMIN})


class Capability(str, Enum):
    CREATE_DOCUMENT = "create-document"
    ISSUE_DOCUMENT = "issue-document"
    VIEW_ARCHIVE = "view-archive"
    MANAGE_USERS = "manage-users"
    DELETE_DOCUMENT = "delete-document"
    MANAGE_PRIVILEGED_USERS = "manage-privileged-users"


class Category(str, Enum):
    DOCUMENTS = "documents"
    PHOTOS = "photos"
    CARDS = "cards"
    OTHER = "other"  # catch-all

    @property
    def prefix(self) -> str:
        return self.value[:3].upper()

    @classmethod
    def parse(cls, value: str) -> "Category":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown category: '{value}'") from None


class DocumentStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class Policy:
    """Capabilities granted to a role."""
    role: Role
    capabilities: FrozenSet[Capability]
    notes: str

    def allows(self, capability: Capability) -> bool:
        return capability in self.capabilities


@dataclass
class User:
    """Directory identity. No secret is kept here."""
    username: str
    role: Role
    blocked: bool = False
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Document:
    """A checked-in item and the person it belongs to."""
    id: str
    code: str
    last_name: str
    first_name: str
    phone: str
    category: Category
    deposit_date: datetime
    created_by: str
    created_at: datetime
    middle_name: str = ""
    email: str = ""
    item_description: str = ""
    deposit_amount: float = 0.0
    pickup_amount: float = 0.0
    pickup_date: str = ""                 # target date typed by the cashier
    status: DocumentStatus = DocumentStatus.ACTIVE
    archived_at: Optional[datetime] = None  # set once, when issued


@dataclass
class Session:
    """State of one interactive login."""
    role: Optional[Role] = None
    user: Optional[User] = None
    selected_role: Optional[Role] = None
    failed_attempts: int = 0
    lockout_until: Optional[datetime] = None
    archive_unlocked: bool = False

    @property
    def logged_in(self) -> bool:
        return self.role is not None
