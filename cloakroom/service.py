"""
Cloakroom facade – one interactive session bound to the shared directory and ledger.

Control flows one way: the session yields a role, the matrix checks it, the
ledger or directory performs the mutation.
"""

import logging
from typing import Callable, Dict, List, Mapping, Optional

from cloakroom import config, rbac
from cloakroom.collaborators import (
    Announcer,
    CodeImageStore,
    CommandAnnouncer,
    IssueAnnouncer,
    LogAnnouncer,
    announce_safely,
)
from cloakroom.directory import UserDirectory
from cloakroom.errors import Forbidden
from cloakroom.ledger import DocumentLedger
from cloakroom.models import Capability, Document, Role, User, utcnow
from cloakroom.session import SessionManager

logger = logging.getLogger(__name__)


class Cloakroom:
    def __init__(
        self,
        sessions: SessionManager,
        ledger: DocumentLedger,
        announcer: Optional[Announcer] = None,
        images: Optional[CodeImageStore] = None,
    ):
        self.sessions = sessions
        self.directory = sessions.directory
        self.ledger = ledger
        self.announcer = announcer
        self.images = images

    @property
    def role(self) -> Optional[Role]:
        return self.sessions.role

    # ── Login ────────────────────────────────────────────────────────

    def login(self, role: Role, username: str, secret: str) -> User:
        self.sessions.choose_role(role)
        user = self.sessions.login(username, secret)
        announce_safely(self.announcer, role.display_name)
        return user

    def login_privileged(self, secret: str) -> User:
        user = self.sessions.login_privileged(secret)
        announce_safely(self.announcer, self.sessions.role.display_name)
        return user

    def logout(self) -> None:
        self.sessions.logout()

    def unlock_archive(self, secret: str) -> None:
        self.sessions.unlock_archive(secret)

    # ── Documents ────────────────────────────────────────────────────

    def create_document(self, fields: Mapping[str, object], category) -> Document:
        role = self.sessions.require_login()
        user = self.sessions.user
        creator = user.username if user else role.value
        return self.ledger.create(fields, category, role, creator)

    def issue_document(self, document_id: str) -> Document:
        return self.ledger.issue(document_id, self.sessions.require_login())

    def issue_by_code(self, code: str) -> Document:
        role = self.sessions.require_login()
        doc = self.ledger.lookup_by_code(code)
        return self.ledger.issue(doc.id, role)

    def delete_document(self, document_id: str) -> Document:
        return self.ledger.delete_active(document_id, self.sessions.require_login())

    def delete_by_code(self, code: str) -> Document:
        role = self.sessions.require_login()
        doc = self.ledger.lookup_by_code(code)
        return self.ledger.delete_active(doc.id, role)

    def find_by_code(self, code: str) -> Document:
        self.sessions.require_login()
        return self.ledger.lookup_by_code(code)

    def list_documents(self, category=None) -> List[Document]:
        self.sessions.require_login()
        return self.ledger.list_by_category(category)

    def list_archive(self) -> List[Document]:
        docs = self.ledger.list_archive(self.sessions.require_login())
        if not self.sessions.session.archive_unlocked:
            raise Forbidden("archive-unlock", self.role.value)
        return docs

    def category_usage(self):
        self.sessions.require_login()
        return self.ledger.category_usage()

    def code_image(self, code: str) -> bytes:
        doc = self.find_by_code(code)
        if self.images is None:
            raise RuntimeError("No code image renderer configured")
        return self.images.get(doc.code)

    # ── Users ────────────────────────────────────────────────────────

    def create_user(self, username: str, role: Role, secret: Optional[str] = None) -> User:
        return self.directory.create_user(username, role, secret, actor=self.role)

    def block_user(self, username: str) -> User:
        return self.directory.set_blocked(username, True, actor=self.role)

    def unblock_user(self, username: str) -> User:
        return self.directory.set_blocked(username, False, actor=self.role)

    def reassign_role(self, username: str, role: Role) -> User:
        return self.directory.reassign_role(username, role, actor=self.role)

    def list_users(self) -> List[User]:
        rbac.require(self.role, Capability.MANAGE_USERS)
        return self.directory.list_users()


def build_cloakroom(
    secrets: Optional[Mapping[str, str]] = None,
    category_limits: Optional[Mapping[str, int]] = None,
    seed_users: Optional[Dict[str, str]] = None,
    announcer: Optional[Announcer] = None,
    clock: Callable = utcnow,
    render_images: bool = True,
) -> Cloakroom:
    """Load configuration, seed the directory and wire the collaborators."""
    secrets = secrets if secrets is not None else config.load_secrets()
    category_limits = category_limits if category_limits is not None else config.load_category_limits()
    seed_users = seed_users if seed_users is not None else config.load_seed_users()

    for key in secrets:
        if key != config.ARCHIVE_SECRET_KEY:
            Role.parse(key)

    privileged = {
        Role.NIKITOVSKY: config.NIKITOVSKY_USERNAME,
        Role.SUPER_ADMIN: config.SUPERADMIN_USERNAME,
    }
    directory = UserDirectory(privileged_usernames=privileged.values(), clock=clock)
    for role, username in privileged.items():
        directory.seed(username, role)
    for username, role_name in seed_users.items():
        directory.seed(username, Role.parse(role_name))
    logger.info("directory seeded with %d users", len(directory.list_users()))

    if announcer is None:
        command = config.ANNOUNCE_COMMAND
        announcer = CommandAnnouncer(command) if command else LogAnnouncer()

    ledger = DocumentLedger(category_limits, clock=clock)
    images = CodeImageStore() if render_images else None
    if images is not None:
        ledger.subscribe(images)
    ledger.subscribe(IssueAnnouncer(announcer))

    sessions = SessionManager(directory, secrets, privileged, clock=clock)
    return Cloakroom(sessions, ledger, announcer=announcer, images=images)

