"""
Document ledger – the active and archived collections and every mutation on them.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from cloakroom import rbac
from cloakroom.config import CODE_DIGITS, DEFAULT_CATEGORY_LIMITS
from cloakroom.errors import CapacityExceeded, NotFound, ValidationError
from cloakroom.models import Capability, Category, Document, DocumentStatus, Role, utcnow

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("last_name", "first_name", "phone")
TEXT_FIELDS = ("last_name", "first_name", "middle_name", "phone", "email",
               "item_description", "pickup_date")

DOCUMENT_CREATED = "document.created"
DOCUMENT_ISSUED = "document.issued"
DOCUMENT_DELETED = "document.deleted"


@dataclass(frozen=True)
class LedgerEvent:
    kind: str
    code: str
    document: Document


Listener = Callable[[LedgerEvent], None]


def parse_amount(value) -> float:
    """Non-negative amount; anything missing, non-numeric or negative becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(str(value).strip().replace(",", "."))
    except ValueError:
        return 0.0
    if amount != amount or amount < 0 or amount == float("inf"):
        return 0.0
    return amount


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


class DocumentLedger:
    """
    Owns two disjoint, insertion-ordered collections: active and archived.

    A single lock covers every mutation, so the capacity check and the insert
    happen as one step. Reads take the same lock and hand out copies.
    """

    def __init__(self, category_limits: Optional[Mapping[str, int]] = None, clock: Callable = utcnow):
        limits = dict(DEFAULT_CATEGORY_LIMITS)
        if category_limits:
            limits.update(category_limits)
        self._limits: Dict[Category, int] = {Category.parse(k): int(v) for k, v in limits.items()}
        self._active: Dict[str, Document] = {}
        self._archived: Dict[str, Document] = {}
        self._codes = set()  # codes of active + archived documents
        self._sequence: Dict[Category, int] = {c: 0 for c in Category}
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._clock = clock

    # ── Observers ────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, kind: str, document: Document) -> None:
        event = LedgerEvent(kind=kind, code=document.code, document=replace(document))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("ledger listener failed on %s %s", kind, document.code)

    # ── Mutations ────────────────────────────────────────────────────

    def create(self, fields: Mapping[str, object], category, role: Optional[Role],
               creator: Optional[str] = None) -> Document:
        """Check an item in. Returns the new active document."""
        rbac.require(role, Capability.CREATE_DOCUMENT)
        try:
            category = Category.parse(category) if isinstance(category, str) else Category(category)
        except ValueError:
            raise ValidationError(["category"], f"Unknown category: '{category}'") from None

        values = {name: str(fields.get(name) or "").strip() for name in TEXT_FIELDS}
        missing = [name for name in REQUIRED_FIELDS if not values[name]]
        if missing:
            raise ValidationError(missing)

        with self._lock:
            limit = self._limits[category]
            if self._count_active(category) >= limit:
                raise CapacityExceeded(category.value, limit)
            now = self._clock()
            doc = Document(
                id=uuid.uuid4().hex,
                code=self._next_code(category),
                category=category,
                deposit_amount=parse_amount(fields.get("deposit_amount")),
                pickup_amount=parse_amount(fields.get("pickup_amount")),
                deposit_date=now,
                created_at=now,
                created_by=creator or (role.value if role else "system"),
                **values,
            )
            self._active[doc.id] = doc
            self._codes.add(doc.code)
            created = replace(doc)

        logger.info("document %s created in %s by %s", created.code, category.value, created.created_by)
        self._emit(DOCUMENT_CREATED, created)
        return created

    def issue(self, document_id: str, role: Optional[Role]) -> Document:
        """Hand the item back: active -> archived, stamping archived_at once."""
        rbac.require(role, Capability.ISSUE_DOCUMENT)
        with self._lock:
            doc = self._active.get(document_id)
            if doc is None:
                raise NotFound("Active document", document_id)
            archived = replace(doc, status=DocumentStatus.ARCHIVED, archived_at=self._clock())
            del self._active[document_id]
            self._archived[document_id] = archived
            issued = replace(archived)

        logger.info("document %s issued", issued.code)
        self._emit(DOCUMENT_ISSUED, issued)
        return issued

    def delete_active(self, document_id: str, role: Optional[Role]) -> Document:
        """Remove an active document for good. Archived documents cannot be deleted."""
        rbac.require(role, Capability.DELETE_DOCUMENT)
        with self._lock:
            doc = self._active.pop(document_id, None)
            if doc is None:
                raise NotFound("Active document", document_id)
            self._codes.discard(doc.code)

        logger.info("document %s deleted", doc.code)
        self._emit(DOCUMENT_DELETED, doc)
        return doc

    # ── Reads ────────────────────────────────────────────────────────

    def get(self, document_id: str) -> Document:
        with self._lock:
            doc = self._active.get(document_id) or self._archived.get(document_id)
            if doc is None:
                raise NotFound("Document", document_id)
            return replace(doc)

    def lookup_by_code(self, code: str) -> Document:
        """Active documents only; issued ones are never found again."""
        wanted = normalize_code(code)
        with self._lock:
            for doc in self._active.values():
                if doc.code == wanted:
                    return replace(doc)
        raise NotFound("Active document with code", wanted or repr(code))

    def list_by_category(self, category=None) -> List[Document]:
        if category is not None and not isinstance(category, Category):
            category = Category.parse(category)
        with self._lock:
            return [replace(d) for d in self._active.values()
                    if category is None or d.category == category]

    def list_archive(self, role: Optional[Role]) -> List[Document]:
        rbac.require(role, Capability.VIEW_ARCHIVE)
        with self._lock:
            return [replace(d) for d in self._archived.values()]

    def category_usage(self) -> Dict[Category, Tuple[int, int]]:
        """``{category: (active_count, limit)}``"""
        with self._lock:
            return {c: (self._count_active(c), self._limits[c]) for c in Category}

    def limit_for(self, category: Category) -> int:
        return self._limits[category]

    # ── Internals (lock held) ────────────────────────────────────────

    def _count_active(self, category: Category) -> int:
        return sum(1 for d in self._active.values() if d.category == category)

    def _next_code(self, category: Category) -> str:
        # The sequence never rewinds; skip anything already taken.
        while True:
            self._sequence[category] += 1
            code = f"{category.prefix}-{self._sequence[category]:0{CODE_DIGITS}d}"
            if code not in self._codes:
                return code
