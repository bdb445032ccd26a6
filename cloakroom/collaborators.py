"""
Presentation-side collaborators: code images, audio cues and the printable form.

None of these touch ledger state. They are wired to the ledger as listeners
or called by the front end.
"""

import base64
import logging
import shlex
import subprocess
import threading
from io import BytesIO
from typing import Dict, Optional

import qrcode

from cloakroom.ledger import DOCUMENT_CREATED, DOCUMENT_DELETED, DOCUMENT_ISSUED, LedgerEvent
from cloakroom.models import Document

logger = logging.getLogger(__name__)

BLANK = "_______________________"


# ── Code images ──────────────────────────────────────────────────────

def render_code_image(code: str) -> bytes:
    """Render *code* as a QR image and return PNG bytes."""
    qr = qrcode.QRCode(version=1, box_size=10, border=5)
    qr.add_data(code)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def code_image_data_url(code: str) -> str:
    png = render_code_image(code)
    return f"data:image/png;base64,{base64.b64encode(png).decode()}"


class CodeImageStore:
    """Ledger listener keeping the rendered image of every active code."""

    def __init__(self, renderer=render_code_image):
        self._renderer = renderer
        self._images: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def __call__(self, event: LedgerEvent) -> None:
        if event.kind == DOCUMENT_CREATED:
            image = self._renderer(event.code)
            with self._lock:
                self._images[event.code] = image
        elif event.kind in (DOCUMENT_ISSUED, DOCUMENT_DELETED):
            with self._lock:
                self._images.pop(event.code, None)

    def get(self, code: str) -> bytes:
        """Stored image, rendered on demand for codes seen before this store existed."""
        with self._lock:
            image = self._images.get(code)
        if image is None:
            image = self._renderer(code)
            with self._lock:
                self._images[code] = image
        return image

    def __contains__(self, code: str) -> bool:
        with self._lock:
            return code in self._images


# ── Announcements ────────────────────────────────────────────────────

class Announcer:
    """Plays a short text cue out of band."""

    def announce(self, text: str) -> None:
        raise NotImplementedError


class LogAnnouncer(Announcer):
    def announce(self, text: str) -> None:
        logger.info("announce: %s", text)


class CommandAnnouncer(Announcer):
    """Hands the cue to an external speech command, e.g. ``espeak -v ru``."""

    def __init__(self, command: str):
        self.argv = shlex.split(command)

    def announce(self, text: str) -> threading.Thread:
        """Run the command on a daemon thread that waits for it to exit."""
        worker = threading.Thread(target=self._speak, args=(text,), daemon=True)
        worker.start()
        return worker

    def _speak(self, text: str) -> None:
        try:
            subprocess.run(
                self.argv + [text],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError:
            logger.exception("announce command failed: %s", self.argv)


def announce_safely(announcer: Optional[Announcer], text: str) -> None:
    """Fire and forget. A failing announcer never reaches the caller."""
    if announcer is None:
        return
    try:
        announcer.announce(text)
    except Exception:
        logger.exception("announcement failed: %r", text)


def issue_cue(code: str) -> str:
    return f"Номер {code}"


class IssueAnnouncer:
    """Ledger listener reading out the code of every issued document."""

    def __init__(self, announcer: Optional[Announcer]):
        self.announcer = announcer

    def __call__(self, event: LedgerEvent) -> None:
        if event.kind == DOCUMENT_ISSUED:
            announce_safely(self.announcer, issue_cue(event.code))


# ── Print form ───────────────────────────────────────────────────────

PRINT_FIELDS = (
    ("Фамилия", "last_name"),
    ("Имя", "first_name"),
    ("Отчество", "middle_name"),
    ("Телефон", "phone"),
    ("Email", "email"),
    ("Описание предмета", "item_description"),
    ("Сумма при сдаче", "deposit_amount"),
    ("Сумма при получении", "pickup_amount"),
    ("Дата получения", "pickup_date"),
)


def _print_value(document: Optional[Document], attr: str) -> str:
    if document is None:
        return BLANK
    value = getattr(document, attr)
    if isinstance(value, float):
        # Zero amounts print as blanks to be filled in by hand.
        return f"{value:g}" if value else BLANK
    return value or BLANK


def format_print_form(document: Optional[Document] = None) -> str:
    """Client form as plain text; ``None`` gives the blank template."""
    lines = ["АНКЕТА КЛИЕНТА"]
    if document is not None:
        lines.append(f"Код: {document.code}")
    lines.append("")
    for label, attr in PRINT_FIELDS:
        lines.append(f"{label}:")
        lines.append(f"  {_print_value(document, attr)}")
    return "\n".join(lines) + "\n"
