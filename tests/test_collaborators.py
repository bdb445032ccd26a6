"""
Unit tests for code images, announcements and the print form.
"""

from cloakroom.collaborators import (
    BLANK,
    Announcer,
    CodeImageStore,
    CommandAnnouncer,
    IssueAnnouncer,
    announce_safely,
    code_image_data_url,
    format_print_form,
    render_code_image,
)
from cloakroom.ledger import DocumentLedger
from cloakroom.models import Role


# ── Helpers / Fakes ──────────────────────────────────────────────────

class RecordingAnnouncer(Announcer):
    def __init__(self):
        self.texts = []

    def announce(self, text):
        self.texts.append(text)


class BrokenAnnouncer(Announcer):
    def announce(self, text):
        raise OSError("no audio device")


class FakeRenderer:
    def __init__(self):
        self.calls = []

    def __call__(self, code):
        self.calls.append(code)
        return f"png:{code}".encode()


FIELDS = {"last_name": "Иванов", "first_name": "Иван", "phone": "+79001234567"}


# ── Tests: code images ───────────────────────────────────────────────

def test_render_code_image_is_png():
    png = render_code_image("DOC-0001")
    assert png.startswith(b"\x89PNG\r\n\x1a\n")


def test_code_image_data_url():
    assert code_image_data_url("DOC-0001").startswith("data:image/png;base64,")


def test_image_store_follows_ledger():
    renderer = FakeRenderer()
    store = CodeImageStore(renderer)
    ledger = DocumentLedger()
    ledger.subscribe(store)

    a = ledger.create(FIELDS, "documents", Role.CASHIER)
    b = ledger.create(FIELDS, "documents", Role.CASHIER)
    assert a.code in store and b.code in store
    assert store.get(a.code) == b"png:DOC-0001"

    ledger.delete_active(b.id, Role.ADMIN)
    assert b.code not in store

    ledger.issue(a.id, Role.CASHIER)
    assert a.code not in store
    assert renderer.calls == ["DOC-0001", "DOC-0002"]


def test_image_store_renders_on_demand():
    renderer = FakeRenderer()
    store = CodeImageStore(renderer)
    assert store.get("CAR-0009") == b"png:CAR-0009"
    store.get("CAR-0009")
    assert renderer.calls == ["CAR-0009"]


# ── Tests: announcements ─────────────────────────────────────────────

def test_announce_safely_swallows_failures():
    announce_safely(BrokenAnnouncer(), "Кассир")
    announce_safely(None, "Кассир")


def test_command_announcer_waits_for_the_command(monkeypatch):
    runs = []

    def fake_run(argv, **kwargs):
        runs.append((argv, kwargs))

    monkeypatch.setattr("cloakroom.collaborators.subprocess.run", fake_run)
    worker = CommandAnnouncer("espeak -v ru").announce("Номер DOC-0001")
    worker.join(timeout=5)
    assert runs[0][0] == ["espeak", "-v", "ru", "Номер DOC-0001"]
    assert runs[0][1]["check"] is False


def test_command_announcer_logs_missing_command(monkeypatch, caplog):
    def fake_run(argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr("cloakroom.collaborators.subprocess.run", fake_run)
    CommandAnnouncer("no-such-tts").announce("Кассир").join(timeout=5)
    assert "announce command failed" in caplog.text


def test_issue_announcer_reads_out_code():
    announcer = RecordingAnnouncer()
    ledger = DocumentLedger()
    ledger.subscribe(IssueAnnouncer(announcer))
    doc = ledger.create(FIELDS, "cards", Role.CASHIER)
    assert announcer.texts == []
    ledger.issue(doc.id, Role.CASHIER)
    assert announcer.texts == ["Номер CAR-0001"]


def test_broken_announcer_does_not_block_issuance():
    ledger = DocumentLedger()
    ledger.subscribe(IssueAnnouncer(BrokenAnnouncer()))
    doc = ledger.create(FIELDS, "cards", Role.CASHIER)
    ledger.issue(doc.id, Role.CASHIER)
    assert ledger.list_by_category() == []


# ── Tests: print form ────────────────────────────────────────────────

def test_blank_print_form():
    form = format_print_form()
    assert form.startswith("АНКЕТА КЛИЕНТА")
    assert form.count(BLANK) == 9
    assert "Код:" not in form


def test_filled_print_form():
    ledger = DocumentLedger()
    doc = ledger.create(dict(FIELDS, deposit_amount="150"), "documents", Role.CASHIER)
    form = format_print_form(doc)
    assert "Код: DOC-0001" in form
    assert "Иванов" in form
    assert "150" in form
    # middle name, email, description, pickup amount and pickup date are empty
    assert form.count(BLANK) == 5
