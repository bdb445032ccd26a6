"""
Interactive CLI for the cloakroom ledger.
Sign in with a role and its secret, then check items in and hand them back.
"""

import logging
from pathlib import Path
from typing import Optional

from cloakroom import rbac
from cloakroom.collaborators import format_print_form
from cloakroom.config import LOG_LEVEL, MAX_FAILED_ATTEMPTS, MAX_PREVIEW_ROWS
from cloakroom.errors import AuthenticationError, CloakroomError, LockedOut
from cloakroom.models import Capability, Category, Role
from cloakroom.reports import (
    category_usage_frame,
    documents_frame,
    export_csv,
    render_table,
    totals_by_category,
)
from cloakroom.service import Cloakroom, build_cloakroom

PRIVILEGED = "privileged"
LOGIN_ROLES = [r for r in Role if not r.is_privileged]

PREVIEW_COLUMNS = ["code", "last_name", "first_name", "phone", "category",
                   "deposit_amount", "pickup_date", "status"]

HELP = """Commands:
  new                       check an item in
  list [category]           active items (documents, photos, cards, other)
  find <code>               look up an active item by code
  issue <code>              hand an item back (moves it to the archive)
  delete <code>             delete an active item
  qr <code> [file.png]      save the QR image of a code
  print [code]              client form (blank without a code)
  stats                     items per category against the limits
  totals                    counts and amounts per category
  archive                   issued items (asks for the archive password)
  export <file.csv> [archive]
  users                     list users
  adduser <name> <role>     create a user
  block <name> / unblock <name>
  setrole <name> <role>
  logout / quit"""

NEW_FIELDS = [
    ("last_name", "Фамилия *"),
    ("first_name", "Имя *"),
    ("middle_name", "Отчество"),
    ("phone", "Телефон *"),
    ("email", "Email"),
    ("item_description", "Описание предмета"),
    ("deposit_amount", "Сумма при сдаче"),
    ("pickup_amount", "Сумма при получении"),
    ("pickup_date", "Дата получения"),
]


class _Quit(Exception):
    pass


def _ask(prompt: str) -> str:
    try:
        return input(prompt).strip()
    except (EOFError, KeyboardInterrupt):
        raise _Quit() from None


# ── Login ────────────────────────────────────────────────────────────

def login(room: Cloakroom) -> bool:
    """Run the login prompts until someone signs in. False means quit."""
    choices = ", ".join(r.value for r in LOGIN_ROLES)
    while True:
        remaining = room.sessions.lockout_remaining()
        if remaining:
            print(f"\n[auth] Login locked. {remaining} seconds remaining")

        answer = _ask(f"\nRole ({choices}, {PRIVILEGED}) or 'quit': ").lower()
        if not answer:
            continue
        if answer in {"quit", "exit"}:
            return False

        try:
            if answer == PRIVILEGED:
                secret = _ask("Password: ")
                room.login_privileged(secret)
            else:
                role = Role.parse(answer)
                username = _ask("Username: ")
                secret = _ask("Password: ")
                room.login(role, username, secret)
        except LockedOut as e:
            print(f"[auth] {e}")
            continue
        except AuthenticationError as e:
            print(f"[auth] {e.reason}. Attempt {e.attempt}/{MAX_FAILED_ATTEMPTS}")
            if e.lockout_seconds:
                print(f"[auth] {MAX_FAILED_ATTEMPTS} failed attempts. Login locked for {e.lockout_seconds} seconds")
            continue
        except (CloakroomError, ValueError) as e:
            print(f"[ERROR] {e}")
            continue

        user = room.sessions.user
        print(f"\n[auth] Logged in as: {user.username} ({room.role.display_name})")
        return True


# ── Commands ─────────────────────────────────────────────────────────

def _print_documents(docs) -> None:
    df = documents_frame(docs)
    print(render_table(df[PREVIEW_COLUMNS], MAX_PREVIEW_ROWS))
    if len(df) > MAX_PREVIEW_ROWS:
        print(f"... {len(df) - MAX_PREVIEW_ROWS} more")


def cmd_new(room: Cloakroom, args) -> None:
    category = _ask(f"Category ({', '.join(c.value for c in Category)}) [documents]: ") or "documents"
    fields = {name: _ask(f"{label}: ") for name, label in NEW_FIELDS}
    doc = room.create_document(fields, category)
    print(f"[ledger] Document {doc.code} created")
    if room.images is not None and doc.code in room.images:
        print(f"[ledger] QR ready: qr {doc.code} <file.png>")


def cmd_list(room: Cloakroom, args) -> None:
    _print_documents(room.list_documents(args[0] if args else None))


def cmd_find(room: Cloakroom, args) -> None:
    code = args[0] if args else _ask("Code: ")
    _print_documents([room.find_by_code(code)])


def cmd_issue(room: Cloakroom, args) -> None:
    code = args[0] if args else _ask("Code: ")
    doc = room.issue_by_code(code)
    print(f"[ledger] Document {doc.code} issued and moved to the archive")


def cmd_delete(room: Cloakroom, args) -> None:
    code = args[0] if args else _ask("Code: ")
    doc = room.delete_by_code(code)
    print(f"[ledger] Document {doc.code} deleted")


def cmd_qr(room: Cloakroom, args) -> None:
    if not args:
        print("usage: qr <code> [file.png]")
        return
    png = room.code_image(args[0])
    path = Path(args[1] if len(args) > 1 else f"{args[0].upper()}.png")
    path.write_bytes(png)
    print(f"[ledger] QR saved to {path}")


def cmd_print(room: Cloakroom, args) -> None:
    doc = room.find_by_code(args[0]) if args else None
    print(format_print_form(doc))


def cmd_stats(room: Cloakroom, args) -> None:
    print(render_table(category_usage_frame(room.category_usage())))


def cmd_totals(room: Cloakroom, args) -> None:
    print(render_table(totals_by_category(room.list_documents())))


def _archive(room: Cloakroom):
    if not room.sessions.session.archive_unlocked:
        rbac.require(room.role, Capability.VIEW_ARCHIVE)
        room.unlock_archive(_ask("Archive password: "))
        print("[auth] Archive unlocked")
    return room.list_archive()


def cmd_archive(room: Cloakroom, args) -> None:
    docs = _archive(room)
    df = documents_frame(docs)
    print(render_table(df[PREVIEW_COLUMNS + ["archived_at"]], MAX_PREVIEW_ROWS))


def cmd_export(room: Cloakroom, args) -> None:
    if not args:
        print("usage: export <file.csv> [archive]")
        return
    docs = _archive(room) if args[1:] == ["archive"] else room.list_documents()
    n = export_csv(docs, args[0])
    print(f"[ledger] Exported {n} rows to {args[0]}")


def cmd_users(room: Cloakroom, args) -> None:
    for user in room.list_users():
        flag = " (blocked)" if user.blocked else ""
        print(f"  {user.username:<20} {user.role.value}{flag}")


def cmd_adduser(room: Cloakroom, args) -> None:
    if len(args) != 2:
        print("usage: adduser <name> <role>")
        return
    user = room.create_user(args[0], Role.parse(args[1]))
    print(f"[users] Created {user.username} ({user.role.value})")


def cmd_block(room: Cloakroom, args) -> None:
    user = room.block_user(args[0] if args else _ask("Username: "))
    print(f"[users] {user.username} blocked")


def cmd_unblock(room: Cloakroom, args) -> None:
    user = room.unblock_user(args[0] if args else _ask("Username: "))
    print(f"[users] {user.username} unblocked")


def cmd_setrole(room: Cloakroom, args) -> None:
    if len(args) != 2:
        print("usage: setrole <name> <role>")
        return
    user = room.reassign_role(args[0], Role.parse(args[1]))
    print(f"[users] {user.username} is now {user.role.value}")


COMMANDS = {
    "new": cmd_new,
    "list": cmd_list,
    "find": cmd_find,
    "issue": cmd_issue,
    "delete": cmd_delete,
    "qr": cmd_qr,
    "print": cmd_print,
    "stats": cmd_stats,
    "totals": cmd_totals,
    "archive": cmd_archive,
    "export": cmd_export,
    "users": cmd_users,
    "adduser": cmd_adduser,
    "block": cmd_block,
    "unblock": cmd_unblock,
    "setrole": cmd_setrole,
}


def repl(room: Cloakroom) -> bool:
    """Command loop for a signed-in session. False means quit, True means logged out."""
    while True:
        line = _ask(f"\n[{room.role.value}]> ")
        if not line:
            continue
        name, *args = line.split()
        name = name.lower()
        if name in {"quit", "exit"}:
            return False
        if name == "logout":
            room.logout()
            print("[auth] Logged out")
            return True
        if name == "help":
            print(HELP)
            continue

        command = COMMANDS.get(name)
        if command is None:
            print(f"Unknown command '{name}'. Type 'help'.")
            continue
        try:
            command(room, args)
        except (CloakroomError, ValueError) as e:
            print(f"[ERROR] {e}")


def main(room: Optional[Cloakroom] = None):
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    print("=== Cloakroom: document check-in ledger ===")

    if room is None:
        room = build_cloakroom()

    try:
        while login(room):
            if not repl(room):
                break
    except _Quit:
        print("\nExiting.")
        return
    print("Goodbye.")


if __name__ == "__main__":
    main()
