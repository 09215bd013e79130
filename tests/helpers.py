from __future__ import annotations

import imaplib
from email.message import EmailMessage
from pathlib import Path

from imap_fetch import FetchConfig


FIXTURE_DIR = Path(__file__).parent / "fixtures" / "eml"
DEFAULT_INTERNALDATE = "16-Feb-2026 15:00:00 +0000"


def fixture_bytes(name: str) -> bytes:
    return (FIXTURE_DIR / name).read_bytes()


def make_config(**overrides: object) -> FetchConfig:
    values: dict[str, object] = {
        "host": "imap.example.test",
        "username": "main@example.test",
        "password": "app-password",
    }
    values.update(overrides)
    return FetchConfig(**values)


def make_raw_message(
    *,
    message_id: str,
    subject: str = "Test message",
    sender: str = "Sender <sender@example.test>",
    body: str = "Hello",
) -> bytes:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = "main@example.test"
    message["Subject"] = subject
    message["Message-ID"] = message_id
    message.set_content(body)
    return message.as_bytes()


class FakeIMAP:
    """In-memory stand-in for the part of imaplib.IMAP4 the fetcher uses."""

    def __init__(
        self,
        messages: dict[str, bytes] | None = None,
        *,
        password: str = "app-password",
        folders: tuple[str, ...] = ("INBOX",),
        seen_uids: set[str] | None = None,
        fetch_fail_uids: set[str] | None = None,
        internaldates: dict[str, str] | None = None,
        close_error: Exception | None = None,
    ) -> None:
        self.messages = dict(messages or {})
        self.password = password
        self.folders = folders
        self.flags = {uid: set() for uid in self.messages}
        for uid in seen_uids or set():
            self.flags[uid].add("\\Seen")
        self.fetch_fail_uids = fetch_fail_uids or set()
        self.internaldates = internaldates or {}
        self.close_error = close_error
        self.selected: str | None = None
        self.readonly: bool | None = None
        self.fetch_calls: list[str] = []
        self.store_calls: list[tuple[str, str, str]] = []
        self.auth_mechanisms: list[str] = []
        self.close_calls = 0
        self.logout_calls = 0

    def login(self, user: str, password: str):
        # imaplib sends LOGIN arguments as ASCII.
        f"{user} {password}".encode("ascii")
        self.auth_mechanisms.append("LOGIN")
        if password != self.password:
            raise imaplib.IMAP4.error("[AUTHENTICATIONFAILED] Invalid credentials (Failure)")
        return "OK", [f"{user} authenticated".encode("ascii")]

    def authenticate(self, mechanism: str, authobject):
        self.auth_mechanisms.append(mechanism)
        _authzid, user, password = authobject(b"").decode("utf-8").split("\0")
        if mechanism != "PLAIN" or password != self.password:
            raise imaplib.IMAP4.error("[AUTHENTICATIONFAILED] Invalid credentials (Failure)")
        return "OK", [f"{user} authenticated".encode("utf-8")]

    def select(self, mailbox: str, readonly: bool = False):
        name = mailbox.strip('"')
        if name not in self.folders:
            return "NO", [b"[NONEXISTENT] Unknown Mailbox"]
        self.selected = name
        self.readonly = readonly
        return "OK", [str(len(self.messages)).encode("ascii")]

    def uid(self, command: str, *args):
        if command == "SEARCH":
            unseen = sorted(
                (uid for uid in self.messages if "\\Seen" not in self.flags[uid]),
                key=int,
            )
            return "OK", [" ".join(unseen).encode("ascii")]
        if command == "FETCH":
            uid = str(args[0])
            self.fetch_calls.append(uid)
            if uid in self.fetch_fail_uids or uid not in self.messages:
                return "NO", [b"FETCH failed"]
            raw = self.messages[uid]
            flags = " ".join(sorted(self.flags[uid]))
            internaldate = self.internaldates.get(uid, DEFAULT_INTERNALDATE)
            meta = (
                f'1 (UID {uid} FLAGS ({flags}) INTERNALDATE "{internaldate}" BODY[] {{{len(raw)}}}'
            ).encode("ascii")
            return "OK", [(meta, raw), b")"]
        if command == "STORE":
            uid, operation, value = (str(arg) for arg in args)
            self.store_calls.append((uid, operation, value))
            if self.readonly:
                return "NO", [b"Mailbox is read-only"]
            self.flags[uid].add("\\Seen")
            return "OK", [b""]
        raise AssertionError(f"Unsupported UID command in test fake: {command}")

    def close(self):
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error
        return "OK", [b"Close completed"]

    def logout(self):
        self.logout_calls += 1
        return "BYE", [b"Logging out"]


def connect_to(imap: FakeIMAP):
    return lambda _config: imap
