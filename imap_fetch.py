#!/usr/bin/env python3
"""Fetch unread IMAP messages and normalize them into email records."""

from __future__ import annotations

import argparse
import base64
import imaplib
import json
import logging
import os
import re
import ssl
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from email import policy
from email.message import Message
from email.parser import BytesParser
from enum import Enum
from pathlib import Path
from types import TracebackType


DEFAULT_IMAP_PORT = 993
DEFAULT_FOLDER = "INBOX"
DEFAULT_MAX_EMAILS = 10
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CONFIG_FILE = "imap_fetch.json"
ENV_USERNAME = "IMAP_FETCH_USERNAME"
ENV_PASSWORD = "IMAP_FETCH_PASSWORD"
UNKNOWN_MESSAGE_ID = "unknown"
NO_SUBJECT = "No Subject"
SEEN_FLAG = "\\Seen"
TEXT_CONTENT_TYPES = ("text/plain", "text/html")
FETCH_MESSAGE_QUERY = "(FLAGS INTERNALDATE BODY.PEEK[])"
ANGLE_ADDRESS_PATTERN = re.compile(r"<([^>]+)>")
FLAGS_PATTERN = re.compile(rb"FLAGS \(([^)]*)\)")
INTERNALDATE_PATTERN = re.compile(rb'INTERNALDATE "([^"]+)"')
INTERNALDATE_FORMAT = "%d-%b-%Y %H:%M:%S %z"

logger = logging.getLogger(__name__)


class ImapFetchError(Exception):
    """Base class for fetch failures."""


class MailboxConnectionError(ImapFetchError):
    """Transport, TLS or authentication failure. Fatal to the run."""


class FetchCancelledError(MailboxConnectionError):
    """The caller asked the run to stop at a blocking boundary."""


class FolderError(ImapFetchError):
    """The folder is missing, inaccessible or cannot be searched. Fatal to the run."""


class MessageExtractionError(ImapFetchError):
    """One message could not be read. The message is skipped."""


class TeardownError(ImapFetchError):
    """Closing the folder or logging out failed. Logged, never raised."""


class SessionState(Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    FOLDER_OPEN = "folder_open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(frozen=True)
class FetchConfig:
    host: str
    username: str
    password: str = field(repr=False)
    port: int = DEFAULT_IMAP_PORT
    folder: str = DEFAULT_FOLDER
    max_emails: int = DEFAULT_MAX_EMAILS
    mark_as_read: bool = False
    use_ssl: bool = True
    trust_all_certificates: bool = False
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        for name in ("host", "username", "password", "folder"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"{name} cannot be empty.")
        for name in ("port", "max_emails"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be an integer >= 1.")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0.")


@dataclass(frozen=True)
class EmailRecord:
    message_id: str
    subject: str
    sender: str | None
    sender_email: str | None
    body: str
    received_date: datetime | None
    is_read: bool
    attachments: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "messageId": self.message_id,
            "subject": self.subject,
            "sender": self.sender,
            "senderEmail": self.sender_email,
            "body": self.body,
            "receivedDate": self.received_date.isoformat() if self.received_date else None,
            "isRead": self.is_read,
            "attachments": list(self.attachments),
        }


@dataclass(frozen=True)
class FetchResult:
    emails: tuple[EmailRecord, ...]
    total_emails: int
    processed_count: int

    def to_dict(self) -> dict[str, object]:
        return {
            "emails": [record.to_dict() for record in self.emails],
            "totalEmails": self.total_emails,
            "processedCount": self.processed_count,
        }


@dataclass(frozen=True)
class FetchedMessage:
    raw: bytes
    flags: tuple[str, ...]
    internal_date: datetime | None


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Fetch unread messages from one IMAP folder, newest first, and print them as JSON. "
            f"Credentials may come from the config file or from {ENV_USERNAME}/{ENV_PASSWORD}."
        )
    )
    parser.add_argument(
        "--config-file",
        default=DEFAULT_CONFIG_FILE,
        help=f"Path to fetch config JSON file (default: {DEFAULT_CONFIG_FILE}). File is optional.",
    )
    parser.add_argument("--host", default=None, help="IMAP host override.")
    parser.add_argument(
        "--port",
        default=None,
        type=int,
        help=f"IMAP port override (config default: {DEFAULT_IMAP_PORT}).",
    )
    parser.add_argument("--username", default=None, help="IMAP username override.")
    parser.add_argument(
        "--folder",
        default=None,
        help=f"Folder to read (config default: {DEFAULT_FOLDER}).",
    )
    parser.add_argument(
        "--max-emails",
        default=None,
        type=int,
        help=f"Maximum unread messages to fetch (config default: {DEFAULT_MAX_EMAILS}).",
    )
    parser.add_argument(
        "--mark-as-read",
        default=None,
        action="store_true",
        help="Set the \\Seen flag on every message that was fetched successfully.",
    )
    parser.add_argument(
        "--no-ssl",
        dest="use_ssl",
        default=None,
        action="store_false",
        help="Connect with plain IMAP instead of IMAP over TLS.",
    )
    parser.add_argument(
        "--trust-all-certificates",
        default=None,
        action="store_true",
        help="INSECURE: accept any TLS certificate the server presents.",
    )
    parser.add_argument(
        "--timeout",
        dest="timeout_seconds",
        default=None,
        type=float,
        help=f"Socket timeout in seconds (config default: {DEFAULT_TIMEOUT_SECONDS:g}).",
    )
    parser.add_argument(
        "--json-output",
        default="",
        help="Optional path to write the fetch result JSON. Prints to stdout when not set.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)


def extract_email_address(sender: str) -> str:
    match = ANGLE_ADDRESS_PATTERN.search(sender)
    if match:
        return match.group(1)
    return sender.strip()


def flatten_text_content(part: Message) -> str:
    """Concatenate every text/plain and text/html leaf in document order.

    Multipart containers are walked recursively; any other content type
    contributes nothing. Decoding errors propagate to the caller.
    """
    content_type = part.get_content_type()
    if content_type in TEXT_CONTENT_TYPES:
        return str(part.get_content())
    if part.get_content_maintype() == "multipart":
        return "".join(flatten_text_content(subpart) for subpart in part.iter_parts())
    return ""


def list_attachment_names(part: Message) -> list[str]:
    # Only direct children are inspected; attachments inside nested
    # multiparts are not reported.
    if part.get_content_maintype() != "multipart":
        return []
    names: list[str] = []
    for subpart in part.iter_parts():
        if subpart.get_content_disposition() == "attachment":
            names.append(subpart.get_filename() or "")
    return names


def encode_mailbox_name(folder_name: str) -> str:
    """Encode a folder name as IMAP modified UTF-7 (RFC 3501 section 5.1.3)."""
    encoded: list[str] = []
    pending: list[str] = []

    def flush() -> None:
        if pending:
            chunk = base64.b64encode("".join(pending).encode("utf-16-be")).decode("ascii")
            encoded.append("&" + chunk.rstrip("=").replace("/", ",") + "-")
            pending.clear()

    for char in folder_name:
        if char == "&":
            flush()
            encoded.append("&-")
        elif 0x20 <= ord(char) <= 0x7E:
            flush()
            encoded.append(char)
        else:
            pending.append(char)
    flush()
    return "".join(encoded)


def login(imap: imaplib.IMAP4, username: str, password: str) -> None:
    # LOGIN arguments must be ASCII; other credentials go through SASL PLAIN as UTF-8.
    if username.isascii() and password.isascii():
        imap.login(username, password)
        return
    credentials = f"\0{username}\0{password}".encode("utf-8")
    imap.authenticate("PLAIN", lambda _challenge: credentials)


def quote_mailbox_name(folder_name: str) -> str:
    escaped = folder_name.replace("\\", "\\\\").replace('"', r'\"')
    return f'"{escaped}"'


def decode_imap_response(data: object) -> str:
    if not isinstance(data, list):
        return ""
    parts: list[str] = []
    for item in data:
        if item is None:
            continue
        if isinstance(item, bytes):
            parts.append(item.decode("utf-8", errors="replace"))
        else:
            parts.append(str(item))
    return " | ".join(parts).strip()


def parse_uid_search_data(data: object) -> list[str]:
    if not isinstance(data, list) or not data or not data[0]:
        return []
    raw = data[0]
    if isinstance(raw, bytes):
        return [uid.decode("ascii", errors="ignore") for uid in raw.split()]
    if isinstance(raw, str):
        return [uid for uid in raw.split() if uid]
    return []


def parse_fetch_response(fetch_data: object) -> tuple[bytes | None, bytes]:
    """Split a UID FETCH response into the message literal and its metadata.

    Servers may return FLAGS or INTERNALDATE after the literal, in which
    case they arrive as a trailing bytes item rather than in the tuple.
    """
    raw_message: bytes | None = None
    meta_parts: list[bytes] = []
    if not isinstance(fetch_data, list):
        return None, b""

    for part in fetch_data:
        if isinstance(part, tuple) and len(part) >= 2:
            meta, body = part[0], part[1]
            if isinstance(meta, bytes):
                meta_parts.append(meta)
            if raw_message is None and isinstance(body, bytes):
                raw_message = body
        elif isinstance(part, bytes):
            meta_parts.append(part)
    return raw_message, b" ".join(meta_parts)


def parse_flags(meta: bytes) -> tuple[str, ...]:
    match = FLAGS_PATTERN.search(meta)
    if not match:
        return ()
    return tuple(flag.decode("ascii", errors="replace") for flag in match.group(1).split())


def parse_internal_date(meta: bytes) -> datetime | None:
    match = INTERNALDATE_PATTERN.search(meta)
    if not match:
        return None
    text = match.group(1).decode("ascii", errors="replace").strip()
    try:
        return datetime.strptime(text, INTERNALDATE_FORMAT)
    except ValueError:
        logger.debug("Unparseable INTERNALDATE %r", text)
        return None


def build_ssl_context(config: FetchConfig) -> ssl.SSLContext:
    context = ssl.create_default_context()
    if config.trust_all_certificates:
        logger.warning(
            "TLS certificate verification is disabled for %s; any certificate will be accepted",
            config.host,
        )
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def open_imap_connection(config: FetchConfig) -> imaplib.IMAP4:
    if config.use_ssl:
        return imaplib.IMAP4_SSL(
            config.host,
            config.port,
            ssl_context=build_ssl_context(config),
            timeout=config.timeout_seconds,
        )
    return imaplib.IMAP4(config.host, config.port, timeout=config.timeout_seconds)


class MessageHandle:
    """Reference to one message in an open folder.

    Reads are valid only while the owning session's folder is open. The
    message is fetched at most once.
    """

    def __init__(self, session: MailboxSession, uid: str) -> None:
        self.session = session
        self.uid = uid
        self._fetched: FetchedMessage | None = None

    def _load(self) -> FetchedMessage:
        if self._fetched is None:
            self._fetched = self.session.fetch_message(self.uid)
        return self._fetched

    def message(self) -> Message:
        return BytesParser(policy=policy.default).parsebytes(self._load().raw)

    def is_seen(self) -> bool:
        return SEEN_FLAG in self._load().flags

    def received_date(self) -> datetime | None:
        return self._load().internal_date


class MailboxSession:
    """Connect, open one folder, search and always tear down.

    Use as a context manager: entering connects and opens the folder,
    leaving closes the folder and logs out on every exit path.
    """

    def __init__(
        self,
        config: FetchConfig,
        connect: Callable[[FetchConfig], imaplib.IMAP4] | None = None,
        cancel_check: Callable[[], bool] | None = None,
    ) -> None:
        self.config = config
        self.state = SessionState.UNCONNECTED
        self._connect = connect or open_imap_connection
        self._cancel_check = cancel_check
        self._imap: imaplib.IMAP4 | None = None

    def __enter__(self) -> MailboxSession:
        try:
            self.connect()
            self.open_folder()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._cancel_check is not None and self._cancel_check():
            raise FetchCancelledError(f"Fetch cancelled before {stage}.")

    def _require_state(self, expected: SessionState, operation: str) -> imaplib.IMAP4:
        if self.state is not expected or self._imap is None:
            raise RuntimeError(
                f"Cannot {operation} while session is {self.state.value}; expected {expected.value}."
            )
        return self._imap

    def connect(self) -> None:
        if self.state is not SessionState.UNCONNECTED:
            raise RuntimeError(f"Cannot connect while session is {self.state.value}.")
        config = self.config
        self.raise_if_cancelled("connect")
        logger.info("Connecting to IMAP server: %s:%d", config.host, config.port)
        try:
            self._imap = self._connect(config)
            login(self._imap, config.username, config.password)
        except (imaplib.IMAP4.error, OSError, UnicodeEncodeError) as error:
            raise MailboxConnectionError(
                f"Could not connect to {config.host}:{config.port} as {config.username}: {error}"
            ) from error
        self.state = SessionState.CONNECTED
        logger.info("Successfully connected to IMAP server")

    def open_folder(self) -> None:
        imap = self._require_state(SessionState.CONNECTED, "open folder")
        folder = self.config.folder
        readonly = not self.config.mark_as_read
        self.raise_if_cancelled("opening folder")
        try:
            status, data = imap.select(quote_mailbox_name(encode_mailbox_name(folder)), readonly=readonly)
        except imaplib.IMAP4.error as error:
            raise FolderError(f"Could not open folder {folder}: {error}") from error
        except OSError as error:
            raise MailboxConnectionError(f"Connection lost while opening folder {folder}: {error}") from error
        if status != "OK":
            detail = decode_imap_response(data) or status
            raise FolderError(f"Could not open folder {folder}: {detail}")
        self.state = SessionState.FOLDER_OPEN
        logger.info("Opened folder: %s (%s)", folder, "read-only" if readonly else "read-write")

    def search_unseen(self) -> list[str]:
        imap = self._require_state(SessionState.FOLDER_OPEN, "search")
        self.raise_if_cancelled("search")
        try:
            status, data = imap.uid("SEARCH", None, "UNSEEN")
        except imaplib.IMAP4.error as error:
            raise FolderError(f"Could not search folder {self.config.folder}: {error}") from error
        except OSError as error:
            raise MailboxConnectionError(f"Connection lost while searching: {error}") from error
        if status != "OK":
            detail = decode_imap_response(data) or status
            raise FolderError(f"Could not search folder {self.config.folder}: {detail}")
        return parse_uid_search_data(data)

    def handle(self, uid: str) -> MessageHandle:
        return MessageHandle(self, uid)

    def fetch_message(self, uid: str) -> FetchedMessage:
        if self.state is not SessionState.FOLDER_OPEN or self._imap is None:
            raise MessageExtractionError(f"UID {uid} read after folder was closed.")
        try:
            status, fetch_data = self._imap.uid("FETCH", uid, FETCH_MESSAGE_QUERY)
        except (imaplib.IMAP4.error, OSError) as error:
            raise MessageExtractionError(f"Could not fetch UID {uid}: {error}") from error
        if status != "OK":
            detail = decode_imap_response(fetch_data) or status
            raise MessageExtractionError(f"Could not fetch UID {uid}: {detail}")

        raw_message, meta = parse_fetch_response(fetch_data)
        if raw_message is None:
            raise MessageExtractionError(f"Server returned no message body for UID {uid}.")
        return FetchedMessage(
            raw=raw_message,
            flags=parse_flags(meta),
            internal_date=parse_internal_date(meta),
        )

    def mark_seen(self, uid: str) -> bool:
        imap = self._require_state(SessionState.FOLDER_OPEN, "set flags")
        try:
            status, data = imap.uid("STORE", uid, "+FLAGS", r"(\Seen)")
        except (imaplib.IMAP4.error, OSError) as error:
            logger.warning("Could not mark UID %s as read: %s", uid, error)
            return False
        if status != "OK":
            logger.warning(
                "Could not mark UID %s as read: %s",
                uid,
                decode_imap_response(data) or status,
            )
            return False
        return True

    def _teardown_step(self, step: str, action: Callable[[], object]) -> None:
        try:
            response = action()
        except Exception as error:  # logged only, never raised
            logger.warning("%s", TeardownError(f"IMAP {step} failed: {error}"))
            return
        if isinstance(response, tuple) and response and response[0] not in ("OK", "BYE"):
            detail = decode_imap_response(response[1]) if len(response) > 1 else ""
            logger.warning("%s", TeardownError(f"IMAP {step} returned {response[0]}: {detail}"))

    def close(self) -> None:
        if self.state in (SessionState.CLOSING, SessionState.CLOSED):
            return
        folder_open = self.state is SessionState.FOLDER_OPEN
        self.state = SessionState.CLOSING
        imap, self._imap = self._imap, None
        if imap is not None:
            # CLOSE without EXPUNGE semantics: nothing here sets \Deleted.
            if folder_open:
                self._teardown_step("close", imap.close)
            self._teardown_step("logout", imap.logout)
        self.state = SessionState.CLOSED
        logger.debug("IMAP session closed")


def normalize_message(handle: MessageHandle, position: int) -> EmailRecord | None:
    """Build one record from a message handle, or None to skip it.

    Every failure for this message is logged with its position in the
    search results and turned into a skip.
    """
    try:
        message = handle.message()

        raw_message_id = message.get("Message-ID")
        message_id = str(raw_message_id) if raw_message_id is not None else UNKNOWN_MESSAGE_ID
        raw_subject = message.get("Subject")
        subject = str(raw_subject) if raw_subject is not None else NO_SUBJECT

        sender: str | None = None
        sender_email: str | None = None
        from_header = message["From"]
        addresses = getattr(from_header, "addresses", ()) if from_header is not None else ()
        if addresses:
            sender = str(addresses[0])
            sender_email = extract_email_address(sender)

        record = EmailRecord(
            message_id=message_id,
            subject=subject,
            sender=sender,
            sender_email=sender_email,
            body=flatten_text_content(message),
            received_date=handle.received_date(),
            is_read=handle.is_seen(),
            attachments=tuple(list_attachment_names(message)),
        )
    except Exception as error:
        logger.warning("Error processing message %d: %s", position, error)
        return None

    logger.info("Processing email from: %s - Subject: %s", record.sender_email, record.subject)
    return record


def select_recent_uids(uids: list[str], max_emails: int) -> list[tuple[int, str]]:
    """Return (position, uid) pairs for the newest max_emails UIDs, newest first."""
    count = min(len(uids), max_emails)
    return [(index, uids[index]) for index in range(len(uids) - 1, len(uids) - count - 1, -1)]


def fetch_unread_emails(
    config: FetchConfig,
    *,
    connect: Callable[[FetchConfig], imaplib.IMAP4] | None = None,
    cancel_check: Callable[[], bool] | None = None,
) -> FetchResult:
    emails: list[EmailRecord] = []
    processed_count = 0

    try:
        with MailboxSession(config, connect=connect, cancel_check=cancel_check) as session:
            uids = session.search_unseen()
            logger.info("Found %d unread emails", len(uids))

            for position, uid in select_recent_uids(uids, config.max_emails):
                session.raise_if_cancelled(f"reading message {position}")
                record = normalize_message(session.handle(uid), position)
                if record is None:
                    continue
                emails.append(record)
                processed_count += 1
                if config.mark_as_read:
                    session.mark_seen(uid)
    except (MailboxConnectionError, FolderError) as error:
        logger.error("IMAP fetch from %s failed: %s", config.host, error)
        raise

    logger.info("Email processing completed. Processed: %d", processed_count)
    return FetchResult(
        emails=tuple(emails),
        total_emails=len(emails),
        processed_count=processed_count,
    )


def parse_boolean_config(raw_value: object, source: str, default: bool) -> bool:
    if raw_value is None:
        return default
    if isinstance(raw_value, bool):
        return raw_value
    raise ValueError(f"{source} must be a boolean.")


def parse_nonempty_string_config(raw_value: object, source: str, default: str | None) -> str:
    if raw_value is None:
        if default is None:
            raise ValueError(f"{source} is required.")
        return default
    if not isinstance(raw_value, str):
        raise ValueError(f"{source} must be a string.")
    cleaned = raw_value.strip()
    if not cleaned:
        raise ValueError(f"{source} cannot be empty.")
    return cleaned


def parse_positive_number_config(raw_value: object, source: str, default: float) -> float:
    if raw_value is None:
        return default
    if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
        raise ValueError(f"{source} must be a number.")
    value = float(raw_value)
    if value <= 0:
        raise ValueError(f"{source} must be > 0.")
    return value


def parse_positive_int_config(raw_value: object, source: str, default: int) -> int:
    if raw_value is None:
        return default
    if isinstance(raw_value, bool) or not isinstance(raw_value, int):
        raise ValueError(f"{source} must be an integer.")
    if raw_value < 1:
        raise ValueError(f"{source} must be >= 1.")
    return raw_value


def fetch_config_from_payload(payload: object) -> FetchConfig:
    if not isinstance(payload, dict):
        raise ValueError("Fetch configuration must be a JSON object.")
    return FetchConfig(
        host=parse_nonempty_string_config(payload.get("host"), "host", None),
        port=parse_positive_int_config(payload.get("port"), "port", DEFAULT_IMAP_PORT),
        username=parse_nonempty_string_config(payload.get("username"), "username", None),
        # Passwords are kept verbatim; only emptiness is rejected.
        password=parse_password_config(payload.get("password")),
        folder=parse_nonempty_string_config(payload.get("folder"), "folder", DEFAULT_FOLDER),
        max_emails=parse_positive_int_config(payload.get("maxEmails"), "maxEmails", DEFAULT_MAX_EMAILS),
        mark_as_read=parse_boolean_config(payload.get("markAsRead"), "markAsRead", False),
        use_ssl=parse_boolean_config(payload.get("useSsl"), "useSsl", True),
        trust_all_certificates=parse_boolean_config(
            payload.get("trustAllCertificates"),
            "trustAllCertificates",
            False,
        ),
        timeout_seconds=parse_positive_number_config(
            payload.get("timeoutSeconds"),
            "timeoutSeconds",
            DEFAULT_TIMEOUT_SECONDS,
        ),
    )


def parse_password_config(raw_value: object) -> str:
    if raw_value is None:
        raise ValueError(f"password is required (set it in the config file or {ENV_PASSWORD}).")
    if not isinstance(raw_value, str):
        raise ValueError("password must be a string.")
    if not raw_value.strip():
        raise ValueError("password cannot be empty.")
    return raw_value


def load_config_payload(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}

    try:
        with path.open("r", encoding="utf-8") as file:
            raw = json.load(file)
    except (OSError, json.JSONDecodeError) as error:
        raise ValueError(f"Could not read config file {path}: {error}") from error

    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a JSON object.")
    return raw


def load_fetch_config(path: Path, overrides: dict[str, object] | None = None) -> FetchConfig:
    payload = dict(load_config_payload(path))
    for key, value in (overrides or {}).items():
        if value is not None:
            payload[key] = value

    for key, env_name in (("username", ENV_USERNAME), ("password", ENV_PASSWORD)):
        if payload.get(key) is None:
            env_value = os.environ.get(env_name, "")
            if env_value.strip():
                payload[key] = env_value
    return fetch_config_from_payload(payload)


def cli_overrides(args: argparse.Namespace) -> dict[str, object]:
    return {
        "host": args.host,
        "port": args.port,
        "username": args.username,
        "folder": args.folder,
        "maxEmails": args.max_emails,
        "markAsRead": args.mark_as_read,
        "useSsl": args.use_ssl,
        "trustAllCertificates": args.trust_all_certificates,
        "timeoutSeconds": args.timeout_seconds,
    }


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_fetch_config(Path(args.config_file), overrides=cli_overrides(args))
    except ValueError as error:
        print(error, file=sys.stderr)
        return 2

    try:
        result = fetch_unread_emails(config)
    except (MailboxConnectionError, FolderError) as error:
        print(f"IMAP fetch failed: {error}", file=sys.stderr)
        return 1

    output = json.dumps(result.to_dict(), indent=2)
    if args.json_output:
        output_path = Path(args.json_output)
        try:
            output_path.write_text(output, encoding="utf-8")
        except OSError as error:
            print(f"Could not write JSON output at {output_path}: {error}", file=sys.stderr)
            return 1
        print(f"Wrote {result.total_emails} email(s) to {output_path}")
    else:
        print(output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
