"""Decode raw fetched messages into display-ready records.

Decoding is total: every field degrades to a placeholder on its own, so one
malformed message never keeps the rest of the mailbox from displaying.
"""

import email
import html
import re
from datetime import datetime, timezone
from email.errors import HeaderParseError
from email.header import Header, decode_header, make_header
from email.message import Message
from email.utils import getaddresses, parsedate_to_datetime
from typing import Iterable, List, Optional

from rutt.core.mail.imap.constants import IMAPFlags
from rutt.core.models import LazyBody, MessageRecord, RawMessage
from rutt.utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_SENDER = "(unknown sender)"
NO_SUBJECT = "(no subject)"
NO_BODY = "(No body content)"
UNKNOWN_8BIT = "unknown-8bit"

_WHITESPACE = re.compile(r"\s+")
_TAGS = re.compile(r"<[^>]+>")


def decode_header_value(value) -> str:
    """Decode an RFC 2047 header into plain text."""
    if value is None:
        return ""

    try:
        chunks = decode_header(value)
        if any(charset == UNKNOWN_8BIT for _, charset in chunks):
            text = _decode_leniently(value)
        else:
            text = str(make_header(chunks))
    except (LookupError, UnicodeError, ValueError, HeaderParseError):
        text = _decode_leniently(value)

    return _WHITESPACE.sub(" ", text).strip()


def _decode_leniently(value) -> str:
    """Decode header chunks one by one, replacing what cannot be decoded."""
    try:
        chunks = decode_header(value)
    except HeaderParseError:
        return str(value)

    return "".join(
        _decode_chunk(chunk, charset) if isinstance(chunk, bytes) else chunk
        for chunk, charset in chunks
    )


def _decode_chunk(chunk: bytes, charset: Optional[str]) -> str:
    if charset == UNKNOWN_8BIT:
        # raw 8-bit header with no declared charset
        try:
            return chunk.decode("utf-8")
        except UnicodeDecodeError:
            return chunk.decode("latin-1")
    try:
        return chunk.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return chunk.decode("utf-8", errors="replace")


def _format_address(name: str, address: str) -> str:
    name = decode_header_value(name) if name else ""
    address = address.strip()
    if name and address:
        return f"{name} <{address}>"
    return name or address


def _address_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, Header):
        value = decode_header_value(value)
    return [
        formatted
        for formatted in (_format_address(n, a) for n, a in getaddresses([str(value)]))
        if formatted
    ]


def _extract_body(raw: bytes) -> str:
    """Extract a readable body from RFC 822 bytes."""
    try:
        message = email.message_from_bytes(raw)
        plain = _first_part(message, "text/plain")
        if plain is not None and plain.strip():
            return plain
        rich = _first_part(message, "text/html")
        if rich is not None:
            return html.unescape(_TAGS.sub("", rich)).strip() or NO_BODY
    except Exception as e:
        logger.debug(f"Body decode failed: {type(e).__name__}: {e}")
    return NO_BODY


def _first_part(message: Message, content_type: str) -> Optional[str]:
    for part in message.walk():
        if part.is_multipart() or part.get_content_type() != content_type:
            continue
        if "attachment" in str(part.get("Content-Disposition", "")).lower():
            continue

        payload = part.get_payload(decode=True)
        if payload is None:
            continue

        charset = part.get_content_charset() or "utf-8"
        try:
            return payload.decode(charset, errors="replace")
        except LookupError:
            return payload.decode("utf-8", errors="replace")
    return None


class MessageDecoder:
    """Decodes one batch of fetched messages.

    ``fetched_at`` is the batch's single reference time; messages without a
    usable Date header all share it.
    """

    def __init__(self, fetched_at: Optional[datetime] = None):
        self.fetched_at = fetched_at or datetime.now(timezone.utc)
        if self.fetched_at.tzinfo is None:
            self.fetched_at = self.fetched_at.replace(tzinfo=timezone.utc)

    def decode(self, raw: RawMessage) -> MessageRecord:
        """Decode a raw message. Never raises."""
        try:
            headers = email.message_from_bytes(raw.raw)
        except Exception as e:
            logger.warning(
                "Unparseable message, using placeholders",
                extra={"seq": raw.seq, "error": type(e).__name__},
            )
            headers = Message()

        return MessageRecord(
            sender=self._sender(headers, raw.seq),
            subject=self._subject(headers, raw.seq),
            timestamp=self._timestamp(headers, raw.seq),
            is_read=self._is_read(raw.flags),
            body_source=LazyBody(raw.raw, _extract_body),
            to=self._recipients(headers, "To"),
            cc=self._recipients(headers, "Cc"),
            bcc=self._recipients(headers, "Bcc"),
            uid=raw.uid,
            seq=raw.seq,
        )

    def decode_all(self, raws: Iterable[RawMessage]) -> List[MessageRecord]:
        """Decode a batch, preserving input order."""
        return [self.decode(raw) for raw in raws]

    def _sender(self, headers: Message, seq: int) -> str:
        try:
            addresses = _address_list(headers.get("From"))
        except Exception as e:
            logger.debug(f"From header unreadable for message {seq}: {e}")
            addresses = []
        return addresses[0] if addresses else UNKNOWN_SENDER

    def _subject(self, headers: Message, seq: int) -> str:
        try:
            subject = decode_header_value(headers.get("Subject"))
        except Exception as e:
            logger.debug(f"Subject header unreadable for message {seq}: {e}")
            subject = ""
        return subject or NO_SUBJECT

    def _timestamp(self, headers: Message, seq: int) -> datetime:
        value = headers.get("Date")
        if value is None:
            return self.fetched_at

        try:
            parsed = parsedate_to_datetime(str(value).strip())
        except (TypeError, ValueError, IndexError, OverflowError):
            logger.debug(f"Bad Date header on message {seq}, using fetch time")
            return self.fetched_at

        if parsed is None:
            return self.fetched_at
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @staticmethod
    def _is_read(flags) -> bool:
        return any(flag.lower() == IMAPFlags.SEEN.lower() for flag in flags)

    @staticmethod
    def _recipients(headers: Message, name: str) -> Optional[str]:
        try:
            addresses = _address_list(headers.get(name))
        except Exception:
            return None
        return ", ".join(addresses) if addresses else None


def decode(raw: RawMessage, fetched_at: Optional[datetime] = None) -> MessageRecord:
    """Decode a single raw message with its own reference time."""
    return MessageDecoder(fetched_at).decode(raw)
