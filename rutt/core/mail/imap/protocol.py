"""IMAP response parsing - turns aioimaplib response lines into models."""

import re
from typing import Iterable, List, Optional

from rutt.core.models import RawMessage

_FETCH_START = re.compile(rb"^(\d+)\s+FETCH\s*\(", re.IGNORECASE)
_LITERAL_MARKER = re.compile(rb"\{(\d+)\}\s*$")
_UID = re.compile(rb"\bUID\s+(\d+)", re.IGNORECASE)
_FLAGS = re.compile(rb"\bFLAGS\s*\(([^)]*)\)", re.IGNORECASE)
_EXISTS = re.compile(rb"^(\d+)\s+EXISTS\b", re.IGNORECASE)


def response_text(lines: Iterable) -> str:
    """First response line as text, for error details."""
    for line in lines or []:
        if isinstance(line, (bytes, bytearray)):
            return bytes(line).decode("utf-8", errors="replace").strip()
        return str(line).strip()
    return "No response"


def parse_exists(lines: Iterable) -> Optional[int]:
    """Extract the EXISTS count from a SELECT response.

    Returns:
        Message count, or None if the server sent no EXISTS line
    """
    count = None
    for line in lines or []:
        data = line.encode() if isinstance(line, str) else bytes(line)
        match = _EXISTS.match(data.strip())
        if match:
            # servers may repeat EXISTS; the last one wins
            count = int(match.group(1))
    return count


def parse_flags(text: bytes) -> tuple:
    """Extract flags from the attribute text of one FETCH response."""
    match = _FLAGS.search(text)
    if not match:
        return ()
    return tuple(
        flag.decode("utf-8", errors="replace") for flag in match.group(1).split()
    )


def parse_fetch_response(lines: Iterable) -> List[RawMessage]:
    """Group FETCH response lines into one RawMessage per message.

    aioimaplib hands back the attribute text of each message as ``bytes``
    lines and the ``BODY[]`` literal as a ``bytearray`` following the line
    that announced it with ``{N}``. Attributes may appear on either side of
    the literal, so everything up to the next ``N FETCH (`` line belongs to
    the same message. Messages come back in server order.
    """
    messages: List[RawMessage] = []
    seq: Optional[int] = None
    text = b""
    raw: Optional[bytes] = None
    expect_literal = False

    def flush():
        if seq is not None:
            messages.append(
                RawMessage(
                    seq=seq,
                    raw=raw or b"",
                    flags=parse_flags(text),
                    uid=_parse_uid(text),
                )
            )

    for item in lines or []:
        if isinstance(item, bytearray) or (expect_literal and isinstance(item, bytes)):
            if seq is not None and raw is None:
                raw = bytes(item)
            expect_literal = False
            continue

        data = item.encode() if isinstance(item, str) else bytes(item)
        start = _FETCH_START.match(data)
        if start:
            flush()
            seq = int(start.group(1))
            text = data
            raw = None
        elif seq is not None:
            text += b" " + data.strip()
        expect_literal = bool(_LITERAL_MARKER.search(data))

    flush()
    return messages


def _parse_uid(text: bytes) -> Optional[int]:
    match = _UID.search(text)
    return int(match.group(1)) if match else None
