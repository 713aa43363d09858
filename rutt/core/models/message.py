"""Message domain models"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Tuple


@dataclass(frozen=True)
class FetchRange:
    """Inclusive range of 1-based IMAP sequence numbers."""

    low: int
    high: int

    def __post_init__(self):
        if self.low < 1:
            raise ValueError(f"Fetch range must start at 1 or above, got {self.low}")
        if self.low > self.high:
            raise ValueError(f"Empty fetch range: {self.low}:{self.high}")

    def __len__(self) -> int:
        return self.high - self.low + 1

    def __contains__(self, seq: int) -> bool:
        return self.low <= seq <= self.high

    def to_sequence_set(self) -> str:
        """Render as IMAP sequence-set syntax, e.g. ``"191:200"``."""
        return f"{self.low}:{self.high}"

    def __str__(self) -> str:
        return self.to_sequence_set()


@dataclass(frozen=True)
class RawMessage:
    """One FETCH result as it came off the wire."""

    seq: int
    raw: bytes
    flags: Tuple[str, ...] = ()
    uid: Optional[int] = None


class LazyBody:
    """Message body that is decoded on first access and cached.

    The raw bytes are dropped once decoded, so decoding happens at most once.
    """

    def __init__(self, raw: bytes, decode: Callable[[bytes], str]):
        self._raw: Optional[bytes] = raw
        self._decode = decode
        self._text: Optional[str] = None

    @classmethod
    def from_text(cls, text: str) -> "LazyBody":
        body = cls(b"", lambda _raw: text)
        body._raw = None
        body._text = text
        return body

    @property
    def is_decoded(self) -> bool:
        return self._text is not None

    def get(self) -> str:
        if self._text is None:
            self._text = self._decode(self._raw or b"")
            self._raw = None
        return self._text

    def __repr__(self) -> str:
        state = "decoded" if self.is_decoded else "pending"
        return f"<LazyBody {state}>"


@dataclass
class MessageRecord:
    """One decoded message, ready for display."""

    sender: str
    subject: str
    timestamp: datetime
    is_read: bool = False
    body_source: LazyBody = field(
        default_factory=lambda: LazyBody.from_text(""), repr=False, compare=False
    )
    to: Optional[str] = None
    cc: Optional[str] = None
    bcc: Optional[str] = None
    uid: Optional[int] = None
    seq: Optional[int] = None

    @property
    def body(self) -> str:
        """Body text, decoded on first access."""
        return self.body_source.get()

    def mark_as_read(self) -> bool:
        """Mark message as read.

        Returns:
            True if the flag changed, False if it was already read
        """
        if self.is_read:
            return False
        self.is_read = True
        return True
