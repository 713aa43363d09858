"""IMAP constants and configuration values."""


class IMAPResponse:
    """Standard IMAP response codes."""

    OK = "OK"
    NO = "NO"
    BAD = "BAD"


class Timeouts:
    """Timeout values for IMAP operations (in seconds)."""

    IMAP_CONNECT = 30.0  # TLS handshake + server greeting
    IMAP_FETCH = 60.0  # whole range, one command
    IMAP_STORE = 10.0
    IMAP_LOGOUT = 5.0


class IMAPFlags:
    """Standard IMAP flags."""

    SEEN = "\\Seen"  # Read/unread status


# BODY.PEEK keeps the server from setting \Seen as a side effect of fetching
FETCH_ITEMS = "(UID FLAGS BODY.PEEK[])"
