"""IMAP session management - TLS connection, login, select, fetch, logout."""

import asyncio
import ssl
import time
from enum import Enum
from typing import Callable, List, Optional

import aioimaplib

from rutt.core.models import FetchRange, RawMessage
from rutt.security.credentials import Credentials
from rutt.utils.errors import (
    FetchError,
    InvalidCredentialsError,
    MailboxError,
    MailConnectionError,
    NetworkTimeoutError,
    SessionError,
)
from rutt.utils.logging import async_log_call, get_logger

from .constants import FETCH_ITEMS, IMAPFlags, IMAPResponse, Timeouts
from .protocol import parse_exists, parse_fetch_response, response_text

logger = get_logger(__name__)


class SessionState(Enum):
    """Lifecycle of one IMAP session."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    MAILBOX_SELECTED = "mailbox_selected"
    BROKEN = "broken"
    CLOSED = "closed"


class IMAPSession:
    """One authenticated IMAP session over TLS.

    The session is a state machine: DISCONNECTED -> CONNECTED ->
    AUTHENTICATED -> MAILBOX_SELECTED -> CLOSED. A transport or protocol
    failure moves it to BROKEN, after which every operation except
    ``close`` raises SessionError. Nothing is retried.
    """

    def __init__(
        self,
        host: str,
        port: int = 993,
        connect_timeout: float = Timeouts.IMAP_CONNECT,
        command_timeout: float = Timeouts.IMAP_FETCH,
        client_factory: Optional[Callable[..., aioimaplib.IMAP4_SSL]] = None,
    ):
        """Initialise an unconnected session.

        Args:
            host: IMAP server hostname
            port: IMAP over TLS port
            connect_timeout: Seconds allowed for handshake and login
            command_timeout: Seconds allowed for a single SELECT/FETCH
            client_factory: Builds the aioimaplib client (tests inject fakes)
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self._client_factory = client_factory or aioimaplib.IMAP4_SSL
        self._client: Optional[aioimaplib.IMAP4_SSL] = None
        self._state = SessionState.DISCONNECTED
        self.mailbox: Optional[str] = None
        self.total_count: Optional[int] = None

    @classmethod
    async def open(
        cls, host: str, port: int, credentials: Credentials, **kwargs
    ) -> "IMAPSession":
        """Connect over TLS and log in.

        Raises:
            MailConnectionError: DNS failure, refusal, TLS failure or timeout
            InvalidCredentialsError: If the server rejects the login
        """
        session = cls(host, port, **kwargs)
        await session.connect(credentials)
        return session

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_usable(self) -> bool:
        return self._state in (
            SessionState.AUTHENTICATED,
            SessionState.MAILBOX_SELECTED,
        )

    def _require(self, operation: str, *states: SessionState) -> aioimaplib.IMAP4_SSL:
        if self._state not in states or self._client is None:
            raise SessionError(
                f"Cannot {operation} while session is {self._state.value}",
                details={"operation": operation, "state": self._state.value},
            )
        return self._client

    def _mark_broken(self, operation: str, error: BaseException) -> None:
        logger.warning(
            "IMAP session broken",
            extra={
                "operation": operation,
                "error": type(error).__name__,
                "server": self.host,
            },
        )
        self._state = SessionState.BROKEN

    async def connect(self, credentials: Credentials) -> None:
        """TLS handshake followed by LOGIN."""
        if self._state is not SessionState.DISCONNECTED:
            raise SessionError(
                f"Cannot connect while session is {self._state.value}",
                details={"operation": "connect", "state": self._state.value},
            )

        start_time = time.time()
        logger.info(
            "Connecting to IMAP server",
            extra={"server": self.host, "port": self.port},
        )

        try:
            self._client = self._client_factory(
                host=self.host,
                port=self.port,
                timeout=self.command_timeout,
                ssl_context=ssl.create_default_context(),
            )
            await asyncio.wait_for(
                self._client.wait_hello_from_server(), timeout=self.connect_timeout
            )

        except asyncio.TimeoutError as e:
            self._release()
            self._state = SessionState.CLOSED
            raise NetworkTimeoutError(
                "IMAP connection timeout", details={"server": self.host}
            ) from e

        except Exception as e:
            self._release()
            self._state = SessionState.CLOSED
            raise MailConnectionError(
                f"Failed to connect to IMAP server: {type(e).__name__}: {e}",
                details={"server": self.host, "port": self.port},
            ) from e

        self._state = SessionState.CONNECTED

        try:
            response = await asyncio.wait_for(
                self._client.login(credentials.username, credentials.reveal()),
                timeout=self.connect_timeout,
            )

        except asyncio.TimeoutError as e:
            await self.close()
            raise NetworkTimeoutError(
                "IMAP login timeout", details={"server": self.host}
            ) from e

        except Exception as e:
            await self.close()
            raise MailConnectionError(
                f"IMAP connection lost during login: {type(e).__name__}",
                details={"server": self.host},
            ) from e

        if response.result != IMAPResponse.OK:
            logger.warning(
                "IMAP authentication failed",
                extra={"server": self.host, "username": credentials.username},
            )
            await self.close()
            raise InvalidCredentialsError(
                "Authentication failed",
                details={
                    "server": self.host,
                    "response": response_text(response.lines),
                },
            )

        self._state = SessionState.AUTHENTICATED
        logger.info(
            "IMAP connection established",
            extra={
                "server": self.host,
                "duration_seconds": round(time.time() - start_time, 2),
            },
        )

    async def select_mailbox(self, name: str) -> int:
        """SELECT a mailbox and return its message count.

        Raises:
            MailboxError: If the mailbox is missing or cannot be selected, or
                the session has not logged in yet
            SessionError: If the session is broken or closed
        """
        if self._state in (SessionState.DISCONNECTED, SessionState.CONNECTED):
            raise MailboxError(
                f"Cannot select mailbox {name}: not logged in",
                details={"mailbox": name, "state": self._state.value},
            )
        client = self._require(
            "select mailbox", SessionState.AUTHENTICATED, SessionState.MAILBOX_SELECTED
        )

        try:
            response = await asyncio.wait_for(
                client.select(name), timeout=self.command_timeout
            )
        except Exception as e:
            self._mark_broken("select", e)
            raise MailboxError(
                f"IMAP error selecting mailbox {name}: {type(e).__name__}",
                details={"mailbox": name},
            ) from e

        if response.result != IMAPResponse.OK:
            # a failed SELECT leaves no mailbox selected
            self._state = SessionState.AUTHENTICATED
            self.mailbox = None
            self.total_count = None
            raise MailboxError(
                f"Failed to select mailbox: {name}",
                details={"mailbox": name, "response": response_text(response.lines)},
            )

        count = parse_exists(response.lines)
        if count is None:
            error = MailboxError(
                f"Server sent no message count for {name}",
                details={"mailbox": name},
            )
            self._mark_broken("select", error)
            raise error

        self.mailbox = name
        self.total_count = count
        self._state = SessionState.MAILBOX_SELECTED
        logger.debug(f"Selected IMAP mailbox: {name}", extra={"exists": count})
        return count

    def _validate_range(self, fetch_range: Optional[FetchRange]) -> FetchRange:
        if not self.total_count:
            raise FetchError(
                "Nothing to fetch: mailbox is empty",
                details={"mailbox": self.mailbox},
            )
        if fetch_range is None:
            raise FetchError("No fetch range given", details={"mailbox": self.mailbox})
        if fetch_range.low < 1 or fetch_range.high > self.total_count:
            raise FetchError(
                f"Fetch range {fetch_range} outside 1:{self.total_count}",
                details={"range": str(fetch_range), "total": self.total_count},
            )
        return fetch_range

    @async_log_call
    async def fetch_range(self, fetch_range: Optional[FetchRange]) -> List[RawMessage]:
        """FETCH every message in the range.

        The range is checked against the selected mailbox before anything is
        sent. Messages are returned in whatever order the server sent them.

        Raises:
            FetchError: If the range is invalid or the fetch fails
            SessionError: If no mailbox is selected
        """
        client = self._require("fetch", SessionState.MAILBOX_SELECTED)
        fetch_range = self._validate_range(fetch_range)
        sequence_set = fetch_range.to_sequence_set()

        try:
            response = await asyncio.wait_for(
                client.fetch(sequence_set, FETCH_ITEMS),
                timeout=self.command_timeout,
            )
        except Exception as e:
            self._mark_broken("fetch", e)
            raise FetchError(
                f"IMAP fetch error: {type(e).__name__}",
                details={"range": sequence_set},
            ) from e

        if response.result != IMAPResponse.OK:
            raise FetchError(
                f"FETCH failed for {sequence_set}",
                details={"range": sequence_set, "response": response_text(response.lines)},
            )

        messages = [m for m in parse_fetch_response(response.lines) if m.seq in fetch_range]

        logger.debug(
            "Fetched messages",
            extra={"requested": len(fetch_range), "received": len(messages)},
        )
        if len(messages) < len(fetch_range):
            missing = set(range(fetch_range.low, fetch_range.high + 1)) - {
                m.seq for m in messages
            }
            logger.warning(
                "Some messages could not be fetched",
                extra={"missing_seqs": sorted(missing)},
            )

        return messages

    async def mark_seen(self, uid: int) -> bool:
        """Set \\Seen on the server for one message. Best effort.

        Returns:
            True if the server accepted the STORE, False otherwise
        """
        if self._state is not SessionState.MAILBOX_SELECTED or self._client is None:
            logger.debug(f"Skipping read sync, session is {self._state.value}")
            return False

        try:
            response = await asyncio.wait_for(
                self._client.uid("store", str(uid), "+FLAGS", f"({IMAPFlags.SEEN})"),
                timeout=Timeouts.IMAP_STORE,
            )
        except Exception as e:
            self._mark_broken("store", e)
            return False

        if response.result != IMAPResponse.OK:
            logger.warning(
                "Server refused to store read flag",
                extra={"uid": uid, "response": response_text(response.lines)},
            )
            return False
        return True

    def _release(self) -> None:
        """Drop the underlying connection without raising."""
        client, self._client = self._client, None
        if client is None:
            return

        protocol = getattr(client, "protocol", None)
        transport = getattr(protocol, "transport", None)
        if transport is not None:
            try:
                transport.close()
            except Exception as e:
                logger.debug(f"Error closing IMAP transport: {e}")

    @async_log_call
    async def close(self) -> None:
        """Log out and release the connection. Never raises."""
        if self._state is SessionState.CLOSED:
            return

        client = self._client
        if client is not None and self._state is not SessionState.BROKEN:
            try:
                await asyncio.wait_for(client.logout(), timeout=Timeouts.IMAP_LOGOUT)
                logger.debug("IMAP session logged out")
            except Exception as e:
                logger.debug(f"Error logging out of IMAP session: {e}")

        self._release()
        self._state = SessionState.CLOSED
        self.mailbox = None

    ## Context Manager Helpers

    async def __aenter__(self):
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        await self.close()
