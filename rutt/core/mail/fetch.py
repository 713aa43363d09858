"""Mailbox fetch service - fills MailboxState from an IMAP session."""

import time
from datetime import datetime, timezone
from typing import Callable, Optional

from rutt.core.mail.decoder import MessageDecoder
from rutt.core.mail.imap.session import IMAPSession
from rutt.core.mail.range import compute_range
from rutt.core.mailbox.state import MailboxState
from rutt.core.models import MessageRecord
from rutt.security.credentials import Credentials
from rutt.utils.config import AppConfig
from rutt.utils.errors import SessionError
from rutt.utils.logging import async_log_call, get_logger


class MailboxService:
    """Connects, fetches the newest window of messages and keeps them loaded.

    The service owns the session; the state object is owned by the caller
    and passed in, so the UI and the service share it explicitly.
    """

    def __init__(
        self,
        config: AppConfig,
        credentials: Credentials,
        state: MailboxState,
        session_factory: Callable[..., IMAPSession] = IMAPSession,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.config = config
        self.credentials = credentials
        self.state = state
        self._session_factory = session_factory
        self._clock = clock
        self.session: Optional[IMAPSession] = None
        self.log = get_logger(__name__, mailbox=config.account.mailbox)

    @property
    def mailbox(self) -> str:
        return self.config.account.mailbox

    @async_log_call
    async def connect(self) -> int:
        """Open the session and select the configured mailbox.

        Returns:
            Message count reported by the server
        """
        account = self.config.account
        session = self._session_factory(
            account.imap_server,
            account.imap_port,
            connect_timeout=self.config.fetch.connect_timeout,
            command_timeout=self.config.fetch.command_timeout,
        )

        try:
            await session.connect(self.credentials)
            count = await session.select_mailbox(self.mailbox)
        except Exception:
            await session.close()
            raise

        self.session = session
        return count

    def _require_session(self) -> IMAPSession:
        if self.session is None:
            raise SessionError("Not connected", details={"operation": "refresh"})
        if not self.session.is_usable:
            raise SessionError(
                f"Session is {self.session.state.value}, reconnect to continue",
                details={"state": self.session.state.value},
            )
        return self.session

    @async_log_call
    async def refresh(self) -> int:
        """Fetch the newest window and load it into the state.

        The state is replaced only after the whole batch decoded; a failed
        fetch leaves it untouched and the error propagates.

        Returns:
            Number of messages loaded
        """
        session = self._require_session()
        start_time = time.time()

        fetch_range = compute_range(session.total_count or 0, self.config.fetch.window_size)
        if fetch_range is None:
            self.log.info("Mailbox is empty")
            self.state.load([])
            return 0

        raw_messages = await session.fetch_range(fetch_range)
        records = MessageDecoder(fetched_at=self._clock()).decode_all(raw_messages)
        self.state.load(records)

        self.log.info(
            "Loaded messages",
            extra={
                "range": str(fetch_range),
                "loaded": len(records),
                "unread": self.state.unread_count,
                "duration_seconds": round(time.time() - start_time, 2),
            },
        )
        return len(records)

    async def reload(self) -> int:
        """Re-select the mailbox for a fresh count, then refresh."""
        session = self._require_session()
        await session.select_mailbox(self.mailbox)
        return await self.refresh()

    async def mark_selected_read(self) -> Optional[MessageRecord]:
        """Mark the selection read, mirroring it to the server if enabled."""
        record = self.state.mark_selected_read()
        if record is None:
            return None

        if self.config.features.sync_read_flags and record.uid is not None:
            session = self.session
            if session is not None and not await session.mark_seen(record.uid):
                self.log.warning("Read flag kept locally only", extra={"uid": record.uid})

        return record

    async def close(self) -> None:
        if self.session is not None:
            await self.session.close()
            self.session = None
