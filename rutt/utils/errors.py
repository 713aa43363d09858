"""Error hierarchy for rutt.

Every failure the user can see derives from ``RuttError``. Each class
carries a ``category`` and a ``user_message``; ``format_error_message``
turns any of them into the line the CLI prints.
"""

import builtins
from enum import Enum
from typing import Any, Dict, Optional

from rutt.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    MAILBOX = "mailbox"
    FETCH = "fetch"
    SESSION = "session"
    FILE_SYSTEM = "file_system"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class RuttError(Exception):
    """Base exception for all rutt errors.

    Args:
        message: What went wrong, for logs and the detail part of the
            user-facing line. Defaults to the class ``user_message``.
        details: Structured context (server, mailbox, range...). Never put
            credentials here.
    """

    category = ErrorCategory.UNKNOWN
    user_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.user_message
        self.details = dict(details or {})
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return dict(
            error_type=type(self).__name__,
            category=self.category.value,
            message=self.message,
            details=self.details,
        )


## Transport


class MailConnectionError(RuttError, builtins.ConnectionError):
    """DNS failure, refused connection, TLS failure or timeout."""

    category = ErrorCategory.NETWORK
    user_message = "Could not reach the mail server"


class NetworkTimeoutError(MailConnectionError):
    user_message = "The connection to the mail server timed out"


## Login


class AuthenticationError(RuttError):
    category = ErrorCategory.AUTHENTICATION
    user_message = "The mail server rejected the login"


class InvalidCredentialsError(AuthenticationError):
    """The server answered LOGIN with NO."""

    user_message = "Invalid username or app password"


class MissingCredentialsError(AuthenticationError):
    """No username, or no app password in config, environment or keyring."""

    user_message = "Mail credentials not configured"


## Mailbox and session


class MailboxError(RuttError):
    """Mailbox missing, inaccessible or refused by the server."""

    category = ErrorCategory.MAILBOX
    user_message = "The mailbox could not be opened"


class FetchError(RuttError):
    """Invalid fetch range or transport failure during FETCH."""

    category = ErrorCategory.FETCH
    user_message = "Failed to fetch messages"


class SessionError(RuttError):
    """Operation attempted in the wrong session state."""

    category = ErrorCategory.SESSION
    user_message = "The mail session is not usable"


## Local environment


class FileSystemError(RuttError):
    category = ErrorCategory.FILE_SYSTEM
    user_message = "Could not access a local file"


class ConfigurationError(RuttError):
    category = ErrorCategory.CONFIGURATION
    user_message = "Configuration problem"


class MissingConfigError(ConfigurationError):
    """A dotted config path does not exist."""

    user_message = "Unknown configuration setting"


class InvalidConfigError(ConfigurationError):
    """The config file is not JSON or does not match the schema."""

    user_message = "Invalid configuration file"


def log_error(error: Exception, context: str = "", log_traceback: bool = False) -> Dict[str, Any]:
    """Log a failure once, with its details, and return its dict form."""
    if isinstance(error, RuttError):
        payload = error.to_dict()
        logger.error(
            f"{context}: {payload['error_type']}: {error.message}",
            extra={"category": payload["category"], "details": error.details},
            exc_info=error if log_traceback else None,
        )
        return payload

    logger.error(
        f"{context}: {type(error).__name__}: {error}",
        exc_info=error if log_traceback else None,
    )
    return dict(
        error_type="UnknownError",
        category=ErrorCategory.UNKNOWN.value,
        message=str(error),
        details={"context": context},
    )


def format_error_message(error: Exception) -> str:
    """The single line shown to the user for a failure.

    Auth, network and mailbox failures each have their own wording; the
    specific message is appended when it adds something.
    """
    if not isinstance(error, RuttError):
        return "An unexpected error occurred - check logs for details."
    if error.message == error.user_message:
        return error.user_message
    return f"{error.user_message}: {error.message}"
