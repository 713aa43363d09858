"""Main CLI entry point - connect, fetch, browse."""

import argparse
import asyncio
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from rutt import __version__
from rutt.core.mail.fetch import MailboxService
from rutt.core.mailbox import MailboxState
from rutt.security import CredentialProvider
from rutt.security.keyring_backend import KeyringBackend
from rutt.utils.config import AppConfig, ConfigManager
from rutt.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    FetchError,
    MailboxError,
    MailConnectionError,
    RuttError,
    SessionError,
    format_error_message,
    log_error,
)
from rutt.utils.logging import get_logger, init_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_AUTH = 2
EXIT_NETWORK = 3
EXIT_MAILBOX = 4

HINTS = {
    AuthenticationError: "Check the username and app password (config, RUTT_APP_PASSWORD or keyring).",
    MailConnectionError: "Check your network connection and the imap_server/imap_port settings.",
    MailboxError: "Check the mailbox name in the account settings.",
}


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def setup_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rutt",
        description="Terminal mail reader - browse the newest messages of one IMAP mailbox.",
    )
    parser.add_argument(
        "--config",
        help="Path to the JSON config file (default: $RUTT_CONFIG or ~/.rutt/config.json)",
    )
    parser.add_argument(
        "--window",
        type=_positive_int,
        help="Number of newest messages to fetch (overrides fetch.window_size)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log at DEBUG level",
    )
    parser.add_argument(
        "--set-password",
        action="store_true",
        help="Store the account app password in the system keyring and exit",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def exit_code_for(error: Exception) -> int:
    """Map a terminal failure to a process exit code."""
    if isinstance(error, AuthenticationError):
        return EXIT_AUTH
    if isinstance(error, MailConnectionError):
        return EXIT_NETWORK
    if isinstance(error, (MailboxError, FetchError, SessionError)):
        return EXIT_MAILBOX
    return EXIT_ERROR


def report_error(error: Exception, console: Console) -> int:
    """Print a failure with its hint and return the exit code."""
    console.print(f"[red]Error: {escape(format_error_message(error))}[/red]")
    for error_type, hint in HINTS.items():
        if isinstance(error, error_type):
            console.print(f"[yellow]{hint}[/yellow]")
            break
    return exit_code_for(error)


async def store_password(config: AppConfig, console: Console) -> int:
    username = config.account.username.strip()
    if not username:
        console.print("[red]Set account.username in the config file first.[/red]")
        return EXIT_ERROR

    secret = Prompt.ask(f"App password for {username}", password=True, console=console)
    if not secret:
        console.print("[yellow]Nothing stored[/yellow]")
        return EXIT_ERROR

    try:
        await KeyringBackend().store(username, secret)
    except Exception as e:
        logger.error(f"Keyring store failed: {type(e).__name__}")
        console.print(f"[red]Could not store password in keyring: {type(e).__name__}[/red]")
        return EXIT_ERROR

    console.print(f"[green]App password stored for {username}[/green]")
    return EXIT_OK


async def run_client(config: AppConfig, console: Console) -> int:
    """Connect, load the newest window and hand over to the TUI.

    The session is closed on every exit path.
    """
    from rutt.tui import RuttApp

    try:
        credentials = await CredentialProvider().resolve(config.account)
    except RuttError as e:
        return report_error(e, console)

    service = MailboxService(config, credentials, MailboxState())

    try:
        with console.status(f"Connecting to {config.account.imap_server}..."):
            await service.connect()
        with console.status(f"Fetching {service.mailbox}..."):
            loaded = await service.refresh()
        logger.info(f"Fetched {loaded} emails")

        await RuttApp(service).run_async()
        return EXIT_OK

    except RuttError as e:
        log_error(e, "run_client")
        return report_error(e, console)

    finally:
        await service.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code
    """
    console = Console()
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    try:
        manager = ConfigManager(args.config)
        config = manager.config
        init_logging(
            "DEBUG" if args.debug else config.logging.log_level,
            log_to_file=config.logging.log_to_file,
            mask_strategy=config.logging.mask_strategy,
        )
        if args.window:
            manager.set_config("fetch.window_size", args.window, persist=False)

    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {escape(format_error_message(e))}[/red]")
        return EXIT_ERROR
    except RuttError as e:
        return report_error(e, console)

    try:
        if args.set_password:
            return asyncio.run(store_password(config, console))
        return asyncio.run(run_client(config, console))

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130  # Standard SIGINT exit code

    except Exception as e:
        logger.error(f"Fatal error: {type(e).__name__}: {e}")
        console.print(f"[red]Fatal error: {format_error_message(e)}[/red]")
        return EXIT_ERROR


if __name__ == "__main__":
    exit(main())
