"""Credential resolution for the IMAP login."""

import os
from dataclasses import dataclass, field
from typing import Optional

from pydantic import SecretStr

from rutt.utils.config import AccountConfig
from rutt.utils.errors import MissingCredentialsError
from rutt.utils.logging import get_logger

from .keyring_backend import KeyringBackend

logger = get_logger(__name__)

PASSWORD_ENV_VAR = "RUTT_APP_PASSWORD"


@dataclass(frozen=True)
class Credentials:
    """Username and app password for one account.

    The secret is kept as a ``SecretStr`` so that reprs and log lines never
    carry it.
    """

    username: str
    secret: SecretStr = field(repr=False)

    def reveal(self) -> str:
        return self.secret.get_secret_value()


class CredentialProvider:
    """Resolves the app password from config, environment, then keyring."""

    def __init__(self, keyring_backend: Optional[KeyringBackend] = None):
        self.keyring = keyring_backend or KeyringBackend()

    async def resolve(self, account: AccountConfig) -> Credentials:
        """Build credentials for an account.

        Raises:
            MissingCredentialsError: If the username or secret cannot be found
        """
        username = account.username.strip()
        if not username:
            raise MissingCredentialsError("No username configured for the account")

        if account.app_password is not None and account.app_password.get_secret_value():
            logger.debug("Using app password from configuration")
            return Credentials(username, account.app_password)

        env_secret = os.environ.get(PASSWORD_ENV_VAR)
        if env_secret:
            logger.debug(f"Using app password from {PASSWORD_ENV_VAR}")
            return Credentials(username, SecretStr(env_secret))

        stored = await self.keyring.retrieve(username)
        if stored:
            logger.debug("Using app password from system keyring")
            return Credentials(username, SecretStr(stored))

        raise MissingCredentialsError(
            "No app password found in config, environment or keyring",
            details={"username": username},
        )
