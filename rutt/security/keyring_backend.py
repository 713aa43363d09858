"""System keyring backend"""

import asyncio
from typing import Optional

import keyring

from rutt.utils.logging import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "rutt"


class KeyringBackend:
    """Looks up app passwords in the system keyring."""

    def __init__(self, service: str = SERVICE_NAME):
        self.service = service

    async def retrieve(self, key: str) -> Optional[str]:
        """Retrieve from system keyring.

        Args:
            key (str): The account name the secret is stored under.

        Returns:
            Optional[str]: The secret, or None if not found or unavailable.
        """
        try:
            return await asyncio.to_thread(keyring.get_password, self.service, key)
        except Exception as e:
            logger.debug(f"Keyring lookup unavailable: {type(e).__name__}")
            return None

    async def store(self, key: str, value: str) -> None:
        """Store in system keyring.

        Args:
            key (str): The account name.
            value (str): The secret.
        """
        await asyncio.to_thread(keyring.set_password, self.service, key, value)
