"""
Matrix Authentication Handler

Handles logging the relay account in, retrying only when the homeserver rate limits us.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from ....exceptions import AuthenticationError
from ..client import ChatClient

logger = logging.getLogger(__name__)


class MatrixAuthHandler:
    """Handles Matrix authentication."""

    def __init__(
        self,
        username: str,
        password: str,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.username = username
        self.password = password
        self._sleep = sleep

    async def login_with_retry(self, client: ChatClient, max_attempts: int = 3) -> None:
        """Attempt login with retry logic and rate limit handling."""
        for attempt in range(max_attempts):
            try:
                logger.info(f"MatrixAuthHandler: Login attempt {attempt + 1} for {self.username}")
                await client.login(self.password)
                logger.info(f"MatrixAuthHandler: Logged in as {client.user_id}")
                return

            except AuthenticationError as login_error:
                if not login_error.rate_limited or attempt == max_attempts - 1:
                    logger.error(f"MatrixAuthHandler: Login attempt {attempt + 1} failed: {login_error}")
                    raise

                if login_error.retry_after_ms:
                    delay = login_error.retry_after_ms / 1000
                else:
                    delay = min(60, 2 ** attempt * 5)  # Cap at 60 seconds
                logger.warning(
                    f"MatrixAuthHandler: Rate limited on attempt {attempt + 1}. "
                    f"Waiting {delay}s before retry..."
                )
                await self._sleep(delay)
