"""
Matrix Relay Observer

Owns the Matrix connection and the startup order the relay depends on:
login, invite handling, initial sync, room discovery, routing table, and only then the
message handler, so the table is complete and frozen before the first message arrives.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ...config import AppConfig, settings
from ...exceptions import DirectoryError, RelayBotBaseException
from ..base_observer import BaseObserver, ObserverStatus
from .client import ChatClient, NioChatClient
from .components.auth import MatrixAuthHandler
from .components.commands import CommandDispatcher
from .components.discovery import RoomDiscovery
from .components.invites import BackoffPolicy, InviteHandler
from .components.relay import RelayEngine
from .components.routing import RoomPair, RoutingTable, build_routing_table
from .models import InboundMessageEvent

logger = logging.getLogger(__name__)


class RelayObserver(BaseObserver):
    """Matrix observer that links rooms and relays messages between them."""

    def __init__(
        self,
        homeserver: str,
        username: str,
        password: str,
        config: Optional[AppConfig] = None,
        client: Optional[ChatClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__("matrix", "Matrix Relay")
        self.homeserver = homeserver
        self.username = username
        self.password = password
        self.config = config or settings
        self.client = client
        self._sleep = sleep

        self.invite_handler: Optional[InviteHandler] = None
        self.routing_table: RoutingTable = RoutingTable.empty()
        self.relay_engine: Optional[RelayEngine] = None
        self.dispatcher = CommandDispatcher(prefix=self.config.relay.command_prefix)
        self.sync_token: Optional[str] = None

    async def start(self) -> None:
        """
        Log in, sync, build the routing table and register handlers.

        Raises:
            RelayBotBaseException: Any startup failure; the bot must not run half-built.
        """
        self._set_status(ObserverStatus.CONNECTING)
        if self.client is None:
            self.client = NioChatClient(
                self.homeserver,
                self.username,
                matrix_config=self.config.matrix,
                relay_config=self.config.relay,
            )

        try:
            auth_handler = MatrixAuthHandler(self.username, self.password, sleep=self._sleep)
            await auth_handler.login_with_retry(self.client)

            # Invites arrive as stripped state during sync, so register before the first sync
            self.invite_handler = InviteHandler(
                self.client,
                policy=BackoffPolicy.from_config(self.config.invite),
                sleep=self._sleep,
            )
            self.client.add_invite_callback(self.invite_handler.on_invite)

            # The initial sync sets up room state without relaying old messages
            self.sync_token = await self.client.sync_once()

            pairs = await self._discover_with_retry()
            self.routing_table = build_routing_table(self.client, pairs)
            logger.info(f"RelayObserver: Two way map = {self.routing_table}")

            self.relay_engine = RelayEngine(
                self.client,
                self.routing_table,
                self.username,
                dispatcher=self.dispatcher,
            )
            self.client.add_message_callback(self._on_message)

        except RelayBotBaseException as e:
            self._set_status(ObserverStatus.ERROR, str(e))
            raise

        self._set_status(ObserverStatus.CONNECTED)
        logger.info("RelayObserver: Startup complete, relaying messages")

    async def _discover_with_retry(self) -> List[RoomPair]:
        """Run discovery, retrying directory failures with exponential backoff."""
        discovery = RoomDiscovery(self.client, self.config.relay)
        attempts = max(1, self.config.relay.discovery_attempts)
        attempt = 0
        while True:
            attempt += 1
            try:
                return await discovery.discover_mirrored_rooms()
            except DirectoryError as e:
                if attempt >= attempts:
                    logger.error(f"RelayObserver: Room discovery failed after {attempts} attempts: {e}")
                    raise
                delay = 2 ** (attempt - 1)
                logger.warning(
                    f"RelayObserver: Room discovery attempt {attempt} failed: {e}. "
                    f"Retrying in {delay}s..."
                )
                await self._sleep(delay)

    async def run_forever(self) -> None:
        """Stream events from the cursor left by the initial sync until cancelled."""
        if self.client is None or self.relay_engine is None:
            raise RuntimeError("RelayObserver must be started before running")
        await self.client.sync_forever(self.sync_token)

    async def _on_message(self, event: InboundMessageEvent) -> None:
        """Relay one event; a failure is logged and does not stop the sync loop."""
        try:
            await self.relay_engine.on_message(event)
        except RelayBotBaseException as e:
            logger.error(f"RelayObserver: Failed to handle message {event.event_id} in {event.room_id}: {e}")
        except Exception as e:
            logger.error(
                f"RelayObserver: Unexpected error handling message {event.event_id}: {e}",
                exc_info=True,
            )

    async def disconnect(self) -> None:
        """Cancel pending invite joins and close the client."""
        try:
            if self.invite_handler:
                await self.invite_handler.shutdown()
            if self.client:
                await self.client.close()
        except Exception as e:
            logger.error(f"RelayObserver: Error during disconnect: {e}")
        self._set_status(ObserverStatus.DISCONNECTED)
        logger.debug("RelayObserver: Disconnected successfully")

    def get_status_info(self) -> Dict[str, Any]:
        info = super().get_status_info()
        info.update({
            "linked_pairs": len(self.routing_table.pairs),
            "routes": len(self.routing_table),
            "pending_invites": sum(
                1 for invite in (self.invite_handler.invites.values() if self.invite_handler else [])
                if not invite.finished
            ),
        })
        return info
