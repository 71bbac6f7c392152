"""
Matrix Relay Engine

Forwards text messages from a linked room to its counterpart as "{sender}: {body}".
Each inbound event produces at most one outbound send. Send failures propagate to the
caller and are never retried.
"""

import logging
from enum import Enum
from typing import Optional

from ..client import ChatClient
from ..models import InboundMessageEvent
from .commands import CommandContext, CommandDispatcher
from .routing import RoutingTable

logger = logging.getLogger(__name__)


class RelayOutcome(Enum):
    """What the engine did with one inbound event."""
    IGNORED_UNLINKED = "ignored_unlinked"
    IGNORED_NON_TEXT = "ignored_non_text"
    IGNORED_SELF = "ignored_self"
    COMMAND = "command"
    RELAYED = "relayed"


def format_relayed_body(sender_name: str, body: str) -> str:
    return f"{sender_name}: {body}"


class RelayEngine:
    """Routes messages between linked rooms."""

    def __init__(
        self,
        client: ChatClient,
        routing_table: RoutingTable,
        bot_username: str,
        dispatcher: Optional[CommandDispatcher] = None,
    ):
        self.client = client
        self.routing_table = routing_table
        self.bot_username = bot_username
        self.dispatcher = dispatcher or CommandDispatcher()

    def sender_name(self, event: InboundMessageEvent) -> str:
        """Member display name, falling back to the raw user id."""
        return self.client.get_member_display_name(event.room_id, event.sender) or event.sender

    def is_own_message(self, event: InboundMessageEvent, sender_name: str) -> bool:
        return sender_name == self.bot_username or event.sender == self.client.user_id

    async def on_message(self, event: InboundMessageEvent) -> RelayOutcome:
        if event.room_id not in self.routing_table:
            return RelayOutcome.IGNORED_UNLINKED

        if not event.is_text:
            logger.debug(f"RelayEngine: Ignoring {event.msgtype} event {event.event_id}")
            return RelayOutcome.IGNORED_NON_TEXT

        name = self.sender_name(event)
        if self.is_own_message(event, name):
            logger.debug(f"RelayEngine: Skipping own message {event.event_id} in {event.room_id}")
            return RelayOutcome.IGNORED_SELF

        if self.dispatcher.is_command(event.body):
            await self._handle_command(event, name)
            return RelayOutcome.COMMAND

        destination = self.routing_table[event.room_id]
        await self.client.send_text(destination.room_id, format_relayed_body(name, event.body))
        logger.info(f"RelayEngine: Relayed {event.event_id} from {event.room_id} to {destination.room_id}")
        return RelayOutcome.RELAYED

    async def _handle_command(self, event: InboundMessageEvent, sender_name: str) -> None:
        command, args = self.dispatcher.parse(event.body)
        context = CommandContext(
            command=command,
            args=args,
            room_id=event.room_id,
            sender_id=event.sender,
            sender_name=sender_name,
            routing_table=self.routing_table,
        )
        reply = await self.dispatcher.dispatch(context)
        if reply:
            await self.client.send_text(event.room_id, reply)
