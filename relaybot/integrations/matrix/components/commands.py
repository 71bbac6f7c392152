"""
Relay Bot Command Dispatcher

Messages starting with the command prefix are bot commands, not chat. Commands live in
an open registry so new ones can be added without touching the dispatcher.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .routing import RoutingTable

logger = logging.getLogger(__name__)


@dataclass
class CommandContext:
    """Context information for command execution"""
    command: str
    args: str
    room_id: str
    sender_id: str
    sender_name: str
    routing_table: RoutingTable = field(default_factory=RoutingTable.empty)


CommandHandler = Callable[[CommandContext], Awaitable[Optional[str]]]


@dataclass
class RegisteredCommand:
    name: str
    handler: CommandHandler
    description: str = ""


class CommandDispatcher:
    """Maps command names to handlers and produces the reply text."""

    def __init__(self, prefix: str = "!", register_builtins: bool = True):
        self.prefix = prefix
        self.commands: Dict[str, RegisteredCommand] = {}
        if register_builtins:
            self.register("help", self._help_command, "List available commands")
            self.register("relay", self._relay_command, "Show which room this room is relayed to")

    def register(self, name: str, handler: CommandHandler, description: str = "") -> None:
        """Register a command handler, replacing any handler of the same name."""
        if name in self.commands:
            logger.warning(f"CommandDispatcher: Command '{name}' is already registered. Overwriting.")
        self.commands[name] = RegisteredCommand(name, handler, description)
        logger.debug(f"CommandDispatcher: Registered command '{name}'")

    def unregister(self, name: str) -> bool:
        return self.commands.pop(name, None) is not None

    def is_command(self, body: str) -> bool:
        return body.startswith(self.prefix)

    def parse(self, body: str) -> Tuple[str, str]:
        """Split "!name some args" into ("name", "some args")."""
        remainder = body[len(self.prefix):]
        parts = remainder.strip().split(None, 1)
        if not parts:
            return "", ""
        return parts[0], parts[1] if len(parts) > 1 else ""

    async def dispatch(self, context: CommandContext) -> Optional[str]:
        """Run the command in `context` and return the reply to post, if any."""
        registered = self.commands.get(context.command)
        if registered is None:
            logger.info(f"CommandDispatcher: Unknown command '{context.command}' from {context.sender_id}")
            return f"Command not found: {context.command}"

        logger.info(f"CommandDispatcher: Running '{context.command}' for {context.sender_id} in {context.room_id}")
        try:
            return await registered.handler(context)
        except Exception as e:
            logger.error(f"CommandDispatcher: Command '{context.command}' failed: {e}", exc_info=True)
            return f"Command failed: {context.command}"

    async def _help_command(self, context: CommandContext) -> str:
        lines: List[str] = ["Available commands:"]
        for name in sorted(self.commands):
            description = self.commands[name].description
            lines.append(f"{self.prefix}{name} - {description}" if description else f"{self.prefix}{name}")
        return "\n".join(lines)

    async def _relay_command(self, context: CommandContext) -> str:
        destination = context.routing_table.destination_id(context.room_id)
        if destination is None:
            return "This room is not linked"
        return f"This room is relayed to {destination}"
