"""
Matrix Room Discovery

Finds "shadow" rooms in the public directory (rooms whose name ends with a tag such as
"(Tor)") and pairs each with the public room carrying the same name without the tag.
Anything uncertain is skipped with a warning rather than guessed.
"""

import logging
from typing import List, Optional

from ....config import RelayConfig
from ..client import ChatClient
from ..models import DiscoveredRoomCandidate
from .routing import RoomPair, find_overlapping_rooms

logger = logging.getLogger(__name__)


def strip_shadow_tag(name: Optional[str], tag: str) -> Optional[str]:
    """
    Counterpart name for a shadow room name, or None if the name is not tagged.

    "Foo (Tor)" -> "Foo"
    """
    if not name or not name.endswith(tag):
        return None
    counterpart = name[: -len(tag)].strip()
    return counterpart or None


class RoomDiscovery:
    """Discovers pairs of rooms to link from the public room directory."""

    def __init__(self, client: ChatClient, config: Optional[RelayConfig] = None):
        self.client = client
        self.config = config or RelayConfig()

    async def find_shadow_rooms(self) -> List[DiscoveredRoomCandidate]:
        """Directory search for rooms whose name ends with the shadow tag."""
        tag = self.config.shadow_tag
        logger.info(f"RoomDiscovery: Searching for rooms whose name contains '{tag}'")
        result = await self.client.find_public_rooms(tag)

        shadow_rooms = []
        for candidate in result.matches:
            if strip_shadow_tag(candidate.name, tag) is None:
                if candidate.name and candidate.name.endswith(tag):
                    logger.warning(f"RoomDiscovery: Room {candidate.room_id} is named only '{tag}', skipping")
                    continue
                logger.debug(f"RoomDiscovery: Ignoring {candidate.room_id} ({candidate.name!r}), not tagged '{tag}'")
                continue
            logger.info(f"RoomDiscovery: Found room {candidate.name!r} ({candidate.room_id})")
            shadow_rooms.append(candidate)

        if result.has_more:
            logger.warning(f"RoomDiscovery: More rooms tagged '{tag}' exist beyond the first page")
        return shadow_rooms

    async def find_counterpart(self, shadow: DiscoveredRoomCandidate) -> Optional[str]:
        """Room id of the untagged room matching a shadow room, or None if unsure."""
        counterpart_name = strip_shadow_tag(shadow.name, self.config.shadow_tag)
        if counterpart_name is None:
            logger.warning(f"RoomDiscovery: Cannot derive a counterpart name from {shadow.name!r}")
            return None

        logger.info(f"RoomDiscovery: Searching for rooms whose name is '{counterpart_name}'")
        result = await self.client.find_public_rooms(counterpart_name)

        if result.has_more or len(result.matches) > self.config.max_counterpart_matches:
            logger.warning(
                f"RoomDiscovery: Found too many rooms ({len(result.matches)}"
                f"{'+' if result.has_more else ''}) with substring '{counterpart_name}', skipping"
            )
            return None

        exact = [
            candidate.room_id
            for candidate in result.matches
            if candidate.name == counterpart_name and candidate.room_id != shadow.room_id
        ]
        if not exact:
            logger.info(f"RoomDiscovery: No room named exactly '{counterpart_name}', skipping {shadow.room_id}")
            return None
        if len(exact) > 1:
            logger.warning(
                f"RoomDiscovery: {len(exact)} rooms are named '{counterpart_name}', skipping {shadow.room_id}"
            )
            return None
        return exact[0]

    async def discover_mirrored_rooms(self) -> List[RoomPair]:
        """
        Validated (shadow, counterpart) pairs.

        Directory errors propagate; ambiguous matches are skipped. Pairs that would link a
        room to more than one counterpart are all rejected.
        """
        pairs: List[RoomPair] = []
        for shadow in await self.find_shadow_rooms():
            counterpart_id = await self.find_counterpart(shadow)
            if counterpart_id is not None:
                pairs.append(RoomPair(shadow.room_id, counterpart_id))

        pairs = list(dict.fromkeys(pairs))
        overlapping = set(find_overlapping_rooms(pairs))
        if overlapping:
            rejected = [pair for pair in pairs if pair.members & overlapping]
            for pair in rejected:
                logger.error(f"RoomDiscovery: Rejecting {pair}, a room in it is linked more than once")
            pairs = [pair for pair in pairs if not pair.members & overlapping]

        logger.info(f"RoomDiscovery: Room ID pairs = {pairs}")
        return pairs
