"""
Matrix Room Routing

RoomPair describes two rooms kept in sync; RoutingTable maps each linked room to the
live handle of its counterpart. The table is built once after the initial sync and
never mutated afterwards, so event handlers can read it without locking.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional

from nio import MatrixRoom

from ....exceptions import DuplicateLinkError
from ..client import ChatClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class RoomPair:
    """
    Two rooms relayed into each other. Order is informational only:
    RoomPair(a, b) == RoomPair(b, a). RoomPair(a, a) echoes a room into itself.
    """

    first: str
    second: str

    @property
    def members(self) -> FrozenSet[str]:
        return frozenset((self.first, self.second))

    @property
    def is_echo(self) -> bool:
        return self.first == self.second

    def counterpart(self, room_id: str) -> str:
        if room_id == self.first:
            return self.second
        if room_id == self.second:
            return self.first
        raise KeyError(room_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RoomPair):
            return NotImplemented
        return self.members == other.members

    def __hash__(self) -> int:
        return hash(self.members)

    def __repr__(self) -> str:
        return f"RoomPair({self.first!r} <-> {self.second!r})"


def find_overlapping_rooms(pairs: Iterable[RoomPair]) -> List[str]:
    """Room ids that appear in more than one distinct pair, sorted."""
    seen: Dict[str, RoomPair] = {}
    overlapping = set()
    for pair in pairs:
        for room_id in pair.members:
            previous = seen.get(room_id)
            if previous is not None and previous != pair:
                overlapping.add(room_id)
            seen[room_id] = pair
    return sorted(overlapping)


class RoutingTable(Mapping[str, MatrixRoom]):
    """Read-only, symmetric map from room id to the counterpart room handle."""

    def __init__(self, routes: Mapping[str, MatrixRoom], pairs: Iterable[RoomPair] = ()):
        self._routes = MappingProxyType({room_id: routes[room_id] for room_id in sorted(routes)})
        self._pairs = tuple(pairs)

    @classmethod
    def empty(cls) -> "RoutingTable":
        return cls({})

    @property
    def pairs(self) -> tuple:
        return self._pairs

    def destination_id(self, room_id: str) -> Optional[str]:
        """Room id of the counterpart, or None when the room is not linked."""
        handle = self._routes.get(room_id)
        return handle.room_id if handle is not None else None

    def __getitem__(self, room_id: str) -> MatrixRoom:
        return self._routes[room_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __repr__(self) -> str:
        links = ", ".join(f"{src} -> {dst.room_id}" for src, dst in self._routes.items())
        return f"RoutingTable({links})"


def build_routing_table(client: ChatClient, pairs: Iterable[RoomPair]) -> RoutingTable:
    """
    Resolve every room of every pair to its local handle and link both directions.

    Raises:
        DuplicateLinkError: If a room appears in more than one pair.
        RoomResolutionError: If a room is not known to the client (never joined).
    """
    pairs = list(dict.fromkeys(pairs))
    overlapping = find_overlapping_rooms(pairs)
    if overlapping:
        raise DuplicateLinkError(overlapping[0])

    routes: Dict[str, MatrixRoom] = {}
    for pair in pairs:
        logger.debug(f"RoutingTable: Fetching rooms for {pair}")
        first_room = client.resolve_local_room(pair.first)
        second_room = client.resolve_local_room(pair.second)
        routes[pair.first] = second_room
        routes[pair.second] = first_room

    table = RoutingTable(routes, pairs)
    logger.info(f"RoutingTable: Built with {len(pairs)} pair(s), {len(table)} route(s)")
    return table
