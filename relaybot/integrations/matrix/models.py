"""
Matrix Relay Data Structures

Plain data records passed between the Matrix client adapter and the relay components.
"""

from dataclasses import dataclass, field
from typing import List, Optional

TEXT_MSGTYPE = "m.text"


@dataclass(frozen=True)
class InboundMessageEvent:
    """
    A room message delivered by the sync stream, reduced to what the relay needs.

    Attributes:
        event_id: Matrix event id of the message
        room_id: Room the message was posted in
        sender: Full Matrix user id of the author (@user:server)
        body: Plain-text body of the message
        msgtype: Matrix msgtype; only 'm.text' is relayed
    """

    event_id: str
    room_id: str
    sender: str
    body: str
    msgtype: str = TEXT_MSGTYPE

    @property
    def is_text(self) -> bool:
        return self.msgtype == TEXT_MSGTYPE


@dataclass(frozen=True)
class DiscoveredRoomCandidate:
    """A public room returned by a directory search."""

    room_id: str
    name: Optional[str] = None


@dataclass
class DirectorySearchResult:
    """One page of public directory results."""

    matches: List[DiscoveredRoomCandidate] = field(default_factory=list)
    # The server reported further pages (next_batch)
    has_more: bool = False
