"""
Global test configuration and fixtures.
"""

from typing import Dict, Optional
from unittest.mock import AsyncMock, Mock

import pytest
from nio import MatrixRoom

from relaybot.exceptions import RoomResolutionError
from relaybot.integrations.matrix.client import ChatClient
from relaybot.integrations.matrix.components.routing import RoomPair, RoutingTable, build_routing_table
from relaybot.integrations.matrix.models import DirectorySearchResult, DiscoveredRoomCandidate

BOT_USER_ID = "@relaybot:example.org"
BOT_USERNAME = "relaybot"
ALICE_ID = "@alice:example.org"

R1 = "!r1:example.org"
R2 = "!r2:example.org"
UNLINKED = "!unlinked:example.org"


def make_room(room_id: str) -> Mock:
    """Create a mock Matrix room handle."""
    room = Mock(spec=MatrixRoom)
    room.room_id = room_id
    return room


def directory(*rooms, has_more: bool = False) -> DirectorySearchResult:
    """Build a directory search result from (room_id, name) tuples."""
    return DirectorySearchResult(
        matches=[DiscoveredRoomCandidate(room_id=room_id, name=name) for room_id, name in rooms],
        has_more=has_more,
    )


@pytest.fixture
def rooms() -> Dict[str, Mock]:
    """Rooms known to the mock client's local state."""
    return {room_id: make_room(room_id) for room_id in (R1, R2, UNLINKED)}


@pytest.fixture
def display_names() -> Dict[str, Optional[str]]:
    return {ALICE_ID: "Alice", BOT_USER_ID: BOT_USERNAME}


@pytest.fixture
def mock_chat_client(rooms, display_names) -> Mock:
    """Provide a mocked ChatClient with common return values."""
    client = Mock(spec=ChatClient)
    client.user_id = BOT_USER_ID

    client.login = AsyncMock()
    client.sync_once = AsyncMock(return_value="s1_token")
    client.sync_forever = AsyncMock()
    client.find_public_rooms = AsyncMock(return_value=directory())
    client.accept_invite = AsyncMock()
    client.send_text = AsyncMock(return_value="$sent_event")
    client.close = AsyncMock()

    client.add_invite_callback = Mock()
    client.add_message_callback = Mock()
    client.is_invited = Mock(return_value=True)

    def resolve(room_id):
        if room_id not in rooms:
            raise RoomResolutionError(room_id)
        return rooms[room_id]

    client.resolve_local_room = Mock(side_effect=resolve)
    client.get_member_display_name = Mock(
        side_effect=lambda room_id, user_id: display_names.get(user_id)
    )
    return client


@pytest.fixture
def routing_table(mock_chat_client) -> RoutingTable:
    """R1 <-> R2 linked."""
    return build_routing_table(mock_chat_client, [RoomPair(R1, R2)])
