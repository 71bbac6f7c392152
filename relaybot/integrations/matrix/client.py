"""
Matrix Client Interface

The relay components only talk to the homeserver through ChatClient. NioChatClient
is the production implementation on top of matrix-nio; tests substitute doubles.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

import httpx
from nio import (
    AsyncClient,
    InviteMemberEvent,
    JoinResponse,
    LoginResponse,
    MatrixRoom,
    RoomMessageText,
    RoomSendResponse,
    SyncResponse,
)

from ...config import MatrixConfig, RelayConfig
from ...exceptions import (
    AuthenticationError,
    DirectoryError,
    InviteJoinError,
    MatrixIntegrationError,
    RelaySendError,
    RoomResolutionError,
)
from .models import (
    TEXT_MSGTYPE,
    DirectorySearchResult,
    DiscoveredRoomCandidate,
    InboundMessageEvent,
)

logger = logging.getLogger(__name__)

InviteCallback = Callable[[str, str, str], Awaitable[None]]
MessageCallback = Callable[[InboundMessageEvent], Awaitable[None]]

PUBLIC_ROOMS_PATH = "/_matrix/client/v3/publicRooms"


class ChatClient(ABC):
    """Operations the relay needs from a chat-protocol client."""

    @property
    @abstractmethod
    def user_id(self) -> Optional[str]:
        """Full user id of the logged-in account."""

    @abstractmethod
    async def login(self, password: str) -> None:
        """Authenticate; raises AuthenticationError on failure."""

    @abstractmethod
    async def sync_once(self) -> str:
        """Run the initial full-state sync and return the resumable cursor."""

    @abstractmethod
    async def sync_forever(self, since: Optional[str]) -> None:
        """Stream events to the registered callbacks until cancelled."""

    @abstractmethod
    def add_invite_callback(self, callback: InviteCallback) -> None:
        """Register `callback(room_id, target_user_id, membership)` for invites."""

    @abstractmethod
    def add_message_callback(self, callback: MessageCallback) -> None:
        """Register `callback(event)` for text room messages."""

    @abstractmethod
    async def find_public_rooms(self, filter_text: str) -> DirectorySearchResult:
        """Search the public room directory; raises DirectoryError on failure."""

    @abstractmethod
    def is_invited(self, room_id: str) -> bool:
        """Whether the room is in the invited, not yet joined state."""

    @abstractmethod
    async def accept_invite(self, room_id: str) -> None:
        """Join an invited room; raises InviteJoinError on failure."""

    @abstractmethod
    async def send_text(self, room_id: str, body: str) -> str:
        """Send a plain-text message and return its event id; raises RelaySendError."""

    @abstractmethod
    def resolve_local_room(self, room_id: str) -> MatrixRoom:
        """Return the locally known room handle; raises RoomResolutionError."""

    @abstractmethod
    def get_member_display_name(self, room_id: str, user_id: str) -> Optional[str]:
        """Display name of a member, or None when unset or unknown."""

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""


class NioChatClient(ChatClient):
    """ChatClient backed by a matrix-nio AsyncClient."""

    def __init__(
        self,
        homeserver: str,
        username: str,
        matrix_config: Optional[MatrixConfig] = None,
        relay_config: Optional[RelayConfig] = None,
        client: Optional[AsyncClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.homeserver = homeserver
        self.username = username
        self.matrix_config = matrix_config or MatrixConfig()
        self.relay_config = relay_config or RelayConfig()
        self.client = client or AsyncClient(
            homeserver, username, store_path=self.matrix_config.store_path
        )
        self.http = http_client or httpx.AsyncClient(
            base_url=homeserver, timeout=self.matrix_config.request_timeout
        )

    @property
    def user_id(self) -> Optional[str]:
        return self.client.user_id

    async def login(self, password: str) -> None:
        try:
            response = await self.client.login(
                password, device_name=self.matrix_config.device_name
            )
        except Exception as e:
            raise AuthenticationError(f"Login request to {self.homeserver} failed: {e}") from e

        if not isinstance(response, LoginResponse):
            status_code = getattr(response, "status_code", None)
            raise AuthenticationError(
                f"Login failed: {response}",
                rate_limited=status_code == "M_LIMIT_EXCEEDED",
                retry_after_ms=getattr(response, "retry_after_ms", None),
            )
        logger.info(f"NioChatClient: Logged in as {response.user_id} (device {response.device_id})")

    async def sync_once(self) -> str:
        response = await self.client.sync(
            timeout=self.matrix_config.sync_timeout_ms, full_state=True
        )
        if not isinstance(response, SyncResponse):
            raise MatrixIntegrationError(f"Initial sync failed: {response}")
        logger.debug(f"NioChatClient: Initial sync complete, next_batch={response.next_batch}")
        return response.next_batch

    async def sync_forever(self, since: Optional[str]) -> None:
        await self.client.sync_forever(
            timeout=self.matrix_config.sync_timeout_ms, since=since
        )

    def add_invite_callback(self, callback: InviteCallback) -> None:
        async def _on_invite(room: MatrixRoom, event: InviteMemberEvent) -> None:
            await callback(room.room_id, event.state_key, event.membership)

        self.client.add_event_callback(_on_invite, InviteMemberEvent)

    def add_message_callback(self, callback: MessageCallback) -> None:
        async def _on_message(room: MatrixRoom, event: RoomMessageText) -> None:
            content = event.source.get("content", {}) if isinstance(event.source, dict) else {}
            await callback(
                InboundMessageEvent(
                    event_id=event.event_id,
                    room_id=room.room_id,
                    sender=event.sender,
                    body=event.body,
                    msgtype=content.get("msgtype", TEXT_MSGTYPE),
                )
            )

        self.client.add_event_callback(_on_message, RoomMessageText)

    async def find_public_rooms(self, filter_text: str) -> DirectorySearchResult:
        try:
            response = await self.http.post(
                PUBLIC_ROOMS_PATH,
                json={"filter": {"generic_search_term": filter_text}},
                headers={"Authorization": f"Bearer {self.client.access_token}"},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DirectoryError(filter_text, e) from e

        matches = [
            DiscoveredRoomCandidate(room_id=chunk["room_id"], name=chunk.get("name"))
            for chunk in payload.get("chunk", [])
            if "room_id" in chunk
        ]
        return DirectorySearchResult(
            matches=matches, has_more=bool(payload.get("next_batch"))
        )

    def is_invited(self, room_id: str) -> bool:
        return room_id in self.client.invited_rooms

    async def accept_invite(self, room_id: str) -> None:
        try:
            response = await self.client.join(room_id)
        except Exception as e:
            raise InviteJoinError(room_id, str(e)) from e
        if not isinstance(response, JoinResponse):
            raise InviteJoinError(room_id, str(response))

    async def send_text(self, room_id: str, body: str) -> str:
        content = {"msgtype": TEXT_MSGTYPE, "body": body}
        try:
            response = await asyncio.wait_for(
                self.client.room_send(
                    room_id=room_id,
                    message_type="m.room.message",
                    content=content,
                    ignore_unverified_devices=True,
                ),
                timeout=self.relay_config.send_timeout,
            )
        except asyncio.TimeoutError as e:
            raise RelaySendError(
                room_id, e, f"Send timed out after {self.relay_config.send_timeout}s"
            ) from e
        except Exception as e:
            raise RelaySendError(room_id, e) from e

        if not isinstance(response, RoomSendResponse):
            raise RelaySendError(room_id, response)
        return response.event_id

    def resolve_local_room(self, room_id: str) -> MatrixRoom:
        room = self.client.rooms.get(room_id)
        if room is None:
            raise RoomResolutionError(room_id)
        return room

    def get_member_display_name(self, room_id: str, user_id: str) -> Optional[str]:
        room = self.client.rooms.get(room_id)
        if room is None:
            return None
        member = room.users.get(user_id)
        if member is None:
            return None
        return member.display_name or None

    async def close(self) -> None:
        await self.http.aclose()
        await self.client.close()
