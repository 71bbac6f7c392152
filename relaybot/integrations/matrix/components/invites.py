"""
Matrix Invite Handler

Accepts room invitations addressed to the relay account. Homeservers can advertise an
invite slightly before the invitee is allowed to join (synapse#4345), so joins are
retried with capped exponential backoff. Each join runs in its own task so a room that
is backing off never holds up the sync loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Set

from ....config import InviteConfig
from ....exceptions import InviteJoinError
from ..client import ChatClient

logger = logging.getLogger(__name__)


class InviteState(Enum):
    """Lifecycle of a single pending invite."""
    PENDING = "pending"
    JOINING = "joining"
    JOINED = "joined"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff: initial_delay, doubled each time, while not above max_delay."""

    initial_delay: float = 2.0
    factor: float = 2.0
    max_delay: float = 3600.0

    @classmethod
    def from_config(cls, config: InviteConfig) -> "BackoffPolicy":
        return cls(
            initial_delay=config.initial_delay,
            factor=config.backoff_factor,
            max_delay=config.max_delay,
        )

    def delays(self) -> Iterator[float]:
        delay = self.initial_delay
        while delay <= self.max_delay:
            yield delay
            delay *= self.factor


@dataclass
class PendingInvite:
    """State of the join attempts for one invited room."""

    room_id: str
    state: InviteState = InviteState.PENDING
    attempts: int = 0
    delays: List[float] = field(default_factory=list)
    last_error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.state in (InviteState.JOINED, InviteState.ABANDONED)


class InviteHandler:
    """Auto-joins rooms the bot is invited to."""

    def __init__(
        self,
        client: ChatClient,
        policy: Optional[BackoffPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.policy = policy or BackoffPolicy()
        self._sleep = sleep
        self.invites: Dict[str, PendingInvite] = {}
        self._tasks: Set[asyncio.Task] = set()

    def should_accept(self, room_id: str, target_user_id: str, membership: str) -> bool:
        """Whether an invite membership event is one this bot should act on."""
        if target_user_id != self.client.user_id:
            # the invite is for someone else
            return False
        if membership != "invite":
            return False
        if not self.client.is_invited(room_id):
            logger.debug(f"InviteHandler: Room {room_id} is not in the invited state, ignoring")
            return False
        existing = self.invites.get(room_id)
        if existing and existing.state == InviteState.JOINING:
            logger.debug(f"InviteHandler: Join already in progress for {room_id}")
            return False
        return True

    async def on_invite(self, room_id: str, target_user_id: str, membership: str) -> None:
        """Event callback: start a background join for invites addressed to us."""
        if not self.should_accept(room_id, target_user_id, membership):
            return

        invite = PendingInvite(room_id=room_id)
        self.invites[room_id] = invite
        task = asyncio.create_task(self.join_with_retry(invite))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def join_with_retry(self, invite: PendingInvite) -> PendingInvite:
        """Drive one invite from PENDING to JOINED or ABANDONED."""
        room_id = invite.room_id
        invite.state = InviteState.JOINING
        delays = self.policy.delays()
        logger.info(f"InviteHandler: Autojoining room {room_id}")

        while True:
            invite.attempts += 1
            try:
                await self.client.accept_invite(room_id)
            except InviteJoinError as e:
                invite.last_error = e.reason
                delay = next(delays, None)
                if delay is None:
                    invite.state = InviteState.ABANDONED
                    logger.error(
                        f"InviteHandler: Can't join room {room_id} after {invite.attempts} attempts ({e.reason})"
                    )
                    return invite

                logger.warning(
                    f"InviteHandler: Failed to join room {room_id} ({e.reason}), retrying in {delay}s"
                )
                invite.delays.append(delay)
                await self._sleep(delay)
                continue

            invite.state = InviteState.JOINED
            logger.info(f"InviteHandler: Successfully joined room {room_id}")
            return invite

    async def wait_idle(self) -> None:
        """Wait for every scheduled join to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel joins that are still backing off."""
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()
