"""
Tests for invite auto-join and its backoff schedule.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from relaybot.config import InviteConfig
from relaybot.exceptions import InviteJoinError
from relaybot.integrations.matrix.components.invites import (
    BackoffPolicy,
    InviteHandler,
    InviteState,
    PendingInvite,
)
from tests.conftest import ALICE_ID, BOT_USER_ID, R1

EXPECTED_DELAYS = [2, 4, 8, 16, 32, 64, 128, 256, 512, 1024, 2048]


@pytest.fixture
def fake_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def handler(mock_chat_client, fake_sleep) -> InviteHandler:
    return InviteHandler(mock_chat_client, sleep=fake_sleep)


class TestBackoffPolicy:

    def test_default_schedule_doubles_until_cap(self):
        assert list(BackoffPolicy().delays()) == EXPECTED_DELAYS

    def test_from_config(self):
        policy = BackoffPolicy.from_config(
            InviteConfig(initial_delay=1, backoff_factor=3, max_delay=10)
        )
        assert list(policy.delays()) == [1, 3, 9]


class TestInviteFiltering:

    def test_invite_for_someone_else_is_ignored(self, handler):
        assert not handler.should_accept(R1, ALICE_ID, "invite")

    def test_non_invite_membership_is_ignored(self, handler):
        assert not handler.should_accept(R1, BOT_USER_ID, "join")

    def test_room_not_in_invited_state_is_ignored(self, handler, mock_chat_client):
        mock_chat_client.is_invited.return_value = False
        assert not handler.should_accept(R1, BOT_USER_ID, "invite")

    def test_invite_for_bot_is_accepted(self, handler):
        assert handler.should_accept(R1, BOT_USER_ID, "invite")

    @pytest.mark.asyncio
    async def test_ignored_invite_has_no_side_effects(self, handler, mock_chat_client):
        await handler.on_invite(R1, ALICE_ID, "invite")
        await handler.wait_idle()

        mock_chat_client.accept_invite.assert_not_awaited()
        assert handler.invites == {}


class TestJoinWithRetry:

    @pytest.mark.asyncio
    async def test_joins_on_first_attempt(self, handler, mock_chat_client, fake_sleep):
        invite = await handler.join_with_retry(PendingInvite(room_id=R1))

        assert invite.state == InviteState.JOINED
        assert invite.attempts == 1
        mock_chat_client.accept_invite.assert_awaited_once_with(R1)
        fake_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_until_join_succeeds(self, handler, mock_chat_client, fake_sleep):
        mock_chat_client.accept_invite.side_effect = [
            InviteJoinError(R1, "M_FORBIDDEN"),
            InviteJoinError(R1, "M_FORBIDDEN"),
            InviteJoinError(R1, "M_FORBIDDEN"),
            None,
        ]

        invite = await handler.join_with_retry(PendingInvite(room_id=R1))

        assert invite.state == InviteState.JOINED
        assert invite.attempts == 4
        assert [call.args[0] for call in fake_sleep.await_args_list] == [2, 4, 8]

    @pytest.mark.asyncio
    async def test_abandons_once_next_delay_exceeds_cap(self, handler, mock_chat_client, fake_sleep):
        mock_chat_client.accept_invite.side_effect = InviteJoinError(R1, "M_FORBIDDEN")

        invite = await handler.join_with_retry(PendingInvite(room_id=R1))

        assert invite.state == InviteState.ABANDONED
        assert invite.delays == EXPECTED_DELAYS
        assert [call.args[0] for call in fake_sleep.await_args_list] == EXPECTED_DELAYS
        assert invite.attempts == len(EXPECTED_DELAYS) + 1
        assert mock_chat_client.accept_invite.await_count == invite.attempts
        assert invite.last_error == "M_FORBIDDEN"
        assert all(delay <= 3600 for delay in invite.delays)

    @pytest.mark.asyncio
    async def test_abandonment_is_logged(self, handler, mock_chat_client, caplog):
        mock_chat_client.accept_invite.side_effect = InviteJoinError(R1, "M_FORBIDDEN")

        with caplog.at_level("ERROR"):
            await handler.join_with_retry(PendingInvite(room_id=R1))

        assert f"Can't join room {R1}" in caplog.text


class TestBackgroundJoins:

    @pytest.mark.asyncio
    async def test_on_invite_joins_in_background(self, handler, mock_chat_client):
        await handler.on_invite(R1, BOT_USER_ID, "invite")
        await handler.wait_idle()

        assert handler.invites[R1].state == InviteState.JOINED
        mock_chat_client.accept_invite.assert_awaited_once_with(R1)

    @pytest.mark.asyncio
    async def test_backoff_does_not_block_caller(self, mock_chat_client):
        release = asyncio.Event()
        delays = []

        async def blocking_sleep(delay):
            delays.append(delay)
            await release.wait()

        mock_chat_client.accept_invite.side_effect = [InviteJoinError(R1, "not yet"), None]
        handler = InviteHandler(mock_chat_client, sleep=blocking_sleep)

        await asyncio.wait_for(handler.on_invite(R1, BOT_USER_ID, "invite"), timeout=1)
        for _ in range(5):
            await asyncio.sleep(0)

        assert delays == [2]
        assert handler.invites[R1].state == InviteState.JOINING

        # A repeated invite event while joining does not start a second join
        await handler.on_invite(R1, BOT_USER_ID, "invite")
        assert len(handler.invites) == 1

        release.set()
        await handler.wait_idle()

        assert handler.invites[R1].state == InviteState.JOINED
        assert mock_chat_client.accept_invite.await_count == 2

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending_joins(self, mock_chat_client):
        async def never_wake(delay):
            await asyncio.Event().wait()

        mock_chat_client.accept_invite.side_effect = InviteJoinError(R1, "not yet")
        handler = InviteHandler(mock_chat_client, sleep=never_wake)

        await handler.on_invite(R1, BOT_USER_ID, "invite")
        for _ in range(5):
            await asyncio.sleep(0)

        await asyncio.wait_for(handler.shutdown(), timeout=1)

        assert handler.invites[R1].state == InviteState.JOINING
        assert mock_chat_client.accept_invite.await_count == 1
