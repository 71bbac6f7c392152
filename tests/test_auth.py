"""
Tests for login retry handling.
"""

from unittest.mock import AsyncMock

import pytest

from relaybot.exceptions import AuthenticationError
from relaybot.integrations.matrix.components.auth import MatrixAuthHandler


@pytest.fixture
def fake_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def auth_handler(fake_sleep) -> MatrixAuthHandler:
    return MatrixAuthHandler("relaybot", "pw", sleep=fake_sleep)


@pytest.mark.asyncio
async def test_login_succeeds_first_time(auth_handler, mock_chat_client, fake_sleep):
    await auth_handler.login_with_retry(mock_chat_client)

    mock_chat_client.login.assert_awaited_once_with("pw")
    fake_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_rate_limit_waits_for_server_hint(auth_handler, mock_chat_client, fake_sleep):
    mock_chat_client.login.side_effect = [
        AuthenticationError("slow down", rate_limited=True, retry_after_ms=2500),
        None,
    ]

    await auth_handler.login_with_retry(mock_chat_client)

    assert mock_chat_client.login.await_count == 2
    fake_sleep.assert_awaited_once_with(2.5)


@pytest.mark.asyncio
async def test_rate_limit_without_hint_backs_off(auth_handler, mock_chat_client, fake_sleep):
    mock_chat_client.login.side_effect = [
        AuthenticationError("slow down", rate_limited=True),
        AuthenticationError("slow down", rate_limited=True),
        None,
    ]

    await auth_handler.login_with_retry(mock_chat_client)

    assert [call.args[0] for call in fake_sleep.await_args_list] == [5, 10]


@pytest.mark.asyncio
async def test_other_failures_are_not_retried(auth_handler, mock_chat_client, fake_sleep):
    mock_chat_client.login.side_effect = AuthenticationError("bad password")

    with pytest.raises(AuthenticationError, match="bad password"):
        await auth_handler.login_with_retry(mock_chat_client)

    assert mock_chat_client.login.await_count == 1
    fake_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(auth_handler, mock_chat_client, fake_sleep):
    mock_chat_client.login.side_effect = AuthenticationError("slow down", rate_limited=True)

    with pytest.raises(AuthenticationError):
        await auth_handler.login_with_retry(mock_chat_client, max_attempts=3)

    assert mock_chat_client.login.await_count == 3
    assert fake_sleep.await_count == 2
