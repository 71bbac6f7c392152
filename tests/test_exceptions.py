"""
Tests for the exception hierarchy.
"""

import pytest

from relaybot.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DirectoryError,
    DiscoveryError,
    DuplicateLinkError,
    InviteJoinError,
    MatrixIntegrationError,
    RelayBotBaseException,
    RelaySendError,
    RoomResolutionError,
)


class TestHierarchy:

    @pytest.mark.parametrize("exc_class", [
        AuthenticationError,
        DirectoryError,
        InviteJoinError,
        RoomResolutionError,
        RelaySendError,
    ])
    def test_matrix_errors(self, exc_class):
        assert issubclass(exc_class, MatrixIntegrationError)
        assert issubclass(exc_class, RelayBotBaseException)

    def test_discovery_errors(self):
        assert issubclass(DuplicateLinkError, DiscoveryError)
        assert issubclass(DiscoveryError, RelayBotBaseException)
        assert issubclass(ConfigurationError, RelayBotBaseException)


class TestMessages:

    def test_authentication_error(self):
        error = AuthenticationError("Login failed", rate_limited=True, retry_after_ms=500)

        assert str(error) == "Login failed"
        assert error.rate_limited
        assert error.retry_after_ms == 500

    def test_directory_error(self):
        original = RuntimeError("502 Bad Gateway")
        error = DirectoryError("(Tor)", original)

        assert error.search_term == "(Tor)"
        assert error.original_error is original
        assert str(error) == "Directory search for '(Tor)' failed: 502 Bad Gateway"

    def test_invite_join_error(self):
        error = InviteJoinError("!r:x", "M_FORBIDDEN")

        assert error.reason == "M_FORBIDDEN"
        assert str(error) == "Failed to join room !r:x: M_FORBIDDEN"

    def test_room_resolution_error(self):
        assert str(RoomResolutionError("!r:x")) == "Room !r:x is not known locally (not joined?)"

    def test_relay_send_error(self):
        assert str(RelaySendError("!r:x", "M_FORBIDDEN")) == "Error sending to room !r:x: M_FORBIDDEN"

    def test_relay_send_error_with_message(self):
        error = RelaySendError("!r:x", "timeout", "Send timed out after 30s")

        assert str(error) == "Send timed out after 30s - Details: Error sending to room !r:x: timeout"

    def test_duplicate_link_error(self):
        error = DuplicateLinkError("!r:x")

        assert error.room_id == "!r:x"
        assert "more than one room pair" in str(error)
