"""
Custom Exception Classes

This module defines custom exceptions for the relay bot
to provide better error handling and debugging information.
"""

from typing import Optional


class RelayBotBaseException(Exception):
    """Base exception for the relay bot application."""

    pass


class ConfigurationError(RelayBotBaseException):
    """Raised for configuration problems."""

    pass


class MatrixIntegrationError(RelayBotBaseException):
    """Raised for errors specific to Matrix integration."""

    pass


class AuthenticationError(MatrixIntegrationError):
    """Raised when logging in to the homeserver fails."""

    def __init__(self, message: str, rate_limited: bool = False, retry_after_ms: Optional[int] = None):
        self.rate_limited = rate_limited
        self.retry_after_ms = retry_after_ms
        super().__init__(message)


class DirectoryError(MatrixIntegrationError):
    """Raised when a public room directory query fails."""

    def __init__(self, search_term: str, original_error: Exception):
        self.search_term = search_term
        self.original_error = original_error
        super().__init__(
            f"Directory search for '{search_term}' failed: {original_error}"
        )


class InviteJoinError(MatrixIntegrationError):
    """Raised when accepting a room invitation fails."""

    def __init__(self, room_id: str, reason: str):
        self.room_id = room_id
        self.reason = reason
        super().__init__(f"Failed to join room {room_id}: {reason}")


class RoomResolutionError(MatrixIntegrationError):
    """Raised when a room id is not known to the local client state."""

    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Room {room_id} is not known locally (not joined?)")


class RelaySendError(MatrixIntegrationError):
    """Raised when sending a message to a room fails."""

    def __init__(
        self,
        room_id: str,
        original_error: object,
        message: Optional[str] = None,
    ):
        self.room_id = room_id
        self.original_error = original_error
        details = f"Error sending to room {room_id}: {original_error}"
        if message:
            super().__init__(f"{message} - Details: {details}")
        else:
            super().__init__(details)


class DiscoveryError(RelayBotBaseException):
    """Raised when linked rooms cannot be discovered."""

    pass


class DuplicateLinkError(DiscoveryError):
    """Raised when a room would be linked to more than one counterpart."""

    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Room {room_id} appears in more than one room pair")
