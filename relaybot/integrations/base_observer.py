#!/usr/bin/env python3
"""
Base Observer

Provides a minimal common interface for platform observers: lifecycle and status
tracking shared by anything that holds a live connection to a chat platform.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ObserverStatus(Enum):
    """Observer connection status enumeration"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class BaseObserver(ABC):
    """
    Base class for platform observers.
    """

    def __init__(self, integration_id: str, display_name: str):
        self.integration_id = integration_id
        self.display_name = display_name
        self._status = ObserverStatus.DISCONNECTED
        self._last_error: Optional[str] = None

    @property
    def status(self) -> ObserverStatus:
        """Get current observer status"""
        return self._status

    @property
    def last_error(self) -> Optional[str]:
        """Get the last error message"""
        return self._last_error

    @abstractmethod
    async def start(self) -> None:
        """Connect to the platform and get ready to handle events."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from the platform."""
        pass

    def _set_status(self, status: ObserverStatus, error: Optional[str] = None) -> None:
        """
        Set observer status and error state.

        Args:
            status: New status
            error: Optional error message
        """
        old_status = self._status
        self._status = status
        self._last_error = error

        if status != old_status:
            logger.debug(f"{self.display_name}: Status changed from {old_status.value} to {status.value}")

        if error:
            logger.error(f"{self.display_name}: Error - {error}")

    def get_status_info(self) -> Dict[str, Any]:
        """
        Get status information.

        Returns:
            Dict containing status and last error
        """
        return {
            "integration_id": self.integration_id,
            "display_name": self.display_name,
            "status": self._status.value,
            "last_error": self._last_error,
        }
