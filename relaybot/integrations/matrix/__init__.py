"""
Matrix integration for the relay bot.
"""

from .observer import RelayObserver

__all__ = ["RelayObserver"]
