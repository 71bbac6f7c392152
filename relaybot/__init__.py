"""
Relaybot - a Matrix bot that links pairs of rooms and relays messages between them.

This package provides:
- Invite auto-join with capped exponential backoff
- Discovery of linked rooms from the public room directory
- A frozen, bidirectional routing table between linked rooms
- Message relay with sender attribution and loop prevention
- An extensible "!"-prefixed command registry
"""

__version__ = "0.1.0"
__author__ = "Relaybot Team"
