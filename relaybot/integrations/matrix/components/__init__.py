"""
Matrix relay components package.

This package contains modular components for the Matrix relay:
- auth: Login with rate limit handling
- invites: Invite auto-join with backoff
- discovery: Public directory search for rooms to link
- routing: Room pairs and the frozen routing table
- relay: Message relay between linked rooms
- commands: Bot command registry and dispatch
"""
