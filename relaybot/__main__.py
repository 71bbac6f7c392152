"""
Allow the relaybot package to be executed as a module.

This enables running the bot with:
    python -m relaybot <homeserver_url> <username> <password>
"""

from relaybot.main import run

if __name__ == "__main__":
    run()
