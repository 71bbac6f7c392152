"""
Main entry point for the relay bot.

Usage:
    relaybot <homeserver_url> <username> <password>
    python -m relaybot <homeserver_url> <username> <password>
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from relaybot.config import AppConfig, settings, validate_homeserver_url
from relaybot.exceptions import ConfigurationError, RelayBotBaseException
from relaybot.integrations.matrix import RelayObserver
from relaybot.utils.logging_config import get_logger, setup_logging

logger = logging.getLogger(__name__)


class UsageArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that prints usage and exits with status 1 on bad arguments."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


class RelayBotApp:
    """Runs the relay observer until the process is told to stop."""

    def __init__(self, homeserver: str, username: str, password: str, config: Optional[AppConfig] = None):
        self.config = config or settings
        self.observer = RelayObserver(homeserver, username, password, config=self.config)
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self.stop)
            except (NotImplementedError, RuntimeError):
                # Not available on this platform or outside the main thread
                logger.debug(f"Signal handler for {signum} not installed")

    async def run(self) -> int:
        """Start the bot and sync until stopped. Returns the process exit code."""
        self._install_signal_handlers()

        try:
            await self.observer.start()
        except RelayBotBaseException as e:
            logger.error(f"Startup failed: {e}")
            await self.observer.disconnect()
            return 1

        sync_task = asyncio.create_task(self.observer.run_forever())
        stop_task = asyncio.create_task(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait(
                {sync_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if sync_task in done and sync_task.exception() is not None:
                logger.error(f"Sync loop stopped: {sync_task.exception()}")
                return 1
            logger.info("Shutting down relay bot...")
            return 0
        finally:
            for task in (sync_task, stop_task):
                task.cancel()
            await asyncio.gather(sync_task, stop_task, return_exceptions=True)
            logger.info(f"Final status: {self.observer.get_status_info()}")
            await self.observer.disconnect()


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = UsageArgumentParser(
        prog="relaybot",
        description="Matrix relay bot - links shadow rooms to their counterparts and relays messages",
    )
    parser.add_argument("homeserver_url", help="Homeserver URL, e.g. https://matrix.example.org")
    parser.add_argument("username", help="Bot account username")
    parser.add_argument("password", help="Bot account password")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration",
    )
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = parse_arguments(argv)

    if args.log_level:
        settings.log_level = args.log_level
    setup_logging(settings.log_level, settings.log_format, settings.log_file)

    try:
        homeserver = validate_homeserver_url(args.homeserver_url)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    log = get_logger(__name__).bind(homeserver=homeserver, username=args.username)
    log.info("starting relay bot")

    app = RelayBotApp(homeserver, args.username, args.password, settings)
    exit_code = await app.run()
    log.info("relay bot stopped", exit_code=exit_code)
    return exit_code


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
