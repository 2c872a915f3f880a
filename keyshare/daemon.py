"""
Main loop for the key sharing daemon.
"""

import asyncio
import logging
import signal
from typing import Optional

from .sharing.coordinator import SharingCoordinator

logger = logging.getLogger(__name__)

QUIT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SharingDaemon:
    """
    Runs a SharingCoordinator until SIGINT/SIGTERM or request_quit().

    A quit requested before the loop is entered skips waiting entirely;
    the coordinator is stopped on the same loop either way.
    """

    def __init__(self, coordinator: SharingCoordinator):
        self.coordinator = coordinator
        self.quit_requested = False
        self._quit_event: Optional[asyncio.Event] = None

    def request_quit(self) -> None:
        """Ask the daemon to shut down after the current callback."""
        self.quit_requested = True
        if self._quit_event is not None:
            self._quit_event.set()

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in QUIT_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_quit)
            except (NotImplementedError, RuntimeError):
                # Not available on this platform or off the main thread
                logger.debug(f"Can't trap {sig.name}")

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in QUIT_SIGNALS:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass

    async def run(self) -> int:
        """Share keys until asked to quit. Returns the exit status."""
        loop = asyncio.get_running_loop()
        self._quit_event = asyncio.Event()
        if self.quit_requested:
            self._quit_event.set()
        self._install_signal_handlers(loop)

        try:
            await self.coordinator.start()

            # Sometimes we've already been told to quit
            if not self.quit_requested:
                await self._quit_event.wait()
            logger.info("Shutting down")
        finally:
            await self.coordinator.stop()
            self._remove_signal_handlers(loop)

        return 0
