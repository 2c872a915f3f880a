"""
Start/stop ordering for key sharing.

The HKP server has to be listening before the advertisement is built,
since the advertised port is whatever the server bound.
"""

import logging
from typing import Callable, Optional

from ..errors import TransportError
from ..hkp.server import HKPServer
from .advertiser import ERROR_HEADING, ERROR_MESSAGE, Notifier, ServiceAdvertiser, log_notifier

logger = logging.getLogger(__name__)

AdvertiserFactory = Callable[[int], ServiceAdvertiser]


class SharingCoordinator:
    """
    Owns the HKP server and the DNS-SD advertiser.

    Usage:
        coordinator = SharingCoordinator(server, lambda port: ServiceAdvertiser(port))
        if await coordinator.start():
            ...
        await coordinator.stop()
    """

    def __init__(
        self,
        server: HKPServer,
        advertiser_factory: Optional[AdvertiserFactory] = None,
        notifier: Notifier = log_notifier,
    ):
        self.server = server
        self.advertiser_factory = advertiser_factory
        self.notifier = notifier
        self.advertiser: Optional[ServiceAdvertiser] = None

    @property
    def is_sharing(self) -> bool:
        return self.server.is_running

    async def start(self) -> bool:
        """
        Start serving and advertising keys.

        Returns:
            False if either part failed to start; nothing is left running
        """
        if not self.server.is_running:
            try:
                await self.server.listen()
            except TransportError as e:
                logger.error(f"Couldn't start HKP server: {e}")
                self.notifier(ERROR_HEADING, str(e))
                return False

        if self.advertiser_factory is None or self.advertiser is not None:
            return True

        advertiser = self.advertiser_factory(self.server.port)
        if not advertiser.start():
            await advertiser.wait_closed()
            await self.server.stop()
            self.notifier(ERROR_HEADING, ERROR_MESSAGE)
            return False

        self.advertiser = advertiser
        return True

    async def stop(self) -> None:
        """Stop advertising, then stop serving. Safe to call repeatedly."""
        advertiser, self.advertiser = self.advertiser, None
        if advertiser is not None:
            advertiser.stop()
            await advertiser.wait_closed()

        if self.server.is_running:
            await self.server.stop()
