"""
DNS-SD advertisement of the HKP service.

ServiceAdvertiser is the provider's listener. Every provider callback and
every start/stop call goes through ``transition`` in state.py; the effects
it returns are carried out here against the provider.
"""

import asyncio
import logging
from typing import Callable, Optional, Set

from ..errors import DiscoveryError
from .naming import alternate_name, compute_share_name
from .provider import DiscoveryListener, DiscoveryProvider, ZeroconfProvider
from .state import AdvertisementEvent, AdvertisementState, Effect, transition

logger = logging.getLogger(__name__)

HKP_SERVICE_TYPE = "_pgpkey-hkp._tcp."

# Seconds to wait before reconnecting after the responder went away
DEFAULT_RETRY_DELAY = 1.0

ERROR_HEADING = "Couldn't share keys"
ERROR_MESSAGE = "Can't publish discovery information on the network."

Notifier = Callable[[str, str], None]


def log_notifier(heading: str, message: str) -> None:
    """Default notifier: log the error."""
    logger.error(f"{heading}: {message}")


class ServiceAdvertiser(DiscoveryListener):
    """
    Publishes ``_pgpkey-hkp._tcp.`` for the HKP server's port.

    Name collisions are resolved by appending " #1", " #2", ... to the
    base name. A lost responder is reconnected after ``retry_delay``;
    any other failure is reported through ``notifier`` and the
    advertiser stays FAILED until stopped.

    Usage:
        advertiser = ServiceAdvertiser(port=11371)
        if advertiser.start():
            ...
        advertiser.stop()
    """

    def __init__(
        self,
        port: int,
        name: Optional[str] = None,
        provider_factory: Callable[[], DiscoveryProvider] = ZeroconfProvider,
        notifier: Notifier = log_notifier,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.port = port
        self.name_override = name
        self.provider_factory = provider_factory
        self.notifier = notifier
        self.retry_delay = retry_delay
        self._loop = loop

        self.state = AdvertisementState.DISCONNECTED
        self.base_name: Optional[str] = None
        self.alternate = 0
        self.provider: Optional[DiscoveryProvider] = None
        self._restart: Optional[asyncio.TimerHandle] = None
        self._closing: Set[asyncio.Task] = set()

    @property
    def name(self) -> Optional[str]:
        """The name currently being advertised."""
        if self.base_name is None:
            return None
        return alternate_name(self.base_name, self.alternate)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    # Public API ---------------------------------------------------------

    def start(self) -> bool:
        """
        Connect to the responder and begin publishing.

        Does nothing if already started. Returns False if the responder
        couldn't be reached; the advertiser is then DISCONNECTED.
        """
        self._dispatch(AdvertisementEvent.START)
        return self.state is not AdvertisementState.DISCONNECTED

    def stop(self) -> None:
        """Withdraw the advertisement. Safe in any state."""
        self._dispatch(AdvertisementEvent.STOP)

    async def wait_closed(self) -> None:
        """Wait until released providers have shut down."""
        if self._closing:
            await asyncio.gather(*list(self._closing))

    # DiscoveryListener --------------------------------------------------

    def client_running(self) -> None:
        self._dispatch(AdvertisementEvent.CLIENT_RUNNING)

    def client_collision(self) -> None:
        logger.info("mDNS host name collision, withdrawing service")
        self._dispatch(AdvertisementEvent.CLIENT_COLLISION)

    def client_failure(self, disconnected: bool, message: str) -> None:
        if disconnected:
            logger.debug(f"Lost mDNS responder: {message}")
            self._dispatch(AdvertisementEvent.CLIENT_DISCONNECTED)
        else:
            logger.warning(f"failure talking with mDNS responder: {message}")
            self._dispatch(AdvertisementEvent.CLIENT_FAILURE)

    def group_established(self) -> None:
        logger.info(f"Sharing keys as '{self.name}' on port {self.port}")
        self._dispatch(AdvertisementEvent.GROUP_ESTABLISHED)

    def group_collision(self) -> None:
        self._dispatch(AdvertisementEvent.GROUP_COLLISION)

    def group_failure(self, message: str) -> None:
        logger.warning(f"mDNS entry group failure: {message}")
        self._dispatch(AdvertisementEvent.GROUP_FAILURE)

    # State machine driver ----------------------------------------------

    def _dispatch(self, event: AdvertisementEvent) -> None:
        result = transition(self.state, event)
        logger.debug(f"Advertisement {self.state.value} --{event.value}--> {result.state.value}")
        self.state = result.state

        for effect in result.effects:
            try:
                self._apply(effect)
            except DiscoveryError as e:
                logger.warning(f"failed to register {HKP_SERVICE_TYPE} service: {e}")
                self._dispatch(self._failure_event(effect))
                return

    def _failure_event(self, effect: Effect) -> AdvertisementEvent:
        if effect is Effect.OPEN_CLIENT:
            return AdvertisementEvent.CONNECT_FAILED
        return AdvertisementEvent.GROUP_FAILURE

    def _apply(self, effect: Effect) -> None:
        if effect is Effect.RESET_NAME:
            self.alternate = 0
            if self.state is AdvertisementState.DISCONNECTED:
                self.base_name = None
            else:
                self.base_name = compute_share_name(self.name_override)

        elif effect is Effect.OPEN_CLIENT:
            self.provider = self.provider_factory()
            self.provider.open(self)

        elif effect is Effect.ENSURE_GROUP:
            if not self.provider.has_group:
                self.provider.create_group()

        elif effect is Effect.BUMP_NAME:
            self.alternate += 1
            logger.warning(f"naming collision trying new name: {self.name}")

        elif effect is Effect.REGISTER_SERVICE:
            self.provider.register(self.name, HKP_SERVICE_TYPE, self.port)

        elif effect is Effect.RESET_GROUP:
            if self.provider is not None and self.provider.has_group:
                self.provider.reset_group()

        elif effect is Effect.RELEASE:
            self._release()

        elif effect is Effect.NOTIFY_ERROR:
            self.notifier(ERROR_HEADING, ERROR_MESSAGE)

        elif effect is Effect.SCHEDULE_RESTART:
            self._cancel_restart()
            self._restart = self.loop.call_later(self.retry_delay, self._on_restart)

        elif effect is Effect.CANCEL_RESTART:
            self._cancel_restart()

    def _release(self) -> None:
        provider, self.provider = self.provider, None
        if provider is None:
            return
        if provider.has_group:
            provider.free_group()
        provider.close()

        # Drops out of _closing once torn down
        task = self.loop.create_task(provider.wait_closed())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    def _cancel_restart(self) -> None:
        if self._restart is not None:
            self._restart.cancel()
            self._restart = None

    def _on_restart(self) -> None:
        self._restart = None
        logger.debug("Reconnecting to mDNS responder")
        if not self.start():
            logger.warning("couldn't reconnect to mDNS responder")
