"""
DNS-SD providers.

A provider owns the connection to the local mDNS responder and one record
group holding our service. It reports what happens through a listener
with six callbacks (see DiscoveryListener), always on the event loop.

ZeroconfProvider runs the python-zeroconf responder in-process.
"""

import asyncio
import logging
import socket
from abc import ABC, abstractmethod
from typing import List, Optional, Set

import ifaddr
from zeroconf import (
    Error as ZeroconfError,
    IPVersion,
    NonUniqueNameException,
    NotRunningException,
    ServiceInfo,
)
from zeroconf.asyncio import AsyncZeroconf

from ..errors import DiscoveryError

logger = logging.getLogger(__name__)


class DiscoveryListener(ABC):
    """Receives provider state changes."""

    @abstractmethod
    def client_running(self) -> None:
        """The provider is up; records can be registered."""

    @abstractmethod
    def client_collision(self) -> None:
        """The host name itself collided; published records were dropped."""

    @abstractmethod
    def client_failure(self, disconnected: bool, message: str) -> None:
        """The provider failed. ``disconnected`` marks a transient loss."""

    @abstractmethod
    def group_established(self) -> None:
        """The record group was accepted on the network."""

    @abstractmethod
    def group_collision(self) -> None:
        """Another host already uses our service name."""

    @abstractmethod
    def group_failure(self, message: str) -> None:
        """The record group could not be published."""


class DiscoveryProvider(ABC):
    """Connection to a DNS-SD responder plus one record group."""

    @abstractmethod
    def open(self, listener: DiscoveryListener) -> None:
        """
        Connect to the responder.

        Raises:
            DiscoveryError: if the connection can't be made at all
        """

    @property
    @abstractmethod
    def has_group(self) -> bool:
        """Whether a record group currently exists."""

    @abstractmethod
    def create_group(self) -> None:
        """Create the record group. Raises DiscoveryError."""

    @abstractmethod
    def register(self, name: str, service_type: str, port: int) -> None:
        """Add our service to the group and commit it. Raises DiscoveryError."""

    @abstractmethod
    def reset_group(self) -> None:
        """Withdraw everything in the group but keep the group."""

    @abstractmethod
    def free_group(self) -> None:
        """Withdraw and drop the group."""

    @abstractmethod
    def close(self) -> None:
        """Drop the group and the connection. Never raises."""

    async def wait_closed(self) -> None:
        """Wait for any asynchronous teardown started by close()."""


def to_zeroconf_type(service_type: str) -> str:
    """``_pgpkey-hkp._tcp.`` -> ``_pgpkey-hkp._tcp.local.``"""
    if service_type.endswith(".local."):
        return service_type
    return service_type.rstrip(".") + ".local."


def _route_address() -> Optional[str]:
    """The IPv4 address used for outbound traffic, if there is a route."""
    try:
        # Connect a UDP socket to learn the route; nothing is sent
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.connect(("8.8.8.8", 80))
            return sock.getsockname()[0]
        finally:
            sock.close()
    except OSError:
        return None


def get_local_addresses() -> List[str]:
    """
    Non-loopback IPv4 addresses of this host, outbound route first.

    Interfaces are enumerated with ifaddr, so hosts on a LAN without a
    default route still get their addresses.
    """
    addresses: List[str] = []

    route = _route_address()
    if route and not route.startswith("127."):
        addresses.append(route)

    for adapter in ifaddr.get_adapters():
        for ip in adapter.ips:
            if not ip.is_IPv4 or ip.ip.startswith("127."):
                continue
            if ip.ip not in addresses:
                addresses.append(ip.ip)

    return addresses


class ZeroconfProvider(DiscoveryProvider):
    """
    DiscoveryProvider backed by python-zeroconf.

    zeroconf has no separate client state, so ``client_running`` is
    reported as soon as the responder is up. Registration runs the
    name probe as a task: NonUniqueNameException becomes a group
    collision, socket errors a disconnect, other zeroconf errors a
    group failure.
    """

    def __init__(self, ip_version: IPVersion = IPVersion.V4Only):
        self.ip_version = ip_version
        self._listener: Optional[DiscoveryListener] = None
        self._zeroconf: Optional[AsyncZeroconf] = None
        self._group = False
        self._info: Optional[ServiceInfo] = None
        self._tasks: Set[asyncio.Task] = set()
        self._closing: List[asyncio.Task] = []

    @property
    def has_group(self) -> bool:
        return self._group

    def open(self, listener: DiscoveryListener) -> None:
        try:
            self._zeroconf = AsyncZeroconf(ip_version=self.ip_version)
        except (OSError, ZeroconfError) as e:
            raise DiscoveryError(f"couldn't start mDNS responder: {e}") from e

        self._listener = listener
        asyncio.get_running_loop().call_soon(self._deliver, "client_running")

    def create_group(self) -> None:
        if self._zeroconf is None:
            raise DiscoveryError("not connected")
        self._group = True

    def register(self, name: str, service_type: str, port: int) -> None:
        if self._zeroconf is None or not self._group:
            raise DiscoveryError("no record group")

        zc_type = to_zeroconf_type(service_type)
        addresses = get_local_addresses()
        if not addresses:
            raise DiscoveryError("no usable network address to publish")

        try:
            info = ServiceInfo(
                zc_type,
                f"{name}.{zc_type}",
                port=port,
                properties={},
                server=f"{socket.gethostname()}.local.",
                parsed_addresses=addresses,
            )
        except ZeroconfError as e:
            raise DiscoveryError(f"invalid service record: {e}") from e

        self._spawn(self._register(info))

    def reset_group(self) -> None:
        self._cancel_tasks()
        if self._info is not None and self._zeroconf is not None:
            self._spawn(self._unregister(self._zeroconf, self._info))
        self._info = None

    def free_group(self) -> None:
        self.reset_group()
        self._group = False

    def close(self) -> None:
        self._cancel_tasks()
        self._listener = None
        self._group = False

        zeroconf, info = self._zeroconf, self._info
        self._zeroconf = None
        self._info = None
        if zeroconf is not None:
            task = asyncio.get_running_loop().create_task(self._shutdown(zeroconf, info))
            self._closing.append(task)

    async def wait_closed(self) -> None:
        closing, self._closing = self._closing, []
        if closing:
            await asyncio.gather(*closing, return_exceptions=True)

    def _deliver(self, callback: str, *args) -> None:
        # Nothing is delivered once closed
        if self._listener is None:
            return
        getattr(self._listener, callback)(*args)

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_tasks(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def _register(self, info: ServiceInfo) -> None:
        zeroconf = self._zeroconf
        if zeroconf is None:
            return
        try:
            broadcast = await zeroconf.async_register_service(info)
            await broadcast
        except NonUniqueNameException:
            logger.debug(f"Service name taken: {info.name}")
            self._deliver("group_collision")
        except NotRunningException as e:
            self._deliver("client_failure", True, str(e) or "mDNS responder stopped")
        except OSError as e:
            self._deliver("client_failure", True, str(e))
        except ZeroconfError as e:
            self._deliver("group_failure", str(e) or type(e).__name__)
        else:
            self._info = info
            self._deliver("group_established")

    async def _unregister(self, zeroconf: AsyncZeroconf, info: ServiceInfo) -> None:
        try:
            await zeroconf.async_unregister_service(info)
        except (OSError, ZeroconfError) as e:
            logger.debug(f"Unregistering {info.name} failed: {e}")

    async def _shutdown(self, zeroconf: AsyncZeroconf, info: Optional[ServiceInfo]) -> None:
        if info is not None:
            await self._unregister(zeroconf, info)
        try:
            await zeroconf.async_close()
        except (OSError, ZeroconfError) as e:
            logger.debug(f"Closing mDNS responder failed: {e}")
