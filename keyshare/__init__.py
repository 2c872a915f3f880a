"""
keyshare - share OpenPGP public keys on the local network

Serves your public keys over HKP and advertises the server with DNS-SD
(``_pgpkey-hkp._tcp``) so peers can find it without configuration.

Example:
    >>> from keyshare import GnuPGKeyStore, HKPDispatcher, HKPServer, ServiceAdvertiser, SharingCoordinator
    >>> server = HKPServer(HKPDispatcher(GnuPGKeyStore()))
    >>> coordinator = SharingCoordinator(server, lambda port: ServiceAdvertiser(port))
    >>> await coordinator.start()
"""

__version__ = "1.0.0"

from .config import Config, get_config
from .hkp import HKPDispatcher, HKPResponse, HKPServer
from .keys import GnuPGKeyStore, KeyRecord, KeyStore
from .sharing import ServiceAdvertiser, SharingCoordinator

__all__ = [
    "__version__",
    "Config",
    "get_config",
    "HKPDispatcher",
    "HKPResponse",
    "HKPServer",
    "GnuPGKeyStore",
    "KeyRecord",
    "KeyStore",
    "ServiceAdvertiser",
    "SharingCoordinator",
]
