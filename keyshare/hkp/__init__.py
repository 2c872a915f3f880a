"""
HKP (HTTP Keyserver Protocol) serving for keyshare.

Provides:
- PKS-compatible response formatting
- Request dispatch to a KeyStore
- The aiohttp transport
"""

from .dispatcher import HKPDispatcher, HKPResponse
from .server import HKPServer

__all__ = [
    "HKPDispatcher",
    "HKPResponse",
    "HKPServer",
]
