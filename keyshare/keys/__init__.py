"""
Key access for keyshare.

Provides:
- KeyRecord and friends, the per-request key model
- KeyStore, the backend interface
- GnuPGKeyStore, the gpg-backed implementation
"""

from .models import KeyAlgorithm, KeyRecord, Signature, Subkey, UserId
from .store import GnuPGKeyStore, KeyStore

__all__ = [
    "KeyAlgorithm",
    "KeyRecord",
    "Signature",
    "Subkey",
    "UserId",
    "KeyStore",
    "GnuPGKeyStore",
]
