"""
Exception types for keyshare.

Protocol and business errors in the HKP layer are returned as responses,
not raised. These exceptions cover the collaborators underneath it.
"""


class KeyshareError(Exception):
    """Base class for keyshare errors."""


class KeyStoreError(KeyshareError):
    """The key backend could not list or export keys."""


class TransportError(KeyshareError):
    """The HKP server could not bind or serve."""


class DiscoveryError(KeyshareError):
    """The DNS-SD provider rejected an operation."""
