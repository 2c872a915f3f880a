"""
DNS-SD key sharing.

Provides:
- The advertisement state machine
- ServiceAdvertiser, which drives it against a discovery provider
- ZeroconfProvider, the python-zeroconf provider
- SharingCoordinator, which ties the advertiser to the HKP server
"""

from .advertiser import HKP_SERVICE_TYPE, ServiceAdvertiser
from .coordinator import SharingCoordinator
from .naming import compute_share_name
from .provider import DiscoveryListener, DiscoveryProvider, ZeroconfProvider
from .state import AdvertisementEvent, AdvertisementState, Effect, transition

__all__ = [
    "HKP_SERVICE_TYPE",
    "ServiceAdvertiser",
    "SharingCoordinator",
    "compute_share_name",
    "DiscoveryListener",
    "DiscoveryProvider",
    "ZeroconfProvider",
    "AdvertisementEvent",
    "AdvertisementState",
    "Effect",
    "transition",
]
