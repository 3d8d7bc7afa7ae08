"""
Vendor Adapters

Vendor-specific implementations of the VendorAdapterPort. Each adapter
translates one vendor's authentication scheme and payloads into the
normalized vendor records.
"""

from .base_adapter import BaseVendorAdapter
from .solarman_adapter import SolarmanAdapter
from .shinemonitor_adapter import ShineMonitorAdapter
from .solardm_adapter import SolarDmAdapter
from .pvblink_adapter import PvBlinkAdapter
from .foxesscloud_adapter import FoxessCloudAdapter

__all__ = [
    'BaseVendorAdapter',
    'SolarmanAdapter',
    'ShineMonitorAdapter',
    'SolarDmAdapter',
    'PvBlinkAdapter',
    'FoxessCloudAdapter',
]
