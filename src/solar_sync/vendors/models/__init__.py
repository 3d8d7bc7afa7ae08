"""
Models for the vendor adapter layer.

Credentials, normalized vendor records and cached tokens, independent of any
particular vendor's wire format.
"""

from .capabilities import VendorCapability
from .credentials import (
    VendorConfig,
    VendorCredentials,
    SolarmanCredentials,
    ShineMonitorCredentials,
    SolarDmCredentials,
    PvBlinkCredentials,
    FoxessCloudCredentials,
    parse_credentials,
)
from .vendor_data import VendorPlant, VendorAlert, TelemetryReading, RealtimeSnapshot, CachedToken

__all__ = [
    'VendorCapability',
    'VendorConfig',
    'VendorCredentials',
    'SolarmanCredentials',
    'ShineMonitorCredentials',
    'SolarDmCredentials',
    'PvBlinkCredentials',
    'FoxessCloudCredentials',
    'parse_credentials',
    'VendorPlant',
    'VendorAlert',
    'TelemetryReading',
    'RealtimeSnapshot',
    'CachedToken',
]
