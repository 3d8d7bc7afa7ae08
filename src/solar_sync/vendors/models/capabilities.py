"""
Vendor adapter capabilities.
"""

from enum import Enum


class VendorCapability(Enum):
    """Optional operations an adapter may or may not implement."""
    LIST_PLANTS = "list_plants"
    LIST_PLANT = "list_plant"
    ALERTS = "get_alerts"
    ALERT_RESOLUTION_TIME = "alert_resolution_time"
    TELEMETRY = "get_telemetry"
    REALTIME = "get_realtime"

    def __str__(self) -> str:
        return self.value
