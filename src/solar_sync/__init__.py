"""
Solar Sync

Vendor synchronization subsystem for solar plant monitoring: pulls plant
metadata, production telemetry and fault alerts from the monitoring vendors
and keeps a deduplicated, normalized copy in storage.
"""

__version__ = "0.1.0"
