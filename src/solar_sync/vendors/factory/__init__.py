"""
Vendor Adapter Factory

Factory for creating vendor adapter instances from vendor records.
"""

from .vendor_factory import VendorAdapterFactory

__all__ = ['VendorAdapterFactory']
