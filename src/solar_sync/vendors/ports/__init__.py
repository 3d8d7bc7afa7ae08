"""
Port interfaces for the vendor adapter layer.
"""

from .vendor_adapter_port import VendorAdapterPort
from .token_store_port import TokenStore

__all__ = [
    'VendorAdapterPort',
    'TokenStore',
]
