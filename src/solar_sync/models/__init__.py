"""
Domain models shared by the sync pipelines and the storage layer.
"""

from .vendor import Vendor, VendorType
from .plant import Plant, PlantLocation, NewPlant, PlantUpdate
from .alert import Alert, NewAlert, AlertSeverity, AlertStatus

__all__ = [
    'Vendor',
    'VendorType',
    'Plant',
    'PlantLocation',
    'NewPlant',
    'PlantUpdate',
    'Alert',
    'NewAlert',
    'AlertSeverity',
    'AlertStatus',
]
