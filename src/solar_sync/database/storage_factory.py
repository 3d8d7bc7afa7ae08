from typing import Any, Dict

from .sqlite_storage import SQLiteStorage
from .storage_interface import StorageConfig


class StorageFactory:
    """
    Factory for creating storage instances based on configuration.
    """

    @staticmethod
    def create_storage(config_dict: Dict[str, Any]) -> SQLiteStorage:
        """
        Create a storage instance from the ``data_storage`` section.

        Expected config structure:
        data_storage:
          database_storage:
            sqlite:
              path: str
          batch_size: int

        Raises:
            ValueError: If the resulting StorageConfig is invalid
        """
        storage_config = StorageConfig.from_yaml_config(config_dict or {})

        is_valid, error = storage_config.validate()
        if not is_valid:
            raise ValueError(f"Invalid storage configuration: {error}")

        return SQLiteStorage(storage_config)
