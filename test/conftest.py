"""
conftest.py

Shared fixtures for the solar_sync test suite.
"""

from pathlib import Path
import sys

# Ensure project `src/` is on sys.path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import os
import tempfile
from datetime import datetime, timezone

import pytest
import yaml

from solar_sync.database.alert_repository import SQLiteAlertRepository
from solar_sync.database.plant_repository import SQLitePlantRepository
from solar_sync.database.sqlite_storage import SQLiteStorage
from solar_sync.database.storage_interface import StorageConfig
from solar_sync.database.token_repository import SQLiteTokenStore
from solar_sync.database.vendor_repository import SQLiteVendorRepository

# 11:30 IST, inside both the working window and the productive window
FIXED_NOW = datetime(2026, 1, 15, 6, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def temp_db():
    """Create a temporary database file for tests."""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        db_path = f.name

    try:
        yield db_path
    finally:
        for suffix in ('', '-wal', '-shm'):
            try:
                os.unlink(db_path + suffix)
            except OSError:
                pass


@pytest.fixture
def storage_config(temp_db):
    """Common StorageConfig for DB-related tests."""
    return StorageConfig(
        db_path=temp_db,
        max_retries=3,
        retry_delay=0.05,
        connection_pool_size=5,
        batch_size=25,
    )


@pytest.fixture
async def storage(storage_config):
    """Create a connected SQLiteStorage instance."""
    s = SQLiteStorage(storage_config)
    assert await s.connect()
    yield s
    await s.disconnect()


@pytest.fixture
def vendor_repository(storage, clock):
    return SQLiteVendorRepository(storage, clock)


@pytest.fixture
def plant_repository(storage, clock):
    return SQLitePlantRepository(storage, clock)


@pytest.fixture
def alert_repository(storage, clock):
    return SQLiteAlertRepository(storage, clock)


@pytest.fixture
def token_store(storage, clock):
    return SQLiteTokenStore(storage, clock)


@pytest.fixture
def isolated_config(tmp_path):
    """
    Write an isolated YAML configuration file with standard test settings.

    Yields:
        Path to the temporary config file
    """
    test_config = {
        'sync': {
            'plant': {'interval_minutes': 15, 'vendor_window': 10},
            'telemetry': {'interval_minutes': 15, 'vendor_window': 10, 'plant_window': 20},
            'alerts': {'interval_minutes': 30, 'vendor_window': 5},
            'working_window': {'start': '05:00', 'end': '20:00'},
            'batch_size': 25,
        },
        'vendors': {'http_timeout_seconds': 10, 'token_expiry_buffer_minutes': 5},
        'data_storage': {
            'database_storage': {'sqlite': {'path': str(tmp_path / 'solar_sync.db')}},
        },
        'logging': {'level': 'DEBUG', 'directory': str(tmp_path / 'logs')},
    }
    config_path = tmp_path / 'solar_sync_config.yaml'
    with open(config_path, 'w') as f:
        yaml.dump(test_config, f)
    yield config_path
