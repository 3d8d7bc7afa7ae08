"""
Sync Configuration

Layered YAML configuration and the dataclasses the services read.

Layers, lowest precedence first:
1. Base file (``config/solar_sync_config.yaml``)
2. Local file next to it (``solar_sync_config_local.yaml``)
3. Override file (``override_config.yaml`` in the same directory, or an
   explicit path)
"""

import logging
from dataclasses import dataclass, field
from datetime import time
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .time_utils import IST

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "solar_sync_config.yaml"


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    return data or {}


def load_config(config_path: Optional[str] = None, override_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the layered configuration as a plain dict.

    Args:
        config_path: Base config file; defaults to the packaged config
        override_path: Optional explicit override file

    Returns:
        Merged configuration dictionary (empty if the base file is missing)
    """
    base_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not base_path.exists():
        logger.warning(f"Config file {base_path} not found, using defaults")
        return {}

    config = _read_yaml(base_path)

    local_path = base_path.with_name(base_path.name.replace('.yaml', '_local.yaml'))
    if local_path.exists():
        config = deep_merge(config, _read_yaml(local_path))
        logger.info(f"Applied local config layer {local_path}")

    override = Path(override_path) if override_path else base_path.with_name('override_config.yaml')
    if override.exists():
        config = deep_merge(config, _read_yaml(override))
        logger.info(f"Applied override config layer {override}")

    return config


def _parse_hhmm(value: Any, default: time) -> time:
    if value is None:
        return default
    if isinstance(value, time):
        return value
    hour, minute = str(value).split(':')
    return time(int(hour), int(minute))


@dataclass
class WorkingWindow:
    """Local-time window outside which scheduled syncs are skipped."""

    start: time = time(5, 0)
    end: time = time(20, 0)

    def contains(self, local_time: time) -> bool:
        return self.start <= local_time < self.end


@dataclass
class PipelineConfig:
    interval_minutes: int = 15
    vendor_window: int = 10
    enforce_working_window: bool = True

    @classmethod
    def from_yaml_config(cls, config_dict: Dict[str, Any], **defaults) -> 'PipelineConfig':
        values = {
            'interval_minutes': defaults.get('interval_minutes', 15),
            'vendor_window': defaults.get('vendor_window', 10),
            'enforce_working_window': defaults.get('enforce_working_window', True),
        }
        for key in values:
            if key in config_dict:
                values[key] = config_dict[key]
        return cls(**values)


@dataclass
class SyncConfig:
    """
    Configuration for the sync pipelines and their scheduler.

    Concurrency windows default to 10 vendors per window and 20 plants per
    nested telemetry window; batch writes are capped at 25 items.
    """

    plant: PipelineConfig = field(default_factory=PipelineConfig)
    telemetry: PipelineConfig = field(default_factory=PipelineConfig)
    alerts: PipelineConfig = field(
        default_factory=lambda: PipelineConfig(interval_minutes=30, enforce_working_window=False)
    )
    telemetry_plant_window: int = 20
    batch_size: int = 25
    working_window: WorkingWindow = field(default_factory=WorkingWindow)
    http_timeout_seconds: float = 30.0
    token_expiry_buffer_minutes: int = 5

    @classmethod
    def from_yaml_config(cls, config_dict: Dict[str, Any]) -> 'SyncConfig':
        """
        Create SyncConfig from the merged YAML dict.

        Args:
            config_dict: Full configuration dictionary (``sync`` and ``vendors`` sections)

        Returns:
            SyncConfig instance
        """
        sync = config_dict.get('sync', {}) or {}
        vendors = config_dict.get('vendors', {}) or {}
        window = sync.get('working_window', {}) or {}

        telemetry_section = sync.get('telemetry', {}) or {}

        return cls(
            plant=PipelineConfig.from_yaml_config(sync.get('plant', {}) or {}),
            telemetry=PipelineConfig.from_yaml_config(telemetry_section),
            alerts=PipelineConfig.from_yaml_config(
                sync.get('alerts', {}) or {},
                interval_minutes=30,
                enforce_working_window=False,
            ),
            telemetry_plant_window=telemetry_section.get('plant_window', 20),
            batch_size=sync.get('batch_size', 25),
            working_window=WorkingWindow(
                start=_parse_hhmm(window.get('start'), time(5, 0)),
                end=_parse_hhmm(window.get('end'), time(20, 0)),
            ),
            http_timeout_seconds=vendors.get('http_timeout_seconds', 30.0),
            token_expiry_buffer_minutes=vendors.get('token_expiry_buffer_minutes', 5),
        )

    def validate(self) -> tuple[bool, Optional[str]]:
        """
        Validate configuration.

        Returns:
            Tuple of (is_valid, error_message)
        """
        for name, pipeline in (('plant', self.plant), ('telemetry', self.telemetry), ('alerts', self.alerts)):
            if pipeline.vendor_window < 1:
                return False, f"{name} vendor_window must be at least 1"
            if pipeline.interval_minutes < 1:
                return False, f"{name} interval_minutes must be at least 1"

        if self.telemetry_plant_window < 1:
            return False, "telemetry plant_window must be at least 1"

        if not 1 <= self.batch_size <= 25:
            return False, "batch_size must be between 1 and 25"

        if self.working_window.start >= self.working_window.end:
            return False, "working_window start must be before end"

        if self.http_timeout_seconds <= 0:
            return False, "http_timeout_seconds must be positive"

        return True, None
