#!/usr/bin/env python3
"""
Sync Scheduler

Recurring triggers for the plant, telemetry and alert pipelines, plus the
``solar-sync`` command line entry point.

Each trigger checks the working window once, when it fires, runs its
pipeline to completion and raises SyncRunFailed when any vendor failed.
"""

import argparse
import asyncio
import logging
import signal
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .config import IST, PipelineConfig, SyncConfig, load_config
from .database.storage_factory import StorageFactory
from .database.storage_interface import StorageConnectionError
from .exceptions import SyncRunFailed
from .sync_base import SyncSummary
from .sync_orchestrator import SyncOrchestrator
from .time_utils import utcnow

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
PIPELINES = ('plants', 'telemetry', 'alerts')


def setup_logging(config: Dict[str, Any], logs_dir: Optional[Path] = None) -> None:
    """Configure root logging: a file under ``logs/`` plus the console."""
    logging_config = config.get('logging', {}) or {}
    level_name = str(logging_config.get('level', 'INFO')).upper()

    if logs_dir is None:
        logs_dir = Path(logging_config.get('directory', Path.cwd() / "logs"))
    logs_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(logs_dir / logging_config.get('file', 'solar_sync.log')),
            logging.StreamHandler()
        ]
    )


class SyncScheduler:
    """
    Fires the three sync pipelines on their intervals.

    Plant and telemetry syncs only run inside the working window (05:00 to
    20:00 Asia/Kolkata by default); alert sync runs around the clock.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        config: Optional[SyncConfig] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.orchestrator = orchestrator
        self.config = config or SyncConfig()
        self._clock = clock
        self.is_running = False
        self.last_summaries: Dict[str, SyncSummary] = {}

    def in_working_window(self) -> bool:
        local_now = self._clock().astimezone(IST)
        return self.config.working_window.contains(local_now.time())

    async def _trigger(
        self,
        name: str,
        pipeline: PipelineConfig,
        run: Callable[[], Awaitable[SyncSummary]]
    ) -> Optional[SyncSummary]:
        if pipeline.enforce_working_window and not self.in_working_window():
            window = self.config.working_window
            logger.info(
                f"Skipping {name} sync: outside working window "
                f"{window.start:%H:%M}-{window.end:%H:%M} IST"
            )
            return None

        logger.info(f"Starting scheduled {name} sync")
        summary = await run()
        self.last_summaries[name] = summary
        logger.info(f"{name.capitalize()} sync summary: {summary.to_dict()}")

        if summary.failed > 0:
            raise SyncRunFailed(summary)
        return summary

    async def run_plant_sync(self) -> Optional[SyncSummary]:
        return await self._trigger('plants', self.config.plant, self.orchestrator.sync_plants)

    async def run_telemetry_sync(self) -> Optional[SyncSummary]:
        return await self._trigger('telemetry', self.config.telemetry, self.orchestrator.sync_telemetry)

    async def run_alert_sync(self) -> Optional[SyncSummary]:
        return await self._trigger('alerts', self.config.alerts, self.orchestrator.sync_alerts)

    def _jobs(self) -> List[Tuple[str, int, Callable[[], Awaitable[Optional[SyncSummary]]]]]:
        return [
            ('plants', self.config.plant.interval_minutes, self.run_plant_sync),
            ('telemetry', self.config.telemetry.interval_minutes, self.run_telemetry_sync),
            ('alerts', self.config.alerts.interval_minutes, self.run_alert_sync),
        ]

    async def run_once(self, target: str = 'all') -> bool:
        """
        Run one pipeline (or all three) a single time.

        Returns:
            True if every run pipeline finished without vendor failures
        """
        jobs = [job for job in self._jobs() if target in ('all', job[0])]
        if not jobs:
            raise ValueError(f"Unknown pipeline '{target}', expected one of {PIPELINES + ('all',)}")

        ok = True
        for name, _, trigger in jobs:
            try:
                await trigger()
            except SyncRunFailed as e:
                logger.error(str(e))
                ok = False
        return ok

    def stop(self) -> None:
        self.is_running = False

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals gracefully"""
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        self.stop()

    async def run_forever(self, poll_seconds: float = 30.0) -> None:
        """Fire each trigger whenever its interval has elapsed, until stopped."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        self.is_running = True
        next_due = {name: time.monotonic() for name, _, _ in self._jobs()}
        logger.info("Starting sync scheduler loop...")

        while self.is_running:
            for name, interval_minutes, trigger in self._jobs():
                if not self.is_running or time.monotonic() < next_due[name]:
                    continue
                next_due[name] = time.monotonic() + interval_minutes * 60
                try:
                    await trigger()
                except SyncRunFailed as e:
                    logger.error(str(e))
                except StorageConnectionError as e:
                    logger.error(f"Storage unavailable during {name} sync: {e}")
                except Exception as e:
                    logger.error(f"Error in {name} sync: {e}")

            await asyncio.sleep(poll_seconds)

        logger.info("Sync scheduler stopped")


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description='Solar plant vendor synchronization',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the scheduler (plants/telemetry every 15 min, alerts every 30 min)
  solar-sync

  # Start with custom config
  solar-sync --config my_config.yaml

  # Run a single alert sync and exit
  solar-sync --once alerts
        """
    )

    parser.add_argument(
        '--config', '-c',
        default=None,
        help='Configuration file path (default: config/solar_sync_config.yaml)'
    )

    parser.add_argument(
        '--once',
        choices=PIPELINES + ('all',),
        default=None,
        help='Run the given pipeline once and exit'
    )

    return parser.parse_args(argv)


async def run(argv: Optional[List[str]] = None) -> int:
    """Build the scheduler from configuration and run it; returns the exit code."""
    args = parse_arguments(argv)

    if args.config and not Path(args.config).exists():
        print(f"Configuration file {args.config} not found!")
        return 1

    config = load_config(args.config)
    setup_logging(config)

    sync_config = SyncConfig.from_yaml_config(config)
    is_valid, error = sync_config.validate()
    if not is_valid:
        logger.error(f"Invalid sync configuration: {error}")
        return 1

    try:
        storage = StorageFactory.create_storage(config.get('data_storage', {}))
    except ValueError as e:
        logger.error(f"Failed to create storage: {e}")
        return 1

    if not await storage.connect():
        logger.error("Failed to connect to storage")
        return 1

    orchestrator = SyncOrchestrator(storage, sync_config)
    scheduler = SyncScheduler(orchestrator, sync_config)

    try:
        if args.once:
            return 0 if await scheduler.run_once(args.once) else 1
        await scheduler.run_forever()
        return 0
    except StorageConnectionError as e:
        logger.error(f"Storage unavailable: {e}")
        return 1
    finally:
        await orchestrator.close()
        await storage.disconnect()


def main(argv: Optional[List[str]] = None) -> int:
    try:
        return asyncio.run(run(argv))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
