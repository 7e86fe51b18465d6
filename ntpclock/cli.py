#!/usr/bin/env python3
"""
NTP Clock - Command Line

Displays NTP-synchronized time until interrupted.

Usage:
    ntp-clock                          # Default servers, UTC
    ntp-clock -s time.nist.gov:123     # Custom server (repeatable)
    ntp-clock -t -5 --show-stats       # EST display with sync statistics
    ntp-clock -c clock.json            # Load settings from JSON
"""

import os
import sys
import signal
import threading
import argparse
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from ntpclock import __version__
from ntpclock.clock import Clock, SyncStats, start_background_refresh
from ntpclock.config import ClockConfig, setup_logging

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "NTPCLOCK_LOG"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ntp-clock",
        description="Display time synchronized from NTP servers",
    )
    parser.add_argument("-i", "--interval", type=int, help="NTP update interval in seconds (default 10)")
    parser.add_argument("-d", "--display-interval", type=int, help="Display interval in seconds (default 1)")
    parser.add_argument("-s", "--server", action="append", default=[],
                        help="Custom NTP server host:port (can be specified multiple times)")
    parser.add_argument("-t", "--timezone-offset", type=int,
                        help="Timezone offset in hours (e.g., -5 for EST, 0 for UTC)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--show-stats", action="store_true", help="Show statistics")
    parser.add_argument("-c", "--config", metavar="PATH", help="JSON configuration file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> ClockConfig:
    """Merge a config file (if any) with command-line flags. Flags win."""
    config = ClockConfig.load(args.config) if args.config else ClockConfig()

    if args.server:
        config.servers = list(args.server)
    if args.interval is not None:
        config.sync_interval_sec = args.interval
    if args.display_interval is not None:
        config.display_interval_sec = args.display_interval
    if args.timezone_offset is not None:
        config.timezone_offset_hours = args.timezone_offset
    if args.show_stats:
        config.show_stats = True
    if args.verbose:
        config.log.level = "DEBUG"

    env_level = os.environ.get(LOG_LEVEL_ENV)
    if env_level:
        config.log.level = env_level

    return config


def format_time_line(
    current: datetime,
    timezone_offset_hours: int,
    stats: Optional[SyncStats] = None
) -> str:
    """Render one display line. The offset only shifts what is printed."""
    adjusted = current + timedelta(hours=timezone_offset_hours)
    line = f"Time (UTC{timezone_offset_hours:+d}): {adjusted.strftime(TIME_FORMAT)}"
    if stats is not None:
        line += (
            f" | Syncs: {stats.successful_syncs}/{stats.total_attempts}"
            f" ({stats.success_rate():.1f}% success)"
        )
    return line


def install_signal_handlers(shutdown: threading.Event) -> None:
    """Set the shutdown event on SIGINT/SIGTERM."""
    def signal_handler(sig, frame):
        logger.info("Received shutdown signal")
        shutdown.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def run(config: ClockConfig, shutdown: threading.Event) -> int:
    """Run the clock and display loop until shutdown is set."""
    clock = Clock(
        config.ntp_servers,
        timeout=config.timeout_sec,
        max_drift_ms=config.max_drift_ms,
    )
    start_background_refresh(clock, config.sync_interval_sec, shutdown)

    while not shutdown.wait(config.display_interval_sec):
        stats = clock.get_stats() if config.show_stats else None
        print(format_time_line(clock.current_time(), config.timezone_offset_hours, stats), flush=True)

    logger.info("Shutting down gracefully")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
    except (OSError, ValueError, TypeError) as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        return 2

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Configuration error: {error}", file=sys.stderr)
        return 2

    setup_logging(config.log)

    logger.info("Starting NTP-synchronized clock")
    logger.info(
        f"Configuration: interval={config.sync_interval_sec}s, "
        f"display_interval={config.display_interval_sec}s, "
        f"timezone_offset={config.timezone_offset_hours}h"
    )

    shutdown = threading.Event()
    try:
        install_signal_handlers(shutdown)
    except (ValueError, OSError) as e:
        logger.error(f"Failed to install signal handlers: {e}")
        return 1

    return run(config, shutdown)


if __name__ == "__main__":
    sys.exit(main())
