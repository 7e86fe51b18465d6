"""
NTP Clock Configuration
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field, asdict
from typing import List, Optional

from ntpclock.constants import (
    DEFAULT_SYNC_INTERVAL_SEC,
    DEFAULT_DISPLAY_INTERVAL_SEC,
    NTP_QUERY_TIMEOUT_SEC,
    MAX_DRIFT_MS,
)
from ntpclock.errors import ClockError
from ntpclock.source import parse_server

logger = logging.getLogger(__name__)

# Real-world UTC offsets span UTC-12 to UTC+14
MIN_TIMEZONE_OFFSET_HOURS = -12
MAX_TIMEZONE_OFFSET_HOURS = 14


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_size_mb: int = 10
    backup_count: int = 3


@dataclass
class ClockConfig:
    """
    Complete clock configuration.

    Only servers, timeout and drift threshold reach the clock itself;
    the rest drives the command-line display.
    """
    servers: List[str] = field(default_factory=list)
    sync_interval_sec: int = DEFAULT_SYNC_INTERVAL_SEC
    display_interval_sec: int = DEFAULT_DISPLAY_INTERVAL_SEC
    timezone_offset_hours: int = 0
    timeout_sec: float = NTP_QUERY_TIMEOUT_SEC
    max_drift_ms: int = MAX_DRIFT_MS
    show_stats: bool = False
    log: LogConfig = field(default_factory=LogConfig)

    @property
    def ntp_servers(self) -> Optional[List[str]]:
        """Servers to pass to the clock, None for the defaults."""
        return list(self.servers) if self.servers else None

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for server in self.servers:
            try:
                parse_server(server)
            except ClockError as e:
                errors.append(e.message)

        if self.sync_interval_sec < 1:
            errors.append("sync_interval_sec must be at least 1")

        if self.display_interval_sec < 1:
            errors.append("display_interval_sec must be at least 1")

        if not (MIN_TIMEZONE_OFFSET_HOURS <= self.timezone_offset_hours <= MAX_TIMEZONE_OFFSET_HOURS):
            errors.append(f"Invalid timezone offset: {self.timezone_offset_hours}")

        if self.timeout_sec <= 0:
            errors.append("timeout_sec must be positive")

        if self.max_drift_ms < 0:
            errors.append("max_drift_ms cannot be negative")

        if self.log.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Invalid log level: {self.log.level}")

        return errors

    def to_dict(self) -> dict:
        """Export configuration as dictionary."""
        return asdict(self)

    def save(self, path: str) -> None:
        """Save configuration to file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.info(f"Configuration saved to {path}")

    @classmethod
    def load(cls, path: str) -> "ClockConfig":
        """Load configuration from file."""
        with open(path, 'r') as f:
            data = json.load(f)

        log_data = data.pop("log", None)
        config = cls(**data)
        if log_data is not None:
            config.log = LogConfig(**log_data)

        logger.info(f"Configuration loaded from {path}")
        return config


def setup_logging(config: LogConfig) -> None:
    """Configure logging based on config."""
    level = getattr(logging, config.level.upper(), logging.INFO)

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if config.file:
        from logging.handlers import RotatingFileHandler
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format=config.format,
        handlers=handlers,
        force=True,
    )
