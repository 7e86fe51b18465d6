"""
NTP Clock: Synchronized Clock

Keeps an anchor (UTC time + monotonic instant) and extrapolates the current
time from it at the local monotonic rate. A background worker refreshes the
anchor from NTP:

  - first success after a degraded start adopts the sample immediately
  - later samples only move the anchor when drift exceeds MAX_DRIFT_MS
  - failures are counted and leave the anchor alone

All state is guarded by one lock. The network fetch runs outside it, so
readers never wait on a slow server.
"""

from __future__ import annotations
import logging
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Sequence, Tuple

from ntpclock.constants import (
    DEFAULT_NTP_SERVERS,
    DEFAULT_TIME,
    MAX_DRIFT_MS,
    NTP_QUERY_TIMEOUT_SEC,
    WORKER_JOIN_TIMEOUT_SEC,
)
from ntpclock.errors import AllServersFailedError
from ntpclock.source import fetch_ntp_time

logger = logging.getLogger(__name__)


@dataclass
class SyncStats:
    """Statistics for NTP synchronization."""
    total_attempts: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0

    def success_rate(self) -> float:
        """Success rate as a percentage (0.0 before any attempt)."""
        if self.total_attempts == 0:
            return 0.0
        return self.successful_syncs / self.total_attempts * 100.0

    def record(self, success: bool) -> None:
        """Count one attempt and its outcome."""
        self.total_attempts += 1
        if success:
            self.successful_syncs += 1
        else:
            self.failed_syncs += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total_attempts,
            "success": self.successful_syncs,
            "failed": self.failed_syncs,
            "rate": self.success_rate(),
        }


class Clock:
    """
    NTP-synchronized clock.

    Construction performs one blocking fetch. If it fails the clock starts
    from DEFAULT_TIME and keeps counting from there until a refresh succeeds.
    """

    def __init__(
        self,
        ntp_servers: Optional[Sequence[str]] = None,
        timeout: float = NTP_QUERY_TIMEOUT_SEC,
        max_drift_ms: int = MAX_DRIFT_MS
    ):
        """
        Initialize clock.

        Args:
            ntp_servers: Ordered candidates as "host:port" (defaults if None or empty)
            timeout: Per-candidate query timeout in seconds
            max_drift_ms: Drift above which the anchor is snapped to a new sample
        """
        self._servers: Tuple[str, ...] = tuple(ntp_servers or DEFAULT_NTP_SERVERS)
        self.timeout = timeout
        self.max_drift_ms = max_drift_ms

        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._stats = SyncStats()

        self._worker: Optional[threading.Thread] = None
        self._shutdown: Optional[threading.Event] = None

        logger.info(f"Initializing clock with NTP servers: {list(self._servers)}")

        sample = self._fetch()
        if sample is not None:
            logger.info(f"Successfully fetched initial NTP time: {sample}")
        else:
            logger.error("NTP fetch failed, falling back to default time")

        self._last_ntp_time: Optional[datetime] = sample
        self._latest_time: datetime = sample if sample is not None else DEFAULT_TIME
        self._latest_instant: float = time.monotonic()
        self._stats.record(sample is not None)

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def ntp_servers(self) -> Tuple[str, ...]:
        return self._servers

    @property
    def latest_time(self) -> datetime:
        """Anchor time (last committed reading)."""
        with self._lock:
            return self._latest_time

    @property
    def last_ntp_time(self) -> Optional[datetime]:
        """Most recent raw sample, None if never synchronized."""
        with self._lock:
            return self._last_ntp_time

    @property
    def is_synchronized(self) -> bool:
        with self._lock:
            return self._last_ntp_time is not None

    def _elapsed(self) -> timedelta:
        """Monotonic time since the anchor instant. Caller holds the lock."""
        seconds = time.monotonic() - self._latest_instant
        try:
            return timedelta(seconds=seconds)
        except OverflowError as e:
            logger.warning(f"Failed to convert elapsed time: {e}. Using zero duration.")
            return timedelta(0)

    def _current_time(self) -> datetime:
        return self._latest_time + self._elapsed()

    def current_time(self) -> datetime:
        """Current time extrapolated from the anchor."""
        with self._lock:
            return self._current_time()

    def get_stats(self) -> SyncStats:
        """Snapshot of synchronization statistics."""
        with self._lock:
            return replace(self._stats)

    def get_status(self) -> Dict[str, Any]:
        """Get clock status."""
        with self._lock:
            return {
                "servers": list(self._servers),
                "synchronized": self._last_ntp_time is not None,
                "current_time": self._current_time().isoformat(),
                "latest_time": self._latest_time.isoformat(),
                "last_ntp_time": (
                    self._last_ntp_time.isoformat()
                    if self._last_ntp_time is not None else None
                ),
                "running": self._worker is not None and self._worker.is_alive(),
                "stats": self._stats.to_dict(),
            }

    # =========================================================================
    # Synchronization
    # =========================================================================

    def _fetch(self) -> Optional[datetime]:
        try:
            return fetch_ntp_time(self._servers, self.timeout)
        except AllServersFailedError as e:
            logger.error(f"NTP fetch failed: {e.message}")
            return None
        except Exception as e:
            logger.error(f"NTP fetch error: {e}")
            return None

    def refresh(self) -> None:
        """
        Fetch a sample and apply the drift-correction policy.

        Statistics and anchor changes land together under the lock.
        """
        with self._refresh_lock:
            sample = self._fetch()

            with self._lock:
                self._stats.record(sample is not None)
                if sample is None:
                    return

                logger.info(f"NTP sync successful. Updated time: {sample}")
                first_sync = self._last_ntp_time is None
                self._last_ntp_time = sample

                if first_sync:
                    self._latest_time = sample - self._elapsed()
                    self._latest_instant = time.monotonic()
                    logger.info("Initialized time from default to NTP time")
                    return

                drift = sample - self._current_time()
                drift_ms = drift / timedelta(milliseconds=1)

                if abs(drift_ms) > self.max_drift_ms:
                    logger.info(f"Correcting time drift: {drift_ms:.0f} ms")
                    self._latest_time = sample
                    self._latest_instant = time.monotonic()
                else:
                    logger.debug(f"Drift {drift_ms:.0f} ms within tolerance")

    # =========================================================================
    # Background refresh
    # =========================================================================

    def start(
        self,
        interval_sec: float,
        shutdown: Optional[threading.Event] = None
    ) -> threading.Thread:
        """
        Start background synchronization.

        Args:
            interval_sec: Wait between refreshes
            shutdown: Event that stops the loop once set

        Returns:
            The worker thread
        """
        if self._worker is not None and self._worker.is_alive():
            return self._worker

        self._shutdown = shutdown if shutdown is not None else threading.Event()
        self._worker = threading.Thread(
            target=self._sync_loop,
            args=(interval_sec, self._shutdown),
            daemon=True,
            name="NTPClock-Sync"
        )
        self._worker.start()
        logger.info(f"Background sync started (interval={interval_sec}s)")
        return self._worker

    def stop(self, timeout: float = WORKER_JOIN_TIMEOUT_SEC) -> None:
        """Stop background synchronization."""
        if self._shutdown is not None:
            self._shutdown.set()
        if self._worker is not None:
            self._worker.join(timeout=timeout)

    def _sync_loop(self, interval_sec: float, shutdown: threading.Event) -> None:
        while not shutdown.is_set():
            try:
                self.refresh()
            except Exception as e:
                logger.error(f"Background sync error: {e}")

            logger.info("=================================")
            logger.info(f"Updated the time: {self.latest_time}")
            logger.info("=================================")

            shutdown.wait(interval_sec)

        logger.info("Background sync thread shutting down")


def start_background_refresh(
    clock: Clock,
    interval_sec: float,
    shutdown: threading.Event
) -> threading.Thread:
    """Start the periodic refresh worker for a clock."""
    return clock.start(interval_sec, shutdown)
