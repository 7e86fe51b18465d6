"""
NTP Clock
Locally usable wall-clock time synchronized from NTP servers.

Time advances at the local monotonic rate between syncs and is corrected
when it drifts more than 100 ms from a fresh sample.
"""

__version__ = "0.2.0"
__author__ = "NTP Clock Team"

from ntpclock.constants import DEFAULT_NTP_SERVERS, DEFAULT_TIME
from ntpclock.clock import Clock, SyncStats, start_background_refresh
from ntpclock.source import fetch_ntp_time

__all__ = [
    "Clock",
    "SyncStats",
    "start_background_refresh",
    "fetch_ntp_time",
    "DEFAULT_NTP_SERVERS",
    "DEFAULT_TIME",
    "__version__",
]
