"""
NTP Clock Constants

Protocol layout, network limits and drift policy.
"""

from datetime import datetime, timezone
from typing import Final, Tuple

# ==============================================================================
# WIRE PROTOCOL
# ==============================================================================

NTP_PORT: Final[int] = 123                      # Registered NTP port
NTP_PACKET_SIZE: Final[int] = 48                # Request and reply frame size
NTP_VERSION: Final[int] = 3
NTP_MODE_CLIENT: Final[int] = 3
NTP_TX_TIMESTAMP_OFFSET: Final[int] = 40        # Transmit timestamp, integer part

# Seconds between 1900-01-01 (NTP epoch) and 1970-01-01 (Unix epoch)
NTP_EPOCH_DELTA: Final[int] = 2_208_988_800

UNIX_EPOCH: Final[datetime] = datetime(1970, 1, 1, tzinfo=timezone.utc)

# ==============================================================================
# SAMPLE SOURCE
# ==============================================================================

NTP_QUERY_TIMEOUT_SEC: Final[float] = 3.0       # Per-candidate send/recv timeout

DEFAULT_NTP_SERVERS: Final[Tuple[str, ...]] = (
    "time.google.com:123",
    "time.cloudflare.com:123",
    "pool.ntp.org:123",
)

# ==============================================================================
# SYNCHRONIZED CLOCK
# ==============================================================================

# Anchor used until the first successful sync
DEFAULT_TIME: Final[datetime] = datetime(2000, 1, 1, tzinfo=timezone.utc)

MAX_DRIFT_MS: Final[int] = 100                  # Snap threshold
DEFAULT_SYNC_INTERVAL_SEC: Final[int] = 10
DEFAULT_DISPLAY_INTERVAL_SEC: Final[int] = 1
WORKER_JOIN_TIMEOUT_SEC: Final[float] = 5.0
