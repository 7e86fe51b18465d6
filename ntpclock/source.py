"""
NTP Clock Sample Source

One synchronization attempt against an ordered list of candidate servers.

Each candidate is resolved, sent a single 48-byte client request over UDP
and given NTP_QUERY_TIMEOUT_SEC to answer. The first reply whose transmit
timestamp decodes to a valid UTC instant wins. Sub-second fraction bytes are
ignored, so samples have whole-second precision.
"""

from __future__ import annotations
import logging
import socket
import struct
from datetime import datetime, timedelta
from typing import Dict, Sequence, Tuple

import ntplib

from ntpclock.constants import (
    NTP_PORT,
    NTP_PACKET_SIZE,
    NTP_VERSION,
    NTP_MODE_CLIENT,
    NTP_TX_TIMESTAMP_OFFSET,
    NTP_EPOCH_DELTA,
    NTP_QUERY_TIMEOUT_SEC,
    UNIX_EPOCH,
    DEFAULT_TIME,
)
from ntpclock.errors import (
    ClockError,
    InvalidParameterError,
    NTPResolveError,
    NTPNetworkError,
    NTPTimeoutError,
    NTPParseError,
    AllServersFailedError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Wire Format
# =============================================================================

def build_request() -> bytes:
    """
    Build a client request frame.

    LI=0, VN=3, Mode=3 packs to 0x1B; every other field is zero.
    """
    return ntplib.NTPPacket(version=NTP_VERSION, mode=NTP_MODE_CLIENT).to_data()


def parse_transmit_seconds(data: bytes) -> int:
    """
    Read the integer part of the transmit timestamp from a reply.

    Args:
        data: Raw reply frame

    Returns:
        Seconds since 1900-01-01 (big-endian uint32 at bytes 40-43)

    Raises:
        NTPParseError: If the frame is not a full NTP packet
    """
    if len(data) != NTP_PACKET_SIZE:
        raise NTPParseError(f"expected {NTP_PACKET_SIZE} bytes, got {len(data)}")

    try:
        packet = ntplib.NTPPacket()
        packet.from_data(data)
    except ntplib.NTPException as e:
        raise NTPParseError(str(e)) from e

    logger.debug(f"Reply stratum={packet.stratum}")

    return struct.unpack_from("!I", data, NTP_TX_TIMESTAMP_OFFSET)[0]


def ntp_seconds_to_datetime(ntp_seconds: int) -> datetime:
    """
    Convert NTP-era seconds to an aware UTC datetime.

    Raises:
        NTPParseError: If the result is not a representable instant
    """
    unix_seconds = ntp_seconds - NTP_EPOCH_DELTA
    try:
        return UNIX_EPOCH + timedelta(seconds=unix_seconds)
    except OverflowError as e:
        raise NTPParseError(f"timestamp out of range: {unix_seconds}") from e


def parse_server(server: str) -> Tuple[str, int]:
    """
    Split a candidate into host and port.

    Accepts "host:port", "[v6addr]:port" and a bare host (port 123).

    Raises:
        NTPResolveError: If the port is not a valid number
    """
    server = server.strip()
    if not server:
        raise NTPResolveError(server, "empty server address")

    if server.startswith("["):
        host, sep, rest = server[1:].partition("]")
        if not sep:
            raise NTPResolveError(server, "unterminated IPv6 address")
        port_str = rest[1:] if rest.startswith(":") else ""
    elif server.count(":") == 1:
        host, port_str = server.split(":")
    else:
        # Bare hostname, IPv4 or unbracketed IPv6
        host, port_str = server, ""

    if not port_str:
        return host, NTP_PORT

    try:
        port = int(port_str)
    except ValueError:
        raise NTPResolveError(server, f"invalid port '{port_str}'")

    if port < 1 or port > 65535:
        raise NTPResolveError(server, f"port out of range: {port}")

    return host, port


# =============================================================================
# Query Functions
# =============================================================================

def query_ntp_server(
    server: str,
    timeout: float = NTP_QUERY_TIMEOUT_SEC
) -> datetime:
    """
    Exchange one request/reply pair with a single NTP server.

    Args:
        server: Candidate as "host:port"
        timeout: Send and receive timeout in seconds

    Returns:
        Server transmit time as aware UTC datetime

    Raises:
        NTPResolveError: Address did not resolve
        NTPTimeoutError: No reply within timeout
        NTPNetworkError: Socket bind/connect/send/recv failed
        NTPParseError: Reply timestamp is unusable
    """
    host, port = parse_server(server)

    try:
        addrs = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        raise NTPResolveError(server, str(e))

    if not addrs:
        raise NTPResolveError(server, "no addresses")

    family, socktype, proto, _, sockaddr = addrs[0]
    bind_addr = ("::", 0) if family == socket.AF_INET6 else ("0.0.0.0", 0)

    try:
        with socket.socket(family, socktype, proto) as sock:
            sock.bind(bind_addr)
            sock.settimeout(timeout)
            sock.connect(sockaddr)
            sock.send(build_request())
            data = sock.recv(NTP_PACKET_SIZE)
    except socket.timeout:
        raise NTPTimeoutError(server, timeout)
    except OSError as e:
        raise NTPNetworkError(server, str(e))

    try:
        sample = ntp_seconds_to_datetime(parse_transmit_seconds(data))
    except NTPParseError as e:
        raise NTPParseError(e.details["error"], server) from e

    # Unsynchronized and kiss-o'-death replies carry a zero transmit field
    if sample < DEFAULT_TIME:
        raise NTPParseError(f"timestamp before {DEFAULT_TIME.date()}: {sample}", server)

    return sample


def fetch_ntp_time(
    servers: Sequence[str],
    timeout: float = NTP_QUERY_TIMEOUT_SEC
) -> datetime:
    """
    Fetch time from the first candidate that answers.

    Candidates are tried in order. A failure on one candidate is logged and
    the next one is tried.

    Args:
        servers: Ordered candidates
        timeout: Per-candidate timeout in seconds

    Returns:
        First successfully decoded sample

    Raises:
        InvalidParameterError: If no candidates are given
        AllServersFailedError: If every candidate failed
    """
    if not servers:
        raise InvalidParameterError("servers", "at least one NTP server required")

    failures: Dict[str, str] = {}

    for server in servers:
        logger.info(f"Attempting to connect to NTP server: {server}")
        try:
            sample = query_ntp_server(server, timeout)
        except ClockError as e:
            logger.warning(f"NTP query failed: {e.message}")
            failures[server] = e.message
            continue

        logger.info(f"Successfully retrieved time from {server}: {sample}")
        return sample

    raise AllServersFailedError(failures)
