"""
NTP Clock Test Fixtures
"""

import logging
import socket
import struct
import threading
from datetime import datetime, timezone
from typing import Callable, Iterator, List
from unittest.mock import patch

import pytest

from ntpclock.constants import NTP_EPOCH_DELTA, NTP_PACKET_SIZE
from ntpclock.errors import AllServersFailedError


SAMPLE_UNIX_SECONDS = 1704067200  # 2024-01-01 00:00:00 UTC
SAMPLE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_reply(ntp_seconds: int, stratum: int = 1) -> bytes:
    """Build a server reply (LI=0, VN=3, Mode=4) with the given transmit seconds."""
    data = bytearray(NTP_PACKET_SIZE)
    data[0] = 0x1C
    data[1] = stratum
    struct.pack_into("!I", data, 40, ntp_seconds)
    return bytes(data)


@pytest.fixture
def sample_time() -> datetime:
    """Time returned by the fake fetch and the default local responder."""
    return SAMPLE_TIME


@pytest.fixture
def sample_unix_seconds() -> int:
    return SAMPLE_UNIX_SECONDS


@pytest.fixture
def reply_builder() -> Callable[..., bytes]:
    """Builds raw server replies for a given NTP-era transmit field."""
    return make_reply


class FakeNTPServer:
    """UDP responder on localhost that answers every request with a fixed reply."""

    def __init__(self, reply: bytes):
        self.reply = reply
        self.requests: List[bytes] = []
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.settimeout(0.05)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    @property
    def address(self) -> str:
        return f"127.0.0.1:{self._sock.getsockname()[1]}"

    def _serve(self):
        while not self._stop.is_set():
            try:
                data, addr = self._sock.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError:
                return
            self.requests.append(data)
            self._sock.sendto(self.reply, addr)

    def close(self):
        self._stop.set()
        self._thread.join(timeout=1)
        self._sock.close()


@pytest.fixture
def ntp_server() -> Iterator[Callable[..., FakeNTPServer]]:
    """Factory for local NTP responders, closed after the test."""
    servers: List[FakeNTPServer] = []

    def factory(unix_seconds: int = SAMPLE_UNIX_SECONDS, reply: bytes = None) -> FakeNTPServer:
        if reply is None:
            reply = make_reply(unix_seconds + NTP_EPOCH_DELTA)
        server = FakeNTPServer(reply)
        servers.append(server)
        return server

    yield factory

    for server in servers:
        server.close()


@pytest.fixture
def silent_server() -> Iterator[str]:
    """A bound UDP port that never answers."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    yield f"127.0.0.1:{sock.getsockname()[1]}"
    sock.close()


@pytest.fixture
def fake_fetch():
    """Replace the network fetch used by the clock."""
    with patch("ntpclock.clock.fetch_ntp_time") as mock_fetch:
        mock_fetch.return_value = SAMPLE_TIME
        yield mock_fetch


@pytest.fixture
def offline(fake_fetch):
    """Every fetch fails as if no server were reachable."""
    fake_fetch.side_effect = AllServersFailedError({"time.example.com:123": "unreachable"})
    return fake_fetch


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo setup_logging() so handlers bound to captured streams do not leak."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
