"""Pytest configuration and shared fixtures for test suite"""

import socket
import tempfile
import threading
import time
from datetime import datetime, timezone
from typing import Dict, Generator, List, Tuple

import pytest

from syslog_relay.dispatcher import IngestionDispatcher
from syslog_relay.sink import Sink, SinkError
from syslog_relay.syslog_parser import SyslogParser
from syslog_relay.syslog_writer import SyslogWriter

FIXED_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that always returns the same instant and counts how often it was read"""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        return self.now


class RecordingSink(Sink):
    """In-memory sink; optionally fails every delivery"""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.records: List[Tuple[str, int, Dict[str, str]]] = []
        self.lock = threading.Lock()

    def send(self, message: str, priority: int, fields: Dict[str, str]) -> None:
        if self.fail:
            raise SinkError("sink unavailable")
        with self.lock:
            self.records.append((message, priority, fields))

    def wait_for(self, count: int, timeout: float = 2.0) -> List[Tuple[str, int, Dict[str, str]]]:
        deadline = time.time() + timeout
        while time.time() < deadline:
            with self.lock:
                if len(self.records) >= count:
                    return list(self.records)
            time.sleep(0.02)
        with self.lock:
            return list(self.records)


@pytest.fixture
def temp_log_dir() -> Generator[str, None, None]:
    """Create temporary directory for log files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def syslog_writer(temp_log_dir: str) -> Generator[SyslogWriter, None, None]:
    """Create SyslogWriter instance with temporary directory"""
    writer = SyslogWriter(log_dir=temp_log_dir)
    yield writer
    writer.close()


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def parser(fixed_clock: FixedClock) -> SyslogParser:
    """Parser whose default timestamp is FIXED_NOW"""
    return SyslogParser(clock=fixed_clock)


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def loopback_sockets() -> Generator[Tuple[socket.socket, socket.socket], None, None]:
    """A bound UDP socket and a listening TCP socket on loopback, ephemeral ports"""
    udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    udp.bind(('127.0.0.1', 0))

    tcp = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    tcp.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    tcp.bind(('127.0.0.1', 0))
    tcp.listen(16)

    yield udp, tcp

    udp.close()
    tcp.close()


@pytest.fixture
def running_dispatcher(
    loopback_sockets: Tuple[socket.socket, socket.socket],
    recording_sink: RecordingSink,
    parser: SyslogParser
) -> Generator[Tuple[IngestionDispatcher, int, int], None, None]:
    """Dispatcher serving the loopback sockets into the recording sink"""
    udp, tcp = loopback_sockets
    dispatcher = IngestionDispatcher(
        [udp], [tcp], recording_sink,
        parser=parser,
        read_timeout=2.0,
        poll_interval=0.1
    )
    dispatcher.start()

    yield dispatcher, udp.getsockname()[1], tcp.getsockname()[1]

    dispatcher.stop()
    for thread in dispatcher.threads:
        thread.join(timeout=1.0)


@pytest.fixture
def failing_sink() -> RecordingSink:
    return RecordingSink(fail=True)
