import logging
import socket
import threading
from typing import Any, List, Optional, Sequence

from .sink import Sink, SinkError
from .spawner import TaskSpawner, ThreadSpawner
from .syslog_parser import SyslogParser

logger = logging.getLogger(__name__)

# RFC5424: MUST receive 480-octet messages, SHOULD accept 2048-octet messages
PACKET_SIZE = 2048


class NoSocketsError(RuntimeError):
    """No datagram or stream sockets were handed to the dispatcher"""


def format_address(addr: Any) -> str:
    """Render a peer address the way it is recorded as a message's source"""
    if isinstance(addr, tuple) and len(addr) >= 2:
        host, port = addr[0], addr[1]
        if ':' in host:
            return f"[{host}]:{port}"
        return f"{host}:{port}"
    if isinstance(addr, bytes):
        addr = addr.decode('utf-8', errors='replace')
    if addr:
        return str(addr)
    return 'unknown'


class IngestionDispatcher:
    """
    Serve already-open sockets, turning every datagram and every accepted
    connection into one parsed message for the sink.

    Each socket gets its own loop thread. Each unit of work (a datagram, or a
    connection carrying exactly one message) is handed to the spawner, so a
    slow peer or a slow sink never holds up a receive loop.
    """

    def __init__(self,
                 datagram_sockets: Sequence[socket.socket],
                 stream_sockets: Sequence[socket.socket],
                 sink: Sink,
                 parser: Optional[SyslogParser] = None,
                 spawner: Optional[TaskSpawner] = None,
                 read_timeout: Optional[float] = None,
                 poll_interval: float = 1.0) -> None:
        """
        Args:
            datagram_sockets: Bound datagram sockets
            stream_sockets: Listening stream sockets
            sink: Where parsed messages are delivered
            parser: Parser to use (default: SyslogParser with the system clock)
            spawner: Task policy for units of work (default: thread per unit)
            read_timeout: Deadline in seconds for the single read on a
                          stream connection (None = wait indefinitely)
            poll_interval: How often the receive loops check for stop()
        """
        self.datagram_sockets: List[socket.socket] = list(datagram_sockets)
        self.stream_sockets: List[socket.socket] = list(stream_sockets)
        self.sink: Sink = sink
        self.parser: SyslogParser = parser or SyslogParser()
        self.spawner: TaskSpawner = spawner or ThreadSpawner()
        self.read_timeout: Optional[float] = read_timeout
        self.poll_interval: float = poll_interval
        self.running: bool = False
        self.threads: List[threading.Thread] = []

    def start(self) -> None:
        """Start one receive loop per socket and return immediately"""
        if not self.datagram_sockets and not self.stream_sockets:
            raise NoSocketsError("no datagram or stream sockets supplied")

        self.running = True

        for sock in self.datagram_sockets:
            sock.settimeout(self.poll_interval)
            self._start_loop(self._serve_datagrams, sock)

        for sock in self.stream_sockets:
            sock.settimeout(self.poll_interval)
            self._start_loop(self._serve_stream, sock)

        logger.info(
            f"Dispatching {len(self.datagram_sockets)} datagram and "
            f"{len(self.stream_sockets)} stream socket(s)"
        )

    def _start_loop(self, target, sock: socket.socket) -> None:
        thread = threading.Thread(target=target, args=(sock,), daemon=True)
        thread.start()
        self.threads.append(thread)

    def serve_forever(self) -> None:
        """Start the receive loops and block until they all exit"""
        self.start()
        for thread in self.threads:
            thread.join()

    def stop(self) -> None:
        """Stop the receive loops; in-flight units of work are not waited for"""
        self.running = False

    def _serve_datagrams(self, sock: socket.socket) -> None:
        """Receive datagrams, one unit of work each"""
        logger.info(f"Receiving datagrams on {format_address(sock.getsockname())}")

        while self.running:
            try:
                data, addr = sock.recvfrom(PACKET_SIZE)
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    logger.error(f"Error receiving datagram: {e}")
                continue

            self.spawner.spawn(self._ingest, data, format_address(addr))

    def _serve_stream(self, sock: socket.socket) -> None:
        """Accept connections, one unit of work each"""
        logger.info(f"Accepting connections on {format_address(sock.getsockname())}")

        while self.running:
            try:
                conn, addr = sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    logger.error(f"Error accepting connection: {e}")
                continue

            logger.debug(f"New connection from {format_address(addr)}")
            self.spawner.spawn(self._handle_connection, conn, addr)

    def _handle_connection(self, conn: socket.socket, addr: Any) -> None:
        """Read the single message a connection carries, then close it"""
        source = format_address(addr)
        try:
            conn.settimeout(self.read_timeout)
            data = conn.recv(PACKET_SIZE)
        except OSError as e:
            logger.error(f"Error reading from {source}: {e}")
            return
        finally:
            conn.close()

        if not data:
            logger.debug(f"Connection from {source} closed without data")
            return

        self._ingest(data, source)

    def _ingest(self, data: bytes, source: str) -> None:
        """Parse one unit of input and hand it to the sink"""
        parsed = self.parser.parse_bytes(data, source)
        try:
            self.sink.deliver(parsed)
        except SinkError as e:
            logger.error(f"Error delivering message from {source}: {e}")
