import logging
import os
import socket
from typing import List, MutableMapping, Optional, Tuple

logger = logging.getLogger(__name__)

# First descriptor passed by a socket-activating service manager (sd_listen_fds)
LISTEN_FDS_START = 3


def listen_fds(unset_environment: bool = False,
               environ: Optional[MutableMapping[str, str]] = None) -> List[socket.socket]:
    """
    Return the sockets passed in by systemd socket activation.

    Follows the LISTEN_PID / LISTEN_FDS protocol: the variables only apply
    when LISTEN_PID names this process. Returns an empty list when the
    process was not socket-activated.
    """
    env = os.environ if environ is None else environ

    try:
        listen_pid = int(env.get('LISTEN_PID', ''))
        count = int(env.get('LISTEN_FDS', ''))
    except ValueError:
        return []
    finally:
        if unset_environment:
            for name in ('LISTEN_PID', 'LISTEN_FDS', 'LISTEN_FDNAMES'):
                env.pop(name, None)

    if listen_pid != os.getpid() or count <= 0:
        return []

    sockets = []
    for fd in range(LISTEN_FDS_START, LISTEN_FDS_START + count):
        os.set_inheritable(fd, False)
        try:
            sockets.append(socket.socket(fileno=fd))
        except OSError as e:
            logger.warning(f"Inherited descriptor {fd} is not a socket: {e}")

    logger.info(f"Inherited {len(sockets)} socket(s) from the service manager")
    return sockets


def split_sockets(sockets: List[socket.socket]) -> Tuple[List[socket.socket], List[socket.socket]]:
    """Separate sockets into (datagram, stream); anything else is skipped"""
    datagram: List[socket.socket] = []
    stream: List[socket.socket] = []

    for sock in sockets:
        if sock.type == socket.SOCK_DGRAM:
            datagram.append(sock)
        elif sock.type == socket.SOCK_STREAM:
            stream.append(sock)
        else:
            logger.warning(f"Ignoring socket of unsupported type {sock.type!r} (fd {sock.fileno()})")

    return datagram, stream


def bind_sockets(host: str = '0.0.0.0',
                 udp_port: Optional[int] = 514,
                 tcp_port: Optional[int] = 514,
                 backlog: int = 128) -> Tuple[List[socket.socket], List[socket.socket]]:
    """
    Open our own sockets when nothing was inherited.

    A port of None or 0 disables that transport.

    Security Note:
        When using 0.0.0.0 (all interfaces), ensure proper firewall rules
        or security groups are configured to restrict access to trusted sources.
    """
    datagram: List[socket.socket] = []
    stream: List[socket.socket] = []

    try:
        if udp_port:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            datagram.append(sock)
            sock.bind((host, udp_port))
            logger.info(f"Bound UDP {host}:{udp_port}")

        if tcp_port:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            stream.append(sock)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, tcp_port))
            sock.listen(backlog)
            logger.info(f"Listening on TCP {host}:{tcp_port}")
    except OSError:
        close_all(datagram + stream)
        raise

    return datagram, stream


def close_all(sockets: List[socket.socket]) -> None:
    for sock in sockets:
        try:
            sock.close()
        except OSError as e:
            logger.error(f"Error closing socket: {e}")
