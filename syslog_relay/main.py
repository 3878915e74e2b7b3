#!/usr/bin/env python3
"""
Syslog Relay - Main Entry Point
Receives syslog packets on inherited (socket-activated) or self-bound UDP/TCP
sockets, parses them, and hands each message to a sink.
"""

import logging
import sys

from .activation import bind_sockets, close_all, listen_fds, split_sockets
from .config import RelayConfig
from .dispatcher import IngestionDispatcher, NoSocketsError
from .sink import LoggerSink, Sink
from .spawner import PooledSpawner, TaskSpawner, ThreadSpawner
from .syslog_writer import SyslogWriter

logger = logging.getLogger(__name__)


def build_sink(config: RelayConfig) -> Sink:
    if config.sink == 'log':
        return LoggerSink()
    return SyslogWriter(log_dir=config.log_dir)


def build_spawner(config: RelayConfig) -> TaskSpawner:
    if config.max_workers:
        return PooledSpawner(max_workers=config.max_workers)
    return ThreadSpawner()


def main() -> int:
    """Main entry point"""
    try:
        config = RelayConfig.from_env()
    except ValueError as e:
        logging.basicConfig(level=logging.INFO)
        logger.critical(f"Invalid configuration: {e}")
        return 1

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger.info("Starting Syslog Relay")

    datagram, stream = split_sockets(listen_fds())
    if not datagram and not stream:
        logger.info(f"No inherited sockets, binding {config.host} "
                    f"(UDP {config.udp_port} enabled: {config.enable_udp}, "
                    f"TCP {config.tcp_port} enabled: {config.enable_tcp})")
        try:
            datagram, stream = bind_sockets(
                host=config.host,
                udp_port=config.udp_port if config.enable_udp else None,
                tcp_port=config.tcp_port if config.enable_tcp else None
            )
        except OSError as e:
            logger.critical(f"Could not bind sockets: {e}")
            return 1

    sink = build_sink(config)
    spawner = build_spawner(config)
    dispatcher = IngestionDispatcher(
        datagram, stream, sink,
        spawner=spawner,
        read_timeout=config.read_timeout
    )

    try:
        dispatcher.serve_forever()
    except NoSocketsError as e:
        logger.critical(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        dispatcher.stop()
    finally:
        spawner.shutdown(wait=False)
        if isinstance(sink, SyslogWriter):
            sink.close()
        close_all(datagram + stream)

    return 0


if __name__ == '__main__':
    sys.exit(main())
