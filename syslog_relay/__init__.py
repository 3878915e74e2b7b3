"""
Syslog Relay Package

Receives syslog packets over UDP and TCP on inherited or self-bound sockets,
parses RFC 5424 and RFC 3164 messages on a best-effort basis, and delivers
each one to a sink.
"""

from .dispatcher import IngestionDispatcher, NoSocketsError
from .sink import LoggerSink, Sink, SinkError
from .spawner import PooledSpawner, TaskSpawner, ThreadSpawner
from .syslog_parser import SyslogMessage, SyslogParser
from .syslog_writer import SyslogWriter

__all__ = [
    'IngestionDispatcher',
    'LoggerSink',
    'NoSocketsError',
    'PooledSpawner',
    'Sink',
    'SinkError',
    'SyslogMessage',
    'SyslogParser',
    'SyslogWriter',
    'TaskSpawner',
    'ThreadSpawner',
]

__version__ = '1.0.0'
