import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .syslog_parser import SyslogMessage

logger = logging.getLogger(__name__)


class SinkError(Exception):
    """Raised when a sink fails to record a message"""


def journal_fields(parsed: SyslogMessage) -> Dict[str, str]:
    """Build the named attributes that accompany a message into a sink"""
    fields: Dict[str, str] = {
        'SYSLOG_VERSION': str(parsed.version),
        'SYSLOG_FACILITY': str(parsed.facility),
        'SYSLOG_SEVERITY': str(parsed.severity),
        'SYSLOG_IDENTIFIER': parsed.identifier,
    }

    if parsed.timestamp is not None:
        fields['SYSLOG_TIMESTAMP'] = parsed.timestamp.isoformat()

    if parsed.hostname:
        fields['SYSLOG_HOSTNAME'] = parsed.hostname

    if parsed.source:
        fields['SYSLOG_SOURCE'] = parsed.source

    # TODO: split structured data into SYSLOG_SD_<SD-ID> entries once the
    # parser decomposes SD-ELEMENTs into their SD-PARAMs.
    if parsed.structured_data:
        fields['SYSLOG_STRUCTURED_DATA'] = parsed.structured_data

    return fields


class Sink(ABC):
    """
    Destination for parsed syslog messages.

    Implementations must be safe to call from many threads at once; the
    dispatcher does no locking on their behalf.
    """

    @abstractmethod
    def send(self, message: str, priority: int, fields: Dict[str, str]) -> None:
        """Record one message body with its priority (0-7) and attributes.

        Raises:
            SinkError: the message could not be recorded
        """

    def deliver(self, parsed: SyslogMessage) -> None:
        self.send(parsed.message, parsed.severity, journal_fields(parsed))


class LoggerSink(Sink):
    """Forward messages into a standard library logger"""

    LEVELS: Dict[int, int] = {
        0: logging.CRITICAL,
        1: logging.CRITICAL,
        2: logging.CRITICAL,
        3: logging.ERROR,
        4: logging.WARNING,
        5: logging.INFO,
        6: logging.INFO,
        7: logging.DEBUG
    }

    def __init__(self, target: Optional[logging.Logger] = None) -> None:
        self.target: logging.Logger = target or logging.getLogger('syslog_relay.messages')

    def send(self, message: str, priority: int, fields: Dict[str, str]) -> None:
        level = self.LEVELS.get(priority, logging.INFO)
        self.target.log(level, '%s: %s', fields.get('SYSLOG_IDENTIFIER', ''), message,
                        extra={'syslog_fields': fields})
