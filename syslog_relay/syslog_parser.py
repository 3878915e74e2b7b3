import logging
import re
from dataclasses import dataclass
from datetime import MINYEAR, datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Pattern

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Production clock: the current time, timezone-aware in UTC"""
    return datetime.now(timezone.utc)


# Syslog severity levels
SEVERITY_MAP: Dict[int, str] = {
    0: 'emergency',
    1: 'alert',
    2: 'critical',
    3: 'error',
    4: 'warning',
    5: 'notice',
    6: 'info',
    7: 'debug'
}

# Syslog facilities
FACILITY_MAP: Dict[int, str] = {
    0: 'kern', 1: 'user', 2: 'mail', 3: 'daemon',
    4: 'auth', 5: 'syslog', 6: 'lpr', 7: 'news',
    8: 'uucp', 9: 'cron', 10: 'authpriv', 11: 'ftp',
    12: 'ntp', 13: 'security', 14: 'console', 15: 'solaris-cron',
    16: 'local0', 17: 'local1', 18: 'local2', 19: 'local3',
    20: 'local4', 21: 'local5', 22: 'local6', 23: 'local7'
}

MONTHS: Dict[str, int] = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12
}


@dataclass(frozen=True)
class SyslogMessage:
    """A completely-parsed syslog packet"""
    version: int
    facility: int
    severity: int
    timestamp: datetime
    hostname: str
    tag: str
    structured_data: str
    message: str
    source: str

    @property
    def priority(self) -> int:
        return (self.facility << 3) | self.severity

    @property
    def severity_name(self) -> str:
        return SEVERITY_MAP.get(self.severity, 'unknown')

    @property
    def facility_name(self) -> str:
        return FACILITY_MAP.get(self.facility, 'unknown')

    @property
    def identifier(self) -> str:
        # Without the hostname, the tag isn't a complete identifier.
        return f"{self.hostname} {self.tag}"


class SyslogParser:
    """
    Best-effort parser for RFC 5424 and RFC 3164 syslog packets.

    Parsing runs in stages (PRI, version, timestamp, header fields,
    structured data). Each stage only runs if the previous one succeeded;
    whatever a failed stage leaves unconsumed becomes the message body.
    parse() never raises.
    """
    MAX_PRI = 191
    LEGACY_STAMP_LEN = 15
    LEGACY_YEAR = MINYEAR

    """
    # RFC 5424 timestamp (RFC 3339 profile)
    Tried first with a fraction of up to nanosecond precision, then as whole
    seconds. The offset is mandatory: 'Z' or +HH:MM / -HH:MM.
    """
    RFC3339_NANO_PATTERN: Pattern[str] = re.compile(
        r'(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})'
        r'T(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})'
        r'\.(?P<fraction>\d{1,9})(?P<offset>Z|[+-]\d{2}:\d{2})',
        re.ASCII
    )
    RFC3339_PATTERN: Pattern[str] = re.compile(
        r'(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})'
        r'T(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})'
        r'(?P<offset>Z|[+-]\d{2}:\d{2})',
        re.ASCII
    )

    """
    # RFC 3164 timestamp
    Fixed 15 characters, "Mmm dd hh:mm:ss" with the day padded by a space
    (or a zero). There is no year and no timezone.
    """
    RFC3164_STAMP_PATTERN: Pattern[str] = re.compile(
        r'(?P<month>[A-Za-z]{3}) (?P<day>[ \d]\d) '
        r'(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})',
        re.ASCII
    )

    def __init__(self, clock: Clock = utc_now) -> None:
        self.clock: Clock = clock

    def parse_bytes(self, data: bytes, source: str) -> SyslogMessage:
        """Decode a raw packet (invalid UTF-8 is replaced) and parse it"""
        return self.parse(data.decode('utf-8', errors='replace'), source)

    def parse(self, buf: str, source: str) -> SyslogMessage:
        """
        Parse a syslog packet received from source.

        We're technically a relay, so per RFC 3164 we fill in defaults
        (facility kern, severity notice, arrival time, sender address)
        for anything the packet doesn't carry.
        """
        fields = {
            'version': 0,
            'facility': 0,
            'severity': 5,
            'timestamp': None,
            'hostname': source,
            'tag': '',
            'structured_data': '',
        }

        rest = self._parse_pri(buf, fields)
        if rest is not None:
            if rest.startswith('1 '):
                fields['version'] = 1
                fields['hostname'] = ''
                rest = self._parse_rfc5424(rest[2:], fields)
            else:
                rest = self._parse_rfc3164(rest, fields)
        else:
            rest = buf

        timestamp: Optional[datetime] = fields.pop('timestamp')
        if timestamp is None:
            timestamp = self.clock()

        return SyslogMessage(
            timestamp=timestamp,
            message=rest,
            source=source,
            **fields
        )

    @classmethod
    def _parse_pri(cls, buf: str, fields: Dict) -> Optional[str]:
        """Consume "<pri>"; returns the remainder, or None if there is no valid PRI"""
        if not buf.startswith('<'):
            return None

        pri_end = buf.find('>')
        if not 1 < pri_end < 5:
            return None

        digits = buf[1:pri_end]
        if not (digits.isascii() and digits.isdigit()):
            return None

        pri = int(digits)
        if pri > cls.MAX_PRI:
            logger.debug(f"PRI out of range: {pri}")
            return None

        fields['facility'] = pri >> 3
        fields['severity'] = pri & 7
        return buf[pri_end + 1:]

    @classmethod
    def _parse_rfc5424(cls, rest: str, fields: Dict) -> str:
        """TIMESTAMP SP HOSTNAME SP APP-NAME SP PROCID SP MSGID SP [SD] MSG"""
        ts_end = rest.find(' ')
        if ts_end < 0:
            return rest

        timestamp = cls.parse_rfc3339(rest[:ts_end])
        if timestamp is None:
            return rest
        fields['timestamp'] = timestamp
        rest = rest[ts_end + 1:]

        parts = rest.split(' ', 4)
        if len(parts) != 5:
            return rest
        fields['hostname'] = parts[0]
        fields['tag'] = ' '.join(parts[1:4])
        rest = parts[4]

        # Only the first SD-ELEMENT is kept, unparsed and without its ']'
        if rest.startswith('['):
            sd_end = rest.find(']')
            if sd_end > 1:
                fields['structured_data'] = rest[:sd_end]
                rest = rest[sd_end + 1:]
                if rest.startswith(' '):
                    rest = rest[1:]

        return rest

    @classmethod
    def _parse_rfc3164(cls, rest: str, fields: Dict) -> str:
        """Mmm dd hh:mm:ss SP HOSTNAME SP TAG SP MSG"""
        timestamp = cls.parse_rfc3164_stamp(rest[:cls.LEGACY_STAMP_LEN])
        if timestamp is None:
            return rest
        fields['timestamp'] = timestamp
        rest = rest[cls.LEGACY_STAMP_LEN + 1:]

        parts = rest.split(' ', 2)
        if len(parts) != 3:
            return rest
        fields['hostname'] = parts[0]
        fields['tag'] = parts[1]
        return parts[2]

    @classmethod
    def parse_rfc3339(cls, token: str) -> Optional[datetime]:
        """Parse an RFC 3339 timestamp, or return None (this includes the '-' nil value)"""
        match = cls.RFC3339_NANO_PATTERN.fullmatch(token) or cls.RFC3339_PATTERN.fullmatch(token)
        if not match:
            return None

        data = match.groupdict()
        # datetime has microsecond resolution; extra fraction digits are dropped
        fraction = data.get('fraction') or ''
        microsecond = int(fraction[:6].ljust(6, '0'))

        offset = data['offset']
        if offset == 'Z':
            tz = timezone.utc
        else:
            hours, minutes = int(offset[1:3]), int(offset[4:6])
            if hours > 23 or minutes > 59:
                return None
            delta = timedelta(hours=hours, minutes=minutes)
            tz = timezone(-delta if offset[0] == '-' else delta)

        try:
            return datetime(
                int(data['year']), int(data['month']), int(data['day']),
                int(data['hour']), int(data['minute']), int(data['second']),
                microsecond, tzinfo=tz
            )
        except ValueError:
            return None

    @classmethod
    def parse_rfc3164_stamp(cls, token: str) -> Optional[datetime]:
        """Parse a "Mmm dd hh:mm:ss" stamp into LEGACY_YEAR, UTC; None if malformed"""
        match = cls.RFC3164_STAMP_PATTERN.fullmatch(token)
        if not match:
            return None

        month = MONTHS.get(match.group('month').lower())
        if month is None:
            return None

        try:
            return datetime(
                cls.LEGACY_YEAR, month, int(match.group('day')),
                int(match.group('hour')), int(match.group('minute')),
                int(match.group('second')), tzinfo=timezone.utc
            )
        except ValueError:
            return None
