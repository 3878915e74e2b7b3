import os
from dataclasses import dataclass
from typing import Mapping, Optional


def parse_bool(value: str) -> bool:
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class RelayConfig:
    """Runtime settings, read from SYSLOG_* environment variables"""
    log_dir: str = 'logs'
    sink: str = 'file'
    host: str = '0.0.0.0'
    udp_port: int = 514
    tcp_port: int = 514
    enable_udp: bool = True
    enable_tcp: bool = True
    max_workers: int = 0
    read_timeout: Optional[float] = None
    log_level: str = 'INFO'

    SINKS = ('file', 'log')

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'RelayConfig':
        """
        Build the configuration from the environment.

        Raises:
            ValueError: a variable holds a value that can't be used
        """
        env = os.environ if environ is None else environ

        read_timeout = env.get('SYSLOG_READ_TIMEOUT', '').strip()

        config = cls(
            log_dir=env.get('SYSLOG_LOG_DIR', 'logs'),
            sink=env.get('SYSLOG_SINK', 'file').strip().lower(),
            host=env.get('SYSLOG_HOST', '0.0.0.0'),
            udp_port=int(env.get('SYSLOG_UDP_PORT', '514')),
            tcp_port=int(env.get('SYSLOG_TCP_PORT', '514')),
            enable_udp=parse_bool(env.get('SYSLOG_ENABLE_UDP', 'true')),
            enable_tcp=parse_bool(env.get('SYSLOG_ENABLE_TCP', 'true')),
            max_workers=int(env.get('SYSLOG_MAX_WORKERS', '0')),
            read_timeout=float(read_timeout) if read_timeout else None,
            log_level=env.get('SYSLOG_LOG_LEVEL', 'INFO').strip().upper(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.sink not in self.SINKS:
            raise ValueError(f"SYSLOG_SINK must be one of {', '.join(self.SINKS)}, got {self.sink!r}")
        for name, port in (('SYSLOG_UDP_PORT', self.udp_port), ('SYSLOG_TCP_PORT', self.tcp_port)):
            if not 0 <= port <= 65535:
                raise ValueError(f"{name} out of range: {port}")
        if self.max_workers < 0:
            raise ValueError(f"SYSLOG_MAX_WORKERS must not be negative, got {self.max_workers}")
        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ValueError(f"SYSLOG_READ_TIMEOUT must be positive, got {self.read_timeout}")
