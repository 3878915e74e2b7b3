"""Unit tests for configuration and the entry point"""

import pytest

from syslog_relay.config import RelayConfig, parse_bool
from syslog_relay.main import build_sink, build_spawner, main
from syslog_relay.sink import LoggerSink
from syslog_relay.spawner import PooledSpawner, ThreadSpawner
from syslog_relay.syslog_writer import SyslogWriter


@pytest.mark.unit
class TestRelayConfig:

    def test_defaults(self):
        config = RelayConfig.from_env({})

        assert config == RelayConfig()
        assert config.udp_port == 514
        assert config.tcp_port == 514
        assert config.max_workers == 0
        assert config.read_timeout is None

    def test_values_from_environment(self):
        config = RelayConfig.from_env({
            'SYSLOG_LOG_DIR': '/var/log/relay',
            'SYSLOG_SINK': 'LOG',
            'SYSLOG_HOST': '127.0.0.1',
            'SYSLOG_UDP_PORT': '5514',
            'SYSLOG_TCP_PORT': '6514',
            'SYSLOG_ENABLE_UDP': 'no',
            'SYSLOG_ENABLE_TCP': 'on',
            'SYSLOG_MAX_WORKERS': '8',
            'SYSLOG_READ_TIMEOUT': '2.5',
            'SYSLOG_LOG_LEVEL': 'debug',
        })

        assert config.log_dir == '/var/log/relay'
        assert config.sink == 'log'
        assert config.host == '127.0.0.1'
        assert (config.udp_port, config.tcp_port) == (5514, 6514)
        assert config.enable_udp is False
        assert config.enable_tcp is True
        assert config.max_workers == 8
        assert config.read_timeout == 2.5
        assert config.log_level == 'DEBUG'

    @pytest.mark.parametrize('environ', [
        {'SYSLOG_UDP_PORT': 'syslog'},
        {'SYSLOG_TCP_PORT': '70000'},
        {'SYSLOG_MAX_WORKERS': '-1'},
        {'SYSLOG_READ_TIMEOUT': '0'},
        {'SYSLOG_SINK': 'kafka'},
    ])
    def test_invalid_values(self, environ):
        with pytest.raises(ValueError):
            RelayConfig.from_env(environ)

    @pytest.mark.parametrize('value, expected', [
        ('true', True), ('1', True), ('YES', True), ('false', False), ('', False)
    ])
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected


@pytest.mark.unit
class TestMain:

    def test_build_sink(self, temp_log_dir):
        assert isinstance(build_sink(RelayConfig(sink='log')), LoggerSink)

        writer = build_sink(RelayConfig(sink='file', log_dir=temp_log_dir))
        assert isinstance(writer, SyslogWriter)
        writer.close()

    def test_build_spawner(self):
        assert isinstance(build_spawner(RelayConfig()), ThreadSpawner)

        pooled = build_spawner(RelayConfig(max_workers=4))
        assert isinstance(pooled, PooledSpawner)
        assert pooled.max_workers == 4
        pooled.shutdown()

    def test_no_sockets_exits_with_error(self, monkeypatch):
        monkeypatch.delenv('LISTEN_PID', raising=False)
        monkeypatch.delenv('LISTEN_FDS', raising=False)
        monkeypatch.setenv('SYSLOG_SINK', 'log')
        monkeypatch.setenv('SYSLOG_ENABLE_UDP', 'false')
        monkeypatch.setenv('SYSLOG_ENABLE_TCP', 'false')

        assert main() == 1

    def test_invalid_configuration_exits_with_error(self, monkeypatch):
        monkeypatch.setenv('SYSLOG_UDP_PORT', 'not-a-port')
        assert main() == 1
