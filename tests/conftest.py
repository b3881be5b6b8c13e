"""
Shared pytest fixtures for MegaRoof driver tests.

This module provides common fixtures used across unit and integration tests,
including mock loggers, serial ports, a fake transport and config files.
"""

import pytest
from unittest.mock import Mock, MagicMock, patch
import threading
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class FakeTransport:
    """In-memory stand-in for SerialTransport.

    Records writes and lets tests push inbound bytes through the same
    callback the reader thread would use.
    """

    def __init__(self):
        self._open = False
        self._lock = threading.Lock()
        self.writes = []
        self.on_data = None
        self.on_error = None
        self.open_calls = []
        self.fail_open = None
        self.fail_write = None

    @property
    def is_open(self):
        return self._open

    def open(self, port, on_data, baudrate=19200, on_error=None):
        if self.fail_open is not None:
            raise self.fail_open
        self.open_calls.append((port, baudrate))
        self.on_data = on_data
        self.on_error = on_error
        self._open = True

    def write(self, data):
        if self.fail_write is not None:
            raise self.fail_write
        with self._lock:
            self.writes.append(data)

    def close(self):
        self._open = False

    def deliver(self, data):
        """Simulate bytes arriving from the controller."""
        self.on_data(data)

    def unplug(self, error=None):
        """Simulate the port failing underneath the driver."""
        self._open = False
        if self.on_error:
            self.on_error(error or OSError("device unplugged"))


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    Returns:
        Mock logger with standard logging methods.
    """
    logger = Mock()
    logger.debug = Mock()
    logger.info = Mock()
    logger.warning = Mock()
    logger.error = Mock()
    logger.critical = Mock()
    return logger


@pytest.fixture
def mock_serial_port():
    """Mock serial port for testing without hardware.

    Yields:
        Tuple of (patched serial.Serial class, MagicMock port instance).
    """
    with patch('serial.Serial') as mock:
        instance = MagicMock()
        instance.is_open = True
        instance.in_waiting = 0
        instance.read = Mock(side_effect=lambda size=1: _idle_read())
        instance.write = Mock(return_value=0)
        instance.reset_input_buffer = Mock()
        instance.flush = Mock()

        def close():
            instance.is_open = False
        instance.close = Mock(side_effect=close)

        mock.return_value = instance
        yield mock, instance


def _idle_read():
    """Behave like a read timing out with nothing received."""
    threading.Event().wait(0.01)
    return b''


@pytest.fixture
def mock_config():
    """Create mock driver configuration object.

    Returns:
        Mock config with device and shutter settings.
    """
    config = Mock()
    config.dev_port = 'COM7'
    config.baud_rate = 19200
    config.poll_interval = 0.05
    config.poll_attempts = 5
    config.trace_enabled = True
    config.log_level = 10  # DEBUG
    config.log_to_stdout = False
    config.max_size_mb = 5
    config.num_keep_logs = 10
    return config


@pytest.fixture
def fake_transport():
    """Provide an in-memory transport."""
    return FakeTransport()


@pytest.fixture
def isolated_cache(mock_logger):
    """Create an isolated RoofStatusCache instance for testing."""
    from roof_cache import RoofStatusCache
    return RoofStatusCache(mock_logger)


@pytest.fixture
def sample_frames():
    """Provide sample status frame bodies.

    Returns:
        Dictionary of named 14-character bodies.
    """
    return {
        'open': '0,0,1,0,0,12.3',
        'closed': '0,1,1,0,0,12.3',
        'opening': '0,2,0,0,0,12.3',
        'closing': '0,3,0,0,0,12.3',
        'raining': '1,1,1,0,0,08.1',
        'fault': '0,7,0,0,0,12.3',
    }


@pytest.fixture
def temp_toml_file(tmp_path):
    """Create a temporary TOML config file for testing.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary config file.
    """
    config_content = """
title = "Test Config"

[device]
dev_port = 'COM9'
baud_rate = 19200

[shutter]
poll_interval = 0.25
poll_attempts = 3

[logging]
trace_enabled = false
log_level = 'DEBUG'
log_to_stdout = false
log_file = 'test.log'
max_size_mb = 2
num_keep_logs = 4
"""
    config_file = tmp_path / "MegaRoofconfig.toml"
    config_file.write_text(config_content)
    return config_file
