# -*- coding: utf-8 -*-
# -----------------------------------------------------------------------------
# MegaRoofConfig.py - MegaRoof persistent configuration file.  Adapted from
# Alpyca's config.py
#
# Python Compatibility: Requires Python 3.7 or later
# GitHub: https://github.com/ASCOMInitiative/AlpycaDevice
#
# -----------------------------------------------------------------------------
# MIT License
#
# Copyright (c) 2022-2024 Bob Denny
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
# -----------------------------------------------------------------------------

import logging
import threading
from pathlib import Path
from typing import Any, Optional, Union

import toml


class MegaRoofConfigError(Exception):
    """Custom exception for MegaRoof configuration errors"""
    pass


class MegaRoofConfig:
    """Driver configuration with thread-safe TOML persistence.

    For docker-based installations, looks for /megaroof/MegaRoofconfig.toml
    first, with any settings there overriding ./MegaRoofconfig.toml.

    Attributes:
        dev_port: Roof controller serial port
        baud_rate: Serial baud rate
        poll_interval: Seconds per shutter reply wait attempt
        poll_attempts: Number of shutter reply wait attempts
        trace_enabled: Diagnostic (debug) logging toggle
        log_level: Logging level (integer)
        log_to_stdout: Enable logging to stdout
        log_file: Log file path
        max_size_mb: Maximum log file size in MB
        num_keep_logs: Number of log files to keep
    """

    # Class constants
    DEFAULT_CONFIG_FILE = 'MegaRoofconfig.toml'
    OVERRIDE_CONFIG_PATH = '/megaroof/MegaRoofconfig.toml'

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        override_file: Optional[Union[str, Path]] = None
    ):
        """Initialize configuration by loading TOML files.

        Args:
            config_file: Primary config path, defaults to ./MegaRoofconfig.toml
            override_file: Override config path, defaults to OVERRIDE_CONFIG_PATH
        """
        self._lock = threading.RLock()
        self._dict = {}
        self._dict2 = {}

        self._config_file = Path(config_file) if config_file else Path.cwd() / self.DEFAULT_CONFIG_FILE
        self._override_file = Path(override_file) if override_file else Path(self.OVERRIDE_CONFIG_PATH)

        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from TOML files.

        Raises:
            MegaRoofConfigError: If primary config file cannot be loaded.
        """
        with self._lock:
            try:
                self._dict = toml.load(self._config_file)
            except (FileNotFoundError, toml.TomlDecodeError) as e:
                raise MegaRoofConfigError(
                    f"Failed to load primary config file {self._config_file}: {e}"
                ) from e

            try:
                if self._override_file.exists():
                    self._dict2 = toml.load(self._override_file)
            except toml.TomlDecodeError as e:
                raise MegaRoofConfigError(
                    f"Failed to load override config file {self._override_file}: {e}"
                ) from e

    def _get_toml(self, sect: str, item: str, default: Any = None) -> Any:
        """Get configuration value, checking override file first.

        Args:
            sect: Configuration section name
            item: Configuration item name
            default: Returned when the item is in neither file

        Returns:
            Configuration value or default if not found
        """
        with self._lock:
            try:
                return self._dict2[sect][item]
            except KeyError:
                try:
                    return self._dict[sect][item]
                except KeyError:
                    return default

    _TRUE_STRINGS = ('true', 'yes', 'on', '1')
    _FALSE_STRINGS = ('false', 'no', 'off', '0')

    def _get_bool(self, sect: str, item: str, default: bool) -> bool:
        """Get a boolean setting, accepting TOML booleans or common strings.

        Raises:
            MegaRoofConfigError: If the value is not recognisable as a boolean
        """
        value = self._get_toml(sect, item, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            if text in self._TRUE_STRINGS:
                return True
            if text in self._FALSE_STRINGS:
                return False
        raise MegaRoofConfigError(f"[{sect}] {item} must be true or false, got {value!r}")

    def _put_toml(self, sect: str, item: str, setting: Any) -> None:
        """Set configuration value in the appropriate dictionary.

        Args:
            sect: Configuration section name
            item: Configuration item name
            setting: Value to set
        """
        with self._lock:
            # If override file exists or has been used, update it
            # Otherwise update primary config
            if self._dict2 or self._override_file.exists():
                self._dict2.setdefault(sect, {})[item] = setting
            else:
                self._dict.setdefault(sect, {})[item] = setting

    def save(self) -> None:
        """Save configuration to file, overwriting existing.

        Raises:
            MegaRoofConfigError: If configuration cannot be saved.
        """
        with self._lock:
            try:
                if self._dict2 or self._override_file.exists():
                    self._override_file.parent.mkdir(parents=True, exist_ok=True)
                    with self._override_file.open('w', encoding='utf-8') as f:
                        toml.dump(self._dict2, f)
                else:
                    with self._config_file.open('w', encoding='utf-8') as f:
                        toml.dump(self._dict, f)
            except OSError as e:
                raise MegaRoofConfigError(f"Failed to save configuration: {e}") from e

    def reload(self) -> None:
        """Reload configuration from files.

        Raises:
            MegaRoofConfigError: If configuration files cannot be reloaded.
        """
        with self._lock:
            self._dict = {}
            self._dict2 = {}
            self._load_config()

    # Configuration section constants
    DEVICE_SECTION = 'device'
    SHUTTER_SECTION = 'shutter'
    LOGGING_SECTION = 'logging'

    # --------------
    # Device Section
    # --------------

    @property
    def dev_port(self) -> str:
        """Roof controller serial port."""
        return self._get_toml(self.DEVICE_SECTION, 'dev_port') or 'COM1'

    @dev_port.setter
    def dev_port(self, value: str) -> None:
        self._put_toml(self.DEVICE_SECTION, 'dev_port', value)

    @property
    def baud_rate(self) -> int:
        """Serial baud rate (controller firmware 2.5+ runs at 19200)."""
        return int(self._get_toml(self.DEVICE_SECTION, 'baud_rate', 19200))

    @baud_rate.setter
    def baud_rate(self, value: int) -> None:
        self._put_toml(self.DEVICE_SECTION, 'baud_rate', value)

    # ---------------
    # Shutter Section
    # ---------------

    @property
    def poll_interval(self) -> float:
        """Seconds per shutter reply wait attempt."""
        return float(self._get_toml(self.SHUTTER_SECTION, 'poll_interval', 0.6))

    @poll_interval.setter
    def poll_interval(self, value: float) -> None:
        self._put_toml(self.SHUTTER_SECTION, 'poll_interval', value)

    @property
    def poll_attempts(self) -> int:
        """Number of shutter reply wait attempts."""
        return int(self._get_toml(self.SHUTTER_SECTION, 'poll_attempts', 5))

    @poll_attempts.setter
    def poll_attempts(self, value: int) -> None:
        self._put_toml(self.SHUTTER_SECTION, 'poll_attempts', value)

    # ---------------
    # Logging Section
    # ---------------

    @property
    def trace_enabled(self) -> bool:
        """Diagnostic logging toggle."""
        return self._get_bool(self.LOGGING_SECTION, 'trace_enabled', True)

    @trace_enabled.setter
    def trace_enabled(self, value: bool) -> None:
        self._put_toml(self.LOGGING_SECTION, 'trace_enabled', value)

    @property
    def log_level(self) -> int:
        """Logging level as integer."""
        level = logging.getLevelName(self._get_toml(self.LOGGING_SECTION, 'log_level', 'INFO'))
        return level if isinstance(level, int) else logging.INFO

    @log_level.setter
    def log_level(self, value: str) -> None:
        """Set log level using string value."""
        self._put_toml(self.LOGGING_SECTION, 'log_level', value)

    @property
    def log_to_stdout(self) -> bool:
        """Enable logging to stdout."""
        return self._get_bool(self.LOGGING_SECTION, 'log_to_stdout', False)

    @log_to_stdout.setter
    def log_to_stdout(self, value: bool) -> None:
        self._put_toml(self.LOGGING_SECTION, 'log_to_stdout', value)

    @property
    def log_file(self) -> str:
        return self._get_toml(self.LOGGING_SECTION, 'log_file') or 'megaroof.log'

    @log_file.setter
    def log_file(self, value: str) -> None:
        self._put_toml(self.LOGGING_SECTION, 'log_file', value)

    @property
    def max_size_mb(self) -> int:
        """Maximum log file size in MB."""
        return int(self._get_toml(self.LOGGING_SECTION, 'max_size_mb', 5))

    @max_size_mb.setter
    def max_size_mb(self, value: int) -> None:
        self._put_toml(self.LOGGING_SECTION, 'max_size_mb', value)

    @property
    def num_keep_logs(self) -> int:
        """Number of log files to keep."""
        return int(self._get_toml(self.LOGGING_SECTION, 'num_keep_logs', 10))

    @num_keep_logs.setter
    def num_keep_logs(self, value: int) -> None:
        self._put_toml(self.LOGGING_SECTION, 'num_keep_logs', value)

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"config_file='{self._config_file}', "
            f"override_file='{self._override_file}')"
        )
