# This handles the global instances used by the MegaRoof runner

import threading
from logging import Logger

# Lazy imports to avoid circular dependencies
_MegaRoofConfig = None
_MegaRoofDevice = None

_lock = threading.RLock()

_config_instance = None
_device_instance = None


def get_config():
    """Get or create the global configuration instance."""
    global _config_instance, _MegaRoofConfig

    if _config_instance is None:
        with _lock:
            if _config_instance is None:
                if _MegaRoofConfig is None:
                    import MegaRoofConfig as _MegaRoofConfig
                _config_instance = _MegaRoofConfig.MegaRoofConfig()

    return _config_instance


def set_config(config) -> None:
    """Install an already loaded configuration instance."""
    global _config_instance

    with _lock:
        _config_instance = config


def get_device(logger: Logger):
    """Get or create the global device instance."""
    global _device_instance, _MegaRoofDevice

    if _device_instance is None:
        with _lock:
            if _device_instance is None:
                if _MegaRoofDevice is None:
                    import MegaRoofDevice as _MegaRoofDevice
                _device_instance = _MegaRoofDevice.MegaRoofDevice(get_config(), logger)

    return _device_instance


def reset_device() -> None:
    """Disconnect and drop the device instance (for cleanup)."""
    global _device_instance

    with _lock:
        if _device_instance is not None:
            _device_instance.disconnect()
            _device_instance = None
