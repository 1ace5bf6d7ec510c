"""Foundation layer: units, errors and configuration shared by the runtime."""

from .config import BackoffkitSettings, LoggingSettings, RetrySettings, clear_settings_cache, get_settings
from .errors import BackoffConfigurationError, BackoffError, BackoffRuntimeError
from .units import Unit, convert_timespan

__all__ = [
    # Units
    "Unit", "convert_timespan",
    # Errors
    "BackoffError", "BackoffConfigurationError", "BackoffRuntimeError",
    # Settings
    "BackoffkitSettings", "RetrySettings", "LoggingSettings", "get_settings", "clear_settings_cache",
]
