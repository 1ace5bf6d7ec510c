"""Error taxonomy for backoffkit.

- BackoffError: base class
- BackoffConfigurationError: invalid settings, raised before or at first use
- BackoffRuntimeError: protocol violations while running
"""

from .errors import BackoffConfigurationError, BackoffError, BackoffRuntimeError

__all__ = ["BackoffError", "BackoffConfigurationError", "BackoffRuntimeError"]
