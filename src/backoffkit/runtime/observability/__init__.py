"""Observability - log output for the backoffkit logger namespace."""

from .logging import JsonFormatter, TextFormatter, configure_logging

__all__ = ["configure_logging", "TextFormatter", "JsonFormatter"]
