"""Core package - Configuration, logging, exceptions.

This package provides foundational infrastructure used by all other layers.

Modules:
    - config: Environment and configuration management
    - logging: Structured JSON logging
    - exceptions: Custom exception hierarchy
    - notifications: User-facing warnings and information messages
"""

from src.core.exceptions import (
    CDPError,
    ConfigurationError,
    GraviError,
    SchedulerError,
    TransportError,
    ValidationError,
)

__all__ = [
    "GraviError",
    "ConfigurationError",
    "ValidationError",
    "TransportError",
    "CDPError",
    "SchedulerError",
]
