"""
Utility functions for the n8n credential injector.
"""

from .encryption_utils import derive_key, encrypt_bytes, encrypt_payload
from .json_utils import dumps, loads
from .logger import (
    ContextAwareLogger,
    RunContextFilter,
    configure_logging,
    get_logger,
    reset_logging,
)

__all__ = [
    # Encryption utilities
    "derive_key",
    "encrypt_bytes",
    "encrypt_payload",
    # JSON utilities
    "dumps",
    "loads",
    # Logging utilities
    "ContextAwareLogger",
    "RunContextFilter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]
