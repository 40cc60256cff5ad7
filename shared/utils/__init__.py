"""
Shared utilities for the MedicinaHub portal

Logging, Redis connection management and input sanitization used by the
portal API.
"""

from .logger import setup_logging, ErrorLogWriter
from .redis_client import init_redis_client, get_redis_client, close_redis_client
from .security import sanitize_input, extract_bearer_token

__all__ = [
    "setup_logging",
    "ErrorLogWriter",
    "init_redis_client",
    "get_redis_client",
    "close_redis_client",
    "sanitize_input",
    "extract_bearer_token",
]

__version__ = "1.0.0"
