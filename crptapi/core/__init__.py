"""Core utilities for the CRPT API client."""

from crptapi.core.config import Settings, settings
from crptapi.core.http_client import create_async_http_client, create_http_client
from crptapi.core.logging import get_log_context, get_logger, setup_logging

__all__ = [
    "Settings",
    "settings",
    "create_http_client",
    "create_async_http_client",
    "get_logger",
    "get_log_context",
    "setup_logging",
]
