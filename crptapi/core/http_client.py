"""HTTP client construction for the document submitters.

Both factories read their defaults from settings so the sync and async
submitters share the same timeout and connection pool configuration.
"""

from typing import Any, Dict

import httpx

from crptapi.core.config import settings


def _client_config(**kwargs) -> Dict[str, Any]:
    """Build the timeout and pool limits shared by both client flavours.

    Granular timeouts left unset fall back to the overall timeout
    (settings.httpx_timeout).

    Args:
        **kwargs: Override default settings. Can include:
            - timeout: Single timeout value (overrides all granular timeouts)
            - connect_timeout: Connection timeout
            - read_timeout: Read timeout
            - write_timeout: Write timeout
            - pool_timeout: Pool acquisition timeout
            - max_connections: Maximum connections
            - max_keepalive_connections: Maximum keepalive connections
            - keepalive_expiry: Keepalive expiration time
    """
    timeout_override = kwargs.get("timeout")
    if timeout_override is not None:
        timeout = httpx.Timeout(timeout_override)
    else:
        default = settings.httpx_timeout

        def granular(key: str, configured: Any) -> float:
            value = kwargs.get(key, configured)
            return default if value is None else value

        timeout = httpx.Timeout(
            default,
            connect=granular("connect_timeout", settings.httpx_connect_timeout),
            read=granular("read_timeout", settings.httpx_read_timeout),
            write=granular("write_timeout", settings.httpx_write_timeout),
            pool=granular("pool_timeout", settings.httpx_pool_timeout),
        )

    return {
        "timeout": timeout,
        "limits": httpx.Limits(
            max_connections=kwargs.get(
                "max_connections", settings.httpx_max_connections
            ),
            max_keepalive_connections=kwargs.get(
                "max_keepalive_connections", settings.httpx_max_keepalive_connections
            ),
            keepalive_expiry=kwargs.get(
                "keepalive_expiry", settings.httpx_keepalive_expiry
            ),
        ),
    }


def create_http_client(**kwargs) -> httpx.Client:
    """Create a new blocking HTTP client with default settings.

    The returned client should be closed when done:
        with create_http_client() as client:
            ...
    """
    return httpx.Client(**_client_config(**kwargs))


def create_async_http_client(**kwargs) -> httpx.AsyncClient:
    """Create a new async HTTP client with default settings.

    The returned client should be closed when done:
        async with create_async_http_client() as client:
            ...
    """
    return httpx.AsyncClient(**_client_config(**kwargs))
