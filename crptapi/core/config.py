from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "https://ismp.crpt.ru/api/v3/lk/documents/create"


class Settings(BaseSettings):
    """Client settings loaded from environment variables.

    All settings can be configured via CRPT_* environment variables or .env file.
    """

    # Document creation endpoint
    api_url: str = DEFAULT_API_URL

    # Rate limiting settings (at most N requests per window)
    rate_limit_requests: int = 10
    rate_limit_window_seconds: float = 1.0
    # If False, permits only come back on the window reset
    rate_limit_release_on_completion: bool = True

    # HTTP client settings
    # Granular timeouts set to None fall back to httpx_timeout
    httpx_timeout: float = 30.0  # Default timeout for all operations
    httpx_connect_timeout: Optional[float] = 10.0  # Time to establish connection
    httpx_read_timeout: Optional[float] = None  # Time to read response data
    httpx_write_timeout: Optional[float] = 10.0  # Time to send request data
    httpx_pool_timeout: Optional[float] = 5.0  # Time to acquire connection from pool
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("rate_limit_requests")
    @classmethod
    def validate_rate_limit_requests(cls, v: int) -> int:
        """Validate the permit count is positive."""
        if v < 1:
            raise ValueError("rate_limit_requests must be at least 1")
        return v

    @field_validator("rate_limit_window_seconds")
    @classmethod
    def validate_rate_limit_window(cls, v: float) -> float:
        """Validate the window duration is positive."""
        if v <= 0:
            raise ValueError("rate_limit_window_seconds must be positive")
        return v

    @field_validator(
        "httpx_timeout",
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "httpx_write_timeout",
        "httpx_pool_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: Optional[float]) -> Optional[float]:
        """Validate timeout values are positive."""
        if v is not None and v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("httpx_max_connections", "httpx_max_keepalive_connections")
    @classmethod
    def validate_pool_size_positive(cls, v: int) -> int:
        """Validate connection pool sizes are positive."""
        if v < 1:
            raise ValueError("connection pool sizes must be at least 1")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return v

    model_config = SettingsConfigDict(env_prefix="CRPT_", env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
