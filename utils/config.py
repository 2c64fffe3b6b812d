"""Configuration for the Data Inclusion explorer.

All settings come from environment variables with defaults that work out of
the box against the public staging API.
"""

import os as _os
from typing import Any, Dict


class Config:
    """Base configuration class for organizing application settings."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary.

        Returns:
            Dictionary of all public config attributes
        """
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary, starting from the defaults.

        Args:
            data: Attribute overrides

        Returns:
            Config instance with values from dictionary
        """
        config = cls()
        for key, value in data.items():
            setattr(config, key, value)
        return config


def _env_flag(name: str, default: str = "0") -> bool:
    return _os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    Environment variables:
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_PORT: API server port (default: 8000)
        APP_LOG_FORMAT: Logging format — "text" or "json" (default: text)
        APP_DEBUG: 1 enables DEBUG diagnostics for the filters package
            (dropped URL parameters, rejected values) (default: 0)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        DATA_INCLUSION_BASE_URL: Data Inclusion API root
            (default: https://api-staging.data.inclusion.beta.gouv.fr)
        DATA_INCLUSION_VERSION: Data Inclusion API version (default: v1)
        GEO_API_BASE_URL: Commune lookup API root (default: https://geo.api.gouv.fr)
        UPSTREAM_TIMEOUT: Upstream request timeout in seconds (default: 15)
        PAGE_SIZE: Services per results page (default: 50)
        FILTER_DEBOUNCE_MS: Delay before filter changes reach the URL (default: 300)
    """

    def __init__(self) -> None:
        super().__init__()
        self.api_host = _os.getenv("APP_HOST", "127.0.0.1")
        self.api_port = int(_os.getenv("APP_PORT", "8000"))
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text")
        self.debug = _env_flag("APP_DEBUG")
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        self.data_inclusion_base_url = _os.getenv(
            "DATA_INCLUSION_BASE_URL", "https://api-staging.data.inclusion.beta.gouv.fr"
        ).rstrip("/")
        self.data_inclusion_version = _os.getenv("DATA_INCLUSION_VERSION", "v1")
        self.geo_api_base_url = _os.getenv(
            "GEO_API_BASE_URL", "https://geo.api.gouv.fr"
        ).rstrip("/")
        self.upstream_timeout = float(_os.getenv("UPSTREAM_TIMEOUT", "15"))
        self.page_size = int(_os.getenv("PAGE_SIZE", "50"))
        self.filter_debounce_ms = int(_os.getenv("FILTER_DEBOUNCE_MS", "300"))

    @property
    def filter_debounce_seconds(self) -> float:
        return self.filter_debounce_ms / 1000.0

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()
