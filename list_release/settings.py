"""
Configuration settings for the list release service.

Centralized configuration using Pydantic Settings for type-safe environment
variable handling. All settings can be overridden via environment variables
with the LIST_RELEASE_ prefix. The TMDB credential, concurrency limit and
relay endpoint additionally accept the bare names used by older deployments
(TMDB_BEARER, LIST_CONCURRENCY, SCRAPER_PROXY).

Example:
    export LIST_RELEASE_LOG_LEVEL=DEBUG
    export TMDB_BEARER=eyJhbGciOi...
    python -m list_release.main --mode web
"""

import logging
from pathlib import Path
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from pydantic import AliasChoices
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_6) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:119.0) Gecko/20100101 Firefox/119.0",
]


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Read once at process startup and handed to the pipeline explicitly;
    deep components never consult the environment themselves.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIST_RELEASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Core application settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging and error traces"
    )

    log_dir: Path = Field(
        default=Path("logs"),
        description="Directory for the rotating log file"
    )

    # Web server configuration
    host: str = Field(
        default="0.0.0.0",
        description="Host address to bind web server"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port number for web server"
    )

    # External catalogue
    tmdb_bearer: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("list_release_tmdb_bearer", "tmdb_bearer"),
        description="TMDB v4 read access token; lookups are skipped when unset"
    )

    tmdb_base_url: str = Field(
        default="https://api.themoviedb.org/3",
        description="Root of the TMDB REST API"
    )

    letterboxd_base_url: str = Field(
        default="https://letterboxd.com",
        description="Root of the list hosting site"
    )

    # Scraping behavior settings
    concurrency: int = Field(
        default=1,
        ge=1,
        le=20,
        validation_alias=AliasChoices("list_release_concurrency", "list_concurrency"),
        description="Number of films resolved concurrently"
    )

    relay_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("list_release_relay_url", "scraper_proxy"),
        description="Optional forwarding relay; requests become {relay_url}?url=<target>"
    )

    request_timeout: float = Field(
        default=15.0,
        gt=0,
        le=120.0,
        description="HTTP request timeout in seconds, per attempt"
    )

    max_retries: int = Field(
        default=4,
        ge=1,
        le=10,
        description="Maximum number of attempts for a single fetch"
    )

    max_list_pages: int = Field(
        default=200,
        ge=1,
        description="Upper bound on list pages fetched, whatever the pagination claims"
    )

    backoff_base: float = Field(
        default=0.3,
        ge=0,
        description="Base delay in seconds for exponential backoff"
    )

    backoff_cap: float = Field(
        default=8.0,
        ge=0,
        description="Upper bound in seconds for a single backoff delay"
    )

    backoff_jitter: float = Field(
        default=0.3,
        ge=0,
        description="Maximum random jitter in seconds added to each backoff"
    )

    page_delay_min: float = Field(default=0.15, ge=0)
    page_delay_max: float = Field(default=0.35, ge=0)
    item_delay_min: float = Field(default=0.04, ge=0)
    item_delay_max: float = Field(default=0.10, ge=0)

    user_agents: List[str] = Field(
        default_factory=lambda: list(DEFAULT_USER_AGENTS),
        min_length=1,
        description="User-Agent pool rotated across retry attempts"
    )

    accept_language: str = Field(
        default="en-US,en;q=0.9",
        description="Accept-Language header sent with every request"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got {v}")
        return upper_v

    @field_validator("tmdb_bearer", "relay_url")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def validate_delay_ranges(self) -> "Settings":
        if self.page_delay_max < self.page_delay_min:
            raise ValueError("page_delay_max must be >= page_delay_min")
        if self.item_delay_max < self.item_delay_min:
            raise ValueError("item_delay_max must be >= item_delay_min")
        return self

    @property
    def has_tmdb_credentials(self) -> bool:
        return self.tmdb_bearer is not None

    @property
    def logging_config(self) -> Dict[str, Any]:
        """Get logging configuration dict."""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "structured": {
                    "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                    "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": self.log_level,
                    "formatter": "structured" if self.debug_mode else "standard",
                    "stream": "ext://sys.stdout",
                },
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "level": "INFO",
                    "formatter": "structured",
                    "filename": str(self.log_dir / "list_release.log"),
                    "maxBytes": 10485760,  # 10MB
                    "backupCount": 5,
                },
            },
            "loggers": {
                "list_release": {
                    "level": self.log_level,
                    "handlers": ["console", "file"],
                    "propagate": False,
                },
                "aiohttp.access": {
                    "level": "WARNING",
                    "handlers": ["console"],
                    "propagate": False,
                },
            },
            "root": {
                "level": "WARNING",
                "handlers": ["console"],
            },
        }

    def setup_logging(self) -> None:
        """Configure application logging based on current settings."""
        import logging.config

        self.log_dir.mkdir(parents=True, exist_ok=True)

        logging.config.dictConfig(self.logging_config)

        # Set up structured logging for production
        if not self.debug_mode:
            import structlog

            structlog.configure(
                processors=[
                    structlog.stdlib.filter_by_level,
                    structlog.stdlib.add_logger_name,
                    structlog.stdlib.add_log_level,
                    structlog.stdlib.PositionalArgumentsFormatter(),
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.processors.StackInfoRenderer(),
                    structlog.processors.format_exc_info,
                    structlog.processors.UnicodeDecoder(),
                    structlog.processors.JSONRenderer(),
                ],
                context_class=dict,
                logger_factory=structlog.stdlib.LoggerFactory(),
                wrapper_class=structlog.stdlib.BoundLogger,
                cache_logger_on_first_use=True,
            )

        logging.getLogger(__name__).debug("Logging configured at %s", self.log_level)


# Global settings instance
settings = Settings()

# Convenience function for external usage
def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
