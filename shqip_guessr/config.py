"""
Centralized configuration management with validation and type conversion.

All settings come from environment variables (optionally loaded from
`.env.local` / `.env` next to the package). Round acquisition deadlines,
attempt counts and the fallback pool location live here so the API and the
offline scripts agree on them.
"""

import os
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass
from enum import Enum

from dotenv import load_dotenv

_ROOT = Path(__file__).resolve().parent.parent
# load_dotenv never overrides variables already present in the environment
for _env_file in (_ROOT / ".env.local", _ROOT / ".env"):
    if _env_file.exists():
        load_dotenv(_env_file)

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_IDS_FILE = str(Path(__file__).resolve().parent / "src" / "data" / "fallback_ids.json")


class Environment(Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass
class RoundConfig:
    """Round acquisition tuning."""
    attempts: int = 5
    urgent_timeout: float = 4.5
    preload_timeout: float = 60.0
    search_limit: int = 100
    fallback_retries: int = 3
    request_timeout: float = 30.0


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5


class Config:
    """Centralized configuration with validation and type conversion."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.environment = self._get_environment()
        self.debug = self._get_bool("DEBUG", False)

        # API keys
        self.mapillary_token = self._get_optional("MAPILLARY_TOKEN")

        # Optional metrics backend
        self.redis_url = self._get_optional("REDIS_URL")

        self.cors_allow_origin = self._get_str("CORS_ALLOW_ORIGIN", "*")
        self.fallback_ids_file = self._get_str("FALLBACK_IDS_FILE", DEFAULT_FALLBACK_IDS_FILE)

        self.round_config = RoundConfig(
            attempts=self._get_int("ROUND_SEARCH_ATTEMPTS", 5),
            urgent_timeout=self._get_float("ROUND_URGENT_TIMEOUT", 4.5),
            preload_timeout=self._get_float("ROUND_PRELOAD_TIMEOUT", 60.0),
            search_limit=self._get_int("ROUND_SEARCH_LIMIT", 100),
            fallback_retries=self._get_int("ROUND_FALLBACK_RETRIES", 3),
            request_timeout=self._get_float("TIMEOUT_MAPILLARY", 30.0),
        )

        self.logging_config = LoggingConfig(
            level=self._get_str("LOG_LEVEL", "INFO"),
            format=self._get_str("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            file=self._get_optional("LOG_FILE"),
            max_bytes=self._get_int("LOG_MAX_BYTES", 10485760),
            backup_count=self._get_int("LOG_BACKUP_COUNT", 5),
        )

        self._validate()

    def _get_environment(self) -> Environment:
        """Get application environment."""
        env_str = self._get_str("ENVIRONMENT", "development").lower()
        try:
            return Environment(env_str)
        except ValueError:
            raise ValueError(f"Invalid environment: {env_str}")

    def _get_optional(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get optional environment variable, treating empty strings as unset."""
        return os.getenv(key) or default

    def _get_str(self, key: str, default: str) -> str:
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int) -> int:
        """Get integer environment variable with default.

        Raises:
            ValueError: If value cannot be converted to int
        """
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Invalid integer for {key}: {value}")

    def _get_float(self, key: str, default: float) -> float:
        """Get float environment variable with default.

        Raises:
            ValueError: If value cannot be converted to float
        """
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"Invalid float for {key}: {value}")

    def _get_bool(self, key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ('1', 'true', 'yes', 'on')

    def _validate(self):
        """Validate configuration values."""
        rc = self.round_config
        for attr_name in ['urgent_timeout', 'preload_timeout', 'request_timeout']:
            timeout = getattr(rc, attr_name)
            if timeout <= 0:
                raise ValueError(f"Invalid timeout for {attr_name}: {timeout}")

        if rc.attempts < 1:
            raise ValueError(f"Invalid search attempt count: {rc.attempts}")
        if rc.fallback_retries < 1:
            raise ValueError(f"Invalid fallback retry count: {rc.fallback_retries}")
        # Mapillary caps `limit` at 2000 per page
        if not 1 <= rc.search_limit <= 2000:
            raise ValueError(f"Invalid search limit: {rc.search_limit}")

        if self.redis_url and not self.redis_url.startswith(('redis://', 'rediss://')):
            raise ValueError(f"Invalid Redis URL: {self.redis_url}")

        if not self.mapillary_token:
            logger.warning("MAPILLARY_TOKEN not set - /api/round will return errors")

    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for debugging (secrets omitted)."""
        return {
            'environment': self.environment.value,
            'debug': self.debug,
            'mapillary_token_set': bool(self.mapillary_token),
            'redis_url': self.redis_url,
            'fallback_ids_file': self.fallback_ids_file,
            'round_config': {
                'attempts': self.round_config.attempts,
                'urgent_timeout': self.round_config.urgent_timeout,
                'preload_timeout': self.round_config.preload_timeout,
                'search_limit': self.round_config.search_limit,
                'fallback_retries': self.round_config.fallback_retries,
                'request_timeout': self.round_config.request_timeout,
            },
        }


# Global configuration instance
config = Config()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config


def setup_logging():
    """Set up logging based on configuration."""
    from logging.handlers import RotatingFileHandler

    config = get_config()

    logging.basicConfig(
        level=getattr(logging, config.logging_config.level.upper()),
        format=config.logging_config.format,
    )

    if config.logging_config.file:
        file_handler = RotatingFileHandler(
            config.logging_config.file,
            maxBytes=config.logging_config.max_bytes,
            backupCount=config.logging_config.backup_count,
        )
        file_handler.setFormatter(logging.Formatter(config.logging_config.format))
        logging.getLogger().addHandler(file_handler)

    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    if config.is_development() and config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif config.is_production():
        logging.getLogger().setLevel(logging.INFO)
