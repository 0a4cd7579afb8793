from dotenv import load_dotenv
from dataclasses import dataclass
from pathlib import Path
import json
import os

from harvester.constants import (
    DEFAULT_FETCH_TIMEOUT_MS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MAX_IMAGE_BYTES,
    DEFAULT_MAX_IMAGES,
    DEFAULT_MAX_PAGES,
    DEFAULT_MAX_REQUESTS_PER_MINUTE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MIN_DELAY_MS,
    DEFAULT_PAGE_DELAY_MS,
    DEFAULT_PAGE_TIMEOUT_MS,
    MAX_LINKS_PER_PAGE,
    SLOW_FETCH_TIMEOUT_MS,
)
from harvester.infrastructure.rate_limiter import RateLimitConfig

load_dotenv()  # Loads variables from .env file


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Manages process-wide settings loaded from environment variables.
    """
    LOG_LEVEL = os.getenv("HARVEST_LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("HARVEST_LOG_FILE")
    DB_PATH = os.getenv("HARVEST_DB_PATH", "harvest.db")
    HEADLESS = _env_bool("HARVEST_HEADLESS", True)
    CLASSIFIER_RULES_PATH = os.getenv("HARVEST_CLASSIFIER_RULES")


settings = Settings()


@dataclass
class HarvestConfig:
    """Budgets and politeness settings for one crawl."""

    max_pages: int = DEFAULT_MAX_PAGES
    max_depth: int = DEFAULT_MAX_DEPTH
    page_timeout_ms: int = DEFAULT_PAGE_TIMEOUT_MS
    page_delay_ms: int = DEFAULT_PAGE_DELAY_MS
    max_links_per_page: int = MAX_LINKS_PER_PAGE

    # Fetcher
    fetch_timeout_ms: int = DEFAULT_FETCH_TIMEOUT_MS
    slow_fetch_timeout_ms: int = SLOW_FETCH_TIMEOUT_MS
    fetch_max_retries: int = DEFAULT_MAX_RETRIES

    # Per-origin politeness
    min_delay_ms: int = DEFAULT_MIN_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    max_requests_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE

    # Images
    download_images: bool = True
    max_images: int = DEFAULT_MAX_IMAGES
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES

    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        if self.max_depth < 0:
            raise ValueError("max_depth must not be negative")
        if self.min_delay_ms > self.max_delay_ms:
            raise ValueError("min_delay_ms must not exceed max_delay_ms")

    def rate_limit_config(self) -> RateLimitConfig:
        """Politeness budget for page-level requests."""
        return RateLimitConfig(
            min_delay_ms=self.min_delay_ms,
            max_delay_ms=self.max_delay_ms,
            max_requests_per_minute=self.max_requests_per_minute,
        )

    @classmethod
    def from_env(cls) -> "HarvestConfig":
        """Load configuration from environment variables.

        Environment variables are prefixed with HARVEST_,
        e.g. HARVEST_MAX_PAGES=25

        Returns:
            HarvestConfig with values from environment
        """
        values = {}
        prefix = "HARVEST_"

        for field_name, field_def in cls.__dataclass_fields__.items():
            env_value = os.getenv(f"{prefix}{field_name.upper()}")
            if env_value is None:
                continue
            field_type = field_def.type
            try:
                if field_type in (int, "int"):
                    values[field_name] = int(env_value)
                elif field_type in (bool, "bool"):
                    values[field_name] = _env_bool(f"{prefix}{field_name.upper()}", False)
                else:
                    values[field_name] = env_value
            except ValueError:
                pass  # Keep default if conversion fails

        return cls(**values)

    @classmethod
    def from_file(cls, path: str) -> "HarvestConfig":
        """Load configuration from a JSON file.

        Args:
            path: Path to JSON configuration file

        Returns:
            HarvestConfig with values from file (defaults when missing)
        """
        file_path = Path(path)
        if not file_path.exists():
            return cls()

        with open(file_path, 'r') as f:
            config = json.load(f)

        section = config.get('harvest', config)
        return cls(**{
            name: section[name]
            for name in cls.__dataclass_fields__
            if name in section
        })

    def to_dict(self) -> dict:
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }
