"""Configuration handling for the GIF feed."""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv


@dataclass
class FeedConfig:
    """Pagination and query handling configuration."""

    default_subreddit: str = "gifs"
    sort: str = "hot"
    page_size: int = 6
    page_quota: int = 9
    max_attempts: int = 15
    debounce_sec: float = 0.3
    asset_dir: str = "/assets"


@dataclass
class HttpConfig:
    """Upstream HTTP configuration."""

    base_url: str = "https://www.reddit.com"
    user_agent: str = "gif_feed/0.1"
    request_timeout_sec: float = 30.0
    max_retries: int = 0


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""

    max_requests_per_minute: int = 60
    min_remaining_calls: int = 5
    sleep_buffer_sec: int = 2


def _merge_section(target: Any, section: str, values: Dict[str, Any]) -> List[str]:
    """
    Copy known keys from a YAML mapping onto a config dataclass.

    Values are converted to the field's type, so a quoted `"0.3"` becomes a
    float. Values that cannot be converted are left at their default and
    reported in the returned list.
    """
    errors = []
    field_types = {f.name: f.type for f in fields(target)}

    for key, value in values.items():
        if key not in field_types:
            continue
        field_type = field_types[key]
        if value is None:
            errors.append(f"{section}.{key} must not be empty")
            continue
        try:
            setattr(target, key, field_type(value))
        except (TypeError, ValueError):
            errors.append(f"{section}.{key} must be {field_type.__name__}, got {value!r}")

    return errors


@dataclass
class Config:
    """Application configuration combining environment variables and YAML config."""

    feed: FeedConfig = field(default_factory=FeedConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    load_errors: List[str] = field(default_factory=list, repr=False)

    @classmethod
    def from_files(cls, config_path: str, env_path: Optional[str] = None) -> "Config":
        """
        Load configuration from YAML file and environment variables.

        Environment variables win over the YAML file.

        Args:
            config_path: Path to YAML configuration file (may not exist)
            env_path: Optional path to .env file (defaults to .env in current directory)

        Returns:
            Config instance with merged configuration
        """
        if env_path:
            load_dotenv(env_path)
        else:
            load_dotenv()

        config = cls()

        if config_path and os.path.exists(config_path):
            with open(config_path, "r", encoding="utf-8") as file:
                yaml_config = yaml.safe_load(file)

            if yaml_config:
                for section in ("feed", "http", "rate_limit"):
                    if isinstance(yaml_config.get(section), dict):
                        config.load_errors.extend(
                            _merge_section(getattr(config, section), section, yaml_config[section])
                        )

        config.http.base_url = os.getenv("GIF_FEED_BASE_URL", config.http.base_url)
        config.http.user_agent = os.getenv("GIF_FEED_USER_AGENT", config.http.user_agent)
        config.feed.default_subreddit = os.getenv(
            "GIF_FEED_DEFAULT_SUBREDDIT", config.feed.default_subreddit
        )

        return config

    def validate(self) -> List[str]:
        """
        Validate configuration and return a list of validation errors.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = list(self.load_errors)

        if not self.feed.default_subreddit.strip():
            errors.append("feed.default_subreddit must not be empty")
        if self.feed.page_size <= 0:
            errors.append("feed.page_size must be greater than 0")
        if self.feed.page_quota <= 0:
            errors.append("feed.page_quota must be greater than 0")
        if self.feed.max_attempts <= 0:
            errors.append("feed.max_attempts must be greater than 0")
        if self.feed.debounce_sec < 0:
            errors.append("feed.debounce_sec must not be negative")

        if not self.http.base_url.startswith(("http://", "https://")):
            errors.append("http.base_url must be an http(s) URL")
        if self.http.request_timeout_sec <= 0:
            errors.append("http.request_timeout_sec must be greater than 0")
        if self.http.max_retries < 0:
            errors.append("http.max_retries must not be negative")

        if self.rate_limit.max_requests_per_minute <= 0:
            errors.append("rate_limit.max_requests_per_minute must be greater than 0")

        return errors
