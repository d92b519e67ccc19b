"""
Configuration management for FeedPage.

Uses Pydantic for validation and pydantic-settings for environment variable support.
"""

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerConfig(BaseSettings):
    """Refresh scheduler configuration."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_", populate_by_name=True)

    enabled: bool = Field(default=True, description="Enable periodic refresh")
    timezone: str = Field(default="UTC", description="Scheduler timezone")

    refresh_minutes: int = Field(
        default=5,
        ge=1,
        validation_alias=AliasChoices("SCHEDULER_REFRESH_MINUTES", "REFRESH_MINUTES"),
        description="Minutes between refresh cycles",
    )


class FetcherConfig(BaseSettings):
    """RSS/Atom fetcher configuration."""

    model_config = SettingsConfigDict(env_prefix="FETCHER_")

    # HTTP settings
    timeout_seconds: int = Field(default=30, ge=1, le=300, description="Request timeout")
    user_agent: str = Field(
        default="FeedPage/0.1.0 (+https://github.com/feedpage)",
        description="User-Agent header"
    )

    # Connection pool shared by all fetches of one cycle
    max_connections: int = Field(default=1000, ge=1, description="Maximum open connections")

    # Follow redirects
    follow_redirects: bool = Field(default=True)
    max_redirects: int = Field(default=5, ge=0, le=20)


class DigestConfig(BaseSettings):
    """Digest ranking configuration."""

    model_config = SettingsConfigDict(env_prefix="DIGEST_", populate_by_name=True)

    max_items: int = Field(
        default=10,
        ge=1,
        le=1000,
        validation_alias=AliasChoices("DIGEST_MAX_ITEMS", "N_ITEMS"),
        description="Maximum items per digest node",
    )
    timezone: Optional[str] = Field(
        default=None,
        description="Timezone used to format subhead dates (default: server local time)",
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Validate timezone name."""
        if v is None or not v.strip():
            return None

        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v!r}")
        return v


class EnricherConfig(BaseSettings):
    """Summary enricher configuration."""

    model_config = SettingsConfigDict(env_prefix="ENRICHER_")

    enabled: bool = Field(default=True, description="Enable article scraping")
    backend: str = Field(default="playwright", description="Renderer: playwright or http")
    min_summary_length: int = Field(
        default=1000,
        ge=0,
        description="Summaries shorter than this are scraped from the article page"
    )
    content_selector: str = Field(
        default='[itemprop="articleBody"]',
        description="CSS selector of the article body element"
    )
    navigation_timeout_seconds: int = Field(default=30, ge=1, le=300, description="Page load timeout")
    browser_args: list[str] = Field(
        default_factory=lambda: ["--no-sandbox"],
        description="Extra Chromium launch arguments"
    )
    user_agent: str = Field(
        default="FeedPage/0.1.0 (+https://github.com/feedpage)",
        description="User-Agent header for the http backend"
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate renderer backend."""
        v = v.lower().strip()
        valid_backends = ["playwright", "http"]
        if v not in valid_backends:
            raise ValueError(f"Invalid renderer backend: {v!r}. Must be one of {valid_backends}")
        return v


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        description="Log format"
    )

    # File logging
    file_enabled: bool = Field(default=False, description="Enable file logging")
    file_path: str = Field(default="logs/feedpage.log", description="Log file path")
    rotation: str = Field(default="100 MB", description="Log rotation size")
    retention: str = Field(default="30 days", description="Log retention period")

    # Console logging
    console_enabled: bool = Field(default=True, description="Enable console logging")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v


class WebConfig(BaseSettings):
    """Web server configuration."""

    model_config = SettingsConfigDict(env_prefix="WEB_", populate_by_name=True)

    host: str = Field(default="0.0.0.0", description="Web server host")
    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("WEB_PORT", "PORT"),
        description="Web server port",
    )
    static_folder: str = Field(default="build", description="Folder served as static files")
    debug: bool = Field(default=False, description="Debug mode")


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FEEDPAGE_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    name: str = Field(
        default="FeedPage",
        validation_alias=AliasChoices("FEEDPAGE_NAME", "NAME"),
        description="Display name returned by the data endpoint",
    )
    opml_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("FEEDPAGE_OPML_URL", "OPML_URL"),
        description="Address of the OPML outline",
    )

    # Sub-configurations
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    digest: DigestConfig = Field(default_factory=DigestConfig)
    enricher: EnricherConfig = Field(default_factory=EnricherConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    web: WebConfig = Field(default_factory=WebConfig)


_NESTED_CONFIGS = {
    "scheduler": SchedulerConfig,
    "fetcher": FetcherConfig,
    "digest": DigestConfig,
    "enricher": EnricherConfig,
    "logging": LoggingConfig,
    "web": WebConfig,
}

# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Replace the global configuration instance (None resets it)."""
    global _config
    _config = config


def load_config_from_yaml(yaml_path: str) -> Config:
    """Load configuration from a YAML file.

    Note: Values loaded from YAML take precedence over environment variables.
    For environment variable overrides, use .env file or set them directly.

    Args:
        yaml_path: Path to the YAML configuration file.

    Returns:
        Config instance loaded from the file.
    """
    import yaml

    yaml_file = Path(yaml_path)
    if not yaml_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    with yaml_file.open("r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f) or {}

    main_config = {}
    nested_configs = {}

    for key, value in config_dict.items():
        if key in _NESTED_CONFIGS:
            nested_configs[key] = value or {}
        else:
            main_config[key] = value

    # Nested sections are built from their own classes so env vars still apply
    for key, config_class in _NESTED_CONFIGS.items():
        if key in nested_configs:
            nested_configs[key] = config_class(**nested_configs[key])
        else:
            nested_configs[key] = config_class()

    main_config.update(nested_configs)
    return Config(**main_config)


def reload_config(yaml_path: Optional[str] = None) -> Config:
    """Reload configuration from environment and YAML files."""
    global _config
    _config = None

    config_yaml = Path(yaml_path or "config/config.yaml")
    if config_yaml.exists():
        _config = load_config_from_yaml(str(config_yaml))
    elif yaml_path:
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")
    else:
        _config = Config()

    return _config
