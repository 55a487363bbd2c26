"""Configuration management for the deal storefront."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseModel):
    """Database configuration."""

    url: str = "sqlite:///data/db/storefront.db"
    echo: bool = False


class FeedConfig(BaseModel):
    """Feed composition configuration."""

    initial_window: int = 12
    page_size: int = 8
    priority_head_size: int = 2
    ordering: str = "recency"  # recency, priority_shuffle
    search_categories: bool = True
    related_initial: int = 6
    related_page_size: int = 6


class CarouselConfig(BaseModel):
    """Top products carousel configuration."""

    size: int = 10
    copies: int = 4
    scroll_speed: float = 0.5


class CuratorConfig(BaseModel):
    """Curator (gestor) account configuration."""

    email: str = ""


class IdentityConfig(BaseModel):
    """Identity provider configuration."""

    client_id: str = ""
    certs_url: str = "https://www.googleapis.com/oauth2/v3/certs"
    algorithms: list[str] = Field(default_factory=lambda: ["RS256"])
    issuers: list[str] = Field(
        default_factory=lambda: ["accounts.google.com", "https://accounts.google.com"]
    )


class EnrichmentConfig(BaseModel):
    """Generative enrichment configuration."""

    model: str = "gpt-4o-mini"
    auto_enrich_domains: list[str] = Field(
        default_factory=lambda: ["mercadolivre", "amazon"]
    )


class SheetsConfig(BaseModel):
    """Spreadsheet import configuration."""

    url: str = ""


class ScheduleConfig(BaseModel):
    """Scheduling configuration."""

    enrichment_minutes: int = 15
    sheet_import_hours: int = 6
    max_instances_per_job: int = 1
    misfire_grace_time_seconds: int = 60


class LocalStoreConfig(BaseModel):
    """Local visitor state configuration."""

    path: str = "data/local_state.json"


class SiteConfig(BaseModel):
    """Site metadata used for page tags and structured data."""

    title: str = "Guia da Promoção - Loja de Ofertas"
    description: str = (
        "Encontre as melhores ofertas e promoções da internet. Smartphones, "
        "eletrônicos, moda e muito mais com descontos imperdíveis."
    )
    url: str = "http://localhost:8000"
    currency: str = "BRL"


class APIConfig(BaseModel):
    """API configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = "data/logs/storefront.log"
    rotation: str = "10 MB"
    retention: str = "30 days"


class Config(BaseModel):
    """Main configuration model."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    carousel: CarouselConfig = Field(default_factory=CarouselConfig)
    curator: CuratorConfig = Field(default_factory=CuratorConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    local_store: LocalStoreConfig = Field(default_factory=LocalStoreConfig)
    site: SiteConfig = Field(default_factory=SiteConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class Settings(BaseSettings):
    """Environment-based settings."""

    # Database
    database_url: str = ""

    # Third-party APIs
    openai_api_key: str = ""
    google_client_id: str = ""

    # Storefront
    curator_email: str = ""
    sheet_url: str = ""

    # Logging
    log_level: str = ""

    # API
    api_host: str = ""
    api_port: int = 0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


class ConfigManager:
    """Configuration manager for loading and merging config sources."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to YAML configuration file
        """
        load_dotenv()

        if config_path is None:
            config_path = Path(__file__).parent.parent.parent / "config" / "config.yaml"

        self.config_path = config_path
        self.yaml_config = self._load_yaml()

        self.env_settings = Settings()

        self.config = self._merge_config()

    def _load_yaml(self) -> Dict[str, Any]:
        """Load YAML configuration file."""
        if not self.config_path.exists():
            return {}

        with open(self.config_path, "r") as f:
            return yaml.safe_load(f) or {}

    def _merge_config(self) -> Config:
        """Merge YAML config with environment variables."""
        merged = self.yaml_config.copy()
        env = self.env_settings

        if env.database_url:
            merged.setdefault("database", {})["url"] = env.database_url

        if env.google_client_id:
            merged.setdefault("identity", {})["client_id"] = env.google_client_id

        if env.curator_email:
            merged.setdefault("curator", {})["email"] = env.curator_email

        if env.sheet_url:
            merged.setdefault("sheets", {})["url"] = env.sheet_url

        if env.log_level:
            merged.setdefault("logging", {})["level"] = env.log_level

        if env.api_host:
            merged.setdefault("api", {})["host"] = env.api_host

        if env.api_port:
            merged.setdefault("api", {})["port"] = env.api_port

        return Config(**merged)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``schedule.enrichment_minutes``."""
        value: Any = self.config.model_dump()
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> Config:
    """Get global configuration instance."""
    return get_config_manager().config


def get_settings() -> Settings:
    """Get environment settings."""
    return get_config_manager().env_settings
