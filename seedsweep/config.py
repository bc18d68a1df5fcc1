"""Configuration management with YAML, environment variables and persisted settings."""
import os
from pathlib import Path
from typing import Optional, Dict, Mapping
import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


SERVICE_NAMES = ("sonarr", "radarr", "overseerr", "prowlarr", "qbittorrent")


class ServiceSeed(BaseModel):
    """Valeurs initiales d'une intégration (YAML ou env)."""
    enabled: bool = False
    url: str = ""
    api_key: str = ""
    username: str = ""
    password: str = ""


class SchedulerConfig(BaseModel):
    enabled: bool = True
    default_sync_frequency: str = "5m"
    frequency_check_seconds: int = 60


class HTTPConfig(BaseModel):
    timeout_seconds: float = 30.0
    max_retries: int = 3
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout: int = 60


class AppConfig(BaseModel):
    data_dir: str = "/data"
    database_url: Optional[str] = None  # défaut: sqlite dans data_dir
    log_level: str = "INFO"
    log_format: str = "text"  # text|json

    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{Path(self.data_dir) / 'seedsweep.db'}"


class Config(BaseSettings):
    sonarr: Optional[ServiceSeed] = None
    radarr: Optional[ServiceSeed] = None
    overseerr: Optional[ServiceSeed] = None
    prowlarr: Optional[ServiceSeed] = None
    qbittorrent: Optional[ServiceSeed] = None
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)
    app: AppConfig = Field(default_factory=AppConfig)

    model_config = SettingsConfigDict(env_file=".env", env_nested_delimiter="__")

    @classmethod
    def load_from_yaml(cls, yaml_path: str) -> "Config":
        """Load configuration from YAML file, override with env vars."""
        config_path = Path(yaml_path)
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {yaml_path}\n"
                f"Please create config/config.yaml from config.example.yaml"
            )

        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        # Override with environment variables
        for key in SERVICE_NAMES:
            if key in yaml_data and isinstance(yaml_data[key], dict):
                for subkey in list(yaml_data[key].keys()):
                    env_value = os.getenv(f"{key.upper()}__{subkey.upper()}")
                    if env_value:
                        yaml_data[key][subkey] = env_value

        return cls(**yaml_data)


class ServiceConfig(BaseModel):
    """Configuration effective d'une intégration (immutable)."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    url: str = ""
    api_key: str = ""
    username: str = ""
    password: str = ""


class IntegrationsConfig(BaseModel):
    """Immutable snapshot of every integration's settings.

    A reload builds a new snapshot instead of mutating the active one.
    """
    model_config = ConfigDict(frozen=True)

    sonarr: ServiceConfig = Field(default_factory=ServiceConfig)
    radarr: ServiceConfig = Field(default_factory=ServiceConfig)
    overseerr: ServiceConfig = Field(default_factory=ServiceConfig)
    prowlarr: ServiceConfig = Field(default_factory=ServiceConfig)
    qbittorrent: ServiceConfig = Field(default_factory=ServiceConfig)
    timeout_seconds: float = 30.0
    max_retries: int = 3
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout: int = 60

    @classmethod
    def from_sources(
        cls,
        static: Optional[Config] = None,
        settings_rows: Optional[Mapping[str, str]] = None,
    ) -> "IntegrationsConfig":
        """Merge YAML seeds with persisted settings rows (`sonarr.url`, ...).

        A non-empty persisted value wins over the seed.
        """
        settings_rows = settings_rows or {}
        services: Dict[str, ServiceConfig] = {}
        for name in SERVICE_NAMES:
            seed = getattr(static, name, None) if static else None
            values = seed.model_dump() if seed else ServiceSeed().model_dump()
            for field_name in ("enabled", "url", "api_key", "username", "password"):
                raw = settings_rows.get(f"{name}.{field_name}")
                if raw in (None, ""):
                    continue
                if field_name == "enabled":
                    values["enabled"] = str(raw).lower() == "true"
                else:
                    values[field_name] = raw
            values["url"] = str(values.get("url") or "").rstrip("/")
            services[name] = ServiceConfig(**values)

        http = static.http if static else HTTPConfig()
        return cls(
            timeout_seconds=http.timeout_seconds,
            max_retries=http.max_retries,
            circuit_breaker_threshold=http.circuit_breaker_threshold,
            circuit_breaker_timeout=http.circuit_breaker_timeout,
            **services,
        )


# Global config instance (will be initialized in main.py)
config: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance."""
    if config is None:
        raise RuntimeError("Config not initialized. Call init_config() first.")
    return config


def init_config(config_path: str = "/config/config.yaml") -> Config:
    """Initialize global config from YAML file."""
    global config
    config = Config.load_from_yaml(config_path)
    return config


def set_config(new_config: Config) -> Config:
    global config
    config = new_config
    return config
