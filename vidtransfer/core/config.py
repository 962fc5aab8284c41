"""Unified configuration management with environment variables, YAML files and validation."""
import json
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vidtransfer.core.exceptions import ConfigurationException
from vidtransfer.utils.logger import DEFAULT_LOG_FORMAT

ENV_PREFIX = "VIDTRANSFER_"
MIB = 1024 * 1024


class Environment(Enum):
    """Deployment environment."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(Enum):
    """Log level names accepted in configuration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class MinioConfig:
    """MinIO connection settings."""
    endpoint: str
    access_key: str
    secret_key: str
    bucket_name: str = "videos"
    secure: bool = False
    public_read: bool = True
    region: Optional[str] = None


@dataclass
class StorageConfig:
    """Local disk layout for the proxied strategy."""
    root: Path
    permanent_dir: Path
    staging_dir: Path
    max_upload_size: int = 10 * 1024 * MIB


@dataclass
class TransferConfig:
    """Chunking defaults shared by clients and the server."""
    chunk_size: int = 5 * MIB
    concurrency_limit: int = 3
    presign_expiry_seconds: int = 86400
    request_timeout: float = 300.0


@dataclass
class SessionConfig:
    """Upload session table limits."""
    ttl_seconds: int = 3600
    max_sessions: int = 1000
    sweep_interval: float = 60.0


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: LogLevel = LogLevel.INFO
    format: str = DEFAULT_LOG_FORMAT
    log_dir: str = "logs"
    enable_file: bool = True


class Settings(BaseSettings):
    """Application settings backed by pydantic-settings."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=[".env", ".env.local"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow"
    )

    # Application
    app_name: str = Field(default="Video Transfer API", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")

    # Server
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    api_prefix: str = Field(default="/api")
    cors_origins: List[str] = Field(default=["*"])

    # MinIO
    minio_endpoint: str = Field(default="localhost:9000")
    minio_access_key: str = Field(default="minioadmin")
    minio_secret_key: str = Field(default="minioadmin")
    minio_bucket_name: str = Field(default="videos", min_length=3, max_length=63)
    minio_secure: bool = Field(default=False)
    minio_public_read: bool = Field(default=True)
    minio_region: Optional[str] = Field(default=None)

    # Local storage
    storage_root: str = Field(default="uploads")
    max_upload_size: int = Field(default=10 * 1024 * MIB, ge=MIB, le=1024 * 1024 * MIB)

    # Transfers
    chunk_size: int = Field(default=5 * MIB, ge=1, le=5 * 1024 * MIB)
    concurrency_limit: int = Field(default=3, ge=1, le=64)
    presign_expiry_seconds: int = Field(default=86400, ge=1, le=7 * 86400)
    request_timeout: float = Field(default=300.0, gt=0)

    # Sessions
    session_ttl: int = Field(default=3600, ge=1, le=7 * 86400)
    session_max_count: int = Field(default=1000, ge=1, le=1_000_000)
    session_sweep_interval: float = Field(default=60.0, gt=0)

    # Logging
    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_format: str = Field(default=DEFAULT_LOG_FORMAT)
    log_dir: str = Field(default="logs")
    log_enable_file: bool = Field(default=True)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        """Accept environment names case-insensitively."""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v):
        """Accept log level names case-insensitively."""
        if isinstance(v, str):
            return LogLevel(v.upper())
        return v

    @field_validator("minio_bucket_name")
    @classmethod
    def validate_bucket_name(cls, v):
        """S3 bucket names are lowercase."""
        if v != v.lower():
            raise ValueError("Bucket name must be lowercase")
        return v

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v):
        if v and not v.startswith("/"):
            return f"/{v}"
        return v.rstrip("/")

    @model_validator(mode="before")
    @classmethod
    def validate_dependencies(cls, values):
        """Cross-field rules for production deployments."""
        if not isinstance(values, dict):
            return values

        environment = values.get("environment", Environment.DEVELOPMENT)
        if isinstance(environment, str):
            environment = Environment(environment.lower())

        if environment == Environment.PRODUCTION:
            if str(values.get("debug", False)).lower() in ("1", "true", "yes"):
                raise ValueError("Debug mode must be disabled in production")

            if values.get("minio_access_key", "minioadmin") == "minioadmin":
                raise ValueError("Production environment requires non-default MinIO credentials")

        return values

    def get_minio_config(self) -> MinioConfig:
        """Build the MinIO config block."""
        return MinioConfig(
            endpoint=self.minio_endpoint,
            access_key=self.minio_access_key,
            secret_key=self.minio_secret_key,
            bucket_name=self.minio_bucket_name,
            secure=self.minio_secure,
            public_read=self.minio_public_read,
            region=self.minio_region
        )

    def get_storage_config(self) -> StorageConfig:
        """Build the local storage config block."""
        root = Path(self.storage_root)
        return StorageConfig(
            root=root,
            permanent_dir=root / "permanent",
            staging_dir=root / "chunks",
            max_upload_size=self.max_upload_size
        )

    def get_transfer_config(self) -> TransferConfig:
        """Build the transfer config block."""
        return TransferConfig(
            chunk_size=self.chunk_size,
            concurrency_limit=self.concurrency_limit,
            presign_expiry_seconds=self.presign_expiry_seconds,
            request_timeout=self.request_timeout
        )

    def get_session_config(self) -> SessionConfig:
        """Build the session table config block."""
        return SessionConfig(
            ttl_seconds=self.session_ttl,
            max_sessions=self.session_max_count,
            sweep_interval=self.session_sweep_interval
        )

    def get_logging_config(self) -> LoggingConfig:
        """Build the logging config block."""
        return LoggingConfig(
            level=self.log_level,
            format=self.log_format,
            log_dir=self.log_dir,
            enable_file=self.log_enable_file
        )


class ConfigManager:
    """Configuration manager (singleton)."""

    _instance: Optional['ConfigManager'] = None
    _settings: Optional[Settings] = None

    def __new__(cls, *args, **kwargs):
        """Ensure a single instance."""
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    def __init__(self, config_file: Optional[str] = None):
        if hasattr(self, '_initialized'):
            return

        self._initialized = True
        self.config_file = config_file or os.getenv(f"{ENV_PREFIX}CONFIG_FILE")

        self._load_settings()

    def _load_settings(self):
        """Load settings, applying an optional YAML file as environment overrides."""
        try:
            if self.config_file and Path(self.config_file).exists():
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    config_data = yaml.safe_load(f) or {}

                for key, value in config_data.items():
                    env_key = f"{ENV_PREFIX}{key.upper()}"
                    if isinstance(value, (dict, list)):
                        os.environ[env_key] = json.dumps(value)
                    else:
                        os.environ[env_key] = str(value)

            self._settings = Settings()

            self._validate_settings()
        except ConfigurationException:
            raise
        except Exception as e:
            raise ConfigurationException(f"Failed to load settings: {str(e)}")

    def _validate_settings(self):
        if not self._settings:
            raise ConfigurationException("Settings not loaded")

        required_configs = [
            ("minio_endpoint", self._settings.minio_endpoint),
            ("minio_bucket_name", self._settings.minio_bucket_name),
            ("storage_root", self._settings.storage_root),
        ]

        for name, value in required_configs:
            if not value:
                raise ConfigurationException(f"Required configuration missing: {name}", config_key=name)

        if self._settings.environment == Environment.PRODUCTION:
            self._validate_production_config()

    def _validate_production_config(self):
        if self._settings.debug:
            raise ConfigurationException("Debug mode should be disabled in production", config_key="debug")

        if not self._settings.log_enable_file:
            raise ConfigurationException("File logging must be enabled in production", config_key="log_enable_file")

    @property
    def settings(self) -> Settings:
        """Current settings instance."""
        if not self._settings:
            raise ConfigurationException("Settings not initialized")
        return self._settings


# Global configuration manager instance
config_manager = ConfigManager()
