"""Tests for settings and the configuration manager."""
import logging
import os
from logging.handlers import RotatingFileHandler

import pytest
import yaml
from pydantic import ValidationError

from vidtransfer.core.config import (
    ConfigManager,
    Environment,
    LoggingConfig,
    LogLevel,
    Settings,
    TransferConfig,
)
from vidtransfer.core.exceptions import ConfigurationException
from vidtransfer.utils.logger import configure_logging, get_logger


class TestSettings:
    """Environment-driven settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.port == 3000
        assert settings.api_prefix == "/api"
        assert settings.chunk_size == 5 * 1024 * 1024
        assert settings.concurrency_limit == 3
        assert settings.minio_bucket_name == "videos"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("VIDTRANSFER_CHUNK_SIZE", "1048576")
        monkeypatch.setenv("VIDTRANSFER_LOG_LEVEL", "debug")
        monkeypatch.setenv("VIDTRANSFER_ENVIRONMENT", "Testing")

        settings = Settings(_env_file=None)

        assert settings.chunk_size == 1048576
        assert settings.log_level == LogLevel.DEBUG
        assert settings.environment == Environment.TESTING

    def test_api_prefix_normalized(self):
        assert Settings(_env_file=None, api_prefix="v1/").api_prefix == "/v1"

    def test_bucket_must_be_lowercase(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, minio_bucket_name="Videos")

    def test_production_requires_credentials(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, environment="production")

        settings = Settings(
            _env_file=None,
            environment="production",
            minio_access_key="prod-key",
            minio_secret_key="prod-secret"
        )
        assert settings.environment == Environment.PRODUCTION

    def test_production_rejects_debug(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, environment="production", debug=True, minio_access_key="prod-key")

    def test_storage_layout(self):
        storage = Settings(_env_file=None, storage_root="/data").get_storage_config()

        assert str(storage.permanent_dir) == "/data/permanent"
        assert str(storage.staging_dir) == "/data/chunks"

    def test_session_config(self):
        session = Settings(_env_file=None, session_ttl=120, session_max_count=5).get_session_config()

        assert session.ttl_seconds == 120
        assert session.max_sessions == 5


@pytest.fixture(name="manager")
def fixture_manager(monkeypatch, tmp_path):
    """A fresh manager loaded from a YAML file, restoring the singleton afterwards."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({"chunk_size": 2097152, "minio_bucket_name": "clips"}))
    monkeypatch.setattr(ConfigManager, "_instance", None)

    manager = ConfigManager(config_file=str(config_file))
    yield manager

    for key in ("VIDTRANSFER_CHUNK_SIZE", "VIDTRANSFER_MINIO_BUCKET_NAME"):
        os.environ.pop(key, None)


class TestConfigManager:
    """YAML loading and startup validation."""

    def test_yaml_values_applied(self, manager):
        assert manager.settings.chunk_size == 2097152
        assert manager.settings.get_minio_config().bucket_name == "clips"

    def test_typed_transfer_config(self, manager):
        transfer = manager.settings.get_transfer_config()

        assert isinstance(transfer, TransferConfig)
        assert transfer.chunk_size == 2097152

    def test_production_requires_file_logging(self, monkeypatch, tmp_path):
        monkeypatch.setattr(ConfigManager, "_instance", None)
        monkeypatch.setenv("VIDTRANSFER_ENVIRONMENT", "production")
        monkeypatch.setenv("VIDTRANSFER_MINIO_ACCESS_KEY", "prod-key")
        monkeypatch.setenv("VIDTRANSFER_LOG_ENABLE_FILE", "false")
        monkeypatch.chdir(tmp_path)

        with pytest.raises(ConfigurationException) as exc_info:
            ConfigManager()

        assert exc_info.value.details["config_key"] == "log_enable_file"

    def test_singleton(self, manager):
        assert ConfigManager() is manager


class TestLoggingConfig:
    """Logging settings drive the package logger."""

    @pytest.fixture(autouse=True)
    def restore_console_logging(self):
        yield
        configure_logging(LoggingConfig(enable_file=False))

    def test_settings_build_logging_config(self, tmp_path):
        config = Settings(
            _env_file=None, log_level="debug", log_dir=str(tmp_path), log_format="%(message)s"
        ).get_logging_config()

        assert config == LoggingConfig(
            level=LogLevel.DEBUG, format="%(message)s", log_dir=str(tmp_path), enable_file=True
        )

    def test_file_handlers_follow_config(self, tmp_path):
        configure_logging(LoggingConfig(level=LogLevel.DEBUG, format="%(levelname)s %(message)s",
                                        log_dir=str(tmp_path), enable_file=True))
        logger = get_logger("vidtransfer.services.sample")

        logger.debug("part staged")
        logger.error("merge failed")
        for handler in get_logger().handlers:
            handler.flush()

        assert "DEBUG part staged" in (tmp_path / "app.log").read_text(encoding="utf-8")
        assert (tmp_path / "error.log").read_text(encoding="utf-8").splitlines() == ["ERROR merge failed"]

    def test_file_logging_disabled(self, tmp_path):
        root = configure_logging(LoggingConfig(level=LogLevel.WARNING, log_dir=str(tmp_path / "logs"),
                                               enable_file=False))

        assert root.level == logging.WARNING
        assert not any(isinstance(h, RotatingFileHandler) for h in root.handlers)
        assert not (tmp_path / "logs").exists()
