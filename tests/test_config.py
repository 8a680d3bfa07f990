"""
Tests for the configuration module.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from storefront_toolkit.config import (
    Environment,
    StorefrontConfig,
    configure,
    get_config,
    set_config,
    setup_logging,
)


class TestStorefrontConfig:
    """Test configuration values and validation."""

    def test_defaults(self):
        config = StorefrontConfig()

        assert config.environment == Environment.PRODUCTION
        assert config.database_url == "sqlite:///./storefront.db"
        assert config.block_hard_deletes is False
        assert config.default_page_size == 20
        assert config.max_page_size == 100

    def test_environment_case_insensitive(self):
        assert StorefrontConfig(environment="Staging").environment == Environment.STAGING

    def test_log_level_normalized(self):
        assert StorefrontConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            StorefrontConfig(log_level="verbose")

    def test_invalid_database_url(self):
        with pytest.raises(ValidationError):
            StorefrontConfig(database_url="storefront.db")

    def test_page_sizes_consistent(self):
        """Test the default page size cannot exceed the maximum."""
        with pytest.raises(ValidationError):
            StorefrontConfig(default_page_size=50, max_page_size=10)

    def test_page_size(self):
        config = StorefrontConfig(default_page_size=10, max_page_size=25)

        assert config.page_size() == 10
        assert config.page_size(0) == 10
        assert config.page_size(5) == 5
        assert config.page_size(100) == 25

    def test_to_dict(self):
        data = StorefrontConfig(environment="test").to_dict()

        assert data["environment"] == "test"
        assert "database_url" in data


class TestConfigSources:
    """Test loading configuration from the environment and files."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_DATABASE_URL", "postgresql://shop@db/shop")
        monkeypatch.setenv("STOREFRONT_BLOCK_HARD_DELETES", "true")
        monkeypatch.setenv("STOREFRONT_MAX_PAGE_SIZE", "50")
        monkeypatch.setenv("STOREFRONT_ENVIRONMENT", "Development")

        config = StorefrontConfig.from_env()

        assert config.database_url == "postgresql://shop@db/shop"
        assert config.block_hard_deletes is True
        assert config.max_page_size == 50
        assert config.environment == Environment.DEVELOPMENT

    def test_from_env_invalid_number(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_MAX_PAGE_SIZE", "many")

        with pytest.raises(ValidationError):
            StorefrontConfig.from_env()

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "storefront.yaml"
        path.write_text("application_name: Shop\ntrash_report_days: 7\n")

        config = StorefrontConfig.from_file(path)

        assert config.application_name == "Shop"
        assert config.trash_report_days == 7

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "storefront.json"
        path.write_text(json.dumps({"environment": "staging", "echo_sql": True}))

        config = StorefrontConfig.from_file(str(path))

        assert config.environment == Environment.STAGING
        assert config.echo_sql is True

    def test_from_file_not_a_mapping(self, tmp_path):
        path = tmp_path / "storefront.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ValueError):
            StorefrontConfig.from_file(path)


class TestGlobalConfig:
    """Test the module level configuration helpers."""

    def test_get_config_returns_set_config(self, storefront_config):
        assert get_config() is storefront_config

    def test_get_config_loads_env(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_APPLICATION_NAME", "From Env")
        set_config(None)

        assert get_config().application_name == "From Env"

    def test_configure_updates(self):
        config = configure(max_page_size=10, default_page_size=5)

        assert config.max_page_size == 10
        assert config.environment == Environment.TEST
        assert get_config() is config

    def test_setup_logging(self):
        root = logging.getLogger()
        previous = root.level
        try:
            setup_logging(StorefrontConfig(log_level="WARNING"))

            assert root.level == logging.WARNING
        finally:
            root.setLevel(previous)
