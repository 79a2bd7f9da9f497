"""Test configuration management."""

import pytest
from unittest.mock import patch

from courier.sdk import config as config_module
from courier.sdk.config import GatewayConfig, get_config, load_dotenv_for_sdk


class TestConfiguration:
    """Test configuration loading and management."""

    def test_default_config_values(self):
        """Test default configuration values."""
        config = GatewayConfig()
        assert config.default_timeout_ms == 1000
        assert config.handle_pool_size == 5
        assert config.select_timeout == 0.1
        assert config.accept_any_2xx is False
        assert config.is_production is False

    def test_config_from_environment(self):
        """Test configuration loading from environment variables."""
        env_vars = {
            "COURIER_ENV": "uat",
            "COURIER_GATEWAY_HOST": "http://custom.gateway",
            "COURIER_DEFAULT_TIMEOUT": "2500",
            "COURIER_DEBUG": "yes",
            "COURIER_HANDLE_POOL_SIZE": "8",
        }

        with patch.dict("os.environ", env_vars, clear=True):
            config = GatewayConfig.from_environment()

        assert config.environment == "uat"
        assert config.gateway_host == "http://custom.gateway"
        assert config.default_timeout_ms == 2500
        assert config.debug is True
        assert config.handle_pool_size == 8

    def test_config_mode_detection(self):
        """Test different mode configurations."""
        with patch.dict("os.environ", {"MODE": "prod"}, clear=True):
            config = GatewayConfig.from_environment()
        assert config.environment == "production"
        assert config.is_production is True
        assert config.debug is False
        assert config.gateway_host == "http://api.gateway.internal"

        with patch.dict("os.environ", {"COURIER_ENV": "local"}, clear=True):
            config = GatewayConfig.from_environment()
        assert config.environment == "dev"
        assert config.debug is True
        assert config.gateway_host == "http://api.sit.gateway.internal"

    def test_unparsable_timeout_falls_back(self):
        with patch.dict("os.environ", {"COURIER_DEFAULT_TIMEOUT": "soon"}, clear=True):
            config = GatewayConfig.from_environment()
        assert config.default_timeout_ms == 1000

    def test_config_immutability(self):
        """Test that config is immutable."""
        config = GatewayConfig()

        with pytest.raises(Exception):  # Pydantic will raise validation error
            config.gateway_host = "modified"

    def test_get_config_is_cached(self, monkeypatch):
        monkeypatch.setattr(config_module, "_config", None)
        with patch.dict("os.environ", {"COURIER_GATEWAY_HOST": "http://first"}, clear=True):
            first = get_config()
        with patch.dict("os.environ", {"COURIER_GATEWAY_HOST": "http://second"}, clear=True):
            assert get_config() is first
            reloaded = get_config(reload=True)
        assert reloaded.gateway_host == "http://second"

    def test_load_dotenv_for_sdk(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("COURIER_GATEWAY_HOST=http://from-dotenv\n")
        monkeypatch.setenv("COURIER_GATEWAY_HOST", "unset")
        monkeypatch.delenv("COURIER_GATEWAY_HOST")

        load_dotenv_for_sdk(env_file)

        assert GatewayConfig.from_environment().gateway_host == "http://from-dotenv"
