# =============================================================================
# tests/unit/test_config.py
# Unit Tests for Configuration Loading
# =============================================================================

from pathlib import Path

import pytest

from pos_core.config import AppConfig, load_config
from pos_core.errors import ConfigurationError


class TestLoadConfig:
    """Test the defaults / secrets / environment layering"""

    def test_defaults(self):
        config = load_config(secrets={}, environ={})

        assert config.gateway.base_url == "http://localhost:3001/api"
        assert config.gateway.timeout == 8.0
        assert config.sync.max_retries == 3
        assert config.sync.retry_rejected is True
        assert config.storage.key_prefix == "vitana_offline_"

    def test_secrets_override_defaults(self):
        config = load_config(
            secrets={"api_url": "https://pdv.example.com/api", "max_retries": "5", "db_path": "/tmp/pos.db"},
            environ={},
        )

        assert config.gateway.base_url == "https://pdv.example.com/api"
        assert config.sync.max_retries == 5
        assert config.storage.db_path == Path("/tmp/pos.db")

    def test_environment_wins_over_secrets(self):
        config = load_config(
            secrets={"api_token": "from-secrets", "sync_interval": 30},
            environ={"POS_API_TOKEN": "from-env", "POS_SYNC_INTERVAL": "12.5"},
        )

        assert config.gateway.token == "from-env"
        assert config.sync.sync_interval == 12.5

    def test_boolean_values(self):
        config = load_config(
            secrets={"retry_rejected": False},
            environ={"POS_FLUSH_ON_EXIT": "nao"},
        )

        assert config.sync.retry_rejected is False
        assert config.sync.flush_on_exit is False

    def test_unknown_and_empty_keys_ignored(self):
        config = load_config(
            secrets={"theme": "dark", "api_token": None},
            environ={"POS_API_URL": ""},
        )

        assert config.gateway.token is None
        assert config.gateway.base_url == AppConfig().gateway.base_url


class TestConfigValidation:
    """Test invalid settings are rejected"""

    def test_non_numeric_value(self):
        with pytest.raises(ConfigurationError) as exc:
            load_config(secrets={"request_timeout": "fast"}, environ={})

        assert exc.value.details["config_key"] == "request_timeout"
        assert exc.value.details["expected_type"] == "float"
        assert exc.value.recoverable is False

    @pytest.mark.parametrize("key,value", [
        ("max_retries", 0),
        ("request_timeout", -1),
        ("http_attempts", 0),
        ("sync_interval", 0),
        ("api_url", ""),
    ])
    def test_out_of_range(self, key, value):
        with pytest.raises(ConfigurationError) as exc:
            load_config(secrets={key: value}, environ={})

        assert exc.value.details["config_key"] == key
