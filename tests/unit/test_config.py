"""
Unit tests for configuration loading and validation.
"""

import pytest

from src.utils.config import CollectionSettings, Config, ConfigurationError


ENV_KEYS = [
    "INFLUXDB_URL", "INFLUXDB_TOKEN", "INFLUXDB_ORG", "INFLUXDB_BUCKET", "INFLUXDB_MEASUREMENT",
    "COLLECTION_DISCOVERY_INTERVAL", "COLLECTION_DISCOVERY_TIMEOUT",
    "COLLECTION_DISCOVERY_COOLDOWN", "COLLECTION_INTERVAL",
    "BLE_CONNECT_TIMEOUT", "SHUTDOWN_GRACE_PERIOD", "LOG_LEVEL", "DEVICES_FILE",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Config backed by an empty environment and no .env file."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return Config(env_file=tmp_path / "missing.env")


@pytest.fixture
def valid_env(monkeypatch, clean_env):
    monkeypatch.setenv("INFLUXDB_TOKEN", "secret-token")
    monkeypatch.setenv("INFLUXDB_ORG", "home")
    return clean_env


class TestCollectionSettings:
    """Test suite for collection timing bounds."""

    def test_defaults_are_valid(self):
        settings = CollectionSettings()

        settings.validate()

        assert settings.discovery_interval == 3600
        assert settings.discovery_timeout == 10
        assert settings.discovery_cooldown == 30
        assert settings.interval == 60

    def test_one_minute_intervals_are_valid(self):
        CollectionSettings(discovery_interval=60, interval=60).validate()

    @pytest.mark.parametrize("kwargs,message", [
        ({"discovery_interval": 59, "interval": 59}, "Discovery interval"),
        ({"interval": 30}, "Collection interval of"),
        ({"discovery_interval": 120, "interval": 180}, "greater than the rediscovery interval"),
        ({"discovery_cooldown": 0.5}, "Discovery cooldown"),
        ({"discovery_timeout": 4}, "Discovery timeout"),
    ])
    def test_out_of_bounds(self, kwargs, message):
        with pytest.raises(ConfigurationError) as exc_info:
            CollectionSettings(**kwargs).validate()

        assert message in str(exc_info.value)

    def test_all_violations_reported(self):
        with pytest.raises(ConfigurationError) as exc_info:
            CollectionSettings(discovery_interval=1, discovery_timeout=1,
                               discovery_cooldown=0, interval=2).validate()

        assert str(exc_info.value).count("\n- ") == 5


class TestConfig:
    """Test suite for environment-backed configuration."""

    def test_defaults(self, clean_env):
        assert clean_env.influxdb_bucket == "flora"
        assert clean_env.influxdb_measurement == "PlantSensors"
        assert clean_env.collection_settings == CollectionSettings()
        assert clean_env.shutdown_grace_period == 15.0
        assert clean_env.ble_adapter == "auto"
        assert clean_env.devices_file.name == "devices.json"

    def test_timing_overrides(self, monkeypatch, clean_env):
        monkeypatch.setenv("COLLECTION_INTERVAL", "300")
        monkeypatch.setenv("COLLECTION_DISCOVERY_INTERVAL", "7200")

        settings = clean_env.collection_settings

        assert settings.interval == 300
        assert settings.discovery_interval == 7200

    def test_invalid_timing_raises(self, monkeypatch, clean_env):
        monkeypatch.setenv("COLLECTION_INTERVAL", "10")

        with pytest.raises(ConfigurationError):
            clean_env.collection_settings

    def test_non_numeric_value(self, monkeypatch, clean_env):
        monkeypatch.setenv("COLLECTION_INTERVAL", "soon")

        with pytest.raises(ConfigurationError) as exc_info:
            clean_env.collection_interval

        assert "COLLECTION_INTERVAL" in str(exc_info.value)

    def test_missing_token(self, clean_env):
        with pytest.raises(ConfigurationError) as exc_info:
            clean_env.validate_configuration()

        assert "INFLUXDB_TOKEN" in str(exc_info.value)

    def test_valid_configuration(self, valid_env):
        assert valid_env.validate_configuration() is True

    def test_summary_hides_token(self, valid_env):
        summary = valid_env.get_summary()

        assert "secret-token" not in str(summary)
        assert summary['collection']['interval'] == 60.0

    def test_default_environment_lists_timings(self):
        text = Config.default_environment()

        assert "COLLECTION_DISCOVERY_INTERVAL=3600" in text
        assert "COLLECTION_INTERVAL=60" in text
        assert "INFLUXDB_MEASUREMENT=PlantSensors" in text
