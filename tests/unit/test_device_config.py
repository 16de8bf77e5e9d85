"""
Unit tests for per-device configuration schema and manager.
"""

import json

import pytest
from pydantic import ValidationError

from src.devices.manager import DeviceConfigManager, DeviceFileHandler
from src.devices.schema import (
    DeviceConfig,
    DeviceConfigFile,
    normalize_mac_address,
    validate_mac_address,
)
from src.utils.config import ConfigurationError


def write_devices(path, devices):
    path.write_text(json.dumps({"version": "1.0", "devices": devices}), encoding="utf-8")


class TestDeviceConfigSchema:
    """Test suite for device configuration models."""

    def test_defaults(self):
        config = DeviceConfig()

        assert config.alias is None
        assert config.ignore is False

    def test_blank_alias_becomes_none(self):
        assert DeviceConfig(alias="   ").alias is None
        assert DeviceConfig(alias=" Basil ").alias == "Basil"

    def test_alias_length_limit(self):
        with pytest.raises(ValidationError):
            DeviceConfig(alias="x" * 101)

    def test_keys_are_normalized(self):
        config_file = DeviceConfigFile(devices={"c4-7c-8d-6a-00-01": {"alias": "Fern"}})

        assert list(config_file.devices) == ["C4:7C:8D:6A:00:01"]
        assert config_file.devices["C4:7C:8D:6A:00:01"].alias == "Fern"

    def test_invalid_mac_rejected(self):
        with pytest.raises(ValidationError):
            DeviceConfigFile(devices={"not-a-mac": {}})

    def test_duplicate_after_normalization_rejected(self):
        with pytest.raises(ValidationError):
            DeviceConfigFile(devices={
                "c4:7c:8d:6a:00:01": {"alias": "a"},
                "C4:7C:8D:6A:00:01": {"alias": "b"},
            })

    def test_mac_helpers(self):
        assert validate_mac_address("C4:7C:8D:6A:00:01")
        assert not validate_mac_address("C4:7C:8D:6A:00")
        assert normalize_mac_address("c47c8d6a0001") == "C4:7C:8D:6A:00:01"


class TestDeviceConfigManager:
    """Test suite for loading and reloading the device file."""

    def test_missing_file_means_defaults(self, temp_test_dir, mock_logger):
        manager = DeviceConfigManager(temp_test_dir / "devices.json", mock_logger)

        assert manager.load() == {}
        assert manager.get_configs() == {}

    def test_load(self, temp_test_dir, mock_logger):
        devices_file = temp_test_dir / "devices.json"
        write_devices(devices_file, {
            "C4:7C:8D:6A:00:01": {"alias": "Basil"},
            "C4:7C:8D:6A:00:02": {"ignore": True},
        })
        manager = DeviceConfigManager(devices_file, mock_logger)

        configs = manager.get_configs()

        assert configs["C4:7C:8D:6A:00:01"].alias == "Basil"
        assert configs["C4:7C:8D:6A:00:02"].ignore is True

    def test_invalid_json(self, temp_test_dir, mock_logger):
        devices_file = temp_test_dir / "devices.json"
        devices_file.write_text("{not json", encoding="utf-8")
        manager = DeviceConfigManager(devices_file, mock_logger)

        with pytest.raises(ConfigurationError):
            manager.load()

    def test_reload_after_change(self, temp_test_dir, mock_logger):
        devices_file = temp_test_dir / "devices.json"
        write_devices(devices_file, {"C4:7C:8D:6A:00:01": {"alias": "Basil"}})
        manager = DeviceConfigManager(devices_file, mock_logger)
        manager.load()

        write_devices(devices_file, {"C4:7C:8D:6A:00:01": {"alias": "Thyme"}})
        assert manager.get_configs()["C4:7C:8D:6A:00:01"].alias == "Basil"

        manager.mark_changed()
        assert manager.get_configs()["C4:7C:8D:6A:00:01"].alias == "Thyme"

    def test_failed_reload_keeps_previous_settings(self, temp_test_dir, mock_logger):
        devices_file = temp_test_dir / "devices.json"
        write_devices(devices_file, {"C4:7C:8D:6A:00:01": {"alias": "Basil"}})
        manager = DeviceConfigManager(devices_file, mock_logger)
        manager.load()

        devices_file.write_text("[", encoding="utf-8")
        manager.mark_changed()
        configs = manager.get_configs()

        assert configs["C4:7C:8D:6A:00:01"].alias == "Basil"
        mock_logger.error.assert_called_once()

    def test_file_handler_marks_changed(self, temp_test_dir, mock_logger):
        devices_file = temp_test_dir / "devices.json"
        manager = DeviceConfigManager(devices_file, mock_logger)
        manager.load()
        handler = DeviceFileHandler(manager)

        event = type("Event", (), {"is_directory": False, "src_path": str(devices_file), "dest_path": ""})()
        handler.on_any_event(event)

        write_devices(devices_file, {"C4:7C:8D:6A:00:01": {"ignore": True}})
        assert manager.get_configs()["C4:7C:8D:6A:00:01"].ignore is True

    def test_other_files_are_ignored(self, temp_test_dir, mock_logger):
        devices_file = temp_test_dir / "devices.json"
        manager = DeviceConfigManager(devices_file, mock_logger)
        manager.load()
        handler = DeviceFileHandler(manager)

        event = type("Event", (), {"is_directory": False, "src_path": str(temp_test_dir / "other.json")})()
        handler.on_any_event(event)

        write_devices(devices_file, {"C4:7C:8D:6A:00:01": {"ignore": True}})
        assert manager.get_configs() == {}

    def test_render_example_is_loadable(self, temp_test_dir, mock_logger):
        devices_file = temp_test_dir / "devices.json"
        devices_file.write_text(DeviceConfigManager.render_example(), encoding="utf-8")

        configs = DeviceConfigManager(devices_file, mock_logger).load()

        assert len(configs) == 2
