"""
Integration tests for the daemon lifecycle.
Wires the real components with a mock transport and a patched InfluxDB client.
"""

import asyncio
import os
import signal
from unittest.mock import patch

import pytest

from src.service.daemon import FloraDaemon
from src.utils.config import ConfigurationError
from tests.mocks.mock_transport import MockFloraPeripheral, MockTransport


@pytest.fixture
def daemon_config(mock_config, fast_settings, temp_test_dir):
    mock_config.collection_settings = fast_settings
    mock_config.shutdown_grace_period = 1.0
    mock_config.devices_file = temp_test_dir / "devices.json"
    return mock_config


@pytest.fixture
def influx_class():
    with patch("src.influxdb.client.InfluxDBClient") as client_class:
        yield client_class


def make_daemon(config, logger, transport):
    daemon = FloraDaemon(config, transport=transport)
    daemon.logger = logger
    return daemon


class TestDaemonLifecycle:
    """Test suite for daemon start and stop."""

    @pytest.mark.asyncio
    async def test_collects_and_shuts_down(self, daemon_config, mock_logger, influx_class):
        transport = MockTransport([MockFloraPeripheral("C4:7C:8D:6A:00:01")])
        daemon = make_daemon(daemon_config, mock_logger, transport)

        task = asyncio.create_task(daemon.start())
        await asyncio.sleep(0.05)
        assert daemon.get_status()["running"] is True

        daemon.request_shutdown()
        await asyncio.wait_for(task, 2.0)

        write_api = influx_class.return_value.write_api.return_value
        write_api.write.assert_called()
        influx_class.return_value.close.assert_called_once()
        assert daemon.get_status()["running"] is False
        assert daemon.device_manager._observer is None

    @pytest.mark.asyncio
    async def test_sigterm_stops_daemon(self, daemon_config, mock_logger, influx_class):
        daemon = make_daemon(daemon_config, mock_logger, MockTransport())

        task = asyncio.create_task(daemon.start())
        await asyncio.sleep(0.05)
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.wait_for(task, 2.0)

        assert daemon.scheduler.shutdown_requested
        influx_class.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_sighup_marks_devices_for_reload(self, daemon_config, mock_logger, influx_class):
        daemon = make_daemon(daemon_config, mock_logger, MockTransport())

        task = asyncio.create_task(daemon.start())
        await asyncio.sleep(0.05)
        daemon.device_manager._changed.clear()
        os.kill(os.getpid(), signal.SIGHUP)
        await asyncio.sleep(0.01)

        assert daemon.device_manager._changed.is_set()

        daemon.request_shutdown()
        await asyncio.wait_for(task, 2.0)

    @pytest.mark.asyncio
    async def test_grace_period_cancels_stuck_fetch(self, daemon_config, mock_logger, influx_class):
        daemon_config.shutdown_grace_period = 0.05
        transport = MockTransport([MockFloraPeripheral("C4:7C:8D:6A:00:01", delay=5.0)])
        daemon = make_daemon(daemon_config, mock_logger, transport)

        task = asyncio.create_task(daemon.start())
        await asyncio.sleep(0.05)
        daemon.request_shutdown()
        await asyncio.wait_for(task, 1.0)

        assert daemon._scheduler_task.cancelled()
        mock_logger.warning.assert_called()
        influx_class.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_scheduler_failure_during_grace_period_is_logged(self, daemon_config, mock_logger,
                                                                   influx_class):
        transport = MockTransport([MockFloraPeripheral("C4:7C:8D:6A:00:01", delay=0.2)])
        daemon = make_daemon(daemon_config, mock_logger, transport)

        with patch("src.service.scheduler.CollectionScheduler._log_epoch_summary",
                   side_effect=RuntimeError("psutil unavailable")):
            task = asyncio.create_task(daemon.start())
            await asyncio.sleep(0.05)
            daemon.request_shutdown()
            await asyncio.wait_for(task, 2.0)

        assert isinstance(daemon._scheduler_task.exception(), RuntimeError)
        messages = [call.args[0] for call in mock_logger.error.call_args_list]
        assert any("Scheduler failed while stopping" in message for message in messages)
        influx_class.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_invalid_configuration_aborts_startup(self, daemon_config, mock_logger, influx_class):
        daemon_config.validate_configuration.side_effect = ConfigurationError("INFLUXDB_TOKEN must be set")
        daemon = make_daemon(daemon_config, mock_logger, MockTransport())

        with pytest.raises(ConfigurationError):
            await daemon.start()

        influx_class.assert_not_called()
        assert daemon.get_status()["running"] is False
