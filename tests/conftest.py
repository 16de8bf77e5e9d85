"""
Pytest configuration and shared fixtures for Flora Sensor Service tests.
Provides common test fixtures, mock objects, and test utilities.
"""

import pytest
from pathlib import Path
from unittest.mock import Mock, MagicMock

# Import the modules we're testing
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.ble.protocol import Readings
from src.ble.session import DeviceIdentity, FloraDevice
from src.utils.config import Config, CollectionSettings
from src.utils.logging import ProductionLogger, PerformanceMonitor
from tests.mocks.mock_transport import MockTransport, MockFloraPeripheral


@pytest.fixture
def mock_config():
    """Create a mock configuration for testing."""
    config = Mock(spec=Config)

    # InfluxDB configuration
    config.influxdb_url = "http://localhost:8086"
    config.influxdb_token = "test-token"
    config.influxdb_org = "home"
    config.influxdb_bucket = "flora"
    config.influxdb_measurement = "PlantSensors"
    config.influxdb_timeout = 5
    config.influxdb_verify_ssl = True
    config.influxdb_retry_attempts = 3
    config.influxdb_retry_delay = 0.0
    config.influxdb_retry_exponential_base = 2.0

    # BLE configuration
    config.ble_adapter = "auto"
    config.ble_connect_timeout = 5.0

    # Logging configuration
    config.log_level = "DEBUG"
    config.log_dir = Path("./test_logs")
    config.log_max_file_size = 1024 * 1024  # 1MB
    config.log_backup_count = 2
    config.log_enable_console = False  # Disable console logging in tests
    config.log_enable_syslog = False

    return config


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing."""
    logger = Mock(spec=ProductionLogger)
    logger.debug = Mock()
    logger.info = Mock()
    logger.warning = Mock()
    logger.error = Mock()
    logger.critical = Mock()
    return logger


@pytest.fixture
def mock_performance_monitor():
    """Create a mock performance monitor for testing."""
    monitor = Mock(spec=PerformanceMonitor)
    monitor.record_metric = Mock()
    monitor.measure_time = Mock()
    monitor.log_system_resources = Mock()

    # Mock the context manager for measure_time
    mock_context = MagicMock()
    mock_context.__enter__ = Mock(return_value=mock_context)
    mock_context.__exit__ = Mock(return_value=None)
    monitor.measure_time.return_value = mock_context

    return monitor


@pytest.fixture
def fast_settings():
    """Collection timings short enough for tests (bounds are not enforced here)."""
    return CollectionSettings(
        discovery_interval=0.25,
        discovery_timeout=0.01,
        discovery_cooldown=0.05,
        interval=0.1
    )


@pytest.fixture
def mock_transport():
    """In-memory BLE transport with no peripherals."""
    return MockTransport()


@pytest.fixture
def legacy_peripheral():
    """Sensor on firmware 2.6.6 (no realtime mode needed)."""
    return MockFloraPeripheral("C4:7C:8D:6A:00:01", firmware_version="2.6.6")


@pytest.fixture
def modern_peripheral():
    """Sensor on firmware 3.2.1 (realtime mode needed)."""
    return MockFloraPeripheral("C4:7C:8D:6A:00:02", firmware_version="3.2.1")


@pytest.fixture
def sample_readings():
    """Sample decoded readings for testing."""
    return Readings(
        firmware_version="3.2.1",
        battery_level=64,
        temperature=20.6,
        moisture=40,
        light=400,
        conductivity=232
    )


@pytest.fixture
def sample_device(mock_transport, mock_logger):
    """Device session with an alias, backed by the mock transport."""
    identity = DeviceIdentity.create("c4:7c:8d:6a:00:02", "Flower care")
    return FloraDevice(identity, mock_transport, mock_logger, alias="Kitchen basil")


@pytest.fixture
def temp_test_dir(tmp_path):
    """Create a temporary directory for test files."""
    test_dir = tmp_path / "flora_test"
    test_dir.mkdir()
    return test_dir


# Pytest markers for test categorization
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
