"""
Logging configuration for the Flora Sensor Service.
Provides logging setup with console, rotating file and syslog handlers.
"""

import logging
import logging.handlers
import sys
import time
from collections import deque
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import colorlog
import psutil


class ProductionLogger:
    """
    Logging setup for production deployment with multiple handlers.
    Components receive an instance and log through its level methods.
    """

    def __init__(self,
                 app_name: str = "flora_sensor_service",
                 log_dir: str = "./logs",
                 log_level: str = "INFO",
                 max_file_size: int = 10 * 1024 * 1024,  # 10MB
                 backup_count: int = 5,
                 enable_console: bool = True,
                 enable_syslog: bool = False):

        self.app_name = app_name
        self.log_dir = Path(log_dir)
        self.log_level = getattr(logging, log_level.upper())
        self.max_file_size = max_file_size
        self.backup_count = backup_count
        self.enable_console = enable_console
        self.enable_syslog = enable_syslog
        self._logger = logging.getLogger("flora")

        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._setup_root_logger()
        self._setup_component_loggers()

    def _setup_root_logger(self):
        """Configure root logger with multiple handlers."""
        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)

        root_logger.handlers.clear()

        if self.enable_console:
            console_handler = colorlog.StreamHandler(sys.stdout)
            console_handler.setLevel(self.log_level)
            console_formatter = colorlog.ColoredFormatter(
                '%(log_color)s%(asctime)s [%(levelname)8s] %(name)s: %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S',
                log_colors={
                    'DEBUG': 'cyan',
                    'INFO': 'green',
                    'WARNING': 'yellow',
                    'ERROR': 'red',
                    'CRITICAL': 'red,bg_white',
                }
            )
            console_handler.setFormatter(console_formatter)
            root_logger.addHandler(console_handler)

        file_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / f"{self.app_name}.log",
            maxBytes=self.max_file_size,
            backupCount=self.backup_count
        )
        file_handler.setLevel(self.log_level)
        file_formatter = logging.Formatter(
            '%(asctime)s [%(levelname)8s] %(name)s [%(process)d:%(thread)d] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        # Syslog handler for systemd integration
        if self.enable_syslog:
            try:
                syslog_handler = logging.handlers.SysLogHandler(address='/dev/log')
                syslog_handler.setLevel(logging.WARNING)
                syslog_formatter = logging.Formatter(
                    f'{self.app_name}[%(process)d]: %(levelname)s - %(message)s'
                )
                syslog_handler.setFormatter(syslog_formatter)
                root_logger.addHandler(syslog_handler)
            except OSError as e:
                root_logger.warning(f"Could not setup syslog handler: {e}")

    def _setup_component_loggers(self):
        """Configure the performance logger with its own file."""
        perf_logger = logging.getLogger('flora.performance')
        perf_logger.handlers.clear()
        perf_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / "performance.log",
            maxBytes=self.max_file_size,
            backupCount=self.backup_count
        )
        perf_handler.setFormatter(logging.Formatter(
            '%(asctime)s PERF: %(message)s'
        ))
        perf_logger.addHandler(perf_handler)

    def debug(self, message: str, *args, **kwargs):
        """Log debug message."""
        self._logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        """Log info message."""
        self._logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        """Log warning message."""
        self._logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        """Log error message."""
        self._logger.error(message, *args, **kwargs)

    def critical(self, message: str, *args, **kwargs):
        """Log critical message."""
        self._logger.critical(message, *args, **kwargs)


class PerformanceMonitor:
    """
    Performance monitoring and metrics collection for production debugging.
    """

    def __init__(self, logger=None, max_samples: int = 1000):
        self.logger = logger or logging.getLogger('flora.performance')
        self.max_samples = max_samples
        self.metrics = {}
        self.start_time = datetime.now()

    def record_metric(self, metric_name: str, value: float):
        """Record a metric value."""
        if metric_name not in self.metrics:
            # Oldest samples are discarded once max_samples is reached
            self.metrics[metric_name] = deque(maxlen=self.max_samples)

        self.metrics[metric_name].append({
            'value': value,
            'timestamp': datetime.now()
        })

        self.logger.debug(f"METRIC {metric_name}={value}")

    @contextmanager
    def measure_time(self, operation_name: str):
        """Context manager for measuring operation time."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            self.record_metric(f"{operation_name}_duration", duration)
            self.logger.info(f"TIMING {operation_name}={duration:.3f}s")

    def log_system_resources(self):
        """Log current system resource usage."""
        try:
            process = psutil.Process()
            memory_info = process.memory_info()
            cpu_percent = process.cpu_percent()
        except psutil.Error as e:
            self.logger.error(f"Failed to log system resources: {e}")
            return

        self.record_metric('memory_rss', memory_info.rss)
        self.record_metric('cpu_percent', cpu_percent)

        self.logger.info(
            f"RESOURCES memory_rss={memory_info.rss/1024/1024:.1f}MB "
            f"memory_vms={memory_info.vms/1024/1024:.1f}MB cpu={cpu_percent:.1f}%"
        )

    def get_performance_summary(self) -> dict:
        """Generate performance summary for status output."""
        summary = {
            'uptime_seconds': (datetime.now() - self.start_time).total_seconds(),
        }
        for name, entries in self.metrics.items():
            if not entries:
                continue
            values = [entry['value'] for entry in entries]
            summary[name] = {
                'count': len(values),
                'total': sum(values),
                'avg': sum(values) / len(values),
            }
        return summary


def setup_logging(config) -> ProductionLogger:
    """
    Setup logging for the Flora Sensor Service using configuration.

    Args:
        config: Configuration instance

    Returns:
        ProductionLogger instance
    """
    return ProductionLogger(
        log_level=config.log_level,
        log_dir=str(config.log_dir),
        max_file_size=config.log_max_file_size,
        backup_count=config.log_backup_count,
        enable_console=config.log_enable_console,
        enable_syslog=config.log_enable_syslog
    )
