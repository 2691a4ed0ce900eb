"""
Configuration settings for the Charge Point Pipeline.
Loads environment variables and provides centralized configuration.
"""

import os
from dataclasses import dataclass, field
from typing import List
from pathlib import Path
from dotenv import load_dotenv

from chargepoint_pipeline.errors import ConfigurationError

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class SparkConfig:
    """Spark configuration."""
    master_url: str
    app_name: str = "ChargePointPipeline"
    shuffle_partitions: int = 8
    session_timezone: str = "UTC"
    driver_memory: str = "1g"

    def get_spark_conf(self) -> dict:
        """Get Spark configuration as dictionary."""
        return {
            'spark.master': self.master_url,
            'spark.app.name': self.app_name,
            'spark.driver.memory': self.driver_memory,
            'spark.sql.shuffle.partitions': str(self.shuffle_partitions),
            'spark.sql.session.timeZone': self.session_timezone,
            # malformed timestamps and meter readings parse to null
            'spark.sql.ansi.enabled': 'false',
            'spark.sql.adaptive.enabled': 'true',
            'spark.sql.adaptive.coalescePartitions.enabled': 'true',
        }


@dataclass
class PathsConfig:
    """Filesystem locations used by jobs."""
    base_path: Path

    @property
    def data_path(self) -> Path:
        return self.base_path / 'data'

    @property
    def output_path(self) -> Path:
        return self.base_path / 'output'

    @property
    def logs_path(self) -> Path:
        return self.base_path / 'logs'


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_to_file: bool = False
    log_to_console: bool = True


@dataclass
class QualityConfig:
    """Thresholds for data quality checks."""
    completeness_threshold: float = 0.95
    uniqueness_threshold: float = 1.0
    max_session_hours: float = 48.0
    valid_message_types: List[int] = field(default_factory=lambda: [2, 3, 4])


class Settings:
    """Central settings class that loads all configurations."""

    def __init__(self):
        self.spark = SparkConfig(
            master_url=os.getenv('SPARK_MASTER_URL', 'local[*]'),
            app_name=os.getenv('SPARK_APP_NAME', 'ChargePointPipeline'),
            shuffle_partitions=int(os.getenv('SPARK_SHUFFLE_PARTITIONS', 8)),
            session_timezone=os.getenv('SPARK_SESSION_TIMEZONE', 'UTC'),
            driver_memory=os.getenv('SPARK_DRIVER_MEMORY', '1g')
        )

        self.paths = PathsConfig(
            base_path=Path(os.getenv('PIPELINE_BASE_PATH', os.getcwd()))
        )

        self.logging = LoggingConfig(
            level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            log_to_file=_env_bool('LOG_TO_FILE', False),
            log_to_console=_env_bool('LOG_TO_CONSOLE', True)
        )

        self.quality = QualityConfig(
            completeness_threshold=float(os.getenv('QUALITY_COMPLETENESS_THRESHOLD', 0.95)),
            uniqueness_threshold=float(os.getenv('QUALITY_UNIQUENESS_THRESHOLD', 1.0)),
            max_session_hours=float(os.getenv('QUALITY_MAX_SESSION_HOURS', 48.0))
        )

    def validate(self) -> bool:
        """Validate all configurations."""
        if self.spark.shuffle_partitions < 1:
            raise ConfigurationError(
                "spark.shuffle_partitions must be positive",
                context={'shuffle_partitions': self.spark.shuffle_partitions}
            )

        if self.logging.level not in ('TRACE', 'DEBUG', 'INFO', 'SUCCESS',
                                      'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigurationError(
                f"Unknown log level '{self.logging.level}'",
                context={'level': self.logging.level}
            )

        for name in ('completeness_threshold', 'uniqueness_threshold'):
            value = getattr(self.quality, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(
                    f"quality.{name} must be between 0 and 1",
                    context={name: value}
                )

        if self.quality.max_session_hours <= 0:
            raise ConfigurationError(
                "quality.max_session_hours must be positive",
                context={'max_session_hours': self.quality.max_session_hours}
            )

        return True


# Global settings instance
settings = Settings()
