"""Configuration module for the Charge Point Pipeline."""

from .settings import settings, Settings, SparkConfig, PathsConfig, LoggingConfig, QualityConfig

__all__ = ['settings', 'Settings', 'SparkConfig', 'PathsConfig', 'LoggingConfig', 'QualityConfig']
