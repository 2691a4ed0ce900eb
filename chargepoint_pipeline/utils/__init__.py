"""Utility modules for the Charge Point Pipeline."""

from .logging_utils import logger, setup_logging, get_logger, log_execution_time, PipelineLogger
from .spark_utils import get_spark_session, stop_spark_session, require_columns

__all__ = [
    'logger', 'setup_logging', 'get_logger', 'log_execution_time', 'PipelineLogger',
    'get_spark_session', 'stop_spark_session', 'require_columns'
]
