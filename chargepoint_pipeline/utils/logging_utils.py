"""
Logging for the Charge Point Pipeline.

All modules share the loguru logger. Records carry a ``component`` extra
(set with ``get_logger``) and pipeline runs add ``run_id``.
"""

import sys
import time
from datetime import datetime
from functools import wraps
from typing import Callable, Any, Dict, Optional

from loguru import logger

from chargepoint_pipeline.config import settings


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[component]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def setup_logging(
    log_level: Optional[str] = None,
    log_to_file: Optional[bool] = None,
    log_to_console: Optional[bool] = None
) -> None:
    """
    (Re)configure the loguru sinks.

    Arguments left as None fall back to ``settings.logging``. File sinks go
    to ``settings.paths.logs_path``: a daily run log and an errors-only log.
    """
    level = (log_level or settings.logging.level).upper()
    to_file = settings.logging.log_to_file if log_to_file is None else log_to_file
    to_console = settings.logging.log_to_console if log_to_console is None else log_to_console

    logger.remove()
    logger.configure(extra={'component': 'chargepoint'})

    if to_console:
        logger.add(sys.stderr, format=LOG_FORMAT, level=level, colorize=True)

    if to_file:
        logs_path = settings.paths.logs_path
        logs_path.mkdir(parents=True, exist_ok=True)

        logger.add(
            str(logs_path / f"sessions_{datetime.now():%Y%m%d}.log"),
            format=LOG_FORMAT,
            level=level,
            rotation="100 MB",
            retention="30 days",
            compression="gz"
        )
        logger.add(
            str(logs_path / "errors.log"),
            format=LOG_FORMAT,
            level="ERROR",
            rotation="50 MB",
            retention="90 days",
            compression="gz"
        )


def get_logger(component: str):
    """Shared logger tagged with a component name (shown in every record)."""
    return logger.bind(component=component)


def log_execution_time(func: Callable) -> Callable:
    """Log start, duration and failures of the wrapped call; errors are re-raised."""
    name = func.__qualname__

    @wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        started = time.perf_counter()
        logger.debug(f"{name} started")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(f"{name} failed after {time.perf_counter() - started:.2f}s: {e}")
            raise
        logger.info(f"{name} finished in {time.perf_counter() - started:.2f}s")
        return result

    return wrapper


class PipelineLogger:
    """
    Logger for one run of a batch job.

    Messages are prefixed with ``[pipeline:run_id]`` and the records are
    bound to the pipeline as component, so file sinks can be grepped per run.
    """

    def __init__(self, pipeline_name: str, run_id: str = None):
        self.pipeline_name = pipeline_name
        self.run_id = run_id or datetime.now().strftime('%Y%m%d_%H%M%S')
        self.context = {'pipeline': pipeline_name, 'run_id': self.run_id}
        self._logger = logger.bind(component=pipeline_name, run_id=self.run_id)

    def _format_message(self, message: str) -> str:
        return f"[{self.pipeline_name}:{self.run_id}] {message}"

    def _log(self, level: str, message: str, exception: bool = False):
        self._logger.opt(depth=2, exception=exception).log(level, self._format_message(message))

    def debug(self, message: str):
        self._log("DEBUG", message)

    def info(self, message: str):
        self._log("INFO", message)

    def warning(self, message: str):
        self._log("WARNING", message)

    def error(self, message: str):
        self._log("ERROR", message)

    def exception(self, message: str):
        self._log("ERROR", message, exception=True)

    def log_metrics(self, metrics: Dict[str, Any]):
        self._log("INFO", "Metrics: " + ", ".join(f"{k}={v}" for k, v in metrics.items()))


setup_logging()

__all__ = ['logger', 'setup_logging', 'get_logger', 'log_execution_time', 'PipelineLogger']
