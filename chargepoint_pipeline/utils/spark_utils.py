"""
Spark helpers shared by transformations, jobs and tests.
"""

from typing import Iterable, Optional

from loguru import logger
from pyspark.sql import SparkSession, DataFrame

from chargepoint_pipeline.config import settings, SparkConfig
from chargepoint_pipeline.errors import SchemaValidationError


def get_spark_session(config: Optional[SparkConfig] = None,
                      app_name: Optional[str] = None) -> SparkSession:
    """
    Create (or reuse) a SparkSession configured from SparkConfig.

    Args:
        config: Spark configuration, defaults to ``settings.spark``
        app_name: Overrides the configured application name

    Returns:
        Active SparkSession
    """
    config = config or settings.spark
    builder = SparkSession.builder

    for key, value in config.get_spark_conf().items():
        builder = builder.config(key, value)

    if app_name:
        builder = builder.appName(app_name)

    spark = builder.getOrCreate()
    logger.debug(
        f"Spark session ready: master={spark.sparkContext.master}, "
        f"app={spark.sparkContext.appName}"
    )
    return spark


def stop_spark_session(spark: Optional[SparkSession]) -> None:
    """Stop a Spark session if one is running."""
    if spark is not None:
        spark.stop()
        logger.debug("Spark session stopped")


def require_columns(df: DataFrame, columns: Iterable[str], context: str = "") -> None:
    """
    Raise SchemaValidationError unless every column is present on df.

    Args:
        df: DataFrame to inspect
        columns: Column names that must exist
        context: Name of the caller, used in the error message
    """
    missing = [c for c in columns if c not in df.columns]
    if missing:
        where = f" for {context}" if context else ""
        raise SchemaValidationError(
            f"Missing required columns{where}: {missing}",
            missing_columns=missing,
            context={'available_columns': list(df.columns)}
        )
