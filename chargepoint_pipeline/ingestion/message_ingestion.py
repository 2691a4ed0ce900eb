"""
File-based ingestion of raw OCPP message logs.
Reads JSON lines, CSV and Parquet into Spark with the raw message schema.
"""

from pathlib import Path
from typing import List, Optional, Union

from pyspark.sql import SparkSession, DataFrame

from chargepoint_pipeline.config import settings
from chargepoint_pipeline.errors import IngestionError
from chargepoint_pipeline.processing.messages import RAW_MESSAGE_SCHEMA
from chargepoint_pipeline.utils.logging_utils import logger, log_execution_time


SUPPORTED_FORMATS = ('json', 'csv', 'parquet')


class MessageIngestion:
    """Reads and writes raw charge point message logs."""

    def __init__(self, spark: SparkSession, base_path: Optional[Path] = None):
        self.spark = spark
        self.base_path = Path(base_path) if base_path else settings.paths.data_path

    def _resolve_path(self, file_path: Union[str, Path], must_exist: bool = True) -> str:
        """
        Resolve a local path relative to base path and, for inputs, make sure it exists.
        URIs with a scheme (s3a://, hdfs://, ...) are passed through as is.
        """
        raw = str(file_path)
        if "://" in raw:
            return raw

        path = Path(raw)
        if not path.is_absolute():
            path = self.base_path / path

        if must_exist and not path.exists():
            raise IngestionError(f"Input not found: {path}", path=str(path))
        return str(path)

    @log_execution_time
    def read_json_lines(self, file_path: Union[str, Path]) -> DataFrame:
        """Read newline-delimited JSON messages."""
        path = self._resolve_path(file_path)
        logger.info(f"Reading JSON lines: {path}")
        return self.spark.read.schema(RAW_MESSAGE_SCHEMA).json(path)

    @log_execution_time
    def read_csv(self, file_path: Union[str, Path], header: bool = True) -> DataFrame:
        """Read CSV messages; the body column holds quoted JSON."""
        path = self._resolve_path(file_path)
        logger.info(f"Reading CSV file: {path}")
        return self.spark.read \
            .schema(RAW_MESSAGE_SCHEMA) \
            .option("header", header) \
            .option("quote", '"') \
            .option("escape", '"') \
            .option("multiLine", True) \
            .csv(path)

    @log_execution_time
    def read_parquet(self, file_path: Union[str, Path]) -> DataFrame:
        path = self._resolve_path(file_path)
        logger.info(f"Reading Parquet: {path}")
        return self.spark.read.schema(RAW_MESSAGE_SCHEMA).parquet(path)

    def read(self, file_path: Union[str, Path], input_format: str = 'json') -> DataFrame:
        """
        Read messages in one of the supported formats.

        Args:
            file_path: File or directory
            input_format: json (JSON lines), csv or parquet

        Returns:
            DataFrame with RAW_MESSAGE_SCHEMA
        """
        if input_format == 'json':
            return self.read_json_lines(file_path)
        if input_format == 'csv':
            return self.read_csv(file_path)
        if input_format == 'parquet':
            return self.read_parquet(file_path)
        raise IngestionError(
            f"Unsupported input format '{input_format}', expected one of {SUPPORTED_FORMATS}",
            path=str(file_path)
        )

    @log_execution_time
    def write_parquet(
        self,
        df: DataFrame,
        file_path: Union[str, Path],
        partition_by: Optional[List[str]] = None,
        mode: str = 'overwrite'
    ) -> str:
        """
        Write DataFrame to Parquet.

        Args:
            df: DataFrame to write
            file_path: Output directory; relative paths are under base_path
            partition_by: Columns for partitioning
            mode: Spark save mode

        Returns:
            The path written to
        """
        path = self._resolve_path(file_path, must_exist=False)
        if "://" not in path:
            Path(path).parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Writing Parquet: {path}")
        writer = df.write.mode(mode)
        if partition_by:
            writer = writer.partitionBy(*partition_by)

        try:
            writer.parquet(path)
        except Exception as e:
            raise IngestionError(f"Failed to write Parquet to {path}", path=path, cause=e) from e

        return path
