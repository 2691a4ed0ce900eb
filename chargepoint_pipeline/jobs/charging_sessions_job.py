#!/usr/bin/env python3
"""
Spark Batch Job for Charging Sessions
Turns raw OCPP message logs into charging sessions and per charge point summaries
"""

import sys
from datetime import datetime
from typing import Dict, Optional

from pyspark.sql import SparkSession, DataFrame

from chargepoint_pipeline.config import settings as default_settings, Settings
from chargepoint_pipeline.errors import ChargePointPipelineError
from chargepoint_pipeline.ingestion import MessageIngestion
from chargepoint_pipeline.processing.sessions import (
    build_charging_sessions,
    build_meter_values
)
from chargepoint_pipeline.processing.transformations import (
    summarize_by_charge_point,
    summarize_meter_values
)
from chargepoint_pipeline.quality import ChargingDataQualitySuite
from chargepoint_pipeline.utils.logging_utils import PipelineLogger, log_execution_time
from chargepoint_pipeline.utils.spark_utils import get_spark_session, stop_spark_session


class ChargingSessionsJob:
    """Batch processor for charge point message logs"""

    def __init__(self, spark: SparkSession = None, settings: Settings = None):
        self.settings = settings or default_settings
        self.spark = spark or get_spark_session(self.settings.spark, app_name="ChargingSessionsJob")
        self.ingestion = MessageIngestion(self.spark, base_path=self.settings.paths.data_path)
        self.quality = ChargingDataQualitySuite(self.settings.quality)
        self.log = PipelineLogger("charging_sessions")

    @log_execution_time
    def run(self,
            input_path: str,
            output_path: Optional[str] = None,
            input_format: str = "json",
            fail_on_critical: bool = False) -> Dict[str, DataFrame]:
        """
        Run the charging sessions batch.

        Args:
            input_path: Raw message log (file or directory)
            output_path: Directory for parquet outputs; nothing is written when None
            input_format: json, csv or parquet
            fail_on_critical: Raise DataQualityError on critical quality failures

        Returns:
            Dict of DataFrames: raw_messages, charging_sessions,
            charge_point_summary, meter_value_summary
        """
        self.log.info(f"Reading {input_format} messages from {input_path}")
        raw = self.ingestion.read(input_path, input_format=input_format).cache()

        raw_report = self.quality.check_raw_messages(raw)
        self.log.info(raw_report.get_summary())
        if fail_on_critical:
            raw_report.raise_for_critical()

        sessions = build_charging_sessions(raw).cache()
        charge_point_summary = summarize_by_charge_point(sessions)
        meter_value_summary = summarize_meter_values(build_meter_values(raw))

        sessions_report = self.quality.check_charging_sessions(sessions)
        self.log.info(sessions_report.get_summary())
        if fail_on_critical:
            sessions_report.raise_for_critical()

        results = {
            'raw_messages': raw,
            'charging_sessions': sessions,
            'charge_point_summary': charge_point_summary,
            'meter_value_summary': meter_value_summary
        }

        if output_path:
            base = output_path.rstrip("/")
            self.ingestion.write_parquet(sessions, f"{base}/charging_sessions",
                                         partition_by=["charge_point_id"])
            self.ingestion.write_parquet(charge_point_summary, f"{base}/charge_point_summary")
            self.ingestion.write_parquet(meter_value_summary, f"{base}/meter_value_summary")

        self.log.log_metrics({
            'raw_messages': raw.count(),
            'charging_sessions': sessions.count(),
            'charge_points': charge_point_summary.count(),
            'quality_score': f"{sessions_report.overall_score:.2%}",
            'completed_at': datetime.now().isoformat()
        })
        return results

    def stop(self):
        """Stop Spark session"""
        stop_spark_session(self.spark)
        self.spark = None


def main(argv=None) -> int:
    """Main entry point for the charging sessions job"""
    import argparse

    parser = argparse.ArgumentParser(description='Charging Sessions Batch Job')
    parser.add_argument('--input-path', required=True, help='Path to raw OCPP messages')
    parser.add_argument('--output-path',
                        help='Output path for processed data (default: PIPELINE_BASE_PATH/output)')
    parser.add_argument('--input-format', default='json', choices=['json', 'csv', 'parquet'],
                        help='Format of the raw messages')
    parser.add_argument('--fail-on-critical', action='store_true',
                        help='Exit with an error when critical quality checks fail')

    args = parser.parse_args(argv)

    log = PipelineLogger("charging_sessions")
    job = None

    try:
        default_settings.validate()
        job = ChargingSessionsJob()
        job.run(
            input_path=args.input_path,
            output_path=args.output_path or str(default_settings.paths.output_path),
            input_format=args.input_format,
            fail_on_critical=args.fail_on_critical
        )
        log.info("Charging sessions job completed successfully")
        return 0
    except ChargePointPipelineError as e:
        log.error(f"Charging sessions job failed: {e}")
        return 1
    finally:
        if job is not None:
            job.stop()


if __name__ == "__main__":
    sys.exit(main())
