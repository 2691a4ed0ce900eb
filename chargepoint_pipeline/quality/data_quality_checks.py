"""
Data Quality Checks Module
Validation framework for Spark DataFrames of charge point data
"""

from datetime import datetime
from typing import Dict, List, Any, Optional, Union
from dataclasses import dataclass, field, asdict
from enum import Enum
import json

from pyspark.errors import AnalysisException
from pyspark.sql import DataFrame, Column
from pyspark.sql.functions import (
    col, lit, expr, count, countDistinct, coalesce, current_timestamp,
    min as spark_min, max as spark_max, sum as spark_sum
)

from chargepoint_pipeline.config import settings, QualityConfig
from chargepoint_pipeline.errors import DataQualityError
from chargepoint_pipeline.processing.messages import MessageType
from chargepoint_pipeline.utils.logging_utils import get_logger


logger = get_logger("quality")


class QualityCheckType(Enum):
    """Types of quality checks"""
    COMPLETENESS = "completeness"
    VALIDITY = "validity"
    UNIQUENESS = "uniqueness"
    TIMELINESS = "timeliness"


class QualitySeverity(Enum):
    """Severity levels for quality issues"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_WEIGHTS = {
    QualitySeverity.LOW.value: 0.25,
    QualitySeverity.MEDIUM.value: 0.5,
    QualitySeverity.HIGH.value: 0.75,
    QualitySeverity.CRITICAL.value: 1.0
}


@dataclass
class QualityResult:
    """Result of a quality check"""
    rule_name: str
    check_type: str
    passed: bool
    actual_value: Any
    expected_threshold: Any
    severity: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class QualityReport:
    """Complete quality report for a dataset"""
    dataset_name: str
    total_records: int
    check_results: List[QualityResult]
    overall_score: float
    execution_time_seconds: float
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def passed_checks(self) -> int:
        return sum(1 for r in self.check_results if r.passed)

    @property
    def failed_checks(self) -> int:
        return sum(1 for r in self.check_results if not r.passed)

    @property
    def critical_failures(self) -> List[QualityResult]:
        return [r for r in self.check_results
                if not r.passed and r.severity == QualitySeverity.CRITICAL.value]

    def raise_for_critical(self) -> None:
        """Raise DataQualityError if any critical check failed."""
        failures = self.critical_failures
        if failures:
            raise DataQualityError(
                f"{len(failures)} critical quality check(s) failed on '{self.dataset_name}'",
                failed_rules=[r.rule_name for r in failures],
                context={'dataset': self.dataset_name}
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dataset_name': self.dataset_name,
            'total_records': self.total_records,
            'check_results': [r.to_dict() for r in self.check_results],
            'overall_score': self.overall_score,
            'passed_checks': self.passed_checks,
            'failed_checks': self.failed_checks,
            'execution_time_seconds': self.execution_time_seconds,
            'timestamp': self.timestamp,
            'metadata': self.metadata
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str, indent=2)

    def get_summary(self) -> str:
        """Get a human-readable summary"""
        return f"""
Quality Report: {self.dataset_name}
{'='*50}
Total Records: {self.total_records:,}
Overall Score: {self.overall_score:.2%}
Checks Passed: {self.passed_checks}/{len(self.check_results)}
Critical Failures: {len(self.critical_failures)}
Execution Time: {self.execution_time_seconds:.2f}s
Timestamp: {self.timestamp}
"""


def _ratio(part: int, total: int) -> float:
    return 1.0 if total == 0 else part / total


class DataQualityChecker:
    """
    Quality checker for Spark DataFrames.

    Every check runs one or two aggregations, records a QualityResult and
    returns it. A check against a column that does not exist records a
    failed result instead of raising.
    """

    def __init__(self, df: DataFrame, dataset_name: str = "unknown"):
        """
        Args:
            df: DataFrame to check
            dataset_name: Name of the dataset for reporting
        """
        self.df = df
        self.dataset_name = dataset_name
        self.results: List[QualityResult] = []
        self._start_time = datetime.now()
        self._total_records: Optional[int] = None

    @property
    def total_records(self) -> int:
        if self._total_records is None:
            self._total_records = self.df.count()
        return self._total_records

    def _record_result(self, result: QualityResult) -> QualityResult:
        """Record a quality check result"""
        self.results.append(result)
        if result.passed:
            logger.debug(f"Quality check '{result.rule_name}' on {self.dataset_name}: PASSED")
        else:
            logger.warning(
                f"Quality check '{result.rule_name}' on {self.dataset_name}: FAILED "
                f"(actual={result.actual_value}, expected={result.expected_threshold})"
            )
        return result

    def _missing_columns_result(self, rule_name: str, check_type: QualityCheckType,
                                columns: List[str], threshold: Any,
                                severity: QualitySeverity) -> Optional[QualityResult]:
        missing = [c for c in columns if c not in self.df.columns]
        if not missing:
            return None
        return self._record_result(QualityResult(
            rule_name=rule_name,
            check_type=check_type.value,
            passed=False,
            actual_value=0,
            expected_threshold=threshold,
            severity=severity.value,
            details={'error': f"Columns not found: {missing}"}
        ))

    # ==================== Completeness Checks ====================

    def check_not_null(self, column: str, threshold: float = 1.0,
                       severity: QualitySeverity = QualitySeverity.HIGH) -> QualityResult:
        """
        Check that a column has no null values (or meets threshold)

        Args:
            column: Column name to check
            threshold: Minimum ratio of non-null values (0-1)
            severity: Severity level if check fails
        """
        rule_name = f"not_null_{column}"
        missing = self._missing_columns_result(rule_name, QualityCheckType.COMPLETENESS,
                                               [column], threshold, severity)
        if missing:
            return missing

        non_null_count = self.df.agg(count(col(column)).alias("n")).collect()[0]["n"]
        non_null_ratio = _ratio(non_null_count, self.total_records)

        return self._record_result(QualityResult(
            rule_name=rule_name,
            check_type=QualityCheckType.COMPLETENESS.value,
            passed=non_null_ratio >= threshold,
            actual_value=non_null_ratio,
            expected_threshold=threshold,
            severity=severity.value,
            details={
                'null_count': self.total_records - non_null_count,
                'total_count': self.total_records,
                'non_null_percentage': f"{non_null_ratio:.2%}"
            }
        ))

    def check_completeness(self, columns: List[str] = None,
                           threshold: float = 0.95,
                           severity: QualitySeverity = QualitySeverity.MEDIUM) -> QualityResult:
        """Check average completeness of the given columns (default: all)."""
        if columns is None:
            columns = list(self.df.columns)

        missing = self._missing_columns_result("completeness_check", QualityCheckType.COMPLETENESS,
                                               columns, threshold, severity)
        if missing:
            return missing

        row = self.df.agg(*[count(col(c)).alias(c) for c in columns]).collect()[0]
        completeness_by_column = {
            c: _ratio(row[c], self.total_records) for c in columns
        }
        overall = (sum(completeness_by_column.values()) / len(columns)) if columns else 1.0

        return self._record_result(QualityResult(
            rule_name="completeness_check",
            check_type=QualityCheckType.COMPLETENESS.value,
            passed=overall >= threshold,
            actual_value=overall,
            expected_threshold=threshold,
            severity=severity.value,
            details={
                'completeness_by_column': completeness_by_column,
                'columns_below_threshold': [
                    c for c, val in completeness_by_column.items() if val < threshold
                ]
            }
        ))

    # ==================== Uniqueness Checks ====================

    def check_unique(self, column: str, threshold: float = 1.0,
                     severity: QualitySeverity = QualitySeverity.HIGH) -> QualityResult:
        """Check that non-null values of a column are unique."""
        rule_name = f"unique_{column}"
        missing = self._missing_columns_result(rule_name, QualityCheckType.UNIQUENESS,
                                               [column], threshold, severity)
        if missing:
            return missing

        row = self.df.agg(
            count(col(column)).alias("non_null"),
            countDistinct(col(column)).alias("distinct")
        ).collect()[0]
        unique_ratio = _ratio(row["distinct"], row["non_null"])

        duplicates = self.df \
            .filter(col(column).isNotNull()) \
            .groupBy(column).count() \
            .filter(col("count") > 1) \
            .orderBy(col("count").desc()) \
            .limit(10) \
            .collect()

        return self._record_result(QualityResult(
            rule_name=rule_name,
            check_type=QualityCheckType.UNIQUENESS.value,
            passed=unique_ratio >= threshold,
            actual_value=unique_ratio,
            expected_threshold=threshold,
            severity=severity.value,
            details={
                'unique_count': row["distinct"],
                'total_count': row["non_null"],
                'top_duplicates': {str(r[column]): r["count"] for r in duplicates}
            }
        ))

    def check_primary_key(self, columns: Union[str, List[str]],
                          threshold: float = 1.0,
                          severity: QualitySeverity = QualitySeverity.CRITICAL) -> QualityResult:
        """
        Check that specified column(s) can serve as a primary key
        (unique and not null).

        The measured value is the share of rows with a complete key that no
        other row repeats; every row of a duplicated key counts against it.
        """
        if isinstance(columns, str):
            columns = [columns]

        rule_name = f"primary_key_{'_'.join(columns)}"
        missing = self._missing_columns_result(rule_name, QualityCheckType.UNIQUENESS,
                                               columns, threshold, severity)
        if missing:
            return missing

        any_null = None
        for c in columns:
            any_null = col(c).isNull() if any_null is None else (any_null | col(c).isNull())

        null_count = self.df.filter(any_null).count()
        duplicate_row = self.df \
            .filter(~any_null) \
            .groupBy(*columns).count() \
            .filter(col("count") > 1) \
            .agg(coalesce(spark_sum("count"), lit(0)).alias("duplicates")) \
            .collect()[0]
        duplicate_count = int(duplicate_row["duplicates"])

        valid_ratio = _ratio(self.total_records - null_count - duplicate_count, self.total_records)

        return self._record_result(QualityResult(
            rule_name=rule_name,
            check_type=QualityCheckType.UNIQUENESS.value,
            passed=valid_ratio >= threshold,
            actual_value=valid_ratio,
            expected_threshold=threshold,
            severity=severity.value,
            details={
                'null_count': null_count,
                'duplicate_count': duplicate_count,
                'total_records': self.total_records,
                'columns_checked': columns
            }
        ))

    # ==================== Validity Checks ====================

    def check_values_in_set(self, column: str, valid_values: List[Any],
                            threshold: float = 1.0,
                            severity: QualitySeverity = QualitySeverity.MEDIUM) -> QualityResult:
        """Check that non-null column values are within a valid set."""
        rule_name = f"values_in_set_{column}"
        missing = self._missing_columns_result(rule_name, QualityCheckType.VALIDITY,
                                               [column], threshold, severity)
        if missing:
            return missing

        non_null = self.df.filter(col(column).isNotNull())
        total = non_null.count()
        invalid = non_null.filter(~col(column).isin(valid_values))
        invalid_count = invalid.count()
        valid_ratio = _ratio(total - invalid_count, total)

        sample_invalid = [r[column] for r in invalid.select(column).distinct().limit(10).collect()]

        return self._record_result(QualityResult(
            rule_name=rule_name,
            check_type=QualityCheckType.VALIDITY.value,
            passed=valid_ratio >= threshold,
            actual_value=valid_ratio,
            expected_threshold=threshold,
            severity=severity.value,
            details={
                'valid_values': valid_values,
                'invalid_count': invalid_count,
                'sample_invalid_values': sample_invalid
            }
        ))

    def check_range(self, column: str, min_value: Any = None, max_value: Any = None,
                    threshold: float = 1.0,
                    severity: QualitySeverity = QualitySeverity.MEDIUM) -> QualityResult:
        """Check that non-null numeric values fall within [min_value, max_value]."""
        rule_name = f"range_{column}"
        missing = self._missing_columns_result(rule_name, QualityCheckType.VALIDITY,
                                               [column], threshold, severity)
        if missing:
            return missing

        in_range = lit(True)
        if min_value is not None:
            in_range = in_range & (col(column) >= min_value)
        if max_value is not None:
            in_range = in_range & (col(column) <= max_value)

        non_null = self.df.filter(col(column).isNotNull())
        row = non_null.agg(
            count("*").alias("total"),
            spark_min(column).alias("actual_min"),
            spark_max(column).alias("actual_max")
        ).collect()[0]
        total = row["total"]
        out_of_range_count = non_null.filter(~in_range).count()
        in_range_ratio = _ratio(total - out_of_range_count, total)

        return self._record_result(QualityResult(
            rule_name=rule_name,
            check_type=QualityCheckType.VALIDITY.value,
            passed=in_range_ratio >= threshold,
            actual_value=in_range_ratio,
            expected_threshold=threshold,
            severity=severity.value,
            details={
                'min_allowed': min_value,
                'max_allowed': max_value,
                'actual_min': row["actual_min"],
                'actual_max': row["actual_max"],
                'out_of_range_count': out_of_range_count
            }
        ))

    def check_no_future_dates(self, column: str, threshold: float = 1.0,
                              severity: QualitySeverity = QualitySeverity.HIGH) -> QualityResult:
        """Check that a timestamp column holds no values after the current time."""
        rule_name = f"no_future_dates_{column}"
        missing = self._missing_columns_result(rule_name, QualityCheckType.TIMELINESS,
                                               [column], threshold, severity)
        if missing:
            return missing

        non_null = self.df.filter(col(column).isNotNull())
        total = non_null.count()
        future = non_null.filter(expr(f"try_cast(`{column}` AS TIMESTAMP)") > current_timestamp())
        future_count = future.count()
        valid_ratio = _ratio(total - future_count, total)

        return self._record_result(QualityResult(
            rule_name=rule_name,
            check_type=QualityCheckType.TIMELINESS.value,
            passed=valid_ratio >= threshold,
            actual_value=valid_ratio,
            expected_threshold=threshold,
            severity=severity.value,
            details={
                'future_date_count': future_count,
                'sample_future_dates': [str(r[column]) for r in future.select(column).limit(5).collect()]
            }
        ))

    def check_custom(self, rule_name: str, condition: Column,
                     description: str = "",
                     threshold: float = 1.0,
                     severity: QualitySeverity = QualitySeverity.MEDIUM) -> QualityResult:
        """
        Apply a custom boolean Column condition; rows where it is null count as failures.

        Args:
            rule_name: Name for the rule
            condition: Boolean Column expression that valid rows satisfy
            description: Description of the check
            threshold: Minimum ratio that must pass
            severity: Severity level
        """
        try:
            invalid_count = self.df.filter(~coalesce(condition, lit(False))).count()
        except AnalysisException as e:
            logger.warning(f"Custom check {rule_name} could not be evaluated on {self.dataset_name}: {e}")
            return self._record_result(QualityResult(
                rule_name=rule_name,
                check_type=QualityCheckType.VALIDITY.value,
                passed=False,
                actual_value=0,
                expected_threshold=threshold,
                severity=severity.value,
                details={'description': description, 'error': str(e)}
            ))

        valid_ratio = _ratio(self.total_records - invalid_count, self.total_records)

        return self._record_result(QualityResult(
            rule_name=rule_name,
            check_type=QualityCheckType.VALIDITY.value,
            passed=valid_ratio >= threshold,
            actual_value=valid_ratio,
            expected_threshold=threshold,
            severity=severity.value,
            details={
                'description': description,
                'invalid_count': invalid_count
            }
        ))

    # ==================== Report Generation ====================

    def generate_report(self) -> QualityReport:
        """Generate a quality report; the score is the severity-weighted pass rate."""
        execution_time = (datetime.now() - self._start_time).total_seconds()

        if self.results:
            total_weight = 0.0
            weighted_score = 0.0
            for result in self.results:
                weight = SEVERITY_WEIGHTS.get(result.severity, 0.5)
                weighted_score += weight if result.passed else 0.0
                total_weight += weight
            overall_score = weighted_score / total_weight if total_weight > 0 else 0.0
        else:
            overall_score = 1.0

        return QualityReport(
            dataset_name=self.dataset_name,
            total_records=self.total_records,
            check_results=self.results.copy(),
            overall_score=overall_score,
            execution_time_seconds=execution_time,
            metadata={
                'columns': list(self.df.columns),
                'column_types': dict(self.df.dtypes)
            }
        )

    def clear_results(self):
        """Clear all recorded results"""
        self.results = []
        self._start_time = datetime.now()


class ChargingDataQualitySuite:
    """
    Standard checks for raw OCPP messages and derived charging sessions
    """

    def __init__(self, config: Optional[QualityConfig] = None):
        self.config = config or settings.quality
        self.reports: Dict[str, QualityReport] = {}

    def check_raw_messages(self, df: DataFrame) -> QualityReport:
        """Run quality checks specific to raw message logs"""
        checker = DataQualityChecker(df, "raw_messages")

        checker.check_not_null('charge_point_id', threshold=1.0, severity=QualitySeverity.CRITICAL)
        checker.check_values_in_set(
            'message_type',
            self.config.valid_message_types,
            severity=QualitySeverity.HIGH
        )
        checker.check_completeness(
            ['message_id', 'action', 'body'],
            threshold=self.config.completeness_threshold,
            severity=QualitySeverity.MEDIUM
        )
        checker.check_custom(
            'message_id_present',
            col('message_id').isNotNull(),
            description='Every message carries an id',
            severity=QualitySeverity.HIGH
        )
        checker.check_primary_key(
            ['message_id', 'message_type'],
            threshold=self.config.uniqueness_threshold,
            severity=QualitySeverity.LOW
        )

        report = checker.generate_report()
        self.reports['raw_messages'] = report
        return report

    def check_charging_sessions(self, df: DataFrame) -> QualityReport:
        """Run quality checks specific to charging sessions"""
        checker = DataQualityChecker(df, "charging_sessions")

        checker.check_primary_key(['charge_point_id', 'transaction_id'], severity=QualitySeverity.CRITICAL)
        for column in ['start_timestamp', 'stop_timestamp', 'meter_start', 'meter_stop']:
            checker.check_not_null(column, threshold=1.0, severity=QualitySeverity.HIGH)

        checker.check_range('energy_kwh', min_value=0, severity=QualitySeverity.HIGH)
        checker.check_range('duration_hours', min_value=0,
                            max_value=self.config.max_session_hours,
                            severity=QualitySeverity.MEDIUM)
        checker.check_custom(
            'positive_duration',
            col('stop_timestamp') > col('start_timestamp'),
            description='Sessions end after they start',
            severity=QualitySeverity.HIGH
        )
        checker.check_no_future_dates('stop_timestamp', severity=QualitySeverity.MEDIUM)

        report = checker.generate_report()
        self.reports['charging_sessions'] = report
        return report

    def get_overall_summary(self) -> Dict[str, Any]:
        """Get summary across all checked datasets"""
        if not self.reports:
            return {'message': 'No reports generated yet'}

        total_checks = sum(len(r.check_results) for r in self.reports.values())
        total_passed = sum(r.passed_checks for r in self.reports.values())

        all_critical_failures = []
        for name, report in self.reports.items():
            for failure in report.critical_failures:
                all_critical_failures.append({
                    'dataset': name,
                    'rule': failure.rule_name,
                    'details': failure.details
                })

        return {
            'datasets_checked': list(self.reports.keys()),
            'total_checks': total_checks,
            'passed': total_passed,
            'failed': total_checks - total_passed,
            'pass_rate': _ratio(total_passed, total_checks),
            'average_score': sum(r.overall_score for r in self.reports.values()) / len(self.reports),
            'critical_failures': all_critical_failures,
            'has_critical_failures': len(all_critical_failures) > 0
        }
