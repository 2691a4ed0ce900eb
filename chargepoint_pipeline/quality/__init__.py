"""
Data Quality Module
Data quality checks and validation
"""

from .data_quality_checks import (
    DataQualityChecker,
    ChargingDataQualitySuite,
    QualityCheckType,
    QualitySeverity,
    QualityResult,
    QualityReport
)

__all__ = [
    'DataQualityChecker',
    'ChargingDataQualitySuite',
    'QualityCheckType',
    'QualitySeverity',
    'QualityResult',
    'QualityReport'
]
