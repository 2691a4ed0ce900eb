"""Charge Point Pipeline: PySpark transformations for OCPP charge point message logs."""

__version__ = "0.1.0"
