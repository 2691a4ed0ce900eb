"""Batch jobs for the Charge Point Pipeline."""

from .charging_sessions_job import ChargingSessionsJob, main

__all__ = ['ChargingSessionsJob', 'main']
