"""Data ingestion module for the Charge Point Pipeline."""

from .message_ingestion import MessageIngestion, SUPPORTED_FORMATS

__all__ = ['MessageIngestion', 'SUPPORTED_FORMATS']
