"""
Processing Module
OCPP message transformations and transform chaining
"""

from .messages import (
    MessageType,
    Action,
    AuthorizationStatus,
    RAW_MESSAGE_SCHEMA
)
from .pipeline import TransformationPipeline, TransformationStep
from .sessions import (
    build_start_transactions,
    build_stop_transactions,
    build_charging_sessions,
    build_meter_values
)

__all__ = [
    'MessageType',
    'Action',
    'AuthorizationStatus',
    'RAW_MESSAGE_SCHEMA',
    'TransformationPipeline',
    'TransformationStep',
    'build_start_transactions',
    'build_stop_transactions',
    'build_charging_sessions',
    'build_meter_values'
]
