"""
OCPP 1.6 message vocabulary and Spark schemas for raw message logs.
"""

from enum import Enum

from pyspark.sql.types import (
    StructType, StructField, StringType, IntegerType, ArrayType
)


class MessageType(Enum):
    """OCPP-J message type ids"""
    REQUEST = 2
    RESPONSE = 3
    ERROR = 4


class Action(Enum):
    """OCPP actions seen in charge point logs"""
    START_TRANSACTION = "StartTransaction"
    STOP_TRANSACTION = "StopTransaction"
    METER_VALUES = "MeterValues"
    HEARTBEAT = "Heartbeat"
    BOOT_NOTIFICATION = "BootNotification"
    STATUS_NOTIFICATION = "StatusNotification"
    AUTHORIZE = "Authorize"


class AuthorizationStatus(Enum):
    """idTagInfo.status values"""
    ACCEPTED = "Accepted"
    BLOCKED = "Blocked"
    EXPIRED = "Expired"
    INVALID = "Invalid"
    CONCURRENT_TX = "ConcurrentTx"


DEFAULT_MEASURAND = "Energy.Active.Import.Register"


RAW_MESSAGE_SCHEMA = StructType([
    StructField("message_id", StringType(), True),
    StructField("message_type", IntegerType(), True),
    StructField("charge_point_id", StringType(), True),
    StructField("action", StringType(), True),
    StructField("timestamp", StringType(), True),
    StructField("body", StringType(), True)
])

START_TRANSACTION_REQUEST_SCHEMA = StructType([
    StructField("connector_id", IntegerType(), True),
    StructField("id_tag", StringType(), True),
    StructField("meter_start", IntegerType(), True),
    StructField("timestamp", StringType(), True),
    StructField("reservation_id", IntegerType(), True)
])

START_TRANSACTION_RESPONSE_SCHEMA = StructType([
    StructField("transaction_id", IntegerType(), True),
    StructField("id_tag_info", StructType([
        StructField("status", StringType(), True),
        StructField("parent_id_tag", StringType(), True),
        StructField("expiry_date", StringType(), True)
    ]), True)
])

STOP_TRANSACTION_REQUEST_SCHEMA = StructType([
    StructField("meter_stop", IntegerType(), True),
    StructField("timestamp", StringType(), True),
    StructField("transaction_id", IntegerType(), True),
    StructField("reason", StringType(), True),
    StructField("id_tag", StringType(), True)
])

SAMPLED_VALUE_SCHEMA = StructType([
    StructField("value", StringType(), True),
    StructField("context", StringType(), True),
    StructField("format", StringType(), True),
    StructField("measurand", StringType(), True),
    StructField("phase", StringType(), True),
    StructField("unit", StringType(), True),
    StructField("location", StringType(), True)
])

METER_VALUES_REQUEST_SCHEMA = StructType([
    StructField("connector_id", IntegerType(), True),
    StructField("transaction_id", IntegerType(), True),
    StructField("meter_value", ArrayType(StructType([
        StructField("timestamp", StringType(), True),
        StructField("sampled_value", ArrayType(SAMPLED_VALUE_SCHEMA), True)
    ])), True)
])
