"""
Data Transformation Module
Single-purpose transformations for OCPP charge point message logs.

Every function takes a DataFrame first and returns a new DataFrame, so
they can be chained with ``DataFrame.transform``::

    sessions = raw_df \\
        .transform(filter_by_start_transaction_and_request) \\
        .transform(unpack_start_transaction_request)
"""

from pyspark.sql import DataFrame
from pyspark.sql.functions import (
    col, lit, when, coalesce, expr, from_json, explode, try_to_timestamp,
    unix_timestamp, count, avg, sum as spark_sum,
    min as spark_min, max as spark_max, round as spark_round
)
from pyspark.sql.types import DoubleType

from chargepoint_pipeline.processing.messages import (
    Action, MessageType, AuthorizationStatus, DEFAULT_MEASURAND,
    START_TRANSACTION_REQUEST_SCHEMA, START_TRANSACTION_RESPONSE_SCHEMA,
    STOP_TRANSACTION_REQUEST_SCHEMA, METER_VALUES_REQUEST_SCHEMA
)
from chargepoint_pipeline.utils.spark_utils import require_columns


START_TRANSACTION_COLUMNS = [
    "charge_point_id", "transaction_id", "connector_id", "id_tag",
    "id_tag_status", "parent_id_tag", "expiry_date",
    "meter_start", "start_timestamp", "reservation_id"
]

STOP_TRANSACTION_COLUMNS = ["meter_stop", "stop_timestamp", "reason", "stop_id_tag"]


# ==================== Filters ====================

def filter_by_action_and_message_type(df: DataFrame, action: str, message_type: int) -> DataFrame:
    """
    Keep messages of one OCPP action and message type.

    Args:
        df: Raw messages
        action: OCPP action name, e.g. "StartTransaction"
        message_type: 2 (request), 3 (response) or 4 (error)

    Returns:
        Filtered DataFrame with the input columns unchanged
    """
    require_columns(df, ["action", "message_type"], "filter_by_action_and_message_type")
    return df.filter((col("action") == action) & (col("message_type") == message_type))


def filter_by_start_transaction_and_request(df: DataFrame) -> DataFrame:
    return filter_by_action_and_message_type(
        df, Action.START_TRANSACTION.value, MessageType.REQUEST.value
    )


def filter_by_start_transaction_and_response(df: DataFrame) -> DataFrame:
    return filter_by_action_and_message_type(
        df, Action.START_TRANSACTION.value, MessageType.RESPONSE.value
    )


def filter_by_stop_transaction_and_request(df: DataFrame) -> DataFrame:
    return filter_by_action_and_message_type(
        df, Action.STOP_TRANSACTION.value, MessageType.REQUEST.value
    )


def filter_by_meter_values_and_request(df: DataFrame) -> DataFrame:
    return filter_by_action_and_message_type(
        df, Action.METER_VALUES.value, MessageType.REQUEST.value
    )


# ==================== Cleaning ====================

def deduplicate_messages(df: DataFrame) -> DataFrame:
    """Drop repeated deliveries of the same message (same id and type)."""
    require_columns(df, ["message_id", "message_type"], "deduplicate_messages")
    return df.dropDuplicates(["message_id", "message_type"])


def convert_timestamp(df: DataFrame, column: str = "timestamp") -> DataFrame:
    """Parse an ISO-8601 string column into a timestamp; bad values become null."""
    require_columns(df, [column], "convert_timestamp")
    return df.withColumn(column, try_to_timestamp(col(column)))


# ==================== Unpacking ====================

def unpack_start_transaction_request(df: DataFrame) -> DataFrame:
    """
    Flatten StartTransaction request bodies.

    Returns:
        message_id, charge_point_id, connector_id, id_tag, meter_start,
        start_timestamp, reservation_id
    """
    require_columns(df, ["message_id", "charge_point_id", "body"], "unpack_start_transaction_request")
    return df \
        .withColumn("new_body", from_json(col("body"), START_TRANSACTION_REQUEST_SCHEMA)) \
        .select(
            col("message_id"),
            col("charge_point_id"),
            col("new_body.connector_id").alias("connector_id"),
            col("new_body.id_tag").alias("id_tag"),
            col("new_body.meter_start").alias("meter_start"),
            try_to_timestamp(col("new_body.timestamp")).alias("start_timestamp"),
            col("new_body.reservation_id").alias("reservation_id")
        )


def unpack_start_transaction_response(df: DataFrame) -> DataFrame:
    """
    Flatten StartTransaction response bodies.

    Returns:
        message_id, charge_point_id, transaction_id, id_tag_status,
        parent_id_tag, expiry_date
    """
    require_columns(df, ["message_id", "charge_point_id", "body"], "unpack_start_transaction_response")
    return df \
        .withColumn("new_body", from_json(col("body"), START_TRANSACTION_RESPONSE_SCHEMA)) \
        .select(
            col("message_id"),
            col("charge_point_id"),
            col("new_body.transaction_id").alias("transaction_id"),
            col("new_body.id_tag_info.status").alias("id_tag_status"),
            col("new_body.id_tag_info.parent_id_tag").alias("parent_id_tag"),
            try_to_timestamp(col("new_body.id_tag_info.expiry_date")).alias("expiry_date")
        )


def unpack_stop_transaction_request(df: DataFrame) -> DataFrame:
    """
    Flatten StopTransaction request bodies.

    Returns:
        message_id, charge_point_id, transaction_id, meter_stop,
        stop_timestamp, reason, stop_id_tag
    """
    require_columns(df, ["message_id", "charge_point_id", "body"], "unpack_stop_transaction_request")
    return df \
        .withColumn("new_body", from_json(col("body"), STOP_TRANSACTION_REQUEST_SCHEMA)) \
        .select(
            col("message_id"),
            col("charge_point_id"),
            col("new_body.transaction_id").alias("transaction_id"),
            col("new_body.meter_stop").alias("meter_stop"),
            try_to_timestamp(col("new_body.timestamp")).alias("stop_timestamp"),
            col("new_body.reason").alias("reason"),
            col("new_body.id_tag").alias("stop_id_tag")
        )


def unpack_meter_values_request(df: DataFrame) -> DataFrame:
    """
    Flatten MeterValues requests to one row per sampled value.

    Readings without a measurand are Energy.Active.Import.Register.
    Meter values with an empty sampled_value list produce no rows.
    """
    require_columns(df, ["message_id", "charge_point_id", "body"], "unpack_meter_values_request")
    return df \
        .withColumn("new_body", from_json(col("body"), METER_VALUES_REQUEST_SCHEMA)) \
        .select(
            col("message_id"),
            col("charge_point_id"),
            col("new_body.connector_id").alias("connector_id"),
            col("new_body.transaction_id").alias("transaction_id"),
            explode(col("new_body.meter_value")).alias("meter_value")
        ) \
        .select(
            "message_id",
            "charge_point_id",
            "connector_id",
            "transaction_id",
            try_to_timestamp(col("meter_value.timestamp")).alias("reading_timestamp"),
            explode(col("meter_value.sampled_value")).alias("sampled_value")
        ) \
        .select(
            "message_id",
            "charge_point_id",
            "connector_id",
            "transaction_id",
            "reading_timestamp",
            coalesce(col("sampled_value.measurand"), lit(DEFAULT_MEASURAND)).alias("measurand"),
            col("sampled_value.phase").alias("phase"),
            col("sampled_value.unit").alias("unit"),
            col("sampled_value.context").alias("context"),
            col("sampled_value.location").alias("location"),
            expr("try_cast(sampled_value.value AS DOUBLE)").alias("value")
        )


# ==================== Joining ====================

def join_start_request_with_response(requests: DataFrame, responses: DataFrame) -> DataFrame:
    """
    Attach the transaction id and authorization result to each
    StartTransaction request. A response carries the same message_id as
    the request it answers.

    Args:
        requests: Output of unpack_start_transaction_request
        responses: Output of unpack_start_transaction_response

    Returns:
        One row per answered request, without message_id
    """
    require_columns(requests, ["message_id", "charge_point_id", "meter_start", "start_timestamp"],
                    "join_start_request_with_response (requests)")
    require_columns(responses, ["message_id", "charge_point_id", "transaction_id", "id_tag_status"],
                    "join_start_request_with_response (responses)")

    return requests \
        .join(responses, on=["message_id", "charge_point_id"], how="inner") \
        .select(*START_TRANSACTION_COLUMNS)


def join_with_stop_transaction(starts: DataFrame, stops: DataFrame) -> DataFrame:
    """
    Pair started transactions with their StopTransaction request.
    Transactions that were never stopped are dropped.
    """
    require_columns(starts, ["transaction_id", "charge_point_id"], "join_with_stop_transaction (starts)")
    require_columns(stops, ["transaction_id", "charge_point_id"] + STOP_TRANSACTION_COLUMNS,
                    "join_with_stop_transaction (stops)")

    stop_columns = stops.select("transaction_id", "charge_point_id", *STOP_TRANSACTION_COLUMNS)
    return starts \
        .join(stop_columns, on=["transaction_id", "charge_point_id"], how="inner") \
        .select(*starts.columns, *STOP_TRANSACTION_COLUMNS)


# ==================== Session metrics ====================

def filter_accepted_transactions(df: DataFrame) -> DataFrame:
    require_columns(df, ["id_tag_status"], "filter_accepted_transactions")
    return df.filter(col("id_tag_status") == AuthorizationStatus.ACCEPTED.value)


def _session_seconds():
    return unix_timestamp(col("stop_timestamp")) - unix_timestamp(col("start_timestamp"))


def calculate_charging_duration(df: DataFrame) -> DataFrame:
    """Add duration_minutes and duration_hours from start/stop timestamps."""
    require_columns(df, ["start_timestamp", "stop_timestamp"], "calculate_charging_duration")
    return df \
        .withColumn("duration_minutes", spark_round(_session_seconds() / 60, 2)) \
        .withColumn("duration_hours", spark_round(_session_seconds() / 3600, 4))


def calculate_energy_consumed(df: DataFrame) -> DataFrame:
    """Add energy_kwh; OCPP meter readings are in Wh."""
    require_columns(df, ["meter_start", "meter_stop"], "calculate_energy_consumed")
    return df.withColumn(
        "energy_kwh",
        spark_round((col("meter_stop") - col("meter_start")) / 1000, 3)
    )


def filter_valid_sessions(df: DataFrame) -> DataFrame:
    """Keep sessions that end after they start and whose meter did not run backwards."""
    require_columns(df, ["start_timestamp", "stop_timestamp", "meter_start", "meter_stop"],
                    "filter_valid_sessions")
    return df.filter(
        (col("stop_timestamp") > col("start_timestamp")) &
        (col("meter_stop") >= col("meter_start"))
    )


def calculate_average_power(df: DataFrame) -> DataFrame:
    """Add average_power_kw; null for zero-length sessions."""
    require_columns(df, ["energy_kwh", "start_timestamp", "stop_timestamp"], "calculate_average_power")
    hours = _session_seconds() / 3600
    return df.withColumn(
        "average_power_kw",
        when(hours > 0, spark_round(col("energy_kwh") / hours, 3))
        .otherwise(lit(None).cast(DoubleType()))
    )


def summarize_by_charge_point(df: DataFrame) -> DataFrame:
    """Aggregate charging sessions per charge point."""
    require_columns(df, ["charge_point_id", "energy_kwh", "duration_hours"], "summarize_by_charge_point")
    return df \
        .groupBy("charge_point_id") \
        .agg(
            count("*").alias("session_count"),
            spark_round(spark_sum("energy_kwh"), 3).alias("total_energy_kwh"),
            spark_round(spark_sum("duration_hours"), 4).alias("total_duration_hours"),
            spark_round(avg("energy_kwh"), 3).alias("avg_energy_kwh"),
            spark_max("energy_kwh").alias("max_energy_kwh")
        ) \
        .orderBy("charge_point_id")


def summarize_meter_values(df: DataFrame, measurand: str = "Power.Active.Import") -> DataFrame:
    """
    Aggregate unpacked meter readings of one measurand per transaction.

    Args:
        df: Output of unpack_meter_values_request
        measurand: OCPP measurand to keep

    Returns:
        charge_point_id, transaction_id, reading_count, avg_value,
        max_value, first_reading_at, last_reading_at
    """
    require_columns(df, ["charge_point_id", "transaction_id", "measurand", "value", "reading_timestamp"],
                    "summarize_meter_values")
    return df \
        .filter(col("measurand") == measurand) \
        .groupBy("charge_point_id", "transaction_id") \
        .agg(
            count("value").alias("reading_count"),
            spark_round(avg("value"), 3).alias("avg_value"),
            spark_max("value").alias("max_value"),
            spark_min("reading_timestamp").alias("first_reading_at"),
            spark_max("reading_timestamp").alias("last_reading_at")
        ) \
        .orderBy("charge_point_id", "transaction_id")
