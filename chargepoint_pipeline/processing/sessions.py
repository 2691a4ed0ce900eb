"""
Charging session chains built from the single-purpose transformations.
"""

from pyspark.sql import DataFrame

from chargepoint_pipeline.processing.pipeline import TransformationPipeline
from chargepoint_pipeline.processing.transformations import (
    deduplicate_messages,
    filter_by_start_transaction_and_request,
    filter_by_start_transaction_and_response,
    filter_by_stop_transaction_and_request,
    filter_by_meter_values_and_request,
    unpack_start_transaction_request,
    unpack_start_transaction_response,
    unpack_stop_transaction_request,
    unpack_meter_values_request,
    join_start_request_with_response,
    join_with_stop_transaction,
    filter_accepted_transactions,
    calculate_charging_duration,
    calculate_energy_consumed,
    filter_valid_sessions,
    calculate_average_power,
)


def start_transaction_responses_pipeline(track_row_counts: bool = False) -> TransformationPipeline:
    return TransformationPipeline("start_transaction_responses", track_row_counts) \
        .add_step("deduplicate_messages", deduplicate_messages) \
        .add_step("filter_by_start_transaction_and_response", filter_by_start_transaction_and_response) \
        .add_step("unpack_start_transaction_response", unpack_start_transaction_response)


def start_transactions_pipeline(responses: DataFrame, track_row_counts: bool = False) -> TransformationPipeline:
    """StartTransaction requests joined with their (already unpacked) responses."""
    return TransformationPipeline("start_transactions", track_row_counts) \
        .add_step("deduplicate_messages", deduplicate_messages) \
        .add_step("filter_by_start_transaction_and_request", filter_by_start_transaction_and_request) \
        .add_step("unpack_start_transaction_request", unpack_start_transaction_request) \
        .add_step("join_start_request_with_response", join_start_request_with_response,
                  responses=responses)


def stop_transactions_pipeline(track_row_counts: bool = False) -> TransformationPipeline:
    return TransformationPipeline("stop_transactions", track_row_counts) \
        .add_step("deduplicate_messages", deduplicate_messages) \
        .add_step("filter_by_stop_transaction_and_request", filter_by_stop_transaction_and_request) \
        .add_step("unpack_stop_transaction_request", unpack_stop_transaction_request)


def charging_sessions_pipeline(stops: DataFrame, track_row_counts: bool = False) -> TransformationPipeline:
    """Started transactions to finished, measured charging sessions."""
    return TransformationPipeline("charging_sessions", track_row_counts) \
        .add_step("join_with_stop_transaction", join_with_stop_transaction, stops=stops) \
        .add_step("filter_accepted_transactions", filter_accepted_transactions) \
        .add_step("calculate_charging_duration", calculate_charging_duration) \
        .add_step("calculate_energy_consumed", calculate_energy_consumed) \
        .add_step("filter_valid_sessions", filter_valid_sessions) \
        .add_step("calculate_average_power", calculate_average_power)


def meter_values_pipeline(track_row_counts: bool = False) -> TransformationPipeline:
    return TransformationPipeline("meter_values", track_row_counts) \
        .add_step("deduplicate_messages", deduplicate_messages) \
        .add_step("filter_by_meter_values_and_request", filter_by_meter_values_and_request) \
        .add_step("unpack_meter_values_request", unpack_meter_values_request)


def build_start_transactions(raw: DataFrame, track_row_counts: bool = False) -> DataFrame:
    responses = start_transaction_responses_pipeline(track_row_counts).run(raw)
    return start_transactions_pipeline(responses, track_row_counts).run(raw)


def build_stop_transactions(raw: DataFrame, track_row_counts: bool = False) -> DataFrame:
    return stop_transactions_pipeline(track_row_counts).run(raw)


def build_charging_sessions(raw: DataFrame, track_row_counts: bool = False) -> DataFrame:
    """
    Full chain from raw OCPP messages to one row per completed, accepted
    charging session with duration, energy and average power.
    """
    starts = build_start_transactions(raw, track_row_counts)
    stops = build_stop_transactions(raw, track_row_counts)
    return charging_sessions_pipeline(stops, track_row_counts).run(starts)


def build_meter_values(raw: DataFrame, track_row_counts: bool = False) -> DataFrame:
    return meter_values_pipeline(track_row_counts).run(raw)
