"""
Unit tests for the OCPP transformations.

Each test feeds one transformation a handful of mocked rows and checks its
output in isolation.
"""

import unittest
from datetime import datetime

from pyspark.testing import assertDataFrameEqual

from chargepoint_pipeline.errors import SchemaValidationError
from chargepoint_pipeline.processing.transformations import (
    START_TRANSACTION_COLUMNS,
    filter_by_action_and_message_type,
    filter_by_start_transaction_and_request,
    filter_by_start_transaction_and_response,
    filter_by_stop_transaction_and_request,
    filter_by_meter_values_and_request,
    deduplicate_messages,
    convert_timestamp,
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
    summarize_by_charge_point,
    summarize_meter_values,
)
from tests.spark_test_case import (
    SparkTestCase,
    message,
    start_transaction_request,
    start_transaction_response,
    stop_transaction_request,
    meter_values_request,
)


class AnsiModeMixin:
    """Run a test with spark.sql.ansi.enabled=true, restoring the previous value."""

    def enable_ansi_mode(self):
        previous = self.spark.conf.get("spark.sql.ansi.enabled")
        self.spark.conf.set("spark.sql.ansi.enabled", "true")
        self.addCleanup(self.spark.conf.set, "spark.sql.ansi.enabled", previous)


SESSION_SCHEMA = (
    "charge_point_id string, transaction_id int, id_tag_status string, "
    "meter_start int, meter_stop int, start_timestamp timestamp, stop_timestamp timestamp"
)


class TestFilters(SparkTestCase):
    """Test cases for action / message type filters"""

    def setUp(self):
        self.mixed = self.create_messages([
            start_transaction_request("m-1", 1000, "2023-01-01T08:00:00+00:00"),
            start_transaction_response("m-1", transaction_id=1),
            stop_transaction_request("m-2", 1, 5000, "2023-01-01T09:00:00+00:00"),
            meter_values_request("m-3", 1, [{
                "timestamp": "2023-01-01T08:30:00+00:00",
                "sampled_value": [{"value": "11.0", "measurand": "Power.Active.Import"}]
            }]),
            message("m-4", 2, "Heartbeat", {}),
        ])

    def test_filter_by_start_transaction_and_request_unit(self):
        """Only StartTransaction requests survive, columns untouched"""
        expected = self.create_messages([
            start_transaction_request("m-1", 1000, "2023-01-01T08:00:00+00:00"),
        ])

        result = self.mixed.transform(filter_by_start_transaction_and_request)

        self.assertEqual(result.columns, self.mixed.columns)
        assertDataFrameEqual(result, expected)

    def test_filter_by_start_transaction_and_response(self):
        rows = self.mixed.transform(filter_by_start_transaction_and_response).collect()

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["message_type"], 3)
        self.assertEqual(rows[0]["message_id"], "m-1")

    def test_filter_by_stop_transaction_and_request(self):
        rows = self.mixed.transform(filter_by_stop_transaction_and_request).collect()
        self.assertEqual([r["message_id"] for r in rows], ["m-2"])

    def test_filter_by_meter_values_and_request(self):
        rows = self.mixed.transform(filter_by_meter_values_and_request).collect()
        self.assertEqual([r["message_id"] for r in rows], ["m-3"])

    def test_generic_filter_with_keyword_arguments(self):
        result = self.mixed.transform(
            filter_by_action_and_message_type, action="Heartbeat", message_type=2
        )
        self.assertEqual([r["message_id"] for r in result.collect()], ["m-4"])

    def test_no_match_returns_empty_frame_with_same_schema(self):
        result = self.mixed.transform(
            filter_by_action_and_message_type, action="Authorize", message_type=2
        )
        self.assertEqual(result.count(), 0)
        self.assertEqual(result.schema, self.mixed.schema)

    def test_missing_column_raises_schema_validation_error(self):
        without_action = self.mixed.drop("action")

        with self.assertRaises(SchemaValidationError) as ctx:
            filter_by_start_transaction_and_request(without_action)

        self.assertEqual(ctx.exception.missing_columns, ["action"])


class TestCleaning(AnsiModeMixin, SparkTestCase):
    """Test cases for deduplication and timestamp parsing"""

    def test_deduplicate_messages_keeps_one_per_id_and_type(self):
        df = self.create_messages([
            stop_transaction_request("m-1", 1, 5000, "2023-01-01T09:00:00+00:00"),
            stop_transaction_request("m-1", 1, 5000, "2023-01-01T09:00:00+00:00"),
            message("m-1", 3, "StopTransaction", {}),
            message("m-2", 2, "Heartbeat", {}),
        ])

        result = deduplicate_messages(df)

        self.assertEqual(result.count(), 3)
        pairs = sorted((r["message_id"], r["message_type"]) for r in result.collect())
        self.assertEqual(pairs, [("m-1", 2), ("m-1", 3), ("m-2", 2)])

    def test_convert_timestamp(self):
        df = self.create_messages([
            message("m-1", 2, "Heartbeat", {}, timestamp="2023-01-01T08:00:00+00:00"),
            message("m-2", 2, "Heartbeat", {}, timestamp="not-a-timestamp"),
        ])

        rows = {r["message_id"]: r["timestamp"] for r in convert_timestamp(df).collect()}

        self.assertEqual(rows["m-1"], datetime(2023, 1, 1, 8, 0, 0))
        self.assertIsNone(rows["m-2"])

    def test_convert_timestamp_under_ansi_mode(self):
        self.enable_ansi_mode()
        df = self.create_messages([
            message("m-1", 2, "Heartbeat", {}, timestamp="2023-01-01T08:00:00+00:00"),
            message("m-2", 2, "Heartbeat", {}, timestamp="not-a-timestamp"),
        ])

        rows = {r["message_id"]: r["timestamp"] for r in convert_timestamp(df).collect()}

        self.assertEqual(rows["m-1"], datetime(2023, 1, 1, 8, 0, 0))
        self.assertIsNone(rows["m-2"])

    def test_convert_timestamp_custom_column(self):
        df = self.spark.createDataFrame([("2023-06-01T12:30:00Z",)], "sent_at string")
        row = convert_timestamp(df, column="sent_at").collect()[0]
        self.assertEqual(row["sent_at"], datetime(2023, 6, 1, 12, 30, 0))


class TestUnpacking(AnsiModeMixin, SparkTestCase):
    """Test cases for JSON body unpacking"""

    def test_unpack_start_transaction_request(self):
        df = self.create_messages([
            start_transaction_request("m-1", 1000, "2023-01-01T08:00:00+00:00",
                                      connector_id=2, id_tag="TAG-B"),
        ])

        result = unpack_start_transaction_request(df)
        row = result.collect()[0]

        self.assertEqual(result.columns, [
            "message_id", "charge_point_id", "connector_id", "id_tag",
            "meter_start", "start_timestamp", "reservation_id"
        ])
        self.assertEqual(row["connector_id"], 2)
        self.assertEqual(row["id_tag"], "TAG-B")
        self.assertEqual(row["meter_start"], 1000)
        self.assertEqual(row["start_timestamp"], datetime(2023, 1, 1, 8, 0, 0))
        self.assertIsNone(row["reservation_id"])

    def test_unpack_start_transaction_response(self):
        df = self.create_messages([
            start_transaction_response("m-1", transaction_id=42, status="Blocked"),
        ])

        row = unpack_start_transaction_response(df).collect()[0]

        self.assertEqual(row["message_id"], "m-1")
        self.assertEqual(row["transaction_id"], 42)
        self.assertEqual(row["id_tag_status"], "Blocked")
        self.assertIsNone(row["parent_id_tag"])
        self.assertEqual(row["expiry_date"], datetime(2023, 12, 31, 23, 59, 59))

    def test_unpack_stop_transaction_request(self):
        df = self.create_messages([
            stop_transaction_request("m-9", 7, 23000, "2023-01-01T10:00:00+00:00", reason="EVDisconnected"),
        ])

        row = unpack_stop_transaction_request(df).collect()[0]

        self.assertEqual(row["transaction_id"], 7)
        self.assertEqual(row["meter_stop"], 23000)
        self.assertEqual(row["stop_timestamp"], datetime(2023, 1, 1, 10, 0, 0))
        self.assertEqual(row["reason"], "EVDisconnected")
        self.assertEqual(row["stop_id_tag"], "TAG-A")

    def test_malformed_body_unpacks_to_nulls(self):
        df = self.create_messages([
            message("m-1", 2, "StartTransaction", "{not json"),
        ])

        row = unpack_start_transaction_request(df).collect()[0]

        self.assertEqual(row["message_id"], "m-1")
        self.assertIsNone(row["meter_start"])
        self.assertIsNone(row["start_timestamp"])

    def test_unpack_meter_values_request(self):
        df = self.create_messages([
            meter_values_request("m-1", 5, [
                {
                    "timestamp": "2023-01-01T08:30:00+00:00",
                    "sampled_value": [
                        {"value": "7000", "unit": "Wh"},
                        {"value": "11.5", "measurand": "Power.Active.Import", "unit": "kW", "phase": "L1"},
                    ]
                },
                {
                    "timestamp": "2023-01-01T08:45:00+00:00",
                    "sampled_value": [
                        {"value": "bogus", "measurand": "Power.Active.Import", "unit": "kW"},
                    ]
                },
                {"timestamp": "2023-01-01T09:00:00+00:00", "sampled_value": []},
            ]),
        ])

        result = unpack_meter_values_request(df)
        rows = result.orderBy("reading_timestamp", "measurand").collect()

        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[0]["measurand"], "Energy.Active.Import.Register")
        self.assertEqual(rows[0]["value"], 7000.0)
        self.assertEqual(rows[1]["measurand"], "Power.Active.Import")
        self.assertEqual(rows[1]["value"], 11.5)
        self.assertEqual(rows[1]["phase"], "L1")
        self.assertEqual(rows[1]["transaction_id"], 5)
        self.assertEqual(rows[2]["reading_timestamp"], datetime(2023, 1, 1, 8, 45, 0))
        self.assertIsNone(rows[2]["value"])


    def test_bad_meter_values_under_ansi_mode(self):
        self.enable_ansi_mode()
        df = self.create_messages([
            meter_values_request("m-1", 5, [
                {
                    "timestamp": "yesterday",
                    "sampled_value": [{"value": "bogus", "measurand": "Power.Active.Import"}]
                },
            ]),
            stop_transaction_request("m-2", 5, 900, "soon"),
        ])

        reading = unpack_meter_values_request(df.filter("action = 'MeterValues'")).collect()[0]
        stop = unpack_stop_transaction_request(df.filter("action = 'StopTransaction'")).collect()[0]

        self.assertIsNone(reading["reading_timestamp"])
        self.assertIsNone(reading["value"])
        self.assertIsNone(stop["stop_timestamp"])
        self.assertEqual(stop["meter_stop"], 900)


class TestJoins(SparkTestCase):
    """Test cases for request/response and start/stop joins"""

    def _requests(self, *rows):
        return unpack_start_transaction_request(self.create_messages(list(rows)))

    def _responses(self, *rows):
        return unpack_start_transaction_response(self.create_messages(list(rows)))

    def test_join_start_request_with_response(self):
        requests = self._requests(
            start_transaction_request("m-1", 1000, "2023-01-01T08:00:00+00:00"),
            start_transaction_request("m-2", 2000, "2023-01-01T09:00:00+00:00"),
        )
        responses = self._responses(start_transaction_response("m-1", transaction_id=11))

        result = requests.transform(join_start_request_with_response, responses=responses)
        rows = result.collect()

        self.assertEqual(result.columns, START_TRANSACTION_COLUMNS)
        self.assertNotIn("message_id", result.columns)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["transaction_id"], 11)
        self.assertEqual(rows[0]["meter_start"], 1000)
        self.assertEqual(rows[0]["id_tag_status"], "Accepted")

    def test_join_requires_matching_charge_point(self):
        requests = self._requests(
            start_transaction_request("m-1", 1000, "2023-01-01T08:00:00+00:00", charge_point_id="CP-001"),
        )
        responses = self._responses(
            start_transaction_response("m-1", transaction_id=11, charge_point_id="CP-002"),
        )

        result = join_start_request_with_response(requests, responses)

        self.assertEqual(result.count(), 0)

    def test_join_with_stop_transaction_drops_unstopped(self):
        requests = self._requests(
            start_transaction_request("m-1", 1000, "2023-01-01T08:00:00+00:00"),
            start_transaction_request("m-2", 2000, "2023-01-01T09:00:00+00:00"),
        )
        responses = self._responses(
            start_transaction_response("m-1", transaction_id=11),
            start_transaction_response("m-2", transaction_id=12),
        )
        starts = join_start_request_with_response(requests, responses)
        stops = unpack_stop_transaction_request(self.create_messages([
            stop_transaction_request("m-3", 11, 9000, "2023-01-01T10:00:00+00:00"),
        ]))

        result = starts.transform(join_with_stop_transaction, stops=stops)
        rows = result.collect()

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["transaction_id"], 11)
        self.assertEqual(rows[0]["meter_stop"], 9000)
        self.assertEqual(rows[0]["stop_timestamp"], datetime(2023, 1, 1, 10, 0, 0))
        self.assertEqual(result.columns[:len(START_TRANSACTION_COLUMNS)], START_TRANSACTION_COLUMNS)

    def test_join_with_stop_transaction_validates_stops(self):
        starts = self.spark.createDataFrame([("CP-001", 1)], "charge_point_id string, transaction_id int")
        stops = self.spark.createDataFrame([("CP-001", 1)], "charge_point_id string, transaction_id int")

        with self.assertRaises(SchemaValidationError) as ctx:
            join_with_stop_transaction(starts, stops)

        self.assertIn("meter_stop", ctx.exception.missing_columns)


class TestSessionMetrics(SparkTestCase):
    """Test cases for session level calculations"""

    def _sessions(self, rows):
        return self.spark.createDataFrame(rows, SESSION_SCHEMA)

    def test_filter_accepted_transactions(self):
        df = self._sessions([
            ("CP-001", 1, "Accepted", 0, 1000, datetime(2023, 1, 1, 8), datetime(2023, 1, 1, 9)),
            ("CP-001", 2, "Blocked", 0, 1000, datetime(2023, 1, 1, 8), datetime(2023, 1, 1, 9)),
            ("CP-001", 3, None, 0, 1000, datetime(2023, 1, 1, 8), datetime(2023, 1, 1, 9)),
        ])

        result = filter_accepted_transactions(df)

        self.assertEqual([r["transaction_id"] for r in result.collect()], [1])

    def test_calculate_charging_duration(self):
        df = self._sessions([
            ("CP-001", 1, "Accepted", 0, 1000, datetime(2023, 1, 1, 8, 0), datetime(2023, 1, 1, 9, 30)),
            ("CP-001", 2, "Accepted", 0, 1000, datetime(2023, 1, 1, 8, 0), datetime(2023, 1, 1, 8, 0, 20)),
        ])

        rows = {r["transaction_id"]: r for r in calculate_charging_duration(df).collect()}

        self.assertEqual(rows[1]["duration_minutes"], 90.0)
        self.assertEqual(rows[1]["duration_hours"], 1.5)
        self.assertEqual(rows[2]["duration_minutes"], 0.33)
        self.assertEqual(rows[2]["duration_hours"], 0.0056)

    def test_calculate_energy_consumed(self):
        df = self._sessions([
            ("CP-001", 1, "Accepted", 1000, 23000, datetime(2023, 1, 1, 8), datetime(2023, 1, 1, 10)),
            ("CP-001", 2, "Accepted", 1000, 1234, datetime(2023, 1, 1, 8), datetime(2023, 1, 1, 10)),
        ])

        rows = {r["transaction_id"]: r["energy_kwh"] for r in calculate_energy_consumed(df).collect()}

        self.assertEqual(rows[1], 22.0)
        self.assertEqual(rows[2], 0.234)

    def test_filter_valid_sessions(self):
        df = self._sessions([
            ("CP-001", 1, "Accepted", 1000, 2000, datetime(2023, 1, 1, 8), datetime(2023, 1, 1, 9)),
            ("CP-001", 2, "Accepted", 1000, 2000, datetime(2023, 1, 1, 9), datetime(2023, 1, 1, 8)),
            ("CP-001", 3, "Accepted", 3000, 2000, datetime(2023, 1, 1, 8), datetime(2023, 1, 1, 9)),
            ("CP-001", 4, "Accepted", 1000, 1000, datetime(2023, 1, 1, 8), datetime(2023, 1, 1, 8)),
        ])

        result = filter_valid_sessions(df)

        self.assertEqual([r["transaction_id"] for r in result.collect()], [1])

    def test_calculate_average_power(self):
        df = self._sessions([
            ("CP-001", 1, "Accepted", 1000, 23000, datetime(2023, 1, 1, 8), datetime(2023, 1, 1, 10)),
            ("CP-001", 2, "Accepted", 1000, 1000, datetime(2023, 1, 1, 8), datetime(2023, 1, 1, 8)),
        ])

        result = df.transform(calculate_energy_consumed).transform(calculate_average_power)
        rows = {r["transaction_id"]: r["average_power_kw"] for r in result.collect()}

        self.assertEqual(rows[1], 11.0)
        self.assertIsNone(rows[2])

    def test_summarize_by_charge_point(self):
        df = self.spark.createDataFrame([
            ("CP-001", 22.0, 2.0),
            ("CP-001", 7.5, 0.75),
            ("CP-002", 10.5, 1.5),
        ], "charge_point_id string, energy_kwh double, duration_hours double")

        rows = summarize_by_charge_point(df).collect()

        self.assertEqual([r["charge_point_id"] for r in rows], ["CP-001", "CP-002"])
        self.assertEqual(rows[0]["session_count"], 2)
        self.assertEqual(rows[0]["total_energy_kwh"], 29.5)
        self.assertEqual(rows[0]["total_duration_hours"], 2.75)
        self.assertEqual(rows[0]["avg_energy_kwh"], 14.75)
        self.assertEqual(rows[0]["max_energy_kwh"], 22.0)
        self.assertEqual(rows[1]["session_count"], 1)

    def test_summarize_meter_values(self):
        df = self.spark.createDataFrame([
            ("CP-001", 1, "Power.Active.Import", 11.0, datetime(2023, 1, 1, 8, 30)),
            ("CP-001", 1, "Power.Active.Import", 12.0, datetime(2023, 1, 1, 9, 0)),
            ("CP-001", 1, "Energy.Active.Import.Register", 7000.0, datetime(2023, 1, 1, 8, 30)),
            ("CP-002", 3, "Power.Active.Import", None, datetime(2023, 1, 1, 10, 0)),
        ], "charge_point_id string, transaction_id int, measurand string, value double, "
           "reading_timestamp timestamp")

        rows = summarize_meter_values(df).collect()

        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]["reading_count"], 2)
        self.assertEqual(rows[0]["avg_value"], 11.5)
        self.assertEqual(rows[0]["max_value"], 12.0)
        self.assertEqual(rows[0]["first_reading_at"], datetime(2023, 1, 1, 8, 30))
        self.assertEqual(rows[0]["last_reading_at"], datetime(2023, 1, 1, 9, 0))
        self.assertEqual(rows[1]["reading_count"], 0)

    def test_summarize_meter_values_other_measurand(self):
        df = self.spark.createDataFrame([
            ("CP-001", 1, "Energy.Active.Import.Register", 7000.0, datetime(2023, 1, 1, 8, 30)),
        ], "charge_point_id string, transaction_id int, measurand string, value double, "
           "reading_timestamp timestamp")

        rows = summarize_meter_values(df, measurand="Energy.Active.Import.Register").collect()

        self.assertEqual(rows[0]["max_value"], 7000.0)


if __name__ == '__main__':
    unittest.main()
