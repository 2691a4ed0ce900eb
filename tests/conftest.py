import os
import time
from pathlib import Path

import pytest

# Python-side timestamps collected from Spark use the process timezone;
# pin it so expectations written in UTC hold on any machine.
os.environ["TZ"] = "UTC"
if hasattr(time, "tzset"):
    time.tzset()

from tests.spark_test_case import create_test_spark_session  # noqa: E402


DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture(scope="session")
def spark():
    """Local Spark shared by all pytest-style tests"""
    session = create_test_spark_session()
    yield session
    session.stop()


@pytest.fixture(scope="session")
def messages_path() -> Path:
    return DATA_DIR / "ocpp_messages.jsonl"
