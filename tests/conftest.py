# conftest.py
from __future__ import annotations

import os
import uuid
from types import SimpleNamespace

import pytest

from sqsstream.core.log import bind_context, configure_from_env, enable_stdout_logging, get_logger, log_context
from sqsstream.core.time import ManualClock
from tests.helpers import InMemS3, InMemSqs

QUEUE = "orders"
BUCKET = "orders-overflow"


def pytest_addoption(parser):
    parser.addoption(
        "--log-json",
        action="store_true",
        default=False,
        help="Emit sqsstream logs in JSON format during tests",
    )


@pytest.fixture(scope="session", autouse=True)
def _configure_logging(request):
    configure_from_env()
    prefer_json = request.config.getoption("--log-json")
    if os.getenv("SQSSTREAM_LOG_STDOUT", "").lower() not in ("1", "true", "yes", "on"):
        enable_stdout_logging(
            level="DEBUG",
            json_output=prefer_json,
            pretty=not prefer_json,
            route_errors_to_stderr=True,
        )
    bind_context(role="pytest")


@pytest.fixture(scope="session")
def session_run_id():
    return uuid.uuid4().hex[:8]


@pytest.fixture(autouse=True)
def _test_log_context(request, session_run_id):
    log = get_logger("test")
    with log_context(pytest_nodeid=request.node.nodeid, test_run=session_run_id):
        log.debug("pytest.test.start", event="pytest.test.start")
        yield


@pytest.fixture
def aws():
    """SQS and S3 fakes sharing one event log, with the test queue created."""
    events: list[tuple] = []
    sqs = InMemSqs(events)
    s3 = InMemS3(events)
    sqs.create_queue(QUEUE)
    return SimpleNamespace(sqs=sqs, s3=s3, events=events, queue=QUEUE, bucket=BUCKET, url=sqs.url(QUEUE))


@pytest.fixture
def clock():
    return ManualClock(start_ms=1_700_000_000_000)
