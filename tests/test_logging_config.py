# tests/test_logging_config.py

import json
import logging

from identity.utils.logging_config import (
    JSONFormatter,
    LogAggregator,
    log_context,
    mask,
    setup_logging,
)


def test_mask_shortens_identities():
    assert mask("someone@example.com") == "someo..."
    assert mask(None) == ""


def test_log_context_is_restored():
    logger = setup_logging("identity_test_context", log_format="text")
    with log_context(logger, destination="abc"):
        assert logger._context == {"destination": "abc"}
        with log_context(logger, code_id=1):
            assert logger._context == {"destination": "abc", "code_id": 1}
        assert logger._context == {"destination": "abc"}
    assert logger._context == {}


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("identity", logging.INFO, __file__, 1, "Issued", (), None)
    record.code_id = 7
    record.service = "identity_test"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "Issued"
    assert payload["code_id"] == 7
    assert payload["service"] == "identity_test"


def test_context_reaches_records():
    logger = setup_logging("identity_test_records", log_format="json")
    captured = []

    class Collector(logging.Handler):
        def emit(self, record):
            captured.append(record)

    logger.addHandler(Collector())
    with log_context(logger, destination="a@x.c..."):
        logger.info("hello")

    assert captured[0].destination == "a@x.c..."
    assert captured[0].service == "identity_test_records"


def test_log_aggregator_summary():
    logger = setup_logging("identity_test_aggregator", log_format="text")
    captured = []

    class Collector(logging.Handler):
        def emit(self, record):
            captured.append(record)

    logger.addHandler(Collector())
    aggregator = LogAggregator(logger, "Contact reconciliation")
    aggregator.increment("registered")
    aggregator.increment("registered")
    aggregator.increment("ambiguous")
    aggregator.log_summary()

    assert captured[0].getMessage() == "Contact reconciliation completed"
    assert captured[0].registered == 2
    assert captured[0].duration_seconds >= 0
    assert not hasattr(captured[0], "failed_items")
    assert captured[0].ambiguous == 1


def test_record_timestamp_is_timezone_aware():
    logger = setup_logging("identity_test_timestamp", log_format="json")
    captured = []

    class Collector(logging.Handler):
        def emit(self, record):
            captured.append(record)

    logger.addHandler(Collector())
    logger.info("hello")

    assert captured[0].timestamp.endswith("+00:00")
