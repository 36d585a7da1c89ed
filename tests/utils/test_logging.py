import logging

import pytest

from emberorm.utils.logging import get_correlation_id, get_logger, set_correlation_id, time_call


def test_correlation_id_round_trip():
    token = set_correlation_id("test-token")
    assert token == "test-token"
    assert get_correlation_id() == "test-token"


def test_loggers_live_under_package_root():
    assert get_logger("persistence.session").name == "emberorm.persistence.session"


def test_time_call_logs_duration(caplog):
    logger = get_logger("tests.logging")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with time_call("unit-test", logger, threshold_ms=0):
        pass
    messages = [record.message for record in caplog.records if record.name == logger.name]
    assert any("unit-test took" in message for message in messages)


def test_time_call_reports_failure_and_reraises(caplog):
    logger = get_logger("tests.logging")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with pytest.raises(RuntimeError):
        with time_call("failing-step", logger, threshold_ms=10_000):
            raise RuntimeError("boom")
    records = [record for record in caplog.records if record.name == logger.name]
    assert any("failing-step failed after" in record.message for record in records)
    assert all(record.levelno == logging.DEBUG for record in records)
