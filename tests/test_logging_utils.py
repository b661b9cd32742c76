import logging

import pytest

from logpipe.logging_utils import get_logger, set_global_log_level, timed


def test_loggers_are_cached_and_namespaced():
    logger = get_logger("Example")
    assert get_logger("Example") is logger
    assert logger.name == "logpipe.Example"
    assert not logger.propagate


def test_global_level_applies_to_new_loggers():
    try:
        set_global_log_level("warning")
        assert get_logger("Example").level == logging.WARNING
        assert get_logger("CreatedAfterwards").level == logging.WARNING
    finally:
        set_global_log_level(logging.INFO)


def test_unknown_level_rejected():
    with pytest.raises(ValueError):
        set_global_log_level("chatty")


def test_timed_records_elapsed_seconds():
    timings = {}
    with timed(get_logger("Example"), "retrieval", timings):
        pass
    assert list(timings) == ["retrieval_seconds"]
    assert timings["retrieval_seconds"] >= 0
