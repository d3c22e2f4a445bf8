"""Tests for logging helpers."""

import logging

import pytest

from figurine.logging_utils import PACKAGE_LOGGER, configure_logging, log_event


@pytest.fixture(autouse=True)
def restore_package_level():
    yield
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.NOTSET)


def test_disabling_silences_module_loggers():
    configure_logging(enabled=False)

    assert not logging.getLogger("figurine.core.engine").isEnabledFor(logging.CRITICAL)

    configure_logging(enabled=True)

    assert logging.getLogger("figurine.core.engine").isEnabledFor(logging.ERROR)


def test_log_event_renders_fields_as_json(caplog):
    logger = logging.getLogger("figurine.test")

    with caplog.at_level(logging.INFO, logger="figurine.test"):
        log_event(logger, "job.submitted", job_id="abc", queue_position=3, ok=True)

    assert 'job.submitted | job_id="abc" queue_position=3 ok=true' in caplog.text
