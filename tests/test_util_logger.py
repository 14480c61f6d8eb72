"""
Tests for component loggers and correlation context
"""

import logging

import pytest

from util_logger import ComponentType, ContextLoggerAdapter, LoggerFactory


class CaptureHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    logger = LoggerFactory.create_logger(ComponentType.PIPELINE, "LoggerUnderTest")
    handler = CaptureHandler()
    logger.addHandler(handler)
    yield handler
    logger.removeHandler(handler)


def test_logger_is_configured_once():
    first = LoggerFactory.create_logger(ComponentType.SERVICE, "RepeatedLogger")
    wrapped = first._log

    for _ in range(50):
        again = LoggerFactory.create_logger(ComponentType.SERVICE, "RepeatedLogger")

    assert again is first
    assert again._log is wrapped
    assert len(again.handlers) == 1


def test_component_dimensions(captured):
    logger = LoggerFactory.create_logger(ComponentType.PIPELINE, "LoggerUnderTest")
    logger.info("flushed", extra={'custom_dimensions': {'batch': 3}})

    assert captured.records[-1].custom_dimensions == {
        'component_type': 'pipeline',
        'component_name': 'LoggerUnderTest',
        'batch': 3,
    }


def test_context_stays_on_its_adapter(captured):
    first = LoggerFactory.create_with_context(ComponentType.PIPELINE, "LoggerUnderTest", upload_id="a1")
    second = LoggerFactory.create_with_context(ComponentType.PIPELINE, "LoggerUnderTest", upload_id="b2")
    plain = LoggerFactory.create_logger(ComponentType.PIPELINE, "LoggerUnderTest")

    first.info("one")
    second.info("two")
    plain.info("three")

    dims = [r.custom_dimensions for r in captured.records]
    assert isinstance(first, ContextLoggerAdapter)
    assert dims[0]['upload_id'] == "a1"
    assert dims[1]['upload_id'] == "b2"
    assert 'upload_id' not in dims[2]


def test_many_context_loggers_still_log(captured):
    for i in range(2000):
        log = LoggerFactory.create_with_context(ComponentType.PIPELINE, "LoggerUnderTest", upload_id=f"u{i}")

    log.warning("still here")

    assert captured.records[-1].custom_dimensions['upload_id'] == "u1999"
