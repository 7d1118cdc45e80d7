"""Tests for logging configuration."""

import io
import json
import logging

import pytest

from storefront.logging_setup import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_records_carry_service(restore_root_logger):
    stream = io.StringIO()
    setup_logging("checkout-service", "INFO", "json", environment="staging", stream=stream)

    logging.getLogger("storefront.checkout").warning("Checkout rejected for user u-1")

    record = json.loads(stream.getvalue().splitlines()[-1])
    assert record["message"] == "Checkout rejected for user u-1"
    assert record["level"] == "WARNING"
    assert record["logger"] == "storefront.checkout"
    assert record["service"] == "checkout-service"
    assert record["environment"] == "staging"


def test_text_format(restore_root_logger):
    stream = io.StringIO()
    setup_logging("checkout-service", "DEBUG", "text", stream=stream)

    logging.getLogger("storefront.orders").debug("Listing orders")

    assert stream.getvalue().splitlines()[-1].endswith("storefront.orders - DEBUG - Listing orders")


def test_unknown_level(restore_root_logger):
    with pytest.raises(ValueError):
        setup_logging("checkout-service", "LOUD")
