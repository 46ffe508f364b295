import logging

import pytest

from repairshop.core.config import Settings
from repairshop.core.logging import (
    APP_LOGGER,
    build_logging_config,
    configure_logging,
    init_tracer,
    parse_otlp_headers,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, {}),
        ("", {}),
        ("api-key=abc", {"api-key": "abc"}),
        ("a=1, b = 2,broken,=x", {"a": "1", "b": "2"}),
        ("token=a=b", {"token": "a=b"}),
    ],
)
def test_parse_otlp_headers(raw, expected):
    assert parse_otlp_headers(raw) == expected


def test_logging_config_quiets_asyncpg_below_info():
    config = build_logging_config(Settings(log_level="debug"))

    assert config["root"]["level"] == logging.DEBUG
    assert config["loggers"][APP_LOGGER]["level"] == logging.DEBUG
    assert config["loggers"]["asyncpg"]["level"] == logging.INFO


def test_unknown_level_falls_back_to_info():
    config = build_logging_config(Settings(log_level="chatty"))

    assert config["root"]["level"] == logging.INFO


@pytest.fixture
def restore_levels():
    root = logging.getLogger()
    app_logger = logging.getLogger(APP_LOGGER)
    levels = (root.level, app_logger.level)
    yield
    root.setLevel(levels[0])
    app_logger.setLevel(levels[1])


def test_configure_logging_returns_app_logger(restore_levels):
    logger = configure_logging(Settings(log_level="WARNING"))

    assert logger.name == APP_LOGGER
    assert logger.getEffectiveLevel() == logging.WARNING


def test_tracer_disabled_by_default():
    assert init_tracer(Settings()) is None
