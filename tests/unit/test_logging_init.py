from __future__ import annotations

import logging
from io import StringIO

from attr_import.logging.init import (
    APP_LOGGER_NAME,
    LabeledFormatter,
    get_logger,
    log_summary,
    reset_logging,
    set_debug,
    setup_logging,
)


def _capturing_logger(name: str) -> tuple[logging.Logger, StringIO]:
    captured_output = StringIO()
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logging.addLevelName(25, "SUMMARY")
    handler = logging.StreamHandler(captured_output)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger, captured_output


def test_setup_logging_creates_logger_with_labeled_formatter():
    reset_logging()
    logger = setup_logging()

    assert logger.name == APP_LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_logging_labeled_prefixes():
    """INFO|WARN|ERROR|SUMMARY|DEBUG prefixes."""
    logger, captured_output = _capturing_logger("test_attr_import_labels")

    logger.debug("Test debug message")
    logger.info("Test info message")
    logger.warning("Test warning message")
    logger.error("Test error message")
    logger.log(25, "Test summary message")

    lines = captured_output.getvalue().strip().split('\n')
    assert lines == [
        "DEBUG Test debug message",
        "INFO Test info message",
        "WARN Test warning message",
        "ERROR Test error message",
        "SUMMARY Test summary message",
    ]


def test_setup_logging_idempotent():
    reset_logging()
    logger1 = setup_logging()
    logger2 = setup_logging()

    assert logger1 is logger2
    assert get_logger() is logger1
    assert len(logger1.handlers) == 1


def test_service_loggers_inherit_app_handler(capsys):
    """Child loggers (logging.getLogger(__name__)) print through the app handler."""
    reset_logging()
    setup_logging()
    logging.getLogger("attr_import.services.orchestrator").warning("from a service")

    assert "WARN from a service" in capsys.readouterr().out


def test_set_debug_lowers_levels():
    reset_logging()
    logger = setup_logging()
    set_debug(logger)
    try:
        assert logger.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in logger.handlers)
    finally:
        reset_logging()


def test_log_summary_convenience_function(capsys):
    reset_logging()
    setup_logging()
    log_summary("type=attribute behavior=add rows=1 added=1 updated=0 deleted=0 skipped=0 errors=0 elapsed_sec=0.1")

    lines = capsys.readouterr().out.strip().split('\n')
    assert lines[-1] == (
        "SUMMARY type=attribute behavior=add rows=1 added=1 updated=0 deleted=0 skipped=0 errors=0 elapsed_sec=0.1"
    )
