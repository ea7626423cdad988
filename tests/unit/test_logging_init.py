from __future__ import annotations

import logging
from io import StringIO

from sheet2sql.logging.init import (
    APP_LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    set_debug,
    setup_logging,
)


def test_setup_logging_configures_app_logger():
    logger = setup_logging()
    assert logger.name == APP_LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_idempotent():
    logger1 = setup_logging()
    logger2 = setup_logging()
    assert logger1 is logger2
    assert len(logger1.handlers) == 1
    assert get_logger() is logger1


def test_labeled_prefixes():
    out = StringIO()
    logger = logging.getLogger("test_sheet2sql_labels")
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    handler = logging.StreamHandler(out)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger.info("reading book.xlsx")
    logger.warning("lookup x: 2 duplicate key(s)")
    logger.error("config: broken")
    logger.log(SUMMARY_LEVEL, "sheets=1")

    assert out.getvalue().splitlines() == [
        "INFO reading book.xlsx",
        "WARN lookup x: 2 duplicate key(s)",
        "ERROR config: broken",
        "SUMMARY sheets=1",
    ]


def test_module_loggers_reach_app_handler(capsys):
    setup_logging()
    logging.getLogger("sheet2sql.vlookup.engine").warning("duplicate keys")
    assert "WARN duplicate keys" in capsys.readouterr().out


def test_log_summary(capsys):
    setup_logging()
    log_summary("sheets=2 success=2 failed=0")
    assert capsys.readouterr().out == "SUMMARY sheets=2 success=2 failed=0\n"
    assert logging.getLevelName(SUMMARY_LEVEL) == "SUMMARY"


def test_set_debug_toggles_levels(capsys):
    logger = setup_logging()
    logger.debug("hidden")
    set_debug(True)
    logger.debug("shown")
    assert logger.handlers[0].level == logging.DEBUG
    set_debug(False)
    assert logger.level == logging.INFO
    out = capsys.readouterr().out
    assert "DEBUG shown" in out and "hidden" not in out
