"""Unit tests for logging setup and the stage logger."""

import logging

from report_insights.config import get_settings
from report_insights.infrastructure.logging.colored_logger import Stage, StageLogger
from report_insights.infrastructure.logging.log_config import _parse_level, setup_logging


def test_parse_level_defaults_to_info():
    assert _parse_level("debug") == logging.DEBUG
    assert _parse_level("WARNING") == logging.WARNING
    assert _parse_level("verbose") == logging.INFO


def test_setup_logging_applies_category_levels():
    setup_logging()
    settings = get_settings()

    assert logging.getLogger("httpx").level == _parse_level(settings.log_level_http)
    assert logging.getLogger("AnalysisEngine").level == _parse_level(settings.log_level_engine)


def test_stage_logger_includes_label_and_details(caplog):
    log = StageLogger("test.stage")

    with caplog.at_level(logging.INFO, logger="test.stage"):
        log.step_start(Stage.REQUEST, "Analysis started", model="qwen")
        log.step_error(Stage.ERROR, "Analysis failed", error=ValueError("bad"))

    assert "[REQUEST]" in caplog.records[0].getMessage()
    assert "model=qwen" in caplog.records[0].getMessage()
    assert caplog.records[1].levelno == logging.ERROR
    assert "ValueError: bad" in caplog.records[1].getMessage()
