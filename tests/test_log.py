from __future__ import annotations

import io

from loguru import logger

from combat_tracker.core.log import configure_logging


def test_configure_logging_filters_by_level() -> None:
    sink = io.StringIO()
    handler_id = configure_logging("warning", sink)
    try:
        logger.info("quiet message")
        logger.warning("loud message")
    finally:
        logger.remove(handler_id)

    output = sink.getvalue()
    assert "loud message" in output
    assert "quiet message" not in output
    assert "WARNING" in output
