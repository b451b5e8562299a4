"""日志格式器测试"""

from __future__ import annotations

import json
import logging

from chartgate.utils.logger import JSONFormatter, reset_logging, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "chartgate.core.fetch.client", logging.INFO, __file__, 1, "就绪 %s", ("x",), None,
    )
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestJSONFormatter:
    def test_basic_fields(self) -> None:
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["message"] == "就绪 x"
        assert entry["logger"] == "chartgate.core.fetch.client"
        assert "chart" not in entry

    def test_context_fields(self) -> None:
        entry = json.loads(JSONFormatter().format(
            _record(chart="wordpress", version="0.8.7", repository="stable"),
        ))
        assert (entry["chart"], entry["version"], entry["repository"]) == (
            "wordpress", "0.8.7", "stable",
        )

    def test_exception(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys
            record = _record()
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


def test_setup_logging_is_idempotent() -> None:
    root = logging.getLogger()
    before = len(root.handlers)
    level = root.level
    try:
        setup_logging("DEBUG", json_output=True)
        setup_logging("DEBUG", json_output=True)
        assert len(root.handlers) == before + 1
        assert root.level == logging.DEBUG
    finally:
        reset_logging()
        root.setLevel(level)
    assert len(root.handlers) == before
