import json
import logging
import sys

from app.core.logging import JsonFormatter, configure_logging


def _record(logger_name="app.services.users", msg="User created", exc_info=None, **extra):
    logger = logging.getLogger(logger_name)
    return logger.makeRecord(logger_name, logging.INFO, __file__, 1, msg, (), exc_info, extra=extra)


def test_json_formatter_emits_single_object_with_extras():
    line = JsonFormatter().format(_record(user_id=7, email="a@b.com"))

    payload = json.loads(line)
    assert payload["level"] == "info"
    assert payload["logger"] == "app.services.users"
    assert payload["message"] == "User created"
    assert payload["user_id"] == 7
    assert payload["email"] == "a@b.com"
    assert "timestamp" in payload
    assert "thread" in payload
    assert "stack" not in payload
    assert "\n" not in line


def test_json_formatter_includes_stack_for_exceptions():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record(msg="failed", exc_info=sys.exc_info())

    payload = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in payload["stack"]


def test_configure_logging_replaces_its_own_handler():
    root = logging.getLogger()
    before = [h for h in root.handlers if not getattr(h, "_user_service_handler", False)]

    configure_logging("debug", json_output=True)
    configure_logging("warning", json_output=False)

    ours = [h for h in root.handlers if getattr(h, "_user_service_handler", False)]
    assert len(ours) == 1
    assert not isinstance(ours[0].formatter, JsonFormatter)
    assert root.level == logging.WARNING
    assert [h for h in root.handlers if not getattr(h, "_user_service_handler", False)] == before
