import json
import logging

from memory_ai.logging_setup import JsonLineFormatter, configure_logging


def _record(msg="hello %s", args=("world",), **extra):
    record = logging.LogRecord("memory_ai.test", logging.WARNING, __file__, 1, msg, args, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_json_line_format():
    line = JsonLineFormatter().format(_record(provider="mock", attempt=2))
    payload = json.loads(line)
    assert payload == {
        "level": "WARNING",
        "logger": "memory_ai.test",
        "msg": "hello world",
        "provider": "mock",
        "attempt": 2,
    }


def test_configure_logging_replaces_handlers():
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    try:
        configure_logging("debug")
        configure_logging("warning")
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonLineFormatter)
        assert root.level == logging.WARNING
    finally:
        root.setLevel(saved[0])
        root.handlers = saved[1]
