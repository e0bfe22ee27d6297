import json
import logging
import sys

import pytest

from motionkit.infrastructure.monitoring.logger_setup import REDACTED, JsonLinesFormatter, redact, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(**fields):
    return logging.makeLogRecord({
        "name": "motionkit.test", "levelname": "WARNING", "levelno": logging.WARNING,
        "msg": "Request to %s failed", "args": ("tasks",), "fields": fields,
    })


def test_json_formatter_emits_one_object_with_fields():
    line = JsonLinesFormatter().format(_record(endpoint="tasks", attempt=2))

    entry = json.loads(line)
    assert entry["level"] == "warning"
    assert entry["msg"] == "Request to tasks failed"
    assert entry["logger"] == "motionkit.test"
    assert entry["endpoint"] == "tasks"
    assert entry["attempt"] == 2
    assert "time" in entry
    assert "\n" not in line


def test_json_formatter_redacts_sensitive_keys_at_any_depth():
    line = JsonLinesFormatter().format(
        _record(apiKey="k", headers={"Authorization": "Bearer x", "accept": "json"}, items=[{"password": "p"}])
    )

    entry = json.loads(line)
    assert entry["apiKey"] == REDACTED
    assert entry["headers"] == {"Authorization": REDACTED, "accept": "json"}
    assert entry["items"] == [{"password": REDACTED}]


def test_fields_cannot_override_core_keys():
    entry = json.loads(JsonLinesFormatter().format(_record(msg="spoofed", level="debug")))
    assert entry["msg"] == "Request to tasks failed"
    assert entry["level"] == "warning"


def test_redact_leaves_plain_values_alone():
    assert redact({"nextCursor": "abc", "count": 3}) == {"nextCursor": "abc", "count": 3}
    assert redact("token") == "token"


def test_setup_logging_json_to_stderr(restore_root_logger):
    setup_logging(log_level=logging.DEBUG)

    handlers = restore_root_logger.handlers
    assert len(handlers) == 1
    assert handlers[0].stream is sys.stderr
    assert isinstance(handlers[0].formatter, JsonLinesFormatter)
    assert restore_root_logger.level == logging.DEBUG


def test_setup_logging_text_mode_with_file(restore_root_logger, tmp_path):
    log_file = tmp_path / "motionkit.log"

    setup_logging(log_level=logging.INFO, log_file=str(log_file), json_lines=False)
    logging.getLogger("motionkit.test").info("written to file")
    for handler in restore_root_logger.handlers:
        handler.flush()

    assert len(restore_root_logger.handlers) == 2
    assert "written to file" in log_file.read_text()
