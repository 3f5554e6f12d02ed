import json
import logging
import uuid

import numpy as np

from koesynth.logging_utils import (
    JsonFormatter,
    LoggingContextFilter,
    build_formatter,
    clear_log_context,
    configure_logging,
    get_logger,
    log_context,
    set_log_context,
    summarize_payload,
)


def _has_file_handler(logger: logging.Logger) -> bool:
    return any(isinstance(handler, logging.FileHandler) for handler in logger.handlers)


def _record() -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test_path.py",
        lineno=12,
        msg="hello",
        args=(),
        exc_info=None,
        func="test_func",
    )


def test_get_logger_in_prod_has_no_file_handler(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("KOESYNTH_LOG_DIR", str(tmp_path))
    logger = get_logger(f"test_logger_prod_{uuid.uuid4().hex}")
    assert not _has_file_handler(logger)


def test_get_logger_in_dev_needs_a_log_dir(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.delenv("KOESYNTH_LOG_DIR", raising=False)
    assert not _has_file_handler(get_logger(f"test_logger_nodir_{uuid.uuid4().hex}"))

    monkeypatch.setenv("KOESYNTH_LOG_DIR", str(tmp_path / "logs"))
    name = f"test_logger_dev_{uuid.uuid4().hex}"
    logger = get_logger(name)
    assert _has_file_handler(logger)
    assert (tmp_path / "logs").is_dir()
    # A second call does not stack handlers.
    assert len(get_logger(name).handlers) == 1
    for handler in logger.handlers:
        handler.close()


def test_log_format_includes_context_fields(monkeypatch):
    monkeypatch.delenv("LOG_JSON", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    formatter = build_formatter()
    record = _record()
    set_log_context(request_id="r1", style_id=3)
    try:
        LoggingContextFilter().filter(record)
    finally:
        clear_log_context()
    formatted = formatter.format(record)
    assert "request_id=r1" in formatted
    assert "style_id=3" in formatted


def test_json_format_includes_context_fields(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "json")
    formatter = build_formatter()
    assert isinstance(formatter, JsonFormatter)
    record = _record()
    set_log_context(style_id=7)
    try:
        LoggingContextFilter().filter(record)
    finally:
        clear_log_context()
    payload = json.loads(formatter.format(record))
    assert payload["style_id"] == "7"
    assert payload["request_id"] == "-"
    assert payload["message"] == "hello"


def test_cleared_context_uses_placeholders():
    set_log_context(request_id="r2", style_id=1)
    clear_log_context()
    record = _record()
    LoggingContextFilter().filter(record)
    assert record.request_id == "-"
    assert record.style_id == "-"


def test_summarize_payload_truncates_large_values():
    summary = summarize_payload(
        {"wave": np.zeros((4, 2), dtype=np.float32), "text": "x" * 500, "items": list(range(50)), "raw": b"abc"}
    )
    assert summary["wave"] == {"shape": [4, 2], "dtype": "float32", "range": [0.0, 0.0]}
    assert summary["text"].endswith("...(+300 chars)")
    assert summary["items"]["len"] == 50
    assert summary["items"]["head"] == [0, 1, 2, 3, 4]
    assert summary["raw"] == {"bytes": 3}


def test_prod_env_logs_propagate_to_stdout(caplog, monkeypatch):
    monkeypatch.setenv("APP_ENV", "prod")
    logger = get_logger(f"test_logger_prod_emit_{uuid.uuid4().hex}")
    assert not _has_file_handler(logger)
    assert logger.propagate is True

    caplog.set_level(logging.INFO)
    logger.info("prod_log_test")
    assert any(record.message == "prod_log_test" for record in caplog.records)


def test_configure_logging_applies_config_file_and_level(monkeypatch, tmp_path):
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"plain": {"format": "%(message)s"}},
        "handlers": {"stream": {"class": "logging.StreamHandler", "formatter": "plain"}},
        "loggers": {"koesynth": {"handlers": ["stream"], "level": "INFO"}},
    }
    config_path = tmp_path / "logging.json"
    config_path.write_text(json.dumps(config), encoding="utf-8")
    monkeypatch.setenv("LOG_CONFIG", str(config_path))
    monkeypatch.setenv("KOESYNTH_LOG_LEVEL", "warning")
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    monkeypatch.delenv("LOG_JSON", raising=False)

    root = logging.getLogger()
    package_logger = logging.getLogger("koesynth")
    previous_root_level = root.level
    try:
        configure_logging()
        assert root.level == logging.WARNING
        assert package_logger.handlers
        for handler in package_logger.handlers:
            assert any(isinstance(f, LoggingContextFilter) for f in handler.filters)
    finally:
        for handler in list(package_logger.handlers):
            package_logger.removeHandler(handler)
        package_logger.setLevel(logging.NOTSET)
        root.setLevel(previous_root_level)


def test_log_context_scopes_fields_and_restores_previous():
    set_log_context(request_id="outer")
    try:
        with log_context(style_id=4) as context:
            record = _record()
            LoggingContextFilter().filter(record)
            assert record.style_id == "4"
            assert record.request_id == context.request_id != "outer"
        record = _record()
        LoggingContextFilter().filter(record)
        assert record.request_id == "outer"
        assert record.style_id == "-"
    finally:
        clear_log_context()
