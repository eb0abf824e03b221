"""Tests for logging configuration and entrypoint wiring."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

import ux_embed.cli as cli_module
from ux_embed.logging_utils import JsonLogFormatter, setup_logging


def _flush_root_handlers() -> None:
    for handler in logging.getLogger().handlers:
        flush = getattr(handler, "flush", None)
        if callable(flush):
            flush()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    yield root
    for handler in root.handlers:
        if handler not in original_handlers:
            handler.close()
    root.handlers.clear()
    for handler in original_handlers:
        root.addHandler(handler)
    root.setLevel(original_level)


def test_setup_logging_default_path_writes_json(tmp_path, restore_root_logger) -> None:
    setup_logging(log_dir=tmp_path, level="INFO", console=False)
    logging.getLogger("ux_embed.test").info(
        "default-log-path", extra={"event": "probe", "slug": "abc123"}
    )
    _flush_root_handlers()

    lines = (tmp_path / "ux-embed.log").read_text(encoding="utf-8").splitlines()
    record = json.loads(lines[-1])
    assert record["message"] == "default-log-path"
    assert record["level"] == "INFO"
    assert record["logger"] == "ux_embed.test"
    assert record["event"] == "probe"
    assert record["context"]["slug"] == "abc123"
    assert record["timestamp"].endswith("Z")


def test_setup_logging_custom_log_file(tmp_path, restore_root_logger) -> None:
    custom_path = tmp_path / "custom" / "embed.log"
    setup_logging(log_dir=tmp_path, level="DEBUG", log_file=custom_path, console=False)
    logging.getLogger("ux_embed.test").debug("custom-log-path")
    _flush_root_handlers()
    assert "custom-log-path" in custom_path.read_text(encoding="utf-8")
    assert not (tmp_path / "ux-embed.log").exists()


def test_setup_logging_console_handler_toggle(tmp_path, restore_root_logger) -> None:
    setup_logging(log_dir=tmp_path, console=True)
    assert len(restore_root_logger.handlers) == 2
    setup_logging(log_dir=tmp_path, console=False)
    assert len(restore_root_logger.handlers) == 1


def test_setup_logging_unknown_level_falls_back_to_info(
    tmp_path, restore_root_logger
) -> None:
    setup_logging(log_dir=tmp_path, level="chatty", console=False)
    assert restore_root_logger.level == logging.INFO


def test_json_formatter_handles_exceptions_and_odd_extras() -> None:
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord(
            "ux_embed.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
        )
    record.path = Path("/tmp/x")
    record.sizes = (1, 2)
    payload = json.loads(JsonLogFormatter().format(record))
    assert "ValueError: boom" in payload["exception"]
    assert payload["context"]["sizes"] == [1, 2]
    assert payload["context"]["path"].endswith("Path('/tmp/x')")
    assert "event" not in payload


def test_cli_main_passes_effective_level_and_log_file(monkeypatch, tmp_path) -> None:
    captured = {}

    def _fake_setup_logging(**kwargs) -> None:
        captured.update(kwargs)

    monkeypatch.setattr(cli_module, "setup_logging", _fake_setup_logging)
    monkeypatch.setattr(cli_module, "log_dir", lambda: tmp_path)
    monkeypatch.setattr(cli_module, "_presets", lambda config: 0)
    log_file = tmp_path / "cli.log"

    exit_code = cli_module.main(["--quiet", "--log-file", str(log_file), "presets"])

    assert exit_code == 0
    assert captured["level"] == "WARNING"
    assert captured["log_file"] == log_file
    assert captured["console"] is False


def test_cli_main_enables_console_logging_for_serve(monkeypatch, tmp_path) -> None:
    captured = {}
    served = []

    monkeypatch.setattr(
        cli_module, "setup_logging", lambda **kwargs: captured.update(kwargs)
    )
    monkeypatch.setattr(cli_module, "log_dir", lambda: tmp_path)
    monkeypatch.setattr(cli_module, "_serve", lambda config: served.append(config) or 0)

    assert cli_module.main(["--verbose", "serve", "--port", "8123"]) == 0
    assert captured["level"] == "DEBUG"
    assert captured["console"] is True
    assert served[0].port == 8123
