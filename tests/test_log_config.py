from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from log_config import SecretMaskingFormatter, build_handlers, resolve_level, secrets_from_env


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("ggwatch", logging.INFO, __file__, 1, message, None, None)


def test_formatter_masks_secrets() -> None:
    formatter = SecretMaskingFormatter(["abc", "abcdef", ""], fmt="%(message)s")

    assert formatter.format(_record("token abcdef and abc")) == "token *** and ***"


def test_secrets_from_env_reads_listed_variables(monkeypatch) -> None:
    monkeypatch.setenv("GGSEL_SECRET_KEY", "s3cret")
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    redact = {"enabled": True, "patterns": ["GGSEL_SECRET_KEY", "TELEGRAM_BOT_TOKEN"]}

    assert secrets_from_env(redact) == ["s3cret"]
    assert secrets_from_env({**redact, "enabled": False}) == []


def test_debug_mode_forces_debug_level(monkeypatch) -> None:
    monkeypatch.delenv("DEBUG_MODE", raising=False)
    assert resolve_level("warning") == logging.WARNING
    assert resolve_level("nonsense") == logging.INFO

    monkeypatch.setenv("DEBUG_MODE", "true")
    assert resolve_level("warning") == logging.DEBUG


def test_file_handler_path_is_relative_to_project_root(tmp_path) -> None:
    config = {"console": False, "file": {"enabled": True, "path": "logs/app.log", "backup_count": 2}}

    handlers = build_handlers(config, str(tmp_path))
    try:
        assert len(handlers) == 1
        handler = handlers[0]
        assert isinstance(handler, RotatingFileHandler)
        assert handler.backupCount == 2
        assert (tmp_path / "logs").is_dir()
        assert handler.baseFilename == str(tmp_path / "logs" / "app.log")
    finally:
        for handler in handlers:
            handler.close()
