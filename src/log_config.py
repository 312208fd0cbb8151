"""Logging setup for ggwatch.

Reads the "logging" section of config.json. Values of the environment
variables listed under redact.patterns (seller secret, bot token, API hash)
are masked in every handler's output.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_PATH = "logs/ggwatch.log"
MASK = "***"


class SecretMaskingFormatter(logging.Formatter):
    """Formatter that replaces known secret values with a mask."""

    def __init__(self, secrets: Iterable[str], fmt: str = LOG_FORMAT, datefmt: str = DATE_FORMAT) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        # Longest first so a secret containing another is masked whole.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        for secret in self._secrets:
            text = text.replace(secret, MASK)
        return text


def secrets_from_env(redact: Optional[dict]) -> list[str]:
    redact = redact or {}
    if not redact.get("enabled", False):
        return []
    return [value for value in (os.getenv(name) for name in redact.get("patterns", [])) if value]


def resolve_level(name: Optional[str]) -> int:
    if os.getenv("DEBUG_MODE", "").lower() == "true":
        return logging.DEBUG
    return getattr(logging, str(name or "INFO").upper(), logging.INFO)


def _file_handler(file_cfg: dict, project_root: str) -> RotatingFileHandler:
    path = file_cfg.get("path", DEFAULT_LOG_PATH)
    if not os.path.isabs(path):
        path = os.path.join(project_root, path)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def build_handlers(config: dict, project_root: str) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file") or {}
    if file_cfg.get("enabled", False):
        handlers.append(_file_handler(file_cfg, project_root))
    return handlers


def configure_logging(config: Optional[dict], project_root: str) -> None:
    """Install console and rotating-file handlers on the root logger."""

    config = config or {}
    if not config.get("enabled", True):
        return

    handlers = build_handlers(config, project_root)
    if not handlers:
        return

    level = resolve_level(config.get("level"))
    formatter = SecretMaskingFormatter(secrets_from_env(config.get("redact")))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)
