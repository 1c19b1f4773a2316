"""Logging for tgsafe: ``k=v`` or JSON lines, with bot tokens masked."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Dict, Iterable, List, Optional, Protocol, TextIO

from .config import LogCfg

_SECRET_ENV_KEY = re.compile(r"(TOKEN|SECRET|API_KEY)$", re.IGNORECASE)
_BOT_TOKEN_IN_URL = re.compile(r"bot(\d+):([A-Za-z0-9_-]+)")
_TOKEN_PARAM = re.compile(r"(token=)([^&\s]+)", re.IGNORECASE)

KV_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class DiagnosticLogger(Protocol):
    """The two calls the format pipeline needs; any ``logging.Logger`` fits."""

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        ...


class NullLogger:
    """Diagnostic sink that drops everything."""

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        return None

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        return None


def mask_secrets(text: Any) -> Any:
    """Mask ``bot<id>:<token>`` path segments and ``token=`` query values."""

    if not isinstance(text, str):
        return text
    masked = _BOT_TOKEN_IN_URL.sub(lambda m: f"bot{m.group(1)}:***", text)
    return _TOKEN_PARAM.sub(lambda m: f"{m.group(1)}***", masked)


def _env_secrets() -> List[str]:
    return [value for key, value in os.environ.items() if value and _SECRET_ENV_KEY.search(key)]


class SecretsFilter(logging.Filter):
    """Rewrite every record with tokens and secret env values replaced by ``***``.

    Secret values are collected when the filter is created: every
    environment variable ending in ``TOKEN``, ``SECRET`` or ``API_KEY`` plus
    any ``extra`` strings (e.g. a token passed to :func:`tgsafe.configure`).
    """

    def __init__(self, extra: Iterable[str] = ()) -> None:
        super().__init__()
        values = set(_env_secrets())
        values.update(value for value in extra if value)
        # longest first so a token containing another secret is masked whole
        self._secrets = sorted(values, key=len, reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - signature mandated by logging
        message = mask_secrets(record.getMessage())
        for value in self._secrets:
            message = message.replace(value, "***")
        record.msg = message
        record.args = ()
        return True


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    ctx = getattr(record, "ctx", None)
    return ctx if isinstance(ctx, dict) else {}


class KVFormatter(logging.Formatter):
    """Formatter that appends ``| key=value`` pairs from ``log_kv`` context."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        pairs = " ".join(f"{key}={value}" for key, value in _context(record).items())
        return f"{base} | {pairs}" if pairs else base


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "time": self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(
    log_cfg: Optional[LogCfg] = None,
    *,
    stream: Optional[TextIO] = None,
    secrets: Iterable[str] = (),
) -> logging.Handler:
    """Replace the root handlers with one stream handler built from ``log_cfg``."""

    log_cfg = log_cfg or LogCfg()
    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.setLevel(getattr(logging, log_cfg.level.upper(), logging.INFO))

    handler = logging.StreamHandler(stream)
    handler.addFilter(SecretsFilter(secrets))
    if log_cfg.json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(KVFormatter(fmt=KV_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(handler)
    return handler


def log_kv(logger: logging.Logger, level: int, message: str, **ctx: Any) -> None:
    """Emit log record with structured context in ``ctx``."""

    logger.log(level, message, extra={"ctx": ctx})


__all__ = [
    "DiagnosticLogger",
    "JSONFormatter",
    "KVFormatter",
    "NullLogger",
    "SecretsFilter",
    "log_kv",
    "mask_secrets",
    "setup_logging",
]
