"""Safe MarkdownV2 formatting and tiered delivery for the Telegram Bot API."""

from __future__ import annotations

import threading
from typing import Any, Optional

from . import config as _config
from . import publisher as _publisher
from .client import MessagePayload, RemoteResponse, TelegramClient
from .config import AppConfig, FormattingOptions
from .delivery import DeliveryCascade, DeliveryTier, SendResult
from .errors import ConfigError, FailureKind, FormattingError, SendFailure, TgsafeError
from .formatting import escape_markdown_v2, strip_markdown
from .formatting.pipeline import FormatPipeline, FormatResult

__version__ = "0.1.0"

_active: Optional[AppConfig] = None
_lock = threading.Lock()


def get_config() -> AppConfig:
    """Return the active configuration, loading it from the environment once."""

    global _active
    with _lock:
        if _active is None:
            _active = _config.load_all()
        return _active


def configure(**changes: Any) -> AppConfig:
    """Replace parts of the active configuration and validate the result.

    Accepts section names (``formatting={"truncate": 1000}``) or single
    fields (``bot_token="123:abc"``, ``chat_id=42``).
    """

    global _active
    updated = _config.validate(_config.apply_changes(get_config(), **changes))
    with _lock:
        _active = updated
    return updated


def reset() -> None:
    """Forget :func:`configure` changes and re-read the environment next time."""

    global _active
    with _lock:
        _active = None
    _config.load_all.cache_clear()


def format_message(text: str, **formatting: Any) -> FormatResult:
    return _publisher.format_text(get_config(), text, formatting)


def send_message(message: str, **options: Any) -> Optional[SendResult]:
    """Send ``message`` with the active configuration.

    Keyword options: ``chat_id``, ``parse_mode``, ``formatting`` (mapping of
    :class:`FormattingOptions` overrides), ``disable_web_page_preview``,
    ``reply_to_message_id`` and ``reply_markup``.  Raises
    :class:`SendFailure` once every formatting tier has been refused.
    """

    return _publisher.send_message(get_config(), message, **options)


__all__ = [
    "AppConfig",
    "ConfigError",
    "DeliveryCascade",
    "DeliveryTier",
    "FailureKind",
    "FormatPipeline",
    "FormatResult",
    "FormattingError",
    "FormattingOptions",
    "MessagePayload",
    "RemoteResponse",
    "SendFailure",
    "SendResult",
    "TelegramClient",
    "TgsafeError",
    "configure",
    "escape_markdown_v2",
    "format_message",
    "get_config",
    "reset",
    "send_message",
    "strip_markdown",
]
