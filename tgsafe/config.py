"""Centralised environment configuration helpers for tgsafe."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Mapping, Optional, Union

from .errors import ConfigError

logger = logging.getLogger(__name__)

TG_TEXT_LIMIT = 4096
PARSE_MODES = ("MarkdownV2", "HTML", None)

ChatTarget = Union[int, str]


def _getenv(*names: str, default: Optional[str] = None) -> Optional[str]:
    for idx, name in enumerate(names):
        value = os.getenv(name)
        if value:
            if len(names) > 1 and idx != 0:
                logger.warning(
                    "ENV alias %s used for %s; please rename to %s",
                    name,
                    names[0],
                    names[0],
                )
            return value
    return default


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_number(name: str, cast: Callable[[str], Any], default: str) -> Any:
    raw = (_getenv(name, default=default) or default).strip()
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _as_parse_mode(value: Optional[str]) -> Optional[str]:
    raw = (value or "").strip()
    if not raw or raw.lower() in {"none", "plain", "text"}:
        return None
    for mode in PARSE_MODES:
        if mode is not None and raw.lower() == mode.lower():
            return mode
    return raw


@dataclass(frozen=True)
class FormattingOptions:
    escape_markdown: bool = True
    obfuscate_emails: bool = False
    escape_html: bool = False
    truncate: Optional[int] = TG_TEXT_LIMIT
    strip_markdown: bool = False

    def merged(self, overrides: Optional[Mapping[str, Any]] = None, **changes: Any) -> "FormattingOptions":
        """Return a copy where every supplied key replaces the current value.

        ``None`` values are ignored except for ``truncate``, where ``None``
        switches truncation off.
        """

        values = dict(overrides or {})
        values.update(changes)
        names = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(values) - names)
        if unknown:
            raise ConfigError(f"Unknown formatting option(s): {', '.join(unknown)}")
        updates = {
            key: value
            for key, value in values.items()
            if value is not None or key == "truncate"
        }
        return dataclasses.replace(self, **updates)

    @property
    def markup_tag(self) -> Optional[str]:
        """Bot API ``parse_mode`` matching the enabled escaping."""

        if self.escape_markdown:
            return "MarkdownV2"
        if self.escape_html:
            return "HTML"
        return None


@dataclass(frozen=True)
class TelegramCfg:
    bot_token: str = ""
    chat_id: Optional[ChatTarget] = None
    default_parse_mode: Optional[str] = "MarkdownV2"
    disable_web_page_preview: bool = True
    message_prefix: Optional[str] = None
    message_suffix: Optional[str] = None


@dataclass(frozen=True)
class HttpCfg:
    timeout: float = 30.0
    retry_total: int = 3
    backoff_factor: float = 1.0


@dataclass(frozen=True)
class DeliveryCfg:
    deliver_async: bool = False
    queue: str = "default"


@dataclass(frozen=True)
class LogCfg:
    level: str = "INFO"
    json: bool = False


@dataclass(frozen=True)
class AppConfig:
    telegram: TelegramCfg = field(default_factory=TelegramCfg)
    formatting: FormattingOptions = field(default_factory=FormattingOptions)
    http: HttpCfg = field(default_factory=HttpCfg)
    delivery: DeliveryCfg = field(default_factory=DeliveryCfg)
    log: LogCfg = field(default_factory=LogCfg)


@lru_cache()
def load_all() -> AppConfig:
    """Build the configuration from environment variables."""

    chat_raw = (_getenv("TELEGRAM_CHAT_ID", "CHAT_ID", default="") or "").strip()
    telegram_cfg = TelegramCfg(
        bot_token=(_getenv("TELEGRAM_BOT_TOKEN", "BOT_TOKEN", default="") or "").strip(),
        chat_id=chat_raw or None,
        default_parse_mode=_as_parse_mode(
            _getenv("TELEGRAM_PARSE_MODE", "PARSE_MODE", default="MarkdownV2")
        ),
        disable_web_page_preview=_as_bool(
            _getenv("TELEGRAM_DISABLE_WEB_PAGE_PREVIEW"), True
        ),
        message_prefix=_getenv("MESSAGE_PREFIX"),
        message_suffix=_getenv("MESSAGE_SUFFIX"),
    )

    truncate_raw = (_getenv("FORMAT_TRUNCATE", default=str(TG_TEXT_LIMIT)) or "").strip()
    try:
        truncate = int(truncate_raw) if truncate_raw and truncate_raw != "0" else None
    except ValueError as exc:
        raise ConfigError(f"FORMAT_TRUNCATE must be an integer, got {truncate_raw!r}") from exc
    formatting = FormattingOptions(
        escape_markdown=_as_bool(_getenv("FORMAT_ESCAPE_MARKDOWN"), True),
        obfuscate_emails=_as_bool(_getenv("FORMAT_OBFUSCATE_EMAILS"), False),
        escape_html=_as_bool(_getenv("FORMAT_ESCAPE_HTML"), False),
        truncate=truncate,
    )

    http_cfg = HttpCfg(
        timeout=_env_number("HTTP_TIMEOUT", float, "30"),
        retry_total=_env_number("HTTP_RETRY_TOTAL", int, "3"),
        backoff_factor=_env_number("HTTP_BACKOFF", float, "1.0"),
    )

    delivery_cfg = DeliveryCfg(
        deliver_async=_as_bool(_getenv("DELIVER_ASYNC"), False),
        queue=(_getenv("DELIVER_QUEUE", default="default") or "default").strip(),
    )

    log_cfg = LogCfg(
        level=(_getenv("LOG_LEVEL", default="INFO") or "INFO").upper(),
        json=_as_bool(_getenv("LOG_JSON"), False),
    )

    return AppConfig(
        telegram=telegram_cfg,
        formatting=formatting,
        http=http_cfg,
        delivery=delivery_cfg,
        log=log_cfg,
    )


_SECTIONS = {
    "telegram": TelegramCfg,
    "formatting": FormattingOptions,
    "http": HttpCfg,
    "delivery": DeliveryCfg,
    "log": LogCfg,
}


def apply_changes(cfg: AppConfig, **changes: Any) -> AppConfig:
    """Return ``cfg`` with sections or individual fields replaced.

    Section names (``telegram``, ``formatting``, ``http``, ``delivery``,
    ``log``) accept either a ready dataclass instance or a mapping of field
    overrides.  Any other keyword must be a field of one of the sections,
    e.g. ``bot_token`` or ``timeout``.
    """

    sections = {name: getattr(cfg, name) for name in _SECTIONS}
    for key, value in changes.items():
        if key in _SECTIONS:
            if isinstance(value, _SECTIONS[key]):
                sections[key] = value
            elif isinstance(value, Mapping):
                sections[key] = _replace_fields(sections[key], key, dict(value))
            else:
                raise ConfigError(f"{key} must be a mapping or {_SECTIONS[key].__name__}")
            continue
        owner = _section_for_field(key)
        if owner is None:
            raise ConfigError(f"Unknown configuration key: {key}")
        sections[owner] = _replace_fields(sections[owner], owner, {key: value})
    return AppConfig(**sections)


def _section_for_field(name: str) -> Optional[str]:
    for section, cls in _SECTIONS.items():
        if name in {f.name for f in dataclasses.fields(cls)}:
            return section
    return None


def _replace_fields(current: Any, section: str, values: dict) -> Any:
    names = {f.name for f in dataclasses.fields(current)}
    unknown = sorted(set(values) - names)
    if unknown:
        raise ConfigError(f"Unknown {section} option(s): {', '.join(unknown)}")
    return dataclasses.replace(current, **values)


def validate(cfg: AppConfig) -> AppConfig:
    """Raise :class:`ConfigError` describing the first invalid setting."""

    tg = cfg.telegram
    if not isinstance(tg.bot_token, str) or not tg.bot_token.strip():
        raise ConfigError("tgsafe configuration error: bot_token cannot be blank.")
    if tg.default_parse_mode not in PARSE_MODES:
        raise ConfigError(
            f"tgsafe configuration error: default_parse_mode must be one of {list(PARSE_MODES)!r}."
        )
    validate_formatting(cfg.formatting)

    http = cfg.http
    for name in ("timeout", "backoff_factor"):
        value = getattr(http, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"tgsafe configuration error: http.{name} must be a positive number.")
    if isinstance(http.retry_total, bool) or not isinstance(http.retry_total, int) or http.retry_total < 0:
        raise ConfigError("tgsafe configuration error: http.retry_total must be a non-negative integer.")

    if not isinstance(cfg.delivery.queue, str) or not cfg.delivery.queue.strip():
        raise ConfigError("tgsafe configuration error: delivery.queue cannot be blank.")
    return cfg


def validate_formatting(options: FormattingOptions) -> FormattingOptions:
    for name in ("escape_markdown", "obfuscate_emails", "escape_html", "strip_markdown"):
        if not isinstance(getattr(options, name), bool):
            raise ConfigError(f"tgsafe configuration error: formatting.{name} must be true or false.")
    truncate = options.truncate
    if truncate is not None and (
        isinstance(truncate, bool) or not isinstance(truncate, int) or truncate <= 0
    ):
        raise ConfigError("tgsafe configuration error: formatting.truncate must be a positive integer.")
    return options


__all__ = [
    "AppConfig",
    "ChatTarget",
    "DeliveryCfg",
    "FormattingOptions",
    "HttpCfg",
    "LogCfg",
    "PARSE_MODES",
    "TG_TEXT_LIMIT",
    "TelegramCfg",
    "apply_changes",
    "load_all",
    "validate",
    "validate_formatting",
]
