"""Helpers that wire configuration, formatting and delivery together."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from . import jobs
from .client import TelegramClient
from .config import PARSE_MODES, AppConfig, validate, validate_formatting
from .delivery import DeliveryCascade, DeliveryTier, RemoteSend, SendResult
from .errors import ConfigError
from .formatting.pipeline import FormatPipeline, FormatResult
from .logging_setup import DiagnosticLogger, log_kv

logger = logging.getLogger("tgsafe.publisher")

_UNSET: Any = object()


def build_pipeline(cfg: AppConfig, diagnostics: Optional[DiagnosticLogger] = None) -> FormatPipeline:
    return FormatPipeline(
        cfg.telegram.message_prefix,
        cfg.telegram.message_suffix,
        diagnostics=diagnostics,
    )


def format_text(
    cfg: AppConfig,
    text: str,
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    diagnostics: Optional[DiagnosticLogger] = None,
) -> FormatResult:
    """Format ``text`` with the configured defaults merged with ``overrides``."""

    options = validate_formatting(cfg.formatting.merged(overrides))
    return build_pipeline(cfg, diagnostics).format(text, options)


def _resolve_parse_mode(cfg: AppConfig, parse_mode: Any) -> Optional[str]:
    mode = cfg.telegram.default_parse_mode if parse_mode is _UNSET else parse_mode
    if mode not in PARSE_MODES:
        raise ConfigError(
            f"tgsafe configuration error: parse_mode must be one of {list(PARSE_MODES)!r}, got {mode!r}."
        )
    return mode


def deliver(
    cfg: AppConfig,
    message: str,
    *,
    chat_id: Any = None,
    parse_mode: Any = _UNSET,
    formatting: Optional[Mapping[str, Any]] = None,
    disable_web_page_preview: Optional[bool] = None,
    reply_to_message_id: Optional[int] = None,
    reply_markup: Optional[Dict[str, Any]] = None,
    sender: Optional[RemoteSend] = None,
) -> SendResult:
    """Send ``message`` right away through the tier cascade."""

    tg = cfg.telegram
    target = chat_id if chat_id is not None else tg.chat_id
    if target is None or target == "":
        raise ConfigError("tgsafe configuration error: chat_id is not set.")
    mode = _resolve_parse_mode(cfg, parse_mode)
    options = validate_formatting(cfg.formatting.merged(formatting))
    preview = tg.disable_web_page_preview if disable_web_page_preview is None else disable_web_page_preview

    cascade = DeliveryCascade(
        sender if sender is not None else TelegramClient(tg.bot_token, cfg.http),
        build_pipeline(cfg),
    )
    result = cascade.send(
        message,
        options,
        target=target,
        start_tier=DeliveryTier.for_parse_mode(mode),
        disable_link_preview=preview,
        reply_to_message_id=reply_to_message_id,
        reply_markup=reply_markup,
    )
    log_kv(
        logger,
        logging.INFO,
        "message delivered",
        chat_id=target,
        tier=result.tier.label,
        attempts=result.attempts,
        message_id=getattr(result.response, "message_id", None),
    )
    return result


def _deliver_job(message: str, cfg: AppConfig, **options: Any) -> SendResult:
    return deliver(cfg, message, **options)


def send_message(cfg: AppConfig, message: str, **options: Any) -> Optional[SendResult]:
    """Validate ``cfg`` and deliver now, or enqueue when async delivery is on.

    Returns ``None`` for queued messages; their failures are only logged.
    """

    validate(cfg)
    _resolve_parse_mode(cfg, options.get("parse_mode", _UNSET))
    if cfg.delivery.deliver_async:
        dq = jobs.get_queue(cfg.delivery.queue, _deliver_job)
        dq.enqueue(message, cfg=cfg, **options)
        log_kv(logger, logging.INFO, "message queued", queue=cfg.delivery.queue)
        return None
    return deliver(cfg, message, **options)


__all__ = ["build_pipeline", "deliver", "format_text", "send_message"]
