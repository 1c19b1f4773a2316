"""Bot API ``sendMessage`` client."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from .config import ChatTarget, HttpCfg
from .errors import SendFailure
from .http_client import session as _session
from .logging_setup import log_kv, mask_secrets

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"


@dataclass(frozen=True)
class MessagePayload:
    target: ChatTarget
    text: str
    markup_tag: Optional[str] = None
    disable_link_preview: bool = True
    reply_to_message_id: Optional[int] = None
    reply_markup: Optional[Dict[str, Any]] = None

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "chat_id": self.target,
            "text": self.text,
            "disable_web_page_preview": self.disable_link_preview,
        }
        if self.markup_tag:
            params["parse_mode"] = self.markup_tag
        if self.reply_to_message_id is not None:
            params["reply_to_message_id"] = self.reply_to_message_id
        if self.reply_markup is not None:
            params["reply_markup"] = self.reply_markup
        return params


@dataclass(frozen=True)
class RemoteResponse:
    status: int
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def result(self) -> Dict[str, Any]:
        return self.body.get("result") or {}

    @property
    def message_id(self) -> Optional[int]:
        return self.result.get("message_id")


def _retry_after(data: Dict[str, Any]) -> Optional[float]:
    params = data.get("parameters") or {}
    try:
        value = float(params.get("retry_after", 0) or 0)
    except (TypeError, ValueError):
        return None
    return value or None


class TelegramClient:
    """Send one already-formatted payload; raise :class:`SendFailure` otherwise.

    Connection problems and 429/5xx answers are retried by the session's
    transport policy (see :mod:`tgsafe.http_client`) with the very same
    payload.  Whatever is left after that becomes a ``SendFailure``.
    """

    def __init__(
        self,
        token: str,
        http_cfg: Optional[HttpCfg] = None,
        *,
        session: Optional[requests.Session] = None,
        api_base: str = API_BASE,
    ) -> None:
        if not token:
            raise ValueError("bot token is required")
        self._http_cfg = http_cfg or HttpCfg()
        self._session = session if session is not None else _session(self._http_cfg)
        self._base_url = f"{api_base.rstrip('/')}/bot{token}"

    def send(self, payload: MessagePayload) -> RemoteResponse:
        url = f"{self._base_url}/sendMessage"
        safe_url = mask_secrets(url)
        params = payload.to_params()
        try:
            response = self._session.post(url, json=params, timeout=self._http_cfg.timeout)
        except requests.RequestException as exc:
            reason = mask_secrets(str(exc))
            logger.error("Failed to send Telegram message (%s): %s", safe_url, reason)
            raise SendFailure.transport(f"Failed to send Telegram message: {reason}") from exc

        status = response.status_code
        try:
            data = response.json()
        except ValueError:
            data = {"ok": False, "description": "Invalid JSON response"}
        if not isinstance(data, dict):
            data = {"ok": False, "description": "Invalid JSON response"}

        if not (200 <= status < 300 and data.get("ok")):
            description = mask_secrets(data.get("description") or response.text or f"HTTP {status}")
            level = logging.WARNING if status < 500 else logging.ERROR
            logger.log(
                level,
                "Telegram sendMessage (%s) chat_id=%s status=%s error=%s payload=%s",
                safe_url,
                payload.target,
                status,
                description,
                _dump(params),
            )
            raise SendFailure.rejection(
                status,
                f"Telegram API error for chat_id {payload.target}: {description}",
                retry_after=_retry_after(data),
            )

        result = RemoteResponse(status=status, body=data)
        log_kv(
            logger,
            logging.INFO,
            "sent message",
            chat_id=payload.target,
            parse_mode=payload.markup_tag or "plain",
            length=len(payload.text),
            message_id=result.message_id,
        )
        return result


def _dump(params: Dict[str, Any]) -> str:
    try:
        return json.dumps(params, ensure_ascii=False)[:800]
    except (TypeError, ValueError):
        return str(params)[:800]


__all__ = ["API_BASE", "MessagePayload", "RemoteResponse", "TelegramClient"]
