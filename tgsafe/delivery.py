"""Tiered delivery: MarkdownV2, then HTML, then plain text.

When the Bot API refuses a message it is almost always because the markup
could not be parsed, so resending the same payload is pointless.  The
cascade instead reformats the original text with a less demanding
``parse_mode`` and tries again, at most once per tier.  This is separate
from the transport retry in :mod:`tgsafe.http_client`, which resends the
*same* payload after a network blip.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Protocol

from .client import MessagePayload, RemoteResponse
from .config import ChatTarget, FormattingOptions
from .errors import SendFailure
from .formatting.pipeline import FormatPipeline

logger = logging.getLogger(__name__)


class DeliveryTier(IntEnum):
    PLAIN_TEXT = 0
    BASIC_MARKUP = 1
    RICH_MARKUP = 2

    @property
    def markup_tag(self) -> Optional[str]:
        return _TIER_TAGS[self]

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]

    def options(self, base: FormattingOptions) -> FormattingOptions:
        """``base`` with the escaping switches this tier requires."""

        return base.merged(_TIER_SWITCHES[self])

    def demote(self) -> "DeliveryTier":
        if self is DeliveryTier.PLAIN_TEXT:
            return self
        return DeliveryTier(self - 1)

    @classmethod
    def for_parse_mode(cls, parse_mode: Optional[str]) -> "DeliveryTier":
        if parse_mode is None:
            return cls.PLAIN_TEXT
        normalized = parse_mode.strip().lower()
        if normalized == "markdownv2":
            return cls.RICH_MARKUP
        if normalized == "html":
            return cls.BASIC_MARKUP
        return cls.PLAIN_TEXT


_TIER_TAGS = {
    DeliveryTier.RICH_MARKUP: "MarkdownV2",
    DeliveryTier.BASIC_MARKUP: "HTML",
    DeliveryTier.PLAIN_TEXT: None,
}
_TIER_LABELS = {
    DeliveryTier.RICH_MARKUP: "MarkdownV2",
    DeliveryTier.BASIC_MARKUP: "HTML",
    DeliveryTier.PLAIN_TEXT: "plain text",
}
_TIER_SWITCHES: Dict[DeliveryTier, Dict[str, bool]] = {
    DeliveryTier.RICH_MARKUP: {"escape_markdown": True, "escape_html": False, "strip_markdown": False},
    DeliveryTier.BASIC_MARKUP: {"escape_markdown": False, "escape_html": True, "strip_markdown": False},
    DeliveryTier.PLAIN_TEXT: {"escape_markdown": False, "escape_html": False, "strip_markdown": True},
}

MAX_ATTEMPTS = len(DeliveryTier)


class RemoteSend(Protocol):
    def send(self, payload: MessagePayload) -> RemoteResponse:
        ...


@dataclass(frozen=True)
class SendResult:
    response: RemoteResponse
    tier: DeliveryTier
    attempts: int


class DeliveryCascade:
    """Format and send one message, demoting the tier on every failure."""

    def __init__(self, sender: RemoteSend, pipeline: Optional[FormatPipeline] = None) -> None:
        self._sender = sender
        self._pipeline = pipeline or FormatPipeline()

    def send(
        self,
        text: str,
        options: Optional[FormattingOptions] = None,
        *,
        target: ChatTarget,
        start_tier: DeliveryTier = DeliveryTier.RICH_MARKUP,
        disable_link_preview: bool = True,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> SendResult:
        base = options or FormattingOptions()
        tier = start_tier
        attempts = 0
        while True:
            attempts += 1
            formatted = self._pipeline.format(text, tier.options(base))
            payload = MessagePayload(
                target=target,
                text=formatted.text,
                markup_tag=formatted.effective_markup_tag,
                disable_link_preview=disable_link_preview,
                reply_to_message_id=reply_to_message_id,
                reply_markup=reply_markup,
            )
            try:
                response = self._sender.send(payload)
            except SendFailure as failure:
                logger.error(
                    "Error sending message (attempt %s/%s, %s): %s",
                    attempts,
                    MAX_ATTEMPTS,
                    tier.label,
                    failure,
                )
                if tier is DeliveryTier.PLAIN_TEXT or attempts >= MAX_ATTEMPTS:
                    raise
                tier = tier.demote()
                logger.info("Falling back to %s format", tier.label)
                continue
            if attempts > 1:
                logger.info("Delivered as %s after %s attempts", tier.label, attempts)
            return SendResult(response=response, tier=tier, attempts=attempts)


__all__ = [
    "DeliveryCascade",
    "DeliveryTier",
    "MAX_ATTEMPTS",
    "RemoteSend",
    "SendResult",
]
