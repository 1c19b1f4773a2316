"""Text transforms that prepare arbitrary user text for the Bot API.

The leaf helpers live here: HTML entity escaping, character-based
truncation and prefix/suffix wrapping.  The MarkdownV2 tokenizer lives in
:mod:`tgsafe.formatting.telegram`, email redaction in
:mod:`tgsafe.formatting.emails` and the ordered pipeline that glues
everything together in :mod:`tgsafe.formatting.pipeline`.
"""

from __future__ import annotations

from html import escape as _escape
from typing import Optional


def html_escape(text: str) -> str:
    """Replace ``&``, ``<`` and ``>`` with HTML entities.

    Telegram's HTML mode only requires these three; quotes are left alone
    so that plain-text fallbacks stay readable.
    """

    return _escape(text, quote=False)


def truncate_by_chars(text: str, max_len: Optional[int]) -> str:
    """Return ``text`` cut to at most ``max_len`` characters.

    Counts code points, not bytes.  ``None`` disables truncation.
    """

    if max_len is None or len(text) <= max_len:
        return text
    return text[:max_len]


def apply_prefix_suffix(text: str, prefix: Optional[str] = None, suffix: Optional[str] = None) -> str:
    if prefix:
        text = f"{prefix}{text}"
    if suffix:
        text = f"{text}{suffix}"
    return text


from .emails import EmailObfuscator, obfuscate_emails  # noqa: E402
from .pipeline import FormatPipeline, FormatResult  # noqa: E402
from .telegram import (  # noqa: E402
    SPECIAL_CHARS,
    MarkupEscaper,
    TokenizerState,
    escape_literal,
    escape_markdown_v2,
    strip_markdown,
    trim_dangling_escape,
)

__all__ = [
    "EmailObfuscator",
    "FormatPipeline",
    "FormatResult",
    "MarkupEscaper",
    "SPECIAL_CHARS",
    "TokenizerState",
    "apply_prefix_suffix",
    "escape_literal",
    "escape_markdown_v2",
    "html_escape",
    "obfuscate_emails",
    "strip_markdown",
    "trim_dangling_escape",
    "truncate_by_chars",
]
