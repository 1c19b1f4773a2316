"""Ordered formatting pipeline used before every send attempt."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..config import FormattingOptions
from ..errors import FormattingError
from ..logging_setup import DiagnosticLogger
from . import apply_prefix_suffix, html_escape, truncate_by_chars
from .emails import EmailObfuscator
from .telegram import MarkupEscaper, escape_literal, strip_markdown, trim_dangling_escape

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormatResult:
    """Formatted text plus the ``parse_mode`` it must be sent with.

    ``effective_markup_tag`` is ``None`` when the text is plain, either
    because no escaping was requested or because MarkdownV2 escaping failed
    and the markup was stripped instead (``recovered`` is then true).
    """

    text: str
    effective_markup_tag: Optional[str]
    recovered: bool = False


class FormatPipeline:
    """Apply the text transforms in a fixed order.

    1. prefix/suffix, 2. HTML escaping, 3. email obfuscation,
    4. MarkdownV2 escaping (or markup stripping), 5. truncation.

    Redacted addresses are escaped as literals unless they sit inside a code
    span.  MarkdownV2 output never ends in a lone backslash after the cut.

    The pipeline never raises for formatting problems.  A
    :class:`FormattingError` from the escaper is logged through the injected
    :class:`DiagnosticLogger` and the text is sent as plain text instead.
    """

    def __init__(
        self,
        prefix: Optional[str] = None,
        suffix: Optional[str] = None,
        *,
        diagnostics: Optional[DiagnosticLogger] = None,
        obfuscator: Optional[EmailObfuscator] = None,
    ) -> None:
        self.prefix = prefix
        self.suffix = suffix
        self._log: DiagnosticLogger = diagnostics if diagnostics is not None else logger
        self._obfuscator = obfuscator or EmailObfuscator()

    def format(self, text: Optional[str], options: Optional[FormattingOptions] = None) -> FormatResult:
        opts = options or FormattingOptions()
        tag = opts.markup_tag
        recovered = False

        result = apply_prefix_suffix("" if text is None else str(text), self.prefix, self.suffix)
        if opts.escape_html:
            result = html_escape(result)

        emails: Dict[str, str] = {}
        if opts.obfuscate_emails:
            result, emails = self._obfuscator.protect(result)

        encode_email = None
        in_code: Optional[Callable[[int], bool]] = None
        if opts.escape_markdown:
            try:
                escaper = MarkupEscaper(result)
                result = escaper.escape()
                encode_email = escape_literal
                in_code = escaper.in_code
            except FormattingError as exc:
                self._log.error(
                    f"Markdown formatting failed: {exc}. Falling back to plain text."
                )
                result = strip_markdown(result)
                tag = None
                recovered = True
        elif opts.strip_markdown:
            result = strip_markdown(result)

        if emails:
            result = self._obfuscator.restore(result, emails, encode_email, in_code)

        result = truncate_by_chars(result, opts.truncate)
        if tag == "MarkdownV2":
            result = trim_dangling_escape(result)
        return FormatResult(text=result, effective_markup_tag=tag, recovered=recovered)


__all__ = ["FormatPipeline", "FormatResult"]
