"""Email address redaction."""

from __future__ import annotations

import re
from typing import Callable, Dict, Optional, Tuple

_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
# Private-use code points: never special for MarkdownV2 or HTML, so a
# placeholder survives every escaping step unchanged.
_PLACEHOLDER = "\ue000{index}\ue001"
_PLACEHOLDER_RE = re.compile("\ue000\\d+\ue001")


def obfuscate_address(address: str) -> str:
    """Hide most of the local part of ``address``; the domain is kept as is.

    >>> obfuscate_address("john.doe@example.com")
    'joh...e@example.com'
    >>> obfuscate_address("bob@example.com")
    'b...@example.com'
    """

    local, _, domain = address.partition("@")
    if len(local) > 4:
        hidden = f"{local[:3]}...{local[-1]}"
    else:
        hidden = f"{local[:1]}..."
    return f"{hidden}@{domain}"


class EmailObfuscator:
    """Find email-like substrings and redact their local part.

    :meth:`obfuscate` rewrites addresses in place.  The format pipeline uses
    :meth:`protect` and :meth:`restore` instead: addresses are swapped for
    opaque placeholders before escaping and put back afterwards, encoded
    once with the escaping that applies to the surrounding text.
    """

    def __init__(self, pattern: Optional["re.Pattern[str]"] = None) -> None:
        self._pattern = pattern or _EMAIL_RE

    def find(self, text: str) -> list:
        return [match.group(0) for match in self._pattern.finditer(text or "")]

    def obfuscate(self, text: str) -> str:
        if not text:
            return text
        return self._pattern.sub(lambda m: obfuscate_address(m.group(0)), text)

    def protect(self, text: str) -> Tuple[str, Dict[str, str]]:
        """Replace addresses with placeholders; return text and the mapping."""

        replacements: Dict[str, str] = {}

        def _swap(match: "re.Match[str]") -> str:
            token = _PLACEHOLDER.format(index=len(replacements))
            replacements[token] = obfuscate_address(match.group(0))
            return token

        if not text:
            return text, replacements
        return self._pattern.sub(_swap, text), replacements

    @staticmethod
    def restore(
        text: str,
        replacements: Dict[str, str],
        encode: Optional[Callable[[str], str]] = None,
        keep_raw: Optional[Callable[[int], bool]] = None,
    ) -> str:
        """Put the redacted addresses back in place of their placeholders.

        Each address goes through ``encode`` unless ``keep_raw`` says its
        placeholder offset is one where escaping does not apply.
        """

        if not replacements:
            return text

        def _put_back(match: "re.Match[str]") -> str:
            value = replacements.get(match.group(0))
            if value is None:
                return match.group(0)
            if encode is None or (keep_raw is not None and keep_raw(match.start())):
                return value
            return encode(value)

        return _PLACEHOLDER_RE.sub(_put_back, text)


_default = EmailObfuscator()


def obfuscate_emails(text: str) -> str:
    """Module-level shortcut for :meth:`EmailObfuscator.obfuscate`."""

    return _default.obfuscate(text)


__all__ = ["EmailObfuscator", "obfuscate_address", "obfuscate_emails"]
