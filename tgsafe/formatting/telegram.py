"""MarkdownV2 escaping that keeps recognised inline markup intact.

Telegram's MarkdownV2 parser rejects a message outright when any of the
characters in :data:`SPECIAL_CHARS` shows up unescaped outside an entity.
User text is full of them (dots, dashes, exclamation marks), so every
literal occurrence must be backslash-prefixed while the markup the author
actually meant (``*bold*``, ``_italic_``, inline and fenced code,
``[text](url)`` links) is left in place.

:class:`MarkupEscaper` does this in one left-to-right pass.  Exactly one
:class:`TokenizerState` is active at a time.  Entering a code span or an
unfinished link pushes the enclosing state onto a small save stack, so
that in ``*see [x] then*`` bold resumes after the bracket closes.  Code
spans only open from plain text; inside bold or italic a backtick is
escaped like any other special character.  Bold and italic never nest:
the other emphasis marker is escaped instead.

Known quirks kept on purpose:

* a backslash already placed in front of a special character is doubled
  (``\\.`` becomes ``\\\\.``), so running the escaper twice is not a no-op;
* an unterminated fenced block stays unterminated, while open bold,
  italic and link contexts receive a synthetic closer at end of input.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import FormattingError

SPECIAL_CHARS = "_*[]()~`>#+-=|{}.!"
FENCE = "```"

_SPECIAL = frozenset(SPECIAL_CHARS)
_URL_SPECIAL = _SPECIAL - {"(", ")"}
_CODE_ESCAPABLE = ("`", "\\")
_ESCAPE_RE = re.compile("([" + re.escape(SPECIAL_CHARS + "\\") + "])")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_STRIP_RE = re.compile(r"[*_~`]")
_MAX_SAVED = 2
_TRAILING_BACKSLASHES = re.compile(r"\\+\Z")


class TokenizerState(Enum):
    NORMAL = "normal"
    INLINE_CODE = "inline_code"
    FENCED_CODE = "fenced_code"
    BOLD = "bold"
    ITALIC = "italic"
    LINK_TEXT = "link_text"
    LINK_URL = "link_url"


_CODE_STATES = frozenset({TokenizerState.INLINE_CODE, TokenizerState.FENCED_CODE})
_TOGGLES = {"*": TokenizerState.BOLD, "_": TokenizerState.ITALIC}
_CLOSERS = {
    TokenizerState.BOLD: "*",
    TokenizerState.ITALIC: "_",
    TokenizerState.LINK_TEXT: "]",
    TokenizerState.LINK_URL: ")",
}


def _escape_span(span: str, special: frozenset) -> str:
    return "".join("\\" + ch if ch in special or ch == "\\" else ch for ch in span)


def _render_link(label: str, url: str) -> str:
    return f"[{_escape_span(label, _SPECIAL)}]({_escape_span(url, _URL_SPECIAL)})"


class MarkupEscaper:
    """Escape one piece of text for MarkdownV2.

    Instances are single-use: create one per text and call :meth:`escape`.
    Malformed markup never raises; :class:`FormattingError` signals a broken
    internal invariant only.
    """

    def __init__(self, text: str) -> None:
        self._text = text
        self._length = len(text)
        self._pos = 0
        self._out: List[str] = []
        self._state = TokenizerState.NORMAL
        self._saved: List[TokenizerState] = []
        self._result: Optional[str] = None
        self._size = 0
        self._code_start: Optional[int] = None
        self._code_spans: List[Tuple[int, int]] = []
        self._steps: Dict[TokenizerState, Callable[[], None]] = {
            TokenizerState.NORMAL: self._step_prose,
            TokenizerState.BOLD: self._step_prose,
            TokenizerState.ITALIC: self._step_prose,
            TokenizerState.INLINE_CODE: self._step_inline_code,
            TokenizerState.FENCED_CODE: self._step_fenced_code,
            TokenizerState.LINK_TEXT: self._step_link_text,
            TokenizerState.LINK_URL: self._step_link_url,
        }

    @property
    def state(self) -> TokenizerState:
        return self._state

    def in_code(self, offset: int) -> bool:
        """Whether ``offset`` in the escaped output lies inside a code span."""

        self.escape()
        return any(start <= offset < end for start, end in self._code_spans)

    def escape(self) -> str:
        if self._result is not None:
            return self._result
        while self._pos < self._length:
            step = self._steps.get(self._state)
            if step is None:
                raise FormattingError(f"no handler for tokenizer state {self._state!r}")
            step()
        if self._code_start is not None:
            self._code_spans.append((self._code_start, self._size))
            self._code_start = None
        self._close_open_contexts()
        self._result = "".join(self._out)
        return self._result

    # ------------------------------------------------------------------
    # cursor helpers
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 1) -> str:
        idx = self._pos + offset
        return self._text[idx] if idx < self._length else ""

    def _emit(self, chunk: str, consumed: Optional[int] = None) -> None:
        self._out.append(chunk)
        self._size += len(chunk)
        self._pos += len(chunk) if consumed is None else consumed

    def _enter(self, state: TokenizerState) -> None:
        if len(self._saved) >= _MAX_SAVED:
            raise FormattingError(
                f"save stack overflow entering {state.value} from {self._state.value}"
            )
        self._saved.append(self._state)
        self._state = state
        if state in _CODE_STATES:
            self._code_start = self._size

    def _leave(self) -> None:
        if self._code_start is not None:
            self._code_spans.append((self._code_start, self._size))
            self._code_start = None
        self._state = self._saved.pop() if self._saved else TokenizerState.NORMAL

    # ------------------------------------------------------------------
    # per-state steps
    # ------------------------------------------------------------------

    def _step_prose(self) -> None:
        """Normal, bold and italic text."""

        char = self._text[self._pos]
        toggle = _TOGGLES.get(char)
        if toggle is not None:
            if self._state is TokenizerState.NORMAL:
                self._state = toggle
                self._emit(char)
            elif self._state is toggle:
                self._state = TokenizerState.NORMAL
                self._emit(char)
            else:
                self._emit("\\" + char, 1)
        elif char == "`" and self._state is not TokenizerState.NORMAL:
            self._emit("\\" + char, 1)
        elif char == "`":
            if self._text.startswith(FENCE, self._pos):
                self._enter(TokenizerState.FENCED_CODE)
                self._emit(FENCE)
            else:
                self._enter(TokenizerState.INLINE_CODE)
                self._emit(char)
        elif char == "[":
            match = _LINK_RE.match(self._text, self._pos)
            if match:
                self._emit(_render_link(match.group(1), match.group(2)), match.end() - self._pos)
            else:
                self._enter(TokenizerState.LINK_TEXT)
                self._emit(char)
        elif char == "\\":
            self._step_backslash()
        elif char in _SPECIAL:
            self._emit("\\" + char, 1)
        else:
            self._emit(char)

    def _step_backslash(self) -> None:
        following = self._peek()
        if following and following in _SPECIAL:
            # already escaped by the author: keep the backslash visible
            self._emit("\\\\" + following, 2)
        else:
            self._emit("\\")

    def _step_inline_code(self) -> None:
        char = self._text[self._pos]
        if char == "\\" and self._peek() in _CODE_ESCAPABLE:
            self._emit(char + self._peek())
        elif char == "`":
            self._emit(char)
            self._leave()
        else:
            self._emit(char)

    def _step_fenced_code(self) -> None:
        char = self._text[self._pos]
        if self._text.startswith(FENCE, self._pos):
            self._emit(FENCE)
            self._leave()
        elif char == "\\" and self._peek() in _CODE_ESCAPABLE:
            self._emit(char + self._peek())
        else:
            self._emit(char)

    def _step_link_text(self) -> None:
        char = self._text[self._pos]
        if char == "\\" and self._peek():
            self._emit(char + self._peek())
        elif char == "]":
            self._emit(char)
            if self._peek(0) == "(":
                self._state = TokenizerState.LINK_URL
                self._emit("(")
            else:
                self._leave()
        else:
            self._emit(char)

    def _step_link_url(self) -> None:
        char = self._text[self._pos]
        if char == ")":
            self._emit(char)
            self._leave()
        elif char == "\\":
            self._step_backslash()
        elif char in _URL_SPECIAL:
            self._emit("\\" + char, 1)
        else:
            self._emit(char)

    def _close_open_contexts(self) -> None:
        state = self._state
        while state is not TokenizerState.NORMAL:
            closer = _CLOSERS.get(state)
            if closer is None:
                # code spans are left open
                break
            self._out.append(closer)
            state = self._saved.pop() if self._saved else TokenizerState.NORMAL
        self._state = state


def escape_markdown_v2(text: str) -> str:
    """Escape ``text`` for ``parse_mode=MarkdownV2``, keeping inline markup."""

    if not text:
        return ""
    return MarkupEscaper(text).escape()


def escape_literal(text: str) -> str:
    """Escape every special character and backslash, with no markup left."""

    if not text:
        return ""
    return _ESCAPE_RE.sub(r"\\\1", text)


def trim_dangling_escape(text: str) -> str:
    """Drop a final backslash left without the character it escaped.

    Truncating escaped text can cut between ``\\`` and the character it
    protects; the Bot API rejects the lone backslash.
    """

    match = _TRAILING_BACKSLASHES.search(text)
    if match and len(match.group(0)) % 2:
        return text[:-1]
    return text


def strip_markdown(text: str) -> str:
    """Drop markup syntax: links collapse to their label, ``*``, ``_``, ``~`` and backticks go."""

    if not text:
        return ""
    return _STRIP_RE.sub("", _LINK_RE.sub(r"\1", text))


__all__ = [
    "FENCE",
    "MarkupEscaper",
    "SPECIAL_CHARS",
    "TokenizerState",
    "escape_literal",
    "escape_markdown_v2",
    "strip_markdown",
    "trim_dangling_escape",
]
