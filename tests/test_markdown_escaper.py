import pytest

from tgsafe.errors import FormattingError
from tgsafe.formatting import telegram
from tgsafe.formatting.telegram import (
    SPECIAL_CHARS,
    MarkupEscaper,
    TokenizerState,
    escape_literal,
    escape_markdown_v2,
    strip_markdown,
)


@pytest.mark.parametrize(
    "source",
    [
        "",
        "plain",
        "Plain text, 123? yes: 'quoted' @ $ % ^ & / ;",
        "Привет, мир 🚀",
    ],
)
def test_text_without_special_chars_is_unchanged(source: str) -> None:
    assert escape_markdown_v2(source) == source


@pytest.mark.parametrize(
    "source, expected",
    [
        ("Hello, World!", r"Hello, World\!"),
        ("a > b # c + d - e = f | g", r"a \> b \# c \+ d \- e \= f \| g"),
        ("{x} ~y~ (z) 1.5", r"\{x\} \~y\~ \(z\) 1\.5"),
        ("stray ]", r"stray \]"),
    ],
)
def test_literal_special_chars_are_escaped_once(source: str, expected: str) -> None:
    assert escape_markdown_v2(source) == expected


def test_inline_code_content_is_verbatim() -> None:
    assert escape_markdown_v2("Code: `var x = 10;`") == "Code: `var x = 10;`"
    text = 'Code with special: `var x = "Hello, world!";`'
    assert escape_markdown_v2(text) == text


def test_inline_code_keeps_escape_pairs() -> None:
    text = "`a\\`b` done"
    assert escape_markdown_v2(text) == "`a\\`b` done"


def test_fenced_code_block_is_verbatim() -> None:
    text = "```ruby\ndef f\nend\n```"
    assert escape_markdown_v2(text) == text


def test_fenced_code_with_special_chars_then_prose() -> None:
    text = "```python\nprint(a.b - c!)\n```\nDone."
    assert escape_markdown_v2(text) == "```python\nprint(a.b - c!)\n```\nDone\\."


def test_unterminated_fence_gets_no_closing_fence() -> None:
    text = "```\ncode *x*"
    assert escape_markdown_v2(text) == text


def test_unterminated_inline_code_stays_open() -> None:
    assert escape_markdown_v2("`open code.") == "`open code."


def test_complete_link_escapes_url_without_parentheses() -> None:
    source = "[site](https://example.com/search?q=test&filter=123)"
    assert escape_markdown_v2(source) == r"[site](https://example\.com/search?q\=test&filter\=123)"


def test_complete_link_escapes_label_with_full_set() -> None:
    assert escape_markdown_v2("[v1.2 - notes!](https://ex.com)") == r"[v1\.2 \- notes\!](https://ex\.com)"


@pytest.mark.parametrize(
    "source, expected",
    [
        ("This is *bold* text", "This is *bold* text"),
        ("This is _italic_ text", "This is _italic_ text"),
        ("*Bold* and _italic_", "*Bold* and _italic_"),
        ("This is *bold with _italic_ inside*", r"This is *bold with \_italic\_ inside*"),
        ("_a*b_", r"_a\*b_"),
        ("*Done.*", r"*Done\.*"),
    ],
)
def test_emphasis(source: str, expected: str) -> None:
    assert escape_markdown_v2(source) == expected


@pytest.mark.parametrize(
    "source, expected",
    [
        ("Complex *bold with `code` and _italic_* mixed", r"Complex *bold with \`code\` and \_italic\_* mixed"),
        ("*a `b.c` d*", r"*a \`b\.c\` d*"),
        ("_x ```y``` z_", r"_x \`\`\`y\`\`\` z_"),
    ],
)
def test_backtick_inside_emphasis_is_escaped(source: str, expected: str) -> None:
    assert escape_markdown_v2(source) == expected


def test_code_after_bold_closes_is_verbatim() -> None:
    assert escape_markdown_v2("*done* `a.b`") == "*done* `a.b`"


def test_link_inside_bold_resumes_bold() -> None:
    assert escape_markdown_v2("*see [docs](https://a.io) now*") == r"*see [docs](https://a\.io) now*"


def test_unfinished_link_inside_bold_resumes_bold() -> None:
    assert escape_markdown_v2("*see [x] then.*") == r"*see [x] then\.*"


@pytest.mark.parametrize(
    "source, expected",
    [
        ("*unclosed bold", "*unclosed bold*"),
        ("_open", "_open_"),
        ("[broken link", "[broken link]"),
        ("[a.b", "[a.b]"),
        ("[text](http://x.y", r"[text](http://x\.y)"),
        ("*bold [tail", "*bold [tail]*"),
    ],
)
def test_open_contexts_are_closed_at_end(source: str, expected: str) -> None:
    assert escape_markdown_v2(source) == expected


def test_bracket_without_url_returns_to_normal() -> None:
    assert escape_markdown_v2("[a] b.") == r"[a] b\."


def test_backslash_before_special_char_is_doubled() -> None:
    assert escape_markdown_v2("\\.") == "\\\\."
    assert escape_markdown_v2("wait\\!") == "wait\\\\!"


def test_backslash_before_plain_char_is_copied() -> None:
    assert escape_markdown_v2(r"C:\temp") == r"C:\temp"


def test_escaping_is_not_idempotent() -> None:
    once = escape_markdown_v2("a.b")
    assert once == r"a\.b"
    assert escape_markdown_v2(once) == r"a\\.b"
    assert escape_markdown_v2(once) != once


def test_escaper_instance_reports_final_state() -> None:
    escaper = MarkupEscaper("```\nunterminated")
    escaper.escape()
    assert escaper.state is TokenizerState.FENCED_CODE
    closed = MarkupEscaper("*x")
    assert closed.escape() == "*x*"
    assert closed.escape() == "*x*"
    assert closed.state is TokenizerState.NORMAL


def test_save_stack_overflow_raises_formatting_error(monkeypatch) -> None:
    monkeypatch.setattr(telegram, "_MAX_SAVED", 0)
    with pytest.raises(FormattingError):
        escape_markdown_v2("see `x`")


def test_escape_literal_escapes_everything() -> None:
    assert escape_literal("a_b.c\\") == "a\\_b\\.c\\\\"
    assert escape_literal(SPECIAL_CHARS) == "".join("\\" + ch for ch in SPECIAL_CHARS)


def test_strip_markdown() -> None:
    assert strip_markdown("[link text](https://example.com)") == "link text"
    assert strip_markdown("*b* _i_ ~s~ `c`") == "b i s c"
    assert strip_markdown("") == ""


def test_escaper_reports_code_span_offsets() -> None:
    escaper = MarkupEscaper("a. `b.c` d ```e")
    out = escaper.escape()
    assert out == r"a\. `b.c` d ```e"
    assert not escaper.in_code(out.index("a"))
    assert escaper.in_code(out.index("b"))
    assert not escaper.in_code(out.index("d"))
    assert escaper.in_code(out.index("e"))
