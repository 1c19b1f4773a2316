import pytest

from tgsafe.config import FormattingOptions
from tgsafe.formatting import telegram
from tgsafe.formatting.pipeline import FormatPipeline, FormatResult
from tgsafe.logging_setup import NullLogger


class _RecordingLogger:
    def __init__(self) -> None:
        self.infos = []
        self.errors = []

    def info(self, msg, *args, **kwargs):
        self.infos.append(msg)

    def error(self, msg, *args, **kwargs):
        self.errors.append(msg)


def test_default_options_escape_markdown() -> None:
    result = FormatPipeline().format("Hello, World!")
    assert result == FormatResult(text=r"Hello, World\!", effective_markup_tag="MarkdownV2")


def test_prefix_and_suffix_are_applied_before_escaping() -> None:
    pipeline = FormatPipeline(prefix="[TEST] ", suffix="\n--\nSent")
    plain = pipeline.format("msg", FormattingOptions(escape_markdown=False))
    assert plain.text == "[TEST] msg\n--\nSent"
    assert plain.effective_markup_tag is None

    escaped = pipeline.format("msg", FormattingOptions())
    assert escaped.text == "[TEST] msg\n\\-\\-\nSent"


def test_html_mode() -> None:
    options = FormattingOptions(escape_markdown=False, escape_html=True)
    result = FormatPipeline().format("<b>a & b</b>", options)
    assert result.text == "&lt;b&gt;a &amp; b&lt;/b&gt;"
    assert result.effective_markup_tag == "HTML"


def test_strip_markdown_option() -> None:
    options = FormattingOptions(escape_markdown=False, strip_markdown=True)
    result = FormatPipeline().format("*Title* see [docs](https://a.io)", options)
    assert result.text == "Title see docs"
    assert result.effective_markup_tag is None


def test_obfuscated_email_is_escaped_once() -> None:
    options = FormattingOptions(obfuscate_emails=True)
    result = FormatPipeline().format("Contact: john.doe@example.com", options)
    assert result.text == r"Contact: joh\.\.\.e@example\.com"


def test_obfuscated_email_with_underscore_does_not_open_italic() -> None:
    options = FormattingOptions(obfuscate_emails=True)
    result = FormatPipeline().format("first_last@example.com", options)
    assert result.text == r"fir\.\.\.t@example\.com"


def test_obfuscated_email_plain() -> None:
    options = FormattingOptions(escape_markdown=False, obfuscate_emails=True)
    result = FormatPipeline().format("Contact: john.doe@example.com", options)
    assert result.text == "Contact: joh...e@example.com"


def test_truncate_runs_last() -> None:
    options = FormattingOptions(escape_markdown=False, truncate=20)
    result = FormatPipeline().format("This is a very long message that should be truncated", options)
    assert result.text == "This is a very long "
    assert len(result.text) == 20


def test_truncate_none_keeps_everything() -> None:
    text = "x" * 5000
    assert FormatPipeline().format(text, FormattingOptions(truncate=None)).text == text
    assert len(FormatPipeline().format(text).text) == 4096


def test_none_text_becomes_empty() -> None:
    assert FormatPipeline().format(None).text == ""


def test_formatting_error_falls_back_to_stripped_plain_text(monkeypatch) -> None:
    monkeypatch.setattr(telegram, "_MAX_SAVED", 0)
    diagnostics = _RecordingLogger()
    result = FormatPipeline(diagnostics=diagnostics).format("*Bold* and `code` here.")
    assert result.text == "Bold and code here."
    assert result.effective_markup_tag is None
    assert result.recovered is True
    assert len(diagnostics.errors) == 1
    assert "Falling back to plain text" in diagnostics.errors[0]


def test_missing_logger_does_not_change_output(monkeypatch) -> None:
    monkeypatch.setattr(telegram, "_MAX_SAVED", 0)
    quiet = FormatPipeline(diagnostics=NullLogger()).format("see `x` now")
    loud = FormatPipeline(diagnostics=_RecordingLogger()).format("see `x` now")
    assert quiet == loud


def test_recovery_logs_through_module_logger_by_default(monkeypatch, caplog) -> None:
    monkeypatch.setattr(telegram, "_MAX_SAVED", 0)
    with caplog.at_level("ERROR", logger="tgsafe.formatting.pipeline"):
        FormatPipeline().format("`x`")
    assert "Markdown formatting failed" in caplog.text


@pytest.mark.parametrize(
    "options, tag",
    [
        (FormattingOptions(), "MarkdownV2"),
        (FormattingOptions(escape_markdown=False, escape_html=True), "HTML"),
        (FormattingOptions(escape_markdown=False), None),
    ],
)
def test_effective_markup_tag_follows_options(options, tag) -> None:
    assert FormatPipeline().format("x", options).effective_markup_tag == tag


def test_obfuscated_email_inside_code_is_not_escaped() -> None:
    options = FormattingOptions(obfuscate_emails=True)
    result = FormatPipeline().format("mail `john.doe@example.com` or jane.roe@example.org", options)
    assert result.text == r"mail `joh...e@example.com` or jan\.\.\.e@example\.org"


def test_obfuscated_email_inside_fenced_block_is_not_escaped() -> None:
    options = FormattingOptions(obfuscate_emails=True)
    result = FormatPipeline().format("```\nto: john.doe@example.com\n```", options)
    assert result.text == "```\nto: joh...e@example.com\n```"


@pytest.mark.parametrize(
    "text, limit, expected",
    [
        ("a.b", 2, "a"),
        ("a.b", 3, r"a\."),
        (r"x\.", 2, "x"),
    ],
)
def test_truncation_never_leaves_dangling_escape(text, limit, expected) -> None:
    result = FormatPipeline().format(text, FormattingOptions(truncate=limit))
    assert result.text == expected
    assert len(result.text) <= limit


def test_plain_text_keeps_trailing_backslash() -> None:
    options = FormattingOptions(escape_markdown=False, truncate=3)
    assert FormatPipeline().format("C:\\temp", options).text == "C:\\"
