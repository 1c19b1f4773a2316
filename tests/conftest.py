import logging

import pytest

import tgsafe
from tgsafe import jobs

_ENV_VARS = (
    "TELEGRAM_BOT_TOKEN",
    "BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
    "CHAT_ID",
    "TELEGRAM_PARSE_MODE",
    "PARSE_MODE",
    "TELEGRAM_DISABLE_WEB_PAGE_PREVIEW",
    "MESSAGE_PREFIX",
    "MESSAGE_SUFFIX",
    "FORMAT_ESCAPE_MARKDOWN",
    "FORMAT_OBFUSCATE_EMAILS",
    "FORMAT_ESCAPE_HTML",
    "FORMAT_TRUNCATE",
    "HTTP_TIMEOUT",
    "HTTP_RETRY_TOTAL",
    "HTTP_BACKOFF",
    "DELIVER_ASYNC",
    "DELIVER_QUEUE",
    "LOG_LEVEL",
    "LOG_JSON",
)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    tgsafe.reset()
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    jobs.shutdown(timeout=1.0)
    tgsafe.reset()
    root.handlers[:] = handlers
    root.setLevel(level)
