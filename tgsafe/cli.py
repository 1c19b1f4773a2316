"""Command line entry point: ``python -m tgsafe {format,send} ...``."""

from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, Optional, Sequence

from . import config as _config
from . import jobs, publisher
from .errors import ConfigError, SendFailure
from .logging_setup import setup_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tgsafe",
        description="Escape text for Telegram MarkdownV2 and deliver it with fallbacks",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def _add_text_args(cmd: argparse.ArgumentParser) -> None:
        src = cmd.add_mutually_exclusive_group(required=True)
        src.add_argument("text", nargs="?", help="Message text")
        src.add_argument("--file", type=str, help="Read the message from a UTF-8 file")
        cmd.add_argument("--obfuscate-emails", action="store_true", help="Redact email addresses")
        cmd.add_argument("--truncate", type=int, default=None, help="Maximum length in characters")

    fmt = sub.add_parser("format", help="Print the escaped text")
    _add_text_args(fmt)
    fmt.add_argument("--html", action="store_true", help="Escape for HTML instead of MarkdownV2")
    fmt.add_argument("--no-markdown", action="store_true", help="Skip MarkdownV2 escaping")

    send = sub.add_parser("send", help="Send the text via the Bot API")
    _add_text_args(send)
    send.add_argument("--chat-id", type=str, default=None, help="Override TELEGRAM_CHAT_ID")
    send.add_argument(
        "--parse-mode",
        choices=["MarkdownV2", "HTML", "none"],
        default=None,
        help="Starting parse mode (default: TELEGRAM_PARSE_MODE)",
    )
    return parser


def _read_text(args: argparse.Namespace) -> str:
    if args.file:
        with open(args.file, "r", encoding="utf-8") as fh:
            return fh.read()
    return args.text


def _formatting_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.obfuscate_emails:
        overrides["obfuscate_emails"] = True
    if args.truncate is not None:
        overrides["truncate"] = args.truncate
    return overrides


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        cfg = _config.load_all()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    setup_logging(cfg.log, secrets=[cfg.telegram.bot_token])

    try:
        text = _read_text(args)
    except OSError as exc:
        print(f"Cannot read {args.file}: {exc}", file=sys.stderr)
        return 2

    overrides = _formatting_overrides(args)
    try:
        if args.command == "format":
            if args.html:
                overrides.update(escape_html=True, escape_markdown=False)
            elif args.no_markdown:
                overrides["escape_markdown"] = False
            result = publisher.format_text(cfg, text, overrides)
            if result.recovered:
                print("parse_mode: none (markup stripped)", file=sys.stderr)
            print(result.text)
            return 0

        options: Dict[str, Any] = {"formatting": overrides}
        if args.chat_id:
            options["chat_id"] = args.chat_id
        if args.parse_mode:
            options["parse_mode"] = None if args.parse_mode == "none" else args.parse_mode
        result = publisher.send_message(cfg, text, **options)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except SendFailure as exc:
        print(f"Delivery failed: {exc}", file=sys.stderr)
        return 1

    if result is None:
        print(f"queued on {cfg.delivery.queue}")
        jobs.shutdown_when_drained()
    else:
        print(f"sent as {result.tier.label} (message_id={result.response.message_id})")
    return 0


__all__ = ["main"]
