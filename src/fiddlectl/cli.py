"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from .commands import CommandDispatcher
from .config import AppConfig, load_config
from .errors import ExitCode, FiddleError, user_facing_error
from .logging import configure_logging, default_log_path, normalize_level
from .messaging import MessageBus
from .session import FiddleSession, build_session

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")

SessionFactory = Callable[[MessageBus, AppConfig], Awaitable[FiddleSession]]

_EXAMPLES = """
Example calls:
  $ fiddlectl open /path/to/fiddle
  $ fiddlectl open https://gist.github.com/ckerr/af3e1a018f5dcce4a2ff40004ef5bab5
  $ fiddlectl open af3e1a018f5dcce4a2ff40004ef5bab5

  $ fiddlectl test --fiddle /path/to/fiddle --version 11.2.0

  $ fiddlectl bisect 10.0.0 11.2.0 --fiddle-dir /path/to/fiddle
  $ fiddlectl bisect 10.0.0 11.2.0 --fiddle-dir /path/to/fiddle --betas --nightlies
"""


def _log_level_type(value: str) -> str:
    normalized = normalize_level(value)
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fiddlectl",
        epilog=_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument("--log-level", type=_log_level_type, default="WARN")
    parser.add_argument("--log-file", type=Path, default=None)
    subcommands = parser.add_subparsers(dest="command", required=True)

    open_parser = subcommands.add_parser("open", help="Open a fiddle from a local directory or a gist")
    open_parser.add_argument("source", metavar="path-or-url")

    bisect_parser = subcommands.add_parser("bisect", help="Find where regressions were introduced")
    bisect_parser.add_argument("good_version", metavar="goodVersion")
    bisect_parser.add_argument("bad_version", metavar="badVersion")
    bisect_parser.add_argument(
        "--fiddle-dir",
        "--fiddle",
        dest="fiddle_dir",
        default=None,
        help="Load fiddle from a local directory (default: current directory)",
    )
    bisect_parser.add_argument("--fiddle-gist", default=None, help="Load fiddle from a remote gist")
    bisect_parser.add_argument(
        "--betas",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include or omit beta releases",
    )
    bisect_parser.add_argument(
        "--nightlies",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include or omit nightly releases",
    )

    test_parser = subcommands.add_parser("test", help="Test a fiddle")
    test_parser.add_argument("--version", default=None, help="Use runtime version")
    test_parser.add_argument("--fiddle", default=None, help="Fiddle source (default: current directory)")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


async def run_command(
    namespace: argparse.Namespace,
    config: AppConfig,
    *,
    session_factory: SessionFactory = build_session,
    dispatcher_factory: Callable[[MessageBus], CommandDispatcher] = CommandDispatcher,
) -> int:
    bus = MessageBus()
    session = await session_factory(bus, config)
    try:
        return await dispatcher_factory(bus).dispatch(namespace)
    finally:
        session.detach()


def main(
    argv: Sequence[str] | None = None,
    *,
    session_factory: SessionFactory | None = None,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=namespace.log_level, log_file=log_path)

    try:
        config = load_config(namespace.config)
        logger.debug("Starting command=%s", namespace.command)
        return asyncio.run(
            run_command(namespace, config, session_factory=session_factory or build_session)
        )
    except FiddleError as exc:
        logger.error(
            "Handled FiddleError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=namespace.log_level == "DEBUG",
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        hint = f"Inspect logs: {log_path}"
        print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
