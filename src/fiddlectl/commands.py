"""Command table: turns CLI invocations into session requests and exit codes."""

from __future__ import annotations

import argparse
import logging as py_logging
import re
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TextIO

from fiddlectl.bisection import BisectResult
from fiddlectl.errors import ExitCode, FiddleError
from fiddlectl.gists import GistInfo
from fiddlectl.messaging import Channel, MessageBus
from fiddlectl.runner import OutputEntry, RunResult
from fiddlectl.versions.models import ReleaseChannel
from fiddlectl.versions.normalize import require_version

logger = py_logging.getLogger(__name__)

GIST_URL_PREFIX = "https://gist.github.com"
_GIST_ID_PATTERN = re.compile(r"[0-9A-Fa-f]{32}")

CommandHandler = Callable[[argparse.Namespace], Awaitable[int]]


def extract_gist_id(source: str) -> str | None:
    """Return the gist id in a bare id or a gist URL; ``None`` when there is none.

    Handles ``https://gist.github.com/<user>/<id>``, ``https://gist.github.com/<id>``
    (each with or without one trailing slash) and a bare ``<id>``.

    The last path segment must be exactly 32 hex characters. A segment that
    merely contains such a run (``<id>.git``, ``<id>#file-main-js``) is
    rejected rather than trimmed to the id.
    """
    candidate = source.strip()
    if candidate.startswith(GIST_URL_PREFIX):
        if candidate.endswith("/"):
            candidate = candidate[:-1]
        candidate = candidate.split("/")[-1]
    if candidate and _GIST_ID_PATTERN.fullmatch(candidate):
        return candidate
    return None


def requested_channels(namespace: argparse.Namespace, *, enabled: bool) -> list[ReleaseChannel]:
    channels = []
    if getattr(namespace, "betas", None) is enabled:
        channels.append(ReleaseChannel.BETA)
    if getattr(namespace, "nightlies", None) is enabled:
        channels.append(ReleaseChannel.NIGHTLY)
    return channels


class CommandDispatcher:
    def __init__(
        self,
        bus: MessageBus,
        *,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self.bus = bus
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.commands: dict[str, CommandHandler] = {
            "open": self.open,
            "test": self.test,
            "bisect": self.bisect,
        }

    async def dispatch(self, namespace: argparse.Namespace) -> int:
        handler = self.commands.get(namespace.command)
        if handler is None:
            raise FiddleError(
                f"Unknown command: {namespace.command}",
                code=ExitCode.INVALID_ARGS,
                hint=f"Use one of: {', '.join(sorted(self.commands))}.",
            )
        logger.debug("Dispatching command=%s", namespace.command)
        return await handler(namespace)

    def _print(self, text: str) -> None:
        print(text, file=self.out, flush=True)

    def _print_entry(self, entry: OutputEntry) -> None:
        self._print(entry.format())

    async def _request(self, request: Channel, payload: object, done: Channel) -> object:
        waiter = self.bus.once(done)
        self.bus.send(request, payload)
        return await waiter

    async def _open_fiddle(self, source: str) -> bool:
        self._print(f"Loading {source}")
        return bool(await self._request(Channel.OPEN_FIDDLE, [source], Channel.COMMAND_DONE))

    async def _load_gist(self, gist_id: str) -> bool:
        self._print(f"Loading gist {gist_id}")
        info = GistInfo(id=gist_id, confirmed=True)
        return bool(await self._request(Channel.LOAD_GIST, info, Channel.COMMAND_DONE))

    def _apply_channels(self, namespace: argparse.Namespace) -> None:
        hidden = requested_channels(namespace, enabled=False)
        if hidden:
            self._print(f"Hiding {', '.join(item.value for item in hidden)}")
            self.bus.send(Channel.HIDE_CHANNELS, hidden)
        shown = requested_channels(namespace, enabled=True)
        if shown:
            self._print(f"Showing {', '.join(item.value for item in shown)}")
            self.bus.send(Channel.SHOW_CHANNELS, shown)

    def _log_done(self, name: str, success: bool) -> None:
        self._print(f"command {'succeeded' if success else 'failed'}: {name}")

    async def open(self, namespace: argparse.Namespace) -> int:
        source: str = namespace.source
        if Path(source).expanduser().exists():
            success = await self._open_fiddle(source)
            self._log_done(f'open fiddle "{source}"', success)
            return int(ExitCode.SUCCESS if success else ExitCode.FAILURE)

        gist_id = extract_gist_id(source)
        if gist_id is None:
            logger.debug("Ignoring unrecognized open target: %s", source)
            return int(ExitCode.SUCCESS)

        success = await self._load_gist(gist_id)
        self._log_done(f'open gist "{gist_id}"', success)
        return int(ExitCode.SUCCESS)

    async def test(self, namespace: argparse.Namespace) -> int:
        version = require_version(namespace.version) if namespace.version else None
        fiddle = namespace.fiddle or str(Path.cwd())
        if not await self._open_fiddle(fiddle):
            self._log_done(f'open fiddle "{fiddle}"', False)
            return int(ExitCode.FAILURE)
        if version is not None:
            self._print(f"Setting version {version}")
            self.bus.send(Channel.SET_VERSION, str(version))

        unsubscribe = self.bus.on(Channel.OUTPUT_ENTRY, self._print_entry)
        try:
            result = await self._request(Channel.RUN_FIDDLE, None, Channel.RUN_DONE)
        finally:
            unsubscribe()

        self._print(f"Result: {result.value if isinstance(result, RunResult) else result}")
        return int(ExitCode.SUCCESS if result is RunResult.SUCCESS else ExitCode.FAILURE)

    async def bisect(self, namespace: argparse.Namespace) -> int:
        good = require_version(namespace.good_version)
        bad = require_version(namespace.bad_version)
        if good > bad:
            good, bad = bad, good
            print(f"Swapping so that {good} comes before {bad}", file=self.err, flush=True)

        self._apply_channels(namespace)
        if namespace.fiddle_gist:
            gist_id = extract_gist_id(namespace.fiddle_gist)
            if gist_id is None:
                raise FiddleError(
                    f"Invalid gist: {namespace.fiddle_gist}",
                    code=ExitCode.INVALID_ARGS,
                    hint="Pass a 32-character gist id or a gist URL.",
                )
            loaded = await self._load_gist(gist_id)
        else:
            loaded = await self._open_fiddle(namespace.fiddle_dir or str(Path.cwd()))
        if not loaded:
            self._print("command failed: could not load the fiddle")
            return int(ExitCode.FAILURE)

        unsubscribe = self.bus.on(Channel.OUTPUT_ENTRY, self._print_entry)
        try:
            result = await self._request(Channel.BISECT_FIDDLE, (good, bad), Channel.BISECT_DONE)
        finally:
            unsubscribe()

        if not isinstance(result, BisectResult):
            raise FiddleError(
                f"Bisect returned an unexpected result: {result!r}",
                code=ExitCode.RUNTIME_ERROR,
            )
        if result.resolved:
            self._print(
                f"Bisect done after {len(result.steps)} runs: "
                f"{result.good_version} is good, {result.bad_version} is the first bad version"
            )
            return int(ExitCode.SUCCESS)
        self._print(f"Bisect could not find a boundary after {len(result.steps)} runs")
        return int(ExitCode.FAILURE)
