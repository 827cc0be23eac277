"""Runner bridge backed by an external, user-configured command."""

from __future__ import annotations

import asyncio
import logging as py_logging
import shlex
import tempfile
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from fiddlectl.errors import RunnerUnavailableError
from fiddlectl.runner.models import OutputEntry, OutputObserver, RunResult
from fiddlectl.templates.reader import write_fiddle
from fiddlectl.versions.models import Version

logger = py_logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


def build_runner_command(template: Sequence[str], *, version: Version, fiddle_dir: Path) -> list[str]:
    if not template:
        raise RunnerUnavailableError(
            "No runner command is configured.",
            hint='Set runner_command in config.toml, e.g. ["fiddle-runner", "{version}", "{fiddle}"].',
        )
    return [part.replace("{version}", str(version)).replace("{fiddle}", str(fiddle_dir)) for part in template]


async def _forward_lines(stream: asyncio.StreamReader | None, emit: Callable[[str], None]) -> None:
    # chunked reads; StreamReader.readline() fails on lines longer than its limit
    if stream is None:
        return
    pending = b""
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        *lines, pending = (pending + chunk).split(b"\n")
        for raw in lines:
            _emit_line(raw, emit)
    _emit_line(pending, emit)


def _emit_line(raw: bytes, emit: Callable[[str], None]) -> None:
    line = raw.decode("utf-8", errors="replace").rstrip()
    if line:
        emit(line)


class CommandRunnerBridge:
    """Write the fiddle to a scratch folder and hand it to the runner command.

    Exit status 0 is a success, any other status a failure. Output lines are
    forwarded as they are produced.
    """

    def __init__(self, command: Sequence[str], *, env: Mapping[str, str] | None = None) -> None:
        self.command = list(command)
        self.env = dict(env) if env is not None else None

    async def submit_run(
        self,
        version: Version,
        fiddle: Mapping[str, str],
        *,
        on_output: OutputObserver | None = None,
    ) -> RunResult:
        def emit(text: str) -> None:
            if on_output is not None:
                on_output(OutputEntry(text))

        with tempfile.TemporaryDirectory(prefix="fiddlectl-") as scratch:
            folder = write_fiddle(fiddle, Path(scratch) / "fiddle")
            argv = build_runner_command(self.command, version=version, fiddle_dir=folder)
            logger.debug("Starting runner command=%s", shlex.join(argv))
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                    env=self.env,
                )
            except OSError as exc:
                logger.error("Runner could not be started command=%s error=%s", argv[0], exc)
                raise RunnerUnavailableError(
                    f"Runner could not be started: {argv[0]}",
                    hint=str(exc) or "Check runner_command in config.toml.",
                ) from exc

            emit(f"Runtime v{version} started.")
            try:
                await _forward_lines(process.stdout, emit)
                returncode = await process.wait()
            finally:
                if process.returncode is None:
                    logger.warning("Stopping runner pid=%s", process.pid)
                    process.kill()
                    await process.wait()

        emit(f"Runtime v{version} exited with code {returncode}.")
        logger.debug("Runner finished version=%s returncode=%s", version, returncode)
        return RunResult.SUCCESS if returncode == 0 else RunResult.FAILURE
