from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import pytest

from fiddlectl.errors import ExitCode, RunnerUnavailableError
from fiddlectl.runner import CommandRunnerBridge, OutputEntry, RunResult, build_runner_command
from fiddlectl.versions.models import Version

FIDDLE = {"main.js": "console.log('fiddle main')"}


def _run(bridge: CommandRunnerBridge) -> tuple[RunResult, list[OutputEntry]]:
    entries: list[OutputEntry] = []
    result = asyncio.run(bridge.submit_run(Version(11, 2, 0), FIDDLE, on_output=entries.append))
    return result, entries


def test_build_runner_command_substitutes_placeholders(tmp_path: Path) -> None:
    argv = build_runner_command(
        ["runner", "--electron={version}", "{fiddle}"],
        version=Version(12, 0, 0, ("beta", "1")),
        fiddle_dir=tmp_path,
    )

    assert argv == ["runner", "--electron=12.0.0-beta.1", str(tmp_path)]


def test_build_runner_command_requires_configuration(tmp_path: Path) -> None:
    with pytest.raises(RunnerUnavailableError) as exc:
        build_runner_command([], version=Version(1, 0, 0), fiddle_dir=tmp_path)

    assert exc.value.code == ExitCode.RUNNER_ERROR


def test_zero_exit_is_success_and_output_is_streamed() -> None:
    bridge = CommandRunnerBridge([sys.executable, "-c", "print('hello from runner')"])

    result, entries = _run(bridge)

    texts = [entry.text for entry in entries]
    assert result is RunResult.SUCCESS
    assert "hello from runner" in texts
    assert texts[0] == "Runtime v11.2.0 started."
    assert texts[-1] == "Runtime v11.2.0 exited with code 0."


def test_runner_receives_the_written_fiddle() -> None:
    script = "import pathlib, sys; print(pathlib.Path(sys.argv[1], 'main.js').read_text())"
    bridge = CommandRunnerBridge([sys.executable, "-c", script, "{fiddle}"])

    result, entries = _run(bridge)

    assert result is RunResult.SUCCESS
    assert "console.log('fiddle main')" in [entry.text for entry in entries]


def test_non_zero_exit_is_failure() -> None:
    bridge = CommandRunnerBridge([sys.executable, "-c", "import sys; print('boom'); sys.exit(3)"])

    result, entries = _run(bridge)

    assert result is RunResult.FAILURE
    assert entries[-1].text.endswith("exited with code 3.")


def test_missing_runner_executable_is_unavailable(tmp_path: Path) -> None:
    bridge = CommandRunnerBridge([str(tmp_path / "no-such-runner")])

    with pytest.raises(RunnerUnavailableError):
        _run(bridge)


def test_output_entry_format_has_clock_prefix() -> None:
    entry = OutputEntry("ready", timestamp=0.0)

    formatted = entry.format()
    assert formatted.endswith("] ready")
    assert formatted.startswith("[")


def test_output_line_longer_than_stream_limit_is_forwarded() -> None:
    script = "print('x' * 70000); print('after long line')"
    bridge = CommandRunnerBridge([sys.executable, "-c", script])

    result, entries = _run(bridge)

    texts = [entry.text for entry in entries]
    assert result is RunResult.SUCCESS
    assert "x" * 70000 in texts
    assert "after long line" in texts


def test_trailing_output_without_newline_is_forwarded() -> None:
    bridge = CommandRunnerBridge([sys.executable, "-c", "import sys; sys.stdout.write('no newline')"])

    result, entries = _run(bridge)

    assert result is RunResult.SUCCESS
    assert "no newline" in [entry.text for entry in entries]


@pytest.mark.skipif(sys.platform == "win32", reason="checks the pid with os.kill")
def test_cancelled_run_stops_the_runner_process() -> None:
    script = "import os, time; print(os.getpid(), flush=True); time.sleep(30)"
    bridge = CommandRunnerBridge([sys.executable, "-c", script])
    pids: list[int] = []

    async def scenario() -> None:
        started = asyncio.Event()

        def observe(entry: OutputEntry) -> None:
            if entry.text.isdigit():
                pids.append(int(entry.text))
                started.set()

        task = asyncio.ensure_future(bridge.submit_run(Version(11, 2, 0), FIDDLE, on_output=observe))
        await asyncio.wait_for(started.wait(), timeout=20)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    with pytest.raises(ProcessLookupError):
        os.kill(pids[0], 0)
