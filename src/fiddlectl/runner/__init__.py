"""Execution bridge between fiddles and an external runner."""

from .command import CommandRunnerBridge, build_runner_command
from .models import OutputEntry, OutputObserver, RunnerBridge, RunResult

__all__ = [
    "build_runner_command",
    "CommandRunnerBridge",
    "OutputEntry",
    "OutputObserver",
    "RunnerBridge",
    "RunResult",
]
