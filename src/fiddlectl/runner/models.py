"""Runner request/result domain models."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from fiddlectl.versions.models import Version


class RunResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    INVALID = "invalid"


@dataclass(frozen=True)
class OutputEntry:
    text: str
    timestamp: float = field(default_factory=time.time)

    def format(self) -> str:
        clock = time.strftime("%H:%M:%S", time.localtime(self.timestamp))
        return f"[{clock}] {self.text}"


OutputObserver = Callable[[OutputEntry], None]


class RunnerBridge(Protocol):
    async def submit_run(
        self,
        version: Version,
        fiddle: Mapping[str, str],
        *,
        on_output: OutputObserver | None = None,
    ) -> RunResult: ...
