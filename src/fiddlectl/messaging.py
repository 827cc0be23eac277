"""Typed request/response channel between the command layer and the fiddle session."""

from __future__ import annotations

import asyncio
import inspect
import logging as py_logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from contextlib import suppress
from enum import Enum
from typing import Any

logger = py_logging.getLogger(__name__)


class Channel(str, Enum):
    OPEN_FIDDLE = "open-fiddle"
    LOAD_GIST = "load-gist"
    SET_VERSION = "set-version"
    SHOW_CHANNELS = "show-channels"
    HIDE_CHANNELS = "hide-channels"
    RUN_FIDDLE = "run-fiddle"
    BISECT_FIDDLE = "bisect-fiddle"
    OUTPUT_ENTRY = "output-entry"
    BISECT_DONE = "bisect-done"
    RUN_DONE = "run-done"
    COMMAND_DONE = "command-done"


Listener = Callable[[Any], Awaitable[None] | None]


class MessageBus:
    """In-process pub/sub with resolve-once waiters.

    Coroutine listeners run as tasks. When one of them fails, every pending
    ``once`` waiter receives the exception instead of waiting forever.
    """

    def __init__(self) -> None:
        self._listeners: defaultdict[Channel, list[Listener]] = defaultdict(list)
        self._waiters: set[asyncio.Future[Any]] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    def on(self, channel: Channel, listener: Listener) -> Callable[[], None]:
        self._listeners[channel].append(listener)

        def unsubscribe() -> None:
            self.off(channel, listener)

        return unsubscribe

    def off(self, channel: Channel, listener: Listener) -> None:
        with suppress(ValueError):
            self._listeners[channel].remove(listener)

    def listener_count(self, channel: Channel) -> int:
        return len(self._listeners[channel])

    def once(self, channel: Channel) -> asyncio.Future[Any]:
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def resolve(payload: Any) -> None:
            if not future.done():
                future.set_result(payload)

        def cleanup(_: asyncio.Future[Any]) -> None:
            self.off(channel, resolve)
            self._waiters.discard(future)

        self.on(channel, resolve)
        self._waiters.add(future)
        future.add_done_callback(cleanup)
        return future

    def send(self, channel: Channel, payload: Any = None) -> None:
        listeners = list(self._listeners[channel])
        logger.debug("send channel=%s listeners=%s", channel.value, len(listeners))
        for listener in listeners:
            outcome = listener(payload)
            if inspect.isawaitable(outcome):
                task = asyncio.ensure_future(outcome)
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        logger.debug("Listener task failed: %s", error)
        for waiter in list(self._waiters):
            if not waiter.done():
                waiter.set_exception(error)
