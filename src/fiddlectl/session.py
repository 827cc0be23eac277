"""Fiddle session: serves open/version/channel/run/bisect requests from the message bus."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Callable, Iterable
from pathlib import Path

from fiddlectl.bisection import BisectController
from fiddlectl.config import AppConfig
from fiddlectl.errors import FiddleError
from fiddlectl.gists import GistInfo, fetch_gist
from fiddlectl.messaging import Channel, MessageBus
from fiddlectl.runner import CommandRunnerBridge, OutputEntry, RunnerBridge, RunResult
from fiddlectl.templates.cache import TemplateCache
from fiddlectl.templates.reader import EDITOR_FILES, TemplateEntry, read_fiddle
from fiddlectl.versions.catalog import VersionCatalog, load_catalog
from fiddlectl.versions.models import ReleaseChannel, Version, VersionSource
from fiddlectl.versions.normalize import require_version

logger = py_logging.getLogger(__name__)

GistLoader = Callable[[str], TemplateEntry]


class FiddleSession:
    def __init__(
        self,
        bus: MessageBus,
        *,
        catalog: VersionCatalog,
        templates: TemplateCache,
        runner: RunnerBridge,
        gist_loader: GistLoader | None = None,
    ) -> None:
        self.bus = bus
        self.catalog = catalog
        self.templates = templates
        self.runner = runner
        self.bisector = BisectController(runner, catalog, on_output=self.emit_output)
        self._gist_loader = gist_loader or fetch_gist
        self._lock = asyncio.Lock()
        self._unsubscribers: list[Callable[[], None]] = []
        self.fiddle: TemplateEntry | None = None
        self.fiddle_source = ""
        self.version: Version | None = None

    def attach(self) -> None:
        handlers = {
            Channel.OPEN_FIDDLE: self._serial(self.open_fiddle),
            Channel.LOAD_GIST: self._serial(self.load_gist),
            Channel.SET_VERSION: self._serial(self.set_version),
            Channel.SHOW_CHANNELS: self.show_channels,
            Channel.HIDE_CHANNELS: self.hide_channels,
            Channel.RUN_FIDDLE: self._serial(self.run_fiddle),
            Channel.BISECT_FIDDLE: self._serial(self.bisect_fiddle),
        }
        for channel, handler in handlers.items():
            self._unsubscribers.append(self.bus.on(channel, handler))

    def detach(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()

    def _serial(self, handler: Callable[..., object]) -> Callable[[object], object]:
        # requests are served in send order, one at a time
        async def wrapper(payload: object) -> None:
            async with self._lock:
                await handler(payload)

        return wrapper

    def emit_output(self, entry: OutputEntry) -> None:
        self.bus.send(Channel.OUTPUT_ENTRY, entry)

    async def open_fiddle(self, paths: list[str]) -> None:
        source = paths[0] if paths else ""
        try:
            self.fiddle = await asyncio.to_thread(read_fiddle, Path(source).expanduser())
        except (FiddleError, OSError) as exc:
            logger.error("Could not open fiddle path=%s error=%s", source, exc)
            self.bus.send(Channel.COMMAND_DONE, False)
            return
        self.fiddle_source = source
        logger.info("Opened fiddle path=%s", source)
        self.bus.send(Channel.COMMAND_DONE, True)

    async def load_gist(self, info: GistInfo) -> None:
        try:
            self.fiddle = await asyncio.to_thread(self._gist_loader, info.id)
        except FiddleError as exc:
            logger.error("Could not load gist id=%s error=%s", info.id, exc)
            self.bus.send(Channel.COMMAND_DONE, False)
            return
        self.fiddle_source = f"gist:{info.id}"
        logger.info("Loaded gist id=%s", info.id)
        self.bus.send(Channel.COMMAND_DONE, True)

    async def set_version(self, text: str) -> None:
        version = require_version(text)
        known = self.catalog.find(str(version))
        if known is None:
            logger.warning("Version %s is not in the release list; treating it as a local build", version)
            version = Version(version.major, version.minor, version.patch, version.prerelease, VersionSource.LOCAL)
        else:
            version = known

        previous = self.version
        follows_template = self.fiddle is None or (
            not self.fiddle_source and await self.is_fiddle_unchanged(previous)
        )
        self.version = version
        if follows_template:
            self.fiddle = await self.templates.get_template(version)
        logger.info("Selected version %s", version)

    def show_channels(self, channels: Iterable[ReleaseChannel]) -> None:
        self.catalog.show_channels(channels)

    def hide_channels(self, channels: Iterable[ReleaseChannel]) -> None:
        self.catalog.hide_channels(channels)

    async def is_content_unchanged(self, name: str, version: Version | None = None) -> bool:
        if self.fiddle is None:
            return False
        return self.fiddle.get(name, "") == await self.templates.get_content(name, version)

    async def is_fiddle_unchanged(self, version: Version | None = None) -> bool:
        for name in EDITOR_FILES:
            if not await self.is_content_unchanged(name, version):
                return False
        return True

    async def current_fiddle(self) -> TemplateEntry:
        if self.fiddle is None:
            self.fiddle = await self.templates.get_template(self.version)
        return self.fiddle

    def current_version(self) -> Version | None:
        if self.version is not None:
            return self.version
        stable = [item for item in self.catalog.versions if item.channel is ReleaseChannel.STABLE]
        return stable[-1] if stable else None

    async def run_fiddle(self, _: object = None) -> None:
        version = self.current_version()
        if version is None:
            logger.error("No version selected and no known releases to fall back on")
            self.bus.send(Channel.RUN_DONE, RunResult.INVALID)
            return
        fiddle = await self.current_fiddle()
        result = await self.runner.submit_run(version, fiddle, on_output=self.emit_output)
        logger.info("Run finished version=%s result=%s", version, result.value)
        self.bus.send(Channel.RUN_DONE, result)

    async def bisect_fiddle(self, bounds: tuple[Version, Version]) -> None:
        good, bad = bounds
        fiddle = await self.current_fiddle()
        result = await self.bisector.bisect(good, bad, fiddle)
        self.bus.send(Channel.BISECT_DONE, result)


async def build_session(bus: MessageBus, config: AppConfig) -> FiddleSession:
    visible = []
    if config.show_betas:
        visible.append(ReleaseChannel.BETA)
    if config.show_nightlies:
        visible.append(ReleaseChannel.NIGHTLY)
    catalog = await asyncio.to_thread(
        lambda: load_catalog(
            releases_url=config.releases_url,
            cache_path=config.releases_cache_path,
            local_versions=config.local_versions,
            visible_channels=visible,
            refresh=config.refresh_releases,
        )
    )
    templates = TemplateCache(
        catalog,
        templates_dir=config.templates_dir,
        static_template_dir=config.static_template_dir,
        archive_url=config.template_archive_url,
    )
    session = FiddleSession(
        bus,
        catalog=catalog,
        templates=templates,
        runner=CommandRunnerBridge(config.runner_command),
        gist_loader=lambda gist_id: fetch_gist(gist_id, token=config.github_token),
    )
    session.attach()
    return session
