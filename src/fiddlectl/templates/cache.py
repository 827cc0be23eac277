"""Per-branch boilerplate templates with single-flight acquisition and static fallback."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Callable
from pathlib import Path

from fiddlectl.config import DEFAULT_TEMPLATE_ARCHIVE_URL, STATIC_TEMPLATE_DIR
from fiddlectl.errors import FiddleError
from fiddlectl.templates.archive import download_archive, unpack_archive
from fiddlectl.templates.reader import TemplateEntry, freeze, read_fiddle
from fiddlectl.versions.catalog import VersionCatalog
from fiddlectl.versions.models import Version, branch_for
from fiddlectl.versions.normalize import normalize_version, parse_version

logger = py_logging.getLogger(__name__)

TEMPLATE_FOLDER_PREFIX = "electron-quick-start"

ArchiveFetcher = Callable[[str], bytes]
ArchiveUnpacker = Callable[[Path, Path], None]
FiddleReader = Callable[[Path], TemplateEntry]


class TemplateCache:
    """Resolve the template of a runtime branch once and share it with every caller.

    ``get_template`` never raises: download or unpack failures are logged and
    the bundled static template is served instead.
    """

    def __init__(
        self,
        catalog: VersionCatalog,
        *,
        templates_dir: Path,
        static_template_dir: Path = STATIC_TEMPLATE_DIR,
        archive_url: str = DEFAULT_TEMPLATE_ARCHIVE_URL,
        fetcher: ArchiveFetcher | None = None,
        unpacker: ArchiveUnpacker = unpack_archive,
        reader: FiddleReader = read_fiddle,
    ) -> None:
        self._catalog = catalog
        self.templates_dir = templates_dir
        self.static_template_dir = static_template_dir
        self._archive_url = archive_url
        self._fetcher = fetcher or download_archive
        self._unpacker = unpacker
        self._reader = reader
        self._pending: dict[str, asyncio.Future[TemplateEntry]] = {}
        self.acquisitions = 0

    def branch_folder(self, branch: str) -> Path:
        return self.templates_dir / f"{TEMPLATE_FOLDER_PREFIX}-{branch}"

    async def get_template(self, version: Version | str | None = None) -> TemplateEntry:
        parsed = _coerce(version)
        branch = branch_for(parsed)

        # check-and-insert must not suspend, so racing callers share one task
        pending = self._pending.get(branch)
        if pending is None:
            logger.info("Content: %s template loading", branch)
            self.acquisitions += 1
            pending = asyncio.ensure_future(self._acquire(branch, parsed))
            self._pending[branch] = pending
        return await asyncio.shield(pending)

    async def get_content(self, name: str, version: Version | str | None = None) -> str:
        return (await self.get_template(version)).get(name, "")

    async def _acquire(self, branch: str, version: Version | None) -> TemplateEntry:
        folder = self.static_template_dir
        if version is None or self._catalog.is_released_major(version):
            folder = await asyncio.to_thread(self._prepare, branch)
        else:
            logger.info("Content: %s is not a released major; using %s", branch, folder)

        if folder != self.static_template_dir:
            try:
                return await asyncio.to_thread(self._reader, folder)
            except (FiddleError, OSError) as exc:
                logger.warning("Content: %s unreadable (%s); using %s", folder, exc, self.static_template_dir)

        try:
            return await asyncio.to_thread(self._reader, self.static_template_dir)
        except (FiddleError, OSError) as exc:
            logger.error("Content: static template unreadable path=%s error=%s", self.static_template_dir, exc)
            return freeze({})

    def _prepare(self, branch: str) -> Path:
        folder = self.branch_folder(branch)
        try:
            if not folder.exists():
                url = self._archive_url.format(branch=branch)
                logger.info("Content: %s downloading template", branch)
                payload = self._fetcher(url)
                self.templates_dir.mkdir(parents=True, exist_ok=True)
                archive = self.templates_dir / f"{branch}.zip"
                archive.write_bytes(payload)
                logger.info("Content: %s unzipping template", branch)
                self._unpacker(archive, self.templates_dir)
                if not folder.is_dir():
                    raise FiddleError(f"Archive for {branch} did not contain {folder.name}")
                logger.info("Content: %s finished unzipping", branch)
        except Exception as exc:
            logger.warning("Content: %s failed; using %s (%s)", branch, self.static_template_dir, exc)
            return self.static_template_dir
        return folder


def _coerce(version: Version | str | None) -> Version | None:
    if version is None or isinstance(version, Version):
        return version
    return parse_version(normalize_version(version))
