"""Known runtime releases, tagged by origin and filtered by release channel."""

from __future__ import annotations

import json
import logging as py_logging
import time
from collections.abc import Iterable
from pathlib import Path

from fiddlectl.errors import ExitCode, FiddleError
from fiddlectl.net import HttpRequester, default_requester
from fiddlectl.versions.models import ReleaseChannel, Version, VersionSource
from fiddlectl.versions.normalize import normalize_version, parse_version

logger = py_logging.getLogger(__name__)

RELEASES_MAX_AGE_SECONDS = 24 * 60 * 60


class VersionCatalog:
    def __init__(
        self,
        versions: Iterable[Version] = (),
        *,
        visible_channels: Iterable[ReleaseChannel] = (),
    ) -> None:
        self._versions: dict[Version, Version] = {}
        self._visible: set[ReleaseChannel] = {ReleaseChannel.STABLE, *visible_channels}
        self.extend(versions)

    def extend(self, versions: Iterable[Version]) -> None:
        for version in versions:
            known = self._versions.get(version)
            # a remote release wins over a local build carrying the same number
            if known is None or (known.source is VersionSource.LOCAL and version.source is VersionSource.REMOTE):
                self._versions[version] = version

    @property
    def versions(self) -> list[Version]:
        return sorted(self._versions.values())

    @property
    def visible_channels(self) -> set[ReleaseChannel]:
        return set(self._visible)

    def show_channels(self, channels: Iterable[ReleaseChannel]) -> None:
        self._visible.update(channels)
        logger.debug("Visible channels: %s", sorted(item.value for item in self._visible))

    def hide_channels(self, channels: Iterable[ReleaseChannel]) -> None:
        self._visible.difference_update(item for item in channels if item is not ReleaseChannel.STABLE)
        logger.debug("Visible channels: %s", sorted(item.value for item in self._visible))

    def find(self, text: str) -> Version | None:
        parsed = parse_version(normalize_version(text))
        if parsed is None:
            return None
        return self._versions.get(parsed)

    def newest_remote(self) -> Version | None:
        remote = [item for item in self._versions.values() if item.source is VersionSource.REMOTE]
        return max(remote) if remote else None

    def is_released_major(self, version: Version | None) -> bool:
        """True when ``version``'s major is not newer than the newest remote release."""
        newest = self.newest_remote()
        if version is None or newest is None:
            return False
        return version.major <= newest.major

    def ordered_versions(self) -> list[Version]:
        return [item for item in self.versions if item.channel in self._visible]

    def versions_between(self, good: Version, bad: Version) -> list[Version]:
        low, high = (good, bad) if good <= bad else (bad, good)
        selected = {item for item in self.ordered_versions() if low <= item <= high}
        selected.update((low, high))
        return sorted(selected)


def parse_releases(payload: bytes | str) -> list[Version]:
    try:
        entries = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise FiddleError(
            "Release list is not valid JSON.",
            code=ExitCode.NETWORK_ERROR,
            hint="Delete the cached releases.json and retry.",
        ) from exc
    if not isinstance(entries, list):
        raise FiddleError(
            "Release list has an unexpected shape.",
            code=ExitCode.NETWORK_ERROR,
            hint="Check the configured releases_url.",
        )

    versions: list[Version] = []
    for entry in entries:
        raw = entry.get("version") if isinstance(entry, dict) else entry
        if not isinstance(raw, str):
            continue
        parsed = parse_version(normalize_version(raw), source=VersionSource.REMOTE)
        if parsed is not None:
            versions.append(parsed)
    return versions


def fetch_releases(url: str, *, requester: HttpRequester | None = None) -> bytes:
    do_request = requester or default_requester
    status, payload, _ = do_request(url, {"Accept": "application/json"})
    if status != 200:
        raise FiddleError(
            f"Release list request failed (HTTP {status}).",
            code=ExitCode.NETWORK_ERROR,
            hint="Retry later or disable refresh_releases.",
        )
    return payload


def _cache_is_fresh(path: Path, *, now: float) -> bool:
    try:
        return now - path.stat().st_mtime < RELEASES_MAX_AGE_SECONDS
    except OSError:
        return False


def load_catalog(
    *,
    releases_url: str,
    cache_path: Path,
    local_versions: Iterable[str] = (),
    visible_channels: Iterable[ReleaseChannel] = (),
    refresh: bool = True,
    requester: HttpRequester | None = None,
    now: float | None = None,
) -> VersionCatalog:
    catalog = VersionCatalog(visible_channels=visible_channels)
    current = time.time() if now is None else now

    remote: list[Version] | None = None
    if refresh and not _cache_is_fresh(cache_path, now=current):
        try:
            payload = fetch_releases(releases_url, requester=requester)
            remote = parse_releases(payload)
        except FiddleError as exc:
            logger.warning("Could not refresh release list: %s", exc)
        else:
            try:
                cache_path.parent.mkdir(parents=True, exist_ok=True)
                cache_path.write_bytes(payload)
            except OSError as exc:
                logger.warning("Could not cache release list path=%s error=%s", cache_path, exc)

    if remote is None and cache_path.exists():
        try:
            remote = parse_releases(cache_path.read_bytes())
        except (FiddleError, OSError) as exc:
            logger.warning("Ignoring unreadable release cache path=%s error=%s", cache_path, exc)

    catalog.extend(remote or [])
    for raw in local_versions:
        parsed = parse_version(normalize_version(raw), source=VersionSource.LOCAL)
        if parsed is not None:
            catalog.extend([parsed])
    logger.debug("Version catalog loaded versions=%s", len(catalog.versions))
    return catalog
