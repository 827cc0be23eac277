"""Runtime version domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering

MASTER_BRANCH = "master"


class VersionSource(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


class ReleaseChannel(str, Enum):
    STABLE = "Stable"
    BETA = "Beta"
    NIGHTLY = "Nightly"


def _identifier_key(identifier: str) -> tuple[int, int, str]:
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier)


@total_ordering
@dataclass(frozen=True)
class Version:
    """Semantic version; ``source`` is ignored by equality and ordering."""

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    source: VersionSource = field(default=VersionSource.REMOTE, compare=False)

    @property
    def sort_key(self) -> tuple[object, ...]:
        return (
            self.major,
            self.minor,
            self.patch,
            0 if self.prerelease else 1,
            tuple(_identifier_key(item) for item in self.prerelease),
        )

    @property
    def channel(self) -> ReleaseChannel:
        tags = {item.lower() for item in self.prerelease}
        if "nightly" in tags:
            return ReleaseChannel.NIGHTLY
        if tags & {"alpha", "beta"}:
            return ReleaseChannel.BETA
        return ReleaseChannel.STABLE

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __str__(self) -> str:
        core = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            return f"{core}-{'.'.join(self.prerelease)}"
        return core


def branch_for(version: Version | None) -> str:
    """Template branch for a version, e.g. ``12-x-y``; ``master`` without a major."""
    if version is None or not version.major:
        return MASTER_BRANCH
    return f"{version.major}-x-y"
