"""Lenient version string cleanup and parsing."""

from __future__ import annotations

import re

from fiddlectl.errors import ExitCode, FiddleError
from fiddlectl.versions.models import Version, VersionSource

_SEMVER_PATTERN = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)
_EMBEDDED_PATTERN = re.compile(r"\d+\.\d+\.\d+(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?")


def normalize_version(value: str | None) -> str:
    """Trim whitespace, a leading ``v`` and any text around the version triple."""
    text = (value or "").strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    match = _EMBEDDED_PATTERN.search(text)
    if match:
        return match.group(0)
    return text


def parse_version(value: str | None, *, source: VersionSource = VersionSource.REMOTE) -> Version | None:
    if not value:
        return None
    match = _SEMVER_PATTERN.match(value.strip())
    if not match:
        return None
    prerelease = tuple(match.group("pre").split(".")) if match.group("pre") else ()
    return Version(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        prerelease=prerelease,
        source=source,
    )


def require_version(value: str | None) -> Version:
    parsed = parse_version(normalize_version(value))
    if parsed is None:
        raise FiddleError(
            f"Invalid version: {value!r}",
            code=ExitCode.INVALID_ARGS,
            hint="Use a semantic version such as 11.2.0 or 12.0.0-beta.3.",
        )
    return parsed
