"""Template archive download and safe unpacking."""

from __future__ import annotations

import logging as py_logging
import zipfile
from pathlib import Path

from fiddlectl.errors import ExitCode, FiddleError
from fiddlectl.net import HttpRequester, default_requester

logger = py_logging.getLogger(__name__)


def download_archive(url: str, *, requester: HttpRequester | None = None) -> bytes:
    do_request = requester or default_requester
    status, payload, _ = do_request(url, {"Accept": "application/zip"})
    if status != 200:
        raise FiddleError(
            f"{url} returned HTTP {status}",
            code=ExitCode.NETWORK_ERROR,
            hint="The template branch may not exist upstream.",
        )
    if not payload:
        raise FiddleError(f"{url} returned an empty archive", code=ExitCode.NETWORK_ERROR)
    return payload


def unpack_archive(archive: Path, destination: Path) -> None:
    root = destination.resolve()
    try:
        with zipfile.ZipFile(archive) as bundle:
            for member in bundle.infolist():
                target = (root / member.filename).resolve()
                if target != root and root not in target.parents:
                    raise FiddleError(
                        f"Archive member escapes destination: {member.filename}",
                        code=ExitCode.VALIDATION_ERROR,
                    )
            bundle.extractall(root)
    except zipfile.BadZipFile as exc:
        raise FiddleError(
            f"Template archive is corrupt: {archive}",
            code=ExitCode.NETWORK_ERROR,
            hint="Delete the archive and retry.",
        ) from exc
    logger.debug("Unpacked archive=%s destination=%s", archive, root)
