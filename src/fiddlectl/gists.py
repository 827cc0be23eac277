"""Fiddle loading from GitHub gists."""

from __future__ import annotations

import json
import logging as py_logging
from dataclasses import dataclass

from fiddlectl.errors import ExitCode, FiddleError
from fiddlectl.net import HttpRequester, default_requester, extract_message
from fiddlectl.templates.reader import EDITOR_FILES, TemplateEntry, freeze

logger = py_logging.getLogger(__name__)

GIST_API_URL = "https://api.github.com/gists/{gist_id}"


@dataclass(frozen=True)
class GistInfo:
    id: str
    confirmed: bool = True


def fetch_gist(
    gist_id: str,
    *,
    token: str = "",
    requester: HttpRequester | None = None,
) -> TemplateEntry:
    do_request = requester or default_requester
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }
    if token.strip():
        headers["Authorization"] = f"Bearer {token.strip()}"

    status, payload, _ = do_request(GIST_API_URL.format(gist_id=gist_id), headers)
    if status != 200:
        message = extract_message(payload)
        if status == 404:
            raise FiddleError(
                f"Gist not found: {gist_id}",
                code=ExitCode.NETWORK_ERROR,
                hint=message or "Check the gist id or URL.",
            )
        if status in (401, 403):
            raise FiddleError(
                "GitHub refused access to the gist.",
                code=ExitCode.NETWORK_ERROR,
                hint=message or "Set FIDDLECTL_GH_TOKEN or wait for the rate limit to reset.",
            )
        raise FiddleError(
            f"Could not load gist {gist_id} (HTTP {status}).",
            code=ExitCode.NETWORK_ERROR,
            hint=message or "Retry later.",
        )

    try:
        body = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise FiddleError("GitHub returned an unreadable gist.", code=ExitCode.NETWORK_ERROR) from exc

    files = body.get("files") if isinstance(body, dict) else None
    if not isinstance(files, dict):
        raise FiddleError(f"Gist {gist_id} has no files.", code=ExitCode.VALIDATION_ERROR)

    values: dict[str, str] = {}
    for name, entry in files.items():
        if name not in EDITOR_FILES or not isinstance(entry, dict):
            continue
        content = entry.get("content")
        if isinstance(content, str):
            values[name] = content
    if not values:
        raise FiddleError(
            f"Gist {gist_id} contains no fiddle files.",
            code=ExitCode.VALIDATION_ERROR,
            hint=f"Expected one of: {', '.join(EDITOR_FILES)}.",
        )
    logger.debug("Loaded gist id=%s files=%s", gist_id, sorted(values))
    return freeze(values)
