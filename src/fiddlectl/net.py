"""Blocking HTTPS requester shared by the template, release and gist fetchers."""

from __future__ import annotations

import json
import logging as py_logging
from http.client import HTTPException
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from fiddlectl.errors import ExitCode, FiddleError

logger = py_logging.getLogger(__name__)

ALLOWED_HOSTS = frozenset(
    {
        "api.github.com",
        "github.com",
        "codeload.github.com",
        "releases.electronjs.org",
    }
)
USER_AGENT = "fiddlectl"

HttpResponse = tuple[int, bytes, dict[str, str]]


class HttpRequester(Protocol):
    def __call__(self, url: str, headers: dict[str, str]) -> HttpResponse: ...


def _validate_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme != "https" or parsed.netloc not in ALLOWED_HOSTS:
        raise FiddleError(
            f"Refusing to fetch {url}",
            code=ExitCode.VALIDATION_ERROR,
            hint="Only https URLs on GitHub or releases.electronjs.org are supported.",
        )


def default_requester(url: str, headers: dict[str, str]) -> HttpResponse:
    _validate_url(url)
    request = Request(url, headers={"User-Agent": USER_AGENT, **headers}, method="GET")
    logger.debug("GET %s", url)
    try:
        with urlopen(request, timeout=30) as response:  # nosec B310
            status = int(getattr(response, "status", response.getcode()))
            body = response.read()
            response_headers = {key.lower(): value for key, value in response.headers.items()}
            return status, body, response_headers
    except HTTPError as exc:
        payload = b""
        if exc.fp is not None:
            payload = exc.read()
        response_headers = {key.lower(): value for key, value in (exc.headers.items() if exc.headers else [])}
        return exc.code, payload, response_headers
    except URLError as exc:
        raise FiddleError(
            f"Could not connect to {urlparse(url).netloc}.",
            code=ExitCode.NETWORK_ERROR,
            hint=str(exc.reason) or "Check your network connection.",
        ) from exc
    except (OSError, HTTPException) as exc:
        raise FiddleError(
            f"Connection to {urlparse(url).netloc} failed.",
            code=ExitCode.NETWORK_ERROR,
            hint=str(exc) or type(exc).__name__,
        ) from exc


def extract_message(payload: bytes) -> str:
    try:
        parsed = json.loads(payload.decode("utf-8", errors="replace"))
    except json.JSONDecodeError:
        return ""
    if isinstance(parsed, dict):
        message = parsed.get("message")
        if isinstance(message, str):
            return message
    return ""
