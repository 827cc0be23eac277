from __future__ import annotations

import json

import pytest

from fiddlectl.errors import ExitCode, FiddleError
from fiddlectl.gists import fetch_gist

GIST_ID = "af3e1a018f5dcce4a2ff40004ef5bab5"


def _gist_payload(files: dict[str, str]) -> bytes:
    return json.dumps({"id": GIST_ID, "files": {name: {"content": text} for name, text in files.items()}}).encode()


def test_fetch_gist_returns_editor_files() -> None:
    calls: list[tuple[str, dict[str, str]]] = []

    def requester(url: str, headers: dict[str, str]) -> tuple[int, bytes, dict[str, str]]:
        calls.append((url, headers))
        return 200, _gist_payload({"main.js": "// main", "README.md": "# hi"}), {}

    values = fetch_gist(GIST_ID, token="test-token", requester=requester)

    assert values["main.js"] == "// main"
    assert values["index.html"] == ""
    assert "README.md" not in values
    assert calls[0][0] == f"https://api.github.com/gists/{GIST_ID}"
    assert calls[0][1]["Authorization"] == "Bearer test-token"


def test_fetch_gist_without_token_sends_no_authorization() -> None:
    def requester(url: str, headers: dict[str, str]) -> tuple[int, bytes, dict[str, str]]:
        assert "Authorization" not in headers
        return 200, _gist_payload({"index.html": "<html></html>"}), {}

    assert fetch_gist(GIST_ID, requester=requester)["index.html"] == "<html></html>"


def test_fetch_gist_reports_missing_gist() -> None:
    def requester(url: str, headers: dict[str, str]) -> tuple[int, bytes, dict[str, str]]:
        return 404, b'{"message":"Not Found"}', {}

    with pytest.raises(FiddleError) as exc:
        fetch_gist(GIST_ID, requester=requester)

    assert exc.value.code == ExitCode.NETWORK_ERROR
    assert exc.value.hint == "Not Found"


def test_fetch_gist_reports_rate_limit() -> None:
    def requester(url: str, headers: dict[str, str]) -> tuple[int, bytes, dict[str, str]]:
        return 403, b'{"message":"API rate limit exceeded"}', {}

    with pytest.raises(FiddleError) as exc:
        fetch_gist(GIST_ID, requester=requester)

    assert "rate limit" in exc.value.hint


def test_fetch_gist_without_fiddle_files_is_rejected() -> None:
    def requester(url: str, headers: dict[str, str]) -> tuple[int, bytes, dict[str, str]]:
        return 200, _gist_payload({"notes.txt": "hello"}), {}

    with pytest.raises(FiddleError) as exc:
        fetch_gist(GIST_ID, requester=requester)

    assert exc.value.code == ExitCode.VALIDATION_ERROR
