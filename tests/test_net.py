from __future__ import annotations

from http.client import IncompleteRead, RemoteDisconnected

import pytest

import fiddlectl.net as net
from fiddlectl.errors import ExitCode, FiddleError


class BrokenResponse:
    status = 200
    headers: dict[str, str] = {}

    def __init__(self, error: Exception) -> None:
        self.error = error

    def __enter__(self) -> BrokenResponse:
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def read(self) -> bytes:
        raise self.error


@pytest.mark.parametrize(
    "error",
    [
        ConnectionResetError("reset during read"),
        TimeoutError("read timed out"),
        IncompleteRead(b"partial"),
        RemoteDisconnected("closed without response"),
    ],
)
def test_read_failures_are_network_errors(monkeypatch, error: Exception) -> None:
    monkeypatch.setattr(net, "urlopen", lambda request, timeout: BrokenResponse(error))

    with pytest.raises(FiddleError) as exc:
        net.default_requester("https://releases.electronjs.org/releases.json", {})

    assert exc.value.code == ExitCode.NETWORK_ERROR
    assert exc.value.__cause__ is error


def test_connect_failure_is_network_error(monkeypatch) -> None:
    def refuse(request, timeout):
        raise ConnectionRefusedError("refused")

    monkeypatch.setattr(net, "urlopen", refuse)

    with pytest.raises(FiddleError) as exc:
        net.default_requester("https://api.github.com/gists/abc", {})

    assert exc.value.code == ExitCode.NETWORK_ERROR


def test_disallowed_host_is_rejected_before_any_request(monkeypatch) -> None:
    def fail(request, timeout):
        raise AssertionError("urlopen must not be called")

    monkeypatch.setattr(net, "urlopen", fail)

    with pytest.raises(FiddleError) as exc:
        net.default_requester("https://example.com/releases.json", {})

    assert exc.value.code == ExitCode.VALIDATION_ERROR


def test_extract_message_reads_github_error_body() -> None:
    assert net.extract_message(b'{"message": "Not Found"}') == "Not Found"
    assert net.extract_message(b"<html>") == ""
