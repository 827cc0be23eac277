from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from fiddlectl.config import (
    DEFAULT_RELEASES_URL,
    DEFAULT_TEMPLATE_ARCHIVE_URL,
    GITHUB_TOKEN_ENV,
    STATIC_TEMPLATE_DIR,
    AppConfig,
    load_config,
)


def test_missing_config_returns_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv(GITHUB_TOKEN_ENV, raising=False)

    config = load_config(tmp_path / "missing.toml")

    assert config.template_archive_url == DEFAULT_TEMPLATE_ARCHIVE_URL
    assert config.releases_url == DEFAULT_RELEASES_URL
    assert config.static_template_dir == STATIC_TEMPLATE_DIR
    assert config.runner_command == []
    assert config.refresh_releases is True


def test_config_values_are_loaded(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                f'user_data_path = "{tmp_path.as_posix()}/data"',
                'runner_command = ["runner", "{version}", "{fiddle}"]',
                'local_versions = ["999.0.0", "not-a-version"]',
                "show_betas = true",
                "refresh_releases = false",
            ]
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.runner_command == ["runner", "{version}", "{fiddle}"]
    assert config.local_versions == ["999.0.0"]
    assert config.show_betas is True
    assert config.show_nightlies is False
    assert config.refresh_releases is False
    assert config.templates_dir == tmp_path / "data" / "Templates"
    assert config.releases_cache_path == tmp_path / "data" / "releases.json"


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                'template_archive_url = "https://example.com/no-placeholder.zip"',
                'releases_url = "http://insecure.example.com"',
                'static_template_dir = "/definitely/not/here"',
                'show_nightlies = "yes"',
                "runner_command = 7",
            ]
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.template_archive_url == DEFAULT_TEMPLATE_ARCHIVE_URL
    assert config.releases_url == DEFAULT_RELEASES_URL
    assert config.static_template_dir == STATIC_TEMPLATE_DIR
    assert config.show_nightlies is False
    assert config.runner_command == []


def test_unreadable_toml_returns_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("this is = = not toml", encoding="utf-8")

    assert load_config(path).runner_command == []


def test_token_env_overrides_file(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "config.toml"
    path.write_text('github_token = "from-file"\n', encoding="utf-8")
    monkeypatch.setenv(GITHUB_TOKEN_ENV, "from-env")

    assert load_config(path).github_token == "from-env"


def test_model_validates_assignment() -> None:
    config = AppConfig()

    with pytest.raises(ValidationError):
        config.template_archive_url = "https://example.com/static.zip"
    with pytest.raises(ValidationError):
        config.local_versions = ["banana"]
