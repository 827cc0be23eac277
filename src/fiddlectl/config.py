"""XDG config loading."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from fiddlectl.versions.normalize import parse_version

DEFAULT_CONFIG_PATH = Path("~/.config/fiddlectl/config.toml").expanduser()
DEFAULT_USER_DATA_PATH = Path("~/.config/fiddlectl").expanduser()
DEFAULT_TEMPLATE_ARCHIVE_URL = "https://github.com/electron/electron-quick-start/archive/{branch}.zip"
DEFAULT_RELEASES_URL = "https://releases.electronjs.org/releases.json"
STATIC_TEMPLATE_DIR = Path(__file__).resolve().parent / "static" / "electron-quick-start"
GITHUB_TOKEN_ENV = "FIDDLECTL_GH_TOKEN"


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    user_data_path: Path = DEFAULT_USER_DATA_PATH
    template_archive_url: str = DEFAULT_TEMPLATE_ARCHIVE_URL
    releases_url: str = DEFAULT_RELEASES_URL
    static_template_dir: Path = STATIC_TEMPLATE_DIR
    runner_command: list[str] = Field(default_factory=list)
    local_versions: list[str] = Field(default_factory=list)
    show_betas: bool = False
    show_nightlies: bool = False
    refresh_releases: bool = True
    github_token: str = ""

    @field_validator("template_archive_url")
    @classmethod
    def _validate_archive_url(cls, value: str) -> str:
        if "{branch}" not in value:
            raise ValueError(f"Template archive URL needs a {{branch}} placeholder: {value}")
        return value

    @field_validator("local_versions")
    @classmethod
    def _validate_local_versions(cls, value: list[str]) -> list[str]:
        for item in value:
            if parse_version(item) is None:
                raise ValueError(f"Invalid local version: {item}")
        return value

    @property
    def templates_dir(self) -> Path:
        return self.user_data_path / "Templates"

    @property
    def releases_cache_path(self) -> Path:
        return self.user_data_path / "releases.json"


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _string_list(value: object) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()

    user_data_path = raw.get("user_data_path")
    if isinstance(user_data_path, str) and user_data_path.strip():
        cfg.user_data_path = Path(user_data_path).expanduser()

    template_archive_url = raw.get("template_archive_url")
    if isinstance(template_archive_url, str) and "{branch}" in template_archive_url:
        cfg.template_archive_url = template_archive_url

    releases_url = raw.get("releases_url")
    if isinstance(releases_url, str) and releases_url.startswith("https://"):
        cfg.releases_url = releases_url

    static_template_dir = raw.get("static_template_dir")
    if isinstance(static_template_dir, str) and static_template_dir.strip():
        candidate = Path(static_template_dir).expanduser()
        if candidate.is_dir():
            cfg.static_template_dir = candidate

    runner_command = _string_list(raw.get("runner_command"))
    if runner_command is not None:
        cfg.runner_command = runner_command

    local_versions = _string_list(raw.get("local_versions"))
    if local_versions is not None:
        cfg.local_versions = [item for item in local_versions if parse_version(item) is not None]

    for flag in ("show_betas", "show_nightlies", "refresh_releases"):
        value = raw.get(flag)
        if isinstance(value, bool):
            setattr(cfg, flag, value)

    github_token = raw.get("github_token", cfg.github_token)
    if isinstance(github_token, str):
        cfg.github_token = github_token
    env_token = os.getenv(GITHUB_TOKEN_ENV, "").strip()
    if env_token:
        cfg.github_token = env_token

    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _sanitize({})
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return _sanitize({})
    if not isinstance(raw, dict):
        return _sanitize({})
    return _sanitize(raw)
