"""Read and write fiddle folders."""

from __future__ import annotations

import json
import logging as py_logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

from fiddlectl.errors import ExitCode, FiddleError

logger = py_logging.getLogger(__name__)

EDITOR_FILES = ("main.js", "renderer.js", "preload.js", "index.html", "styles.css")
PACKAGE_MANIFEST = "package.json"

TemplateEntry = Mapping[str, str]


def freeze(values: Mapping[str, str]) -> TemplateEntry:
    return MappingProxyType({name: values.get(name, "") for name in EDITOR_FILES})


def read_fiddle(folder: str | Path) -> TemplateEntry:
    """Read the editor files of ``folder``; files that are absent read as empty strings."""
    root = Path(folder)
    if not root.is_dir():
        raise FiddleError(
            f"Fiddle folder not found: {root}",
            code=ExitCode.VALIDATION_ERROR,
            hint="Pass a directory containing main.js.",
        )

    values: dict[str, str] = {}
    for name in EDITOR_FILES:
        path = root / name
        if not path.is_file():
            logger.debug("Fiddle file missing folder=%s file=%s", root, name)
            continue
        try:
            values[name] = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise FiddleError(
                f"Fiddle file is not UTF-8 text: {path}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Save the editor files as UTF-8.",
            ) from exc
    return freeze(values)


def write_fiddle(values: Mapping[str, str], folder: str | Path) -> Path:
    root = Path(folder)
    root.mkdir(parents=True, exist_ok=True)
    for name in EDITOR_FILES:
        (root / name).write_text(values.get(name, ""), encoding="utf-8")
    manifest = {"name": "fiddle", "version": "0.0.0", "main": "main.js"}
    (root / PACKAGE_MANIFEST).write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    return root
