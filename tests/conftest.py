"""Shared fixtures: isolated config and a builder for throwaway Unreal projects."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import Mapping

import pytest

from unreal_indexer.config import Config, reset_config, set_config
from unreal_indexer.project_index import ProjectIndex, ProjectScanner, set_session

_ENV_VARS = (
    "UPROJECT_PATH",
    "INDEXER_MAX_FILE_BYTES",
    "INDEXER_PARALLEL_SCAN",
    "INDEXER_DEBUG",
    "INDEXER_LOG_FILE",
)


def module_entry(name: str, *dependencies: str, kind: str = "Runtime") -> dict:
    return {
        "Name": name,
        "Type": kind,
        "LoadingPhase": "Default",
        "AdditionalDependencies": list(dependencies),
    }


class ProjectBuilder:
    """Writes a project tree (manifest, sources, content, plugins) under tmp_path."""

    def __init__(self, tmp_path: Path, name: str = "MyGame") -> None:
        self.name = name
        self.root = (tmp_path / name).resolve()
        self.root.mkdir()

    def manifest(self, modules: list[dict] | None = None, **fields) -> Path:
        """Write <name>.uproject; extra keyword fields are copied verbatim."""
        data = {
            "FileVersion": 3,
            "EngineAssociation": "5.3",
            "Category": "",
            "Description": "",
            "Modules": modules if modules is not None else [module_entry(self.name)],
        }
        data.update(fields)
        path = self.root / f"{self.name}.uproject"
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries relative to the project root."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")

    def write_bytes(self, relative: str, data: bytes) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def source(self, module: str, relative: str, content: str) -> Path:
        self.write({f"Source/{module}/{relative}": content})
        return self.root / "Source" / module / relative

    def content(self, *relative_paths: str, size: int = 4) -> None:
        for relative in relative_paths:
            self.write_bytes(f"Content/{relative}", b"\0" * size)

    def plugin(self, name: str, modules: tuple[str, ...] = (), directory: str = "Plugins", **fields) -> Path:
        """Write <directory>/<name>/<name>.uplugin."""
        data = {
            "FileVersion": 3,
            "Version": 1,
            "VersionName": "1.0",
            "FriendlyName": name,
            "Modules": [{"Name": m, "Type": "Runtime", "LoadingPhase": "Default"} for m in modules],
        }
        data.update(fields)
        path = self.root / directory / name / f"{name}.uplugin"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    def config(self, **overrides) -> Config:
        values = dict(
            project_path=str(self.root),
            max_file_bytes=1024 * 1024,
            parallel_scan=False,
            debug=False,
            log_file=None,
        )
        values.update(overrides)
        return Config(**values)

    def scan(self, **overrides) -> ProjectIndex:
        return ProjectScanner(self.config(**overrides)).scan(self.root)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """No test sees the developer's environment or another test's globals."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("INDEXER_AUTO_DETECT_PROJECT", "false")
    reset_config()
    set_session(None)
    yield
    reset_config()
    set_session(None)


@pytest.fixture
def project(tmp_path) -> ProjectBuilder:
    return ProjectBuilder(tmp_path)


@pytest.fixture
def use_config():
    """Install a Config as the process-wide one."""
    def _install(config: Config) -> Config:
        set_config(config)
        return config
    return _install
