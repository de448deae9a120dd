"""
Unreal project manifest (.uproject) parsing.

The manifest is the only fatal input: if it is missing, ambiguous or
malformed, a ManifestError is raised and no index is built.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .errors import ManifestNotFound, ManifestParseError
from .logging import get_logger
from .models import BuildConfiguration, ModuleDescriptor, PluginReference, ProjectConfig

logger = get_logger(__name__)

MANIFEST_SUFFIX = ".uproject"
DEFAULT_TARGET_PLATFORMS = ("Windows",)
BUILD_TYPES = ("Development", "Shipping", "DebugGame")


def find_manifest(root: str | Path) -> Path:
    """
    Locate the single .uproject file directly under `root`.

    Raises:
        ManifestNotFound: if there is no candidate, several candidates,
            or `root` is not a readable directory.
    """
    root_path = Path(root)
    try:
        candidates = sorted(
            p for p in root_path.iterdir() if p.is_file() and p.suffix == MANIFEST_SUFFIX
        )
    except OSError as e:
        logger.debug("Cannot list %s: %s", root_path, e)
        raise ManifestNotFound(root_path) from e

    if len(candidates) != 1:
        raise ManifestNotFound(root_path, [p.name for p in candidates])
    return candidates[0]


def _string_list(value: Any, field_name: str, path: Path) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ManifestParseError(path, f"'{field_name}' must be a list of strings")
    return tuple(value)


def parse_module_entry(entry: Any, module_dir: Path, path: Path, plugin: str | None = None) -> ModuleDescriptor:
    """Build a ModuleDescriptor from a `Modules[]` entry of a .uproject/.uplugin."""
    if not isinstance(entry, dict):
        raise ManifestParseError(path, "module entries must be objects")
    name = entry.get("Name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestParseError(path, "module entry is missing 'Name'")
    return ModuleDescriptor(
        name=name,
        kind=str(entry.get("Type") or "Runtime"),
        loading_phase=str(entry.get("LoadingPhase") or "Default"),
        dependencies=_string_list(entry.get("AdditionalDependencies"), "AdditionalDependencies", path),
        path=str(module_dir / name),
        plugin=plugin,
    )


def _parse_plugin_reference(entry: Any, path: Path) -> PluginReference:
    if not isinstance(entry, dict) or not isinstance(entry.get("Name"), str):
        raise ManifestParseError(path, "plugin entries must be objects with a 'Name'")
    return PluginReference(
        name=entry["Name"],
        enabled=bool(entry.get("Enabled", True)),
        marketplace_url=entry.get("MarketplaceURL"),
        optional=bool(entry.get("Optional", False)),
        supported_target_platforms=_string_list(
            entry.get("SupportedTargetPlatforms"), "SupportedTargetPlatforms", path
        ),
    )


def detect_build_configurations(platforms: tuple[str, ...]) -> tuple[BuildConfiguration, ...]:
    """Every platform crossed with the standard build types."""
    return tuple(
        BuildConfiguration(name=f"{platform}_{build}", platform=platform, configuration=build)
        for platform in platforms
        for build in BUILD_TYPES
    )


class ManifestParser:
    """Reads a project's .uproject into a ProjectConfig."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def parse(self) -> ProjectConfig:
        """
        Parse the manifest at the project root.

        Raises:
            ManifestNotFound: no single .uproject at the root.
            ManifestParseError: the file is unreadable or structurally invalid.
        """
        manifest_path = find_manifest(self.root)

        try:
            data = json.loads(manifest_path.read_text(encoding="utf-8-sig"))
        except json.JSONDecodeError as e:
            raise ManifestParseError(manifest_path, f"line {e.lineno} column {e.colno}: {e.msg}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestParseError(manifest_path, str(e)) from e

        if not isinstance(data, dict):
            raise ManifestParseError(manifest_path, "top-level value must be an object")

        raw_modules = data.get("Modules") or []
        if not isinstance(raw_modules, list):
            raise ManifestParseError(manifest_path, "'Modules' must be a list")

        source_dir = self.root / "Source"
        modules: list[ModuleDescriptor] = []
        seen: set[str] = set()
        for entry in raw_modules:
            module = parse_module_entry(entry, source_dir, manifest_path)
            if module.name in seen:
                raise ManifestParseError(manifest_path, f"duplicate module name '{module.name}'")
            seen.add(module.name)
            modules.append(module)

        raw_plugins = data.get("Plugins") or []
        if not isinstance(raw_plugins, list):
            raise ManifestParseError(manifest_path, "'Plugins' must be a list")
        plugins = tuple(_parse_plugin_reference(p, manifest_path) for p in raw_plugins)

        platforms = (
            _string_list(data.get("TargetPlatforms"), "TargetPlatforms", manifest_path)
            or DEFAULT_TARGET_PLATFORMS
        )

        file_version = data.get("FileVersion")
        config = ProjectConfig(
            root=str(self.root),
            name=manifest_path.stem,
            manifest_path=str(manifest_path),
            engine_version=str(data.get("EngineAssociation") or ""),
            modules=tuple(modules),
            plugins=plugins,
            target_platforms=platforms,
            build_configurations=detect_build_configurations(platforms),
            file_version=file_version if isinstance(file_version, int) else None,
            category=str(data.get("Category") or ""),
            description=str(data.get("Description") or ""),
            additional_plugin_directories=_string_list(
                data.get("AdditionalPluginDirectories"), "AdditionalPluginDirectories", manifest_path
            ),
        )
        logger.debug(
            "Parsed %s: %d modules, %d plugin references",
            manifest_path.name,
            len(config.modules),
            len(config.plugins),
        )
        return config


def parse_manifest(root: str | Path) -> ProjectConfig:
    """Parse the .uproject under `root` (convenience wrapper)."""
    return ManifestParser(root).parse()
