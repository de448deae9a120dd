"""
Plugin scanner.

Each immediate subdirectory of a plugins directory is expected to hold one
.uplugin descriptor. Module names listed in the descriptor are kept as
references only; the coordinator resolves them against the project's module
set, so this scan does not depend on the manifest.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from .errors import IssueCode, ManifestParseError, ScanIssue
from .logging import get_logger
from .manifest import parse_module_entry
from .models import PluginDescriptor

logger = get_logger(__name__)

DESCRIPTOR_SUFFIX = ".uplugin"


@dataclass
class PluginScanResult:
    plugins: list[PluginDescriptor] = field(default_factory=list)
    issues: list[ScanIssue] = field(default_factory=list)

    def extend(self, other: "PluginScanResult") -> None:
        self.plugins.extend(other.plugins)
        self.issues.extend(other.issues)


def _optional_str(value) -> str | None:
    return value if isinstance(value, str) and value else None


class PluginScanner:
    """Parses .uplugin descriptors found under plugin directories."""

    def scan(self, plugins_dir: str | Path) -> PluginScanResult:
        """
        Scan the immediate subdirectories of `plugins_dir`.

        A missing plugins directory yields an empty result; projects without
        plugins are common.
        """
        root = Path(plugins_dir)
        result = PluginScanResult()
        if not root.is_dir():
            logger.debug("No plugins directory at %s", root)
            return result

        for plugin_dir in sorted(p for p in root.iterdir() if p.is_dir()):
            self._scan_plugin_dir(plugin_dir, result)

        logger.debug("Found %d plugins under %s", len(result.plugins), root)
        return result

    def _warn(self, result: PluginScanResult, code: IssueCode, message: str, path: Path) -> None:
        issue = ScanIssue(code=code, message=message, path=str(path))
        logger.warning("%s", issue)
        result.issues.append(issue)

    def _scan_plugin_dir(self, plugin_dir: Path, result: PluginScanResult) -> None:
        descriptors = sorted(
            p for p in plugin_dir.iterdir() if p.is_file() and p.suffix == DESCRIPTOR_SUFFIX
        )
        if not descriptors:
            self._warn(
                result,
                IssueCode.MISSING_PLUGIN_DESCRIPTOR,
                f"Plugin directory has no {DESCRIPTOR_SUFFIX} descriptor: {plugin_dir.name}",
                plugin_dir,
            )
            return

        try:
            result.plugins.append(self.parse_descriptor(descriptors[0]))
        except ManifestParseError as e:
            self._warn(result, IssueCode.MALFORMED_PLUGIN_DESCRIPTOR, e.detail, descriptors[0])

    def parse_descriptor(self, descriptor_path: str | Path) -> PluginDescriptor:
        """
        Parse a single .uplugin file.

        Raises:
            ManifestParseError: if the descriptor is not a valid JSON object.
        """
        path = Path(descriptor_path)
        try:
            data = json.loads(path.read_text(encoding="utf-8-sig"))
        except json.JSONDecodeError as e:
            raise ManifestParseError(path, f"line {e.lineno} column {e.colno}: {e.msg}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestParseError(path, str(e)) from e

        if not isinstance(data, dict):
            raise ManifestParseError(path, "top-level value must be an object")

        raw_modules = data.get("Modules") or []
        if not isinstance(raw_modules, list):
            raise ManifestParseError(path, "'Modules' must be a list")

        name = path.stem
        plugin_dir = path.parent
        modules = tuple(
            parse_module_entry(entry, plugin_dir / "Source", path, plugin=name)
            for entry in raw_modules
        )

        version_number = data.get("Version")
        return PluginDescriptor(
            name=name,
            path=str(plugin_dir),
            descriptor_path=str(path),
            friendly_name=str(data.get("FriendlyName") or name),
            version=str(data.get("VersionName") or ""),
            version_number=version_number if isinstance(version_number, int) else None,
            description=str(data.get("Description") or ""),
            category=str(data.get("Category") or ""),
            created_by=str(data.get("CreatedBy") or ""),
            marketplace_url=_optional_str(data.get("MarketplaceURL")),
            support_url=_optional_str(data.get("SupportURL")),
            docs_url=_optional_str(data.get("DocsURL")),
            engine_version=_optional_str(data.get("EngineVersion")),
            can_contain_content=bool(data.get("CanContainContent", False)),
            is_beta=bool(data.get("IsBetaVersion", False)),
            is_experimental=bool(data.get("IsExperimentalVersion", False)),
            installed=data.get("Installed") is not False,
            modules=tuple(m.name for m in modules),
            module_descriptors=modules,
        )
