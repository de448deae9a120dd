"""
Data model for an indexed Unreal project.

All records are plain frozen dataclasses with a to_dict() for JSON
serialization, so the tool layer can return them verbatim without calling
back into the scanners.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath

from .errors import ScanIssue


# ============================================================================
# Manifest
# ============================================================================

@dataclass(frozen=True)
class ModuleDescriptor:
    """A module entry from the .uproject (or a .uplugin)."""
    name: str
    kind: str
    loading_phase: str
    dependencies: tuple[str, ...] = ()
    path: str = ""
    plugin: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.kind,
            "loading_phase": self.loading_phase,
            "dependencies": list(self.dependencies),
            "path": self.path,
            "plugin": self.plugin,
        }


@dataclass(frozen=True)
class PluginReference:
    """A plugin entry listed in the .uproject."""
    name: str
    enabled: bool = True
    marketplace_url: str | None = None
    optional: bool = False
    supported_target_platforms: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "enabled": self.enabled,
            "marketplace_url": self.marketplace_url,
            "optional": self.optional,
            "supported_target_platforms": list(self.supported_target_platforms),
        }


@dataclass(frozen=True)
class BuildConfiguration:
    name: str
    platform: str
    configuration: str

    def to_dict(self) -> dict:
        return {"name": self.name, "platform": self.platform, "configuration": self.configuration}


@dataclass(frozen=True)
class ProjectConfig:
    """Identity of a scanned project, parsed from its .uproject."""
    root: str
    name: str
    manifest_path: str
    engine_version: str
    modules: tuple[ModuleDescriptor, ...] = ()
    plugins: tuple[PluginReference, ...] = ()
    target_platforms: tuple[str, ...] = ()
    build_configurations: tuple[BuildConfiguration, ...] = ()
    file_version: int | None = None
    category: str = ""
    description: str = ""
    additional_plugin_directories: tuple[str, ...] = ()

    @property
    def source_root(self) -> str:
        return str(Path(self.root) / "Source")

    @property
    def content_root(self) -> str:
        return str(Path(self.root) / "Content")

    @property
    def plugins_root(self) -> str:
        return str(Path(self.root) / "Plugins")

    def module(self, name: str) -> ModuleDescriptor | None:
        for module in self.modules:
            if module.name == name:
                return module
        return None

    def plugin_reference(self, name: str) -> PluginReference | None:
        for plugin in self.plugins:
            if plugin.name == name:
                return plugin
        return None

    def to_dict(self) -> dict:
        return {
            "project_path": self.root,
            "project_name": self.name,
            "manifest_path": self.manifest_path,
            "engine_version": self.engine_version,
            "file_version": self.file_version,
            "category": self.category,
            "description": self.description,
            "modules": [m.to_dict() for m in self.modules],
            "plugins": [p.to_dict() for p in self.plugins],
            "target_platforms": list(self.target_platforms),
            "build_configurations": [b.to_dict() for b in self.build_configurations],
            "additional_plugin_directories": list(self.additional_plugin_directories),
        }


# ============================================================================
# Plugins
# ============================================================================

@dataclass(frozen=True)
class PluginDescriptor:
    """A parsed .uplugin descriptor.

    `modules` holds names only; resolving them against the project's module
    set is done by the coordinator.
    """
    name: str
    path: str
    descriptor_path: str
    friendly_name: str = ""
    version: str = ""
    version_number: int | None = None
    description: str = ""
    category: str = ""
    created_by: str = ""
    marketplace_url: str | None = None
    support_url: str | None = None
    docs_url: str | None = None
    engine_version: str | None = None
    can_contain_content: bool = False
    is_beta: bool = False
    is_experimental: bool = False
    installed: bool = True
    modules: tuple[str, ...] = ()
    module_descriptors: tuple[ModuleDescriptor, ...] = ()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "friendly_name": self.friendly_name,
            "version": self.version,
            "version_number": self.version_number,
            "description": self.description,
            "category": self.category,
            "created_by": self.created_by,
            "marketplace_url": self.marketplace_url,
            "support_url": self.support_url,
            "docs_url": self.docs_url,
            "engine_version": self.engine_version,
            "can_contain_content": self.can_contain_content,
            "is_beta": self.is_beta,
            "is_experimental": self.is_experimental,
            "installed": self.installed,
            "modules": list(self.modules),
            "path": self.path,
        }


# ============================================================================
# C++ declarations
# ============================================================================

class DeclarationKind(str, Enum):
    """Reflected type kinds, named after the annotation macro."""

    CLASS = "UCLASS"
    STRUCT = "USTRUCT"
    ENUM = "UENUM"
    INTERFACE = "UINTERFACE"

    @property
    def keyword(self) -> str:
        """C++ keyword that must follow the annotation."""
        if self is DeclarationKind.STRUCT:
            return "struct"
        if self is DeclarationKind.ENUM:
            return "enum"
        return "class"


@dataclass(frozen=True)
class TypeDeclaration:
    """A macro-annotated class/struct/enum/interface declaration."""
    kind: DeclarationKind
    name: str
    parent: str | None
    specifiers: tuple[str, ...]
    module: str
    file: str
    line: int

    @property
    def blueprint_type(self) -> bool:
        return "BlueprintType" in self.specifiers

    @property
    def blueprintable(self) -> bool:
        return "Blueprintable" in self.specifiers

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.kind.value,
            "parent_class": self.parent,
            "specifiers": list(self.specifiers),
            "blueprint_type": self.blueprint_type,
            "blueprintable": self.blueprintable,
            "module": self.module,
            "file": self.file,
            "line": self.line,
        }


@dataclass(frozen=True)
class FunctionDeclaration:
    """A UFUNCTION declared inside a reflected type body."""
    name: str
    owner: str
    return_type: str
    parameters: tuple[str, ...]
    specifiers: tuple[str, ...]
    module: str
    file: str
    line: int

    @property
    def blueprint_callable(self) -> bool:
        return "BlueprintCallable" in self.specifiers or "BlueprintPure" in self.specifiers

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "class_name": self.owner,
            "return_type": self.return_type,
            "parameters": list(self.parameters),
            "specifiers": list(self.specifiers),
            "blueprint_callable": self.blueprint_callable,
            "module": self.module,
            "file": self.file,
            "line": self.line,
        }


# ============================================================================
# Content
# ============================================================================

UNKNOWN_ASSET_TYPE = "Unknown"


@dataclass(frozen=True)
class AssetRecord:
    """A file under the content root, classified by name heuristics."""
    name: str
    path: str
    type: str
    size: int
    module: str | None = None

    @property
    def package_path(self) -> str:
        """UE-style package path, e.g. /Game/Characters/BP_Hero."""
        stem = PurePosixPath(self.path).with_suffix("")
        return f"/Game/{stem.as_posix()}"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "package_path": self.package_path,
            "type": self.type,
            "size": self.size,
            "module": self.module,
        }


@dataclass(frozen=True)
class AssetStatistics:
    count_by_type: dict[str, int] = field(default_factory=dict)
    size_by_type: dict[str, int] = field(default_factory=dict)

    @property
    def total_count(self) -> int:
        return sum(self.count_by_type.values())

    @property
    def total_size(self) -> int:
        return sum(self.size_by_type.values())

    def to_dict(self) -> dict:
        return {
            "total": self.total_count,
            "total_size": self.total_size,
            "by_type": dict(self.count_by_type),
            "size_by_type": dict(self.size_by_type),
        }


# ============================================================================
# Query results
# ============================================================================

@dataclass(frozen=True)
class ValidationReport:
    """Outcome of validate(): a validity flag plus human-readable issues."""
    valid: bool
    issues: tuple[str, ...] = ()
    details: tuple[ScanIssue, ...] = ()

    @classmethod
    def from_issues(cls, issues: list[ScanIssue]) -> "ValidationReport":
        return cls(
            valid=not issues,
            issues=tuple(issue.message for issue in issues),
            details=tuple(issues),
        )

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "issues": list(self.issues),
            "details": [d.to_dict() for d in self.details],
        }


@dataclass(frozen=True)
class HierarchyResult:
    """Parent chain of a declaration, starting with the declaration itself."""
    name: str
    chain: tuple[str, ...] = ()
    cyclic: bool = False
    issue: ScanIssue | None = None

    def to_dict(self) -> dict:
        return {
            "class": self.name,
            "hierarchy": list(self.chain),
            "cyclic": self.cyclic,
            "issue": self.issue.to_dict() if self.issue else None,
        }


@dataclass(frozen=True)
class UsageResult:
    """Textual usages of a type name across scanned source files."""
    name: str
    children: tuple[TypeDeclaration, ...] = ()
    files: tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.files)

    def to_dict(self) -> dict:
        return {
            "class": self.name,
            "children": [c.to_dict() for c in self.children],
            "files": list(self.files),
            "count": self.count,
        }


@dataclass(frozen=True)
class SearchResults:
    declarations: tuple[TypeDeclaration, ...] = ()
    assets: tuple[AssetRecord, ...] = ()

    def to_dict(self) -> dict:
        return {
            "declarations": [d.to_dict() for d in self.declarations],
            "assets": [a.to_dict() for a in self.assets],
            "total_count": len(self.declarations) + len(self.assets),
        }
