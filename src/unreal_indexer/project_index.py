"""
Project index and scan coordinator.

ProjectScanner runs the manifest parser first (its failure aborts the scan),
then the plugin, declaration and content scans, and merges their outputs into
one ProjectIndex. The index is immutable once built; a re-scan produces a new
index and ProjectSession swaps it in, so readers holding the old one keep a
consistent snapshot.

Ordering guarantees (relied on by search and tested):
- declarations: manifest modules in manifest order, then plugin modules;
  files in sorted path order within a module; lines ascending within a file.
- assets: sorted content-relative path order.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from .config import Config, get_config
from .content import CatalogResult, ContentCataloger
from .cpp_analyzer.inspector import DeclarationDetails, get_inspector
from .cpp_analyzer.scanner import DeclarationScanner, FileReferences, SourceScanResult
from .errors import IssueCode, ScanIssue
from .logging import get_logger
from .manifest import ManifestParser
from .models import (
    AssetRecord,
    AssetStatistics,
    DeclarationKind,
    FunctionDeclaration,
    HierarchyResult,
    ModuleDescriptor,
    PluginDescriptor,
    ProjectConfig,
    SearchResults,
    TypeDeclaration,
    UsageResult,
    ValidationReport,
)
from .plugins import PluginScanner, PluginScanResult
from .validation import plugin_module_resolves, validate_project

logger = get_logger(__name__)


def _frozen_groups(groups: dict[str, list]) -> Mapping[str, tuple]:
    return MappingProxyType({key: tuple(values) for key, values in groups.items()})


# ============================================================================
# Index
# ============================================================================

@dataclass(frozen=True)
class ProjectIndex:
    """Everything one scan learned about a project. Read-only."""

    config: ProjectConfig
    modules: tuple[ModuleDescriptor, ...] = ()
    plugins: tuple[PluginDescriptor, ...] = ()
    declarations: tuple[TypeDeclaration, ...] = ()
    functions: tuple[FunctionDeclaration, ...] = ()
    assets: tuple[AssetRecord, ...] = ()
    asset_statistics: AssetStatistics = field(default_factory=AssetStatistics)
    class_by_name: Mapping[str, TypeDeclaration] = field(default_factory=lambda: MappingProxyType({}))
    children_by_parent: Mapping[str, tuple[TypeDeclaration, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    assets_by_type: Mapping[str, tuple[AssetRecord, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    source_files: tuple[str, ...] = ()
    references: Mapping[str, FileReferences] = field(default_factory=lambda: MappingProxyType({}))
    issues: tuple[ScanIssue, ...] = ()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_declaration(self, name: str) -> TypeDeclaration | None:
        return self.class_by_name.get(name)

    def declarations_of_kind(self, kind: DeclarationKind | str) -> list[TypeDeclaration]:
        kind = DeclarationKind(kind)
        return [d for d in self.declarations if d.kind is kind]

    def functions_of(self, owner: str) -> list[FunctionDeclaration]:
        return [f for f in self.functions if f.owner == owner]

    def assets_of_type(self, tag: str) -> list[AssetRecord]:
        return list(self.assets_by_type.get(tag, ()))

    def asset_by_path(self, path: str) -> AssetRecord | None:
        """Look up an asset by content-relative path or /Game package path."""
        for asset in self.assets:
            if path in (asset.path, asset.package_path):
                return asset
        return None

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_declarations(self, query: str) -> list[TypeDeclaration]:
        """Case-insensitive substring match on declaration names, in discovery order."""
        needle = query.lower()
        return [d for d in self.declarations if needle in d.name.lower()]

    def search_assets(self, query: str) -> list[AssetRecord]:
        """Case-insensitive substring match on asset names, paths or type tags, in path order."""
        needle = query.lower()
        return [
            a for a in self.assets
            if needle in a.name.lower() or needle in a.path.lower() or needle in a.type.lower()
        ]

    def search(self, query: str) -> SearchResults:
        # An empty query matches everything.
        return SearchResults(
            declarations=tuple(self.search_declarations(query)),
            assets=tuple(self.search_assets(query)),
        )

    # ------------------------------------------------------------------
    # Hierarchy / usages
    # ------------------------------------------------------------------

    def hierarchy(self, name: str) -> HierarchyResult:
        """
        Walk parent links upward starting at `name`.

        The chain starts with `name` itself. A parent that is not declared in
        the index ends the chain. Revisiting a name stops the walk and marks
        the result cyclic.
        """
        current = self.class_by_name.get(name)
        if current is None:
            return HierarchyResult(name=name)

        chain: list[str] = []
        seen: set[str] = set()
        while True:
            chain.append(current.name)
            seen.add(current.name)
            parent = current.parent
            if parent is None:
                break
            if parent in seen:
                issue = ScanIssue(
                    code=IssueCode.CYCLIC_HIERARCHY,
                    message=f"Cyclic hierarchy: {' -> '.join(chain)} -> {parent}",
                    path=current.file,
                    line=current.line,
                )
                logger.warning("%s", issue)
                return HierarchyResult(name=name, chain=tuple(chain), cyclic=True, issue=issue)
            next_declaration = self.class_by_name.get(parent)
            if next_declaration is None:
                chain.append(parent)
                break
            current = next_declaration

        return HierarchyResult(name=name, chain=tuple(chain))

    def usages(self, name: str) -> UsageResult:
        """
        Direct children of `name` plus every scanned file that mentions it.

        Whole-word match against the identifiers recorded at scan time, so
        later edits on disk do not change the answer; the lines declaring
        `name` itself do not count.
        """
        declaration_lines = {(d.file, d.line) for d in self.declarations if d.name == name}

        files: list[str] = []
        for path in self.source_files:
            lines = self.references.get(path, {}).get(name, ())
            if any((path, lineno) not in declaration_lines for lineno in lines):
                files.append(path)

        return UsageResult(
            name=name,
            children=self.children_by_parent.get(name, ()),
            files=tuple(files),
        )

    def details(self, name: str) -> DeclarationDetails | None:
        """Members of a declaration, parsed on demand. None for unknown names."""
        declaration = self.class_by_name.get(name)
        if declaration is None:
            return None
        return get_inspector().inspect(declaration)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def validate(self) -> ValidationReport:
        return validate_project(self.config, self.plugins)

    def plugin_enabled(self, plugin: PluginDescriptor) -> bool:
        """Manifest reference wins; unreferenced project plugins are enabled."""
        reference = self.config.plugin_reference(plugin.name)
        return reference.enabled if reference is not None else True

    def enabled_plugins(self) -> list[PluginDescriptor]:
        return [p for p in self.plugins if self.plugin_enabled(p)]

    def plugin_statistics(self) -> dict:
        by_category: dict[str, int] = {}
        for plugin in self.plugins:
            category = plugin.category or "Uncategorized"
            by_category[category] = by_category.get(category, 0) + 1
        return {
            "total": len(self.plugins),
            "enabled": len(self.enabled_plugins()),
            "by_category": by_category,
        }

    def summary(self) -> dict:
        by_kind: dict[str, int] = {}
        for declaration in self.declarations:
            by_kind[declaration.kind.value] = by_kind.get(declaration.kind.value, 0) + 1

        return {
            "project_name": self.config.name,
            "engine_version": self.config.engine_version,
            "modules": {
                "total": len(self.modules),
                "names": [m.name for m in self.modules],
            },
            "declarations": {
                "total": len(self.declarations),
                "by_kind": by_kind,
            },
            "functions": {
                "total": len(self.functions),
                "blueprint_callable": sum(1 for f in self.functions if f.blueprint_callable),
            },
            "assets": {
                **self.asset_statistics.to_dict(),
                "blueprints": len(self.assets_by_type.get("Blueprint", ())),
            },
            "plugins": self.plugin_statistics(),
            "target_platforms": list(self.config.target_platforms),
            "issue_count": len(self.issues),
        }

    def to_dict(self) -> dict:
        return {
            "project": self.config.to_dict(),
            "modules": [m.to_dict() for m in self.modules],
            "plugins": [
                {**p.to_dict(), "enabled": self.plugin_enabled(p)} for p in self.plugins
            ],
            "declarations": [d.to_dict() for d in self.declarations],
            "functions": [f.to_dict() for f in self.functions],
            "assets": [a.to_dict() for a in self.assets],
            "asset_statistics": self.asset_statistics.to_dict(),
            "issues": [i.to_dict() for i in self.issues],
        }


# ============================================================================
# Coordinator
# ============================================================================

class ProjectScanner:
    """Builds a ProjectIndex from a project root in a single pass."""

    def __init__(self, config: Config | None = None):
        self.config = config or get_config()
        self.plugin_scanner = PluginScanner()
        self.declaration_scanner = DeclarationScanner(max_file_bytes=self.config.max_file_bytes)
        self.cataloger = ContentCataloger()

    def scan(self, root: str | Path) -> ProjectIndex:
        """
        Scan the project at `root`.

        Raises:
            ManifestError: the manifest is missing, ambiguous or malformed.
        """
        project = ManifestParser(root).parse()
        logger.info("Scanning project %s at %s", project.name, project.root)

        plugin_dirs = [Path(project.plugins_root)] + [
            Path(project.root) / d for d in project.additional_plugin_directories
        ]

        if self.config.parallel_scan:
            with ThreadPoolExecutor(max_workers=3, thread_name_prefix="indexer") as pool:
                plugins_future = pool.submit(self._scan_plugins, plugin_dirs)
                sources_future = pool.submit(self.declaration_scanner.scan_modules, project.modules)
                content_future = pool.submit(self.cataloger.catalog, project.content_root)
                plugin_result = plugins_future.result()
                source_result = sources_future.result()
                catalog = content_future.result()
        else:
            plugin_result = self._scan_plugins(plugin_dirs)
            source_result = self.declaration_scanner.scan_modules(project.modules)
            catalog = self.cataloger.catalog(project.content_root)

        plugin_modules, module_issues = self._resolve_plugin_modules(project, plugin_result.plugins)
        source_result.extend(self.declaration_scanner.scan_modules(plugin_modules))

        index = self._merge(
            project,
            plugin_result,
            source_result,
            catalog,
            plugin_modules,
            module_issues,
        )
        logger.info(
            "Indexed %s: %d declarations, %d assets, %d plugins, %d issues",
            project.name,
            len(index.declarations),
            len(index.assets),
            len(index.plugins),
            len(index.issues),
        )
        return index

    def _scan_plugins(self, plugin_dirs: list[Path]) -> PluginScanResult:
        result = PluginScanResult()
        for plugin_dir in plugin_dirs:
            result.extend(self.plugin_scanner.scan(plugin_dir))
        return result

    def _resolve_plugin_modules(
        self, project: ProjectConfig, plugins: list[PluginDescriptor]
    ) -> tuple[list[ModuleDescriptor], list[ScanIssue]]:
        """Plugin modules to scan, plus issues for names that resolve nowhere."""
        project_modules = {m.name for m in project.modules}
        modules: list[ModuleDescriptor] = []
        issues: list[ScanIssue] = []
        for plugin in plugins:
            for module in plugin.module_descriptors:
                if module.name in project_modules:
                    continue
                if plugin_module_resolves(module, project_modules):
                    modules.append(module)
                    continue
                issue = ScanIssue(
                    code=IssueCode.UNRESOLVED_PLUGIN_MODULE,
                    message=f"Unresolved plugin module: {plugin.name}/{module.name}",
                    path=module.path,
                )
                logger.warning("%s", issue)
                issues.append(issue)
        return modules, issues

    def _merge(
        self,
        project: ProjectConfig,
        plugin_result: PluginScanResult,
        source_result: SourceScanResult,
        catalog: CatalogResult,
        plugin_modules: list[ModuleDescriptor],
        module_issues: list[ScanIssue],
    ) -> ProjectIndex:
        class_by_name: dict[str, TypeDeclaration] = {}
        seen: dict[tuple[str, DeclarationKind], TypeDeclaration] = {}
        children: dict[str, list[TypeDeclaration]] = {}
        duplicate_issues: list[ScanIssue] = []

        # Duplicates are same name and kind; a struct and an enum may share a name.
        for declaration in source_result.declarations:
            key = (declaration.name, declaration.kind)
            previous = seen.get(key)
            if previous is not None:
                duplicate_issues.append(_duplicate_issue(previous, declaration))
            seen[key] = declaration
            class_by_name[declaration.name] = declaration
            if declaration.parent:
                children.setdefault(declaration.parent, []).append(declaration)

        for issue in duplicate_issues:
            logger.warning("%s", issue)

        assets_by_type: dict[str, list[AssetRecord]] = {}
        for asset in catalog.assets:
            assets_by_type.setdefault(asset.type, []).append(asset)

        issues = (
            *source_result.issues,
            *plugin_result.issues,
            *module_issues,
            *catalog.issues,
            *duplicate_issues,
        )
        return ProjectIndex(
            config=project,
            modules=(*project.modules, *plugin_modules),
            plugins=tuple(plugin_result.plugins),
            declarations=tuple(source_result.declarations),
            functions=tuple(source_result.functions),
            assets=tuple(catalog.assets),
            asset_statistics=catalog.statistics,
            class_by_name=MappingProxyType(class_by_name),
            children_by_parent=_frozen_groups(children),
            assets_by_type=_frozen_groups(assets_by_type),
            source_files=tuple(source_result.files),
            references=MappingProxyType(
                {path: MappingProxyType(refs) for path, refs in source_result.references.items()}
            ),
            issues=issues,
        )


def _duplicate_issue(previous: TypeDeclaration, current: TypeDeclaration) -> ScanIssue:
    message = (
        f"Duplicate declaration of {current.name}; "
        f"previously declared at {previous.file}:{previous.line}"
    )
    if previous.parent != current.parent:
        message += f" with parent {previous.parent} (now {current.parent})"
    return ScanIssue(
        code=IssueCode.DUPLICATE_DECLARATION,
        message=message,
        path=current.file,
        line=current.line,
    )


def scan_project(root: str | Path, config: Config | None = None) -> ProjectIndex:
    """Scan `root` into a new ProjectIndex."""
    return ProjectScanner(config).scan(root)


# ============================================================================
# Session
# ============================================================================

class NoProjectIndexed(LookupError):
    """A query was made before any project was scanned."""


class ProjectSession:
    """
    Holds the current ProjectIndex.

    Scans are serialized; the reference is swapped only after a scan
    completes, so a failed scan leaves the previous index in place.
    """

    def __init__(self, config: Config | None = None):
        self._config = config
        self._index: ProjectIndex | None = None
        self._scan_lock = threading.Lock()

    @property
    def config(self) -> Config:
        return self._config or get_config()

    @property
    def index(self) -> ProjectIndex | None:
        return self._index

    def require_index(self) -> ProjectIndex:
        index = self._index
        if index is None:
            raise NoProjectIndexed("No project has been scanned yet")
        return index

    def scan(self, root: str | Path | None = None) -> ProjectIndex:
        """Scan `root` (default: the configured project path) and make it current."""
        target = root or self.config.project_path
        if not target:
            raise NoProjectIndexed("No project path given and none configured")
        with self._scan_lock:
            index = ProjectScanner(self.config).scan(target)
            self._index = index
        return index

    def clear(self) -> None:
        self._index = None


_session: ProjectSession | None = None


def get_session() -> ProjectSession:
    """Get the process-wide session."""
    global _session
    if _session is None:
        _session = ProjectSession()
    return _session


def set_session(session: ProjectSession | None) -> None:
    """Replace the process-wide session (None resets it)."""
    global _session
    _session = session
