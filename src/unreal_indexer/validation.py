"""
Project structure validation.

Cross-checks a ProjectConfig against the file system. Purely diagnostic:
nothing here raises for a broken project, every finding becomes an issue
on the ValidationReport.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from .errors import IssueCode, ManifestError, ScanIssue
from .logging import get_logger
from .manifest import ManifestParser
from .models import ModuleDescriptor, PluginDescriptor, ProjectConfig, ValidationReport

logger = get_logger(__name__)


def plugin_module_resolves(module: ModuleDescriptor, project_modules: set[str]) -> bool:
    """A plugin module resolves if the project declares it or its source directory exists."""
    return module.name in project_modules or Path(module.path).is_dir()


def collect_validation_issues(
    config: ProjectConfig, plugins: Iterable[PluginDescriptor] = ()
) -> list[ScanIssue]:
    issues: list[ScanIssue] = []

    try:
        ManifestParser(config.root).parse()
    except ManifestError as e:
        issues.append(ScanIssue(code=IssueCode.MANIFEST_UNREADABLE, message=str(e), path=config.root))

    if config.modules and not Path(config.source_root).is_dir():
        issues.append(
            ScanIssue(
                code=IssueCode.SOURCE_DIRECTORY_MISSING,
                message="Source directory not found",
                path=config.source_root,
            )
        )

    plugins = list(plugins)
    project_modules = {m.name for m in config.modules}
    known_modules = project_modules | {
        m.name for p in plugins for m in p.module_descriptors
    }

    for module in config.modules:
        if not Path(module.path).is_dir():
            issues.append(
                ScanIssue(
                    code=IssueCode.MODULE_DIRECTORY_MISSING,
                    message=f"Module directory not found: {module.name}",
                    path=module.path,
                )
            )
        for dependency in module.dependencies:
            if dependency not in known_modules:
                issues.append(
                    ScanIssue(
                        code=IssueCode.UNRESOLVED_DEPENDENCY,
                        message=f"Unresolved dependency: {module.name} -> {dependency}",
                    )
                )

    for plugin in plugins:
        for module in plugin.module_descriptors:
            if not plugin_module_resolves(module, project_modules):
                issues.append(
                    ScanIssue(
                        code=IssueCode.UNRESOLVED_PLUGIN_MODULE,
                        message=f"Unresolved plugin module: {plugin.name}/{module.name}",
                        path=module.path,
                    )
                )

    if not Path(config.content_root).is_dir():
        issues.append(
            ScanIssue(
                code=IssueCode.CONTENT_DIRECTORY_MISSING,
                message="Content directory not found",
                path=config.content_root,
            )
        )

    return issues


def validate_project(
    config: ProjectConfig, plugins: Iterable[PluginDescriptor] = ()
) -> ValidationReport:
    """Build a ValidationReport for `config` (and optionally its scanned plugins)."""
    issues = collect_validation_issues(config, plugins)
    for issue in issues:
        logger.info("Validation: %s", issue)
    return ValidationReport.from_issues(issues)


def validate_path(root: str | Path) -> ValidationReport:
    """Validate a project directory without building an index."""
    try:
        config = ManifestParser(root).parse()
    except ManifestError as e:
        issue = ScanIssue(code=IssueCode.MANIFEST_UNREADABLE, message=str(e), path=str(root))
        return ValidationReport.from_issues([issue])
    return validate_project(config)
