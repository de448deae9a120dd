"""
Error taxonomy for project indexing.

Only manifest failures are raised: without a readable .uproject there is
nothing to index. Every other condition is recorded as a ScanIssue on the
result and scanning continues.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class ManifestError(Exception):
    """Base class for fatal manifest failures."""


class ManifestNotFound(ManifestError):
    """No single .uproject file at the project root."""

    def __init__(self, root: str | Path, candidates: list[str] | None = None):
        self.root = str(root)
        self.candidates = list(candidates or [])
        if self.candidates:
            message = (
                f"Multiple .uproject files found in {self.root}: "
                f"{', '.join(self.candidates)}"
            )
        else:
            message = f"No .uproject file found in {self.root}"
        super().__init__(message)


class ManifestParseError(ManifestError):
    """The .uproject file exists but is malformed."""

    def __init__(self, path: str | Path, detail: str):
        self.path = str(path)
        self.detail = detail
        super().__init__(f"Failed to parse {self.path}: {detail}")


class IssueCode(str, Enum):
    """Non-fatal conditions recorded while scanning or validating."""

    MODULE_DIRECTORY_MISSING = "ModuleDirectoryMissing"
    SOURCE_DIRECTORY_MISSING = "SourceDirectoryMissing"
    CONTENT_DIRECTORY_MISSING = "ContentDirectoryMissing"
    MANIFEST_UNREADABLE = "ManifestUnreadable"
    UNREADABLE_FILE = "UnreadableFile"
    FILE_TOO_LARGE = "FileTooLarge"
    UNTERMINATED_ANNOTATION = "UnterminatedAnnotation"
    CYCLIC_HIERARCHY = "CyclicHierarchy"
    UNRESOLVED_DEPENDENCY = "UnresolvedDependency"
    UNRESOLVED_PLUGIN_MODULE = "UnresolvedPluginModule"
    MISSING_PLUGIN_DESCRIPTOR = "MissingPluginDescriptor"
    MALFORMED_PLUGIN_DESCRIPTOR = "MalformedPluginDescriptor"
    DUPLICATE_DECLARATION = "DuplicateDeclaration"


@dataclass(frozen=True)
class ScanIssue:
    """A recorded warning attached to a scan or validation result."""

    code: IssueCode
    message: str
    path: str | None = None
    line: int | None = None

    def __str__(self) -> str:
        location = ""
        if self.path:
            location = f" ({self.path}:{self.line})" if self.line else f" ({self.path})"
        return f"{self.code.value}: {self.message}{location}"

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "path": self.path,
            "line": self.line,
        }
