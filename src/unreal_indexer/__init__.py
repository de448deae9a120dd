"""
Unreal Project Indexer.

Static index of an Unreal project: manifest, reflected C++ declarations,
content assets and plugins, with search/hierarchy/usage/validation queries.
"""

from .errors import IssueCode, ManifestError, ManifestNotFound, ManifestParseError, ScanIssue
from .project_index import ProjectIndex, ProjectScanner, ProjectSession, scan_project
from .validation import validate_project

__version__ = "0.1.0"

__all__ = [
    "IssueCode",
    "ManifestError",
    "ManifestNotFound",
    "ManifestParseError",
    "ProjectIndex",
    "ProjectScanner",
    "ProjectSession",
    "ScanIssue",
    "scan_project",
    "validate_project",
]
