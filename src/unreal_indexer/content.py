"""
Content cataloger.

Every file under the content root becomes exactly one AssetRecord. The type
tag comes from a three-tier heuristic over the file name and path, first
match wins:

1. extension   (EXTENSION_TAGS)
2. name prefix (PREFIX_TAGS, case-sensitive)
3. directory   (DIRECTORY_TAGS, substring of any directory segment)

Files matching no tier are tagged "Unknown". Asset binaries are never opened.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .errors import IssueCode, ScanIssue
from .logging import get_logger
from .models import UNKNOWN_ASSET_TYPE, AssetRecord, AssetStatistics

logger = get_logger(__name__)


# ============================================================================
# Tier Tables
# ============================================================================

EXTENSION_TAGS: dict[str, str] = {
    ".umap": "Level",
    ".uplugin": "Plugin",
}

# Ordered; the first prefix the file name starts with wins.
PREFIX_TAGS: tuple[tuple[str, str], ...] = (
    ("BP_", "Blueprint"),
    ("WBP_", "Widget"),
    ("W_", "Widget"),
    ("MI_", "Material"),
    ("M_", "Material"),
    ("T_", "Texture"),
    ("SM_", "Mesh"),
    ("SK_", "Mesh"),
    ("AM_", "Animation"),
    ("A_", "Animation"),
    ("P_", "Particle System"),
)

# Ordered; checked against each directory segment of the content-relative path.
DIRECTORY_TAGS: tuple[tuple[str, str], ...] = (
    ("Blueprints", "Blueprint"),
    ("Materials", "Material"),
    ("Textures", "Texture"),
    ("Meshes", "Mesh"),
    ("Animations", "Animation"),
    ("Audio", "Audio"),
    ("Sound", "Audio"),
    ("Particles", "Particle System"),
    ("UI", "Widget"),
)


def classify_by_extension(relative_path: PurePosixPath) -> str | None:
    return EXTENSION_TAGS.get(relative_path.suffix.lower())


def classify_by_prefix(relative_path: PurePosixPath) -> str | None:
    name = relative_path.name
    for prefix, tag in PREFIX_TAGS:
        if name.startswith(prefix):
            return tag
    return None


def classify_by_directory(relative_path: PurePosixPath) -> str | None:
    segments = relative_path.parent.parts
    for needle, tag in DIRECTORY_TAGS:
        if any(needle in segment for segment in segments):
            return tag
    return None


CLASSIFIER_TIERS = (classify_by_extension, classify_by_prefix, classify_by_directory)


def classify_asset(relative_path: str | PurePosixPath) -> str:
    """Return the type tag for a content-relative path."""
    path = PurePosixPath(relative_path)
    for tier in CLASSIFIER_TIERS:
        tag = tier(path)
        if tag is not None:
            return tag
    return UNKNOWN_ASSET_TYPE


def infer_owning_module(relative_path: PurePosixPath) -> str | None:
    """First directory segment of the content-relative path."""
    parts = relative_path.parent.parts
    return parts[0] if parts else None


# ============================================================================
# Cataloger
# ============================================================================

@dataclass
class CatalogResult:
    assets: list[AssetRecord] = field(default_factory=list)
    statistics: AssetStatistics = field(default_factory=AssetStatistics)
    issues: list[ScanIssue] = field(default_factory=list)


class ContentCataloger:
    """Walks a content directory and catalogs every file."""

    def catalog(self, content_root: str | Path) -> CatalogResult:
        root = Path(content_root)
        if not root.is_dir():
            issue = ScanIssue(
                code=IssueCode.CONTENT_DIRECTORY_MISSING,
                message="Content directory not found",
                path=str(root),
            )
            logger.warning("%s", issue)
            return CatalogResult(issues=[issue])

        result = CatalogResult()
        count_by_type: dict[str, int] = {}
        size_by_type: dict[str, int] = {}

        files = sorted((p for p in root.rglob("*") if p.is_file()), key=lambda p: p.as_posix())
        for file_path in files:
            record = self._catalog_file(root, file_path, result.issues)
            result.assets.append(record)
            count_by_type[record.type] = count_by_type.get(record.type, 0) + 1
            size_by_type[record.type] = size_by_type.get(record.type, 0) + record.size

        result.statistics = AssetStatistics(count_by_type=count_by_type, size_by_type=size_by_type)
        logger.debug("Cataloged %d assets under %s", len(result.assets), root)
        return result

    def _catalog_file(self, root: Path, file_path: Path, issues: list[ScanIssue]) -> AssetRecord:
        relative = PurePosixPath(file_path.relative_to(root).as_posix())
        try:
            size = file_path.stat().st_size
        except OSError as e:
            # Still recorded; only the size is unknown.
            size = 0
            issue = ScanIssue(
                code=IssueCode.UNREADABLE_FILE,
                message=f"Cannot stat asset: {e}",
                path=str(file_path),
            )
            logger.warning("%s", issue)
            issues.append(issue)

        return AssetRecord(
            name=relative.stem,
            path=relative.as_posix(),
            type=classify_asset(relative),
            size=size,
            module=infer_owning_module(relative),
        )
