"""
Project index tools.

Thin async wrappers over ProjectSession / ProjectIndex that return plain
dicts. Failures a client can fix (no project scanned, bad manifest, unknown
name) come back as ok/error/detail/hint payloads instead of exceptions.

Note on FastMCP exposure: when `@mcp.tool(description=...)` is given, the
docstring is not shown to the client, so the descriptions live in server.py.
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Literal

from ..errors import ManifestError
from ..models import DeclarationKind
from ..project_index import NoProjectIndexed, ProjectIndex, get_session
from ..validation import validate_path

DomainType = Literal["cpp", "asset", "all"]
KindType = Literal["UCLASS", "USTRUCT", "UENUM", "UINTERFACE", ""]


def _index_error(tool: str, e: Exception) -> dict:
    """
    Build a structured error payload.

    Args:
        tool: Tool name.
        e: Exception.

    Returns:
        A dict with ok/error/detail/hint.
    """
    if isinstance(e, NoProjectIndexed):
        hint = "Call scan_project first, or set UPROJECT_PATH / --project-path."
    elif isinstance(e, ManifestError):
        hint = "Check that the directory contains exactly one valid .uproject file."
    else:
        hint = "Check the argument values."
    return {
        "ok": False,
        "error": f"{tool} failed",
        "detail": str(e),
        "hint": hint,
    }


def _not_found(tool: str, name: str) -> dict:
    return {
        "ok": False,
        "error": f"{tool} failed",
        "detail": f"'{name}' is not in the project index",
        "hint": "Names are exact and case-sensitive; use search to find candidates.",
    }


def _current_index() -> ProjectIndex:
    return get_session().require_index()


# ============================================================================
# Scanning / Validation
# ============================================================================


async def scan_project(
    project_path: Annotated[str, "Project directory containing the .uproject (default: configured path)"] = "",
) -> dict:
    """
    Scan a project and make it the current index.

    Returns:
        A dict with:
        - ok: bool
        - summary: dict (see get_project_summary)
        - issues: list[dict]
    """
    session = get_session()
    try:
        index = await asyncio.to_thread(session.scan, project_path or None)
    except (ManifestError, NoProjectIndexed) as e:
        return _index_error("scan_project", e)
    return {
        "ok": True,
        "summary": index.summary(),
        "issues": [i.to_dict() for i in index.issues],
    }


async def validate_project(
    project_path: Annotated[str, "Project directory to validate (default: current index)"] = "",
) -> dict:
    """
    Validate project structure.

    Returns:
        A dict with:
        - valid: bool
        - issues: list[str]
        - details: list[dict]
    """
    if project_path:
        report = await asyncio.to_thread(validate_path, project_path)
        return report.to_dict()

    session = get_session()
    index = session.index
    if index is not None:
        return index.validate().to_dict()
    if session.config.project_path:
        report = await asyncio.to_thread(validate_path, session.config.project_path)
        return report.to_dict()
    return _index_error("validate_project", NoProjectIndexed("No project path given and none configured"))


# ============================================================================
# Queries
# ============================================================================


async def search(
    query: Annotated[str, "Case-insensitive substring; empty matches everything"],
    domain: Annotated[DomainType, "Search 'cpp' declarations, 'asset' records or 'all'"] = "all",
    kind: Annotated[KindType, "Declaration kind filter (cpp only)"] = "",
    asset_type: Annotated[str, "Asset type tag filter, e.g. 'Blueprint' (asset only)"] = "",
    max_results: Annotated[int, "Max results per domain"] = 100,
) -> dict:
    """
    Search declarations and/or assets of the current index.

    Assets match on name, content path or type tag.

    Results keep discovery order: declarations by module, file and line;
    assets by content path.
    """
    try:
        index = _current_index()
    except NoProjectIndexed as e:
        return _index_error("search", e)

    result: dict = {"query": query, "domain": domain}
    truncated = False

    if domain in ("cpp", "all"):
        declarations = index.search_declarations(query)
        if kind:
            declarations = [d for d in declarations if d.kind is DeclarationKind(kind)]
        truncated |= len(declarations) > max_results
        result["declarations"] = [d.to_dict() for d in declarations[:max_results]]

    if domain in ("asset", "all"):
        assets = index.search_assets(query)
        if asset_type:
            assets = [a for a in assets if a.type == asset_type]
        truncated |= len(assets) > max_results
        result["assets"] = [a.to_dict() for a in assets[:max_results]]

    result["count"] = len(result.get("declarations", [])) + len(result.get("assets", []))
    result["truncated"] = truncated
    return result


async def get_hierarchy(
    name: Annotated[str, "Declaration name, e.g. 'AMyCharacter'"],
) -> dict:
    """
    Get the parent chain of a declaration, starting with the name itself.
    """
    try:
        index = _current_index()
    except NoProjectIndexed as e:
        return _index_error("get_hierarchy", e)
    if index.find_declaration(name) is None:
        return _not_found("get_hierarchy", name)
    return index.hierarchy(name).to_dict()


async def get_usages(
    name: Annotated[str, "Declaration name to look up"],
) -> dict:
    """
    Find direct subclasses and every source file that mentions a name.
    """
    try:
        index = _current_index()
    except NoProjectIndexed as e:
        return _index_error("get_usages", e)
    return (await asyncio.to_thread(index.usages, name)).to_dict()


async def get_details(
    name: Annotated[str, "Declaration name, or asset path ('Characters/BP_Hero.uasset' or '/Game/...')"],
    include_functions: Annotated[bool, "Include indexed UFUNCTIONs of the declaration"] = True,
) -> dict:
    """
    Get details of a declaration (members via tree-sitter) or of an asset.
    """
    try:
        index = _current_index()
    except NoProjectIndexed as e:
        return _index_error("get_details", e)

    details = await asyncio.to_thread(index.details, name)
    if details is not None:
        result = details.to_dict()
        if include_functions:
            result["functions"] = [f.to_dict() for f in index.functions_of(name)]
        return result

    asset = index.asset_by_path(name)
    if asset is not None:
        return asset.to_dict()
    return _not_found("get_details", name)


async def get_project_summary() -> dict:
    """
    Summarize the current index: modules, declarations, assets, plugins.
    """
    try:
        return _current_index().summary()
    except NoProjectIndexed as e:
        return _index_error("get_project_summary", e)


async def list_plugins(
    enabled_only: Annotated[bool, "Only plugins enabled for this project"] = False,
) -> dict:
    """
    List the plugins found under the project's plugin directories.
    """
    try:
        index = _current_index()
    except NoProjectIndexed as e:
        return _index_error("list_plugins", e)
    plugins = index.enabled_plugins() if enabled_only else list(index.plugins)
    return {
        "plugins": [{**p.to_dict(), "enabled": index.plugin_enabled(p)} for p in plugins],
        "statistics": index.plugin_statistics(),
    }
