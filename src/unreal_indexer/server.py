"""
MCP Server entry point - Unreal Project Indexer.

Environment variables (see config.py):
- UPROJECT_PATH: Project directory containing the .uproject
- INDEXER_MAX_FILE_BYTES: Skip source files larger than this
- INDEXER_PARALLEL_SCAN: Run sub-scans on worker threads
- INDEXER_DEBUG / INDEXER_LOG_FILE: Logging
"""

from __future__ import annotations

import argparse
import json
import sys

from fastmcp import FastMCP

from .config import get_config
from .errors import ManifestError
from .logging import configure_logging, get_logger
from .project_index import get_session
from .tools import project

logger = get_logger(__name__)

# Initialize MCP server
mcp = FastMCP(
    name="UnrealProjectIndexer",
    version="0.1.0",
)


def register_tools():
    """
    Register MCP tools.

    - scan_project / validate_project: build or check the index
    - search / get_hierarchy / get_usages / get_details: queries
    - get_project_summary / list_plugins: overview
    """
    mcp.tool(description="Scan an Unreal project (.uproject root) and make it the current index")(
        project.scan_project
    )
    mcp.tool(description="Validate project structure (modules, dependencies, content)")(
        project.validate_project
    )

    mcp.tool(description="Search reflected C++ declarations and content assets by substring")(
        project.search
    )
    mcp.tool(description="Get the parent chain of a reflected C++ type")(project.get_hierarchy)
    mcp.tool(description="Find subclasses and source files referencing a type")(project.get_usages)
    mcp.tool(description="Get details (C++ declaration members or asset record)")(
        project.get_details
    )

    mcp.tool(description="Summarize the indexed project")(project.get_project_summary)
    mcp.tool(description="List project plugins and their enablement")(project.list_plugins)

    logger.info("Registered 8 tools.")


def initialize_from_environment() -> bool:
    """Scan the configured project, if any."""
    config = get_config()
    if not config.project_path:
        logger.warning("No project configured.")
        logger.warning("  Set UPROJECT_PATH or --project-path, or call scan_project.")
        return False

    try:
        index = get_session().scan(config.project_path)
    except ManifestError as e:
        logger.error("Failed to scan %s: %s", config.project_path, e)
        return False

    logger.info("Project: %s (%s)", index.config.name, index.config.root)
    return True


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unreal-indexer",
        description="Unreal Project Indexer MCP Server",
    )

    parser.add_argument(
        "--project-path",
        help="Project directory containing the .uproject",
        default=None,
    )
    parser.add_argument(
        "--max-file-bytes",
        type=int,
        help="Skip source files larger than this many bytes",
        default=None,
    )
    parser.add_argument(
        "--parallel-scan",
        action="store_true",
        help="Run plugin/source/content scans on worker threads",
    )
    parser.add_argument(
        "--no-init",
        action="store_true",
        help="Skip the initial scan on startup",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Print effective config and exit",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    # Transport
    parser.add_argument(
        "--transport",
        choices=["stdio", "http", "sse"],
        default="stdio",
        help="MCP transport (default: stdio)",
    )
    parser.add_argument(
        "--mcp-host",
        default="127.0.0.1",
        help="Host for http/sse transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--mcp-port",
        type=int,
        default=8000,
        help="Port for http/sse transport (default: 8000)",
    )
    parser.add_argument(
        "--mcp-path",
        default="/mcp",
        help="Path prefix for http transport (default: /mcp)",
    )

    return parser


def _apply_cli_overrides(args: argparse.Namespace) -> None:
    """Apply CLI overrides to the global config (single-run convenience)."""
    config = get_config()
    if args.project_path:
        config.set_project_path(args.project_path)
    if args.max_file_bytes is not None and args.max_file_bytes > 0:
        config.max_file_bytes = args.max_file_bytes
    if args.parallel_scan:
        config.parallel_scan = True
    if args.verbose:
        config.debug = True


def main(argv: list[str] | None = None):
    """Run the MCP server."""
    parser = _build_arg_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    _apply_cli_overrides(args)

    config = get_config()
    configure_logging(verbose=config.debug, log_file=config.log_file)

    if args.print_config:
        print(json.dumps(config.to_dict(), indent=2))
        return

    register_tools()

    if not args.no_init:
        initialize_from_environment()

    if args.transport == "stdio":
        mcp.run()
    elif args.transport == "http":
        mcp.run(transport="http", host=args.mcp_host, port=args.mcp_port, path=args.mcp_path)
    else:
        mcp.run(transport="sse", host=args.mcp_host, port=args.mcp_port)


if __name__ == "__main__":
    main()
