"""Main entry point for the space-command MCP server."""

import argparse
import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from space_command.auth import get_auth_provider
from space_command.config import Config
from space_command.tools import register_tools
from space_command.tools_write import register_tools_write
from space_command.workspace import Workspace

logger = logging.getLogger(__name__)


def create_server(config: Config, workspace: Workspace | None = None) -> FastMCP:
    """Create and configure the MCP server with all components.

    The workspace is scanned and starts following file changes when the
    server starts, and stops watching when it shuts down.

    Args:
        config: Configuration instance with all settings.
        workspace: Workspace to serve. Built from config when omitted.
    """
    auth_provider = get_auth_provider(config)
    workspace = workspace if workspace is not None else Workspace(config)

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[dict]:
        count = await workspace.start()
        logger.info("Initial scan complete: %d documents with items", count)
        try:
            yield {"workspace": workspace}
        finally:
            await workspace.stop()

    mcp = FastMCP(
        name="space-command",
        instructions=(
            "space-command indexes a folder of markdown notes. Lines tagged #todo, "
            "#idea or #principle become items; use list_items or filter_items to "
            "query them, and the write tools to complete, prioritise or tag them. "
            "Items are addressed by document path and 0-based line number."
        ),
        auth=auth_provider,
        lifespan=lifespan,
    )

    logger.info("Registering read tools...")
    register_tools(mcp, workspace)

    if config.read_only:
        logger.info("Read-only mode, write tools will reject calls")
    logger.info("Registering write tools...")
    register_tools_write(mcp, workspace)

    logger.info("Server configured successfully")
    return mcp


async def rescan(config: Config) -> int:
    """Scan every document once without watching. Returns the document count."""
    workspace = Workspace(config)
    count = await workspace.start(watch=False)
    logger.info(
        "Rescan complete: %d documents, %d items", count, len(workspace.index)
    )
    return count


def main() -> None:
    """Main function - starts the MCP server."""
    # Configure logging here to avoid side effects on import
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(
        description="space-command - MCP server for tagged markdown notes"
    )
    parser.add_argument(
        "--rescan-only",
        action="store_true",
        help="Scan all documents, report counts and exit",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Run in read-only mode (disable write tools)",
    )
    args = parser.parse_args()

    # CLI flag overrides env var
    try:
        config = Config.from_env(read_only_override=True if args.read_only else None)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(2)

    logger.info("=" * 50)
    logger.info("space-command starting...")
    logger.info("  SPACE_ROOT: %s", config.space_root)
    logger.info("  SPACE_PORT: %s", config.space_port)
    logger.info("  AUTH:       %s", "enabled" if config.auth_token else "disabled")
    logger.info("  READ_ONLY:  %s", config.read_only)
    logger.info("  PRIORITY:   %s", " ".join(config.priority_tags))
    logger.info("=" * 50)

    if args.rescan_only:
        asyncio.run(rescan(config))
        return

    try:
        mcp = create_server(config)
        logger.info("Starting MCP server on port %s...", config.space_port)
        mcp.run(transport="sse", host="0.0.0.0", port=config.space_port)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        sys.exit(0)
    except Exception:
        logger.exception("Server error")
        sys.exit(1)


if __name__ == "__main__":
    main()
