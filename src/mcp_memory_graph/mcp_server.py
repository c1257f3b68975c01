#!/usr/bin/env python3
"""FastMCP server for the MCP Memory Graph.

Native MCP protocol implementation using FastMCP. Tool parameters keep the
camelCase names of the published tool schemas; each tool forwards its
arguments to the matching handler in ``tools.memory_tools``, which validates
them with a Pydantic input model and renders a ``✓``/``✗`` text response.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from .registry import MemoryRegistry, create_registry
from .tools import memory_tools

logger = logging.getLogger(__name__)


@dataclass
class MCPServerContext:
    """Application context shared by every tool call."""

    registry: MemoryRegistry


@asynccontextmanager
async def mcp_server_lifespan(server: FastMCP) -> AsyncIterator[MCPServerContext]:
    """Create the scope registry on startup; flush and close it on shutdown."""
    registry = create_registry()
    logger.info(f"MCP Memory Graph ready (storage: {type(registry.storage).__name__})")
    try:
        yield MCPServerContext(registry=registry)
    finally:
        logger.info("Shutting down MCP Memory Graph...")
        registry.close()


# Create FastMCP server instance
mcp = FastMCP("MCP Memory Graph", lifespan=mcp_server_lifespan)


async def _call(ctx: Context, handler: memory_tools.ToolHandler, arguments: dict[str, Any]) -> str:
    registry = ctx.request_context.lifespan_context.registry
    # Unset optional arguments fall back to the input model defaults
    arguments = {name: value for name, value in arguments.items() if value is not None}
    # Handlers do blocking file I/O; keep it off the event loop
    return await asyncio.to_thread(handler, registry, arguments)


# =============================================================================
# MEMORY OPERATIONS
# =============================================================================


@mcp.tool()
async def save_memory(
    key: str,
    value: str,
    ctx: Context,
    category: str = "project",
    projectPath: str | None = None,  # noqa: N803
) -> str:
    """Save a memory under a key, overwriting any existing value for that key.

    Args:
        key: Unique name of the memory within its scope
        value: Content to remember
        category: "project", "global", "pattern" or "decision"
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(
        ctx,
        memory_tools.save_memory,
        {"key": key, "value": value, "category": category, "projectPath": projectPath},
    )


@mcp.tool()
async def recall_memory(key: str, ctx: Context, projectPath: str | None = None) -> str:  # noqa: N803
    """Recall a saved memory by key.

    Args:
        key: Memory key
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(ctx, memory_tools.recall_memory, {"key": key, "projectPath": projectPath})


@mcp.tool()
async def update_memory(
    key: str,
    value: str,
    ctx: Context,
    append: bool = False,
    projectPath: str | None = None,  # noqa: N803
) -> str:
    """Update an existing memory's value.

    Args:
        key: Memory key (must already exist)
        value: New value, or text to append
        append: Append to the current value instead of replacing it
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(
        ctx,
        memory_tools.update_memory,
        {"key": key, "value": value, "append": append, "projectPath": projectPath},
    )


@mcp.tool()
async def delete_memory(key: str, ctx: Context, projectPath: str | None = None) -> str:  # noqa: N803
    """Delete a memory and every relationship that touches it.

    Args:
        key: Memory key
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(ctx, memory_tools.delete_memory, {"key": key, "projectPath": projectPath})


@mcp.tool()
async def list_memories(
    ctx: Context,
    category: str | None = None,
    limit: int = 10,
    projectPath: str | None = None,  # noqa: N803
) -> str:
    """List memories, most recently updated first.

    Args:
        category: Only list this category
        limit: Maximum number of memories shown (1-100)
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(
        ctx,
        memory_tools.list_memories,
        {"category": category, "limit": limit, "projectPath": projectPath},
    )


@mcp.tool()
async def search_memories(
    ctx: Context,
    query: str = "",
    category: str | None = None,
    strategy: str = "keyword",
    startKey: str | None = None,  # noqa: N803
    depth: int = 2,
    limit: int = 20,
    projectPath: str | None = None,  # noqa: N803
) -> str:
    """Search memories by keyword, time, importance or relationships.

    Args:
        query: Text matched case-insensitively against keys and values
        category: Only return this category
        strategy: Search strategy:
            - "keyword": key matches first, then most recently updated
            - "temporal": newest first (empty query matches everything)
            - "graph_traversal": memories related to startKey within depth hops
            - "priority": most important first (empty query matches everything)
            - "context_aware": key and value hits weighted with importance
        startKey: Start memory for graph_traversal
        depth: Maximum hops for graph_traversal (1-5)
        limit: Maximum number of results (1-100)
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(
        ctx,
        memory_tools.search_memories,
        {
            "query": query,
            "category": category,
            "strategy": strategy,
            "startKey": startKey,
            "depth": depth,
            "limit": limit,
            "projectPath": projectPath,
        },
    )


# =============================================================================
# KNOWLEDGE GRAPH RELATIONSHIP OPERATIONS
# =============================================================================


@mcp.tool()
async def link_memories(
    sourceKey: str,  # noqa: N803
    targetKey: str,  # noqa: N803
    relationType: str,  # noqa: N803
    ctx: Context,
    strength: float = 1.0,
    bidirectional: bool = False,
    projectPath: str | None = None,  # noqa: N803
) -> str:
    """Link two memories with a typed, weighted relationship.

    Linking the same source, target and type again replaces the earlier link.

    Args:
        sourceKey: Key of the source memory
        targetKey: Key of the target memory
        relationType: "related_to", "depends_on", "implements", "extends",
            "uses", "references" or "part_of"
        strength: Relationship strength between 0.0 and 1.0
        bidirectional: Also link target back to source
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(
        ctx,
        memory_tools.link_memories,
        {
            "sourceKey": sourceKey,
            "targetKey": targetKey,
            "relationType": relationType,
            "strength": strength,
            "bidirectional": bidirectional,
            "projectPath": projectPath,
        },
    )


@mcp.tool()
async def unlink_memories(
    sourceKey: str,  # noqa: N803
    targetKey: str,  # noqa: N803
    ctx: Context,
    relationType: str | None = None,  # noqa: N803
    projectPath: str | None = None,  # noqa: N803
) -> str:
    """Remove relationships from one memory to another.

    Args:
        sourceKey: Key of the source memory
        targetKey: Key of the target memory
        relationType: Only remove this type (omit to remove every type)
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(
        ctx,
        memory_tools.unlink_memories,
        {
            "sourceKey": sourceKey,
            "targetKey": targetKey,
            "relationType": relationType,
            "projectPath": projectPath,
        },
    )


@mcp.tool()
async def get_memory_graph(
    ctx: Context,
    key: str | None = None,
    depth: int = 2,
    relationType: str | None = None,  # noqa: N803
    format: str = "tree",
    projectPath: str | None = None,  # noqa: N803
) -> str:
    """Show the memory relationship graph.

    Args:
        key: Start memory (omit for the whole scope)
        depth: Maximum hops from key (1-5)
        relationType: Only follow and show this relationship type
        format: "tree", "list" or "mermaid"
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(
        ctx,
        memory_tools.get_memory_graph,
        {
            "key": key,
            "depth": depth,
            "relationType": relationType,
            "format": format,
            "projectPath": projectPath,
        },
    )


# =============================================================================
# RANKING & TIMELINE
# =============================================================================


@mcp.tool()
async def prioritize_memory(
    currentTask: str,  # noqa: N803
    ctx: Context,
    criticalDecisions: list[str] | None = None,  # noqa: N803
    codeChanges: list[str] | None = None,  # noqa: N803
    blockers: list[str] | None = None,
    nextSteps: list[str] | None = None,  # noqa: N803
    limit: int = 20,
    projectPath: str | None = None,  # noqa: N803
) -> str:
    """Rank memories by importance for the current task.

    Scores combine recency, access frequency, relationship centrality and
    overlap with the task description and focus terms.

    Args:
        currentTask: Description of the task at hand
        criticalDecisions: Decisions that must stay in view
        codeChanges: Recent code changes
        blockers: Current blockers
        nextSteps: Planned next steps
        limit: Maximum number of memories returned (1-100)
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(
        ctx,
        memory_tools.prioritize_memory,
        {
            "currentTask": currentTask,
            "criticalDecisions": criticalDecisions,
            "codeChanges": codeChanges,
            "blockers": blockers,
            "nextSteps": nextSteps,
            "limit": limit,
            "projectPath": projectPath,
        },
    )


@mcp.tool()
async def create_memory_timeline(
    ctx: Context,
    startDate: str | None = None,  # noqa: N803
    endDate: str | None = None,  # noqa: N803
    category: str | None = None,
    limit: int = 20,
    groupBy: str = "day",  # noqa: N803
    projectPath: str | None = None,  # noqa: N803
) -> str:
    """Show memories in creation order, grouped by day, week, month or category.

    Args:
        startDate: First day to include (ISO date, e.g. 2024-01-01)
        endDate: Last day to include (ISO date)
        category: Only include this category
        limit: Maximum number of memories (1-200)
        groupBy: "day", "week", "month" or "category"
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(
        ctx,
        memory_tools.create_memory_timeline,
        {
            "startDate": startDate,
            "endDate": endDate,
            "category": category,
            "limit": limit,
            "groupBy": groupBy,
            "projectPath": projectPath,
        },
    )


# =============================================================================
# SESSION
# =============================================================================


@mcp.tool()
async def start_session(
    ctx: Context,
    greeting: str = "",
    loadMemory: bool = True,  # noqa: N803
    limit: int = 5,
    projectPath: str | None = None,  # noqa: N803
) -> str:
    """Start a working session with a summary of the stored memories.

    Args:
        greeting: Optional greeting shown first
        loadMemory: Include the most recently updated project memories
        limit: Number of project memories shown (1-20)
        projectPath: Project directory for project-specific memory (omit for global)
    """
    return await _call(
        ctx,
        memory_tools.start_session,
        {"greeting": greeting, "loadMemory": loadMemory, "limit": limit, "projectPath": projectPath},
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def main():
    """Main entry point for the MCP Memory Graph server."""
    from .config import settings

    logging.basicConfig(level=settings.server.log_level.upper())

    if settings.server.transport_mode == "stdio":
        logger.info("Starting MCP Memory Graph on stdio")
        mcp.run(transport="stdio")
    else:
        logger.info(f"Starting MCP Memory Graph on {settings.server.host}:{settings.server.port}")
        mcp.run(transport="http", host=settings.server.host, port=settings.server.port, stateless_http=True)


if __name__ == "__main__":
    main()
