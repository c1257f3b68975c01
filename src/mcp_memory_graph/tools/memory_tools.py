"""MCP tool handlers.

Each handler takes the scope registry and the raw tool arguments (camelCase
keys, as sent by the client), validates them with the matching input model,
calls the scope's ``MemoryManager`` and renders the outcome as text.

Handlers never raise: invalid input, missing memories, storage failures and
unexpected errors all become ``✗`` lines.
"""

import functools
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from ..errors import (
    MemoryNotFoundError,
    MemoryValidationError,
    StorageUnavailableError,
    describe_validation_error,
)
from ..formatters.text import (
    failure,
    format_deleted,
    format_graph,
    format_linked,
    format_memory_list,
    format_prioritized,
    format_recalled,
    format_saved,
    format_search_results,
    format_session,
    format_timeline,
    format_unlinked,
    format_updated,
)
from ..models.mcp_inputs import (
    DeleteMemoryParams,
    LinkMemoriesParams,
    ListMemoriesParams,
    MemoryGraphParams,
    MemoryTimelineParams,
    PrioritizeMemoryParams,
    RecallMemoryParams,
    SaveMemoryParams,
    SearchMemoriesParams,
    StartSessionParams,
    UnlinkMemoriesParams,
    UpdateMemoryParams,
)
from ..models.validators import MemoryCategory
from ..registry import MemoryRegistry
from ..services.memory_manager import MemoryManager

logger = logging.getLogger(__name__)

ToolHandler = Callable[[MemoryRegistry, dict[str, Any] | None], str]

TOOL_HANDLERS: dict[str, ToolHandler] = {}


def tool_handler(params_model: type[BaseModel]) -> Callable[[Callable[[MemoryManager, Any], str]], ToolHandler]:
    """Register a handler body under its function name.

    The body receives the resolved manager and validated params; the wrapper
    owns validation, scope resolution and error rendering.
    """

    def decorator(func: Callable[[MemoryManager, Any], str]) -> ToolHandler:
        @functools.wraps(func)
        def wrapper(registry: MemoryRegistry, arguments: dict[str, Any] | None) -> str:
            try:
                params = params_model.model_validate(arguments or {})
                manager = registry.get(params.project_path)
                return func(manager, params)
            except ValidationError as e:
                return failure(f"Invalid input: {describe_validation_error(e)}")
            except MemoryNotFoundError as e:
                return failure(str(e))
            except MemoryValidationError as e:
                return failure(f"Invalid input: {e}")
            except StorageUnavailableError as e:
                logger.error(f"{func.__name__}: storage unavailable: {e}")
                return failure(f"Storage unavailable: {e}")
            except Exception as e:
                logger.exception(f"Unexpected error in {func.__name__}")
                return failure(f"Error: {e}")

        TOOL_HANDLERS[func.__name__] = wrapper
        return wrapper

    return decorator


# =============================================================================
# MEMORY OPERATIONS
# =============================================================================


@tool_handler(SaveMemoryParams)
def save_memory(manager: MemoryManager, params: SaveMemoryParams) -> str:
    memory = manager.save(params.key, params.value, params.category)
    return format_saved(memory, manager.location)


@tool_handler(RecallMemoryParams)
def recall_memory(manager: MemoryManager, params: RecallMemoryParams) -> str:
    memory = manager.recall(params.key)
    if memory is None:
        return failure(f'Not found: "{params.key}"')
    return format_recalled(memory)


@tool_handler(UpdateMemoryParams)
def update_memory(manager: MemoryManager, params: UpdateMemoryParams) -> str:
    memory = manager.update(params.key, params.value, append=params.append)
    if memory is None:
        return failure(f'Memory not found: "{params.key}". Use save_memory to create new memory.')
    return format_updated(memory, params.append)


@tool_handler(DeleteMemoryParams)
def delete_memory(manager: MemoryManager, params: DeleteMemoryParams) -> str:
    if not manager.delete(params.key):
        return failure(f'Memory not found: "{params.key}"')
    return format_deleted(params.key)


@tool_handler(ListMemoriesParams)
def list_memories(manager: MemoryManager, params: ListMemoriesParams) -> str:
    memories = manager.list_memories(params.category)
    return format_memory_list(memories[: params.limit], len(memories), params.category)


@tool_handler(SearchMemoriesParams)
def search_memories(manager: MemoryManager, params: SearchMemoriesParams) -> str:
    if params.strategy == "graph_traversal" and params.start_key:
        memories = manager.related(params.start_key, depth=params.depth)
        if params.category is not None:
            memories = [m for m in memories if m.category == params.category]
        return format_search_results(memories[: params.limit], params.strategy, start_key=params.start_key)

    # graph_traversal without a start key falls back to keyword search
    strategy = "keyword" if params.strategy == "graph_traversal" else params.strategy
    memories = manager.search(params.query, category=params.category, limit=params.limit, strategy=strategy)
    return format_search_results(memories, params.strategy, query=params.query)


# =============================================================================
# RELATIONSHIPS
# =============================================================================


@tool_handler(LinkMemoriesParams)
def link_memories(manager: MemoryManager, params: LinkMemoriesParams) -> str:
    result = manager.link_memories(
        params.source_key,
        params.target_key,
        params.relation_type,
        strength=params.strength,
        bidirectional=params.bidirectional,
    )
    if result.success:
        return format_linked(result.relations[0], result.replaced)

    if result.error_kind == "not_found":
        return failure(result.error)
    if result.error_kind == "validation":
        return failure(f"Invalid input: {result.error}")
    if result.error_kind == "storage_unavailable":
        return failure(f"Storage unavailable: {result.error}")
    return failure(f"Error: {result.error}")


@tool_handler(UnlinkMemoriesParams)
def unlink_memories(manager: MemoryManager, params: UnlinkMemoriesParams) -> str:
    removed = manager.unlink_memories(params.source_key, params.target_key, params.relation_type)
    return format_unlinked(params.source_key, params.target_key, removed)


@tool_handler(MemoryGraphParams)
def get_memory_graph(manager: MemoryManager, params: MemoryGraphParams) -> str:
    snapshot = manager.get_graph(params.key, depth=params.depth, relation_type=params.relation_type)
    return format_graph(snapshot, params.format)


# =============================================================================
# RANKING & TIMELINE
# =============================================================================


@tool_handler(PrioritizeMemoryParams)
def prioritize_memory(manager: MemoryManager, params: PrioritizeMemoryParams) -> str:
    ranked = manager.prioritize(params.current_task, limit=params.limit, focus_terms=params.focus_terms)
    return format_prioritized(params.current_task, ranked)


@tool_handler(MemoryTimelineParams)
def create_memory_timeline(manager: MemoryManager, params: MemoryTimelineParams) -> str:
    memories = manager.timeline(params.start_date, params.end_date, category=params.category, limit=params.limit)
    return format_timeline(
        memories,
        group_by=params.group_by,
        start=params.start_date,
        end=params.end_date,
        category=params.category,
    )


# =============================================================================
# SESSION
# =============================================================================


@tool_handler(StartSessionParams)
def start_session(manager: MemoryManager, params: StartSessionParams) -> str:
    recent = manager.list_memories(MemoryCategory.PROJECT, limit=params.limit) if params.load_memory else []
    return format_session(params.greeting, manager.stats(), recent, manager.location)
