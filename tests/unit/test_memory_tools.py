"""
Unit tests for the MCP tool handlers.

Handlers are called directly with raw (camelCase) argument dicts and a
registry over in-memory storage; every response is asserted as text.
"""

from unittest.mock import patch

import pytest

from mcp_memory_graph.config import Settings
from mcp_memory_graph.models.mcp_inputs import SaveMemoryParams
from mcp_memory_graph.models.memory import Memory, Relation
from mcp_memory_graph.models.scope import GLOBAL_SCOPE
from mcp_memory_graph.registry import MemoryRegistry
from mcp_memory_graph.storage import ScopeState
from mcp_memory_graph.tools import memory_tools
from mcp_memory_graph.tools.memory_tools import (
    TOOL_HANDLERS,
    create_memory_timeline,
    delete_memory,
    get_memory_graph,
    link_memories,
    list_memories,
    prioritize_memory,
    recall_memory,
    save_memory,
    search_memories,
    start_session,
    unlink_memories,
    update_memory,
)


@pytest.fixture
def seeded(registry):
    """Registry with two linked decisions and an unrelated note in the global scope."""
    save_memory(registry, {"key": "arch-decision", "value": "Use GPS-first validation", "category": "decision"})
    save_memory(registry, {"key": "vision-threshold", "value": "0.8 confidence", "category": "decision"})
    save_memory(registry, {"key": "unrelated", "value": "Team lunch is on Friday"})
    return registry


def test_every_tool_is_registered():
    assert set(TOOL_HANDLERS) == {
        "save_memory",
        "recall_memory",
        "update_memory",
        "delete_memory",
        "list_memories",
        "search_memories",
        "link_memories",
        "unlink_memories",
        "get_memory_graph",
        "prioritize_memory",
        "create_memory_timeline",
        "start_session",
    }


# =============================================================================
# Memory operations
# =============================================================================


class TestSaveRecall:
    def test_save_reports_location(self, registry):
        text = save_memory(registry, {"key": "k", "value": "v"})
        assert text == "✓ Saved: k\nCategory: project\nLocation: memory://global"

    def test_resave_reports_update(self, registry):
        save_memory(registry, {"key": "k", "value": "v1"})
        assert save_memory(registry, {"key": "k", "value": "v2"}).startswith("✓ Updated: k")

    def test_recall_returns_memory_text(self, registry):
        save_memory(registry, {"key": "k", "value": "remember me", "category": "pattern"})
        assert recall_memory(registry, {"key": "k"}) == "✓ k: remember me\n[pattern]"

    def test_recall_missing(self, registry):
        assert recall_memory(registry, {"key": "nope"}) == '✗ Not found: "nope"'

    def test_project_path_selects_scope(self, registry, tmp_path):
        save_memory(registry, {"key": "k", "value": "project", "projectPath": str(tmp_path)})
        assert recall_memory(registry, {"key": "k"}).startswith("✗")
        assert recall_memory(registry, {"key": "k", "projectPath": str(tmp_path) + "/"}).startswith("✓ k: project")

    def test_invalid_category(self, registry):
        text = save_memory(registry, {"key": "k", "value": "v", "category": "general"})
        assert text.startswith("✗ Invalid input: category: ")

    def test_missing_arguments(self, registry):
        assert save_memory(registry, None).startswith("✗ Invalid input: key: Field required")


class TestUpdateDeleteList:
    def test_update_and_append(self, registry):
        save_memory(registry, {"key": "k", "value": "a"})
        assert update_memory(registry, {"key": "k", "value": "b"}) == '✓ Updated memory: "k"'
        assert update_memory(registry, {"key": "k", "value": "c", "append": True}) == '✓ Appended to memory: "k"'
        assert recall_memory(registry, {"key": "k"}).startswith("✓ k: b c")

    def test_update_missing(self, registry):
        text = update_memory(registry, {"key": "ghost", "value": "x"})
        assert text.startswith('✗ Memory not found: "ghost"')

    def test_delete(self, seeded):
        assert delete_memory(seeded, {"key": "unrelated"}) == '✓ Deleted memory: "unrelated"'
        assert delete_memory(seeded, {"key": "unrelated"}) == '✗ Memory not found: "unrelated"'

    def test_list_with_total_and_limit(self, seeded):
        text = list_memories(seeded, {"category": "decision", "limit": 1})
        assert text.startswith("✓ Found 2 memories in 'decision':\n• ")
        assert text.count("• ") == 1

    def test_list_empty(self, registry):
        assert list_memories(registry, {}) == "✓ Found 0 memories:\nNone"

    def test_list_limit_out_of_range(self, registry):
        assert list_memories(registry, {"limit": 0}).startswith("✗ Invalid input: limit: ")


class TestSearch:
    def test_keyword(self, seeded):
        text = search_memories(seeded, {"query": "gps"})
        assert text.startswith("✓ Found 1 memories for 'gps' (keyword):")
        assert "arch-decision" in text

    def test_graph_traversal(self, seeded):
        link_memories(seeded, {"sourceKey": "arch-decision", "targetKey": "vision-threshold", "relationType": "uses"})
        text = search_memories(seeded, {"strategy": "graph_traversal", "startKey": "vision-threshold"})

        assert text.startswith("✓ Found 1 memories related to 'vision-threshold' (graph_traversal):")
        assert "• arch-decision (decision)" in text

    def test_graph_traversal_unknown_start(self, seeded):
        text = search_memories(seeded, {"strategy": "graph_traversal", "startKey": "ghost"})
        assert text == "✗ Memory not found: ghost"

    def test_missing_query(self, seeded):
        assert search_memories(seeded, {}).startswith("✗ Invalid input: query is required")

    def test_priority_lists_everything_without_query(self, seeded):
        text = search_memories(seeded, {"strategy": "priority"})
        assert text.startswith("✓ Found 3 memories for '' (priority):")

    def test_context_aware_prefers_key_hits(self, seeded):
        save_memory(seeded, {"key": "gps-notes", "value": "field test results"})
        text = search_memories(seeded, {"query": "gps", "strategy": "context_aware"})

        assert text.startswith("✓ Found 2 memories for 'gps' (context_aware):")
        assert text.index("gps-notes") < text.index("arch-decision")

    def test_context_aware_requires_query(self, seeded):
        text = search_memories(seeded, {"strategy": "context_aware"})
        assert text == "✗ Invalid input: query is required for 'context_aware' strategy"


# =============================================================================
# Relationships
# =============================================================================


class TestLinkMemories:
    def test_success_summary(self, seeded):
        text = link_memories(
            seeded,
            {
                "sourceKey": "arch-decision",
                "targetKey": "vision-threshold",
                "relationType": "depends_on",
                "strength": 0.9,
                "bidirectional": True,
            },
        )
        assert text.startswith(
            "✓ Memory relationship linked\n\n"
            "**Source**: arch-decision\n"
            "**Target**: vision-threshold\n"
            "**Relationship type**: depends_on\n"
            "**Strength**: 0.9\n"
            "**Bidirectional**: Yes"
        )

    def test_defaults(self, seeded):
        text = link_memories(seeded, {"sourceKey": "arch-decision", "targetKey": "unrelated", "relationType": "uses"})
        assert "**Strength**: 1.0" in text
        assert "**Bidirectional**: No" in text

    def test_missing_source(self, seeded):
        text = link_memories(seeded, {"sourceKey": "ghost", "targetKey": "unrelated", "relationType": "uses"})
        assert text == "✗ Source memory not found: ghost"

    def test_missing_target(self, seeded):
        text = link_memories(seeded, {"sourceKey": "unrelated", "targetKey": "ghost", "relationType": "uses"})
        assert text == "✗ Target memory not found: ghost"

    @pytest.mark.parametrize("strength", [-0.1, 1.1])
    def test_strength_out_of_range(self, seeded, strength):
        text = link_memories(
            seeded,
            {"sourceKey": "arch-decision", "targetKey": "unrelated", "relationType": "uses", "strength": strength},
        )
        assert text.startswith("✗ Invalid input: strength: ")
        assert len(seeded.get().graph) == 0

    def test_unknown_relation_type(self, seeded):
        text = link_memories(seeded, {"sourceKey": "arch-decision", "targetKey": "unrelated", "relationType": "causes"})
        assert text.startswith("✗ Invalid input: relationType: ")

    def test_storage_unavailable(self, seeded, memory_storage):
        memory_storage.fail_writes = True
        text = link_memories(seeded, {"sourceKey": "arch-decision", "targetKey": "unrelated", "relationType": "uses"})
        assert text.startswith("✗ Storage unavailable: ")

    def test_relink_reports_replacement(self, seeded):
        args = {"sourceKey": "arch-decision", "targetKey": "unrelated", "relationType": "uses", "strength": 0.3}
        link_memories(seeded, args)
        assert "**Replaced**: 1 existing relation(s)" in link_memories(seeded, args)


class TestUnlink:
    def test_unlink(self, seeded):
        link_memories(seeded, {"sourceKey": "arch-decision", "targetKey": "unrelated", "relationType": "uses"})
        args = {"sourceKey": "arch-decision", "targetKey": "unrelated"}
        assert unlink_memories(seeded, args) == "✓ Removed 1 relationship(s): arch-decision -> unrelated"
        assert unlink_memories(seeded, args) == "✗ No relationship found: arch-decision -> unrelated"


class TestMemoryGraph:
    @pytest.fixture(autouse=True)
    def _link(self, seeded):
        link_memories(
            seeded,
            {"sourceKey": "arch-decision", "targetKey": "vision-threshold", "relationType": "depends_on", "strength": 0.9},
        )

    def test_tree(self, seeded):
        text = get_memory_graph(seeded, {"key": "arch-decision"})
        assert text.startswith("✓ ## Memory Graph")
        assert "📦 **arch-decision** [decision]" in text
        assert "⬅️ vision-threshold (depends_on, 0.9)" in text
        assert "- Clusters: 1" in text

    def test_list(self, seeded):
        text = get_memory_graph(seeded, {"format": "list"})
        assert "- arch-decision --[depends_on]--> vision-threshold (strength: 0.9)" in text
        assert "- Nodes: 3" in text

    def test_mermaid(self, seeded):
        text = get_memory_graph(seeded, {"format": "mermaid"})
        assert "```mermaid\ngraph LR" in text
        assert 'n0["arch-decision"]' in text
        assert 'n2["vision-threshold"]' in text
        assert "n0 -->|depends_on| n2" in text

    def test_unknown_key(self, seeded):
        assert get_memory_graph(seeded, {"key": "ghost"}) == "✗ Memory not found: ghost"

    def test_empty_scope(self, registry, tmp_path):
        assert get_memory_graph(registry, {"projectPath": str(tmp_path)}) == "✗ No memories stored"

    def test_long_chain_renders_as_tree(self, memory_storage):
        keys = [f"step-{i:04d}" for i in range(1200)]
        memory_storage.persist(
            GLOBAL_SCOPE,
            ScopeState(
                memories={key: Memory(key=key, value="v") for key in keys},
                relations=[
                    Relation(source_key=a, target_key=b, relation_type="depends_on") for a, b in zip(keys, keys[1:])
                ],
            ),
        )
        registry = MemoryRegistry(memory_storage, Settings())

        text = get_memory_graph(registry, {})

        assert text.startswith("✓ ## Memory Graph")
        assert "📦 **step-1199** [project]" in text
        assert "- Relations: 1199" in text


# =============================================================================
# Ranking & timeline
# =============================================================================


class TestPrioritize:
    def test_linked_decisions_rank_above_unrelated(self, seeded):
        link_memories(
            seeded,
            {"sourceKey": "arch-decision", "targetKey": "vision-threshold", "relationType": "depends_on", "strength": 0.9},
        )
        text = prioritize_memory(seeded, {"currentTask": "payment validation flow"})

        assert text.startswith('✓ Prioritized 3 memories for "payment validation flow":')
        lines = text.splitlines()[1:]
        order = [line.split("] ", 1)[1].split(" ", 1)[0] for line in lines]
        assert order.index("arch-decision") < order.index("unrelated")
        assert order.index("vision-threshold") < order.index("unrelated")

    def test_limit(self, seeded):
        text = prioritize_memory(seeded, {"currentTask": "anything", "limit": 1})
        assert text.startswith("✓ Prioritized 1 memories")

    def test_missing_task(self, seeded):
        assert prioritize_memory(seeded, {}).startswith("✗ Invalid input: currentTask: ")


class TestTimeline:
    def test_groups_by_category(self, seeded):
        text = create_memory_timeline(seeded, {"groupBy": "category"})
        assert text.startswith("✓ Memory timeline")
        assert "### 📁 decision" in text
        assert "### 📁 project" in text
        assert "- **Total memories**: 3" in text

    def test_empty_window(self, seeded):
        text = create_memory_timeline(seeded, {"startDate": "1999-01-01", "endDate": "1999-01-02"})
        assert text.startswith("✗ No memories in the selected period")
        assert "- Start: 1999-01-01" in text

    def test_invalid_date(self, seeded):
        assert create_memory_timeline(seeded, {"startDate": "yesterday"}).startswith("✗ Invalid input: startDate: ")


# =============================================================================
# Error containment
# =============================================================================


class TestErrorContainment:
    def test_unexpected_exception_becomes_error_text(self, seeded):
        with patch.object(memory_tools.MemoryManager, "recall", side_effect=RuntimeError("boom")):
            assert recall_memory(seeded, {"key": "unrelated"}) == "✗ Error: boom"

    def test_unreadable_scope(self, registry, memory_storage, tmp_path):
        memory_storage.fail_reads = True
        text = recall_memory(registry, {"key": "k", "projectPath": str(tmp_path)})
        assert text.startswith("✗ Storage unavailable: ")

    def test_failure_while_validating_becomes_error_text(self, registry):
        with patch.object(SaveMemoryParams, "model_validate", side_effect=RuntimeError("boom")):
            assert save_memory(registry, {"key": "k", "value": "v"}) == "✗ Error: boom"

    def test_non_utf8_store_reports_storage_unavailable(self, json_storage):
        path = json_storage.path_for(GLOBAL_SCOPE)
        path.parent.mkdir(parents=True)
        path.write_bytes(b'{"version": 1, "scope": "global", "memories": [{"key": "\xff", "value": "v"}]}')
        registry = MemoryRegistry(json_storage, Settings())

        text = recall_memory(registry, {"key": "k"})

        assert text.startswith("✗ Storage unavailable: ")
        assert "not UTF-8" in text


# =============================================================================
# Session
# =============================================================================


class TestStartSession:
    def test_summary_lists_recent_project_memories(self, seeded):
        text = start_session(seeded, {"greeting": "Hello"})

        assert text.startswith("✓ Hello! Session started\nLocation: memory://global\nMemories: 3 (0 relations)")
        assert "Recent project info:\n• unrelated: Team lunch is on Friday" in text
        assert "arch-decision" not in text
        assert text.endswith("What would you like to work on?")

    def test_without_memory(self, seeded):
        text = start_session(seeded, {"loadMemory": False})
        assert text.startswith("✓ Session started")
        assert "Recent project info" not in text

    def test_limit_out_of_range(self, registry):
        assert start_session(registry, {"limit": 0}).startswith("✗ Invalid input: limit: ")
