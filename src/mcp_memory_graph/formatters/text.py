"""Plain-text rendering of manager results for MCP tool output.

Every successful response starts with ``✓`` and every failure with ``✗``.
Nothing outside the tool layer produces these strings.
"""

from collections import Counter, defaultdict
from collections.abc import Sequence
from datetime import date, datetime, timedelta, timezone

from ..models.memory import Memory, Relation
from ..models.responses import GraphSnapshot, RankedMemory, ScopeStats
from ..models.validators import GraphFormat, TimelineGrouping

OK = "✓"
FAIL = "✗"

_RELATION_ARROWS = {
    "related_to": "↔️",
    "depends_on": "⬅️",
    "implements": "🔧",
    "extends": "📈",
    "uses": "🔗",
    "references": "📎",
    "part_of": "📦",
}


def failure(message: str) -> str:
    return f"{FAIL} {message}"


def _utc(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, timezone.utc)


def _bullet(memory: Memory) -> str:
    return f"• {memory.key} ({memory.category}): {memory.preview}"


# =============================================================================
# MEMORIES
# =============================================================================


def format_saved(memory: Memory, location: str) -> str:
    verb = "Updated" if memory.updated_at > memory.created_at else "Saved"
    return f"{OK} {verb}: {memory.key}\nCategory: {memory.category}\nLocation: {location}"


def format_recalled(memory: Memory) -> str:
    return f"{OK} {memory.key}: {memory.value}\n[{memory.category}]"


def format_updated(memory: Memory, append: bool) -> str:
    return f'{OK} {"Appended to" if append else "Updated"} memory: "{memory.key}"'


def format_deleted(key: str) -> str:
    return f'{OK} Deleted memory: "{key}"'


def format_session(greeting: str, stats: ScopeStats, recent: Sequence[Memory], location: str) -> str:
    opening = f"{greeting.strip().rstrip('!')}! " if greeting.strip() else ""
    lines = [
        f"{OK} {opening}Session started",
        f"Location: {location}",
        f"Memories: {stats.total} ({stats.relations} relations)",
    ]
    if recent:
        lines += ["", "Recent project info:", *(f"• {m.key}: {m.preview}" for m in recent)]
    lines += ["", "Ready to continue. What would you like to work on?"]
    return "\n".join(lines)


def format_memory_list(memories: Sequence[Memory], total: int, category: str | None = None) -> str:
    """``total`` counts all matches; ``memories`` is the page that is shown."""
    scope = f" in '{category}'" if category else ""
    lines = "\n".join(_bullet(m) for m in memories) or "None"
    return f"{OK} Found {total} memories{scope}:\n{lines}"


def format_search_results(
    memories: Sequence[Memory],
    strategy: str,
    query: str = "",
    start_key: str | None = None,
) -> str:
    if start_key:
        header = f"{OK} Found {len(memories)} memories related to '{start_key}' ({strategy})"
    else:
        header = f"{OK} Found {len(memories)} memories for '{query}' ({strategy})"
    lines = "\n".join(_bullet(m) for m in memories) or "None"
    return f"{header}:\n{lines}"


# =============================================================================
# RELATIONS
# =============================================================================


def format_linked(relation: Relation, replaced: int = 0) -> str:
    text = (
        f"{OK} Memory relationship linked\n\n"
        f"**Source**: {relation.source_key}\n"
        f"**Target**: {relation.target_key}\n"
        f"**Relationship type**: {relation.relation_type}\n"
        f"**Strength**: {relation.strength}\n"
        f"**Bidirectional**: {'Yes' if relation.bidirectional else 'No'}"
    )
    if replaced:
        text += f"\n**Replaced**: {replaced} existing relation(s)"
    return text + "\n\nYou can now visualize the relationship with get_memory_graph."


def format_unlinked(source_key: str, target_key: str, removed: int) -> str:
    if not removed:
        return failure(f"No relationship found: {source_key} -> {target_key}")
    return f"{OK} Removed {removed} relationship(s): {source_key} -> {target_key}"


def _arrow(relation_type: str) -> str:
    return _RELATION_ARROWS.get(relation_type, "➡️")


def _graph_tree(snapshot: GraphSnapshot) -> str:
    nodes = {node.key: node for node in snapshot.nodes}
    visited: set[str] = set()
    lines: list[str] = []

    def walk(root: str) -> None:
        # Depth-first with an explicit stack; entries are (key, indent) or (relation, indent)
        stack: list[tuple[str | Relation, int]] = [(root, 0)]
        while stack:
            item, indent = stack.pop()
            if isinstance(item, Relation):
                lines.append(
                    "  " * indent
                    + f"{_arrow(item.relation_type)} {item.target_key} "
                    + f"({item.relation_type}, {item.strength})"
                )
                stack.append((item.target_key, indent + 1))
                continue
            if item in visited or item not in nodes:
                continue
            visited.add(item)
            node = nodes[item]
            lines.append("  " * indent + f"📦 **{item}** [{node.category}]")
            stack.extend((relation, indent + 1) for relation in reversed(node.relations))

    header = "## Memory Graph\n"
    if snapshot.root:
        header += f"\n**Root**: {snapshot.root}\n"
        walk(snapshot.root)
    # Nodes only reachable against edge direction are listed as their own roots
    for node in snapshot.nodes:
        walk(node.key)
    return header + "\n" + "\n".join(lines)


def _graph_list(snapshot: GraphSnapshot) -> str:
    lines = ["## Memory Graph (list)", "", "### Nodes"]
    for node in snapshot.nodes:
        preview = node.value if len(node.value) <= 50 else node.value[:50] + "..."
        lines.append(f"- **{node.key}** [{node.category}]: {preview}")
    lines += ["", "### Relations"]
    for edge in snapshot.edges:
        lines.append(f"- {edge.source_key} --[{edge.relation_type}]--> {edge.target_key} (strength: {edge.strength})")
    return "\n".join(lines)


def _mermaid_label(key: str) -> str:
    return key.replace('"', "#quot;")


def _graph_mermaid(snapshot: GraphSnapshot) -> str:
    # Keys may contain any character, so node ids are positional
    ids = {node.key: f"n{index}" for index, node in enumerate(snapshot.nodes)}
    by_category: dict[str, list[str]] = defaultdict(list)
    for node in snapshot.nodes:
        by_category[node.category].append(node.key)

    lines = ["## Memory Graph (Mermaid)", "", "```mermaid", "graph LR"]
    for category, keys in by_category.items():
        lines.append(f"  subgraph {category}")
        lines.extend(f'    {ids[key]}["{_mermaid_label(key)}"]' for key in keys)
        lines.append("  end")
    for edge in snapshot.edges:
        lines.append(f"  {ids[edge.source_key]} -->|{edge.relation_type}| {ids[edge.target_key]}")
    lines.append("```")
    return "\n".join(lines)


def format_graph(snapshot: GraphSnapshot, output_format: GraphFormat = "tree") -> str:
    if not snapshot.nodes:
        return failure("No memories stored")

    renderers = {"tree": _graph_tree, "list": _graph_list, "mermaid": _graph_mermaid}
    body = renderers[output_format](snapshot)

    stats = [
        "",
        "---",
        "**Statistics**",
        f"- Nodes: {len(snapshot.nodes)}",
        f"- Relations: {len(snapshot.edges)}",
        f"- Clusters: {len(snapshot.clusters)}",
    ]
    if snapshot.clusters:
        stats.append("- Cluster members: " + ", ".join(f"[{', '.join(c)}]" for c in snapshot.clusters))
    return f"{OK} {body}\n" + "\n".join(stats)


# =============================================================================
# RANKING & TIMELINE
# =============================================================================


def format_prioritized(task: str, ranked: Sequence[RankedMemory]) -> str:
    lines = "\n".join(
        f"• [{r.score * 100:.0f}%] {r.key} "
        f"(recency {r.recency:.2f}, frequency {r.frequency:.2f}, "
        f"centrality {r.centrality:.2f}, context {r.context:.2f}): {r.memory.preview}"
        for r in ranked
    )
    return f'{OK} Prioritized {len(ranked)} memories for "{task}":\n{lines or "None"}'


def _group_key(memory: Memory, group_by: TimelineGrouping) -> str:
    created = _utc(memory.created_at)
    if group_by == "category":
        return str(memory.category)
    if group_by == "month":
        return created.strftime("%Y-%m")
    if group_by == "week":
        monday = created.date() - timedelta(days=created.weekday())
        return monday.isoformat()
    return created.date().isoformat()


_GROUP_LABELS = {
    "day": "📅 {}",
    "week": "📆 Week of {}",
    "month": "🗓️ {}",
    "category": "📁 {}",
}


def format_timeline(
    memories: Sequence[Memory],
    group_by: TimelineGrouping = "day",
    start: date | None = None,
    end: date | None = None,
    category: str | None = None,
) -> str:
    filters = [
        label
        for label in (
            f"- Start: {start.isoformat()}" if start else "",
            f"- End: {end.isoformat()}" if end else "",
            f"- Category: {category}" if category else "",
        )
        if label
    ]

    if not memories:
        return failure("No memories in the selected period" + ("\n\n" + "\n".join(filters) if filters else ""))

    lines = [f"{OK} Memory timeline", ""]
    if filters:
        lines += ["**Filters**:", *filters, ""]

    groups: dict[str, list[Memory]] = defaultdict(list)
    for memory in memories:
        groups[_group_key(memory, group_by)].append(memory)

    for key, members in groups.items():
        lines += [f"### {_GROUP_LABELS[group_by].format(key)}", ""]
        for memory in members:
            preview = memory.value if len(memory.value) <= 100 else memory.value[:100] + "..."
            lines += [f"**{_utc(memory.created_at):%H:%M}** | `{memory.key}`", f"> {preview}", ""]

    counts = Counter(str(m.category) for m in memories)
    lines += ["---", "## Statistics", f"- **Total memories**: {len(memories)}", "- **Categories**:"]
    for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
        lines.append(f"  - {name}: {count} ({count / len(memories) * 100:.1f}%)")
    return "\n".join(lines)
