"""
Linker — post-parse resolution the grammar cannot express locally

Passes, in order:
  1. State attachment: a state annotates the first node at or after its line
  2. Question -> alternative: every || between a question and the next question
  3. Children: questions get their alternatives; a block's members become
     children of the node the block hangs from
  4. Dedup: content-addressed duplicates collapse into their first occurrence

The passes work on the flat lists produced by the builder and return them
(nodes are updated in place before the IR is handed out).
"""

from typing import Dict, List, Tuple

from .hashing import relationship_id
from .ir import Node, NodeType, Relationship, RelationType, State


def link(
    nodes: List[Node],
    relationships: List[Relationship],
    states: List[State],
) -> Tuple[List[Node], List[Relationship], List[State]]:
    """Run all linker passes. Returns (nodes, relationships, states)."""
    attach_states(nodes, states)
    relationships = relationships + link_alternatives(nodes)
    populate_children(nodes, relationships)
    return dedupe_nodes(nodes), dedupe_relationships(relationships), states


# =============================================================================
# Pass 1: states
# =============================================================================

def attach_states(nodes: List[Node], states: List[State]) -> None:
    """Same-line attachment counts. Unattachable states keep node_id ""."""
    for state in states:
        line = state.provenance.line_number
        for node in nodes:
            if node.provenance.line_number >= line:
                state.node_id = node.id
                break


# =============================================================================
# Pass 2: alternatives
# =============================================================================

def link_alternatives(nodes: List[Node]) -> List[Relationship]:
    """Provenance of each alternative edge comes from the alternative."""
    created = []
    for index, node in enumerate(nodes):
        if node.type != NodeType.QUESTION:
            continue
        for candidate in nodes[index + 1:]:
            if candidate.type == NodeType.QUESTION:
                break
            if candidate.type == NodeType.ALTERNATIVE:
                created.append(Relationship(
                    id=relationship_id(RelationType.ALTERNATIVE.value, node.id, candidate.id),
                    type=RelationType.ALTERNATIVE,
                    source=node.id,
                    target=candidate.id,
                    provenance=candidate.provenance,
                ))
    return created


# =============================================================================
# Pass 3: children
# =============================================================================

def _append_children(node: Node, child_ids: List[str]) -> None:
    for child_id in child_ids:
        if child_id not in node.children and child_id != node.id:
            node.children.append(child_id)


def populate_children(nodes: List[Node], relationships: List[Relationship]) -> None:
    by_id: Dict[str, Node] = {}
    for node in nodes:
        by_id.setdefault(node.id, node)

    for rel in relationships:
        if rel.type == RelationType.ALTERNATIVE and rel.source in by_id:
            _append_children(by_id[rel.source], [rel.target])

    for block in nodes:
        if block.type != NodeType.BLOCK:
            continue
        members = [by_id[cid] for cid in block.block_children if cid in by_id]
        direct = [m.id for m in members if m.type != NodeType.BLOCK]
        if not direct:
            continue

        first_index = _index_of(nodes, direct[0])
        if first_index <= 0:
            continue
        parent = nodes[first_index - 1]
        if parent.type == NodeType.BLOCK:
            continue
        _append_children(parent, direct)


def _index_of(nodes: List[Node], node_id: str) -> int:
    for index, node in enumerate(nodes):
        if node.id == node_id:
            return index
    return -1


# =============================================================================
# Pass 4: dedup
# =============================================================================

def dedupe_nodes(nodes: List[Node]) -> List[Node]:
    """Identical (type, content, modifiers) is one node. Children merge in order."""
    kept: Dict[str, Node] = {}
    ordered = []
    for node in nodes:
        existing = kept.get(node.id)
        if existing is None:
            kept[node.id] = node
            ordered.append(node)
        else:
            _append_children(existing, node.children)
    return ordered


def dedupe_relationships(relationships: List[Relationship]) -> List[Relationship]:
    seen = set()
    ordered = []
    for rel in relationships:
        if rel.id not in seen:
            seen.add(rel.id)
            ordered.append(rel)
    return ordered
