"""
GraphData — IR projection for graph visualisation

Every IR node type maps to a graph node type of the same name, every
relationship type to an edge type of the same name except
`causes -> causal`. States are joined onto their node by node_id.
Nothing is dropped: verify_transformation() checks that.

The projection works on the IR's dict form, so it also accepts IR JSON
written by other tools. Unknown type strings fall back to `thought`
(nodes) and `causal` (edges) with a logged warning; this fallback exists
only here, never in the IR itself.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..core.ir import IR, NodeType, RelationType

logger = logging.getLogger(__name__)


NODE_TYPE_MAP = {t.value: t.value for t in NodeType}
EDGE_TYPE_MAP = {t.value: t.value for t in RelationType}
EDGE_TYPE_MAP["causes"] = "causal"

FALLBACK_NODE_TYPE = "thought"
FALLBACK_EDGE_TYPE = "causal"

NODE_VISUALS = {
    "statement": ("rect", "#9e9e9e"),
    "question": ("diamond", "#1e88e5"),
    "thought": ("ellipse", "#8e24aa"),
    "action": ("rect", "#43a047"),
    "block": ("group", "#cfd8dc"),
    "decision": ("hexagon", "#00897b"),
    "blocker": ("octagon", "#e53935"),
    "insight": ("star", "#fdd835"),
    "completion": ("circle", "#2e7d32"),
    "alternative": ("rect", "#fb8c00"),
    "exploring": ("ellipse", "#5e35b1"),
    "parking": ("rect", "#757575"),
}

EDGE_VISUALS = {
    "causal": ("solid", "#424242"),
    "temporal": ("dashed", "#607d8b"),
    "derives_from": ("dotted", "#424242"),
    "bidirectional": ("solid", "#6d4c41"),
    "tension": ("zigzag", "#e53935"),
    "equivalent": ("double", "#00897b"),
    "different": ("dashed", "#8e24aa"),
    "alternative": ("solid", "#fb8c00"),
    "alternative_worse": ("dashed", "#fb8c00"),
    "alternative_better": ("solid", "#43a047"),
}


@dataclass
class GraphNode:
    id: str
    type: str
    content: str
    line_number: int
    visualization: Dict[str, str]
    state: Optional[Dict[str, Dict[str, Any]]] = None
    children: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "line_number": self.line_number,
            "visualization": dict(self.visualization),
            "children": list(self.children),
        }
        if self.state is not None:
            d["state"] = self.state
        return d


@dataclass
class GraphEdge:
    source: str
    target: str
    type: str
    visualization: Dict[str, str]
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "visualization": dict(self.visualization),
        }
        if self.label:
            d["label"] = self.label
        return d


@dataclass
class GraphData:
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


# =============================================================================
# Type mapping
# =============================================================================

def map_node_type(ir_type: str) -> str:
    mapped = NODE_TYPE_MAP.get(ir_type)
    if mapped is None:
        logger.warning("Unknown IR node type %r, defaulting to %r", ir_type, FALLBACK_NODE_TYPE)
        return FALLBACK_NODE_TYPE
    return mapped


def map_edge_type(ir_type: str) -> str:
    mapped = EDGE_TYPE_MAP.get(ir_type)
    if mapped is None:
        logger.warning("Unknown IR relationship type %r, defaulting to %r", ir_type, FALLBACK_EDGE_TYPE)
        return FALLBACK_EDGE_TYPE
    return mapped


def node_visualization(graph_type: str) -> Dict[str, str]:
    shape, color = NODE_VISUALS.get(graph_type, NODE_VISUALS[FALLBACK_NODE_TYPE])
    return {"shape": shape, "color": color}


def edge_visualization(graph_type: str) -> Dict[str, str]:
    style, color = EDGE_VISUALS.get(graph_type, EDGE_VISUALS[FALLBACK_EDGE_TYPE])
    return {"style": style, "color": color}


# =============================================================================
# States
# =============================================================================

def transform_state(state: Optional[Dict[str, Any]]) -> Optional[Dict[str, Dict[str, Any]]]:
    """IR state dict -> {state_type: {fields}} with the documented field set per type."""
    if not state:
        return None

    fields = state.get("fields") or {}
    state_type = state.get("type")

    if state_type == "decided":
        return {"decided": {"rationale": fields.get("rationale", ""), "on": fields.get("on", "")}}
    if state_type == "blocked":
        return {"blocked": {"reason": fields.get("reason", ""), "since": fields.get("since", "")}}
    if state_type == "exploring":
        exploring = {"since": fields.get("since", "")}
        if fields.get("hypothesis"):
            exploring["hypothesis"] = fields["hypothesis"]
        return {"exploring": exploring}
    if state_type == "parking":
        return {"parking": {"why": fields.get("why", ""), "until": fields.get("until", "")}}

    logger.warning("Unknown IR state type %r", state_type)
    return None


def _as_dict(ir: Union[IR, Dict[str, Any]]) -> Dict[str, Any]:
    return ir.to_dict() if isinstance(ir, IR) else ir


# =============================================================================
# Projection
# =============================================================================

def ir_to_graph_data(ir: Union[IR, Dict[str, Any]]) -> GraphData:
    """
    Project an IR (or its JSON dict) onto GraphData in O(nodes + states + relationships).

    Example:
        graph = ir_to_graph_data(parse("A -> B"))
        len(graph.nodes), len(graph.edges)   # (2, 1)
    """
    data = _as_dict(ir)

    # Last state for a node wins
    states_by_node: Dict[str, Dict[str, Any]] = {}
    for state in data.get("states") or []:
        states_by_node[state.get("node_id", "")] = state

    nodes = []
    for node in data.get("nodes") or []:
        graph_type = map_node_type(node.get("type"))
        provenance = node.get("provenance") or {}
        nodes.append(GraphNode(
            id=node["id"],
            type=graph_type,
            content=node.get("content", ""),
            line_number=provenance.get("line_number", 0),
            visualization=node_visualization(graph_type),
            state=transform_state(states_by_node.get(node["id"])),
            children=list(node.get("children") or []),
        ))

    edges = []
    for rel in data.get("relationships") or []:
        graph_type = map_edge_type(rel.get("type"))
        edges.append(GraphEdge(
            source=rel["source"],
            target=rel["target"],
            type=graph_type,
            visualization=edge_visualization(graph_type),
            label=rel.get("axis_label") or None,
        ))

    return GraphData(nodes=nodes, edges=edges)


def verify_transformation(ir: Union[IR, Dict[str, Any]], graph: GraphData) -> Dict[str, Any]:
    """
    Check that a projection lost nothing.

    Errors: node or edge count differs, unknown node or edge types.
    Warnings: joined state count or children-bearing node count differs.
    """
    data = _as_dict(ir)
    ir_nodes = data.get("nodes") or []
    ir_rels = data.get("relationships") or []
    ir_states = data.get("states") or []

    errors: List[str] = []
    warnings: List[str] = []

    if len(ir_nodes) != len(graph.nodes):
        errors.append(f"Node count mismatch: IR={len(ir_nodes)}, GraphData={len(graph.nodes)}")

    if len(ir_rels) != len(graph.edges):
        errors.append(f"Edge count mismatch: IR={len(ir_rels)}, GraphData={len(graph.edges)}")

    unknown_nodes = []
    for node in ir_nodes:
        node_type = node.get("type")
        if node_type not in NODE_TYPE_MAP and node_type not in unknown_nodes:
            unknown_nodes.append(node_type)
    if unknown_nodes:
        errors.append(f"Unknown node types: {', '.join(map(str, unknown_nodes))}")

    unknown_edges = []
    for rel in ir_rels:
        rel_type = rel.get("type")
        if rel_type not in EDGE_TYPE_MAP and rel_type not in unknown_edges:
            unknown_edges.append(rel_type)
    if unknown_edges:
        errors.append(f"Unknown edge types: {', '.join(map(str, unknown_edges))}")

    attached = len([s for s in ir_states if s.get("node_id")])
    joined = len([n for n in graph.nodes if n.state is not None])
    if attached != joined:
        warnings.append(f"State join mismatch: IR={attached}, GraphData={joined}")

    ir_parents = len([n for n in ir_nodes if n.get("children")])
    graph_parents = len([n for n in graph.nodes if n.children])
    if ir_parents != graph_parents:
        warnings.append(f"Children array mismatch: IR={ir_parents}, GraphData={graph_parents}")

    return {"passed": not errors, "errors": errors, "warnings": warnings}
