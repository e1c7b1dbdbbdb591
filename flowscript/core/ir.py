"""
IR — Intermediate Representation of a FlowScript document

The IR is a pure value: three flat collections (nodes, relationships,
states) plus declarative invariant flags. It is produced by the parser,
completed by the linker, and only read afterwards.

Serialization uses orjson. Empty optional members are omitted so the
JSON stays close to what a hand-written document would contain.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import orjson

from .errors import IRFormatError


IR_VERSION = "1.0.0"


class NodeType(Enum):
    """Kinds of thought units."""
    STATEMENT = "statement"
    QUESTION = "question"
    THOUGHT = "thought"
    ACTION = "action"
    BLOCK = "block"
    DECISION = "decision"
    BLOCKER = "blocker"
    INSIGHT = "insight"
    COMPLETION = "completion"
    ALTERNATIVE = "alternative"
    EXPLORING = "exploring"
    PARKING = "parking"


class RelationType(Enum):
    """Directed edge kinds."""
    CAUSES = "causes"
    TEMPORAL = "temporal"
    DERIVES_FROM = "derives_from"
    BIDIRECTIONAL = "bidirectional"
    TENSION = "tension"
    EQUIVALENT = "equivalent"
    DIFFERENT = "different"
    ALTERNATIVE = "alternative"
    ALTERNATIVE_WORSE = "alternative_worse"
    ALTERNATIVE_BETTER = "alternative_better"


class StateType(Enum):
    """Out-of-band annotations attached to a node."""
    DECIDED = "decided"
    EXPLORING = "exploring"
    BLOCKED = "blocked"
    PARKING = "parking"


class Modifier(Enum):
    URGENT = "urgent"
    STRONG_POSITIVE = "strong_positive"
    HIGH_CONFIDENCE = "high_confidence"
    LOW_CONFIDENCE = "low_confidence"


# Prefix token -> modifier
MODIFIER_TOKENS = {
    "!": Modifier.URGENT,
    "++": Modifier.STRONG_POSITIVE,
    "*": Modifier.HIGH_CONFIDENCE,
    "~": Modifier.LOW_CONFIDENCE,
}

# Required / recommended state fields
REQUIRED_STATE_FIELDS = {
    StateType.DECIDED: ("rationale", "on"),
    StateType.BLOCKED: ("reason", "since"),
}
RECOMMENDED_STATE_FIELDS = {
    StateType.PARKING: ("why", "until"),
}

DEFAULT_INVARIANTS = {
    "causal_acyclic": True,
    "all_nodes_reachable": True,
    "tension_axes_labeled": True,
    "state_fields_present": True,
}


def utc_timestamp() -> str:
    """ISO-8601 timestamp in UTC."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Provenance:
    source_file: str
    line_number: int
    timestamp: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_file": self.source_file,
            "line_number": self.line_number,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Provenance':
        return cls(
            source_file=d.get("source_file", ""),
            line_number=int(d.get("line_number", 0)),
            timestamp=d.get("timestamp", ""),
        )


@dataclass
class Node:
    """
    A unit of thought.

    `children` is the hierarchical nesting filled in by the linker.
    Block membership (which nodes a `{...}` directly contains) lives in
    ext["children"] as an ordered id list.
    """
    id: str
    type: NodeType
    content: str
    provenance: Provenance
    children: List[str] = field(default_factory=list)
    modifiers: List[str] = field(default_factory=list)
    ext: Dict[str, Any] = field(default_factory=dict)

    @property
    def block_children(self) -> List[str]:
        """Direct members of this node's block, if it wraps one."""
        return list(self.ext.get("children", []))

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "provenance": self.provenance.to_dict(),
        }
        if self.children:
            d["children"] = list(self.children)
        if self.modifiers:
            d["modifiers"] = list(self.modifiers)
        if self.ext:
            d["ext"] = dict(self.ext)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Node':
        return cls(
            id=d["id"],
            type=NodeType(d["type"]),
            content=d.get("content", ""),
            provenance=Provenance.from_dict(d.get("provenance", {})),
            children=list(d.get("children", [])),
            modifiers=list(d.get("modifiers", [])),
            ext=dict(d.get("ext", {})),
        )


@dataclass
class Relationship:
    """A directed, typed edge. axis_label is only meaningful for tensions."""
    id: str
    type: RelationType
    source: str
    target: str
    provenance: Provenance
    axis_label: Optional[str] = None
    feedback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "type": self.type.value,
            "source": self.source,
            "target": self.target,
            "provenance": self.provenance.to_dict(),
        }
        if self.type == RelationType.TENSION:
            d["axis_label"] = self.axis_label
        if self.feedback:
            d["feedback"] = True
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Relationship':
        return cls(
            id=d["id"],
            type=RelationType(d["type"]),
            source=d["source"],
            target=d["target"],
            provenance=Provenance.from_dict(d.get("provenance", {})),
            axis_label=d.get("axis_label"),
            feedback=bool(d.get("feedback", False)),
        )


@dataclass
class State:
    """Annotation attached post-hoc to a node. node_id is "" until linked."""
    id: str
    type: StateType
    fields: Dict[str, str]
    provenance: Provenance
    node_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "node_id": self.node_id,
            "fields": dict(self.fields),
            "provenance": self.provenance.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'State':
        return cls(
            id=d["id"],
            type=StateType(d["type"]),
            fields={str(k): str(v) for k, v in (d.get("fields") or {}).items()},
            provenance=Provenance.from_dict(d.get("provenance", {})),
            node_id=d.get("node_id") or "",
        )


@dataclass
class IR:
    """Root value of a compiled document."""
    nodes: List[Node] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    states: List[State] = field(default_factory=list)
    invariants: Dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_INVARIANTS))
    metadata: Dict[str, Any] = field(default_factory=dict)
    version: str = IR_VERSION

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_by_type(self, node_type: NodeType) -> List[Node]:
        return [n for n in self.nodes if n.type == node_type]

    def states_for(self, node_id: str) -> List[State]:
        return [s for s in self.states if s.node_id == node_id]

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "version": self.version,
            "nodes": [n.to_dict() for n in self.nodes],
            "relationships": [r.to_dict() for r in self.relationships],
            "states": [s.to_dict() for s in self.states],
            "invariants": dict(self.invariants),
        }
        if self.metadata:
            d["metadata"] = dict(self.metadata)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'IR':
        try:
            return cls(
                version=d.get("version", IR_VERSION),
                nodes=[Node.from_dict(n) for n in d.get("nodes", [])],
                relationships=[Relationship.from_dict(r) for r in d.get("relationships", [])],
                states=[State.from_dict(s) for s in d.get("states") or []],
                invariants=dict(d.get("invariants") or {}),
                metadata=dict(d.get("metadata") or {}),
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise IRFormatError(f"Malformed IR: {e}") from e

    def to_json(self, indent: bool = True) -> str:
        option = orjson.OPT_INDENT_2 if indent else 0
        return orjson.dumps(self.to_dict(), option=option).decode()

    @classmethod
    def from_json(cls, data) -> 'IR':
        try:
            decoded = orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise IRFormatError(f"Invalid JSON: {e}") from e
        if not isinstance(decoded, dict):
            raise IRFormatError("IR document must be a JSON object")
        return cls.from_dict(decoded)
