"""
Parser — FlowScript text to IR

Pipeline:
    source --IndentationScanner--> explicit-brace text
           --arpeggio grammar-----> parse tree
           --IRBuilder------------> nodes / relationships / states
           --Linker---------------> linked IR

The builder is an explicit recursive visitor. Everything that changes
while walking (active modifiers, the current relationship source, the
enclosing block's continuation anchor) is passed as arguments or held in
a per-block `BlockScope`, never in shared mutable fields.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from arpeggio import NoMatch, NonTerminal

from .errors import ParseError
from .grammar import BODY_RULES, OPERATOR_RULES, RULE_NAMES, Rule, create_parser
from .hashing import block_id, node_id, relationship_id, state_id, wrapped_block_id
from .indentation import IndentationScanner
from .ir import (
    IR, IR_VERSION, MODIFIER_TOKENS, Node, NodeType, Provenance,
    Relationship, RelationType, State, StateType, utc_timestamp,
)
from .linker import link

logger = logging.getLogger(__name__)

PARSER_NAME = f"flowscript-peg-parser {IR_VERSION}"

OPERATOR_TYPES = {
    Rule.BIDIRECTIONAL_OP: RelationType.BIDIRECTIONAL,
    Rule.CAUSES_OP: RelationType.CAUSES,
    Rule.DERIVES_OP: RelationType.DERIVES_FROM,
    Rule.TEMPORAL_OP: RelationType.TEMPORAL,
    Rule.TENSION_OP: RelationType.TENSION,
}

MARKER_TYPES = {
    Rule.QUESTION: NodeType.QUESTION,
    Rule.THOUGHT: NodeType.THOUGHT,
    Rule.ACTION: NodeType.ACTION,
    Rule.COMPLETION: NodeType.COMPLETION,
    Rule.ALTERNATIVE: NodeType.ALTERNATIVE,
}


# =============================================================================
# Parse tree helpers
# =============================================================================

def _kind(pt) -> Optional[Rule]:
    name = pt.rule_name
    return Rule(name) if name in RULE_NAMES else None


def _parts(pt) -> list:
    """Meaningful sub-nodes of pt, looking through anonymous and choice-only nodes."""
    found = []
    if not isinstance(pt, NonTerminal):
        return found
    for child in pt:
        if _kind(child) is not None:
            found.append(child)
        else:
            found.extend(_parts(child))
    return found


def _first(parts: list, kind: Rule):
    for part in parts:
        if _kind(part) == kind:
            return part
    return None


def _all(parts: list, kind: Rule) -> list:
    return [p for p in parts if _kind(p) == kind]


def _text(pt) -> str:
    return str(pt.value).strip()


def _unquote(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1].replace('\\"', '"').replace('\\\\', '\\')
    return value


# =============================================================================
# Build state
# =============================================================================

@dataclass
class BlockScope:
    """
    Continuation anchor bookkeeping for one block.

    A continuation (`-> x` with no left operand) attaches to the block's
    anchor: the node the block hangs from when there is one, otherwise
    the first node created inside the block. Resolved lazily and cached,
    so repeated continuations fan out from the same node.
    """
    start: int
    anchor: Optional[Node] = None
    top_level: bool = False

    def resolve(self, nodes: List[Node]) -> Optional[Node]:
        if self.anchor is None and not self.top_level and len(nodes) > self.start:
            self.anchor = nodes[self.start]
        return self.anchor


@dataclass
class BuildResult:
    nodes: List[Node] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    states: List[State] = field(default_factory=list)


class IRBuilder:
    """
    Walks one parse tree and accumulates IR records in textual order.

    Handlers are looked up per Rule kind. The table is built eagerly and
    must cover every body production, so a grammar construct without a
    handler fails at construction time rather than mid-document.
    """

    def __init__(self, pos_to_line: Callable[[int], int], source_file: str,
                 line_map: Optional[Dict[int, int]] = None, timestamp: Optional[str] = None):
        self._pos_to_line = pos_to_line
        self.source_file = source_file
        self.line_map = line_map or {}
        self.timestamp = timestamp or utc_timestamp()
        self.result = BuildResult()

        self._body_handlers = {
            Rule.QUESTION: self._visit_marker,
            Rule.THOUGHT: self._visit_marker,
            Rule.ACTION: self._visit_marker,
            Rule.COMPLETION: self._visit_marker,
            Rule.ALTERNATIVE: self._visit_marker,
            Rule.CONTINUATION: self._visit_continuation,
            Rule.REL_EXPR: self._visit_rel_expr,
            Rule.BLOCK: self._visit_standalone_block,
            Rule.NODE_TEXT: self._visit_statement,
        }
        missing = [rule.value for rule in BODY_RULES if rule not in self._body_handlers]
        if missing:
            raise TypeError(f"No IR handler for grammar rules: {', '.join(missing)}")

    @property
    def nodes(self) -> List[Node]:
        return self.result.nodes

    # -------------------------------------------------------------------------
    # Record construction
    # -------------------------------------------------------------------------

    def _provenance(self, pt) -> Provenance:
        line = self._pos_to_line(pt.position)
        return Provenance(
            source_file=self.source_file,
            line_number=self.line_map.get(line, line),
            timestamp=self.timestamp,
        )

    def _emit_node(self, node_type: NodeType, content: str, modifiers: List[str], pt) -> Node:
        node = Node(
            id=node_id(node_type.value, content, modifiers),
            type=node_type,
            content=content,
            provenance=self._provenance(pt),
            modifiers=list(modifiers),
        )
        self.nodes.append(node)
        return node

    def _emit_relationship(self, op_pt, source: Node, target: Node) -> Relationship:
        rel_type = OPERATOR_TYPES[_kind(op_pt)]
        axis = None
        if rel_type == RelationType.TENSION:
            label = _first(_parts(op_pt), Rule.AXIS_LABEL)
            axis = _text(label) if label is not None else None
            axis = axis or None
        rel = Relationship(
            id=relationship_id(rel_type.value, source.id, target.id, axis),
            type=rel_type,
            source=source.id,
            target=target.id,
            provenance=self._provenance(op_pt),
            axis_label=axis,
        )
        self.result.relationships.append(rel)
        return rel

    # -------------------------------------------------------------------------
    # Document / elements
    # -------------------------------------------------------------------------

    def build(self, tree) -> BuildResult:
        scope = BlockScope(start=0, top_level=True)
        for part in _parts(tree):
            self._visit_element_or_body(part, scope)
        return self.result

    def _visit_element_or_body(self, pt, scope: BlockScope):
        kind = _kind(pt)
        if kind == Rule.ELEMENT:
            self._visit_element(pt, scope)
        elif kind in self._body_handlers:
            self._body_handlers[kind](pt, [], scope)

    def _visit_element(self, pt, scope: BlockScope):
        modifiers: List[str] = []
        for part in _parts(pt):
            kind = _kind(part)
            if kind == Rule.MODIFIER:
                modifier = MODIFIER_TOKENS[_text(part)].value
                if modifier not in modifiers:
                    modifiers.append(modifier)
            elif kind == Rule.STATE:
                self._visit_state(part)
            elif kind in self._body_handlers:
                self._body_handlers[kind](part, modifiers, scope)

    def _visit_state(self, pt):
        parts = _parts(pt)
        state_type = StateType(_text(_first(parts, Rule.STATE_NAME)))
        fields: Dict[str, str] = {}
        for field_pt in _all(parts, Rule.STATE_FIELD):
            field_parts = _parts(field_pt)
            key = _text(_first(field_parts, Rule.FIELD_KEY))
            quoted = _first(field_parts, Rule.QUOTED_VALUE)
            if quoted is not None:
                fields[key] = _unquote(_text(quoted))
            else:
                fields[key] = _text(_first(field_parts, Rule.BARE_VALUE))
        self.result.states.append(State(
            id=state_id(state_type.value, fields),
            type=state_type,
            fields=fields,
            provenance=self._provenance(pt),
        ))

    # -------------------------------------------------------------------------
    # Bodies
    # -------------------------------------------------------------------------

    def _visit_statement(self, pt, modifiers: List[str], scope: BlockScope) -> Optional[Node]:
        text = _text(pt)
        if not text:
            return None
        return self._emit_node(NodeType.STATEMENT, text, modifiers, pt)

    def _visit_marker(self, pt, modifiers: List[str], scope: BlockScope) -> Node:
        node_type = MARKER_TYPES[_kind(pt)]
        parts = _parts(pt)
        text_pt = _first(parts, Rule.NODE_TEXT)
        content = _text(text_pt) if text_pt is not None else ""
        block_pt = _first(parts, Rule.BLOCK)

        if block_pt is None:
            node = self._emit_node(node_type, content, modifiers, pt)
        else:
            node = self._wrap_block(pt, block_pt, node_type, content, modifiers)

        self._chain(node, _all(parts, Rule.REL_PAIR), modifiers)
        return node

    def _wrap_block(self, pt, block_pt, node_type: NodeType, content: str,
                    modifiers: List[str]) -> Node:
        """`thought: x { ... }` -- the block itself becomes the thought."""
        start = len(self.nodes)
        inner = self._build_block(block_pt, modifiers, BlockScope(start=start))
        self.nodes.pop()  # the plain block node; replaced below

        children = inner.block_children
        node = Node(
            id=wrapped_block_id(node_type.value, content, children, modifiers),
            type=node_type,
            content=content,
            provenance=self._provenance(pt),
            modifiers=list(modifiers),
            ext=dict(inner.ext),
        )
        # Keep source order: the marker precedes its block members
        self.nodes.insert(start, node)
        return node

    def _visit_standalone_block(self, pt, modifiers: List[str], scope: BlockScope) -> Node:
        start = len(self.nodes)
        anchor = None
        if start > 0 and self.nodes[start - 1].type != NodeType.BLOCK:
            anchor = self.nodes[start - 1]
        return self._build_block(pt, modifiers, BlockScope(start=start, anchor=anchor))

    def _build_block(self, pt, modifiers: List[str], block_scope: BlockScope) -> Node:
        start = block_scope.start
        for part in _parts(pt):
            # Body elements carry their own modifiers
            self._visit_element_or_body(part, block_scope)

        new_nodes = self.nodes[start:]
        claimed = set()
        for candidate in new_nodes:
            claimed.update(candidate.block_children)

        direct: List[str] = []
        for candidate in new_nodes:
            if candidate.id not in claimed and candidate.id not in direct:
                direct.append(candidate.id)

        block = Node(
            id=block_id(direct, modifiers),
            type=NodeType.BLOCK,
            content="",
            provenance=self._provenance(pt),
            modifiers=list(modifiers),
        )
        if direct:
            block.ext["children"] = direct
        self.nodes.append(block)
        return block

    def _visit_rel_expr(self, pt, modifiers: List[str], scope: BlockScope) -> Node:
        parts = _parts(pt)
        first = self._rel_node(parts[0], modifiers)
        self._chain(first, _all(parts, Rule.REL_PAIR), modifiers)
        return first

    def _visit_continuation(self, pt, modifiers: List[str], scope: BlockScope) -> Optional[Node]:
        parts = _parts(pt)
        op_pt = next(p for p in parts if _kind(p) in OPERATOR_RULES)
        target_pt = next(p for p in parts if _kind(p) in (Rule.BLOCK, Rule.NODE_TEXT))

        # Resolve before creating the target: an empty block has no anchor yet
        anchor = scope.resolve(self.nodes)
        target = self._rel_node(target_pt, modifiers)
        if anchor is not None:
            self._emit_relationship(op_pt, anchor, target)
        self._chain(target, _all(parts, Rule.REL_PAIR), modifiers)
        return target

    # -------------------------------------------------------------------------
    # Relationship chains
    # -------------------------------------------------------------------------

    def _rel_node(self, pt, modifiers: List[str]) -> Node:
        if _kind(pt) == Rule.BLOCK:
            return self._build_block(pt, modifiers, BlockScope(start=len(self.nodes)))
        node = self._visit_statement(pt, modifiers, None)
        if node is None:
            node = self._emit_node(NodeType.STATEMENT, "", modifiers, pt)
        return node

    def _chain(self, source: Node, pairs: list, modifiers: List[str]):
        """A op1 B op2 C: each target becomes the next source. Never transitive."""
        for pair in pairs:
            pair_parts = _parts(pair)
            op_pt = next(p for p in pair_parts if _kind(p) in OPERATOR_RULES)
            target_pt = next(p for p in pair_parts if _kind(p) in (Rule.BLOCK, Rule.NODE_TEXT))
            target = self._rel_node(target_pt, modifiers)
            self._emit_relationship(op_pt, source, target)
            source = target


# =============================================================================
# Public API
# =============================================================================

class FlowScriptParser:
    """
    Compiles FlowScript source to a linked IR.

    Usage:
        parser = FlowScriptParser()
        ir = parser.parse(text, "notes.fs")
    """

    def __init__(self, indent_size: int = 2):
        self.indent_size = indent_size
        self._grammar = create_parser()

    def parse(self, source: str, source_file: str = "<input>") -> IR:
        """
        Parse source into IR.

        Raises:
            IndentationError: preprocessing failed
            ParseError: the rewritten text does not match the grammar
        """
        scanner = IndentationScanner(indent_size=self.indent_size)
        rewritten, line_map = scanner.process(source)

        try:
            tree = self._grammar.parse(rewritten)
        except NoMatch as e:
            line, column = self._grammar.pos_to_linecol(e.position)
            original = line_map.get(line, line)
            raise ParseError(
                f"{e} (Line {original})",
                line_number=original,
                column=column
            ) from e

        builder = IRBuilder(
            pos_to_line=lambda pos: self._grammar.pos_to_linecol(pos)[0],
            source_file=source_file,
            line_map=line_map,
        )
        built = builder.build(tree)
        nodes, relationships, states = link(built.nodes, built.relationships, built.states)

        logger.debug(
            "Parsed %s: %d nodes, %d relationships, %d states",
            source_file, len(nodes), len(relationships), len(states)
        )

        return IR(
            nodes=nodes,
            relationships=relationships,
            states=states,
            metadata={
                "source_files": [source_file],
                "parsed_at": builder.timestamp,
                "parser": PARSER_NAME,
            },
        )


def parse(source: str, source_file: str = "<input>", indent_size: int = 2) -> IR:
    """Convenience wrapper around FlowScriptParser."""
    return FlowScriptParser(indent_size=indent_size).parse(source, source_file)
