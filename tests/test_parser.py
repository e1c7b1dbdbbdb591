"""
Tests for FlowScriptParser — FlowScript text to IR

These tests validate:
- Operator semantics and left-to-right chaining
- Node types per marker, modifiers, states
- Blocks, continuations and marker-wrapped blocks
- Deterministic content-hash ids
- Fatal errors carry the original source line
"""

import pytest

from flowscript.core.errors import IndentationError, ParseError
from flowscript.core.hashing import node_id
from flowscript.core.ir import IR_VERSION, NodeType, RelationType, StateType
from flowscript.core.parser import parse


def by_content(ir, content):
    matches = [n for n in ir.nodes if n.content == content]
    assert len(matches) == 1, f"expected one node with content {content!r}"
    return matches[0]


class TestOperators:
    """Relationship operators and chaining."""

    def test_causes(self, parse_text):
        """"A -> B": two statements and one causes edge A to B."""
        ir = parse_text("A -> B")
        a, b = by_content(ir, "A"), by_content(ir, "B")
        assert a.type == NodeType.STATEMENT
        assert b.type == NodeType.STATEMENT
        assert len(ir.nodes) == 2
        assert len(ir.relationships) == 1
        rel = ir.relationships[0]
        assert (rel.type, rel.source, rel.target) == (RelationType.CAUSES, a.id, b.id)

    def test_derives_from_keeps_operand_order(self, parse_text):
        """"A <- B" is derives_from with source A, target B."""
        ir = parse_text("A <- B")
        rel = ir.relationships[0]
        assert rel.type == RelationType.DERIVES_FROM
        assert rel.source == by_content(ir, "A").id
        assert rel.target == by_content(ir, "B").id

    def test_bidirectional_and_temporal(self, parse_text):
        ir = parse_text("A <-> B\nC => D")
        types = [r.type for r in ir.relationships]
        assert types == [RelationType.BIDIRECTIONAL, RelationType.TEMPORAL]

    def test_tension_with_axis(self, parse_text):
        ir = parse_text("speed >< [cost] quality")
        rel = ir.relationships[0]
        assert rel.type == RelationType.TENSION
        assert rel.axis_label == "cost"

    def test_tension_without_axis(self, parse_text):
        """The grammar accepts it; the linter flags it."""
        ir = parse_text("speed >< quality")
        assert ir.relationships[0].axis_label is None

    def test_tension_with_empty_brackets(self, parse_text):
        ir = parse_text("speed ><[] quality")
        assert ir.relationships[0].axis_label is None

    def test_chain_is_left_to_right_and_not_transitive(self, parse_text):
        ir = parse_text("A -> B -> C")
        a, b, c = (by_content(ir, x).id for x in "ABC")
        pairs = {(r.source, r.target) for r in ir.relationships}
        assert pairs == {(a, b), (b, c)}

    def test_mixed_chain(self, parse_text):
        ir = parse_text("cache <- latency => rollout")
        assert [r.type for r in ir.relationships] == [
            RelationType.DERIVES_FROM, RelationType.TEMPORAL,
        ]


class TestMarkers:
    """Introducing markers decide the node type."""

    @pytest.mark.parametrize("source,node_type,content", [
        ("? which cache", NodeType.QUESTION, "which cache"),
        ("thought: redis is simpler", NodeType.THOUGHT, "redis is simpler"),
        ("action: benchmark both", NodeType.ACTION, "benchmark both"),
        ("✓ benchmark done", NodeType.COMPLETION, "benchmark done"),
        ("|| memcached", NodeType.ALTERNATIVE, "memcached"),
        ("plain prose", NodeType.STATEMENT, "plain prose"),
    ])
    def test_marker_types(self, parse_text, source, node_type, content):
        ir = parse_text(source)
        assert len(ir.nodes) == 1
        assert ir.nodes[0].type == node_type
        assert ir.nodes[0].content == content

    def test_marker_with_relationship(self, parse_text):
        """A marker node can be the source of a chain."""
        ir = parse_text("thought: caching helps -> lower latency")
        thought = by_content(ir, "caching helps")
        assert thought.type == NodeType.THOUGHT
        assert ir.relationships[0].source == thought.id

    def test_separator_semicolon(self, parse_text):
        ir = parse_text("A; B")
        assert [n.content for n in ir.nodes] == ["A", "B"]


class TestModifiers:
    """Prefix tokens accumulate per element."""

    def test_urgent(self, parse_text):
        ir = parse_text("! fix the outage")
        assert ir.nodes[0].modifiers == ["urgent"]
        assert ir.nodes[0].content == "fix the outage"

    def test_stacked_modifiers(self, parse_text):
        ir = parse_text("! ++ ship it")
        assert ir.nodes[0].modifiers == ["urgent", "strong_positive"]

    def test_modifiers_cleared_after_element(self, parse_text):
        ir = parse_text("* sure thing\nplain")
        assert by_content(ir, "plain").modifiers == []

    def test_modifier_needs_whitespace(self, parse_text):
        """"!important" is prose, not a modifier."""
        ir = parse_text("!important")
        assert ir.nodes[0].content == "!important"
        assert ir.nodes[0].modifiers == []

    def test_modifiers_change_identity(self, parse_text):
        ir = parse_text("~ maybe\nmaybe")
        assert len(ir.nodes) == 2
        assert ir.nodes[0].id != ir.nodes[1].id


class TestStates:
    """State markers and their fields."""

    def test_decided_fields(self, parse_text):
        ir = parse_text('[decided(rationale: "mature tooling", on: "2025-01-15")] use postgres')
        state = ir.states[0]
        assert state.type == StateType.DECIDED
        assert state.fields == {"rationale": "mature tooling", "on": "2025-01-15"}
        assert state.node_id == by_content(ir, "use postgres").id
        assert ir.states_for(state.node_id) == [state]

    def test_field_order_irrelevant(self, parse_text):
        first = parse_text('[blocked(reason: "vendor", since: "2025-01-01")] x').states[0]
        second = parse_text('[blocked(since: "2025-01-01", reason: "vendor")] x').states[0]
        assert first.fields == second.fields
        assert first.id == second.id

    def test_state_without_fields(self, parse_text):
        ir = parse_text("[exploring] caching layer")
        assert ir.states[0].type == StateType.EXPLORING
        assert ir.states[0].fields == {}

    def test_bare_values(self, parse_text):
        ir = parse_text("[parking(why: later, until: Q3)] rewrite")
        assert ir.states[0].fields == {"why": "later", "until": "Q3"}

    def test_escaped_quote(self, parse_text):
        ir = parse_text('[decided(rationale: "the \\"fast\\" one", on: "2025-01-01")] x')
        assert ir.states[0].fields["rationale"] == 'the "fast" one'

    def test_unknown_state_falls_through_to_prose(self, parse_text):
        ir = parse_text("[maybe] later")
        assert ir.states == []
        assert ir.nodes[0].type == NodeType.STATEMENT
        assert ir.nodes[0].content == "[maybe] later"


class TestBlocks:
    """Explicit and indentation blocks."""

    def test_block_direct_children(self, parse_text):
        ir = parse_text("{ A; B }")
        block = next(n for n in ir.nodes if n.type == NodeType.BLOCK)
        assert block.block_children == [by_content(ir, "A").id, by_content(ir, "B").id]
        assert block.content == ""

    def test_nested_block_children_not_claimed_twice(self, parse_text):
        ir = parse_text("{ A; { B; C } }")
        blocks = [n for n in ir.nodes if n.type == NodeType.BLOCK]
        inner = next(b for b in blocks if by_content(ir, "B").id in b.block_children)
        outer = next(b for b in blocks if b is not inner)
        assert outer.block_children == [by_content(ir, "A").id, inner.id]

    def test_thought_wraps_block(self, parse_text):
        """The block becomes the thought instead of nesting under it."""
        ir = parse_text("thought: tradeoffs {\n  fast\n  cheap\n}")
        thought = by_content(ir, "tradeoffs")
        assert thought.type == NodeType.THOUGHT
        assert thought.block_children == [by_content(ir, "fast").id, by_content(ir, "cheap").id]
        assert not [n for n in ir.nodes if n.type == NodeType.BLOCK]
        # Marker precedes its members
        assert ir.nodes[0] is thought

    def test_continuation_anchors_on_preceding_node(self, parse_text):
        """An indented `-> x` hangs off the line above."""
        ir = parse_text("|| postgres\n  -> mature tooling\n  -> larger footprint")
        postgres = by_content(ir, "postgres")
        targets = {r.target for r in ir.relationships if r.source == postgres.id}
        assert targets == {by_content(ir, "mature tooling").id, by_content(ir, "larger footprint").id}

    def test_continuation_inside_bare_block_uses_first_node(self, parse_text):
        ir = parse_text("{\nA\n-> B\n-> C\n}")
        a = by_content(ir, "A")
        causes = [r for r in ir.relationships if r.type == RelationType.CAUSES]
        assert {r.source for r in causes} == {a.id}
        assert len(causes) == 2


class TestIdentity:
    """Content-addressed ids."""

    def test_deterministic(self, parse_text):
        first = parse_text("A -> B\n? q\n|| x")
        second = parse_text("A -> B\n? q\n|| x")
        assert [n.id for n in first.nodes] == [n.id for n in second.nodes]
        assert [r.id for r in first.relationships] == [r.id for r in second.relationships]

    def test_id_is_hash_of_type_content_modifiers(self, parse_text):
        ir = parse_text("! A")
        assert ir.nodes[0].id == node_id("statement", "A", ["urgent"])
        assert len(ir.nodes[0].id) == 64

    def test_duplicate_text_collapses(self, parse_text):
        ir = parse_text("A -> B\nA -> C")
        assert [n.content for n in ir.nodes] == ["A", "B", "C"]
        a = by_content(ir, "A")
        assert len([r for r in ir.relationships if r.source == a.id]) == 2


class TestProvenance:
    """Lines refer to the original source, not the rewritten text."""

    def test_line_numbers(self, parse_text):
        ir = parse_text("A\n\nB -> C")
        assert by_content(ir, "A").provenance.line_number == 1
        assert by_content(ir, "C").provenance.line_number == 3

    def test_line_numbers_survive_indentation_rewrite(self, parse_text):
        ir = parse_text("? q\n  || x\n  || y\nafter")
        assert by_content(ir, "y").provenance.line_number == 3
        assert by_content(ir, "after").provenance.line_number == 4

    def test_source_file_recorded(self, parse_text):
        ir = parse_text("A", source_file="notes.fs")
        assert ir.nodes[0].provenance.source_file == "notes.fs"
        assert ir.metadata["source_files"] == ["notes.fs"]

    def test_ir_header(self, parse_text):
        ir = parse_text("A")
        assert ir.version == IR_VERSION
        assert ir.invariants["causal_acyclic"] is True


class TestErrors:
    """Fatal errors, never a partial IR."""

    def test_dangling_operator(self, parse_text):
        with pytest.raises(ParseError) as exc:
            parse_text("ok\nA ->")
        assert exc.value.line_number == 2

    def test_unbalanced_brace(self, parse_text):
        with pytest.raises(ParseError):
            parse_text("A }")

    def test_indentation_error_propagates(self, parse_text):
        with pytest.raises(IndentationError):
            parse_text("A\n\tB")

    def test_module_level_parse(self):
        ir = parse("A -> B", "inline.fs", indent_size=2)
        assert len(ir.relationships) == 1
