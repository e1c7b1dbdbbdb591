"""
Tests for the linker passes — state attachment, alternatives, children, dedup
"""

from flowscript.core.ir import NodeType, RelationType
from flowscript.core.linker import attach_states, dedupe_relationships, link_alternatives

from tests.factories import DECISION_DOC, INDENTED_DECISION_DOC, UNDECIDED_DOC


def by_content(ir, content):
    return next(n for n in ir.nodes if n.content == content)


class TestAlternatives:
    """Question -> alternative edges and children."""

    def test_question_children_in_source_order(self, parse_text):
        ir = parse_text(UNDECIDED_DOC)
        question = by_content(ir, "pick one")
        a, b = by_content(ir, "A"), by_content(ir, "B")
        assert question.children == [a.id, b.id]

        edges = [r for r in ir.relationships if r.type == RelationType.ALTERNATIVE]
        assert [(r.source, r.target) for r in edges] == [(question.id, a.id), (question.id, b.id)]

    def test_alternative_edge_provenance_from_alternative(self, parse_text):
        ir = parse_text(UNDECIDED_DOC)
        edge = next(r for r in ir.relationships
                    if r.type == RelationType.ALTERNATIVE and r.target == by_content(ir, "B").id)
        assert edge.provenance.line_number == 3

    def test_scan_stops_at_next_question(self, parse_text):
        ir = parse_text("? first\n|| a\n? second\n|| b")
        first, second = by_content(ir, "first"), by_content(ir, "second")
        assert first.children == [by_content(ir, "a").id]
        assert second.children == [by_content(ir, "b").id]

    def test_indented_alternatives(self, parse_text):
        ir = parse_text(INDENTED_DECISION_DOC)
        question = by_content(ir, "which database")
        assert question.children == [by_content(ir, "postgres").id, by_content(ir, "sqlite").id]

    def test_alternative_implications_become_children(self, parse_text):
        """An indented list under an alternative becomes its children."""
        ir = parse_text("? which db\n|| postgres\n  -> mature tooling\n|| sqlite")
        postgres = by_content(ir, "postgres")
        assert postgres.children == [by_content(ir, "mature tooling").id]
        question = by_content(ir, "which db")
        assert question.children == [postgres.id, by_content(ir, "sqlite").id]

    def test_link_alternatives_without_question(self, ir_factory):
        ir_factory.node("orphan option", "alternative")
        assert link_alternatives(ir_factory.nodes) == []


class TestStateAttachment:
    """First node at or after the marker line."""

    def test_same_line(self, parse_text):
        ir = parse_text(DECISION_DOC)
        state = ir.states[0]
        assert state.node_id == by_content(ir, "postgres").id

    def test_marker_on_own_line_attaches_below(self, parse_text):
        ir = parse_text("[exploring]\nnext idea")
        assert ir.states[0].node_id == by_content(ir, "next idea").id

    def test_unattached_state_keeps_empty_id(self, parse_text):
        ir = parse_text('A\n[blocked(reason: "x", since: "2025-01-01")]')
        assert ir.states[0].node_id == ""

    def test_attach_states_directly(self, ir_factory):
        first = ir_factory.node("first")
        second = ir_factory.node("second")
        state = ir_factory.state(None, "exploring")
        state.provenance.line_number = second.provenance.line_number
        attach_states(ir_factory.nodes, [state])
        assert state.node_id == second.id
        assert state.node_id != first.id


class TestChildren:
    """Block members become children of the node the block hangs from."""

    def test_block_members_under_preceding_node(self, parse_text):
        ir = parse_text("thought: caching\n  redis\n  memcached")
        thought = by_content(ir, "caching")
        assert thought.children == [by_content(ir, "redis").id, by_content(ir, "memcached").id]

    def test_block_after_block_is_skipped(self, parse_text):
        ir = parse_text("{ A }\n{ B }")
        blocks = [n for n in ir.nodes if n.type == NodeType.BLOCK]
        assert len(blocks) == 2
        assert all(not n.children for n in ir.nodes)


class TestDedup:
    """Content-addressed duplicates collapse."""

    def test_nodes(self, parse_text):
        ir = parse_text("A -> B\nB -> C\nA -> C")
        assert sorted(n.content for n in ir.nodes) == ["A", "B", "C"]

    def test_relationships(self, parse_text):
        ir = parse_text("A -> B\nA -> B")
        assert len(ir.relationships) == 1

    def test_dedupe_relationships_keeps_first(self, ir_factory):
        a, b = ir_factory.chain("A", "B")
        rel = ir_factory.relationships[0]
        assert dedupe_relationships([rel, rel]) == [rel]
