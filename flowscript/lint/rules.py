"""
Lint rules — graph-level checks beyond syntax

ERROR rules:
  E001 unlabeled-tension            ><  without [axis]
  E002 missing-required-fields      decided: rationale, on / blocked: reason, since
  E003 invalid-syntax               several states on one node, markers downgraded to prose
  E004 orphaned-nodes               no relationship, block membership or state
  E005 causal-cycles                cycle over causes / derives_from
  E006 alternatives-without-decision

WARNING rules:
  W001 missing-recommended-fields   parking: why, until
  W002 deep-nesting
  W003 long-causal-chains
"""

import re
from typing import Dict, Iterable, List, Optional, Set

from ..core.ir import (
    IR, NodeType, RECOMMENDED_STATE_FIELDS, REQUIRED_STATE_FIELDS,
    RelationType, StateType,
)
from .base import BaseLintRule, Location, LintResult, Severity


DEFAULT_MAX_NESTING_DEPTH = 5
DEFAULT_MAX_CHAIN_LENGTH = 10
DEFAULT_ORPHAN_EXEMPT_TYPES = ("action", "completion")

# Looks like a state marker but did not parse as one
SUSPECT_MARKER = re.compile(r'^\[\s*([a-z_]+)\s*(\(.*?\))?\s*\]')


def _plural(count: int) -> str:
    return "s" if count > 1 else ""


def _field_hint(fields: Iterable[str]) -> str:
    return ", ".join(f'{name}: "..."' for name in fields)


# =============================================================================
# ERROR rules
# =============================================================================

class UnlabeledTensionRule(BaseLintRule):
    name = "unlabeled-tension"
    code = "E001"
    severity = Severity.ERROR

    def check(self, ir: IR) -> List[LintResult]:
        return [
            self.create_result(
                "Tension marker >< missing required axis label",
                rel.provenance,
                "Add axis label: ><[dimension of tradeoff]"
            )
            for rel in ir.relationships
            if rel.type == RelationType.TENSION and not rel.axis_label
        ]


class MissingRequiredFieldsRule(BaseLintRule):
    name = "missing-required-fields"
    code = "E002"
    severity = Severity.ERROR

    def check(self, ir: IR) -> List[LintResult]:
        results = []
        for state in ir.states:
            required = REQUIRED_STATE_FIELDS.get(state.type)
            if not required:
                continue
            missing = [f for f in required if not state.fields.get(f)]
            if missing:
                results.append(self.create_result(
                    f"[{state.type.value}] state missing required field{_plural(len(missing))}: "
                    f"{', '.join(missing)}",
                    state.provenance,
                    f"Add required fields: {_field_hint(missing)}"
                ))
        return results


class InvalidSyntaxRule(BaseLintRule):
    name = "invalid-syntax"
    code = "E003"
    severity = Severity.ERROR

    def check(self, ir: IR) -> List[LintResult]:
        results = []

        states_by_node: Dict[str, List[str]] = {}
        for state in ir.states:
            if state.node_id:
                states_by_node.setdefault(state.node_id, []).append(state.type.value)

        for node in ir.nodes:
            kinds = states_by_node.get(node.id, [])
            if len(kinds) > 1:
                results.append(self.create_result(
                    f"Node has multiple states: {', '.join(kinds)} - only one state allowed per node",
                    node.provenance,
                    "Choose one state marker"
                ))

        for node in ir.nodes:
            if node.type != NodeType.STATEMENT:
                continue
            match = SUSPECT_MARKER.match(node.content)
            if match:
                results.append(self.create_result(
                    f"Unrecognized or malformed state marker treated as text: {match.group(0)}",
                    node.provenance,
                    'Use [decided(rationale: "...", on: "...")], [blocked(reason: "...", since: "...")], '
                    '[parking(why: "...", until: "...")] or [exploring]'
                ))
        return results


class OrphanedNodesRule(BaseLintRule):
    name = "orphaned-nodes"
    code = "E004"
    severity = Severity.ERROR

    def __init__(self, exempt_types: Iterable[str] = DEFAULT_ORPHAN_EXEMPT_TYPES):
        self.exempt_types = set(exempt_types)

    def check(self, ir: IR) -> List[LintResult]:
        connected: Set[str] = set()
        for rel in ir.relationships:
            connected.add(rel.source)
            connected.add(rel.target)

        for node in ir.nodes:
            members = node.block_children + node.children
            if members:
                connected.add(node.id)
                connected.update(members)

        connected.update(s.node_id for s in ir.states if s.node_id)

        results = []
        for node in ir.nodes:
            if node.id in connected or node.type.value in self.exempt_types:
                continue
            results.append(self.create_result(
                f'Orphaned node detected (no relationships): "{node.content}"',
                node.provenance,
                f"Connect with relationship: {node.content} -> {{target}} OR {{source}} -> {node.content}"
            ))
        return results


class CausalCyclesRule(BaseLintRule):
    name = "causal-cycles"
    code = "E005"
    severity = Severity.ERROR

    def check(self, ir: IR) -> List[LintResult]:
        # A <- B means B causes A
        adjacency: Dict[str, List[str]] = {}
        for rel in ir.relationships:
            if rel.feedback:
                continue
            if rel.type == RelationType.CAUSES:
                adjacency.setdefault(rel.source, []).append(rel.target)
            elif rel.type == RelationType.DERIVES_FROM:
                adjacency.setdefault(rel.target, []).append(rel.source)

        visited: Set[str] = set()
        for start in list(adjacency):
            if start in visited:
                continue
            cycle = self._find_cycle(start, adjacency, visited)
            if cycle:
                contents = []
                for cid in cycle:
                    node = ir.get_node(cid)
                    contents.append(node.content if node and node.content else cid[:8])
                source_file = ir.nodes[0].provenance.source_file if ir.nodes else "unknown"
                return [self.create_result(
                    f"Causal cycle detected: {' -> '.join(contents)}",
                    location=Location(file=source_file, line=0),
                    suggestion="Fix: Use <-> for feedback loops, or use => for temporal sequence, "
                               "or break the cycle"
                )]
        return []

    def _find_cycle(self, start: str, adjacency: Dict[str, List[str]],
                    visited: Set[str]) -> Optional[List[str]]:
        """Iterative DFS with an explicit recursion stack."""
        path = [start]
        on_path = {start}
        iterators = [iter(adjacency.get(start, []))]
        visited.add(start)

        while iterators:
            advanced = False
            for neighbor in iterators[-1]:
                if neighbor in on_path:
                    return path[path.index(neighbor):] + [neighbor]
                if neighbor not in visited:
                    visited.add(neighbor)
                    path.append(neighbor)
                    on_path.add(neighbor)
                    iterators.append(iter(adjacency.get(neighbor, [])))
                    advanced = True
                    break
            if not advanced:
                iterators.pop()
                on_path.discard(path.pop())
        return None


class AlternativesWithoutDecisionRule(BaseLintRule):
    name = "alternatives-without-decision"
    code = "E006"
    severity = Severity.ERROR

    def check(self, ir: IR) -> List[LintResult]:
        decided_ids = {s.node_id for s in ir.states if s.type == StateType.DECIDED and s.node_id}
        decided_contents = set()
        for decided in decided_ids:
            node = ir.get_node(decided)
            if node:
                decided_contents.add(node.content)
        parked = {s.node_id for s in ir.states if s.type == StateType.PARKING}

        results = []
        for question in ir.nodes_by_type(NodeType.QUESTION):
            targets = [
                r.target for r in ir.relationships
                if r.type == RelationType.ALTERNATIVE and r.source == question.id
            ]
            if not targets:
                continue

            has_decision = False
            for target in targets:
                alt = ir.get_node(target)
                if target in decided_ids or (alt and alt.content in decided_contents):
                    has_decision = True
                    break

            if not has_decision and question.id not in parked:
                results.append(self.create_result(
                    f'Question has alternatives but no decision: "{question.content}"',
                    question.provenance,
                    'Either: (1) Mark chosen alternative with [decided(rationale: "...", on: "...")] '
                    'OR (2) Park question with [parking(why: "...", until: "...")]'
                ))
        return results


# =============================================================================
# WARNING rules
# =============================================================================

class MissingRecommendedFieldsRule(BaseLintRule):
    name = "missing-recommended-fields"
    code = "W001"
    severity = Severity.WARNING

    def check(self, ir: IR) -> List[LintResult]:
        results = []
        for state in ir.states:
            recommended = RECOMMENDED_STATE_FIELDS.get(state.type)
            if not recommended:
                continue
            missing = [f for f in recommended if not state.fields.get(f)]
            if missing:
                results.append(self.create_result(
                    f"[{state.type.value}] missing recommended field{_plural(len(missing))}: "
                    f"{', '.join(missing)}",
                    state.provenance,
                    f"Add recommended fields: {_field_hint(missing)}"
                ))
        return results


class DeepNestingRule(BaseLintRule):
    name = "deep-nesting"
    code = "W002"
    severity = Severity.WARNING

    def __init__(self, max_depth: int = DEFAULT_MAX_NESTING_DEPTH):
        self.max_depth = max_depth

    def check(self, ir: IR) -> List[LintResult]:
        containers = {n.id: n for n in ir.nodes if n.block_children}
        nested = set()
        for node in containers.values():
            nested.update(cid for cid in node.block_children if cid in containers)

        results = []
        reported: Set[str] = set()
        # (node id, depth, ids on path)
        stack = [(cid, 1, frozenset()) for cid in containers if cid not in nested]
        stack.reverse()
        while stack:
            current, depth, path = stack.pop()
            node = containers[current]
            if depth > self.max_depth and current not in reported:
                reported.add(current)
                results.append(self.create_result(
                    f"Thought block nested {depth} levels deep (max recommended: {self.max_depth})",
                    node.provenance,
                    "Consider: (1) Breaking into multiple blocks OR (2) Using flat relationships "
                    "instead of nesting"
                ))
            for cid in reversed(node.block_children):
                if cid in containers and cid not in path:
                    stack.append((cid, depth + 1, path | {current}))
        return results


class LongCausalChainsRule(BaseLintRule):
    name = "long-causal-chains"
    code = "W003"
    severity = Severity.WARNING

    def __init__(self, max_chain_length: int = DEFAULT_MAX_CHAIN_LENGTH):
        self.max_chain_length = max_chain_length

    def check(self, ir: IR) -> List[LintResult]:
        adjacency: Dict[str, List[str]] = {}
        for rel in ir.relationships:
            if rel.type == RelationType.CAUSES:
                adjacency.setdefault(rel.source, []).append(rel.target)

        for start in adjacency:
            length = self._longest_from(start, adjacency)
            if length > self.max_chain_length:
                node = ir.get_node(start)
                if node is None:
                    continue
                return [self.create_result(
                    f"Long causal chain detected ({length} steps, max recommended: "
                    f"{self.max_chain_length})",
                    node.provenance,
                    "Consider: (1) Adding branching to show parallel effects OR "
                    "(2) Breaking into multiple related chains"
                )]
        return []

    def _longest_from(self, start: str, adjacency: Dict[str, List[str]]) -> int:
        """
        Longest simple path (in nodes) starting at start.

        Iterative DFS with an explicit recursion stack; a branch stops
        expanding once it is already over the limit.
        """
        path = [start]
        on_path = {start}
        iterators = [iter(adjacency.get(start, []))]
        # best[i]: longest path found so far from path[i], counting path[i]
        best = [1]

        while iterators:
            advanced = False
            if best[-1] <= self.max_chain_length:
                for neighbor in iterators[-1]:
                    if neighbor not in on_path:
                        path.append(neighbor)
                        on_path.add(neighbor)
                        iterators.append(iter(adjacency.get(neighbor, [])))
                        best.append(1)
                        advanced = True
                        break
            if advanced:
                continue

            iterators.pop()
            on_path.discard(path.pop())
            length = best.pop()
            if not best:
                return length
            best[-1] = max(best[-1], 1 + length)
        return 1


def default_rules(
    max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH,
    max_chain_length: int = DEFAULT_MAX_CHAIN_LENGTH,
    orphan_exempt_types: Iterable[str] = DEFAULT_ORPHAN_EXEMPT_TYPES,
) -> List[BaseLintRule]:
    """The nine standard rules, errors first."""
    return [
        UnlabeledTensionRule(),
        MissingRequiredFieldsRule(),
        InvalidSyntaxRule(),
        OrphanedNodesRule(exempt_types=orphan_exempt_types),
        CausalCyclesRule(),
        AlternativesWithoutDecisionRule(),
        MissingRecommendedFieldsRule(),
        DeepNestingRule(max_depth=max_nesting_depth),
        LongCausalChainsRule(max_chain_length=max_chain_length),
    ]
