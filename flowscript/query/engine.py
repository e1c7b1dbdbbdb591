"""
Query Engine — structural questions over a linked IR

Five queries:
  why(node)            causal ancestry (backward traversal)
  what_if(node)        impact analysis (forward traversal)
  tensions()           tradeoff mapping
  blocked()            blocker tracking with transitive causes/effects
  alternatives(q)      decision reconstruction for a question

`load(ir)` builds the indexes once; every query is read-only over them,
so one loaded engine can serve any number of queries. All traversal
state (visited sets, depth) is local to a call.

Traversals carry a per-path visited set: each branch gets its own copy,
so diamond-shaped ancestries are explored along every path while a cycle
on a single path still stops. Depth is bounded by max_depth, or by the
node count when no max_depth is given.

Traversals read edges causally: `A -> B` and `B <- A` both make A the
parent of B. Other edge types are read source to target.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from ..core.errors import NodeNotFoundError, QueryError, WrongNodeTypeError
from ..core.ir import IR, Node, NodeType, Relationship, RelationType, State, StateType

logger = logging.getLogger(__name__)


WHY_FORMATS = ("chain", "minimal")
WHAT_IF_FORMATS = ("tree", "list", "summary")
TENSION_GROUPINGS = ("axis", "node", "none")
BLOCKED_FORMATS = ("detailed", "summary", "list")
ALTERNATIVES_FORMATS = ("comparison", "simple", "tree")

# Impact summary heuristic: substring match, not semantics
RISK_KEYWORDS = ("risk", "problem", "issue", "error", "fail")

UNLABELED_AXIS = "unlabeled"


@dataclass
class Reached:
    """A node reached by a traversal, with how it was reached."""
    node: Node
    depth: int
    relationship_type: RelationType


def _ref(node: Node) -> Dict[str, str]:
    return {"id": node.id, "content": node.content}


def _check_format(value: str, allowed: Sequence[str], what: str):
    if value not in allowed:
        raise QueryError(f"Unknown {what} '{value}'. Valid: {', '.join(allowed)}")


def _oriented(rel: Relationship) -> Tuple[str, str]:
    """(parent, child) in causal terms. `A <- B` means B leads to A."""
    if rel.type == RelationType.DERIVES_FROM:
        return rel.target, rel.source
    return rel.source, rel.target


def _parse_day(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


class QueryEngine:
    """
    Indexed, read-only view of one IR.

    Usage:
        engine = QueryEngine()
        engine.load(ir)
        engine.why(node_id)
    """

    def __init__(self, ir: Optional[IR] = None):
        self.ir = IR()
        self.node_map: Dict[str, Node] = {}
        self.relationships_from: Dict[str, List[Relationship]] = {}
        self.relationships_to: Dict[str, List[Relationship]] = {}
        self.states_by_node: Dict[str, List[State]] = {}
        # Causal orientation: node id -> [(relationship, neighbor id)]
        self.upstream: Dict[str, List[Tuple[Relationship, str]]] = {}
        self.downstream: Dict[str, List[Tuple[Relationship, str]]] = {}
        if ir is not None:
            self.load(ir)

    # =========================================================================
    # Indexes
    # =========================================================================

    def load(self, ir: IR):
        """Build node, source, target and state indexes in one pass each."""
        self.ir = ir
        self.node_map = {}
        self.relationships_from = {}
        self.relationships_to = {}
        self.states_by_node = {}

        for node in ir.nodes:
            self.node_map.setdefault(node.id, node)

        self.upstream = {}
        self.downstream = {}
        for rel in ir.relationships:
            self.relationships_from.setdefault(rel.source, []).append(rel)
            self.relationships_to.setdefault(rel.target, []).append(rel)

            parent, child = _oriented(rel)
            self.upstream.setdefault(child, []).append((rel, parent))
            self.downstream.setdefault(parent, []).append((rel, child))

        for state in ir.states:
            if state.node_id:
                self.states_by_node.setdefault(state.node_id, []).append(state)

        logger.debug(
            "Loaded IR: %d nodes, %d relationships, %d states",
            len(ir.nodes), len(ir.relationships), len(ir.states)
        )

    def _require_node(self, node_id: str) -> Node:
        node = self.node_map.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def _depth_limit(self, max_depth: Optional[int]) -> int:
        return max_depth if max_depth is not None else max(len(self.node_map), 1)

    # =========================================================================
    # Traversal
    # =========================================================================

    def traverse_backward(self, node_id: str, types: Sequence[RelationType],
                          max_depth: Optional[int] = None) -> List[Reached]:
        """Ancestors in DFS order. A node reachable by several paths appears once per path."""
        return self._traverse(node_id, types, self._depth_limit(max_depth), backward=True)

    def traverse_forward(self, node_id: str, types: Sequence[RelationType],
                         max_depth: Optional[int] = None) -> List[Reached]:
        """Descendants in DFS order. A node reachable by several paths appears once per path."""
        return self._traverse(node_id, types, self._depth_limit(max_depth), backward=False)

    def _traverse(self, node_id: str, types: Sequence[RelationType], limit: int,
                  backward: bool) -> List[Reached]:
        """Preorder DFS over an explicit stack, so long chains never touch the recursion limit."""
        index = self.upstream if backward else self.downstream
        found: List[Reached] = []

        # (relationship type, node id, depth, ids on the path above it)
        stack: List[Tuple[RelationType, str, int, FrozenSet[str]]] = []

        def expand(current: str, depth: int, visited: FrozenSet[str]):
            if depth >= limit or current in visited:
                return
            # frozenset: every branch sees only its own path
            path = visited | {current}
            edges = [(r, other) for r, other in index.get(current, [])
                     if r.type in types and other in self.node_map]
            for rel, neighbor_id in reversed(edges):
                stack.append((rel.type, neighbor_id, depth + 1, path))

        expand(node_id, 0, frozenset())
        while stack:
            rel_type, current, depth, visited = stack.pop()
            found.append(Reached(self.node_map[current], depth, rel_type))
            expand(current, depth, visited)
        return found

    # =========================================================================
    # why
    # =========================================================================

    def why(self, node_id: str, max_depth: Optional[int] = None,
            include_correlations: bool = False, format: str = "chain") -> Dict[str, Any]:
        """
        Causal ancestry of a node.

        Follows derives_from and causes edges backward (plus equivalent
        with include_correlations). The root cause is the deepest ancestor,
        first found on ties.

        Raises:
            NodeNotFoundError: unknown node id
            QueryError: unknown format
        """
        _check_format(format, WHY_FORMATS, "why format")
        target = self._require_node(node_id)

        types = [RelationType.DERIVES_FROM, RelationType.CAUSES]
        if include_correlations:
            types.append(RelationType.EQUIVALENT)

        ancestors = self.traverse_backward(node_id, types, max_depth)
        chain, root = self._build_causal_chain(target, ancestors, types)

        if format == "minimal":
            return {
                "root_cause": root.content,
                "chain": [step.node.content for step in chain],
            }

        return {
            "target": _ref(target),
            "causal_chain": [
                {
                    "depth": len(chain) - index,
                    "id": step.node.id,
                    "content": step.node.content,
                    "relationship_type": (step.relationship_type or RelationType.DERIVES_FROM).value,
                }
                for index, step in enumerate(chain)
            ],
            "root_cause": {"id": root.id, "content": root.content, "is_root": True},
            "metadata": {
                "total_ancestors": len(ancestors),
                "max_depth": len(chain),
                "has_multiple_paths": self._has_multiple_paths(node_id, types),
            },
        }

    def _build_causal_chain(self, target: Node, ancestors: List[Reached],
                            types: Sequence[RelationType]):
        """Walk forward from the root, only through ancestors, stopping at the target."""
        if not ancestors:
            return [], target

        deepest = max(a.depth for a in ancestors)
        root_step = next(a for a in ancestors if a.depth == deepest)

        ancestor_ids = {a.node.id for a in ancestors}
        ancestor_ids.add(target.id)

        chain = [Reached(root_step.node, deepest, root_step.relationship_type)]
        current = root_step.node.id
        seen = {current}
        while current != target.id:
            step = next(
                ((r, child) for r, child in self.downstream.get(current, [])
                 if r.type in types and child in ancestor_ids),
                None
            )
            if step is None:
                break
            next_rel, child = step
            if child == target.id or child in seen:
                break
            next_node = self.node_map.get(child)
            if next_node is None:
                break
            chain.append(Reached(next_node, 0, next_rel.type))
            seen.add(child)
            current = child

        return chain, root_step.node

    def _has_multiple_paths(self, node_id: str, types: Sequence[RelationType]) -> bool:
        incoming = [r for r, _ in self.upstream.get(node_id, []) if r.type in types]
        return len(incoming) > 1

    # =========================================================================
    # what_if
    # =========================================================================

    def what_if(self, node_id: str, max_depth: Optional[int] = None,
                include_correlations: bool = False,
                include_temporal_consequences: bool = True,
                format: str = "tree") -> Dict[str, Any]:
        """
        Forward impact of a node.

        `tree` and `list` share one shape. `summary` buckets descendants
        into risks and benefits by keyword, which is a heuristic only.
        """
        _check_format(format, WHAT_IF_FORMATS, "what-if format")
        source = self._require_node(node_id)

        types = [RelationType.CAUSES]
        if include_temporal_consequences:
            types.append(RelationType.TEMPORAL)
        if include_correlations:
            types.append(RelationType.EQUIVALENT)

        descendants = self.traverse_forward(node_id, types, max_depth)

        zone = {d.node.id for d in descendants}
        zone.add(node_id)
        tensions = self._tensions_within(zone)

        if format == "summary":
            return self._impact_summary(source, descendants, tensions)

        return {
            "source": _ref(source),
            "impact_tree": self._impact_tree(descendants),
            "tensions_in_impact_zone": tensions,
            "metadata": {
                "total_descendants": len(descendants),
                "max_depth": max((d.depth for d in descendants), default=0),
                "tension_count": len(tensions),
                "has_temporal_consequences": any(
                    d.relationship_type == RelationType.TEMPORAL for d in descendants
                ),
            },
        }

    def _tension_relationships(self) -> List[Relationship]:
        return [r for r in self.ir.relationships if r.type == RelationType.TENSION]

    def _impact_tree(self, descendants: List[Reached]) -> Dict[str, List[Dict[str, Any]]]:
        tension_rels = self._tension_relationships()
        in_tension = set()
        for rel in tension_rels:
            in_tension.add(rel.source)
            in_tension.add(rel.target)

        direct = []
        indirect = []
        for d in descendants:
            entry: Dict[str, Any] = {
                "id": d.node.id,
                "content": d.node.content,
                "relationship": d.relationship_type.value,
                "depth": d.depth,
            }
            if d.depth == 1:
                entry["has_tension"] = d.node.id in in_tension
                direct.append(entry)
            else:
                tension = next(
                    (r for r in tension_rels if d.node.id in (r.source, r.target)), None
                )
                if tension is not None and tension.axis_label:
                    entry["tension_axis"] = tension.axis_label
                indirect.append(entry)

        return {"direct_consequences": direct, "indirect_consequences": indirect}

    def _tension_info(self, rel: Relationship) -> Optional[Dict[str, Any]]:
        source = self.node_map.get(rel.source)
        target = self.node_map.get(rel.target)
        if source is None or target is None:
            return None
        return {
            "axis": rel.axis_label or UNLABELED_AXIS,
            "source": _ref(source),
            "target": _ref(target),
        }

    def _tensions_within(self, node_ids) -> List[Dict[str, Any]]:
        found = []
        for rel in self._tension_relationships():
            if rel.source in node_ids and rel.target in node_ids:
                info = self._tension_info(rel)
                if info:
                    found.append(info)
        return found

    def _impact_summary(self, source: Node, descendants: List[Reached],
                        tensions: List[Dict[str, Any]]) -> Dict[str, Any]:
        benefits = []
        risks = []
        for d in descendants:
            lowered = d.node.content.lower()
            if any(word in lowered for word in RISK_KEYWORDS):
                risks.append(d.node.content)
            else:
                benefits.append(d.node.content)

        key_tradeoff = None
        if tensions:
            first = tensions[0]
            key_tradeoff = (
                f"{first['axis']} ({first['source']['content']} vs {first['target']['content']})"
            )

        count = len(descendants)
        return {
            "impact_summary": f"{source.content} affects {count} downstream "
                              f"consideration{'' if count == 1 else 's'}",
            "benefits": benefits,
            "risks": risks,
            "key_tradeoff": key_tradeoff,
        }

    # =========================================================================
    # tensions
    # =========================================================================

    def tensions(self, group_by: str = "axis", filter_by_axis: Optional[List[str]] = None,
                 include_context: bool = False, scope: Optional[str] = None) -> Dict[str, Any]:
        """
        All tension edges, grouped by axis, by source node, or flat.

        scope restricts to tensions whose endpoints both lie in the
        forward-reachable subgraph of that node.
        """
        _check_format(group_by, TENSION_GROUPINGS, "grouping")

        rels = self._tension_relationships()

        if scope:
            self._require_node(scope)
            in_scope = {scope}
            reach_types = [RelationType.CAUSES, RelationType.TEMPORAL, RelationType.DERIVES_FROM]
            in_scope.update(d.node.id for d in self.traverse_forward(scope, reach_types))
            rels = [r for r in rels if r.source in in_scope and r.target in in_scope]

        if filter_by_axis:
            rels = [r for r in rels if r.axis_label and r.axis_label in filter_by_axis]

        details = []
        for rel in rels:
            info = self._tension_info(rel)
            if info is None:
                continue
            if include_context:
                context = [
                    _ref(self.node_map[parent.source])
                    for parent in self.relationships_to.get(rel.source, [])
                    if parent.type != RelationType.TENSION and parent.source in self.node_map
                ]
                if context:
                    info["context"] = context
            details.append(info)

        counts: Dict[str, int] = {}
        for detail in details:
            counts[detail["axis"]] = counts.get(detail["axis"], 0) + 1

        most_common = None
        best = 0
        for axis, count in counts.items():
            if count > best:
                most_common, best = axis, count

        metadata = {
            "total_tensions": len(details),
            "unique_axes": list(counts),
            "most_common_axis": most_common,
        }

        def strip_axis(detail):
            return {k: v for k, v in detail.items() if k != "axis"}

        if group_by == "axis":
            by_axis: Dict[str, List[Dict[str, Any]]] = {}
            for detail in details:
                by_axis.setdefault(detail["axis"], []).append(strip_axis(detail))
            return {"tensions_by_axis": by_axis, "metadata": metadata}

        # Outside axis grouping each entry keeps its own axis
        if group_by == "node":
            by_node: Dict[str, List[Dict[str, Any]]] = {}
            for detail in details:
                by_node.setdefault(detail["source"]["id"], []).append(detail)
            return {"tensions_by_node": by_node, "metadata": metadata}

        return {"tensions": details, "metadata": metadata}

    # =========================================================================
    # blocked
    # =========================================================================

    def blocked(self, since: Optional[str] = None, include_transitive_causes: bool = True,
                include_transitive_effects: bool = True, format: str = "detailed",
                today: Optional[date] = None) -> Dict[str, Any]:
        """
        Blocked nodes, highest impact first.

        impact_score is the number of transitive effects (forward over
        causes and temporal). `summary` drops the transitive node lists but
        keeps the score. `today` pins the reference date.
        """
        _check_format(format, BLOCKED_FORMATS, "blocked format")
        if today is None:
            today = datetime.now().date()

        states = [s for s in self.ir.states if s.type == StateType.BLOCKED]
        if since:
            states = [s for s in states if s.fields.get("since") and s.fields["since"] >= since]

        blockers = []
        for state in states:
            node = self.node_map.get(state.node_id)
            if node is None:
                continue

            since_value = state.fields.get("since", "")
            days_blocked = 0
            if since_value:
                started = _parse_day(since_value)
                if started is None:
                    logger.debug("Unparseable blocked since date %r on %s", since_value, node.id)
                else:
                    days_blocked = (today - started).days

            detail: Dict[str, Any] = {
                "node": _ref(node),
                "blocked_state": {
                    "reason": state.fields.get("reason") or "unknown",
                    "since": since_value,
                    "days_blocked": days_blocked,
                },
                "impact_score": 0,
            }

            if include_transitive_causes:
                causes = self.traverse_backward(
                    node.id, [RelationType.DERIVES_FROM, RelationType.CAUSES])
                if format != "summary":
                    detail["transitive_causes"] = [_ref(c.node) for c in causes]

            if include_transitive_effects:
                effects = self.traverse_forward(
                    node.id, [RelationType.CAUSES, RelationType.TEMPORAL])
                if format != "summary":
                    detail["transitive_effects"] = [_ref(e.node) for e in effects]
                detail["impact_score"] = len(effects)

            blockers.append(detail)

        blockers.sort(key=lambda b: (-b["impact_score"], -b["blocked_state"]["days_blocked"]))

        total = len(blockers)
        high_priority = sum(
            1 for b in blockers
            if b["impact_score"] > 0 or b["blocked_state"]["days_blocked"] > 7
        )
        average = (
            sum(b["blocked_state"]["days_blocked"] for b in blockers) / total if total else 0
        )

        oldest = None
        if blockers:
            oldest_blocker = blockers[0]
            for b in blockers[1:]:
                if b["blocked_state"]["days_blocked"] > oldest_blocker["blocked_state"]["days_blocked"]:
                    oldest_blocker = b
            oldest = {
                "id": oldest_blocker["node"]["id"],
                "days": oldest_blocker["blocked_state"]["days_blocked"],
            }

        return {
            "blockers": blockers,
            "metadata": {
                "total_blockers": total,
                "high_priority_count": high_priority,
                "average_days_blocked": round(average, 1),
                "oldest_blocker": oldest,
            },
        }

    # =========================================================================
    # alternatives
    # =========================================================================

    def alternatives(self, question_id: str, format: str = "comparison",
                     include_rationale: bool = True, include_consequences: bool = False,
                     show_rejected_reasons: bool = False) -> Dict[str, Any]:
        """
        Reconstruct the decision behind a question.

        Raises:
            NodeNotFoundError: unknown node id
            WrongNodeTypeError: node is not a question
            QueryError: unknown format
        """
        _check_format(format, ALTERNATIVES_FORMATS, "alternatives format")
        question = self._require_node(question_id)
        if question.type != NodeType.QUESTION:
            raise WrongNodeTypeError(question_id, NodeType.QUESTION.value, question.type.value)

        options = [
            self.node_map[r.target]
            for r in self.relationships_from.get(question_id, [])
            if r.type == RelationType.ALTERNATIVE and r.target in self.node_map
        ]

        if format == "simple":
            return self._alternatives_simple(question, options, include_rationale)
        if format == "tree":
            return {
                "format": "tree",
                "question": _ref(question),
                "alternatives": [
                    self._alternative_tree(option.id, show_rejected_reasons)
                    for option in options
                ],
            }
        return self._alternatives_comparison(
            question, options, include_rationale, include_consequences, show_rejected_reasons)

    def decision_for(self, node: Node) -> Optional[State]:
        """
        The decided state that chooses this node.

        Matched by attached node id. A decided state attached to another
        node with identical content also counts, for documents that restate
        the alternative on the deciding line.
        """
        for state in self.states_by_node.get(node.id, []):
            if state.type == StateType.DECIDED:
                return state
        for state in self.ir.states:
            if state.type != StateType.DECIDED or not state.node_id:
                continue
            decided_node = self.node_map.get(state.node_id)
            if decided_node is not None and decided_node.content == node.content:
                return state
        return None

    def _alternatives_simple(self, question: Node, options: List[Node],
                             include_rationale: bool) -> Dict[str, Any]:
        chosen = None
        reason = None
        for option in options:
            decision = self.decision_for(option)
            if decision is not None:
                chosen = option.content
                if include_rationale:
                    reason = decision.fields.get("rationale") or None
                break

        return {
            "format": "simple",
            "question": question.content,
            "options_considered": [o.content for o in options],
            "chosen": chosen,
            "reason": reason,
        }

    def _rejection_reasons(self, node_id: str) -> List[str]:
        """Thoughts reached by a causes edge read as reasons for rejecting."""
        reasons = []
        for rel in self.relationships_from.get(node_id, []):
            if rel.type != RelationType.CAUSES:
                continue
            target = self.node_map.get(rel.target)
            if target is not None and target.type == NodeType.THOUGHT:
                reasons.append(target.content)
        return reasons

    def _alternative_tree(self, root_id: str, show_rejected_reasons: bool) -> Dict[str, Any]:
        """Consequence tree below one option, built over an explicit stack."""
        roots: List[Dict[str, Any]] = []
        # (node id, ids on the path above it, list the subtree is appended to)
        stack: List[Tuple[str, FrozenSet[str], List[Dict[str, Any]]]] = [(root_id, frozenset(), roots)]

        while stack:
            node_id, visited, siblings = stack.pop()
            node = self.node_map[node_id]
            if node_id in visited:
                siblings.append({
                    "id": node.id,
                    "content": f"{node.content} [cycle detected]",
                    "chosen": False,
                    "children": [],
                })
                continue

            chosen = self.decision_for(node) is not None
            tree: Dict[str, Any] = {"id": node.id, "content": node.content, "chosen": chosen}
            if show_rejected_reasons and not chosen:
                reasons = self._rejection_reasons(node_id)
                if reasons:
                    tree["rejection_reasons"] = reasons
            tree["children"] = []
            siblings.append(tree)

            path = visited | {node_id}
            targets = [
                rel.target for rel in self.relationships_from.get(node_id, [])
                if rel.type == RelationType.CAUSES and rel.target in self.node_map
            ]
            for target in reversed(targets):
                stack.append((target, path, tree["children"]))

        return roots[0]

    def _alternatives_comparison(self, question: Node, options: List[Node],
                                 include_rationale: bool, include_consequences: bool,
                                 show_rejected_reasons: bool) -> Dict[str, Any]:
        details = []
        chosen_detail = None

        for option in options:
            decision = self.decision_for(option)
            detail: Dict[str, Any] = {
                "id": option.id,
                "content": option.content,
                "chosen": decision is not None,
            }

            if decision is not None and include_rationale and decision.fields.get("rationale"):
                detail["rationale"] = decision.fields["rationale"]
                detail["decided_on"] = decision.fields.get("on")

            if show_rejected_reasons and decision is None:
                reasons = self._rejection_reasons(option.id)
                if reasons:
                    detail["rejection_reasons"] = reasons

            outgoing = self.relationships_from.get(option.id, [])

            if include_consequences:
                consequences = [
                    _ref(self.node_map[r.target]) for r in outgoing
                    if r.type == RelationType.CAUSES and r.target in self.node_map
                ]
                if consequences:
                    detail["consequences"] = consequences

            option_tensions = [
                info for info in (
                    self._tension_info(r) for r in outgoing if r.type == RelationType.TENSION
                ) if info
            ]
            if option_tensions:
                detail["tensions"] = option_tensions

            details.append(detail)
            if decision is not None:
                chosen_detail = detail

        key_factors: List[str] = []
        if chosen_detail:
            for tension in chosen_detail.get("tensions", []):
                if tension["axis"] not in key_factors:
                    key_factors.append(tension["axis"])

        return {
            "format": "comparison",
            "question": _ref(question),
            "alternatives": details,
            "decision_summary": {
                "chosen": chosen_detail["content"] if chosen_detail else None,
                "rationale": chosen_detail.get("rationale") if chosen_detail else None,
                "rejected": [d["content"] for d in details if not d["chosen"]],
                "key_factors": key_factors,
            },
        }
