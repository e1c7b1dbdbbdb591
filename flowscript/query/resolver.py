"""
Node Resolver — find a node from whatever the user typed

Enables users to reference nodes by:
- Full id (exact match)
- Id prefix (4+ characters)
- AA-BB short code (as printed by every command)
- Content (fuzzy, rapidfuzz token-set ratio)

Provides clear feedback on ambiguous or missing matches.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from rapidfuzz import fuzz

from ..core.ir import IR, Node, NodeType
from ..presentation.codec import IDCodec
from ..presentation.symbols import truncate


DEFAULT_FUZZY_THRESHOLD = 80


class ResolveStatus(Enum):
    """Resolution outcome."""
    FOUND = "found"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"


@dataclass
class ResolveResult:
    """Result of node resolution."""
    status: ResolveStatus
    node: Optional[Node] = None
    candidates: List[Node] = field(default_factory=list)
    query: str = ""


class NodeResolver:
    """
    Node resolution for CLI references.

    Resolution strategies (in order):
    1. Exact match (full id)
    2. Prefix match (4+ chars)
    3. Short code match (AA-BB)
    4. Content match: exact text first, then fuzzy
    """

    def __init__(self, ir: IR, codec: Optional[IDCodec] = None,
                 fuzzy_threshold: int = DEFAULT_FUZZY_THRESHOLD):
        self.ir = ir
        self.codec = codec or IDCodec()
        self.fuzzy_threshold = fuzzy_threshold

    def resolve(
        self,
        query: str,
        node_type: Optional[NodeType] = None,
        min_prefix_length: int = 4
    ) -> ResolveResult:
        """
        Resolve a user-provided id, code or phrase to a node.

        Args:
            query: User input
            node_type: Optional filter (e.g. NodeType.QUESTION for alternatives)
            min_prefix_length: Minimum chars for prefix matching
        """
        query = query.strip()
        candidates = self._get_candidates(node_type)

        # Strategy 1: Exact match
        for node in candidates:
            if node.id == query:
                return self._found(node, query)

        # Strategy 2: Prefix match
        if len(query) >= min_prefix_length:
            query_lower = query.lower()
            prefix_matches = [n for n in candidates if n.id.startswith(query_lower)]
            result = self._from_matches(prefix_matches, query)
            if result:
                return result

        # Strategy 3: Short code
        if self.codec.is_short_code(query):
            code_ids = set(self.codec.decode_all(query, [n.id for n in candidates]))
            result = self._from_matches([n for n in candidates if n.id in code_ids], query)
            if result:
                return result

        # Strategy 4: Content
        result = self._from_matches(self._search_by_content(candidates, query), query)
        if result:
            return result

        return ResolveResult(
            status=ResolveStatus.NOT_FOUND,
            candidates=candidates[:5],  # Show 5 suggestions
            query=query
        )

    def _found(self, node: Node, query: str) -> ResolveResult:
        return ResolveResult(status=ResolveStatus.FOUND, node=node, query=query)

    def _from_matches(self, matches: List[Node], query: str) -> Optional[ResolveResult]:
        if len(matches) == 1:
            return self._found(matches[0], query)
        if len(matches) > 1:
            return ResolveResult(
                status=ResolveStatus.AMBIGUOUS,
                candidates=matches[:10],  # Limit to 10
                query=query
            )
        return None

    def _get_candidates(self, node_type: Optional[NodeType] = None) -> List[Node]:
        """All nodes, or only those of node_type."""
        if node_type is not None:
            return self.ir.nodes_by_type(node_type)
        return list(self.ir.nodes)

    def _search_by_content(self, candidates: List[Node], text: str) -> List[Node]:
        """Exact (case-insensitive) content wins; otherwise best fuzzy scores."""
        text_lower = text.lower()
        exact = [n for n in candidates if n.content and n.content.lower() == text_lower]
        if exact:
            return exact

        scored = []
        for node in candidates:
            if not node.content:
                continue
            score = fuzz.token_set_ratio(text_lower, node.content.lower())
            if score >= self.fuzzy_threshold:
                scored.append((score, node))
        if not scored:
            return []

        best = max(score for score, _ in scored)
        return [node for score, node in scored if score == best]


def format_resolve_prompt(result: ResolveResult, codec: Optional[IDCodec] = None) -> str:
    """
    Format resolution result for user display.

    Returns formatted string for CLI output.
    """
    codec = codec or IDCodec()

    if result.status == ResolveStatus.FOUND:
        node = result.node
        return f"Found: {node.type.value} [{codec.encode(node.id)}]\n  \"{truncate(node.content, 60)}\""

    if result.status == ResolveStatus.AMBIGUOUS:
        lines = [f"Multiple matches for \"{result.query}\":\n"]
        for i, node in enumerate(result.candidates, 1):
            lines.append(f"  {i}. [{codec.encode(node.id)}] {node.type.value}: {truncate(node.content, 40)}")
        lines.append("\nUse the code or a longer id prefix.")
        return "\n".join(lines)

    lines = [f"No match for \"{result.query}\".\n"]
    if result.candidates:
        lines.append("Some nodes in this document:")
        for node in result.candidates:
            lines.append(f"  [{codec.encode(node.id)}] {node.type.value}: {truncate(node.content, 40)}")
    lines.append("\nTry: flowscript query <command> <code|id|text> <ir.json>")
    return "\n".join(lines)
