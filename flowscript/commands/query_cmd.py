"""
QueryCommand — The five graph queries over a compiled IR file

NODE arguments accept a full id, a 4+ character id prefix, an AA-BB
short code, or node text (exact, then fuzzy). Ambiguous or unknown
references print the candidates and exit 1 without running the query.

Output is text by default; the global --json flag (or display.format =
json) emits the raw query result.
"""

from typing import Optional

from ..commands.base import BaseCommand
from ..presentation.formatters import (
    format_alternatives,
    format_blocked,
    format_tensions,
    format_what_if,
    format_why,
)
from ..query.engine import (
    ALTERNATIVES_FORMATS,
    BLOCKED_FORMATS,
    TENSION_GROUPINGS,
    WHAT_IF_FORMATS,
    WHY_FORMATS,
    QueryEngine,
)
from ..query.resolver import NodeResolver, ResolveStatus, format_resolve_prompt


class QueryCommand(BaseCommand):
    """Command for running queries against IR JSON."""

    def _engine(self, ir_file: str) -> QueryEngine:
        return QueryEngine(self._cli.load_ir(ir_file))

    def _resolve(self, engine: QueryEngine, reference: str) -> Optional[str]:
        """Node id for a user reference, or None after printing why not."""
        result = NodeResolver(engine.ir).resolve(reference)
        if result.status == ResolveStatus.FOUND:
            return result.node.id
        self.emit(format_resolve_prompt(result))
        return None

    def _depth(self, max_depth: Optional[int]) -> Optional[int]:
        if max_depth is not None:
            return max_depth
        return self.config.query.default_max_depth

    def why(self, node: str, ir_file: str, format: str = "chain",
            max_depth: Optional[int] = None) -> int:
        engine = self._engine(ir_file)
        node_id = self._resolve(engine, node)
        if node_id is None:
            return 1

        result = engine.why(node_id, max_depth=self._depth(max_depth), format=format)
        if self._cli.json_output:
            self.emit_json(result)
        else:
            self.emit(format_why(result, self.symbols))
        return 0

    def what_if(self, node: str, ir_file: str, format: str = "tree",
                max_depth: Optional[int] = None) -> int:
        engine = self._engine(ir_file)
        node_id = self._resolve(engine, node)
        if node_id is None:
            return 1

        result = engine.what_if(node_id, max_depth=self._depth(max_depth), format=format)
        if self._cli.json_output:
            self.emit_json(result)
        else:
            self.emit(format_what_if(result, self.symbols, format))
        return 0

    def tensions(self, ir_file: str, group_by: str = "axis", axes=None,
                 with_context: bool = False, scope: Optional[str] = None) -> int:
        engine = self._engine(ir_file)

        scope_id = None
        if scope:
            scope_id = self._resolve(engine, scope)
            if scope_id is None:
                return 1

        result = engine.tensions(
            group_by=group_by,
            filter_by_axis=axes or None,
            include_context=with_context,
            scope=scope_id,
        )
        if self._cli.json_output:
            self.emit_json(result)
        else:
            self.emit(format_tensions(result, self.symbols))
        return 0

    def blocked(self, ir_file: str, since: Optional[str] = None, format: str = "detailed") -> int:
        engine = self._engine(ir_file)
        result = engine.blocked(since=since, format=format)
        if self._cli.json_output:
            self.emit_json(result)
        else:
            self.emit(format_blocked(result, self.symbols, format))
        return 0

    def alternatives(self, question: str, ir_file: str, format: str = "comparison") -> int:
        engine = self._engine(ir_file)
        node_id = self._resolve(engine, question)
        if node_id is None:
            return 1

        result = engine.alternatives(node_id, format=format, show_rejected_reasons=True)
        if self._cli.json_output:
            self.emit_json(result)
        else:
            self.emit(format_alternatives(result, self.symbols))
        return 0


# =============================================================================
# Command Registration (Self-Registration Pattern)
# =============================================================================

COMMAND_NAME = 'query'


def register_parser(subparsers):
    """Register the query command and its five subcommands."""
    p = subparsers.add_parser('query', help='Query IR for causal chains, impact, tensions and decisions')
    queries = p.add_subparsers(dest='query_command', metavar='QUERY')
    queries.required = True

    why = queries.add_parser('why', help='Trace causal ancestry of a node')
    why.add_argument('node', help='Node id, prefix, AA-BB code or text')
    why.add_argument('ir', help='IR JSON file')
    why.add_argument('-f', '--format', choices=WHY_FORMATS, default='chain')
    why.add_argument('-d', '--max-depth', type=int, default=None,
                     help='Maximum traversal depth')

    what_if = queries.add_parser('what-if', help='Show downstream impact of a node')
    what_if.add_argument('node', help='Node id, prefix, AA-BB code or text')
    what_if.add_argument('ir', help='IR JSON file')
    what_if.add_argument('-f', '--format', choices=WHAT_IF_FORMATS, default='tree')
    what_if.add_argument('-d', '--max-depth', type=int, default=None,
                         help='Maximum traversal depth')

    tensions = queries.add_parser('tensions', help='List tradeoffs by axis')
    tensions.add_argument('ir', help='IR JSON file')
    tensions.add_argument('-g', '--group-by', choices=TENSION_GROUPINGS, default='axis')
    tensions.add_argument('-a', '--axis', nargs='+', dest='axes', metavar='AXIS',
                          help='Only these axis labels')
    tensions.add_argument('-c', '--with-context', action='store_true',
                          help='Include parent nodes of each tension source')
    tensions.add_argument('-s', '--scope', metavar='NODE',
                          help='Only tensions reachable from this node')

    blocked = queries.add_parser('blocked', help='List blocked nodes by impact')
    blocked.add_argument('ir', help='IR JSON file')
    blocked.add_argument('-s', '--since', metavar='DATE',
                         help='Only blockers since this ISO date')
    blocked.add_argument('-f', '--format', choices=BLOCKED_FORMATS, default='detailed')

    alternatives = queries.add_parser('alternatives', help='Reconstruct the decision behind a question')
    alternatives.add_argument('question', help='Question id, prefix, AA-BB code or text')
    alternatives.add_argument('ir', help='IR JSON file')
    alternatives.add_argument('-f', '--format', choices=ALTERNATIVES_FORMATS, default='comparison')

    return p


def handle(cli, args):
    """Handle query subcommand dispatch."""
    cmd = cli._query_cmd
    if args.query_command == 'why':
        return cmd.why(args.node, args.ir, format=args.format, max_depth=args.max_depth)
    elif args.query_command == 'what-if':
        return cmd.what_if(args.node, args.ir, format=args.format, max_depth=args.max_depth)
    elif args.query_command == 'tensions':
        return cmd.tensions(args.ir, group_by=args.group_by, axes=args.axes,
                            with_context=args.with_context, scope=args.scope)
    elif args.query_command == 'blocked':
        return cmd.blocked(args.ir, since=args.since, format=args.format)
    elif args.query_command == 'alternatives':
        return cmd.alternatives(args.question, args.ir, format=args.format)
    return 1
