"""
ParseCommand — Compile FlowScript text to IR JSON

Writes to stdout, or to a file with --output. Indentation and grammar
errors propagate as FlowScriptError and end the run with exit code 1.
"""

from pathlib import Path
from typing import Optional

from ..commands.base import BaseCommand


class ParseCommand(BaseCommand):
    """Command for compiling a .fs document."""

    def parse(self, file: str, output: Optional[str] = None, compact: bool = False) -> int:
        ir = self._cli.compile_file(file)
        text = ir.to_json(indent=not compact)

        if output:
            Path(output).write_text(text + "\n", encoding="utf-8")
            symbols = self.symbols
            self.emit(f"{symbols.check_pass} Parsed {file} {symbols.arrow} {output}")
        else:
            print(text)
        return 0


# =============================================================================
# Command Registration (Self-Registration Pattern)
# =============================================================================

COMMAND_NAME = 'parse'


def register_parser(subparsers):
    """Register parse command parser."""
    p = subparsers.add_parser('parse', help='Parse FlowScript text and emit IR JSON')
    p.add_argument('file', help='FlowScript file to parse (.fs)')
    p.add_argument('-o', '--output', metavar='OUT',
                   help='Output file for IR JSON (default: stdout)')
    p.add_argument('-c', '--compact', action='store_true',
                   help='Compact JSON output (no indentation)')
    return p


def handle(cli, args):
    """Handle parse command dispatch."""
    return cli._parse_cmd.parse(args.file, output=args.output, compact=args.compact)
