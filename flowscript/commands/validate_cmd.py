"""
ValidateCommand — Check an IR JSON file against the IR schema
"""

from ..commands.base import BaseCommand
from ..validation import validate_ir


class ValidateCommand(BaseCommand):
    """Command for schema-validating IR JSON produced by any tool."""

    def validate(self, file: str, verbose: bool = False) -> int:
        data = self._cli.read_json(file)
        result = validate_ir(data)
        symbols = self.symbols

        if self._cli.json_output:
            self.emit_json({"file": file, **result.to_dict()})
            return 0 if result.valid else 1

        if result.valid:
            self.emit(f"{symbols.check_pass} {file}: Valid IR")
            return 0

        lines = [
            f"{symbols.check_fail} {file}: Invalid IR",
            f"  {len(result.errors)} validation error(s)",
            "",
        ]
        if verbose:
            for error in result.errors:
                lines.append(f"  - {error['path']}: {error['message']}")
        else:
            lines.append("  Use --verbose to see detailed errors")
        self.emit("\n".join(lines))
        return 1


# =============================================================================
# Command Registration (Self-Registration Pattern)
# =============================================================================

COMMAND_NAME = 'validate'


def register_parser(subparsers):
    """Register validate command parser."""
    p = subparsers.add_parser('validate', help='Validate IR JSON against the IR schema')
    p.add_argument('file', help='IR JSON file to validate (.json)')
    p.add_argument('-v', '--verbose', action='store_true',
                   help='Show detailed validation errors')
    return p


def handle(cli, args):
    """Handle validate command dispatch."""
    return cli._validate_cmd.validate(args.file, verbose=args.verbose)
