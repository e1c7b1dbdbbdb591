"""
LintCommand — Semantic checks over a compiled document

Exit code is 1 when any ERROR-severity finding is reported. Warnings
alone never fail the run.
"""

from ..commands.base import BaseCommand
from ..lint.linter import Linter


class LintCommand(BaseCommand):
    """Command for linting a .fs document."""

    def lint(self, file: str, as_json: bool = False) -> int:
        ir = self._cli.compile_file(file)

        linter = Linter(config=self.config.lint)
        results = linter.lint(ir)
        errors = linter.get_errors(results)
        warnings = linter.get_warnings(results)

        if as_json:
            self.emit_json({
                "file": file,
                "errors": len(errors),
                "warnings": len(warnings),
                "results": [r.to_dict() for r in results],
            })
        elif not results:
            self.emit(f"{file}: {linter.format_results(results, self.symbols)}")
        else:
            self.emit(f"Linting {file}:\n")
            self.emit(linter.format_results(results, self.symbols))

        return 1 if errors else 0


# =============================================================================
# Command Registration (Self-Registration Pattern)
# =============================================================================

COMMAND_NAME = 'lint'


def register_parser(subparsers):
    """Register lint command parser."""
    p = subparsers.add_parser('lint', help='Lint FlowScript for semantic errors and warnings')
    p.add_argument('file', help='FlowScript file to lint (.fs)')
    p.add_argument('-j', '--json', action='store_true',
                   help='Output results as JSON')
    return p


def handle(cli, args):
    """Handle lint command dispatch."""
    return cli._lint_cmd.lint(args.file, as_json=args.json or cli.json_output)
