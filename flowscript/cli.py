"""
CLI -- Command interface for the FlowScript toolchain

  parse     FlowScript text -> IR JSON
  lint      semantic rules over a document
  validate  IR JSON against the schema
  query     why / what-if / tensions / blocked / alternatives
  config    view or change settings

Every FlowScriptError ends the run as "Error: <message>" with exit code 1.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson

from .config import ConfigManager
from .core.errors import FlowScriptError, IRFormatError
from .core.ir import IR
from .core.parser import FlowScriptParser
from .presentation.symbols import get_symbols, safe_print
from .commands.parse_cmd import ParseCommand
from .commands.lint_cmd import LintCommand
from .commands.validate_cmd import ValidateCommand
from .commands.query_cmd import QueryCommand
from .commands.config_cmd import ConfigCommand
from . import __version__


class FlowScriptCLI:
    """Command-line interface for the FlowScript toolchain."""

    def __init__(self, project_dir: Path, json_output: bool = False):
        self.project_dir = Path(project_dir)
        self.config_manager = ConfigManager(self.project_dir)
        self.config = self.config_manager.load()

        # Initialize symbols based on config
        self.symbols = get_symbols(self.config.display.symbols)
        self.json_output = json_output or self.config.display.format == "json"

        self._parser: Optional[FlowScriptParser] = None

        self._parse_cmd = ParseCommand(self)
        self._lint_cmd = LintCommand(self)
        self._validate_cmd = ValidateCommand(self)
        self._query_cmd = QueryCommand(self)
        self._config_cmd = ConfigCommand(self)

    @property
    def parser(self) -> FlowScriptParser:
        # Grammar construction is deferred until a command needs it
        if self._parser is None:
            self._parser = FlowScriptParser(indent_size=self.config.parser.indent_size)
        return self._parser

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    def _read_bytes(self, file: str) -> bytes:
        path = Path(file)
        if not path.is_file():
            raise FlowScriptError(f"File not found: {file}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise FlowScriptError(f"Cannot read {file}: {e}") from e

    def read_source(self, file: str) -> str:
        try:
            return self._read_bytes(file).decode("utf-8")
        except UnicodeDecodeError as e:
            raise FlowScriptError(f"{file} is not valid UTF-8: {e}") from e

    def read_json(self, file: str) -> Dict[str, Any]:
        try:
            return orjson.loads(self._read_bytes(file))
        except orjson.JSONDecodeError as e:
            raise IRFormatError(f"Invalid JSON in {file}: {e}") from e

    def compile_file(self, file: str) -> IR:
        return self.parser.parse(self.read_source(file), source_file=file)

    def load_ir(self, file: str) -> IR:
        return IR.from_json(self._read_bytes(file))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowscript",
        description="FlowScript -- compiler, linter and query engine for cognitive graphs",
    )

    parser.add_argument(
        '--project', '-p',
        default=os.environ.get("FLOWSCRIPT_PROJECT_PATH", "."),
        help='Project directory holding .flowscript/config.yaml (default: FLOWSCRIPT_PROJECT_PATH or current)'
    )

    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'flowscript {__version__}'
    )

    # dest names differ from the subcommand flags so subparser defaults never mask them
    parser.add_argument('--json', dest='json_output', action='store_true',
                        help='Emit query and validation results as JSON')
    parser.add_argument('--verbose', dest='debug', action='store_true',
                        help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Register all commands from command modules (self-registration pattern)
    from .commands import register_all
    register_all(subparsers)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the FlowScript CLI.

    Returns the process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    from .commands import dispatch

    try:
        cli = FlowScriptCLI(Path(args.project), json_output=args.json_output)
        return dispatch(args.command, cli, args) or 0
    except FlowScriptError as e:
        safe_print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyError as e:
        safe_print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == '__main__':
    sys.exit(main())
