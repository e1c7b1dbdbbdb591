"""
BaseCommand — what every command borrows from the CLI

Commands hold the FlowScriptCLI instance rather than building their own
config, symbols or parser, so one run shares one of each.
"""

from typing import TYPE_CHECKING, Any

import orjson

from ..presentation.symbols import safe_print

if TYPE_CHECKING:
    from ..cli import FlowScriptCLI


class BaseCommand:
    """Command base: shared CLI resources and the two output paths."""

    def __init__(self, cli: 'FlowScriptCLI'):
        self._cli = cli

    @property
    def config(self):
        return self._cli.config

    @property
    def config_manager(self):
        return self._cli.config_manager

    @property
    def symbols(self):
        """Unicode or ASCII set, per display.symbols."""
        return self._cli.symbols

    def emit_json(self, payload: Any):
        # Raw JSON on stdout; never transliterated
        print(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())

    def emit(self, text: str):
        # Node content is free-form user text
        safe_print(text)
