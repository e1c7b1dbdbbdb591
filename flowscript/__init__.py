"""
FlowScript — Compile reasoning notation into a queryable graph

Text with relationship operators (->, <-, <->, =>, ><[axis]), markers
(?, thought:, action:, ✓, ||) and states ([decided(...)], [blocked(...)])
compiles to a content-addressed IR that can be linted and queried.

Usage:
    flowscript parse notes.fs -o notes.json
    flowscript lint notes.fs
    flowscript validate notes.json
    flowscript query why "<node>" notes.json
    flowscript query tensions notes.json
    flowscript config --set lint.max_chain_length=12

    from flowscript import parse, Linter, QueryEngine
    ir = parse(open("notes.fs").read(), "notes.fs")
    QueryEngine(ir).blocked()
"""

__version__ = "0.1.0"

# Core layer (compile)
from .core.errors import (
    FlowScriptError, IndentationError, ParseError, IRFormatError,
    QueryError, NodeNotFoundError, WrongNodeTypeError,
)
from .core.ir import IR, Node, Relationship, State, Provenance, NodeType, RelationType, StateType
from .core.indentation import IndentationScanner
from .core.parser import FlowScriptParser, parse

# Lint layer
from .lint import Linter, LintResult, Severity

# Query layer
from .query import QueryEngine, NodeResolver, ResolveStatus

# Presentation layer
from .presentation.graph_data import GraphData, ir_to_graph_data, verify_transformation
from .presentation.symbols import get_symbols, SymbolSet, UNICODE, ASCII

# Validation and config (stay at root)
from .validation import validate_ir, ValidationResult
from .config import Config, ConfigManager, get_config

__all__ = [
    # Core
    'FlowScriptError', 'IndentationError', 'ParseError', 'IRFormatError',
    'QueryError', 'NodeNotFoundError', 'WrongNodeTypeError',
    'IR', 'Node', 'Relationship', 'State', 'Provenance', 'NodeType', 'RelationType', 'StateType',
    'IndentationScanner', 'FlowScriptParser', 'parse',
    # Lint
    'Linter', 'LintResult', 'Severity',
    # Query
    'QueryEngine', 'NodeResolver', 'ResolveStatus',
    # Presentation
    'GraphData', 'ir_to_graph_data', 'verify_transformation',
    'get_symbols', 'SymbolSet', 'UNICODE', 'ASCII',
    # Validation / config
    'validate_ir', 'ValidationResult',
    'Config', 'ConfigManager', 'get_config',
]
