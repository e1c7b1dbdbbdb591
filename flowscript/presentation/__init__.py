"""
Presentation — Display layer for FlowScript

- Symbols: Visual vocabulary (unicode/ascii)
- Codec: AA-BB short codes for node ids
- Formatters: lint and query results as text
- GraphData: IR projection for graph visualisation
"""

from .symbols import (
    SymbolSet, get_symbols,
    safe_print, truncate,
    SUMMARY_LENGTH
)
from .codec import IDCodec
from .formatters import (
    format_lint_results, format_why, format_what_if,
    format_tensions, format_blocked, format_alternatives,
)
from .graph_data import GraphData, GraphNode, GraphEdge, ir_to_graph_data, verify_transformation

__all__ = [
    # Symbols
    "SymbolSet", "get_symbols", "safe_print", "truncate", "SUMMARY_LENGTH",
    # Codec
    "IDCodec",
    # Formatters
    "format_lint_results", "format_why", "format_what_if",
    "format_tensions", "format_blocked", "format_alternatives",
    # GraphData
    "GraphData", "GraphNode", "GraphEdge", "ir_to_graph_data", "verify_transformation",
]
