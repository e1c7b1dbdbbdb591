"""
Errors — Exception taxonomy for the compile and query pipeline

Preprocessing and parse errors are fatal for the whole document.
Query errors are per-call and leave the engine untouched.
Lint findings are NOT exceptions (see lint.base.LintResult).
"""

from typing import Optional


class FlowScriptError(Exception):
    """Base class for all FlowScript errors."""


class IndentationError(FlowScriptError):
    """
    Raised by the indentation scanner.

    Carries the 1-indexed original line so messages point at the
    user's source, not the rewritten text.
    """

    def __init__(self, message: str, line_number: int):
        super().__init__(f"{message} (Line {line_number})")
        self.message = message
        self.line_number = line_number


class ParseError(FlowScriptError):
    """Grammar mismatch. No partial IR is ever returned alongside it."""

    def __init__(self, message: str, line_number: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line_number = line_number
        self.column = column


class IRFormatError(FlowScriptError):
    """An IR JSON document could not be decoded."""


class QueryError(FlowScriptError):
    """Invalid query arguments."""


class NodeNotFoundError(QueryError):
    """Query referenced a node id absent from the loaded IR."""

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class WrongNodeTypeError(QueryError):
    """Query requires a node of a specific type."""

    def __init__(self, node_id: str, expected: str, actual: str):
        article = "an" if expected[:1] in "aeiou" else "a"
        super().__init__(f"Node {node_id} is not {article} {expected} (type: {actual})")
        self.node_id = node_id
        self.expected = expected
        self.actual = actual
