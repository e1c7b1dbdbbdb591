"""
Core — Compile layer for FlowScript

- Indentation: rewrites indented text to explicit block delimiters
- Grammar: arpeggio PEG grammar
- Parser: parse tree -> IR nodes, relationships, states
- Linker: block parent/child wiring and content-address dedup
- IR: value types and JSON (de)serialisation
- Hashing: content addresses
"""

from .errors import (
    FlowScriptError, IndentationError, ParseError, IRFormatError,
    QueryError, NodeNotFoundError, WrongNodeTypeError,
)
from .ir import (
    IR, Node, Relationship, State, Provenance,
    NodeType, RelationType, StateType, Modifier, IR_VERSION,
)
from .indentation import IndentationScanner
from .parser import FlowScriptParser, parse
from .linker import link
