"""
Grammar — PEG grammar for (indentation-rewritten) FlowScript

Arpeggio rule functions. Newlines are significant: the parser skips only
spaces, tabs and carriage returns between tokens, so `\\n` separates
elements just like `;`.

    document   := element? (separator element?)* EOF
    element    := prefix+ body? | body
    prefix     := modifier | state
    body       := question | thought | action | completion | alternative
                | continuation | rel_expr | block | node_text
    block      := '{' newline* (element (separator element?)*)? '}'
    rel_expr   := rel_node rel_pair+
    continuation := rel_op rel_node rel_pair*
    rel_pair   := rel_op rel_node
    rel_node   := block | node_text

Unknown state names fail the `state` production and the whole line falls
through to prose (node_text).
"""

from enum import Enum

from arpeggio import ParserPython, ZeroOrMore, OneOrMore, Optional, EOF
from arpeggio import RegExMatch as _


# =============================================================================
# Lexical rules
# =============================================================================

def newline():
    return _(r'\n')


def separator():
    return [';', newline]


def modifier():
    # Must be followed by whitespace: "!important" is prose, "! important" is urgent
    return _(r'(\+\+|!|\*|~)(?=\s)')


def node_text():
    # Prose up to a relationship operator, brace, separator or line end
    return _(r'(?:(?!<->|->|<-|=>|><)[^{};\n])+')


# =============================================================================
# State markers
# =============================================================================

def state_name():
    return _(r'(decided|blocked|parking|exploring)\b')


def field_key():
    return _(r'[A-Za-z_][A-Za-z0-9_\-]*')


def quoted_value():
    return _(r'"(?:[^"\\\n]|\\.)*"')


def bare_value():
    return _(r'[^,)\]\n]+')


def state_field():
    return field_key, ':', [quoted_value, bare_value]


def state_fields():
    return '(', Optional(state_field, ZeroOrMore(',', state_field)), ')'


def state():
    return '[', state_name, Optional(state_fields), ']'


def prefix():
    return [modifier, state]


# =============================================================================
# Relationship operators
# =============================================================================

def bidirectional_op():
    return _(r'<->')


def causes_op():
    return _(r'->')


def derives_op():
    return _(r'<-')


def temporal_op():
    return _(r'=>')


def axis_label():
    return _(r'[^\]\n]+')


def tension_op():
    return _(r'><'), Optional('[', Optional(axis_label), ']')


def rel_op():
    # '<->' before '<-' (longest match first)
    return [bidirectional_op, causes_op, derives_op, temporal_op, tension_op]


def rel_node():
    return [block, node_text]


def rel_pair():
    return rel_op, rel_node


def rel_expr():
    return rel_node, OneOrMore(rel_pair)


def continuation():
    return rel_op, rel_node, ZeroOrMore(rel_pair)


# =============================================================================
# Marker forms: marker text? block? rel_pair*
# =============================================================================

def question():
    return _(r'\?'), Optional(node_text), Optional(block), ZeroOrMore(rel_pair)


def thought():
    return _(r'thought:'), Optional(node_text), Optional(block), ZeroOrMore(rel_pair)


def action():
    return _(r'action:'), Optional(node_text), Optional(block), ZeroOrMore(rel_pair)


def completion():
    return _(r'✓'), Optional(node_text), Optional(block), ZeroOrMore(rel_pair)


def alternative():
    return _(r'\|\|'), Optional(node_text), Optional(block), ZeroOrMore(rel_pair)


# =============================================================================
# Structure
# =============================================================================

def block():
    return '{', ZeroOrMore(newline), Optional(block_body), '}'


def block_body():
    return element, ZeroOrMore(separator, Optional(element))


def body():
    return [question, thought, action, completion, alternative,
            continuation, rel_expr, block, node_text]


def element():
    return [(OneOrMore(prefix), Optional(body)), body]


def document():
    return Optional(element), ZeroOrMore(separator, Optional(element)), EOF


# =============================================================================
# Parse-tree node kinds
# =============================================================================

class Rule(Enum):
    """
    Named productions that carry meaning in the parse tree.

    Choice-only productions (prefix, body, rel_node, rel_op, separator)
    are not listed: the tree builder looks straight through them.
    """
    ELEMENT = "element"
    MODIFIER = "modifier"
    STATE = "state"
    STATE_NAME = "state_name"
    STATE_FIELD = "state_field"
    FIELD_KEY = "field_key"
    QUOTED_VALUE = "quoted_value"
    BARE_VALUE = "bare_value"
    QUESTION = "question"
    THOUGHT = "thought"
    ACTION = "action"
    COMPLETION = "completion"
    ALTERNATIVE = "alternative"
    CONTINUATION = "continuation"
    REL_EXPR = "rel_expr"
    REL_PAIR = "rel_pair"
    BLOCK = "block"
    NODE_TEXT = "node_text"
    BIDIRECTIONAL_OP = "bidirectional_op"
    CAUSES_OP = "causes_op"
    DERIVES_OP = "derives_op"
    TEMPORAL_OP = "temporal_op"
    TENSION_OP = "tension_op"
    AXIS_LABEL = "axis_label"


RULE_NAMES = frozenset(rule.value for rule in Rule)

# Productions that can stand as an element body
BODY_RULES = (
    Rule.QUESTION, Rule.THOUGHT, Rule.ACTION, Rule.COMPLETION, Rule.ALTERNATIVE,
    Rule.CONTINUATION, Rule.REL_EXPR, Rule.BLOCK, Rule.NODE_TEXT,
)

OPERATOR_RULES = (
    Rule.BIDIRECTIONAL_OP, Rule.CAUSES_OP, Rule.DERIVES_OP, Rule.TEMPORAL_OP, Rule.TENSION_OP,
)


def create_parser(debug: bool = False) -> ParserPython:
    """Build the arpeggio parser. Newlines are tokens, not whitespace."""
    return ParserPython(document, ws='\t\r ', memoization=True, debug=debug)
