"""
Symbols — glyphs used in terminal output

Unicode glyphs where the terminal can show them, ASCII stand-ins where
it cannot. Selected by the display.symbols setting (auto|unicode|ascii).

Output helpers live here too, since every command prints node content:
- safe_print(): never dies on an encoding the terminal lacks
- truncate(): one length policy for every listing
"""

import os
import sys
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Output helpers
# =============================================================================

# Applied before the '?' replacement, so arrows stay readable on ASCII consoles
ASCII_REPLACEMENTS = {
    '→': '->',
    '←': '<-',
    '↔': '<->',
    '⇒': '=>',
    '⇄': '><',
    '✓': '[x]',
    '✗': '[ERR]',
    '⚠': '[!]',
    '●': '[D]',
    '⊘': '[X]',
    '‖': '||',
    '├─': '+-',
    '└─': '+-',
    '│': '|',
    '…': '...',
    '•': '*',
}


def _to_ascii(text: str) -> str:
    for glyph, replacement in ASCII_REPLACEMENTS.items():
        text = text.replace(glyph, replacement)
    return text


def safe_print(text: str, end: str = '\n', file=None) -> None:
    """
    print() that degrades instead of raising UnicodeEncodeError.

    Tries the text as is, then with known glyphs spelled in ASCII, then
    with anything still unencodable replaced by '?'.
    """
    stream = file if file is not None else sys.stdout
    try:
        print(text, end=end, file=stream)
        return
    except UnicodeEncodeError:
        text = _to_ascii(text)

    try:
        print(text, end=end, file=stream)
    except UnicodeEncodeError:
        encoding = getattr(stream, 'encoding', None) or 'utf-8'
        print(text.encode(encoding, errors='replace').decode(encoding), end=end, file=stream)


SUMMARY_LENGTH = 120      # node content in listings
DETAIL_LENGTH = 200       # rationale, reasons, suggestions


def truncate(text: str, length: int = SUMMARY_LENGTH, full: bool = False) -> str:
    """
    Shorten text to `length` characters, ending in "...".

    Examples:
        truncate("Short", 50)              -> "Short"
        truncate("x" * 80, 10)             -> "xxxxxxx..."
        truncate("x" * 80, 10, full=True)  -> unchanged
    """
    if not text:
        return ""
    if full or len(text) <= length:
        return text
    if length <= 3:
        return text[:length]
    return text[:length - 3] + "..."


# =============================================================================
# Symbol sets
# =============================================================================

@dataclass(frozen=True)
class SymbolSet:
    """Glyphs for markers, operators, states and report decoration."""
    # Markers
    question: str
    alternative: str

    # Operators
    causes: str
    derives: str
    tension: str

    # States
    decided: str
    blocked: str

    # Report status
    check_pass: str
    check_warn: str
    check_fail: str
    arrow: str

    # Trees and lists
    tree_branch: str
    tree_end: str
    tree_pipe: str
    bullet: str


UNICODE = SymbolSet(
    question='?',
    alternative='‖',
    causes='→',
    derives='←',
    tension='⇄',
    decided='●',
    blocked='⊘',
    check_pass='✓',
    check_warn='⚠',
    check_fail='✗',
    arrow='→',
    tree_branch='├─',
    tree_end='└─',
    tree_pipe='│ ',
    bullet='•',
)

ASCII = SymbolSet(
    question='?',
    alternative='||',
    causes='->',
    derives='<-',
    tension='><',
    decided='[D]',
    blocked='[X]',
    check_pass='[OK]',
    check_warn='[!]',
    check_fail='[ERR]',
    arrow='->',
    tree_branch='+-',
    tree_end='+-',
    tree_pipe='| ',
    bullet='*',
)


# =============================================================================
# Detection
# =============================================================================

_TRUTHY = ('1', 'true', 'yes')
_ASCII_ENCODINGS = ('ascii', 'latin1', 'iso88591')
_UNICODE_TERMINALS = ('vscode', 'iTerm.app', 'Apple_Terminal', 'Hyper')


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').lower() in _TRUTHY


def supports_unicode() -> bool:
    """
    Best guess whether stdout can show the Unicode set.

    Order: FLOWSCRIPT_ASCII_ONLY / FLOWSCRIPT_UNICODE overrides, the
    stdout encoding (code pages and Latin-1 mean no), UTF-8 locales,
    terminals known to render Unicode. Anything else gets ASCII.
    """
    if _env_flag('FLOWSCRIPT_ASCII_ONLY'):
        return False
    if _env_flag('FLOWSCRIPT_UNICODE'):
        return True

    encoding = (getattr(sys.stdout, 'encoding', None) or '').lower()
    compact = encoding.replace('-', '').replace('_', '')
    if compact.startswith('cp') or compact in _ASCII_ENCODINGS:
        return False

    for variable in ('LANG', 'LC_ALL'):
        locale = os.environ.get(variable, '').lower()
        if 'utf-8' in locale or 'utf8' in locale:
            return True

    if os.environ.get('TERM_PROGRAM', '') in _UNICODE_TERMINALS or os.environ.get('WT_SESSION'):
        return True

    return 'utf' in encoding


def get_symbols(preference: Optional[str] = None) -> SymbolSet:
    """
    Symbol set for a display.symbols value.

    "unicode" and "ascii" are honoured as given; "auto" or None detects.
    """
    if preference == 'unicode':
        return UNICODE
    if preference == 'ascii':
        return ASCII
    return UNICODE if supports_unicode() else ASCII
