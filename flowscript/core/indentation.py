"""
Indentation Scanner — indentation to explicit block delimiters

Rewrites Python-style indentation into `{` / `}` so the grammar only
needs to understand explicit blocks:

    ? which database           ? which database
      || postgres        ->      {|| postgres
      || sqlite                  || sqlite
                                 }

An indented line gets `{` glued in front of its content; every closed
level becomes its own `}` line. The line map sends each rewritten line
(1-indexed) back to the original source line.

Lines that carry explicit braces pass through unchanged inside an explicit
block. Outside one they still go through the indentation comparison, so
an indented `x { ... }` line opens its level like any other line. The
indent stack is saved when an explicit block opens and restored when it
closes, so the levels around the block carry on below it.
"""

from typing import Dict, List, Optional, Tuple

from .errors import IndentationError


class IndentationScanner:
    """
    Stateful INDENT/DEDENT rewriter. State is reset on every process() call.
    """

    def __init__(self, indent_size: int = 2):
        self.indent_size = indent_size
        self._reset()

    def _reset(self):
        self._stack: List[int] = [0]
        self._brace_depth = 0
        # Base indent of the current explicit block (set by its first line)
        self._block_base: Optional[int] = None
        self._saved: List[Tuple[List[int], Optional[int]]] = []
        self._seen_content = False

    def process(self, source: str) -> Tuple[str, Dict[int, int]]:
        """
        Rewrite source.

        Returns:
            (rewritten text, {rewritten line -> original line})

        Raises:
            IndentationError: tabs, indented first line, or a dedent to a
                width that was never pushed
        """
        if source == "":
            return "", {}

        self._reset()
        lines = source.split("\n")
        output: List[Tuple[str, int]] = []
        last_content_line = len(lines)

        for index, line in enumerate(lines):
            line_number = index + 1
            if line.strip():
                last_content_line = line_number
            output.extend(self._process_line(line, line_number))

        # Close everything still open
        while len(self._stack) > 1:
            output.append((" " * self._stack.pop() + "}", last_content_line))

        line_map = {i + 1: original for i, (_, original) in enumerate(output)}
        return "\n".join(text for text, _ in output), line_map

    # -------------------------------------------------------------------------
    # Per-line handling
    # -------------------------------------------------------------------------

    def _process_line(self, line: str, line_number: int) -> List[Tuple[str, int]]:
        if not line.strip():
            return [(line, line_number)]

        if "\t" in line:
            raise IndentationError(
                f"Tabs not allowed. Use {self.indent_size} spaces for indentation.",
                line_number
            )

        indent = _leading_spaces(line)
        if not self._seen_content:
            self._seen_content = True
            if indent > 0:
                raise IndentationError("First line cannot be indented.", line_number)

        opens = line.count("{")
        closes = line.count("}")
        if opens or closes:
            return self._process_brace_line(line, line_number, indent, opens, closes)

        if self._brace_depth > 0 and self._block_base is None:
            # First line inside an explicit block fixes its base level
            self._block_base = indent
            self._stack = [indent]
            return [(line, line_number)]

        return self._apply_indent(line, line_number, indent)

    def _process_brace_line(self, line: str, line_number: int, indent: int,
                            opens: int, closes: int) -> List[Tuple[str, int]]:
        output: List[Tuple[str, int]] = []

        if self._brace_depth == 0:
            output.extend(self._apply_indent(line, line_number, indent))
        else:
            if closes > opens and self._block_base is not None:
                # Close indentation levels opened inside the explicit block
                while len(self._stack) > 1 and self._stack[-1] > self._block_base:
                    output.append((" " * self._stack.pop() + "}", line_number))
            output.append((line, line_number))

        net = opens - closes
        for _ in range(max(net, 0)):
            self._saved.append((list(self._stack), self._block_base))
            self._stack = [0]
            self._block_base = None
        for _ in range(max(-net, 0)):
            if self._saved:
                self._stack, self._block_base = self._saved.pop()
            else:
                self._stack, self._block_base = [0], None
        self._brace_depth = max(self._brace_depth + net, 0)

        return output

    def _apply_indent(self, line: str, line_number: int, indent: int) -> List[Tuple[str, int]]:
        current = self._stack[-1]

        if indent > current:
            self._stack.append(indent)
            return [(" " * indent + "{" + line.lstrip(" "), line_number)]

        if indent < current:
            output = []
            while len(self._stack) > 1 and self._stack[-1] > indent:
                output.append((" " * self._stack.pop() + "}", line_number))
            if self._stack[-1] != indent:
                levels = ", ".join(str(level) for level in self._stack)
                raise IndentationError(
                    f"Invalid dedent to level {indent}. Expected one of: [{levels}].",
                    line_number
                )
            output.append((line, line_number))
            return output

        return [(line, line_number)]


def _leading_spaces(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def process_indentation(source: str, indent_size: int = 2) -> Tuple[str, Dict[int, int]]:
    """Convenience wrapper: one-shot scan."""
    return IndentationScanner(indent_size=indent_size).process(source)
