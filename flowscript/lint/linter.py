"""
Linter — runs the rule set over a linked IR

Rules are independent. A rule that raises is logged and skipped so the
rest of the report still comes out. Results are sorted errors first,
then by line.
"""

import logging
from typing import List, Optional

from ..core.ir import IR
from ..presentation.formatters import format_lint_results
from ..presentation.symbols import SymbolSet, get_symbols
from .base import LintResult, LintRule, Severity
from .rules import default_rules

logger = logging.getLogger(__name__)


class Linter:
    """
    Semantic linter.

    Usage:
        linter = Linter()
        results = linter.lint(ir)
        if linter.has_errors(results): ...
    """

    def __init__(self, rules: Optional[List[LintRule]] = None, config=None):
        """
        Args:
            rules: Explicit rule list (default: the nine standard rules)
            config: Optional LintConfig for thresholds and disabled rules
        """
        if rules is not None:
            self.rules = list(rules)
        elif config is not None:
            self.rules = [
                rule for rule in default_rules(
                    max_nesting_depth=config.max_nesting_depth,
                    max_chain_length=config.max_chain_length,
                    orphan_exempt_types=config.orphan_exempt_types,
                )
                if rule.code not in config.disabled_rules
            ]
        else:
            self.rules = default_rules()

    def add_rule(self, rule: LintRule):
        self.rules.append(rule)

    def lint(self, ir: IR) -> List[LintResult]:
        results: List[LintResult] = []
        for rule in self.rules:
            try:
                results.extend(rule.check(ir))
            except Exception:
                logger.exception("Rule %s failed", rule.code)

        results.sort(key=lambda r: (0 if r.is_error else 1, r.line))
        return results

    @staticmethod
    def get_errors(results: List[LintResult]) -> List[LintResult]:
        return [r for r in results if r.severity == Severity.ERROR]

    @staticmethod
    def get_warnings(results: List[LintResult]) -> List[LintResult]:
        return [r for r in results if r.severity == Severity.WARNING]

    @staticmethod
    def has_errors(results: List[LintResult]) -> bool:
        return any(r.is_error for r in results)

    @staticmethod
    def format_results(results: List[LintResult], symbols: Optional[SymbolSet] = None) -> str:
        return format_lint_results(results, symbols or get_symbols())
