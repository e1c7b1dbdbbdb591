"""
Lint — Semantic rules over a compiled IR

Errors (E001-E006) fail `flowscript lint`; warnings (W001-W003) do not.
"""

from .base import Severity, Location, LintResult, LintRule, BaseLintRule
from .linter import Linter
from .rules import default_rules

__all__ = [
    "Severity", "Location", "LintResult", "LintRule", "BaseLintRule",
    "Linter", "default_rules",
]
