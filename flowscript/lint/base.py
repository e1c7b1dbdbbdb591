"""
Lint base types — severity, findings, rule protocol
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.ir import IR, Provenance


class Severity(Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"


@dataclass
class Location:
    file: str
    line: int

    @classmethod
    def from_provenance(cls, provenance: Provenance) -> 'Location':
        return cls(file=provenance.source_file, line=provenance.line_number)

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass
class LintResult:
    """One diagnostic. `rule` is the stable code (E001, W002, ...), serialised as `rule_code`."""
    severity: Severity
    rule: str
    message: str
    location: Optional[Location] = None
    suggestion: Optional[str] = None

    @property
    def line(self) -> int:
        return self.location.line if self.location else 0

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "severity": self.severity.value,
            "rule_code": self.rule,
            "message": self.message,
        }
        if self.location:
            d["location"] = {"file": self.location.file, "line": self.location.line}
        if self.suggestion:
            d["suggestion"] = self.suggestion
        return d


class LintRule:
    """Protocol for lint rules."""
    name: str = ""
    code: str = ""
    severity: Severity = Severity.ERROR

    def check(self, ir: IR) -> List[LintResult]:
        raise NotImplementedError


class BaseLintRule(LintRule):
    """Rule base with a result helper bound to the rule's code and severity."""

    def create_result(
        self,
        message: str,
        provenance: Optional[Provenance] = None,
        suggestion: Optional[str] = None,
        location: Optional[Location] = None,
    ) -> LintResult:
        if location is None and provenance is not None:
            location = Location.from_provenance(provenance)
        return LintResult(
            severity=self.severity,
            rule=self.code,
            message=message,
            location=location,
            suggestion=suggestion,
        )
